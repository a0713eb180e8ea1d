from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NodeSettings(BaseSettings):
    """Node process configuration settings.

    Every field can be overridden through a ``GLOMERS_``-prefixed environment
    variable (e.g. ``GLOMERS_TICK_INTERVAL=0.2``) or a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="GLOMERS_", env_file=".env", extra="ignore"
    )

    tick_interval: float = Field(
        0.1,
        gt=0,
        description="Seconds between internally generated gossip ticks.",
    )
    redundancy_ratio: float = Field(
        0.3236,
        ge=0.0,
        le=1.0,
        description="Fraction of already-acknowledged values eligible for re-sending on each tick.",
    )
    rng_seed: int | None = Field(
        None,
        description="Seed for the redundant-sample random source (unseeded when unset).",
    )
    log_level: str = Field("INFO", description="Minimum level written to stderr.")
    debug_scopes: tuple[str, ...] = Field(
        (),
        description="Module prefixes (e.g. gossip.broadcast) that always log at DEBUG.",
    )
    colorize_logs: bool = Field(False, description="Colorize stderr log output.")
