from dataclasses import dataclass
from typing import Any

from jsonargparse import CLI

from glomers.core.config import NodeSettings
from glomers.core.node import NodeStateMachine
from glomers.core.runtime import run_node
from glomers.gossip.broadcast import BroadcastNode
from glomers.gossip.counter import CounterNode


@dataclass(slots=True)
class GlomersCLI:
    """Run a glomers node on stdin/stdout for a cluster harness.

    Unset options fall back to GLOMERS_* environment variables, then defaults.
    """

    tick_interval: float | None = None
    log_level: str | None = None

    def _settings(self, **overrides: Any) -> NodeSettings:
        overrides.update(tick_interval=self.tick_interval, log_level=self.log_level)
        return NodeSettings(
            **{key: value for key, value in overrides.items() if value is not None}
        )

    def _run(self, node_cls: type[NodeStateMachine], **overrides: Any) -> None:
        run_node(node_cls, self._settings(**overrides))

    def broadcast(
        self,
        redundancy_ratio: float | None = None,
        rng_seed: int | None = None,
    ) -> None:
        """Runs an anti-entropy broadcast node.

        Args:
            redundancy_ratio: Fraction of already-known values eligible for re-sending per tick.
            rng_seed: Seed for the redundant-sample random source.
        """
        self._run(
            BroadcastNode, redundancy_ratio=redundancy_ratio, rng_seed=rng_seed
        )

    def counter(self) -> None:
        """Runs a grow-only counter node."""
        self._run(CounterNode)


def main() -> None:
    CLI(GlomersCLI, as_dict=False)  # type: ignore[no-untyped-call]


def broadcast_main() -> None:
    """Single-purpose entry point for harnesses that take one binary path."""
    run_node(BroadcastNode)


def counter_main() -> None:
    run_node(CounterNode)


if __name__ == "__main__":
    main()
