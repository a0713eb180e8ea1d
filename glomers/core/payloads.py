"""
Message payload models.

A payload is the ``type``-tagged part of a message body. Each node variant
declares a closed union of payload models discriminated on ``type``, so
decoding reads the tag first and only then validates the matching shape.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from glomers.datastructures.type_aliases import NodeId


class Payload(BaseModel):
    """Base for every body payload; ``type`` is narrowed to a Literal by subclasses."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str


class Init(Payload):
    """Handshake request; always the first line the harness sends."""

    type: Literal["init"] = "init"
    node_id: NodeId = Field(description="Identifier assigned to this node.")
    node_ids: tuple[NodeId, ...] = Field(
        description="Every node in the cluster, including this one."
    )


class InitOk(Payload):
    type: Literal["init_ok"] = "init_ok"


HandshakePayload = Annotated[Init | InitOk, Field(discriminator="type")]

HANDSHAKE_ADAPTER: TypeAdapter[Init | InitOk] = TypeAdapter(HandshakePayload)


def is_reply_payload(payload: Payload) -> bool:
    """Replies are tagged ``<request>_ok``."""
    return payload.type.endswith("_ok")
