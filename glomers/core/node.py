"""Base class for node state machines driven by the runtime."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Self

from loguru import logger
from pydantic import TypeAdapter

from glomers.datastructures.type_aliases import NodeId, Timestamp

from .config import NodeSettings
from .envelope import Message, MessageIdCounter
from .payloads import Init, Payload, is_reply_payload


@dataclass(frozen=True, slots=True)
class Tick:
    """Internally synthesized periodic event; never seen on the wire."""

    issued_at: Timestamp = field(default_factory=time.monotonic)


type Event = Message | Tick


class NodeStateMachine(ABC):
    """A single-threaded state machine consuming one event per ``step``.

    Subclasses declare the closed payload union they accept through
    ``payload_adapter`` and implement ``handle`` and ``on_tick``. Only the
    runtime's worker calls ``step``, so node fields need no locking.
    """

    payload_adapter: ClassVar[TypeAdapter[Any]]

    def __init__(self, node_id: NodeId, node_ids: tuple[NodeId, ...]) -> None:
        self.id = node_id
        self.node_ids = node_ids
        self.msg_ids = MessageIdCounter()

    @classmethod
    @abstractmethod
    def from_init(cls, init: Init, settings: NodeSettings) -> Self:
        """Construct the node from the handshake body."""

    @property
    def peers(self) -> list[NodeId]:
        """Every other cluster member, in handshake order."""
        return [node_id for node_id in self.node_ids if node_id != self.id]

    def step(self, event: Event) -> list[Message]:
        """Consume one event and return the messages to write, in order.

        Records logged while the event is handled carry this node's id.
        """
        with logger.contextualize(node_id=self.id):
            if isinstance(event, Tick):
                return self.on_tick()

            if is_reply_payload(event.payload):
                # nothing here waits on replies
                logger.debug("ignoring {} from {}", event.payload.type, event.src)
                return []

            return self.handle(event)

    @abstractmethod
    def handle(self, message: Message) -> list[Message]:
        """React to one inbound (non-reply) message."""

    @abstractmethod
    def on_tick(self) -> list[Message]:
        """React to one periodic tick."""

    def reply(self, request: Message, payload: Payload) -> Message:
        return request.reply(self.msg_ids, payload)

    def send(self, dst: NodeId, payload: Payload) -> Message:
        return Message.originate(self.id, dst, payload, self.msg_ids)
