"""Grow-only counter node, gossiped on the same tick as the broadcast node."""

from __future__ import annotations

from typing import Annotated, Literal, Self

from loguru import logger
from pydantic import Field, TypeAdapter

from glomers.core.config import NodeSettings
from glomers.core.envelope import Message
from glomers.core.node import NodeStateMachine
from glomers.core.payloads import Init, Payload
from glomers.datastructures.gcounter import GCounter
from glomers.datastructures.type_aliases import CounterValue, NodeId


class Add(Payload):
    type: Literal["add"] = "add"
    delta: CounterValue = Field(ge=0)


class AddOk(Payload):
    type: Literal["add_ok"] = "add_ok"


class Read(Payload):
    type: Literal["read"] = "read"


class ReadOk(Payload):
    type: Literal["read_ok"] = "read_ok"
    value: CounterValue


class CounterGossip(Payload):
    """Full counter state sent to a peer; the harness never sends this."""

    type: Literal["gossip"] = "gossip"
    counter: dict[NodeId, Annotated[CounterValue, Field(ge=0)]]


CounterPayload = Annotated[
    Add | AddOk | Read | ReadOk | CounterGossip,
    Field(discriminator="type"),
]


class CounterNode(NodeStateMachine):
    payload_adapter = TypeAdapter(CounterPayload)

    def __init__(self, node_id: NodeId, node_ids: tuple[NodeId, ...]) -> None:
        super().__init__(node_id, node_ids)
        self.counter = GCounter.zeroed(node_ids)

    @classmethod
    def from_init(cls, init: Init, settings: NodeSettings) -> Self:
        return cls(init.node_id, init.node_ids)

    def handle(self, message: Message) -> list[Message]:
        payload = message.payload
        if isinstance(payload, Add):
            self.counter = self.counter.increment(self.id, payload.delta)
            return [self.reply(message, AddOk())]

        if isinstance(payload, Read):
            return [self.reply(message, ReadOk(value=self.counter.value()))]

        if isinstance(payload, CounterGossip):
            self.counter = self.counter.merge(GCounter.from_dict(payload.counter))
            return []

        logger.warning(
            "dropping unexpected {} payload from {}", payload.type, message.src
        )
        return []

    def on_tick(self) -> list[Message]:
        state = self.counter.to_dict()
        return [self.send(peer, CounterGossip(counter=state)) for peer in self.peers]
