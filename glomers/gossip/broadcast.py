"""
Broadcast node: replicate every broadcast value to the whole cluster.

Values arrive from clients via ``broadcast`` and spread node to node through
``gossip`` payloads emitted on each tick (see ``anti_entropy``). Gossip is
fire-and-forget; convergence comes from repeating the delta every tick until
the neighbor is seen to hold it.
"""

from __future__ import annotations

import random
from typing import Annotated, Literal, Self

from loguru import logger
from pydantic import Field, TypeAdapter, field_serializer

from glomers.core.config import NodeSettings
from glomers.core.envelope import Message
from glomers.core.errors import ProtocolViolationError
from glomers.core.node import NodeStateMachine
from glomers.core.payloads import Init, Payload
from glomers.datastructures.type_aliases import (
    ClusterTopology,
    MessageValue,
    NodeId,
    RedundancyRatio,
)

from .anti_entropy import DEFAULT_REDUNDANCY_RATIO, plan_gossip


class Broadcast(Payload):
    type: Literal["broadcast"] = "broadcast"
    message: MessageValue


class BroadcastOk(Payload):
    type: Literal["broadcast_ok"] = "broadcast_ok"


class Read(Payload):
    type: Literal["read"] = "read"


class ReadOk(Payload):
    type: Literal["read_ok"] = "read_ok"
    messages: frozenset[MessageValue]

    @field_serializer("messages")
    def _sorted_messages(self, messages: frozenset[MessageValue]) -> list[MessageValue]:
        return sorted(messages)


class Topology(Payload):
    type: Literal["topology"] = "topology"
    topology: ClusterTopology


class TopologyOk(Payload):
    type: Literal["topology_ok"] = "topology_ok"


class Gossip(Payload):
    """Node-to-node value transfer; the harness never sends this."""

    type: Literal["gossip"] = "gossip"
    messages: frozenset[MessageValue]

    @field_serializer("messages")
    def _sorted_messages(self, messages: frozenset[MessageValue]) -> list[MessageValue]:
        return sorted(messages)


BroadcastPayload = Annotated[
    Broadcast | BroadcastOk | Read | ReadOk | Topology | TopologyOk | Gossip,
    Field(discriminator="type"),
]


class BroadcastNode(NodeStateMachine):
    """Anti-entropy broadcast replica."""

    payload_adapter = TypeAdapter(BroadcastPayload)

    def __init__(
        self,
        node_id: NodeId,
        node_ids: tuple[NodeId, ...],
        *,
        redundancy_ratio: RedundancyRatio = DEFAULT_REDUNDANCY_RATIO,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(node_id, node_ids)
        self.redundancy_ratio = redundancy_ratio
        self.rng = rng if rng is not None else random.Random()

        self.messages: set[MessageValue] = set()
        # until a topology arrives, gossip with every other member
        self.neighbors: list[NodeId] = self.peers
        self.known: dict[NodeId, set[MessageValue]] = {
            node_id: set() for node_id in self.peers
        }

    @classmethod
    def from_init(cls, init: Init, settings: NodeSettings) -> Self:
        return cls(
            init.node_id,
            init.node_ids,
            redundancy_ratio=settings.redundancy_ratio,
            rng=random.Random(settings.rng_seed),
        )

    def handle(self, message: Message) -> list[Message]:
        payload = message.payload
        if isinstance(payload, Broadcast):
            self.messages.add(payload.message)
            return [self.reply(message, BroadcastOk())]

        if isinstance(payload, Read):
            return [self.reply(message, ReadOk(messages=frozenset(self.messages)))]

        if isinstance(payload, Topology):
            self.apply_topology(payload.topology)
            return [self.reply(message, TopologyOk())]

        if isinstance(payload, Gossip):
            self.merge_gossip(message.src, payload.messages)
            return []

        logger.warning(
            "dropping unexpected {} payload from {}", payload.type, message.src
        )
        return []

    def apply_topology(self, topology: ClusterTopology) -> None:
        """Replace the neighbor list with this node's entry in ``topology``."""
        if self.id not in topology:
            raise ProtocolViolationError("topology has no entry for this node", self.id)

        self.neighbors = [
            neighbor for neighbor in topology[self.id] if neighbor != self.id
        ]
        for neighbor in self.neighbors:
            self.known.setdefault(neighbor, set())
        logger.info("gossiping with {}", self.neighbors)

    def merge_gossip(self, src: NodeId, values: frozenset[MessageValue]) -> None:
        """The sender holds ``values``: take them and stop sending them back."""
        self.messages |= values
        self.known.setdefault(src, set()).update(values)

    def on_tick(self) -> list[Message]:
        outbound: list[Message] = []
        for neighbor in self.neighbors:
            delta = plan_gossip(
                self.messages,
                self.known.setdefault(neighbor, set()),
                self.redundancy_ratio,
                self.rng,
            )
            if delta.is_empty():
                continue
            outbound.append(self.send(neighbor, Gossip(messages=delta.values)))
            logger.debug(
                "-> {}: {} new, {} redundant",
                neighbor,
                len(delta.unknown),
                len(delta.redundant),
            )
        return outbound

    def snapshot(self) -> frozenset[MessageValue]:
        """Copy of the values this node currently holds."""
        return frozenset(self.messages)
