"""In-process cluster of node state machines (test/local use).

Messages travel through the real line codec, so everything a node emits is
encoded and decoded exactly as it would be on stdout/stdin. Ticks are driven
explicitly in rounds instead of by a timer.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from loguru import logger

from glomers.core.codec import decode_message, encode_message
from glomers.core.config import NodeSettings
from glomers.core.envelope import Message, MessageIdCounter
from glomers.core.node import NodeStateMachine, Tick
from glomers.core.payloads import Init, Payload
from glomers.datastructures.type_aliases import NodeId


@dataclass(slots=True)
class InProcessCluster:
    """A set of nodes wired together without processes or a harness."""

    node_cls: type[NodeStateMachine]
    node_ids: Sequence[NodeId]
    settings: NodeSettings = field(default_factory=NodeSettings)
    drop_probability: float = 0.0
    rng: random.Random = field(default_factory=random.Random)
    client_id: NodeId = "c1"

    nodes: dict[NodeId, NodeStateMachine] = field(init=False, default_factory=dict)
    client_inbox: list[Message] = field(init=False, default_factory=list)
    delivered: int = field(init=False, default=0)
    dropped: int = field(init=False, default=0)
    rounds: int = field(init=False, default=0)
    _client_msg_ids: MessageIdCounter = field(
        init=False, default_factory=MessageIdCounter
    )

    def __post_init__(self) -> None:
        if not 0.0 <= self.drop_probability < 1.0:
            raise ValueError(
                f"drop_probability must be within [0, 1), got {self.drop_probability}"
            )
        members = tuple(self.node_ids)
        for node_id in members:
            init = Init(node_id=node_id, node_ids=members)
            self.nodes[node_id] = self.node_cls.from_init(init, self.settings)

    def __getitem__(self, node_id: NodeId) -> NodeStateMachine:
        return self.nodes[node_id]

    def request(self, dst: NodeId, payload: Payload) -> Message | None:
        """Send a client request to ``dst`` and return the node's reply, if any."""
        request = Message.originate(self.client_id, dst, payload, self._client_msg_ids)
        before = len(self.client_inbox)
        self._deliver(request)
        for reply in self.client_inbox[before:]:
            if reply.body.in_reply_to == request.body.id:
                return reply
        return None

    def tick(self) -> int:
        """Run one round: every node ticks, then the round's output is delivered.

        Returns the number of node-to-node messages delivered this round.
        """
        outbound = [
            message for node in self.nodes.values() for message in node.step(Tick())
        ]
        delivered_before = self.delivered
        for message in outbound:
            if self.drop_probability and self.rng.random() < self.drop_probability:
                self.dropped += 1
                continue
            self._deliver(message)
        self.rounds += 1
        return self.delivered - delivered_before

    def tick_until(
        self, predicate: Callable[[InProcessCluster], bool], max_rounds: int = 100
    ) -> int | None:
        """Tick until ``predicate`` holds; returns rounds used or None on timeout."""
        for used in range(max_rounds + 1):
            if predicate(self):
                return used
            if used < max_rounds:
                self.tick()
        logger.debug("cluster did not settle within {} round(s)", max_rounds)
        return None

    def _deliver(self, message: Message) -> None:
        node = self.nodes.get(message.dst)
        if node is None:
            self.client_inbox.append(message)
            return

        wire_message = decode_message(
            encode_message(message), self.node_cls.payload_adapter
        )
        if message.src in self.nodes:
            self.delivered += 1
        for outbound in node.step(wire_message):
            self._deliver(outbound)
