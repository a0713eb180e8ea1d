"""
Tests for the anti-entropy broadcast node state machine.

Events are fed straight into ``step`` so every transition can be checked
without a runtime or a harness.
"""

import random

import pytest

from glomers.core.config import NodeSettings
from glomers.core.envelope import Body, Message
from glomers.core.errors import ProtocolViolationError
from glomers.core.node import Tick
from glomers.core.payloads import Init
from glomers.gossip.broadcast import (
    Broadcast,
    BroadcastNode,
    BroadcastOk,
    Gossip,
    Read,
    ReadOk,
    Topology,
    TopologyOk,
)
from glomers.gossip.counter import Add


def client_message(payload, msg_id: int = 1, src: str = "c1", dst: str = "n1") -> Message:
    return Message(src=src, dst=dst, body=Body(payload=payload, id=msg_id))


def gossip_from(src: str, *values: int) -> Message:
    return Message(
        src=src, dst="n1", body=Body(payload=Gossip(messages=frozenset(values)))
    )


class TestBroadcastNodeConstruction:
    def test_from_init_uses_settings(self):
        init = Init(node_id="n2", node_ids=("n1", "n2", "n3"))
        settings = NodeSettings(redundancy_ratio=0.5, rng_seed=3)

        node = BroadcastNode.from_init(init, settings)

        assert node.id == "n2"
        assert node.redundancy_ratio == 0.5
        assert node.neighbors == ["n1", "n3"]
        assert node.known == {"n1": set(), "n3": set()}
        assert node.messages == set()


class TestBroadcastTransitions:
    def test_broadcast_stores_and_acknowledges(self, broadcast_node):
        replies = broadcast_node.step(client_message(Broadcast(message=5), msg_id=11))

        assert broadcast_node.messages == {5}
        assert len(replies) == 1
        reply = replies[0]
        assert reply.payload == BroadcastOk()
        assert reply.body.in_reply_to == 11
        assert (reply.src, reply.dst) == ("n1", "c1")

    def test_broadcast_is_idempotent(self, broadcast_node):
        for msg_id in range(1, 4):
            broadcast_node.step(client_message(Broadcast(message=8), msg_id=msg_id))

        (reply,) = broadcast_node.step(client_message(Read(), msg_id=4))
        assert broadcast_node.messages == {8}
        assert reply.payload == ReadOk(messages=frozenset({8}))

    def test_read_returns_snapshot(self, broadcast_node):
        broadcast_node.step(client_message(Broadcast(message=1), msg_id=1))
        (reply,) = broadcast_node.step(client_message(Read(), msg_id=2))
        broadcast_node.step(client_message(Broadcast(message=2), msg_id=3))

        assert reply.payload.messages == frozenset({1})
        assert broadcast_node.snapshot() == frozenset({1, 2})

    def test_reply_ids_increase_by_one(self, broadcast_node):
        replies = [
            broadcast_node.step(client_message(Broadcast(message=v), msg_id=100 + v))[0]
            for v in range(5)
        ]
        assert [reply.body.id for reply in replies] == [1, 2, 3, 4, 5]
        assert [reply.body.in_reply_to for reply in replies] == [100, 101, 102, 103, 104]

    def test_topology_replaces_neighbors(self, broadcast_node):
        topology = {"n1": ["n3"], "n2": ["n3"], "n3": ["n1", "n2"]}
        (reply,) = broadcast_node.step(client_message(Topology(topology=topology)))

        assert reply.payload == TopologyOk()
        assert broadcast_node.neighbors == ["n3"]

        broadcast_node.step(client_message(Topology(topology={"n1": ["n2"]}), msg_id=2))
        assert broadcast_node.neighbors == ["n2"]

    def test_topology_drops_self_and_adds_unknown_neighbors(self, broadcast_node):
        broadcast_node.step(client_message(Topology(topology={"n1": ["n1", "n9"]})))
        assert broadcast_node.neighbors == ["n9"]
        assert broadcast_node.known["n9"] == set()

    def test_topology_without_own_id_is_fatal(self, broadcast_node):
        with pytest.raises(ProtocolViolationError, match="n1"):
            broadcast_node.step(client_message(Topology(topology={"n2": ["n3"]})))

    def test_gossip_merges_into_messages_and_known(self, broadcast_node):
        assert broadcast_node.step(gossip_from("n2", 1, 2)) == []

        assert broadcast_node.messages == {1, 2}
        assert broadcast_node.known["n2"] == {1, 2}
        assert broadcast_node.known["n3"] == set()

    def test_gossip_from_unlisted_sender(self, broadcast_node):
        broadcast_node.step(gossip_from("n7", 4))
        assert broadcast_node.known["n7"] == {4}
        assert 4 in broadcast_node.messages

    @pytest.mark.parametrize(
        "payload",
        [BroadcastOk(), TopologyOk(), ReadOk(messages=frozenset({1}))],
    )
    def test_replies_are_ignored(self, broadcast_node, payload):
        assert broadcast_node.step(client_message(payload, src="n2")) == []
        assert broadcast_node.messages == set()

    def test_payload_outside_the_union_is_dropped(self, broadcast_node, log_records):
        assert broadcast_node.step(client_message(Add(delta=1))) == []

        (warning,) = [r for r in log_records if r["level"].name == "WARNING"]
        assert "unexpected add payload" in warning["message"]
        assert warning["extra"]["node_id"] == "n1"


class TestBroadcastTick:
    def test_tick_with_nothing_to_say_sends_nothing(self, broadcast_node):
        assert broadcast_node.step(Tick()) == []

    def test_tick_sends_delta_to_each_neighbor(self, broadcast_node):
        broadcast_node.step(client_message(Broadcast(message=5)))

        outbound = broadcast_node.step(Tick())

        assert [message.dst for message in outbound] == ["n2", "n3"]
        for message in outbound:
            assert message.src == "n1"
            assert message.payload == Gossip(messages=frozenset({5}))
            assert message.body.in_reply_to is None

    def test_tick_messages_draw_fresh_ids(self, broadcast_node):
        broadcast_node.step(client_message(Broadcast(message=5)))
        outbound = broadcast_node.step(Tick())
        assert [message.body.id for message in outbound] == [2, 3]

    def test_known_values_are_not_resent_without_new_ones(self, broadcast_node):
        broadcast_node.step(gossip_from("n2", 1, 2, 3))
        broadcast_node.step(gossip_from("n3", 1, 2, 3))

        assert broadcast_node.step(Tick()) == []

    def test_delta_only_contains_unknown_plus_bounded_sample(self):
        node = BroadcastNode(
            "n1", ("n1", "n2"), redundancy_ratio=1.0, rng=random.Random(0)
        )
        node.step(gossip_from("n2", *range(10)))
        node.step(client_message(Broadcast(message=100)))

        (message,) = node.step(Tick())
        values = message.payload.messages

        assert 100 in values
        # target is min(|unknown|, |overlap| * r) == 1
        assert len(values - {100}) <= 10
        assert values <= set(range(10)) | {100}

    def test_zero_ratio_sends_exact_delta(self):
        node = BroadcastNode("n1", ("n1", "n2"), redundancy_ratio=0.0)
        node.step(gossip_from("n2", 1, 2, 3))
        node.step(client_message(Broadcast(message=4)))

        (message,) = node.step(Tick())
        assert message.payload.messages == frozenset({4})

    def test_tick_follows_topology(self, broadcast_node):
        broadcast_node.step(client_message(Topology(topology={"n1": ["n3"]})))
        broadcast_node.step(client_message(Broadcast(message=1), msg_id=2))

        outbound = broadcast_node.step(Tick())
        assert [message.dst for message in outbound] == ["n3"]
