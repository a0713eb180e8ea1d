"""Tests for the grow-only counter and the counter node."""

import pytest
from pydantic import ValidationError

from glomers.core.config import NodeSettings
from glomers.core.envelope import Body, Message
from glomers.core.node import Tick
from glomers.core.payloads import Init
from glomers.datastructures.gcounter import CounterSlot, GCounter
from glomers.gossip.broadcast import Topology
from glomers.gossip.counter import (
    Add,
    AddOk,
    CounterGossip,
    CounterNode,
    Read,
    ReadOk,
)


class TestCounterSlot:
    def test_validation(self):
        with pytest.raises(ValueError, match="non-negative"):
            CounterSlot(node_id="n1", count=-1)
        with pytest.raises(ValueError, match="Node ID cannot be empty"):
            CounterSlot(node_id="", count=1)


class TestGCounter:
    def test_empty(self):
        counter = GCounter.empty()
        assert counter.value() == 0
        assert len(counter) == 0
        assert repr(counter) == "GCounter()"

    def test_zeroed(self):
        counter = GCounter.zeroed(["n1", "n2"])
        assert counter.to_dict() == {"n1": 0, "n2": 0}
        assert "n2" in counter

    def test_increment_returns_new_counter(self):
        counter = GCounter.zeroed(["n1"])
        bumped = counter.increment("n1", 5).increment("n1", 2)

        assert counter.get("n1") == 0
        assert bumped.get("n1") == 7
        assert bumped.value() == 7

    def test_increment_rejects_negative(self):
        with pytest.raises(ValueError, match="cannot decrease"):
            GCounter.empty().increment("n1", -1)

    def test_merge_keeps_max_per_slot(self):
        left = GCounter.from_dict({"n1": 5, "n2": 1})
        right = GCounter.from_dict({"n2": 4, "n3": 2})

        merged = left.merge(right)

        assert merged.to_dict() == {"n1": 5, "n2": 4, "n3": 2}
        assert merged.value() == 11
        assert merged.dominates(left)
        assert merged.dominates(right)
        assert not left.dominates(right)

    def test_merge_type_check(self):
        with pytest.raises(TypeError):
            GCounter.empty().merge({"n1": 1})  # type: ignore[arg-type]

    def test_duplicate_slots_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            GCounter(
                _slots=frozenset(
                    {CounterSlot(node_id="n1", count=1), CounterSlot(node_id="n1", count=2)}
                )
            )

    def test_repr_is_sorted(self):
        assert repr(GCounter.from_dict({"n2": 1, "n1": 3})) == "GCounter({n1:3, n2:1})"


def _client(payload, msg_id: int = 1) -> Message:
    return Message(src="c1", dst="n1", body=Body(payload=payload, id=msg_id))


@pytest.fixture
def counter_node() -> CounterNode:
    init = Init(node_id="n1", node_ids=("n1", "n2", "n3"))
    return CounterNode.from_init(init, NodeSettings())


class TestCounterNode:
    def test_add_increments_own_slot(self, counter_node):
        (reply,) = counter_node.step(_client(Add(delta=3), msg_id=4))

        assert reply.payload == AddOk()
        assert reply.body.in_reply_to == 4
        assert counter_node.counter.to_dict() == {"n1": 3, "n2": 0, "n3": 0}

    def test_read_returns_sum(self, counter_node):
        counter_node.step(_client(Add(delta=3)))
        counter_node.step(_client(Add(delta=4), msg_id=2))

        (reply,) = counter_node.step(_client(Read(), msg_id=3))
        assert reply.payload == ReadOk(value=7)

    def test_negative_delta_is_invalid(self):
        with pytest.raises(ValidationError):
            Add(delta=-1)

    def test_tick_gossips_full_state_to_every_peer(self, counter_node):
        counter_node.step(_client(Add(delta=2)))
        outbound = counter_node.step(Tick())

        assert [message.dst for message in outbound] == ["n2", "n3"]
        for message in outbound:
            assert message.payload == CounterGossip(counter={"n1": 2, "n2": 0, "n3": 0})

    def test_gossip_merges(self, counter_node):
        counter_node.step(_client(Add(delta=2)))
        gossip = Message(
            src="n2",
            dst="n1",
            body=Body(payload=CounterGossip(counter={"n1": 1, "n2": 6})),
        )

        assert counter_node.step(gossip) == []
        assert counter_node.counter.to_dict() == {"n1": 2, "n2": 6, "n3": 0}

    def test_replies_are_ignored(self, counter_node):
        assert counter_node.step(_client(AddOk())) == []
        assert counter_node.step(_client(ReadOk(value=3))) == []

    def test_payload_outside_the_union_is_dropped(self, counter_node, log_records):
        assert counter_node.step(_client(Topology(topology={"n1": []}))) == []

        (warning,) = [r for r in log_records if r["level"].name == "WARNING"]
        assert "unexpected topology payload" in warning["message"]
        assert warning["extra"]["node_id"] == "n1"
        assert counter_node.counter.value() == 0
