"""
Grow-only counter (G-counter) CRDT.

Each replica owns exactly one slot and only ever increases it. The externally
visible value is the sum over all slots; merging two replicas keeps the
per-slot maximum, which makes merge commutative, associative and idempotent.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field

from hypothesis import strategies as st

from .type_aliases import CounterValue, JsonDict, NodeId


@dataclass(frozen=True, slots=True)
class CounterSlot:
    """Single replica-owned slot in a grow-only counter."""

    node_id: NodeId
    count: CounterValue

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError(f"Counter slot must be non-negative, got {self.count}")
        if not self.node_id:
            raise ValueError("Node ID cannot be empty")


@dataclass(frozen=True, slots=True)
class GCounter:
    """
    Immutable grow-only counter.

    Every operation returns a new counter, so a snapshot handed to an outbound
    gossip message can never observe later local increments.
    """

    _slots: frozenset[CounterSlot] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        node_ids = [slot.node_id for slot in self._slots]
        if len(node_ids) != len(set(node_ids)):
            raise ValueError("Duplicate node IDs in counter")

    @classmethod
    def empty(cls) -> GCounter:
        """Create an empty counter."""
        return cls()

    @classmethod
    def from_dict(cls, counts: Mapping[NodeId, CounterValue]) -> GCounter:
        """Create a counter from a ``{node_id: count}`` mapping."""
        return cls(
            _slots=frozenset(
                CounterSlot(node_id=node_id, count=count)
                for node_id, count in counts.items()
            )
        )

    @classmethod
    def zeroed(cls, node_ids: Iterable[NodeId]) -> GCounter:
        """Create a counter with a zero slot for each given node."""
        return cls.from_dict({node_id: 0 for node_id in node_ids})

    def to_dict(self) -> JsonDict:
        return {slot.node_id: slot.count for slot in self._slots}

    def get(self, node_id: NodeId) -> CounterValue:
        """Count held in a node's slot, 0 if the slot is absent."""
        for slot in self._slots:
            if slot.node_id == node_id:
                return slot.count
        return 0

    def increment(self, node_id: NodeId, delta: CounterValue = 1) -> GCounter:
        """Add ``delta`` to a node's own slot, returning a new counter."""
        if delta < 0:
            raise ValueError(f"G-counter cannot decrease, got delta {delta}")

        counts = self.to_dict()
        counts[node_id] = counts.get(node_id, 0) + delta
        return GCounter.from_dict(counts)

    def merge(self, other: GCounter) -> GCounter:
        """Merge with another counter, keeping the maximum of every slot."""
        if not isinstance(other, GCounter):
            raise TypeError(f"Can only merge with GCounter, got {type(other)}")

        all_node_ids = self.node_ids() | other.node_ids()
        return GCounter.from_dict(
            {
                node_id: max(self.get(node_id), other.get(node_id))
                for node_id in all_node_ids
            }
        )

    def value(self) -> CounterValue:
        """Externally visible total."""
        return sum(slot.count for slot in self._slots)

    def node_ids(self) -> frozenset[NodeId]:
        return frozenset(slot.node_id for slot in self._slots)

    def dominates(self, other: GCounter) -> bool:
        """True when every slot of ``other`` is <= the matching slot here."""
        return all(self.get(slot.node_id) >= slot.count for slot in other._slots)

    def __iter__(self) -> Iterator[CounterSlot]:
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, node_id: NodeId) -> bool:
        return any(slot.node_id == node_id for slot in self._slots)

    def __repr__(self) -> str:
        if not self._slots:
            return "GCounter()"

        slots_str = ", ".join(
            f"{slot.node_id}:{slot.count}"
            for slot in sorted(self._slots, key=lambda s: s.node_id)
        )
        return f"GCounter({{{slots_str}}})"


# Hypothesis strategies for property-based testing
def g_counter_strategy(
    max_slots: int = 8, node_ids: list[NodeId] | None = None
) -> st.SearchStrategy[GCounter]:
    """Generate valid GCounter instances for testing."""
    if node_ids is None:
        node_ids = [f"n{index}" for index in range(max_slots)]

    return st.dictionaries(
        st.sampled_from(node_ids),
        st.integers(min_value=0, max_value=10_000),
        max_size=min(len(node_ids), max_slots),
    ).map(GCounter.from_dict)
