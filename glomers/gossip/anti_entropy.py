"""
Anti-entropy delta planning.

On every tick a node sends each neighbor the values it believes the neighbor
lacks (the delta), plus a small random sample of values the neighbor is
already believed to have. The belief (``known``) is only a lower bound built
from what the neighbor has gossiped to us, so it may be stale; re-sending a
bounded slice of the overlap lets a lost transfer heal without re-sending
everything on every tick.

Sample size target: ``min(|unknown|, floor(|overlap| * ratio))``, with each
overlap element included independently with probability
``target / |overlap|``.
"""

from __future__ import annotations

import math
import random
from collections.abc import Set
from dataclasses import dataclass

from glomers.datastructures.type_aliases import MessageValue, RedundancyRatio

DEFAULT_REDUNDANCY_RATIO: RedundancyRatio = 0.3236


@dataclass(frozen=True, slots=True)
class GossipDelta:
    """What one tick sends to one neighbor."""

    unknown: frozenset[MessageValue]
    redundant: frozenset[MessageValue]
    redundant_target: int

    @property
    def values(self) -> frozenset[MessageValue]:
        return self.unknown | self.redundant

    def is_empty(self) -> bool:
        return not self.unknown and not self.redundant


def redundant_target(
    unknown_count: int, overlap_count: int, ratio: RedundancyRatio
) -> int:
    """Expected number of already-known values to re-send."""
    return min(unknown_count, math.floor(overlap_count * ratio))


def plan_gossip(
    messages: Set[MessageValue],
    known: Set[MessageValue],
    ratio: RedundancyRatio = DEFAULT_REDUNDANCY_RATIO,
    rng: random.Random | None = None,
) -> GossipDelta:
    """Split local ``messages`` against a neighbor's ``known`` set.

    Returns the delta plus the random redundant sample drawn from the overlap.
    Neither input is mutated.
    """
    if not 0.0 <= ratio <= 1.0:
        raise ValueError(f"Redundancy ratio must be within [0, 1], got {ratio}")
    rng = rng if rng is not None else random.Random()

    unknown = frozenset(messages - known)
    overlap = messages & known
    target = redundant_target(len(unknown), len(overlap), ratio)

    if target == 0:
        redundant: frozenset[MessageValue] = frozenset()
    else:
        probability = target / len(overlap)
        # sorted so a seeded rng draws the same sample on every run
        redundant = frozenset(
            value for value in sorted(overlap) if rng.random() < probability
        )

    return GossipDelta(unknown=unknown, redundant=redundant, redundant_target=target)
