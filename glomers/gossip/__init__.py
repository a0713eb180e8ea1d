"""
Gossip node variants.

- ``broadcast``: anti-entropy replication of a grow-only value set
- ``counter``: grow-only counter CRDT gossiped in full each tick
- ``cluster``: in-process wiring of nodes for tests and local experiments
"""

from .anti_entropy import DEFAULT_REDUNDANCY_RATIO, GossipDelta, plan_gossip
from .broadcast import BroadcastNode
from .cluster import InProcessCluster
from .counter import CounterNode

__all__ = [
    "DEFAULT_REDUNDANCY_RATIO",
    "BroadcastNode",
    "CounterNode",
    "GossipDelta",
    "InProcessCluster",
    "plan_gossip",
]
