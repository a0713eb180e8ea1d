"""
Semantic type aliases for glomers datastructures.

Wire-level identifiers are plain strings and integers; these aliases keep the
signatures of the envelope, runtime and gossip layers self-documenting.
"""

from typing import Any

# Time types
type Timestamp = float
type DurationSeconds = float

# Cluster identity
type NodeId = str
type ClusterTopology = dict[NodeId, list[NodeId]]

# Envelope types
type MessageId = int
type JsonDict = dict[str, Any]

# Application values
type MessageValue = int
type CounterValue = int
type RedundancyRatio = float
