"""
glomers - gossip nodes for a line-delimited JSON cluster harness

Each node is a separate process that reads one JSON message per line on stdin
and writes one per line on stdout. The harness supplies cluster membership in
an ``init`` handshake and, for broadcast, the gossip topology.

## Architecture

- **core**: envelope and codec, node runtime (event queue, tick task, single
  worker), state-machine base class, settings, logging
- **gossip**: anti-entropy broadcast node, grow-only counter node, in-process
  cluster for tests
- **datastructures**: type aliases and the grow-only counter CRDT

## Quick Start

```
maelstrom test -w broadcast --bin glomers-broadcast --node-count 5 --time-limit 20
```
"""

from .core import Message, NodeRuntime, NodeSettings, run_node
from .gossip import BroadcastNode, CounterNode, InProcessCluster

__version__ = "0.1.0"

__all__ = [
    "BroadcastNode",
    "CounterNode",
    "InProcessCluster",
    "Message",
    "NodeRuntime",
    "NodeSettings",
    "run_node",
]
