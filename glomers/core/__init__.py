"""
glomers core

Envelope, codec, payload base types, node state-machine base, runtime,
configuration, logging and errors.
"""

from .codec import decode_message, encode_message
from .config import NodeSettings
from .envelope import Body, Message, MessageIdCounter, into_reply
from .errors import GlomersError, MalformedMessageError, ProtocolViolationError
from .node import Event, NodeStateMachine, Tick
from .payloads import Init, InitOk, Payload
from .runtime import NodeRuntime, run_node

__all__ = [
    "Body",
    "Event",
    "GlomersError",
    "Init",
    "InitOk",
    "MalformedMessageError",
    "Message",
    "MessageIdCounter",
    "NodeRuntime",
    "NodeSettings",
    "NodeStateMachine",
    "Payload",
    "ProtocolViolationError",
    "Tick",
    "decode_message",
    "encode_message",
    "into_reply",
    "run_node",
]
