"""Message envelope and the request -> reply derivation rule."""

from __future__ import annotations

from dataclasses import dataclass

from glomers.datastructures.type_aliases import MessageId, NodeId

from .payloads import Payload


@dataclass(slots=True)
class MessageIdCounter:
    """Node-private source of outbound message ids.

    Starts at 1 and post-increments by exactly one per drawn id; ids are never
    reused or reset for the lifetime of the node.
    """

    _next: MessageId = 1

    def next(self) -> MessageId:
        message_id = self._next
        self._next += 1
        return message_id

    def peek(self) -> MessageId:
        """Id the next call to ``next()`` will hand out."""
        return self._next


@dataclass(slots=True)
class Body:
    """Message body: correlation ids plus the ``type``-tagged payload."""

    payload: Payload
    id: MessageId | None = None
    in_reply_to: MessageId | None = None


@dataclass(slots=True)
class Message:
    """A single line on the wire; ``dst`` travels as ``dest``."""

    src: NodeId
    dst: NodeId
    body: Body

    @property
    def payload(self) -> Payload:
        return self.body.payload

    def into_reply(self, counter: MessageIdCounter | None = None) -> Message:
        """Derive a reply addressed back to the sender.

        The payload is copied from the request; callers overwrite it before
        sending. No payload validation happens here.
        """
        return Message(
            src=self.dst,
            dst=self.src,
            body=Body(
                payload=self.body.payload,
                id=counter.next() if counter is not None else None,
                in_reply_to=self.body.id,
            ),
        )

    def reply(self, counter: MessageIdCounter | None, payload: Payload) -> Message:
        """``into_reply`` with the reply payload filled in."""
        reply = self.into_reply(counter)
        reply.body.payload = payload
        return reply

    @classmethod
    def originate(
        cls,
        src: NodeId,
        dst: NodeId,
        payload: Payload,
        counter: MessageIdCounter | None = None,
    ) -> Message:
        """Build a node-initiated message (not a reply to anything)."""
        return cls(
            src=src,
            dst=dst,
            body=Body(
                payload=payload,
                id=counter.next() if counter is not None else None,
            ),
        )


def into_reply(request: Message, counter: MessageIdCounter | None = None) -> Message:
    """Module-level form of :meth:`Message.into_reply`."""
    return request.into_reply(counter)
