"""Line codec for envelope messages.

One JSON object per line:
``{"src": ..., "dest": ..., "body": {"type": ..., "msg_id"?: ..., "in_reply_to"?: ..., ...}}``
"""

from __future__ import annotations

from typing import Any

import orjson
from pydantic import TypeAdapter, ValidationError

from glomers.datastructures.type_aliases import JsonDict, MessageId

from .envelope import Body, Message
from .errors import MalformedMessageError
from .payloads import Payload

_ID_FIELDS = ("msg_id", "in_reply_to")


def message_to_dict(message: Message) -> JsonDict:
    body: JsonDict = message.body.payload.model_dump(mode="json")
    if message.body.id is not None:
        body["msg_id"] = message.body.id
    if message.body.in_reply_to is not None:
        body["in_reply_to"] = message.body.in_reply_to
    return {"src": message.src, "dest": message.dst, "body": body}


def _message_id(body: JsonDict, key: str) -> MessageId | None:
    raw = body.get(key)
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
        raise MalformedMessageError(f"{key} must be a non-negative integer")
    return raw


def message_from_dict(data: Any, adapter: TypeAdapter[Any]) -> Message:
    """Build a message, validating the payload through a discriminated-union adapter."""
    if not isinstance(data, dict):
        raise MalformedMessageError("message is not a JSON object")
    src = data.get("src")
    dst = data.get("dest")
    body = data.get("body")
    if not isinstance(src, str) or not isinstance(dst, str):
        raise MalformedMessageError("src and dest must be strings")
    if not isinstance(body, dict):
        raise MalformedMessageError("body must be a JSON object")
    if not isinstance(body.get("type"), str):
        raise MalformedMessageError("body.type must be a string")

    fields = {key: value for key, value in body.items() if key not in _ID_FIELDS}
    try:
        payload: Payload = adapter.validate_python(fields)
    except ValidationError as e:
        raise MalformedMessageError(
            f"invalid {body['type']!r} payload: {e.error_count()} error(s)"
        ) from e

    return Message(
        src=src,
        dst=dst,
        body=Body(
            payload=payload,
            id=_message_id(body, "msg_id"),
            in_reply_to=_message_id(body, "in_reply_to"),
        ),
    )


def encode_message(message: Message) -> bytes:
    """Serialize a message as one newline-terminated JSON line."""
    return orjson.dumps(message_to_dict(message)) + b"\n"


def decode_message(line: bytes | str, adapter: TypeAdapter[Any]) -> Message:
    """Parse one input line; any failure raises ``MalformedMessageError``."""
    raw = line.encode() if isinstance(line, str) else line
    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise MalformedMessageError(str(e), raw) from e

    try:
        return message_from_dict(data, adapter)
    except MalformedMessageError as e:
        e.line = raw
        raise
