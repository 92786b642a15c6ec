"""
Control message codec.

Every control message travels as a compact UTF-8 JSON object with a
mandatory string ``type`` field:

    {"type": "REQUEST", "exp": 1700000000000}
    {"type": "ACCEPT"}
    {"type": "RESET"}
    {"type": "PING", "ts": 1700000000000}
    {"type": "PONG", "ts": 1700000000000}

Decoding never raises. Anything it cannot interpret becomes ``Unrecognized``.
"""
from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Union


# Wire tags
REQUEST = "REQUEST"
ACCEPT = "ACCEPT"
RESET = "RESET"
PING = "PING"
PONG = "PONG"

# Older peers wrote the tag under "t" and sometimes sent the bare token RESET.
_TAG_KEYS = ("type", "t")
_BARE_RESET = b"RESET"

# Largest representable instant (100 million days either side of the epoch)
MAX_EPOCH_MS = 8_640_000_000_000_000


@dataclass(frozen=True)
class ControlMessage:
    """Base class for all control messages."""
    pass


@dataclass(frozen=True)
class Request(ControlMessage):
    """Time-bounded commitment request. Expiry is the sender's local clock."""
    expires_at_ms: int


@dataclass(frozen=True)
class Accept(ControlMessage):
    """Unconditional commitment acknowledgment."""
    pass


@dataclass(frozen=True)
class Reset(ControlMessage):
    """Unconditional return-to-neutral notification."""
    pass


@dataclass(frozen=True)
class Ping(ControlMessage):
    """Liveness probe."""
    sent_at_ms: int


@dataclass(frozen=True)
class Pong(ControlMessage):
    """Liveness probe reply."""
    sent_at_ms: int


@dataclass(frozen=True)
class Unrecognized:
    """A payload that could not be decoded. Never acted upon."""
    raw: bytes
    reason: str


Decoded = Union[ControlMessage, Unrecognized]


def encode(message: ControlMessage) -> bytes:
    """Serialize a control message to its wire form."""
    match message:
        case Request(expires_at_ms):
            data: dict[str, Any] = {"type": REQUEST, "exp": int(expires_at_ms)}
        case Accept():
            data = {"type": ACCEPT}
        case Reset():
            data = {"type": RESET}
        case Ping(sent_at_ms):
            data = {"type": PING, "ts": int(sent_at_ms)}
        case Pong(sent_at_ms):
            data = {"type": PONG, "ts": int(sent_at_ms)}
        case _:
            raise TypeError(f"Cannot encode {type(message).__name__}")
    return json.dumps(data, separators=(",", ":")).encode("utf-8")


def decode(payload: bytes) -> Decoded:
    """Parse a wire payload. Returns ``Unrecognized`` instead of raising."""
    raw = bytes(payload)

    if raw == _BARE_RESET:
        return Reset()

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        return Unrecognized(raw, "not utf-8")

    try:
        data = json.loads(text)
    except (ValueError, RecursionError):
        # RecursionError: deeply nested arrays/objects
        return Unrecognized(raw, "not json")

    if not isinstance(data, dict):
        return Unrecognized(raw, "not an object")

    tag = _tag_of(data)
    if tag is None:
        return Unrecognized(raw, "missing type tag")

    if tag == ACCEPT:
        return Accept()
    if tag == RESET:
        return Reset()

    if tag == REQUEST:
        exp = _epoch_ms(data.get("exp"))
        if exp is None:
            return Unrecognized(raw, "REQUEST without integer exp")
        return Request(expires_at_ms=exp)

    if tag in (PING, PONG):
        ts = _epoch_ms(data.get("ts"))
        if ts is None:
            return Unrecognized(raw, f"{tag} without integer ts")
        return Ping(sent_at_ms=ts) if tag == PING else Pong(sent_at_ms=ts)

    return Unrecognized(raw, f"unknown type {tag!r}")


def _tag_of(data: dict[str, Any]) -> str | None:
    for key in _TAG_KEYS:
        tag = data.get(key)
        if isinstance(tag, str):
            return tag
    return None


def _epoch_ms(value: Any) -> int | None:
    # bool is an int subclass but never a timestamp
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        ms = value
    elif isinstance(value, float) and math.isfinite(value):
        ms = int(value)
    else:
        return None
    if not -MAX_EPOCH_MS <= ms <= MAX_EPOCH_MS:
        return None
    return ms
