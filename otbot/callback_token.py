from __future__ import annotations

import re
from dataclasses import dataclass


TOKEN_VERSION = "1"
FLAG_OFFTOPIC = "ot"
KNOWN_KINDS = frozenset({FLAG_OFFTOPIC})

# Bot API limit for callback_data, in bytes.
DEFAULT_MAX_BYTES = 64

# canonical integers only, so decoding then encoding gives the same string
_MESSAGE_ID = re.compile(r"-?[1-9][0-9]*|0")


class DecodeError(ValueError):
    """Raised for callback data that was not produced by :func:`encode`."""


class TokenTooLongError(ValueError):
    """Raised when an encoded token does not fit into callback_data."""


@dataclass(frozen=True)
class CallbackToken:
    """Payload of an inline button.

    Travels as ``"<version>:<kind>:<message_id>"``, e.g. ``"1:ot:4242"``. New
    kinds get a new tag; a new layout gets a new version and older versions
    keep decoding.
    """

    kind: str
    message_id: int


def flag_offtopic(message_id: int) -> CallbackToken:
    return CallbackToken(FLAG_OFFTOPIC, message_id)


def encode(token: CallbackToken, max_bytes: int = DEFAULT_MAX_BYTES) -> str:
    if token.kind not in KNOWN_KINDS:
        raise ValueError(f"unknown token kind {token.kind!r}")
    data = f"{TOKEN_VERSION}:{token.kind}:{int(token.message_id)}"
    if len(data.encode("utf-8")) > max_bytes:
        raise TokenTooLongError(f"callback data {data!r} exceeds {max_bytes} bytes")
    return data


def decode(data: str) -> CallbackToken:
    if not data:
        raise DecodeError("empty callback data")
    parts = data.split(":")
    if len(parts) != 3:
        raise DecodeError(f"malformed callback data {data!r}")
    version, kind, raw_id = parts
    if version != TOKEN_VERSION:
        raise DecodeError(f"unsupported callback data version {version!r}")
    if kind not in KNOWN_KINDS:
        raise DecodeError(f"unknown callback kind {kind!r}")
    if not _MESSAGE_ID.fullmatch(raw_id):
        raise DecodeError(f"invalid message id {raw_id!r}")
    return CallbackToken(kind, int(raw_id))


__all__ = [
    "CallbackToken",
    "DecodeError",
    "TokenTooLongError",
    "FLAG_OFFTOPIC",
    "decode",
    "encode",
    "flag_offtopic",
]
