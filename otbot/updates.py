from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class ForwardOrigin:
    # None for hidden users, channels and anonymous admins
    sender_id: Optional[int]
    timestamp: int


@dataclass(frozen=True)
class MessageRef:
    chat_id: int
    chat_type: str
    sender_id: Optional[int]
    message_id: int
    timestamp: int
    text: str = ""
    sender_name: str = ""
    forward_origin: Optional[ForwardOrigin] = None
    reply_to: Optional["MessageRef"] = None

    @property
    def is_private(self) -> bool:
        return self.chat_type == "private"


@dataclass(frozen=True)
class CallbackActivation:
    activation_id: str
    sender_id: Optional[int]
    data: Optional[str]
    # chat and id of the message carrying the button
    chat_id: Optional[int] = None
    message_id: Optional[int] = None


Event = Union[MessageRef, CallbackActivation]


def _parse_forward_origin(message: Dict[str, Any]) -> Optional[ForwardOrigin]:
    origin = message.get("forward_origin")
    if origin:
        sender = origin.get("sender_user") if origin.get("type") == "user" else None
        sender_id = sender.get("id") if sender else None
        return ForwardOrigin(sender_id, int(origin.get("date", 0)))
    # pre 7.0 Bot API fields
    if "forward_date" in message:
        sender = message.get("forward_from") or {}
        return ForwardOrigin(sender.get("id"), int(message["forward_date"]))
    return None


def _display_name(user: Dict[str, Any]) -> str:
    first_name = user.get("first_name") or ""
    last_name = user.get("last_name") or ""
    name = f"{first_name} {last_name}".strip()
    return name or user.get("username") or str(user.get("id", ""))


def parse_message(message: Dict[str, Any]) -> Optional[MessageRef]:
    chat = message.get("chat") or {}
    chat_id = chat.get("id")
    message_id = message.get("message_id")
    if chat_id is None or message_id is None:
        return None
    user = message.get("from") or {}
    reply = message.get("reply_to_message")
    return MessageRef(
        chat_id=int(chat_id),
        chat_type=chat.get("type", ""),
        sender_id=user.get("id"),
        message_id=int(message_id),
        timestamp=int(message.get("date", 0)),
        text=message.get("text") or message.get("caption") or "",
        sender_name=_display_name(user) if user else "",
        forward_origin=_parse_forward_origin(message),
        reply_to=parse_message(reply) if reply else None,
    )


def parse_callback(callback: Dict[str, Any]) -> CallbackActivation:
    message = callback.get("message") or {}
    chat = message.get("chat") or {}
    user = callback.get("from") or {}
    return CallbackActivation(
        activation_id=str(callback.get("id", "")),
        sender_id=user.get("id"),
        data=callback.get("data"),
        chat_id=chat.get("id"),
        message_id=message.get("message_id"),
    )


def parse_update(update: Dict[str, Any]) -> Optional[Event]:
    """Turn a raw Bot API update into an event, or None for kinds we skip.

    Edited messages are skipped: they keep their original date, so caching
    them again would only rewrite the same entry.
    """
    callback = update.get("callback_query")
    if callback:
        return parse_callback(callback)
    message = update.get("message")
    if message:
        return parse_message(message)
    return None


def link_button(label: str, url: str) -> Dict[str, str]:
    return {"text": label, "url": url}


def action_button(label: str, payload: str) -> Dict[str, str]:
    return {"text": label, "callback_data": payload}


def inline_keyboard(*rows: List[Dict[str, str]]) -> Dict[str, Any]:
    return {"inline_keyboard": [list(row) for row in rows]}


__all__ = [
    "CallbackActivation",
    "Event",
    "ForwardOrigin",
    "MessageRef",
    "action_button",
    "inline_keyboard",
    "link_button",
    "parse_callback",
    "parse_message",
    "parse_update",
]
