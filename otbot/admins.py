from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, FrozenSet, Iterable

from .telegram_api import TelegramAPI, TelegramAPIError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdminRegistry:
    """Snapshot of the main group's administrators taken at startup."""

    user_ids: FrozenSet[int] = frozenset()

    @classmethod
    def from_ids(cls, ids: Iterable[int]) -> "AdminRegistry":
        return cls(frozenset(int(i) for i in ids))

    def is_admin(self, user_id: Any) -> bool:
        return user_id in self.user_ids

    def __contains__(self, user_id: object) -> bool:
        return user_id in self.user_ids

    def __len__(self) -> int:
        return len(self.user_ids)


def fetch_admin_registry(api: TelegramAPI, chat_id: int) -> AdminRegistry:
    """Ask Telegram for the administrators of ``chat_id``.

    A failed request is logged and yields an empty registry, so nobody is
    authorized until the bot is restarted with a working connection.
    """
    try:
        members = api.get_chat_administrators(chat_id) or []
    except TelegramAPIError as exc:
        logger.error("get chat administrators for %s: %s", chat_id, exc)
        return AdminRegistry()

    ids = []
    for member in members:
        user = member.get("user") or {}
        if user.get("id") is None:
            continue
        ids.append(int(user["id"]))
    registry = AdminRegistry.from_ids(ids)
    logger.info("Loaded %s administrators of chat %s", len(registry), chat_id)
    return registry


__all__ = ["AdminRegistry", "fetch_admin_registry"]
