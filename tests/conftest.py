"""Shared fixtures: a recording stand-in for TelegramAPI and update builders."""

from typing import Any, Dict, List, Optional

import pytest

from otbot.admins import AdminRegistry
from otbot.cache import MemoryCache
from otbot.config import BotConfig
from otbot.moderation_bot import ModerationBot
from otbot.telegram_api import TelegramAPIError


MAIN_GROUP = -1001
ADMIN_GROUP = -1002
ADMIN_ID = 10
MEMBER_ID = 20


class FakeTelegramAPI:
    """Records every outbound call; methods listed in ``fail`` raise."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.answers: List[Dict[str, Any]] = []
        self.edits: List[Dict[str, Any]] = []
        self.fail: set = set()
        self.administrators: List[Dict[str, Any]] = []
        self._next_id = 1000

    def _maybe_fail(self, method: str) -> None:
        if method in self.fail:
            raise TelegramAPIError(f"{method} failed")

    def send_message(self, chat_id, text, parse_mode=None, reply_to_message_id=None, reply_markup=None):
        self._maybe_fail("sendMessage")
        self._next_id += 1
        self.sent.append({
            "chat_id": chat_id,
            "text": text,
            "parse_mode": parse_mode,
            "reply_to_message_id": reply_to_message_id,
            "reply_markup": reply_markup,
            "message_id": self._next_id,
        })
        return {"message_id": self._next_id}

    def answer_callback_query(self, callback_query_id, text=None, show_alert=False):
        self._maybe_fail("answerCallbackQuery")
        self.answers.append({"callback_query_id": callback_query_id, "text": text})
        return True

    def edit_message_text(self, chat_id, message_id, text, parse_mode=None, reply_markup=None):
        self._maybe_fail("editMessageText")
        self.edits.append({"chat_id": chat_id, "message_id": message_id, "text": text})
        return True

    def get_chat_administrators(self, chat_id):
        self._maybe_fail("getChatAdministrators")
        return self.administrators

    def get_updates(self, offset, timeout):
        self._maybe_fail("getUpdates")
        return []


@pytest.fixture
def config():
    return BotConfig(
        token="123:abc",
        main_group=MAIN_GROUP,
        admin_group=ADMIN_GROUP,
        offtopic_group="https://t.me/offtopic",
        meta_group="https://t.me/meta",
    )


@pytest.fixture
def api():
    return FakeTelegramAPI()


@pytest.fixture
def cache():
    return MemoryCache(capacity=100)


@pytest.fixture
def bot(config, cache, api):
    return ModerationBot(config, cache, AdminRegistry.from_ids([ADMIN_ID]), api)


def user(user_id: int, first_name: str = "User") -> Dict[str, Any]:
    return {"id": user_id, "is_bot": False, "first_name": first_name}


def message_update(
    update_id: int,
    chat_id: int,
    sender_id: int,
    message_id: int,
    date: int,
    text: str = "hello",
    chat_type: Optional[str] = None,
    forward_from: Optional[int] = None,
    forward_date: Optional[int] = None,
    reply_to: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    if chat_type is None:
        chat_type = "private" if chat_id > 0 else "supergroup"
    message: Dict[str, Any] = {
        "message_id": message_id,
        "from": user(sender_id),
        "chat": {"id": chat_id, "type": chat_type},
        "date": date,
        "text": text,
    }
    if forward_date is not None:
        message["forward_origin"] = {
            "type": "user",
            "sender_user": user(forward_from),
            "date": forward_date,
        }
    if reply_to is not None:
        message["reply_to_message"] = reply_to
    return {"update_id": update_id, "message": message}


def callback_update(
    update_id: int,
    data: Optional[str],
    chat_id: int = ADMIN_ID,
    message_id: int = 5000,
    sender_id: int = ADMIN_ID,
) -> Dict[str, Any]:
    callback: Dict[str, Any] = {
        "id": f"cb{update_id}",
        "from": user(sender_id),
        "chat_instance": "1",
        "message": {"message_id": message_id, "chat": {"id": chat_id, "type": "private"}, "date": 0},
    }
    if data is not None:
        callback["data"] = data
    return {"update_id": update_id, "callback_query": callback}
