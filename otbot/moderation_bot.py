from __future__ import annotations

import enum
import logging
import threading
from collections import OrderedDict
from typing import Any, Dict, Optional

from .admins import AdminRegistry
from .cache import CorrelationKey, MessageCache, StorageError
from .callback_token import FLAG_OFFTOPIC, DecodeError, TokenTooLongError, decode, encode, flag_offtopic
from .config import BotConfig
from .telegram_api import TelegramAPI, TelegramAPIError
from .updates import (
    CallbackActivation,
    ForwardOrigin,
    MessageRef,
    action_button,
    inline_keyboard,
    link_button,
    parse_update,
)


logger = logging.getLogger(__name__)


class MessageNotCorrelated(RuntimeError):
    """Raised when a forwarded copy cannot be traced back to a main-group message."""


class CaseState(enum.Enum):
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    RESOLVED = "resolved"


# errors that abort a single update without stopping the bot
HANDLING_ERRORS = (TelegramAPIError, StorageError, DecodeError, TokenTooLongError, MessageNotCorrelated)


class ModerationBot:
    """Drives the off-topic flagging workflow.

    Updates are handled one at a time in the polling thread: main-group
    messages are remembered in the cache, forwards from moderators are
    resolved into a confirmation prompt, and the prompt's button posts the
    public notice.
    """

    def __init__(self, config: BotConfig, cache: MessageCache, admins: AdminRegistry, api: TelegramAPI) -> None:
        self.config = config
        self.cache = cache
        self.admins = admins
        self.api = api
        self._stop_event = threading.Event()
        self._offset: Optional[int] = None
        # resolved message id -> state; a missing id is idle. Oldest cases are
        # dropped past cache_capacity, like the memory cache.
        self._cases: "OrderedDict[int, CaseState]" = OrderedDict()

        self.CMD_FLAG = "/ot"

        # Button labels
        self.BTN_CONFIRM = "Flag as off-topic"
        self.BTN_OFFTOPIC = "Go to the off-topic group"
        self.BTN_APPEAL = "Appeal"

        # Texts
        self.TXT_PROMPT = "Post an off-topic notice under this message?"
        self.TXT_NOTICE = "This topic has drifted away from the group's subject, please continue in the matching discussion group."
        self.TXT_DONE = "Off-topic notice posted."
        self.TXT_ALREADY = "This message has already been flagged."
        self.TXT_NOT_FOUND = "Could not identify the original message. Only messages the bot has seen in the main group can be flagged."
        self.TXT_USAGE = f"Reply with {self.CMD_FLAG} to a forwarded copy of the message."

    def run_forever(self) -> None:
        logger.info("Starting moderation bot")
        try:
            while not self._stop_event.is_set():
                self.poll_once()
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received. Stopping bot...")
        finally:
            self.stop()

    def stop(self) -> None:
        self._stop_event.set()
        self.cache.close()
        logger.info("Moderation bot stopped")

    def poll_once(self) -> None:
        try:
            updates = self.api.get_updates(self._offset, self.config.long_poll_timeout)
        except TelegramAPIError as exc:
            logger.warning("Failed to fetch updates: %s", exc)
            self._stop_event.wait(5)
            return

        for update in updates:
            self._offset = update.get("update_id", 0) + 1
            self.process_update(update)

    def process_update(self, update: Dict[str, Any]) -> None:
        update_id = update.get("update_id")
        logger.debug("%r", update)
        try:
            self.handle_update(update)
        except HANDLING_ERRORS as exc:
            logger.error("handle update %s: %s", update_id, exc)
            self._release_callback(update)
            return
        except Exception:
            logger.exception("Unexpected error while handling update %s", update_id)
            self._release_callback(update)
            return
        logger.debug("update %s handled correctly", update_id)

    def _release_callback(self, update: Dict[str, Any]) -> None:
        # stop the client spinner of a press whose handling failed
        callback_id = (update.get("callback_query") or {}).get("id")
        if not callback_id:
            return
        try:
            self.api.answer_callback_query(callback_id)
        except TelegramAPIError as exc:
            logger.warning("Failed to answer callback %s: %s", callback_id, exc)

    def handle_update(self, update: Dict[str, Any]) -> None:
        event = parse_update(update)
        if isinstance(event, CallbackActivation):
            self._handle_callback(event)
        elif isinstance(event, MessageRef):
            self._handle_message(event)

    def _handle_message(self, message: MessageRef) -> None:
        if message.chat_id == self.config.main_group:
            self._remember(message)
            return
        if message.is_private:
            if message.forward_origin is not None:
                self._handle_forward(message)
            return
        if message.chat_id == self.config.admin_group:
            self._handle_admin_command(message)

    def _remember(self, message: MessageRef) -> None:
        if message.sender_id is None:
            return
        self.cache.put(CorrelationKey(message.sender_id, message.timestamp), message.message_id)

    def _handle_forward(self, message: MessageRef) -> None:
        if not self._is_authorized(message):
            return
        target_id = self._resolve_or_report(message.forward_origin, message)
        self._send_prompt(message, target_id)

    def _handle_admin_command(self, message: MessageRef) -> None:
        tokens = message.text.split()
        # "/ot@SomeBot" is how the command arrives when several bots share the group
        command = tokens[0].split("@", 1)[0].lower() if tokens else ""
        if command != self.CMD_FLAG:
            return
        if not self._is_authorized(message):
            return
        copy = message.reply_to
        if copy is None or copy.forward_origin is None:
            self._send_to_chat(message.chat_id, self.TXT_USAGE, reply_to_message_id=message.message_id)
            return
        target_id = self._resolve_or_report(copy.forward_origin, message)
        self._send_prompt(message, target_id)

    def _is_authorized(self, message: MessageRef) -> bool:
        if self.admins.is_admin(message.sender_id):
            return True
        logger.warning("User %s(%s) is not an admin", message.sender_name, message.sender_id)
        return False

    def _resolve_or_report(self, origin: ForwardOrigin, message: MessageRef) -> int:
        try:
            return self._resolve(origin)
        except MessageNotCorrelated:
            self._send_to_chat(message.chat_id, self.TXT_NOT_FOUND, reply_to_message_id=message.message_id)
            raise

    def _resolve(self, origin: ForwardOrigin) -> int:
        if origin.sender_id is None:
            raise MessageNotCorrelated(f"forward from {origin.timestamp} has no visible sender")
        message_id = self.cache.get(CorrelationKey(origin.sender_id, origin.timestamp))
        if message_id is None:
            raise MessageNotCorrelated(
                f"no cached message from {origin.sender_id} at {origin.timestamp}"
            )
        return message_id

    def _send_prompt(self, message: MessageRef, target_id: int) -> None:
        if self._cases.get(target_id) is CaseState.RESOLVED:
            self._send_to_chat(message.chat_id, self.TXT_ALREADY, reply_to_message_id=message.message_id)
            return
        payload = encode(flag_offtopic(target_id), self.config.callback_data_limit)
        markup = inline_keyboard([action_button(self.BTN_CONFIRM, payload)])
        self.api.send_message(
            message.chat_id,
            self.TXT_PROMPT,
            reply_to_message_id=message.message_id,
            reply_markup=markup,
        )
        self._set_case(target_id, CaseState.AWAITING_CONFIRMATION)
        logger.info("Asked admin %s to confirm off-topic flag for message %s", message.sender_id, target_id)

    def _handle_callback(self, callback: CallbackActivation) -> None:
        if not callback.data:
            logger.info("Callback %s carries no data, ignoring", callback.activation_id)
            self.api.answer_callback_query(callback.activation_id)
            return
        # prompts posted in the moderation group are visible to all its members
        if not self.admins.is_admin(callback.sender_id):
            logger.warning("User %s pressed a moderation button but is not an admin", callback.sender_id)
            self.api.answer_callback_query(callback.activation_id)
            return
        token = decode(callback.data)
        if token.kind == FLAG_OFFTOPIC:
            self._flag_offtopic(token.message_id, callback)

    def _flag_offtopic(self, target_id: int, callback: CallbackActivation) -> None:
        if self._cases.get(target_id) is CaseState.RESOLVED:
            logger.info("Message %s already flagged, ignoring repeated confirmation", target_id)
            self.api.answer_callback_query(callback.activation_id, text=self.TXT_ALREADY)
            return

        markup = inline_keyboard([
            link_button(self.BTN_OFFTOPIC, self.config.offtopic_group),
            link_button(self.BTN_APPEAL, self.config.meta_group),
        ])
        self.api.send_message(
            self.config.main_group,
            self.TXT_NOTICE,
            parse_mode="Markdown",
            reply_to_message_id=target_id,
            reply_markup=markup,
        )
        self._set_case(target_id, CaseState.RESOLVED)
        logger.info("Admin %s flagged message %s as off-topic", callback.sender_id, target_id)

        self.api.answer_callback_query(callback.activation_id, text=self.TXT_DONE)
        if callback.chat_id is not None and callback.message_id is not None:
            # drop the button from the prompt
            try:
                self.api.edit_message_text(callback.chat_id, callback.message_id, self.TXT_DONE)
            except TelegramAPIError as exc:
                logger.warning("Failed to update prompt %s in chat %s: %s", callback.message_id, callback.chat_id, exc)

    def _set_case(self, target_id: int, state: CaseState) -> None:
        self._cases[target_id] = state
        self._cases.move_to_end(target_id)
        while len(self._cases) > self.config.cache_capacity:
            self._cases.popitem(last=False)

    def case_state(self, target_id: int) -> Optional[CaseState]:
        return self._cases.get(target_id)

    def _send_to_chat(self, chat_id: int, text: str, reply_to_message_id: Optional[int] = None) -> None:
        try:
            self.api.send_message(chat_id, text, reply_to_message_id=reply_to_message_id)
        except TelegramAPIError as exc:
            logger.warning("Failed to send message to chat %s: %s", chat_id, exc)


__all__ = ["ModerationBot", "MessageNotCorrelated", "CaseState"]
