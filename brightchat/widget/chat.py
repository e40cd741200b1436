"""
Widget: chat session state.

Two screens, Welcome then Chat. Opening the chat seeds a scripted two-part
greeting, the second part behind a fake typing delay. Each send posts one
message to the chat API and appends whatever reply comes back.

Sends are not serialised: if a second message is sent before the first
reply arrives, replies are appended in arrival order, which may differ
from send order when API latency varies.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, List, Optional

import httpx

from brightchat.models import utc_now_iso
from brightchat.widget.session import get_or_create_chat_id

logger = logging.getLogger(__name__)

CHAT_ENDPOINT = "/api/chat"

GREETING_TEXT = "Hi there! 👋 I'm Mr. Bright, your insurance assistant."
FOLLOW_UP_TEXT = (
    "I'm here to help you find the right coverage for your needs. To get started, "
    "could you tell me a bit about what type of insurance you're looking for today?"
)
ERROR_TEXT = "Sorry, there was an error sending your message. Please try again."
ACKNOWLEDGEMENT_TEXT = "Thanks for your message! Our team will get back to you shortly."

# Checked in order
REPLY_FIELDS = ("response", "message")


class Screen(str, Enum):
    WELCOME = "welcome"
    CHAT = "chat"


@dataclass
class DisplayedMessage:
    id: str
    text: str
    sender: str
    timestamp: datetime = field(default_factory=datetime.now)


class ChatSendError(Exception):
    pass


def new_message_id() -> str:
    return uuid.uuid4().hex


def extract_reply(data: Any) -> Optional[str]:
    """
    First non-empty reply field of a JSON object. Non-zero numbers are shown
    as text; booleans, objects and lists are not displayable and are skipped.
    """
    if not isinstance(data, dict):
        return None
    for name in REPLY_FIELDS:
        value = data.get(name)
        if isinstance(value, str) and value:
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value:
            return str(value)
    return None


def render_lines(text: str) -> List[str]:
    return text.split("\n")


class ChatSession:
    def __init__(
        self,
        client: httpx.AsyncClient,
        storage,
        *,
        typing_delay: float = 0.8,
        typing_duration: float = 1.5,
        acknowledge_missing_reply: bool = False,
        on_change: Optional[Callable[["ChatSession"], None]] = None,
    ):
        self.client = client
        self.storage = storage
        self.typing_delay = typing_delay
        self.typing_duration = typing_duration
        self.acknowledge_missing_reply = acknowledge_missing_reply
        self.on_change = on_change

        self.screen = Screen.WELCOME
        self.messages: List[DisplayedMessage] = []
        self.input_value = ""
        self.is_typing = False
        self.chat_id: Optional[str] = None
        self._timers: List[asyncio.TimerHandle] = []

    # ── State helpers ─────────────────────────────────────────────────────────

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def _append(self, text: str, sender: str, message_id: Optional[str] = None) -> DisplayedMessage:
        message = DisplayedMessage(id=message_id or new_message_id(), text=text, sender=sender)
        self.messages.append(message)
        self._changed()
        return message

    def _set_typing(self, value: bool) -> None:
        self.is_typing = value
        self._changed()

    # ── Welcome → Chat ────────────────────────────────────────────────────────

    def start_chat(self) -> None:
        """Open the chat screen. Must be called from a running event loop."""
        if self.screen is Screen.CHAT:
            return
        self.screen = Screen.CHAT
        self.chat_id = get_or_create_chat_id(self.storage)
        self._append(GREETING_TEXT, "agent", message_id="1")

        loop = asyncio.get_running_loop()
        self._timers.append(loop.call_later(self.typing_delay, self._begin_follow_up))

    def _begin_follow_up(self) -> None:
        self._set_typing(True)
        loop = asyncio.get_running_loop()
        self._timers.append(loop.call_later(self.typing_duration, self._finish_follow_up))

    def _finish_follow_up(self) -> None:
        self.is_typing = False
        self._append(FOLLOW_UP_TEXT, "agent", message_id="2")

    def close(self) -> None:
        """Cancel any pending scripted messages."""
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()

    # ── Sending ───────────────────────────────────────────────────────────────

    def set_input(self, text: str) -> None:
        self.input_value = text

    @property
    def can_send(self) -> bool:
        return bool(self.input_value.strip())

    async def send(self, text: Optional[str] = None) -> Optional[DisplayedMessage]:
        """
        Send the current input (or text, when given).

        Returns the agent message appended as a result, or None when nothing
        was sent or the reply carried no recognised reply field.
        """
        if self.screen is not Screen.CHAT:
            raise RuntimeError("start_chat() must be called before sending")
        if text is not None:
            self.input_value = text
        if not self.can_send:
            return None

        message_text = self.input_value
        self._append(message_text, "user")
        self.input_value = ""
        self._set_typing(True)

        try:
            # Re-read in case storage was cleared since the chat opened
            self.chat_id = get_or_create_chat_id(self.storage)
            resp = await self.client.post(
                CHAT_ENDPOINT,
                json={
                    "message": message_text,
                    "sender": "user",
                    "timestamp": utc_now_iso(),
                    "chatId": self.chat_id,
                },
            )
            if not resp.is_success:
                raise ChatSendError(f"chat API returned {resp.status_code}")
            data = resp.json()
        except (httpx.HTTPError, ValueError, ChatSendError) as e:
            logger.warning("Error sending message: %s", e)
            self.is_typing = False
            return self._append(ERROR_TEXT, "agent")

        self._set_typing(False)

        reply = extract_reply(data)
        if reply is not None:
            return self._append(reply, "agent")

        logger.warning("Chat API reply had none of the fields %s; nothing to show", ", ".join(REPLY_FIELDS))
        if self.acknowledge_missing_reply:
            return self._append(ACKNOWLEDGEMENT_TEXT, "agent")
        return None
