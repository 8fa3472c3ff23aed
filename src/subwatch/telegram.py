from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import requests

from .config import AppConfig
from .errors import ChannelError


API_BASE = "https://api.telegram.org"


@dataclass(frozen=True)
class CallbackEvent:
    """A Book/Ignore button press. `data` is the raw "<action>:<fingerprint>"."""

    id: str
    data: str

    @property
    def action(self) -> str:
        return self.data.split(":", 1)[0] if self.data else ""

    @property
    def fingerprint(self) -> str:
        if ":" not in (self.data or ""):
            return ""
        return self.data.split(":", 1)[1].strip()


class TelegramChannel:
    """Bot API client for one chat: send, edit, poll button presses, answer them."""

    def __init__(
        self,
        token: str,
        chat_id: str,
        *,
        timeout_s: int = 20,
        session: Optional[requests.Session] = None,
    ):
        if not token or not chat_id:
            raise ChannelError("Telegram credentials not configured (TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID)")
        self.chat_id = chat_id
        self.timeout_s = timeout_s
        self._base = f"{API_BASE}/bot{token}"
        self._http = session or requests.Session()

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "TelegramChannel":
        return cls(cfg.telegram_token, cfg.telegram_chat_id)

    def _call(self, method: str, payload: dict) -> object:
        try:
            resp = self._http.post(f"{self._base}/{method}", json=payload, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise ChannelError(f"Telegram {method} failed: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not resp.ok or not data.get("ok"):
            desc = data.get("description") or resp.reason or f"HTTP {resp.status_code}"
            raise ChannelError(f"Telegram API error ({method}): {desc}")
        return data.get("result")

    def send_message(self, text: str, actions: Optional[Sequence[Tuple[str, str]]] = None) -> Optional[int]:
        """Send an HTML message; `actions` become one row of inline buttons.

        Returns the message_id for later edits.
        """
        payload: dict = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        if actions:
            payload["reply_markup"] = {
                "inline_keyboard": [[{"text": label, "callback_data": tag} for label, tag in actions]],
            }
        result = self._call("sendMessage", payload)
        if isinstance(result, dict):
            return result.get("message_id")
        return None

    def edit_message(self, message_id: int, text: str) -> None:
        # An empty keyboard removes the buttons.
        self._call(
            "editMessageText",
            {
                "chat_id": self.chat_id,
                "message_id": message_id,
                "text": text,
                "parse_mode": "HTML",
                "disable_web_page_preview": True,
                "reply_markup": {"inline_keyboard": []},
            },
        )

    def poll_events(self, offset: int) -> Tuple[List[CallbackEvent], int]:
        """Short-poll pending button presses (timeout=0, never blocks).

        Returns (events oldest first, next offset).
        """
        result = self._call(
            "getUpdates",
            {
                "offset": offset,
                "timeout": 0,
                "allowed_updates": ["callback_query"],
            },
        )
        updates = result if isinstance(result, list) else []
        if not updates:
            return [], offset

        events: List[CallbackEvent] = []
        for u in updates:
            cq = u.get("callback_query")
            if not cq:
                continue
            events.append(CallbackEvent(id=str(cq.get("id") or ""), data=str(cq.get("data") or "")))

        next_offset = max(int(u.get("update_id", 0)) for u in updates) + 1
        return events, max(next_offset, offset)

    def acknowledge_event(self, event_id: str, text: str) -> None:
        self._call("answerCallbackQuery", {"callback_query_id": event_id, "text": text})
