"""Value types shared by the state engine and the chat services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict

CONNECTION_DISCONNECTED = "disconnected"
CONNECTION_CONNECTING = "connecting"
CONNECTION_CONNECTED = "connected"

PANEL_CHAT_LIST = "chatList"
PANEL_MESSAGES = "messages"
PANEL_INPUT = "input"
PANEL_SETTINGS_MENU = "settingsMenu"
FOCUSED_PANELS = (PANEL_CHAT_LIST, PANEL_MESSAGES, PANEL_INPUT, PANEL_SETTINGS_MENU)


@dataclass(frozen=True)
class ChatSession:
    """A conversation thread, one-to-one or group."""

    id: str
    title: str
    unread_count: int = 0
    is_group: bool = False

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ChatSession":
        unread = payload.get("unread_count", 0)
        if not isinstance(unread, int) or unread < 0:
            unread = 0
        return cls(
            id=str(payload["id"]),
            title=str(payload.get("title", "")),
            unread_count=unread,
            is_group=bool(payload.get("is_group", False)),
        )


@dataclass(frozen=True)
class Message:
    """A single chat message; ``id`` orders messages within a chat."""

    id: int
    sender_id: str
    sender_name: str
    text: str
    timestamp: datetime
    is_outgoing: bool = False

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Message":
        ts_ms = payload.get("ts", 0)
        if not isinstance(ts_ms, (int, float)):
            ts_ms = 0
        return cls(
            id=int(payload["id"]),
            sender_id=str(payload.get("sender_id", "")),
            sender_name=str(payload.get("sender_name", "")),
            text=str(payload.get("text", "")),
            timestamp=datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc),
            is_outgoing=bool(payload.get("is_outgoing", False)),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sender_id": self.sender_id,
            "sender_name": self.sender_name,
            "text": self.text,
            "ts": int(self.timestamp.timestamp() * 1000),
            "is_outgoing": self.is_outgoing,
        }
