"""Deterministic in-memory chat service for development and tests."""

from __future__ import annotations

import asyncio
import copy
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from chat_console.channel import EventChannel, Unsubscribe
from chat_console.models import (
    CONNECTION_CONNECTED,
    CONNECTION_CONNECTING,
    CONNECTION_DISCONNECTED,
    ChatSession,
    Message,
)
from chat_console.service import NewMessageEvent

logger = logging.getLogger(__name__)

SELF_SENDER_ID = "me"
SELF_SENDER_NAME = "You"

MOCK_CHATS: List[ChatSession] = [
    ChatSession(id="1", title="John Doe", unread_count=2, is_group=False),
    ChatSession(id="2", title="Jane Smith", unread_count=0, is_group=False),
    ChatSession(id="3", title="Work Group", unread_count=5, is_group=True),
    ChatSession(id="4", title="Family", unread_count=0, is_group=True),
]

MOCK_MESSAGES: Dict[str, List[Message]] = {
    "1": [
        Message(1, "1", "John", "Hey, how are you?", datetime(2026, 1, 19, 10, 30)),
        Message(2, SELF_SENDER_ID, SELF_SENDER_NAME, "I'm good, thanks!", datetime(2026, 1, 19, 10, 31), True),
        Message(3, "1", "John", "Great to hear", datetime(2026, 1, 19, 10, 32)),
    ],
    "2": [
        Message(1, "2", "Jane", "Meeting at 3pm?", datetime(2026, 1, 19, 9, 0)),
    ],
    "3": [
        Message(1, "3", "Bob", "Project update ready", datetime(2026, 1, 19, 8, 0)),
    ],
    "4": [
        Message(1, "4", "Mom", "Dinner on Sunday?", datetime(2026, 1, 18, 18, 0)),
    ],
}


class MockChatService:
    """Simulated chat service with a fixed preset of chats and histories."""

    def __init__(self, connect_delay_s: float = 0.1) -> None:
        self.connect_delay_s = connect_delay_s
        self._connection_state = CONNECTION_DISCONNECTED
        self._messages: Dict[str, List[Message]] = copy.deepcopy(MOCK_MESSAGES)
        self._connection_changes: EventChannel[str] = EventChannel("connection")
        self._new_messages: EventChannel[NewMessageEvent] = EventChannel("messages")

    def _set_connection_state(self, state: str) -> None:
        self._connection_state = state
        self._connection_changes.publish(state)

    async def connect(self) -> None:
        self._set_connection_state(CONNECTION_CONNECTING)
        await asyncio.sleep(self.connect_delay_s)
        self._set_connection_state(CONNECTION_CONNECTED)

    async def disconnect(self) -> None:
        self._set_connection_state(CONNECTION_DISCONNECTED)

    def get_connection_state(self) -> str:
        return self._connection_state

    async def get_chats(self) -> List[ChatSession]:
        return list(MOCK_CHATS)

    async def get_messages(self, chat_id: str, limit: int = 50, before: Optional[int] = None) -> List[Message]:
        history = self._messages.get(chat_id, [])
        if before is not None:
            history = [message for message in history if message.id < before]
        if limit <= 0:
            return []
        return history[-limit:]

    def _next_id(self, chat_id: str) -> int:
        history = self._messages.get(chat_id, [])
        return history[-1].id + 1 if history else 1

    async def send_message(self, chat_id: str, text: str) -> Message:
        message = Message(
            id=self._next_id(chat_id),
            sender_id=SELF_SENDER_ID,
            sender_name=SELF_SENDER_NAME,
            text=text,
            timestamp=datetime.now(),
            is_outgoing=True,
        )
        self._messages.setdefault(chat_id, []).append(message)
        return message

    def push_incoming(self, chat_id: str, text: str, sender_name: str = "Mock") -> Message:
        """Append an incoming message and publish it to new-message subscribers."""

        message = Message(
            id=self._next_id(chat_id),
            sender_id=f"mock-{chat_id}",
            sender_name=sender_name,
            text=text,
            timestamp=datetime.now(),
        )
        self._messages.setdefault(chat_id, []).append(message)
        logger.debug("Mock push into chat %s: id=%d", chat_id, message.id)
        self._new_messages.publish(NewMessageEvent(chat_id=chat_id, message=message))
        return message

    def on_connection_state_change(self, callback: Callable[[str], None]) -> Unsubscribe:
        return self._connection_changes.subscribe(callback)

    def on_new_message(self, callback: Callable[[NewMessageEvent], None]) -> Unsubscribe:
        return self._new_messages.subscribe(callback)
