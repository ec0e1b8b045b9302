from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from chat_console.channel import EventChannel, Unsubscribe
from chat_console.errors import FetchFailure
from chat_console.models import CONNECTION_DISCONNECTED, ChatSession, Message
from chat_console.service import NewMessageEvent

BASE_TS = datetime(2026, 1, 19, 10, 0)


def make_message(msg_id: int, text: str = "", outgoing: bool = False) -> Message:
    return Message(
        id=msg_id,
        sender_id="me" if outgoing else "peer",
        sender_name="You" if outgoing else "Peer",
        text=text or f"message {msg_id}",
        timestamp=BASE_TS + timedelta(minutes=msg_id),
        is_outgoing=outgoing,
    )


def make_chat(chat_id: str, title: str = "", unread: int = 0, is_group: bool = False) -> ChatSession:
    return ChatSession(id=chat_id, title=title or f"chat {chat_id}", unread_count=unread, is_group=is_group)


class ScriptedService:
    """Chat service double whose ``get_messages`` calls block until released."""

    def __init__(self, histories: Optional[Dict[str, List[Message]]] = None) -> None:
        self.histories = histories or {}
        self.calls: List[tuple[str, int, Optional[int]]] = []
        self.gates: List[asyncio.Future[None]] = []
        self.block = False
        self.fail_with: Optional[Exception] = None
        self.connection = EventChannel[str]("connection")
        self.messages = EventChannel[NewMessageEvent]("messages")
        self.state = CONNECTION_DISCONNECTED
        self.sent: List[tuple[str, str]] = []

    async def connect(self) -> None:
        self.state = "connected"
        self.connection.publish("connected")

    async def disconnect(self) -> None:
        self.state = CONNECTION_DISCONNECTED
        self.connection.publish(CONNECTION_DISCONNECTED)

    def get_connection_state(self) -> str:
        return self.state

    async def get_chats(self) -> List[ChatSession]:
        return [make_chat(chat_id) for chat_id in self.histories]

    async def get_messages(self, chat_id: str, limit: int = 50, before: Optional[int] = None) -> List[Message]:
        self.calls.append((chat_id, limit, before))
        if self.block:
            gate: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            self.gates.append(gate)
            await gate
        if self.fail_with is not None:
            raise self.fail_with
        history = self.histories.get(chat_id, [])
        if before is not None:
            history = [message for message in history if message.id < before]
        return history[-limit:]

    async def send_message(self, chat_id: str, text: str) -> Message:
        self.sent.append((chat_id, text))
        history = self.histories.setdefault(chat_id, [])
        message = make_message((history[-1].id if history else 0) + 1, text, outgoing=True)
        history.append(message)
        return message

    def on_connection_state_change(self, callback: Callable[[str], None]) -> Unsubscribe:
        return self.connection.subscribe(callback)

    def on_new_message(self, callback: Callable[[NewMessageEvent], None]) -> Unsubscribe:
        return self.messages.subscribe(callback)

    def release_all(self) -> None:
        for gate in self.gates:
            if not gate.done():
                gate.set_result(None)


def failing_fetch(chat_id: str) -> FetchFailure:
    return FetchFailure(chat_id, "boom")
