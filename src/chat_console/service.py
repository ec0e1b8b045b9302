"""
Chat service boundary.

Defines the structural interface the session engine consumes and the single
startup switch that picks between the in-memory mock and the gateway-backed
implementation.

Usage:
    from chat_console.service import create_service

    service = create_service(settings, use_mock=True)
    unsubscribe = service.on_new_message(lambda event: ...)
    await service.connect()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Optional, Protocol, runtime_checkable

from chat_console.channel import Unsubscribe
from chat_console.models import ChatSession, Message

if TYPE_CHECKING:
    from chat_console.settings import ConsoleSettings

logger = logging.getLogger(__name__)

__all__ = [
    "ChatService",
    "NewMessageEvent",
    "create_service",
]


@dataclass(frozen=True)
class NewMessageEvent:
    chat_id: str
    message: Message


@runtime_checkable
class ChatService(Protocol):
    """Structural interface for a remote (or simulated) chat service."""

    async def connect(self) -> None:
        """Move through ``connecting`` to ``connected``; raise ConnectionFailure otherwise."""
        ...

    async def disconnect(self) -> None:
        ...

    def get_connection_state(self) -> str:
        ...

    async def get_chats(self) -> List[ChatSession]:
        ...

    async def get_messages(self, chat_id: str, limit: int = 50, before: Optional[int] = None) -> List[Message]:
        """Return at most ``limit`` messages ascending by id, older than ``before`` if given."""
        ...

    async def send_message(self, chat_id: str, text: str) -> Message:
        ...

    def on_connection_state_change(self, callback: Callable[[str], None]) -> Unsubscribe:
        ...

    def on_new_message(self, callback: Callable[[NewMessageEvent], None]) -> Unsubscribe:
        ...


def create_service(settings: "ConsoleSettings", use_mock: Optional[bool] = None) -> ChatService:
    """Build the chat service selected by ``use_mock`` (or the settings flag)."""

    if use_mock is None:
        use_mock = settings.use_mock
    if use_mock:
        from chat_console.mock_service import MockChatService

        logger.info("Using in-memory mock chat service")
        return MockChatService()

    from chat_console.gateway_service import GatewayChatService

    logger.info("Using gateway chat service at %s", settings.gateway_base_url)
    return GatewayChatService(
        settings.gateway_base_url,
        settings.auth_token,
        connect_timeout_s=settings.connect_timeout_s,
    )
