"""Session object wiring the store, the chat service and the controllers."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from chat_console.bridge import EventBridge
from chat_console.errors import ChatServiceError, ConnectionFailure, FetchFailure
from chat_console.models import CONNECTION_DISCONNECTED, FOCUSED_PANELS, Message
from chat_console.pagination import DEFAULT_PAGE_SIZE, PaginationController
from chat_console.service import ChatService
from chat_console.state import (
    AddMessage,
    AppState,
    PrependMessages,
    SelectChat,
    SetChats,
    SetConnectionState,
    SetFocusedPanel,
    SetHasMoreMessages,
    SetMessages,
    StateStore,
    UpdateUnreadCount,
    messages_for,
)

logger = logging.getLogger(__name__)


class ConsoleSession:
    """One running chat session: owns the store and the service handle."""

    def __init__(
        self,
        service: ChatService,
        *,
        store: Optional[StateStore] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        connect_timeout_s: Optional[float] = None,
        fetch_timeout_s: Optional[float] = None,
    ) -> None:
        self.service = service
        self.store = store if store is not None else StateStore()
        self.page_size = page_size
        self.connect_timeout_s = connect_timeout_s
        self.fetch_timeout_s = fetch_timeout_s
        self.bridge = EventBridge(self.store, service)
        self._loaded_chats: Set[str] = set()
        self.pagination = PaginationController(
            self.store,
            service,
            page_size=page_size,
            fetch_timeout_s=fetch_timeout_s,
        )

    @property
    def state(self) -> AppState:
        return self.store.state

    async def start(self) -> bool:
        """Subscribe to pushes, connect and load the chat list.

        Returns False when the connection could not be established; the store
        then reports ``disconnected``.
        """

        self.bridge.start()
        if not await self.connect():
            return False
        await self.refresh_chats()
        return True

    async def connect(self) -> bool:
        try:
            if self.connect_timeout_s is not None:
                await asyncio.wait_for(self.service.connect(), timeout=self.connect_timeout_s)
            else:
                await self.service.connect()
        except ConnectionFailure as exc:
            logger.warning("Connect failed: %s", exc)
            self.store.dispatch(SetConnectionState(CONNECTION_DISCONNECTED))
            return False
        except asyncio.TimeoutError:
            logger.warning("Connect timed out after %ss", self.connect_timeout_s)
            try:
                await self.service.disconnect()
            except ChatServiceError as exc:
                logger.warning("Disconnect after connect timeout failed: %s", exc)
            self.store.dispatch(SetConnectionState(CONNECTION_DISCONNECTED))
            return False
        return True

    async def refresh_chats(self) -> None:
        chats = await self.service.get_chats()
        self.store.dispatch(SetChats(tuple(chats)))

    async def select_chat(self, chat_id: str) -> None:
        """Select ``chat_id``, clear its unread count and load its latest page."""

        previous = self.store.state.selected_chat_id
        if previous is not None and previous != chat_id:
            self.pagination.invalidate(previous)
        self.store.dispatch(SelectChat(chat_id))
        self.store.dispatch(UpdateUnreadCount(chat_id, 0))
        if chat_id in self._loaded_chats:
            return
        await self.load_latest(chat_id)

    async def load_latest(self, chat_id: str) -> None:
        fetch = self.service.get_messages(chat_id, self.page_size)
        try:
            if self.fetch_timeout_s is not None:
                batch = await asyncio.wait_for(fetch, timeout=self.fetch_timeout_s)
            else:
                batch = await fetch
        except asyncio.TimeoutError as exc:
            raise FetchFailure(chat_id, f"timed out after {self.fetch_timeout_s}s") from exc
        except FetchFailure:
            raise
        except ChatServiceError as exc:
            raise FetchFailure(chat_id, str(exc)) from exc
        if messages_for(self.store.state, chat_id):
            # Pushes arrived while fetching; merge instead of replacing them.
            self.store.dispatch(PrependMessages(chat_id, tuple(batch)))
        else:
            self.store.dispatch(SetMessages(chat_id, tuple(batch)))
        self._loaded_chats.add(chat_id)
        self.store.dispatch(SetHasMoreMessages(chat_id, len(batch) == self.page_size))

    async def load_older(self, chat_id: Optional[str] = None) -> str:
        if chat_id is None:
            chat_id = self.store.state.selected_chat_id
        if chat_id is None:
            raise ValueError("No chat selected")
        return await self.pagination.load_older(chat_id)

    async def send_message(self, text: str) -> Optional[Message]:
        """Send ``text`` to the selected chat; blank text or no selection is a no-op."""

        chat_id = self.store.state.selected_chat_id
        text = text.strip()
        if not text or chat_id is None:
            return None
        message = await self.service.send_message(chat_id, text)
        self.store.dispatch(AddMessage(chat_id, message))
        return message

    def focus(self, panel: str) -> None:
        if panel not in FOCUSED_PANELS:
            raise ValueError(f"Unknown panel: {panel!r}")
        self.store.dispatch(SetFocusedPanel(panel))

    async def stop(self) -> None:
        try:
            await self.service.disconnect()
        finally:
            self.bridge.stop()
