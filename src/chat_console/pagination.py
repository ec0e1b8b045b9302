"""Backward history loading with per-chat loading flags and stale-response guards."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from chat_console.errors import ChatServiceError, FetchFailure
from chat_console.service import ChatService
from chat_console.state import (
    PrependMessages,
    SetHasMoreMessages,
    SetLoadingOlderMessages,
    StateStore,
    is_loading_older,
    oldest_message_id,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50

LOAD_OK = "loaded"
LOAD_EXHAUSTED = "exhausted"
LOAD_BUSY = "busy"
LOAD_STALE = "stale"


class PaginationController:
    """Loads older pages of a chat's history into the store.

    At most one fetch per chat is in flight. Each request carries a per-chat
    generation; a response is applied only if it is still the latest request
    for that chat and the chat is still selected.
    """

    def __init__(
        self,
        store: StateStore,
        service: ChatService,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        fetch_timeout_s: Optional[float] = None,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self.store = store
        self.service = service
        self.page_size = page_size
        self.fetch_timeout_s = fetch_timeout_s
        self._generations: Dict[str, int] = {}

    def _next_generation(self, chat_id: str) -> int:
        generation = self._generations.get(chat_id, 0) + 1
        self._generations[chat_id] = generation
        return generation

    def invalidate(self, chat_id: str) -> None:
        """Mark any in-flight response for ``chat_id`` as stale."""

        self._next_generation(chat_id)

    def _is_current(self, chat_id: str, generation: int) -> bool:
        if self._generations.get(chat_id) != generation:
            return False
        return self.store.state.selected_chat_id == chat_id

    async def load_older(self, chat_id: str, cursor: Optional[int] = None) -> str:
        """Fetch one page older than ``cursor`` (default: the oldest loaded message).

        Returns one of ``LOAD_OK``, ``LOAD_EXHAUSTED``, ``LOAD_BUSY`` or
        ``LOAD_STALE``. Raises ``FetchFailure`` when the service call fails or
        times out; the loading flag is cleared on every path.
        """

        if is_loading_older(self.store.state, chat_id):
            logger.debug("Older messages for chat %s already loading", chat_id)
            return LOAD_BUSY
        if cursor is None:
            cursor = oldest_message_id(self.store.state, chat_id)
        generation = self._next_generation(chat_id)
        self.store.dispatch(SetLoadingOlderMessages(chat_id, True))
        try:
            fetch = self.service.get_messages(chat_id, self.page_size, before=cursor)
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

            if not self._is_current(chat_id, generation):
                logger.info("Discarding stale page for chat %s (generation %d)", chat_id, generation)
                return LOAD_STALE

            if not batch:
                self.store.dispatch(SetHasMoreMessages(chat_id, False))
                return LOAD_EXHAUSTED

            head = oldest_message_id(self.store.state, chat_id)
            older = [message for message in batch if head is None or message.id < head]
            if not older:
                logger.warning("Page for chat %s held nothing older than message %s", chat_id, head)
                self.store.dispatch(SetHasMoreMessages(chat_id, False))
                return LOAD_EXHAUSTED
            self.store.dispatch(PrependMessages(chat_id, tuple(older)))
            self.store.dispatch(SetHasMoreMessages(chat_id, len(batch) == self.page_size))
            logger.debug("Prepended %d message(s) to chat %s", len(older), chat_id)
            return LOAD_OK
        finally:
            self.store.dispatch(SetLoadingOlderMessages(chat_id, False))
