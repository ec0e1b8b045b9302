from __future__ import annotations

import logging
from typing import List

from chat_console.channel import Unsubscribe
from chat_console.service import ChatService, NewMessageEvent
from chat_console.state import AddMessage, SetConnectionState, StateStore, UpdateUnreadCount

logger = logging.getLogger(__name__)


class EventBridge:
    """Translates service push events into store actions for one session."""

    def __init__(self, store: StateStore, service: ChatService) -> None:
        self.store = store
        self.service = service
        self._disposers: List[Unsubscribe] = []

    @property
    def active(self) -> bool:
        return bool(self._disposers)

    def start(self) -> None:
        if self._disposers:
            return
        self._disposers.append(self.service.on_connection_state_change(self._on_connection_state))
        self._disposers.append(self.service.on_new_message(self._on_new_message))

    def stop(self) -> None:
        disposers, self._disposers = self._disposers, []
        for dispose in disposers:
            dispose()

    def _on_connection_state(self, state: str) -> None:
        logger.info("Connection state: %s", state)
        self.store.dispatch(SetConnectionState(state))

    def _on_new_message(self, event: NewMessageEvent) -> None:
        previous = self.store.state
        state = self.store.dispatch(AddMessage(event.chat_id, event.message))
        if state is previous:
            logger.debug("Duplicate message %d in chat %s ignored", event.message.id, event.chat_id)
            return
        if event.chat_id == state.selected_chat_id:
            return
        for chat in state.chats:
            if chat.id == event.chat_id:
                self.store.dispatch(UpdateUnreadCount(chat.id, chat.unread_count + 1))
                return
        logger.debug("New message for unknown chat %s", event.chat_id)
