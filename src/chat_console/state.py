"""Pure reducer over the application state plus a small dispatching store."""

from __future__ import annotations

import logging
from bisect import bisect_left
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Optional, Sequence, Tuple

from chat_console.channel import EventChannel, Unsubscribe
from chat_console.models import (
    CONNECTION_DISCONNECTED,
    PANEL_CHAT_LIST,
    PANEL_MESSAGES,
    ChatSession,
    Message,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppState:
    connection_state: str = CONNECTION_DISCONNECTED
    chats: Tuple[ChatSession, ...] = ()
    selected_chat_id: Optional[str] = None
    messages: Dict[str, Tuple[Message, ...]] = field(default_factory=dict)
    focused_panel: str = PANEL_CHAT_LIST
    loading_older_messages: Dict[str, bool] = field(default_factory=dict)
    has_more_messages: Dict[str, bool] = field(default_factory=dict)


INITIAL_STATE = AppState()


class Action:
    """Marker base for reducer actions."""


@dataclass(frozen=True)
class SetConnectionState(Action):
    state: str


@dataclass(frozen=True)
class SetChats(Action):
    chats: Tuple[ChatSession, ...]


@dataclass(frozen=True)
class SelectChat(Action):
    chat_id: str


@dataclass(frozen=True)
class SetMessages(Action):
    chat_id: str
    messages: Tuple[Message, ...]


@dataclass(frozen=True)
class AddMessage(Action):
    chat_id: str
    message: Message


@dataclass(frozen=True)
class PrependMessages(Action):
    chat_id: str
    messages: Tuple[Message, ...]


@dataclass(frozen=True)
class SetFocusedPanel(Action):
    panel: str


@dataclass(frozen=True)
class UpdateUnreadCount(Action):
    chat_id: str
    count: int


@dataclass(frozen=True)
class SetLoadingOlderMessages(Action):
    chat_id: str
    loading: bool


@dataclass(frozen=True)
class SetHasMoreMessages(Action):
    chat_id: str
    has_more: bool


def _with_entry(mapping: Dict[str, object], key: str, value: object) -> Dict[str, object]:
    updated = dict(mapping)
    updated[key] = value
    return updated


def _insert_message(existing: Tuple[Message, ...], message: Message) -> Tuple[Message, ...]:
    if not existing or existing[-1].id < message.id:
        return existing + (message,)
    ids = [item.id for item in existing]
    index = bisect_left(ids, message.id)
    if index < len(ids) and ids[index] == message.id:
        return existing
    return existing[:index] + (message,) + existing[index:]


def _prepend_messages(existing: Tuple[Message, ...], batch: Sequence[Message]) -> Tuple[Message, ...]:
    known = {item.id for item in existing}
    fresh = []
    for message in batch:
        if message.id in known:
            continue
        known.add(message.id)
        fresh.append(message)
    if not fresh:
        return existing
    combined = tuple(fresh) + existing
    if existing and fresh[-1].id >= existing[0].id:
        # Batch overlaps the loaded range; fall back to a sorted merge.
        combined = tuple(sorted(combined, key=lambda item: item.id))
    return combined


def reduce(state: AppState, action: Action) -> AppState:
    """Return the state that results from applying ``action`` to ``state``.

    ``state`` is never mutated. Unknown actions return ``state`` unchanged.
    """

    if isinstance(action, SetConnectionState):
        return replace(state, connection_state=action.state)

    if isinstance(action, SetChats):
        return replace(state, chats=tuple(action.chats))

    if isinstance(action, SelectChat):
        return replace(state, selected_chat_id=action.chat_id, focused_panel=PANEL_MESSAGES)

    if isinstance(action, SetMessages):
        return replace(state, messages=_with_entry(state.messages, action.chat_id, tuple(action.messages)))

    if isinstance(action, AddMessage):
        existing = state.messages.get(action.chat_id, ())
        updated = _insert_message(existing, action.message)
        if updated is existing and action.chat_id in state.messages:
            return state
        return replace(state, messages=_with_entry(state.messages, action.chat_id, updated))

    if isinstance(action, PrependMessages):
        existing = state.messages.get(action.chat_id, ())
        updated = _prepend_messages(existing, action.messages)
        if updated is existing and action.chat_id in state.messages:
            return state
        return replace(state, messages=_with_entry(state.messages, action.chat_id, updated))

    if isinstance(action, SetFocusedPanel):
        return replace(state, focused_panel=action.panel)

    if isinstance(action, UpdateUnreadCount):
        chats = tuple(
            replace(chat, unread_count=action.count) if chat.id == action.chat_id else chat
            for chat in state.chats
        )
        return replace(state, chats=chats)

    if isinstance(action, SetLoadingOlderMessages):
        return replace(
            state,
            loading_older_messages=_with_entry(state.loading_older_messages, action.chat_id, action.loading),
        )

    if isinstance(action, SetHasMoreMessages):
        return replace(
            state,
            has_more_messages=_with_entry(state.has_more_messages, action.chat_id, action.has_more),
        )

    return state


def selected_chat(state: AppState) -> Optional[ChatSession]:
    """Return the selected chat, or None when nothing (or a dangling id) is selected."""

    if state.selected_chat_id is None:
        return None
    for chat in state.chats:
        if chat.id == state.selected_chat_id:
            return chat
    return None


def messages_for(state: AppState, chat_id: Optional[str]) -> Tuple[Message, ...]:
    if chat_id is None:
        return ()
    return state.messages.get(chat_id, ())


def is_loading_older(state: AppState, chat_id: str) -> bool:
    return state.loading_older_messages.get(chat_id, False)


def has_more_messages(state: AppState, chat_id: str) -> bool:
    return state.has_more_messages.get(chat_id, False)


def oldest_message_id(state: AppState, chat_id: str) -> Optional[int]:
    messages = state.messages.get(chat_id, ())
    if not messages:
        return None
    return messages[0].id


class StateStore:
    """Owns the current ``AppState`` and applies actions through ``reduce``."""

    def __init__(self, initial: AppState = INITIAL_STATE) -> None:
        self._state = initial
        self._changes: EventChannel[AppState] = EventChannel("state")

    @property
    def state(self) -> AppState:
        return self._state

    def dispatch(self, action: Action) -> AppState:
        previous = self._state
        self._state = reduce(previous, action)
        if self._state is previous:
            logger.debug("Action %s left state unchanged", type(action).__name__)
        else:
            self._changes.publish(self._state)
        return self._state

    def subscribe(self, listener: Callable[[AppState], None]) -> Unsubscribe:
        return self._changes.subscribe(listener)
