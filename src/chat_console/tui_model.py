"""Pure-Python view state machine for the curses front end."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from chat_console.models import (
    CONNECTION_DISCONNECTED,
    PANEL_CHAT_LIST,
    PANEL_INPUT,
    PANEL_MESSAGES,
    ChatSession,
    Message,
)
from chat_console.session import ConsoleSession
from chat_console.state import has_more_messages, is_loading_older, messages_for, selected_chat
from chat_console.window import VISIBLE_ITEMS, MessageWindow, compute_window

FOCUS_ORDER = [PANEL_CHAT_LIST, PANEL_MESSAGES, PANEL_INPUT]

ACTION_QUIT = "quit"
ACTION_SELECT_CHAT = "select_chat"
ACTION_SEND = "send"
ACTION_LOAD_OLDER = "load_older"


@dataclass
class RenderState:
    focus_area: str
    connection_state: str
    chats: List[ChatSession]
    chat_cursor: int
    selected_chat_id: Optional[str]
    selected_chat_title: Optional[str]
    window: MessageWindow[Message]
    loading_older: bool
    compose_text: str
    status_line: str


class TuiModel:
    """Key-driven view state layered over a ``ConsoleSession``.

    Message selection is tracked by message id per chat so that older pages
    prepended above the cursor do not move it. ``None`` follows the newest
    message.
    """

    def __init__(self, session: ConsoleSession, visible_items: int = VISIBLE_ITEMS) -> None:
        self.session = session
        self.visible_items = visible_items
        self.chat_cursor = 0
        self.message_cursor: Dict[str, Optional[int]] = {}
        self.compose_text = ""
        self.status_line = ""

    @property
    def focus_area(self) -> str:
        panel = self.session.state.focused_panel
        return panel if panel in FOCUS_ORDER else PANEL_CHAT_LIST

    def _cycle_focus(self, delta: int) -> None:
        idx = FOCUS_ORDER.index(self.focus_area)
        self.session.focus(FOCUS_ORDER[(idx + delta) % len(FOCUS_ORDER)])

    def focus_next(self) -> None:
        self._cycle_focus(1)

    def focus_prev(self) -> None:
        self._cycle_focus(-1)

    def highlighted_chat_id(self) -> Optional[str]:
        chats = self.session.state.chats
        if not chats:
            return None
        self.chat_cursor = max(0, min(self.chat_cursor, len(chats) - 1))
        return chats[self.chat_cursor].id

    def move_chat(self, delta: int) -> None:
        chats = self.session.state.chats
        if not chats:
            return
        self.chat_cursor = max(0, min(len(chats) - 1, self.chat_cursor + delta))

    def selected_message_index(self) -> int:
        state = self.session.state
        messages = messages_for(state, state.selected_chat_id)
        if not messages:
            return 0
        cursor = self.message_cursor.get(state.selected_chat_id or "")
        if cursor is None:
            return len(messages) - 1
        for idx, message in enumerate(messages):
            if message.id >= cursor:
                return idx
        return len(messages) - 1

    def move_message(self, delta: int) -> Optional[str]:
        state = self.session.state
        chat_id = state.selected_chat_id
        messages = messages_for(state, chat_id)
        if chat_id is None or not messages:
            return None
        current = self.selected_message_index()
        target = current + delta
        if target < 0:
            if has_more_messages(state, chat_id) and not is_loading_older(state, chat_id):
                return ACTION_LOAD_OLDER
            target = 0
        if target >= len(messages) - 1:
            self.message_cursor[chat_id] = None
            return None
        self.message_cursor[chat_id] = messages[target].id
        return None

    def take_compose_text(self) -> str:
        text, self.compose_text = self.compose_text, ""
        return text

    def handle_key(self, key: str, char: Optional[str] = None) -> Optional[str]:
        """Handle a normalized key and return an action string when needed."""

        if key == "CTRL_C":
            return ACTION_QUIT
        if key == "TAB":
            self.focus_next()
            return None
        if key == "SHIFT_TAB":
            self.focus_prev()
            return None

        if self.focus_area == PANEL_INPUT:
            if key == "BACKSPACE":
                self.compose_text = self.compose_text[:-1]
            elif key == "DELETE":
                self.compose_text = ""
            elif key == "ESC":
                self.session.focus(PANEL_MESSAGES)
            elif key == "ENTER":
                if self.compose_text.strip() and self.session.state.selected_chat_id is not None:
                    return ACTION_SEND
            elif char:
                self.compose_text += char
            return None

        if key == "CHAR" and char in {"q", "Q"}:
            return ACTION_QUIT

        if self.focus_area == PANEL_CHAT_LIST:
            if key == "UP":
                self.move_chat(-1)
            elif key == "DOWN":
                self.move_chat(1)
            elif key == "ENTER" and self.highlighted_chat_id() is not None:
                return ACTION_SELECT_CHAT
            return None

        if self.focus_area == PANEL_MESSAGES:
            if key == "UP":
                return self.move_message(-1)
            if key == "DOWN":
                return self.move_message(1)
            if key == "ESC":
                self.session.focus(PANEL_CHAT_LIST)
            elif key == "ENTER":
                self.session.focus(PANEL_INPUT)
            return None

        return None

    def render(self) -> RenderState:
        state = self.session.state
        chat = selected_chat(state)
        chat_id = state.selected_chat_id
        messages = messages_for(state, chat_id)
        self.highlighted_chat_id()
        return RenderState(
            focus_area=self.focus_area,
            connection_state=state.connection_state or CONNECTION_DISCONNECTED,
            chats=list(state.chats),
            chat_cursor=self.chat_cursor,
            selected_chat_id=chat_id,
            selected_chat_title=chat.title if chat is not None else None,
            window=compute_window(messages, self.selected_message_index(), self.visible_items),
            loading_older=is_loading_older(state, chat_id) if chat_id is not None else False,
            compose_text=self.compose_text,
            status_line=self.status_line,
        )
