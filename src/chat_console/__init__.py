"""Terminal chat client built around a reducer-driven session state engine."""

from chat_console.models import ChatSession, Message
from chat_console.session import ConsoleSession
from chat_console.state import INITIAL_STATE, AppState, StateStore, reduce
from chat_console.window import compute_window

__all__ = [
    "AppState",
    "ChatSession",
    "ConsoleSession",
    "INITIAL_STATE",
    "Message",
    "StateStore",
    "compute_window",
    "reduce",
]
