"""Failures raised at the chat-service boundary."""

from __future__ import annotations

__all__ = [
    "ChatServiceError",
    "ConnectionFailure",
    "FetchFailure",
    "SendFailure",
]


class ChatServiceError(Exception):
    """Base class for errors reported by a chat service."""


class ConnectionFailure(ChatServiceError):
    """Raised when ``connect()`` could not reach the connected state."""


class FetchFailure(ChatServiceError):
    def __init__(self, chat_id: str, reason: str):
        self.chat_id = chat_id
        self.reason = reason
        super().__init__(f"Fetching messages for chat {chat_id} failed: {reason}")


class SendFailure(ChatServiceError):
    def __init__(self, chat_id: str, reason: str):
        self.chat_id = chat_id
        self.reason = reason
        super().__init__(f"Sending to chat {chat_id} failed: {reason}")
