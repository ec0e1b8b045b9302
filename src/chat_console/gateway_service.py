"""aiohttp-backed chat service speaking the gateway's JSON + websocket API."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from chat_console.channel import EventChannel, Unsubscribe
from chat_console.errors import ChatServiceError, ConnectionFailure, FetchFailure, SendFailure
from chat_console.models import (
    CONNECTION_CONNECTED,
    CONNECTION_CONNECTING,
    CONNECTION_DISCONNECTED,
    ChatSession,
    Message,
)
from chat_console.service import NewMessageEvent

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError)


def _build_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}{path}"


class GatewayChatService:
    """Chat service talking to a gateway over HTTP with websocket pushes."""

    def __init__(
        self,
        base_url: str,
        auth_token: str,
        *,
        connect_timeout_s: float = 10.0,
        heartbeat_s: float = 20.0,
    ) -> None:
        self.base_url = base_url
        self.auth_token = auth_token
        self.connect_timeout_s = connect_timeout_s
        self.heartbeat_s = heartbeat_s
        self._connection_state = CONNECTION_DISCONNECTED
        self._http: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader: Optional[asyncio.Task[None]] = None
        self._closing = False
        self._connection_changes: EventChannel[str] = EventChannel("connection")
        self._new_messages: EventChannel[NewMessageEvent] = EventChannel("messages")

    def _set_connection_state(self, state: str) -> None:
        if state == self._connection_state:
            return
        self._connection_state = state
        self._connection_changes.publish(state)

    def get_connection_state(self) -> str:
        return self._connection_state

    async def connect(self) -> None:
        if self._connection_state == CONNECTION_CONNECTED:
            return
        self._closing = False
        await self._close_transport()
        self._set_connection_state(CONNECTION_CONNECTING)
        try:
            await asyncio.wait_for(self._open_transport(), timeout=self.connect_timeout_s)
        except _TRANSPORT_ERRORS as exc:
            logger.warning("Gateway connect to %s failed: %s", self.base_url, exc)
            await self._close_transport()
            self._set_connection_state(CONNECTION_DISCONNECTED)
            raise ConnectionFailure(f"Could not connect to {self.base_url}: {exc}") from exc
        except asyncio.CancelledError:
            await self._close_transport()
            self._set_connection_state(CONNECTION_DISCONNECTED)
            raise
        self._reader = asyncio.create_task(self._read_loop(self._ws))
        self._set_connection_state(CONNECTION_CONNECTED)

    async def _open_transport(self) -> None:
        self._http = aiohttp.ClientSession(headers={"Authorization": f"Bearer {self.auth_token}"})
        ws = await self._http.ws_connect(_build_url(self.base_url, "/v1/ws"), heartbeat=self.heartbeat_s)
        self._ws = ws
        await ws.send_json({"v": 1, "t": "session.start", "body": {"auth_token": self.auth_token}})
        while True:
            msg = await ws.receive()
            if msg.type == aiohttp.WSMsgType.TEXT:
                frame = json.loads(msg.data)
                if frame.get("t") == "session.ready":
                    return
                if frame.get("t") == "error":
                    body = frame.get("body", {})
                    raise ValueError(str(body.get("message", "session rejected")))
            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                raise ValueError("websocket closed before session.ready")

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        try:
            while True:
                msg = await ws.receive()
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        frame = json.loads(msg.data)
                    except json.JSONDecodeError:
                        logger.debug("Ignoring non-JSON websocket frame")
                        continue
                    self._handle_frame(frame)
                elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                    break
        finally:
            if not self._closing:
                logger.info("Gateway websocket closed by peer")
                self._set_connection_state(CONNECTION_DISCONNECTED)

    def _handle_frame(self, frame: Dict[str, Any]) -> None:
        if frame.get("t") != "message.new":
            return
        body = frame.get("body")
        if not isinstance(body, dict) or not isinstance(body.get("message"), dict):
            logger.debug("Dropping malformed message.new frame")
            return
        try:
            message = Message.from_payload(body["message"])
        except (KeyError, TypeError, ValueError):
            logger.debug("Dropping message.new frame with invalid message payload")
            return
        self._new_messages.publish(NewMessageEvent(chat_id=str(body.get("chat_id", "")), message=message))

    async def _close_transport(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._http is not None:
            await self._http.close()
            self._http = None

    async def disconnect(self) -> None:
        self._closing = True
        reader = self._reader
        self._reader = None
        if reader is not None:
            reader.cancel()
        try:
            if reader is not None:
                try:
                    await reader
                except asyncio.CancelledError:
                    pass
        finally:
            await self._close_transport()
            self._set_connection_state(CONNECTION_DISCONNECTED)

    def _require_http(self) -> aiohttp.ClientSession:
        if self._http is None:
            raise ChatServiceError("Gateway chat service is not connected")
        return self._http

    async def _get_json(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        async with self._require_http().get(_build_url(self.base_url, path), params=params) as response:
            response.raise_for_status()
            return await response.json()

    async def _post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with self._require_http().post(_build_url(self.base_url, path), json=payload) as response:
            response.raise_for_status()
            return await response.json()

    async def get_chats(self) -> List[ChatSession]:
        try:
            payload = await self._get_json("/v1/chats")
        except _TRANSPORT_ERRORS as exc:
            raise ChatServiceError(f"Listing chats failed: {exc}") from exc
        return [ChatSession.from_payload(item) for item in payload.get("chats", []) if isinstance(item, dict)]

    async def get_messages(self, chat_id: str, limit: int = 50, before: Optional[int] = None) -> List[Message]:
        params = {"limit": str(limit)}
        if before is not None:
            params["before"] = str(before)
        try:
            payload = await self._get_json(f"/v1/chats/{chat_id}/messages", params)
            items = payload.get("messages", [])
            messages = [Message.from_payload(item) for item in items if isinstance(item, dict)]
        except (*_TRANSPORT_ERRORS, KeyError, TypeError) as exc:
            raise FetchFailure(chat_id, str(exc)) from exc
        messages.sort(key=lambda message: message.id)
        return messages[-limit:] if limit > 0 else []

    async def send_message(self, chat_id: str, text: str) -> Message:
        try:
            payload = await self._post_json(f"/v1/chats/{chat_id}/messages", {"text": text})
            return Message.from_payload(payload)
        except (*_TRANSPORT_ERRORS, KeyError, TypeError) as exc:
            raise SendFailure(chat_id, str(exc)) from exc

    def on_connection_state_change(self, callback: Callable[[str], None]) -> Unsubscribe:
        return self._connection_changes.subscribe(callback)

    def on_new_message(self, callback: Callable[[NewMessageEvent], None]) -> Unsubscribe:
        return self._new_messages.subscribe(callback)
