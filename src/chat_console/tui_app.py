"""Curses front end for the chat console."""

from __future__ import annotations

import argparse
import asyncio
import curses
import logging
from datetime import datetime
from pathlib import Path
from typing import Coroutine, Optional, Sequence, Set

from chat_console.errors import ChatServiceError
from chat_console.models import (
    CONNECTION_CONNECTED,
    CONNECTION_CONNECTING,
    PANEL_CHAT_LIST,
    PANEL_INPUT,
    PANEL_MESSAGES,
    ChatSession,
    Message,
)
from chat_console.service import create_service
from chat_console.session import ConsoleSession
from chat_console.settings import DEFAULT_LOG_FILE, DEFAULT_SETTINGS_FILE, load_console_settings
from chat_console.tui_model import (
    ACTION_LOAD_OLDER,
    ACTION_QUIT,
    ACTION_SELECT_CHAT,
    ACTION_SEND,
    RenderState,
    TuiModel,
)

logger = logging.getLogger(__name__)

APP_TITLE = "chat-console"
KEY_HINTS = "[↑↓: Navigate] [Enter: Select] [Tab: Focus] [q/Ctrl+C: Exit]"
POLL_INTERVAL_S = 0.05


def _normalize_key(key: int) -> tuple[str, str | None]:
    if key in (curses.KEY_BTAB, 353):  # shift-tab variations
        return "SHIFT_TAB", None
    if key in (getattr(curses, "KEY_TAB", 9), 9):
        return "TAB", None
    if key == curses.KEY_UP:
        return "UP", None
    if key == curses.KEY_DOWN:
        return "DOWN", None
    if key in (curses.KEY_ENTER, 10, 13):
        return "ENTER", None
    if key in (curses.KEY_BACKSPACE, 127, 8):
        return "BACKSPACE", None
    if key in (getattr(curses, "KEY_DC", 330), 330):
        return "DELETE", None
    if key == 3:  # ctrl-c when raw mode swallows SIGINT
        return "CTRL_C", None
    if key == 27:
        return "ESC", None
    if 32 <= key <= 126:
        return "CHAR", chr(key)
    return "UNKNOWN", None


def status_text(connection_state: str) -> str:
    if connection_state == CONNECTION_CONNECTED:
        return "Connected"
    if connection_state == CONNECTION_CONNECTING:
        return "Connecting..."
    return "Disconnected"


def format_time(timestamp: datetime) -> str:
    return timestamp.strftime("%H:%M")


def format_message(message: Message) -> str:
    sender = "You" if message.is_outgoing else message.sender_name
    return f"[{format_time(message.timestamp)}] {sender}: {message.text}"


def format_chat_row(chat: ChatSession) -> str:
    marker = "#" if chat.is_group else "@"
    if chat.unread_count:
        return f"{marker} {chat.title} ({chat.unread_count})"
    return f"{marker} {chat.title}"


def message_view_lines(render: RenderState) -> list[str]:
    """Lines for the message panel body, scroll indicators included."""

    if render.selected_chat_title is None:
        return ["Select a chat to start"]
    window = render.window
    lines: list[str] = []
    if render.loading_older:
        lines.append("  loading older messages...")
    if window.show_scroll_up:
        lines.append(f"  ↑ {window.earlier_count} earlier")
    lines.extend(format_message(message) for message in window.items)
    if window.show_scroll_down:
        lines.append(f"  ↓ {window.more_count} more")
    return lines


def message_view_title(render: RenderState, visible_items: int) -> str:
    title = render.selected_chat_title or ""
    if render.window.total > visible_items:
        title += f" ({render.window.selected_index + 1}/{render.window.total})"
    return title


def _render_text(window: curses.window, y: int, x: int, text: str, attr: int = 0) -> None:
    max_y, max_x = window.getmaxyx()
    if 0 <= y < max_y and x < max_x - 1:
        window.addnstr(y, x, text, max_x - x - 1, attr)


def draw_screen(stdscr: curses.window, model: TuiModel) -> None:
    stdscr.erase()
    max_y, max_x = stdscr.getmaxyx()
    render = model.render()
    left_width = min(32, max(20, max_x // 3))
    right_start = left_width + 1

    _render_text(stdscr, 0, 1, APP_TITLE, curses.A_BOLD)
    stdscr.hline(1, 0, curses.ACS_HLINE, max_x)

    list_attr = curses.A_BOLD if render.focus_area == PANEL_CHAT_LIST else 0
    _render_text(stdscr, 2, 1, "Chats", list_attr)
    for row, chat in enumerate(render.chats):
        attr = 0
        if row == render.chat_cursor and render.focus_area == PANEL_CHAT_LIST:
            attr = curses.A_REVERSE
        elif chat.id == render.selected_chat_id:
            attr = curses.A_BOLD
        _render_text(stdscr, 3 + row, 1, format_chat_row(chat), attr)
    stdscr.vline(2, left_width, curses.ACS_VLINE, max(1, max_y - 5))

    view_attr = curses.A_BOLD if render.focus_area == PANEL_MESSAGES else 0
    _render_text(stdscr, 2, right_start + 1, message_view_title(render, model.visible_items), view_attr)
    window = render.window
    y = 3
    for line in message_view_lines(render):
        _render_text(stdscr, y, right_start + 1, line)
        y += 1
    if render.focus_area == PANEL_MESSAGES and window.items:
        row = window.selected_index - window.adjusted_start
        if 0 <= row < len(window.items):
            offset = 3 + (1 if render.loading_older else 0) + (1 if window.show_scroll_up else 0)
            _render_text(stdscr, offset + row, right_start + 1, format_message(window.items[row]), curses.A_REVERSE)

    compose_y = max_y - 3
    stdscr.hline(compose_y - 1, 0, curses.ACS_HLINE, max_x)
    compose_attr = curses.A_REVERSE if render.focus_area == PANEL_INPUT else 0
    placeholder = "Type a message..." if render.selected_chat_id else "Select a chat first"
    _render_text(stdscr, compose_y, 1, f"> {render.compose_text or placeholder}", compose_attr)

    status = f"[Status: {status_text(render.connection_state)}] {KEY_HINTS}"
    _render_text(stdscr, max_y - 1, 1, status)
    if render.status_line:
        _render_text(stdscr, max_y - 2, 1, render.status_line, curses.A_DIM)
    stdscr.refresh()


class _TaskRunner:
    """Runs session operations in the background and reports failures to the status line."""

    def __init__(self, model: TuiModel) -> None:
        self.model = model
        self._tasks: Set[asyncio.Task[object]] = set()

    def spawn(self, coro: Coroutine[object, object, object], label: str) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)

        def _done(finished: asyncio.Task[object]) -> None:
            self._tasks.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if exc is None:
                return
            logger.warning("%s failed: %s", label, exc)
            self.model.status_line = f"{label} failed: {exc}"

        task.add_done_callback(_done)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


async def _send(model: TuiModel, text: str) -> None:
    message = await model.session.send_message(text)
    if message is not None:
        model.status_line = ""


async def run_console(stdscr: curses.window, session: ConsoleSession) -> None:
    model = TuiModel(session)
    runner = _TaskRunner(model)
    stdscr.nodelay(True)
    stdscr.keypad(True)
    runner.spawn(session.start(), "Connect")
    try:
        while True:
            draw_screen(stdscr, model)
            key = stdscr.getch()
            if key == -1:
                await asyncio.sleep(POLL_INTERVAL_S)
                continue
            name, char = _normalize_key(key)
            action = model.handle_key(name, char)
            if action == ACTION_QUIT:
                break
            if action == ACTION_SELECT_CHAT:
                chat_id = model.highlighted_chat_id()
                if chat_id is not None:
                    runner.spawn(session.select_chat(chat_id), "Loading chat")
            elif action == ACTION_SEND:
                runner.spawn(_send(model, model.take_compose_text()), "Send")
            elif action == ACTION_LOAD_OLDER:
                runner.spawn(session.load_older(), "Loading older messages")
    finally:
        await runner.cancel_all()
        try:
            await session.stop()
        except ChatServiceError as exc:
            logger.warning("Disconnect failed: %s", exc)


def _configure_logging(log_file: Path, verbose: bool) -> None:
    logging.basicConfig(
        filename=str(log_file),
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("asyncio").setLevel(logging.ERROR)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chat-console", description="Terminal chat client")
    parser.add_argument("--mock", action="store_true", help="use the in-memory mock chat service")
    parser.add_argument("--settings", default=str(DEFAULT_SETTINGS_FILE), help="settings JSON path")
    parser.add_argument("--log-file", default=str(DEFAULT_LOG_FILE), help="log output path")
    parser.add_argument("--verbose", action="store_true", help="log at debug level")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(Path(args.log_file).expanduser(), args.verbose)
    settings = load_console_settings(args.settings)
    service = create_service(settings, use_mock=True if args.mock else None)
    session = ConsoleSession(
        service,
        page_size=settings.page_size,
        connect_timeout_s=settings.connect_timeout_s,
        fetch_timeout_s=settings.fetch_timeout_s,
    )

    def _runner(stdscr: curses.window) -> None:
        curses.curs_set(0)
        asyncio.run(run_console(stdscr, session))

    try:
        curses.wrapper(_runner)
    except KeyboardInterrupt:
        return 130
    return 0
