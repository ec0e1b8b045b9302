import unittest
from datetime import datetime

from chat_console.models import PANEL_CHAT_LIST, PANEL_INPUT, PANEL_MESSAGES
from chat_console.session import ConsoleSession
from chat_console.state import SetHasMoreMessages, SetLoadingOlderMessages, SetMessages
from chat_console.tui_app import (
    _normalize_key,
    format_chat_row,
    format_message,
    message_view_lines,
    message_view_title,
    status_text,
)
from chat_console.tui_model import ACTION_LOAD_OLDER, ACTION_QUIT, ACTION_SELECT_CHAT, ACTION_SEND, TuiModel
from tests.helpers import ScriptedService, make_chat, make_message


def _history(count: int) -> list:
    return [make_message(msg_id) for msg_id in range(1, count + 1)]


class TuiModelTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.service = ScriptedService({"1": _history(20), "2": _history(2)})
        self.session = ConsoleSession(self.service, page_size=20)
        await self.session.start()
        self.model = TuiModel(self.session)

    async def test_focus_cycles_with_tab(self):
        self.assertEqual(self.model.render().focus_area, PANEL_CHAT_LIST)
        self.model.handle_key("TAB")
        self.assertEqual(self.model.render().focus_area, PANEL_MESSAGES)
        self.model.handle_key("TAB")
        self.assertEqual(self.model.render().focus_area, PANEL_INPUT)
        self.model.handle_key("TAB")
        self.assertEqual(self.model.render().focus_area, PANEL_CHAT_LIST)
        self.model.handle_key("SHIFT_TAB")
        self.assertEqual(self.model.render().focus_area, PANEL_INPUT)

    async def test_chat_navigation_and_selection(self):
        self.model.handle_key("DOWN")
        self.model.handle_key("DOWN")
        self.assertEqual(self.model.render().chat_cursor, 1)
        self.assertEqual(self.model.handle_key("ENTER"), ACTION_SELECT_CHAT)
        self.assertEqual(self.model.highlighted_chat_id(), "2")
        await self.session.select_chat("2")
        render = self.model.render()
        self.assertEqual(render.focus_area, PANEL_MESSAGES)
        self.assertEqual(render.selected_chat_title, "chat 2")

    async def test_quit_outside_input(self):
        self.assertEqual(self.model.handle_key("CHAR", "q"), ACTION_QUIT)
        self.assertEqual(self.model.handle_key("CTRL_C"), ACTION_QUIT)

    async def test_compose_and_send(self):
        await self.session.select_chat("2")
        self.session.focus(PANEL_INPUT)
        self.assertIsNone(self.model.handle_key("ENTER"))
        for char in "hq":
            self.model.handle_key("CHAR", char)
        self.assertEqual(self.model.render().compose_text, "hq")
        self.model.handle_key("BACKSPACE")
        self.assertEqual(self.model.handle_key("ENTER"), ACTION_SEND)
        self.assertEqual(self.model.take_compose_text(), "h")
        self.assertEqual(self.model.compose_text, "")

    async def test_message_cursor_follows_tail(self):
        await self.session.select_chat("1")
        window = self.model.render().window
        self.assertEqual(window.selected_index, 19)
        self.assertTrue(window.show_scroll_up)
        self.assertFalse(window.show_scroll_down)

    async def test_message_cursor_moves_and_requests_older(self):
        await self.session.select_chat("1")
        self.session.store.dispatch(SetHasMoreMessages("1", True))
        for _ in range(19):
            self.assertIsNone(self.model.handle_key("UP"))
        self.assertEqual(self.model.render().window.selected_index, 0)
        self.assertEqual(self.model.handle_key("UP"), ACTION_LOAD_OLDER)

        self.session.store.dispatch(SetLoadingOlderMessages("1", True))
        self.assertIsNone(self.model.handle_key("UP"))

    async def test_cursor_survives_prepend(self):
        session = ConsoleSession(self.service, page_size=10)
        await session.start()
        model = TuiModel(session)
        await session.select_chat("1")
        self.assertEqual(len(session.state.messages["1"]), 10)
        model.handle_key("UP")
        self.assertEqual(session.state.messages["1"][model.selected_message_index()].id, 19)
        await session.load_older()
        self.assertEqual(len(session.state.messages["1"]), 20)
        index = model.selected_message_index()
        self.assertEqual(index, 18)
        self.assertEqual(session.state.messages["1"][index].id, 19)

    async def test_initial_messages_are_replaced_only_when_empty(self):
        self.session.store.dispatch(SetMessages("2", (make_message(2),)))
        await self.session.select_chat("2")
        self.assertEqual([m.id for m in self.session.state.messages["2"]], [1, 2])


class FormattingTests(unittest.TestCase):
    def test_status_text(self):
        self.assertEqual(status_text("connected"), "Connected")
        self.assertEqual(status_text("connecting"), "Connecting...")
        self.assertEqual(status_text("disconnected"), "Disconnected")

    def test_format_message(self):
        message = make_message(1, "hello")
        self.assertEqual(format_message(message), "[10:01] Peer: hello")
        outgoing = make_message(2, "hi", outgoing=True)
        self.assertEqual(format_message(outgoing), "[10:02] You: hi")

    def test_format_chat_row(self):
        self.assertEqual(format_chat_row(make_chat("1", "Work", unread=3, is_group=True)), "# Work (3)")
        self.assertEqual(format_chat_row(make_chat("2", "Jane")), "@ Jane")

    def test_normalize_key(self):
        self.assertEqual(_normalize_key(9), ("TAB", None))
        self.assertEqual(_normalize_key(10), ("ENTER", None))
        self.assertEqual(_normalize_key(ord("a")), ("CHAR", "a"))
        self.assertEqual(_normalize_key(3), ("CTRL_C", None))


class MessageViewTests(unittest.IsolatedAsyncioTestCase):
    async def test_empty_selection_placeholder(self):
        session = ConsoleSession(ScriptedService())
        render = TuiModel(session).render()
        self.assertEqual(message_view_lines(render), ["Select a chat to start"])

    async def test_dangling_selection_placeholder(self):
        session = ConsoleSession(ScriptedService({"x": _history(1)}))
        await session.select_chat("x")
        render = TuiModel(session).render()
        self.assertIsNone(render.selected_chat_title)
        self.assertEqual(message_view_lines(render), ["Select a chat to start"])

    async def test_indicators_and_position(self):
        service = ScriptedService({"1": [make_message(i, f"m{i}") for i in range(1, 21)]})
        session = ConsoleSession(service)
        await session.start()
        await session.select_chat("1")
        model = TuiModel(session)
        render = model.render()
        lines = message_view_lines(render)
        self.assertEqual(lines[0], "  ↑ 6 earlier")
        self.assertEqual(len(lines), 15)
        self.assertTrue(lines[-1].endswith("m20"))
        self.assertEqual(message_view_title(render, model.visible_items), "chat 1 (20/20)")
        self.assertEqual(render.window.start, 5)
        self.assertIsInstance(render.window.items[0].timestamp, datetime)


if __name__ == "__main__":
    unittest.main()
