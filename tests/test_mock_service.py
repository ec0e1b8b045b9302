import unittest

from chat_console.mock_service import MOCK_CHATS, MockChatService
from chat_console.service import ChatService, create_service
from chat_console.settings import ConsoleSettings


class MockChatServiceTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.service = MockChatService(connect_delay_s=0.01)

    def test_satisfies_protocol(self):
        self.assertIsInstance(self.service, ChatService)

    def test_starts_disconnected(self):
        self.assertEqual(self.service.get_connection_state(), "disconnected")

    async def test_connect_emits_connecting_then_connected(self):
        states = []
        self.service.on_connection_state_change(states.append)
        await self.service.connect()
        self.assertEqual(states, ["connecting", "connected"])
        self.assertEqual(self.service.get_connection_state(), "connected")

        await self.service.connect()
        self.assertEqual(states, ["connecting", "connected", "connecting", "connected"])

    async def test_disconnect(self):
        states = []
        await self.service.connect()
        self.service.on_connection_state_change(states.append)
        await self.service.disconnect()
        self.assertEqual(states, ["disconnected"])
        self.assertEqual(self.service.get_connection_state(), "disconnected")

    async def test_unsubscribe_stops_callbacks(self):
        states = []
        unsubscribe = self.service.on_connection_state_change(states.append)
        unsubscribe()
        await self.service.connect()
        self.assertEqual(states, [])

    async def test_get_chats_returns_preset_copy(self):
        chats = await self.service.get_chats()
        self.assertEqual([chat.title for chat in chats], ["John Doe", "Jane Smith", "Work Group", "Family"])
        chats.clear()
        self.assertEqual(len(await self.service.get_chats()), len(MOCK_CHATS))

    async def test_get_messages_returns_tail(self):
        messages = await self.service.get_messages("1", limit=2)
        self.assertEqual([message.id for message in messages], [2, 3])
        self.assertEqual(await self.service.get_messages("unknown"), [])

    async def test_get_messages_before_cursor(self):
        messages = await self.service.get_messages("1", limit=50, before=3)
        self.assertEqual([message.id for message in messages], [1, 2])

    async def test_send_message(self):
        message = await self.service.send_message("1", "Hello world")
        self.assertEqual(message.text, "Hello world")
        self.assertTrue(message.is_outgoing)
        self.assertEqual(message.id, 4)
        history = await self.service.get_messages("1")
        self.assertEqual(history[-1], message)

    async def test_send_ids_are_unique(self):
        first = await self.service.send_message("new", "a")
        second = await self.service.send_message("new", "b")
        self.assertLess(first.id, second.id)

    async def test_push_incoming_publishes(self):
        events = []
        self.service.on_new_message(events.append)
        message = self.service.push_incoming("2", "ping", sender_name="Jane")
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].chat_id, "2")
        self.assertEqual(events[0].message, message)
        self.assertFalse(message.is_outgoing)

    def test_instances_do_not_share_history(self):
        other = MockChatService()
        self.service._messages["1"].clear()
        self.assertEqual(len(other._messages["1"]), 3)


class CreateServiceTests(unittest.TestCase):
    def test_mock_flag_selects_mock(self):
        self.assertIsInstance(create_service(ConsoleSettings(), use_mock=True), MockChatService)

    def test_settings_flag_is_fallback(self):
        self.assertIsInstance(create_service(ConsoleSettings(use_mock=True)), MockChatService)

    def test_gateway_is_default(self):
        from chat_console.gateway_service import GatewayChatService

        service = create_service(ConsoleSettings(gateway_base_url="http://example.invalid"))
        self.assertIsInstance(service, GatewayChatService)
        self.assertEqual(service.base_url, "http://example.invalid")


if __name__ == "__main__":
    unittest.main()
