import asyncio
import unittest

from formpulse.channel import (
    JOIN_MESSAGE,
    LEAVE_MESSAGE,
    UPDATE_EVENT,
    AnalyticsChannel,
    ConnectionState,
    TransportClosed,
)

RETRY_DELAY = 0.05


class FakeTransport:
    def __init__(self):
        self.sent = []
        self.inbox = asyncio.Queue()
        self.closed = False

    async def send(self, message):
        self.sent.append(message)

    async def receive(self):
        item = await self.inbox.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self):
        self.closed = True

    def push(self, message):
        self.inbox.put_nowait(message)

    def kinds(self):
        return [(item["type"], item["form_id"]) for item in self.sent]


class FakeConnector:
    def __init__(self):
        self.transports = []
        self.fail = False

    async def __call__(self):
        if self.fail:
            raise OSError("connection refused")
        transport = FakeTransport()
        self.transports.append(transport)
        return transport

    @property
    def current(self):
        return self.transports[-1]


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


class AnalyticsChannelTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.connector = FakeConnector()
        self.channel = AnalyticsChannel(self.connector, retry_delay=RETRY_DELAY)
        self.received = []
        self.channel.on(UPDATE_EVENT, self.received.append)

    async def asyncTearDown(self):
        await self.channel.close()

    async def test_open_connects_without_joining(self):
        await self.channel.open()
        self.assertIs(self.channel.state, ConnectionState.CONNECTED)
        self.assertFalse(self.channel.joined)
        self.assertEqual(self.connector.current.sent, [])

    async def test_known_room_is_joined_on_connect(self):
        await self.channel.join("A")
        self.assertEqual(self.channel.room_key, "A")
        await self.channel.open()
        self.assertEqual(self.connector.current.kinds(), [(JOIN_MESSAGE, "A")])
        self.assertTrue(self.channel.retry_pending)

    async def test_retry_sends_one_more_join_then_assumes_joined(self):
        await self.channel.open()
        await self.channel.join("A")
        await asyncio.sleep(RETRY_DELAY * 4)
        self.assertEqual(
            self.connector.current.kinds(),
            [(JOIN_MESSAGE, "A"), (JOIN_MESSAGE, "A")],
        )
        self.assertTrue(self.channel.joined)
        self.assertFalse(self.channel.retry_pending)

    async def test_update_before_retry_cancels_it(self):
        await self.channel.open()
        await self.channel.join("A")
        self.connector.current.push(
            {"type": UPDATE_EVENT, "form_id": "A", "analytics": {"total_responses": 1}}
        )
        await settle()
        self.assertTrue(self.channel.joined)
        self.assertFalse(self.channel.retry_pending)
        await asyncio.sleep(RETRY_DELAY * 4)
        self.assertEqual(self.connector.current.kinds(), [(JOIN_MESSAGE, "A")])
        self.assertEqual(self.received[0]["analytics"], {"total_responses": 1})

    async def test_join_ack_confirms_membership(self):
        await self.channel.open()
        await self.channel.join("A")
        self.connector.current.push({"type": "analytics-joined", "form_id": "A"})
        await settle()
        self.assertTrue(self.channel.joined)
        await asyncio.sleep(RETRY_DELAY * 4)
        self.assertEqual(self.connector.current.kinds(), [(JOIN_MESSAGE, "A")])

    async def test_switching_rooms_leaves_old_room_first(self):
        await self.channel.open()
        await self.channel.join("A")
        await self.channel.join("B")
        self.assertEqual(
            self.connector.current.kinds(),
            [(JOIN_MESSAGE, "A"), (LEAVE_MESSAGE, "A"), (JOIN_MESSAGE, "B")],
        )
        await asyncio.sleep(RETRY_DELAY * 4)
        kinds = self.connector.current.kinds()
        self.assertEqual(kinds.count((LEAVE_MESSAGE, "A")), 1)
        self.assertEqual(kinds.count((JOIN_MESSAGE, "A")), 1)
        self.assertEqual(kinds[-1], (JOIN_MESSAGE, "B"))
        self.assertEqual(self.channel.room_key, "B")

    async def test_duplicate_join_is_ignored(self):
        await self.channel.open()
        await self.channel.join("A")
        await self.channel.join("A")
        self.assertEqual(self.connector.current.kinds(), [(JOIN_MESSAGE, "A")])

    async def test_updates_for_other_rooms_are_ignored(self):
        await self.channel.open()
        await self.channel.join("A")
        self.connector.current.push({"type": UPDATE_EVENT, "form_id": "B", "analytics": {}})
        await settle()
        self.assertEqual(self.received, [])
        self.assertFalse(self.channel.joined)

    async def test_handler_is_replaced_on_register(self):
        other = []
        self.channel.on(UPDATE_EVENT, other.append)
        await self.channel.open()
        await self.channel.join("A")
        self.connector.current.push({"type": UPDATE_EVENT, "form_id": "A", "analytics": {}})
        await settle()
        self.assertEqual(self.received, [])
        self.assertEqual(len(other), 1)

    async def test_failing_handler_does_not_stop_reader(self):
        def broken(message):
            raise RuntimeError("boom")

        self.channel.on("form-update", broken)
        await self.channel.open()
        await self.channel.join("A")
        self.connector.current.push({"type": "form-update", "form_id": "A", "form": {}})
        self.connector.current.push({"type": UPDATE_EVENT, "form_id": "A", "analytics": {}})
        await settle()
        self.assertEqual(len(self.received), 1)

    async def test_leave_sends_leave_and_clears_state(self):
        await self.channel.open()
        await self.channel.join("A")
        await self.channel.leave()
        self.assertEqual(
            self.connector.current.kinds(),
            [(JOIN_MESSAGE, "A"), (LEAVE_MESSAGE, "A")],
        )
        self.assertFalse(self.channel.joined)
        self.assertIsNone(self.channel.room_key)
        self.assertFalse(self.channel.retry_pending)
        await asyncio.sleep(RETRY_DELAY * 4)
        self.assertEqual(len(self.connector.current.sent), 2)

    async def test_leave_clears_update_handler(self):
        await self.channel.open()
        await self.channel.join("A")
        await self.channel.leave()
        await self.channel.join("A")
        self.connector.current.push({"type": UPDATE_EVENT, "form_id": "A", "analytics": {}})
        await settle()
        self.assertEqual(self.received, [])
        self.assertTrue(self.channel.joined)

    async def test_transport_close_disconnects_and_reopen_rejoins(self):
        await self.channel.open()
        await self.channel.join("A")
        first = self.connector.current
        first.push(TransportClosed("gone"))
        await settle()
        self.assertIs(self.channel.state, ConnectionState.DISCONNECTED)
        self.assertFalse(self.channel.joined)
        self.assertFalse(self.channel.retry_pending)
        self.assertEqual(self.channel.room_key, "A")

        await self.channel.open()
        self.assertIsNot(self.connector.current, first)
        self.assertEqual(self.connector.current.kinds(), [(JOIN_MESSAGE, "A")])

    async def test_connect_failure_leaves_channel_disconnected(self):
        self.connector.fail = True
        with self.assertLogs("formpulse.channel", level="ERROR"):
            await self.channel.open()
        self.assertIs(self.channel.state, ConnectionState.DISCONNECTED)

    async def test_close_sends_leave_and_closes_transport(self):
        await self.channel.open()
        await self.channel.join("A")
        transport = self.connector.current
        await self.channel.close()
        self.assertEqual(transport.kinds()[-1], (LEAVE_MESSAGE, "A"))
        self.assertTrue(transport.closed)
        self.assertIs(self.channel.state, ConnectionState.DISCONNECTED)

    async def test_close_during_pending_connect_discards_transport(self):
        release = asyncio.Event()
        transport = FakeTransport()

        async def slow_connector():
            await release.wait()
            return transport

        channel = AnalyticsChannel(slow_connector, retry_delay=RETRY_DELAY)
        await channel.join("A")
        opening = asyncio.create_task(channel.open())
        await settle()
        self.assertIs(channel.state, ConnectionState.CONNECTING)

        await channel.close()
        release.set()
        await opening

        self.assertIs(channel.state, ConnectionState.DISCONNECTED)
        self.assertTrue(transport.closed)
        self.assertEqual(transport.sent, [])
        self.assertFalse(channel.retry_pending)

    async def test_connected_event_records_client_id(self):
        await self.channel.open()
        self.connector.current.push({"type": "connected", "client_id": "c-1"})
        await settle()
        self.assertEqual(self.channel.client_id, "c-1")


if __name__ == "__main__":
    unittest.main()
