import asyncio

import pytest

from client.chat.models import Partner
from client.realtime import transport
from client.realtime.channel_client import ChannelClient
from client.realtime.states import ChannelState
from client.realtime.transport import ConnectionManager, RealtimeConnection, TransportError
from client.session.state import SessionState
from tests.fakes import FakeChatService, FakeWebSocket, channel_message

URL = "ws://test/ws/realtime"
CHANNEL = "chat-u1-u2"


class FakeRealtimeServer:
    """Hands out a fresh FakeWebSocket per connect"""

    def __init__(self):
        self.urls = []
        self.sockets = []
        self.refuse = None

    async def connect(self, url, **kwargs):
        if self.refuse:
            raise self.refuse
        self.urls.append(url)
        socket = FakeWebSocket()
        self.sockets.append(socket)
        return socket

    @property
    def socket(self) -> FakeWebSocket:
        return self.sockets[-1]


@pytest.fixture
def server(monkeypatch):
    fake = FakeRealtimeServer()
    monkeypatch.setattr(transport.websockets, "connect", fake.connect)
    return fake


@pytest.fixture
async def connection(server):
    conn = RealtimeConnection(URL, lambda: "token")
    await conn.connect()
    yield conn
    await conn.close()


async def wait_until(condition):
    async def _poll():
        while not condition():
            await asyncio.sleep(0)
    await asyncio.wait_for(_poll(), 1)


async def test_connect_requires_token(server):
    conn = RealtimeConnection(URL, lambda: None)

    with pytest.raises(TransportError, match="Not logged in"):
        await conn.connect()
    assert server.urls == []


async def test_connect_error_becomes_transport_error(server):
    server.refuse = OSError("connection refused")
    conn = RealtimeConnection(URL, lambda: "token")

    with pytest.raises(TransportError, match="connection refused"):
        await conn.connect()
    assert not conn.connected


async def test_token_is_passed_in_query(server):
    conn = RealtimeConnection(URL, lambda: "a b/c")
    await conn.connect()

    assert server.urls == [f"{URL}?access_token=a%20b/c"]
    await conn.close()


async def test_attach_publish_and_history(server, connection):
    channel = connection.get_channel(CHANNEL)
    server.socket.items = [channel_message("m2", "second"), channel_message("m1", "first")]

    await channel.attach()
    message_id = await channel.publish("message", {"text": "Is it available?"})
    items = await channel.history(10)

    assert channel.state == "attached"
    assert message_id == "msg-1"
    assert [item["id"] for item in items] == ["m2", "m1"]
    assert [frame["action"] for frame in server.socket.sent] == ["attach", "publish", "history"]
    assert [frame["id"] for frame in server.socket.sent] == ["1", "2", "3"]
    assert server.socket.sent[2]["limit"] == 10
    assert connection._pending == {}


async def test_replies_are_matched_by_id(server, connection):
    socket = server.socket
    socket.silent = {"history"}
    first = asyncio.create_task(connection.get_channel("chat-u1-u2").history())
    second = asyncio.create_task(connection.get_channel("chat-u1-u3").history())
    await wait_until(lambda: len(socket.sent) == 2)

    by_channel = {frame["channel"]: frame["id"] for frame in socket.sent}
    socket.push({"id": by_channel["chat-u1-u3"], "action": "history", "items": [channel_message("z1", "to zoe")]})
    socket.push({"id": by_channel["chat-u1-u2"], "action": "history", "items": [channel_message("y1", "to yvonne")]})

    assert [item["id"] for item in await first] == ["y1"]
    assert [item["id"] for item in await second] == ["z1"]


async def test_error_frame_fails_only_that_request(server, connection):
    channel = connection.get_channel("chat-u1-u3")
    states = []
    channel.on_state_change(lambda state, reason: states.append((state, reason)))
    server.socket.rejected["attach"] = "Not authorized for channel chat-u1-u3"

    with pytest.raises(TransportError, match="Not authorized"):
        await channel.attach()

    assert channel.state == "failed"
    assert states == [("attaching", None), ("failed", "Not authorized for channel chat-u1-u3")]
    assert connection.connected

    server.socket.rejected.clear()
    await channel.attach()
    assert channel.state == "attached"


async def test_message_frames_reach_subscribers(server, connection):
    channel = connection.get_channel(CHANNEL)
    received = []

    def broken_listener(message):
        raise RuntimeError("listener bug")

    channel.subscribe(broken_listener)
    channel.subscribe(received.append)
    await channel.attach()

    server.socket.push_raw("not json")
    server.socket.push({"id": None, "action": "message", "channel": "chat-u1-u3", "message": channel_message("z1", "elsewhere")})
    await channel.publish("message", {"text": "hello"})

    assert [message["id"] for message in received] == ["msg-1"]
    assert received[0]["data"] == {"text": "hello"}


async def test_connection_loss_fails_pending_and_suspends(server, connection):
    channel = connection.get_channel(CHANNEL)
    await channel.attach()
    states = []
    channel.on_state_change(lambda state, reason: states.append((state, reason)))
    server.socket.silent = {"history"}

    pending = asyncio.create_task(channel.history())
    await wait_until(lambda: len(server.socket.sent) == 2)
    server.socket.drop()

    with pytest.raises(TransportError, match="Connection closed by server"):
        await asyncio.wait_for(pending, 1)
    assert channel.state == "suspended"
    assert states == [("suspended", "Connection closed by server")]
    assert not connection.connected
    assert connection._pending == {}

    with pytest.raises(TransportError, match="Not connected"):
        await channel.history()

    await connection.connect()
    await channel.attach()
    assert channel.state == "attached"
    assert len(server.sockets) == 2


async def test_close_fails_pending_and_detaches(server):
    conn = RealtimeConnection(URL, lambda: "token")
    await conn.connect()
    channel = conn.get_channel(CHANNEL)
    await channel.attach()
    server.socket.silent = {"history"}

    pending = asyncio.create_task(channel.history())
    await wait_until(lambda: len(server.socket.sent) == 2)
    await conn.close()

    with pytest.raises(TransportError, match="Connection closed"):
        await pending
    assert server.socket.closed
    assert channel.state == "detached"
    assert not conn.connected


async def test_detach_skips_request_when_disconnected(server):
    conn = RealtimeConnection(URL, lambda: "token")
    channel = conn.get_channel(CHANNEL)

    await channel.detach()

    assert channel.state == "detached"
    assert server.sockets == []


async def test_manager_shares_one_connection(server):
    manager = ConnectionManager(lambda: RealtimeConnection(URL, lambda: "token"))

    first, second = await asyncio.gather(manager.acquire(), manager.acquire())

    assert first is second
    assert len(server.sockets) == 1
    await manager.release_if_unused()


async def test_manager_closes_only_when_unused(server):
    manager = ConnectionManager(lambda: RealtimeConnection(URL, lambda: "token"))
    conn = await manager.acquire()
    channel = conn.get_channel(CHANNEL)
    await channel.attach()

    assert await manager.release_if_unused() is False

    def listener(message):
        pass

    await channel.detach()
    channel.subscribe(listener)
    assert await manager.release_if_unused() is False

    channel.unsubscribe(listener)
    conn.release_channel(CHANNEL)
    assert CHANNEL not in conn.channels
    assert await manager.release_if_unused() is True
    assert server.sockets[0].closed
    assert manager.connection is None

    assert await manager.acquire() is not conn
    assert len(server.sockets) == 2
    await manager.release_if_unused()


async def test_manager_reconnects_after_loss(server):
    manager = ConnectionManager(lambda: RealtimeConnection(URL, lambda: "token"))
    conn = await manager.acquire()
    server.socket.drop()
    await wait_until(lambda: not conn.connected)

    assert await manager.acquire() is conn
    assert conn.connected
    assert len(server.sockets) == 2
    await manager.release_if_unused()


async def test_channel_client_over_real_transport(server):
    manager = ConnectionManager(lambda: RealtimeConnection(URL, lambda: "token"))
    chat_service = FakeChatService()
    client = ChannelClient(
        SessionState(access_token="token", user_id="u1", email="x@example.com", name="Xavier"),
        Partner(user_id="u2", name="Yvonne", email="y@example.com"),
        connections=manager,
        chat_service=chat_service,
        attach_timeout=1.0,
        max_attempts=1,
        history_limit=20,
    )

    assert await client.open() is ChannelState.ATTACHED
    assert await client.send("Is the flat still available?") is True

    # The channel echo and the publish reply carry the same id
    assert [message.id for message in client.transcript.messages] == ["msg-1"]
    assert chat_service.sent == [{"partnerEmail": "y@example.com", "content": "Is the flat still available?"}]

    await client.close()
    assert [frame["action"] for frame in server.socket.sent] == ["attach", "history", "publish", "detach"]
    assert server.socket.closed
    assert manager.connection is None
