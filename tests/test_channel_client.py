import asyncio

import pytest

from client.api.base_service import APIError
from client.chat.models import Partner
from client.realtime import channel_client as channel_client_module
from client.realtime.channel_client import (
    CONNECT_FAILED,
    CONNECTION_LOST,
    EMPTY_MESSAGE,
    SEND_FAILED,
    SESSION_EXPIRED,
    ChannelClient,
)
from client.realtime.states import ChannelState
from client.session.state import SessionState
from tests.fakes import (
    FakeChatService,
    FakeConnectionManager,
    channel_message,
    transport_error,
)

CHANNEL = "chat-u1-u2"


@pytest.fixture(autouse=True)
def clear_attach_guard():
    channel_client_module._attaching.clear()
    yield
    channel_client_module._attaching.clear()


@pytest.fixture
def user():
    return SessionState(access_token="token", user_id="u1", email="x@example.com", name="Xavier")


@pytest.fixture
def partner():
    return Partner(user_id="u2", name="Yvonne", email="y@example.com")


@pytest.fixture
def connections():
    return FakeConnectionManager()


@pytest.fixture
def channel(connections):
    return connections.connection.get_channel(CHANNEL)


@pytest.fixture
def chat_service():
    return FakeChatService()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_client(user, partner, connections, chat_service, sleeps):
    async def fake_sleep(delay):
        sleeps.append(delay)

    def _make_client(**overrides):
        options = dict(
            connections=connections,
            chat_service=chat_service,
            attach_timeout=1.0,
            max_attempts=4,
            backoff_base=1.0,
            backoff_max=8.0,
            history_limit=50,
            sleep=fake_sleep,
        )
        options.update(overrides)
        return ChannelClient(user, partner, **options)

    return _make_client


async def settle(client):
    while client._background:
        await asyncio.gather(*list(client._background), return_exceptions=True)


def test_channel_name_is_canonical(make_client):
    assert make_client().channel_name == CHANNEL


async def test_three_failures_then_success(make_client, channel, sleeps):
    channel.attach_outcomes = [transport_error(), transport_error(), transport_error(), None]
    client = make_client()

    state = await client.open()

    assert state is ChannelState.ATTACHED
    assert client.attach_attempts == 4
    assert channel.attach_calls == 4
    assert sleeps == [1.0, 2.0, 4.0]
    assert client.transcript.status is None
    assert client.transcript.loading is False


async def test_retries_exhausted(make_client, channel, sleeps):
    channel.attach_outcomes = [transport_error() for _ in range(4)]
    client = make_client()

    state = await client.open()

    assert state is ChannelState.FAILED
    assert client.attach_attempts == 4
    assert channel.attach_calls == 4
    assert sleeps == [1.0, 2.0, 4.0]
    assert client.transcript.status == CONNECT_FAILED
    assert client.transcript.loading is False


async def test_backoff_is_capped(make_client, channel, sleeps):
    channel.attach_outcomes = [transport_error() for _ in range(6)]
    client = make_client(max_attempts=6, backoff_max=5.0)

    await client.open()

    assert sleeps == [1.0, 2.0, 4.0, 5.0, 5.0]


async def test_attach_timeout_counts_as_failure(make_client, channel):
    channel.attach_outcomes = [asyncio.Event(), None]
    client = make_client(attach_timeout=0.01)

    state = await client.open()

    assert state is ChannelState.ATTACHED
    assert client.attach_attempts == 2


async def test_connection_failure_counts_as_failure(make_client, connections):
    connections.acquire_error = transport_error("Connection error")
    client = make_client(max_attempts=2)

    state = await client.open()

    assert state is ChannelState.FAILED
    assert connections.acquired == 2


async def test_close_mid_attach(make_client, channel, connections):
    gate = asyncio.Event()
    channel.attach_outcomes = [gate]
    client = make_client()
    changes = []

    opening = asyncio.create_task(client.open())
    await channel.attach_started.wait()
    assert channel.subscriber_count == 1

    await client.close()
    client.transcript.on_change = lambda: changes.append("changed")
    gate.set()
    state = await opening

    assert state is ChannelState.DETACHED
    assert channel.subscriber_count == 0
    assert channel.state_listeners == []
    assert client.transcript.messages == []
    assert changes == []
    assert connections.release_checks == 1

    channel.deliver(channel_message("late", "Too late"))
    assert client.transcript.messages == []


async def test_concurrent_open_is_ignored(make_client, channel):
    gate = asyncio.Event()
    channel.attach_outcomes = [gate]
    first = make_client()
    second = make_client()

    opening = asyncio.create_task(first.open())
    await channel.attach_started.wait()

    assert await second.open() is ChannelState.DETACHED

    gate.set()
    assert await opening is ChannelState.ATTACHED
    assert channel.attach_calls == 1


async def test_open_twice_in_same_tick_attaches_once(make_client, channel):
    client = make_client()

    states = await asyncio.gather(client.open(), client.open())

    assert ChannelState.ATTACHED in states
    assert channel.attach_calls == 1
    assert client.attach_attempts == 1
    assert client.state is ChannelState.ATTACHED
    assert not channel_client_module._attaching


async def test_two_clients_open_in_same_tick_attach_once(make_client, channel):
    first = make_client()
    second = make_client()

    await asyncio.gather(first.open(), second.open())

    assert channel.attach_calls == 1
    assert first.state is ChannelState.ATTACHED
    assert second.state is ChannelState.DETACHED


async def test_close_before_attach_starts_releases_guard(make_client, channel):
    client = make_client()
    opening = asyncio.create_task(client.open())
    await asyncio.sleep(0)
    assert CHANNEL in channel_client_module._attaching

    await client.close()
    await asyncio.gather(opening, return_exceptions=True)

    assert not channel_client_module._attaching
    assert await client.open() is ChannelState.ATTACHED


async def test_history_replayed_then_live_without_duplicates(make_client, channel):
    channel.history_items = [channel_message("m2", "second"), channel_message("m1", "first")]

    def live_during_fetch():
        channel.deliver(channel_message("m2", "second"))
        channel.deliver(channel_message("m3", "third"))

    channel.before_history = live_during_fetch
    client = make_client()

    await client.open()
    channel.deliver(channel_message("m3", "third"))
    channel.deliver(channel_message("m4", "fourth"))

    assert [m.text for m in client.transcript.messages] == ["first", "second", "third", "fourth"]


async def test_reload_replays_in_same_order(make_client, channel, connections):
    client = make_client()
    await client.open()
    for i in range(1, 6):
        await client.send(f"message {i}")
    await client.close()

    # The channel keeps its history newest first, as the hub returns it
    channel.history_items = list(reversed(channel.published))
    reloaded = make_client()
    await reloaded.open()

    assert [m.text for m in reloaded.transcript.messages] == [f"message {i}" for i in range(1, 6)]


async def test_falls_back_to_gateway_history(make_client, chat_service):
    chat_service.messages = [
        {"senderId": "me", "content": "Is this available?", "createdAt": "2024-05-01T10:00:00"},
        {"senderId": "u2", "content": "Yes.", "createdAt": "2024-05-01T10:05:00"},
    ]
    client = make_client()

    await client.open()

    messages = client.transcript.messages
    assert [(m.sender_id, m.text) for m in messages] == [("u1", "Is this available?"), ("u2", "Yes.")]
    assert messages[1].sender == "Yvonne"


async def test_history_failure_leaves_channel_attached(make_client, channel, chat_service):
    chat_service.history_error = APIError(503, "Request failed")
    client = make_client()

    state = await client.open()

    assert state is ChannelState.ATTACHED
    assert client.transcript.loading is False
    assert len(client.transcript.notices) == 1


async def test_send_publishes_and_persists(make_client, channel, chat_service):
    client = make_client()
    await client.open()

    assert await client.send("  Is this available?  ") is True

    assert chat_service.sent == [{"partnerEmail": "y@example.com", "content": "Is this available?"}]
    assert channel.published[0]["data"]["text"] == "Is this available?"
    assert channel.published[0]["data"]["senderId"] == "u1"
    assert [m.text for m in client.transcript.messages] == ["Is this available?"]

    # The echo from the channel carries the same id and is not shown twice
    echoed = dict(channel.published[0])
    channel.deliver(echoed)
    assert len(client.transcript.messages) == 1


async def test_send_failure_yields_single_notice(make_client, channel, chat_service):
    chat_service.send_error = APIError(500, "Internal server error")
    channel.publish_error = transport_error("Not connected")
    client = make_client()
    await client.open()

    assert await client.send("Hello") is False

    assert client.transcript.notices == [SEND_FAILED]
    assert client.transcript.messages == []


async def test_persist_failure_keeps_published_message(make_client, chat_service):
    chat_service.send_error = APIError(500, "Internal server error")
    client = make_client()
    await client.open()

    await client.send("Hello")

    assert client.transcript.notices == [SEND_FAILED]
    assert [m.text for m in client.transcript.messages] == ["Hello"]


async def test_expired_session_notice(make_client, chat_service):
    chat_service.send_error = APIError(401, "Session expired. Please log in again.")
    client = make_client()
    await client.open()

    await client.send("Hello")

    assert client.transcript.notices == [SESSION_EXPIRED]


async def test_blank_message_not_sent(make_client, channel, chat_service):
    client = make_client()
    await client.open()

    assert await client.send("   ") is False
    assert await client.send("") is False
    assert client.transcript.notices == [EMPTY_MESSAGE, EMPTY_MESSAGE]
    assert chat_service.sent == []
    assert channel.published == []


async def test_send_before_attach_still_persists(make_client, channel, chat_service):
    client = make_client()

    assert await client.send("Hello") is False

    assert chat_service.sent == [{"partnerEmail": "y@example.com", "content": "Hello"}]
    assert channel.published == []
    assert client.transcript.messages == []
    assert client.transcript.notices == [SEND_FAILED]


async def test_send_while_attaching_still_persists(make_client, channel, chat_service):
    gate = asyncio.Event()
    channel.attach_outcomes = [gate]
    client = make_client()
    opening = asyncio.create_task(client.open())
    await channel.attach_started.wait()

    assert await client.send("Is it still available?") is False
    assert chat_service.sent == [{"partnerEmail": "y@example.com", "content": "Is it still available?"}]
    assert client.transcript.notices == [SEND_FAILED]

    gate.set()
    assert await opening is ChannelState.ATTACHED
    assert channel.published == []


async def test_partner_message_updates_preview(make_client, channel, chat_service):
    client = make_client()
    await client.open()

    channel.deliver(channel_message("m1", "Viewing at 5pm?"))
    channel.deliver(channel_message("m2", "My own echo", sender_id="u1", sender="Xavier"))
    await settle(client)

    assert chat_service.previews == [{"partnerEmail": "y@example.com", "lastMessage": "Viewing at 5pm?"}]


async def test_suspension_reattaches(make_client, channel):
    client = make_client()
    await client.open()
    channel.attach_outcomes = [transport_error(), None]

    channel.lose_connection()
    assert client.state is ChannelState.SUSPENDED
    assert client.transcript.notices == [CONNECTION_LOST]

    await settle(client)

    assert client.state is ChannelState.ATTACHED
    assert client.attach_attempts == 2
    assert channel.attach_calls == 3


async def test_close_releases_everything(make_client, channel, connections):
    client = make_client()
    await client.open()

    await client.close()

    assert client.state is ChannelState.DETACHED
    assert channel.subscriber_count == 0
    assert channel.detach_calls == 1
    assert connections.connection.released == [CHANNEL]
    assert connections.release_checks == 1
