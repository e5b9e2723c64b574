"""Unit tests for channels over the in-process transport."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import pytest

from gateway_addon.constants import MessageType
from gateway_addon.errors import ChannelStateError, TransportFatalError, UnsupportedProtocolError
from gateway_addon.ipc.channel import Channel, ChannelRole, ChannelState
from gateway_addon.ipc.messages import Message
from gateway_addon.ipc.transports import InProcTransport
from tests.helpers.wait import settle, wait_until

if TYPE_CHECKING:
    from gateway_addon.ipc.addresses import AddressRegistry
    from gateway_addon.ipc.transports import InProcHub

pytestmark = pytest.mark.unit


@pytest.fixture
def make_channel(address_registry: AddressRegistry, inproc_hub: InProcHub):
    """Factory for inproc channels sharing this test's registry and hub."""

    def _make(name: str, role: ChannelRole, **kwargs: Any) -> Channel:
        kwargs.setdefault("protocol", "inproc")
        return Channel(
            name,
            role,
            app_instance="test",
            address_registry=address_registry,
            inproc_hub=inproc_hub,
            **kwargs,
        )

    return _make


def _queue_handler() -> tuple[asyncio.Queue[Message], Any]:
    queue: asyncio.Queue[Message] = asyncio.Queue()
    return queue, queue.put_nowait


async def _next(queue: asyncio.Queue[Message]) -> Message:
    return await asyncio.wait_for(queue.get(), timeout=5.0)


# ---------------------------------------------------------------------------
# Construction and state
# ---------------------------------------------------------------------------


def test_unsupported_protocol_fails_at_construction() -> None:
    with pytest.raises(UnsupportedProtocolError):
        Channel("bad", ChannelRole.SESSION, protocol="tcp")


async def test_state_follows_bind_and_close(make_channel) -> None:
    channel = make_channel("server", ChannelRole.SESSION)
    assert channel.state is ChannelState.IDLE

    address = await channel.bind("acme.session")
    assert channel.state is ChannelState.BOUND
    assert channel.address == address
    assert str(address) == "inproc://test-acme.session"

    await channel.close()
    assert channel.state is ChannelState.IDLE


async def test_connect_without_listener_is_fatal(make_channel, address_registry: AddressRegistry) -> None:
    channel = make_channel("client", ChannelRole.SESSION)

    with pytest.raises(TransportFatalError):
        await channel.connect("nobody.home")

    assert channel.state is ChannelState.IDLE
    assert not address_registry.is_connected(channel.resolve("nobody.home"))


async def test_close_on_idle_channel_logs_error(make_channel, caplog) -> None:
    channel = make_channel("idle", ChannelRole.SESSION)

    with caplog.at_level(logging.ERROR, logger="gateway_addon.ipc.channel"):
        await channel.close()

    assert "not connected or bound" in caplog.text


# ---------------------------------------------------------------------------
# Session role
# ---------------------------------------------------------------------------


async def test_session_pair_is_full_duplex_and_ordered(make_channel) -> None:
    server_queue, server_handler = _queue_handler()
    client_queue, client_handler = _queue_handler()
    server = make_channel("server", ChannelRole.SESSION, on_message=server_handler)
    client = make_channel("client", ChannelRole.SESSION, on_message=client_handler)
    await server.bind("acme.session")
    await client.connect("acme.session")
    await wait_until(lambda: server.has_peer, description="server peer")

    for n in range(3):
        client.send(Message.create("PING", {"n": n}))
    server.send(Message.create("PONG", {"n": 99}))

    received = [await _next(server_queue) for _ in range(3)]
    assert [m.data["n"] for m in received] == [0, 1, 2]
    assert (await _next(client_queue)).data == {"n": 99}

    await client.close()
    await server.close()


async def test_async_handlers_are_awaited_in_arrival_order(make_channel) -> None:
    seen: list[int] = []

    async def slow_handler(message: Message) -> None:
        await asyncio.sleep(0.01 * (3 - message.data["n"]))
        seen.append(message.data["n"])

    server = make_channel("server", ChannelRole.SESSION, on_message=slow_handler)
    client = make_channel("client", ChannelRole.SESSION)
    await server.bind("acme.session")
    await client.connect("acme.session")

    for n in range(3):
        client.send(Message.create("PING", {"n": n}))

    await wait_until(lambda: len(seen) == 3, description="three messages")
    assert seen == [0, 1, 2]

    await client.close()
    await server.close()


async def test_invalid_frames_are_dropped_before_the_handler(make_channel, caplog) -> None:
    queue, handler = _queue_handler()
    server = make_channel("server", ChannelRole.SESSION, on_message=handler)
    client = make_channel("client", ChannelRole.SESSION)
    await server.bind("acme.session")
    await client.connect("acme.session")

    with caplog.at_level(logging.ERROR, logger="gateway_addon.ipc.channel"):
        client.send(Message.create(MessageType.SET_PROPERTY, {"name": "on"}))
        client.send(Message.create(MessageType.UNLOAD, {}))
        received = await _next(queue)

    assert received.known_type is MessageType.UNLOAD
    assert queue.empty()
    assert "SchemaViolation" in caplog.text

    await client.close()
    await server.close()


async def test_deeply_nested_frame_keeps_the_session(
    make_channel,
    inproc_hub: InProcHub,
    caplog,
) -> None:
    queue, handler = _queue_handler()
    server = make_channel("server", ChannelRole.SESSION, on_message=handler)
    await server.bind("acme.session")
    _, writer = await InProcTransport(inproc_hub).connect(server.address.location)
    depth = 100_000
    nested = b'{"messageType":"X","data":{"a":' + b"[" * depth + b"]" * depth + b"}}\n"

    with caplog.at_level(logging.ERROR, logger="gateway_addon.ipc.channel"):
        writer.write(nested)
        writer.write(b'{"messageType":"UNLOAD","data":{"pluginId":"acme"}}\n')
        await writer.drain()
        received = await _next(queue)

    assert received.known_type is MessageType.UNLOAD
    assert server.has_peer
    assert "MalformedEncoding" in caplog.text

    writer.close()
    await server.close()


async def test_handler_failure_does_not_stop_the_channel(make_channel, caplog) -> None:
    delivered: list[Message] = []

    def flaky(message: Message) -> None:
        if message.data.get("boom"):
            raise RuntimeError("handler exploded")
        delivered.append(message)

    server = make_channel("server", ChannelRole.SESSION, on_message=flaky)
    client = make_channel("client", ChannelRole.SESSION)
    await server.bind("acme.session")
    await client.connect("acme.session")

    with caplog.at_level(logging.ERROR, logger="gateway_addon.ipc.channel"):
        client.send(Message.create("PING", {"boom": True}))
        client.send(Message.create("PING", {"n": 1}))
        await wait_until(lambda: delivered, description="second message")

    assert delivered[0].data == {"n": 1}
    assert "handler failed" in caplog.text

    await client.close()
    await server.close()


async def test_bound_session_refuses_a_second_peer(make_channel, caplog) -> None:
    queue, handler = _queue_handler()
    server = make_channel("server", ChannelRole.SESSION, on_message=handler)
    first = make_channel("first", ChannelRole.SESSION)
    second = make_channel("second", ChannelRole.SESSION)
    await server.bind("acme.session")
    await first.connect("acme.session")
    await wait_until(lambda: server.has_peer, description="first peer")

    with caplog.at_level(logging.WARNING, logger="gateway_addon.ipc.channel"):
        await second.connect("acme.session")
        await wait_until(lambda: not second.has_peer, description="second peer refused")

    assert "already has a peer" in caplog.text
    first.send(Message.create("PING", {"from": "first"}))
    assert (await _next(queue)).data == {"from": "first"}

    for channel in (second, first, server):
        await channel.close()


async def test_send_from_worker_thread(make_channel) -> None:
    queue, handler = _queue_handler()
    server = make_channel("server", ChannelRole.SESSION, on_message=handler)
    client = make_channel("client", ChannelRole.SESSION)
    await server.bind("acme.session")
    await client.connect("acme.session")

    await asyncio.to_thread(client.send, Message.create("PING", {"thread": True}))

    assert (await _next(queue)).data == {"thread": True}

    await client.close()
    await server.close()


async def test_send_without_peer_is_logged_and_dropped(make_channel, caplog) -> None:
    idle = make_channel("idle", ChannelRole.SESSION)
    server = make_channel("server", ChannelRole.SESSION)
    await server.bind("acme.session")

    with caplog.at_level(logging.WARNING, logger="gateway_addon.ipc.channel"):
        idle.send(Message.create("PING"))
        server.send(Message.create("PING"))

    assert caplog.text.count("no peer") == 2

    await server.close()


async def test_send_after_close_is_dropped(make_channel, caplog) -> None:
    server = make_channel("server", ChannelRole.SESSION)
    client = make_channel("client", ChannelRole.SESSION)
    await server.bind("acme.session")
    await client.connect("acme.session")
    await client.close()

    with caplog.at_level(logging.WARNING, logger="gateway_addon.ipc.channel"):
        client.send(Message.create("PING"))

    assert "no peer" in caplog.text
    await server.close()


async def test_peer_disconnect_is_noticed(make_channel) -> None:
    server = make_channel("server", ChannelRole.SESSION)
    client = make_channel("client", ChannelRole.SESSION)
    await server.bind("acme.session")
    await client.connect("acme.session")
    await wait_until(lambda: server.has_peer, description="peer")

    await client.close()

    await wait_until(lambda: not server.has_peer, description="peer gone")
    await server.close()


# ---------------------------------------------------------------------------
# Rendezvous role
# ---------------------------------------------------------------------------


async def test_rendezvous_replies_go_to_their_requesters(make_channel) -> None:
    def echo(message: Message) -> None:
        replier.send(Message.create("REPLY", {"n": message.data["n"]}))

    replier = make_channel("replier", ChannelRole.RENDEZVOUS, on_message=echo)
    await replier.bind("gateway.addonManager")

    queues: list[asyncio.Queue[Message]] = []
    requesters: list[Channel] = []
    for _ in range(2):
        queue, handler = _queue_handler()
        requester = make_channel("requester", ChannelRole.RENDEZVOUS, on_message=handler)
        await requester.connect("gateway.addonManager")
        queues.append(queue)
        requesters.append(requester)

    requesters[0].send(Message.create("REQUEST", {"n": 0}))
    requesters[1].send(Message.create("REQUEST", {"n": 1}))

    assert (await _next(queues[0])).data == {"n": 0}
    assert (await _next(queues[1])).data == {"n": 1}

    for channel in (*requesters, replier):
        await channel.close()


async def test_rendezvous_reply_without_request_is_dropped(make_channel, caplog) -> None:
    replier = make_channel("replier", ChannelRole.RENDEZVOUS)
    await replier.bind("gateway.addonManager")

    with caplog.at_level(logging.ERROR, logger="gateway_addon.ipc.channel"):
        replier.send(Message.create("REPLY"))

    assert "no outstanding request" in caplog.text
    await replier.close()


async def test_rendezvous_addresses_are_not_claimed(make_channel, address_registry) -> None:
    replier = make_channel("replier", ChannelRole.RENDEZVOUS)
    address = await replier.bind("gateway.addonManager")

    assert not address_registry.is_bound(address)
    await replier.close()


# ---------------------------------------------------------------------------
# Usage errors and address uniqueness
# ---------------------------------------------------------------------------


async def test_double_bind_is_logged_and_proceeds(make_channel, caplog) -> None:
    channel = make_channel("server", ChannelRole.SESSION)
    await channel.bind("acme.session")

    with caplog.at_level(logging.ERROR, logger="gateway_addon.ipc.channel"):
        await channel.bind("acme.other")

    assert "already bound" in caplog.text
    assert channel.state is ChannelState.BOUND
    await channel.close()


async def test_connect_while_bound_is_logged(make_channel, caplog) -> None:
    server = make_channel("server", ChannelRole.SESSION)
    other = make_channel("other", ChannelRole.SESSION)
    await other.bind("acme.other")
    await server.bind("acme.session")

    with caplog.at_level(logging.ERROR, logger="gateway_addon.ipc.channel"):
        await server.connect("acme.other")

    assert "socket already bound" in caplog.text
    await server.close()
    await other.close()


async def test_second_session_bind_to_same_address_is_logged(
    make_channel,
    address_registry,
    caplog,
) -> None:
    first = make_channel("first", ChannelRole.SESSION)
    second = make_channel("second", ChannelRole.SESSION)
    address = await first.bind("acme.session")

    with caplog.at_level(logging.ERROR, logger="gateway_addon.ipc.channel"):
        await second.bind("acme.session")

    assert f"address already bound: {address}" in caplog.text

    await first.close()
    assert address_registry.is_bound(address)
    await second.close()
    assert not address_registry.is_bound(address)


async def test_second_session_connect_to_same_address_is_logged(make_channel, caplog) -> None:
    server = make_channel("server", ChannelRole.SESSION)
    first = make_channel("first", ChannelRole.SESSION)
    second = make_channel("second", ChannelRole.SESSION)
    await server.bind("acme.session")
    await first.connect("acme.session")

    with caplog.at_level(logging.ERROR, logger="gateway_addon.ipc.channel"):
        await second.connect("acme.session")

    assert "address already connected" in caplog.text
    for channel in (second, first, server):
        await channel.close()


async def test_strict_mode_raises_before_touching_the_transport(make_channel, inproc_hub) -> None:
    first = make_channel("first", ChannelRole.SESSION)
    strict = make_channel("strict", ChannelRole.SESSION, strict=True)
    await first.bind("acme.session")
    listener = inproc_hub.listeners["test-acme.session"]

    with pytest.raises(ChannelStateError, match="address already bound"):
        await strict.bind("acme.session")

    assert strict.state is ChannelState.IDLE
    assert inproc_hub.listeners["test-acme.session"] is listener
    await first.close()


async def test_strict_mode_rejects_double_bind(make_channel) -> None:
    channel = make_channel("strict", ChannelRole.SESSION, strict=True)
    await channel.bind("acme.session")

    with pytest.raises(ChannelStateError, match="already bound"):
        await channel.bind("acme.other")

    await channel.close()


async def test_close_releases_claims(make_channel, address_registry) -> None:
    server = make_channel("server", ChannelRole.SESSION)
    client = make_channel("client", ChannelRole.SESSION)
    address = await server.bind("acme.session")
    await client.connect("acme.session")
    assert address_registry.is_bound(address)
    assert address_registry.is_connected(address)

    await client.close()
    await server.close()
    await settle()

    assert not address_registry.is_bound(address)
    assert not address_registry.is_connected(address)
