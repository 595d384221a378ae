import asyncio
import logging

import pytest

from eventflow.broker import Dispatcher, attach, ensure_route, ensure_stream
from eventflow.broker.publisher import encode
from eventflow.errors import TransportError


async def _subscription(broker, filter_subject="order.>", group="handlers"):
    await ensure_stream(broker, "ORDERS", "order.>", max_msgs=10)
    return await ensure_route(broker, "ORDERS", filter_subject, group)


async def _pending(redis, broker, group="handlers"):
    summary = await redis.xpending(broker.stream_key("ORDERS"), group)
    return summary["pending"]


async def _acked(redis, broker, group="handlers"):
    while await _pending(redis, broker, group):
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_handler_called_once_and_acked(broker, redis):
    subscription = await _subscription(broker)
    received = []

    async def handler(event):
        received.append(event.json())

    dispatcher = Dispatcher(subscription, handler)
    await broker.publish("order.placed", encode({"order_id": "1"}))

    assert await dispatcher.run_once() == 1
    assert await dispatcher.run_once() == 0
    assert received == [{"order_id": "1"}]
    assert await _pending(redis, broker) == 0


@pytest.mark.asyncio
async def test_failing_handler_is_still_acked(broker, redis, caplog):
    subscription = await _subscription(broker)
    received = []

    async def handler(event):
        payload = event.json()
        if payload["order_id"] == "bad":
            raise RuntimeError("boom")
        received.append(payload["order_id"])

    dispatcher = Dispatcher(subscription, handler)
    await broker.publish("order.placed", encode({"order_id": "bad"}))
    await broker.publish("order.placed", encode({"order_id": "good"}))

    with caplog.at_level(logging.ERROR):
        assert await dispatcher.run_once() == 2

    assert received == ["good"]
    assert await _pending(redis, broker) == 0
    assert "Error handling event: order.placed/handlers" in caplog.text


@pytest.mark.asyncio
async def test_failed_event_is_not_redelivered(broker):
    subscription = await _subscription(broker)
    calls = 0

    async def handler(event):
        nonlocal calls
        calls += 1
        raise ValueError("always fails")

    dispatcher = Dispatcher(subscription, handler)
    await broker.publish("order.placed", encode({"order_id": "1"}))

    await dispatcher.run_once()
    await dispatcher.run_once()

    assert calls == 1


@pytest.mark.asyncio
async def test_ack_is_idempotent(broker, redis):
    subscription = await _subscription(broker)

    async def handler(event):
        await event.ack()

    dispatcher = Dispatcher(subscription, handler)
    await broker.publish("order.placed", encode({"order_id": "1"}))

    assert await dispatcher.run_once() == 1
    assert await _pending(redis, broker) == 0


@pytest.mark.asyncio
async def test_attach_runs_until_stopped(broker):
    subscription = await _subscription(broker)
    done = asyncio.Event()
    received = []

    async def handler(event):
        received.append(event.subject)
        if len(received) == 2:
            done.set()

    dispatcher = attach(subscription, handler, fetch_timeout=0.05)
    try:
        await broker.publish("order.placed", encode({"order_id": "1"}))
        await broker.publish("order.cancelled", encode({"order_id": "1"}))
        await asyncio.wait_for(done.wait(), timeout=5)
    finally:
        await asyncio.wait_for(dispatcher.stop(), timeout=5)

    assert received == ["order.placed", "order.cancelled"]
    assert dispatcher.task is None


@pytest.mark.asyncio
async def test_stop_without_start(broker):
    subscription = await _subscription(broker)

    async def handler(event):
        pass

    dispatcher = Dispatcher(subscription, handler)
    await dispatcher.stop()

    assert dispatcher.task is None


@pytest.mark.asyncio
async def test_stop_releases_idle_consumer(broker, redis):
    subscription = await _subscription(broker)
    done = asyncio.Event()

    async def handler(event):
        done.set()

    dispatcher = attach(subscription, handler, fetch_timeout=0.05)
    await broker.publish("order.placed", encode({"order_id": "1"}))
    await asyncio.wait_for(done.wait(), timeout=5)
    await asyncio.wait_for(_acked(redis, broker), timeout=5)
    await asyncio.wait_for(dispatcher.stop(), timeout=5)

    assert await redis.xinfo_consumers(broker.stream_key("ORDERS"), "handlers") == []


@pytest.mark.asyncio
async def test_stop_leaves_in_flight_event_pending(broker, redis):
    subscription = await _subscription(broker)
    started = asyncio.Event()
    finished = []

    async def handler(event):
        started.set()
        await asyncio.sleep(10)
        finished.append(event.subject)

    dispatcher = attach(subscription, handler, fetch_timeout=0.05)
    await broker.publish("order.placed", encode({"order_id": "1"}))
    await asyncio.wait_for(started.wait(), timeout=5)
    await asyncio.wait_for(dispatcher.stop(), timeout=5)

    # 中断されたイベントは ack_wait 後に別のインスタンスへ再配信される
    assert finished == []
    assert await _pending(redis, broker) == 1
    consumers = await redis.xinfo_consumers(broker.stream_key("ORDERS"), "handlers")
    assert [c["name"] for c in consumers] == [subscription.consumer]


@pytest.mark.asyncio
async def test_vanished_group_ends_loop(broker, redis):
    subscription = await _subscription(broker)
    await redis.xgroup_destroy(broker.stream_key("ORDERS"), "handlers")

    with pytest.raises(TransportError):
        await subscription.fetch()

    async def handler(event):
        pass

    dispatcher = attach(subscription, handler, fetch_timeout=0.05)
    task = dispatcher.task

    with pytest.raises(TransportError):
        await asyncio.wait_for(task, timeout=5)

    assert task.done()
    await dispatcher.stop()
