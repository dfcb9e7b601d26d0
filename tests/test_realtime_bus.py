import asyncio
import json

from marketplace.utils.realtime_bus import change_channel, get_bus, notify_change


async def test_change_events_go_to_scoped_and_collection_channels(local_bus):
    scoped: asyncio.Queue = asyncio.Queue()
    everything: asyncio.Queue = asyncio.Queue()

    async def on_scoped(message):
        scoped.put_nowait(json.loads(message))

    async def on_everything(message):
        everything.put_nowait(json.loads(message))

    subs = [
        await local_bus.subscribe(change_channel("conversations.messages", "c1"), on_scoped),
        await local_bus.subscribe(change_channel("conversations.messages"), on_everything),
    ]
    tasks = [asyncio.create_task(sub.run()) for sub in subs]

    await notify_change("conversations.messages", "c1", "m1")
    await notify_change("conversations.messages", "c2", "m2")

    assert (await asyncio.wait_for(scoped.get(), 1))["id"] == "m1"
    assert [(await asyncio.wait_for(everything.get(), 1))["id"] for _ in range(2)] == ["m1", "m2"]
    for sub in subs:
        await sub.cancel()
    await asyncio.gather(*tasks)
    assert scoped.empty()


async def test_cancelled_subscription_is_dropped(local_bus):
    async def ignore(message):
        return None

    sub = await local_bus.subscribe("changes:users", ignore)
    await sub.cancel()
    await sub.cancel()

    assert local_bus._subscribers == {}
    await local_bus.publish("changes:users", "{}")


async def test_local_bus_is_used_without_redis(local_bus):
    assert await get_bus() is local_bus


async def test_failing_handler_does_not_end_the_subscription(local_bus):
    seen: asyncio.Queue = asyncio.Queue()

    async def on_message(message):
        if message == "boom":
            raise RuntimeError("handler failed")
        seen.put_nowait(message)

    sub = await local_bus.subscribe("changes:users", on_message)
    task = asyncio.create_task(sub.run())
    await local_bus.publish("changes:users", "boom")
    await local_bus.publish("changes:users", "ok")

    assert await asyncio.wait_for(seen.get(), 1) == "ok"
    assert not task.done()
    await sub.cancel()
    await asyncio.wait_for(task, 1)
