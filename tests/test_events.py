import asyncio

from rfm69.radio.events import Broadcast, InterruptLine


def test_every_subscriber_gets_each_item():
    async def scenario():
        stream = Broadcast()
        first = stream.subscribe()
        second = stream.subscribe()
        stream.publish("a")
        return await first.get(), await second.get()

    assert asyncio.run(scenario()) == ("a", "a")


def test_late_subscriber_only_sees_later_items():
    async def scenario():
        stream = Broadcast()
        stream.publish("early")
        late = stream.subscribe()
        stream.publish("late")
        return await late.get(), late.pending()

    assert asyncio.run(scenario()) == ("late", 0)


def test_close_ends_iteration_and_unsubscribes():
    async def scenario():
        line = InterruptLine()
        sub = line.subscribe()
        seen = []

        async def consume():
            async for _ in sub:
                seen.append(1)

        task = asyncio.create_task(consume())
        line.fire()
        line.fire()
        await asyncio.sleep(0)
        sub.close()
        await asyncio.wait_for(task, 1)
        return seen, line.subscriber_count

    seen, count = asyncio.run(scenario())

    assert seen == [1, 1]
    assert count == 0


def test_context_manager_closes():
    async def scenario():
        line = InterruptLine()
        with line.subscribe() as sub:
            assert line.subscriber_count == 1
        return sub.closed, line.subscriber_count

    assert asyncio.run(scenario()) == (True, 0)


def test_fire_threadsafe_from_worker_thread():
    async def scenario():
        line = InterruptLine()
        sub = line.subscribe()
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, line.fire_threadsafe)
        return await asyncio.wait_for(sub.get(), 1)

    assert asyncio.run(scenario()) is None
