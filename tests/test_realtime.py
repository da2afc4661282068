import asyncio

from carelink.services.realtime import ChangeFeed


def test_publish_reaches_matching_subscribers_only():
    async def scenario():
        feed = ChangeFeed()
        mine = feed.subscribe("messages", {"receiver_id": {"a", "b"}})
        other_table = feed.subscribe("posts")

        assert feed.publish("messages", "INSERT", {"id": 1, "receiver_id": "a"}) == 1
        assert feed.publish("messages", "INSERT", {"id": 2, "receiver_id": "z"}) == 0

        event = await asyncio.wait_for(mine.get(), timeout=1)
        assert event.record["id"] == 1
        assert other_table._queue.empty()

        mine.close()
        other_table.close()
        assert feed.subscriber_count == 0
        assert feed.publish("messages", "INSERT", {"id": 3, "receiver_id": "a"}) == 0

    asyncio.run(scenario())


def test_subscription_context_manager_unsubscribes():
    async def scenario():
        feed = ChangeFeed()
        with feed.subscribe("likes", {"post_id": "p1"}) as sub:
            assert feed.subscriber_count == 1
            feed.publish("likes", "INSERT", {"post_id": "p1", "user_id": "u"})
            event = await asyncio.wait_for(sub.get(), timeout=1)
            assert event.event == "INSERT"
        assert feed.subscriber_count == 0

    asyncio.run(scenario())


def test_publish_from_worker_thread():
    async def scenario():
        feed = ChangeFeed()
        sub = feed.subscribe("messages")
        await asyncio.to_thread(feed.publish, "messages", "INSERT", {"id": "x"})
        event = await asyncio.wait_for(sub.get(), timeout=1)
        assert event.record == {"id": "x"}
        sub.close()

    asyncio.run(scenario())
