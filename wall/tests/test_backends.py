import asyncio
import json
import threading
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from botocore.exceptions import ClientError
from redis import exceptions as redis_exceptions

from wall.realtime import InMemoryChangeFeed, RedisChangeFeed, insert_event
from wall.storage import InMemoryStorageClient, ObjectExistsError, S3StorageClient


class InMemoryChangeFeedTests(unittest.IsolatedAsyncioTestCase):
    async def test_fan_out_to_every_subscriber(self):
        feed = InMemoryChangeFeed()
        first, second = await feed.subscribe(), await feed.subscribe()
        event = insert_event("posts", {"id": "p1"})
        feed.publish(event)
        self.assertEqual(await first.get(timeout=0.1), event)
        self.assertEqual(await second.get(timeout=0.1), event)
        self.assertIsNone(await first.get(timeout=0.01))

    async def test_closed_subscription_stops_receiving(self):
        feed = InMemoryChangeFeed()
        subscription = await feed.subscribe()
        await subscription.close()
        feed.publish(insert_event("posts", {"id": "p1"}))
        self.assertIsNone(await subscription.get(timeout=0.01))
        self.assertEqual(feed.subscriptions, [])
        await subscription.close()

    async def test_get_waits_for_publisher_thread(self):
        feed = InMemoryChangeFeed()
        subscription = await feed.subscribe()
        event = insert_event("posts", {"id": "p2"})
        timer = threading.Timer(0.05, feed.publish, args=(event,))
        timer.start()
        try:
            self.assertEqual(await subscription.get(timeout=2), event)
        finally:
            timer.cancel()


class ClosedLoopTests(unittest.TestCase):
    def test_subscription_on_closed_loop_is_dropped(self):
        feed = InMemoryChangeFeed()
        loop = asyncio.new_event_loop()
        loop.run_until_complete(feed.subscribe())
        loop.close()
        event = insert_event("posts", {"id": "p3"})
        feed.publish(event)
        self.assertEqual(feed.subscriptions, [])
        self.assertEqual(feed.published, [event])


class RedisChangeFeedTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        patcher = patch("wall.realtime.redis.Redis.from_url")
        self.from_url = patcher.start()
        self.addCleanup(patcher.stop)
        self.client = MagicMock()
        self.from_url.return_value = self.client

        async_patcher = patch("wall.realtime.redis_asyncio.Redis.from_url")
        self.async_from_url = async_patcher.start()
        self.addCleanup(async_patcher.stop)
        self.async_client = MagicMock()
        self.async_from_url.return_value = self.async_client
        self.pubsubs = []
        self.async_client.pubsub.side_effect = self.new_pubsub

        self.feed = RedisChangeFeed(url="redis://localhost:6379/0", channel="wall:test")

    def new_pubsub(self, **kwargs):
        pubsub = AsyncMock()
        self.pubsubs.append(pubsub)
        return pubsub

    def test_publish_serializes_event(self):
        event = insert_event("posts", {"id": "p1"})
        self.feed.publish(event)
        channel, body = self.client.publish.call_args[0]
        self.assertEqual(channel, "wall:test")
        self.assertEqual(json.loads(body), event)

    async def test_subscription_decodes_messages(self):
        event = insert_event("posts", {"id": "p1"})
        subscription = await self.feed.subscribe()
        pubsub = self.pubsubs[0]
        pubsub.subscribe.assert_awaited_once_with("wall:test")
        pubsub.get_message.return_value = {
            "type": "message",
            "data": json.dumps(event).encode("utf-8"),
        }
        self.assertEqual(await subscription.get(timeout=1), event)
        pubsub.get_message.assert_awaited_with(
            ignore_subscribe_messages=True, timeout=1
        )

    async def test_async_client_is_shared(self):
        await self.feed.subscribe()
        await self.feed.subscribe()
        self.async_from_url.assert_called_once_with("redis://localhost:6379/0")
        self.assertEqual(len(self.pubsubs), 2)

    async def test_idle_and_malformed_messages(self):
        subscription = await self.feed.subscribe()
        pubsub = self.pubsubs[0]
        pubsub.get_message.return_value = None
        self.assertIsNone(await subscription.get(timeout=1))
        pubsub.get_message.return_value = {"type": "message", "data": b"{nope"}
        self.assertIsNone(await subscription.get(timeout=1))

    async def test_connection_error_closes_and_resubscribes(self):
        subscription = await self.feed.subscribe()
        stale = self.pubsubs[0]
        stale.get_message.side_effect = redis_exceptions.ConnectionError()
        self.assertIsNone(await subscription.get(timeout=1))
        stale.aclose.assert_awaited_once()
        self.assertEqual(len(self.pubsubs), 2)
        fresh = self.pubsubs[1]
        fresh.subscribe.assert_awaited_once_with("wall:test")
        self.assertIs(subscription.pubsub, fresh)

    async def test_resubscribes_when_stale_close_fails(self):
        subscription = await self.feed.subscribe()
        stale = self.pubsubs[0]
        stale.get_message.side_effect = redis_exceptions.ConnectionError()
        stale.aclose.side_effect = redis_exceptions.ConnectionError()
        with self.assertLogs("wall.realtime", level="WARNING"):
            self.assertIsNone(await subscription.get(timeout=1))
        self.assertIs(subscription.pubsub, self.pubsubs[1])

    async def test_close(self):
        subscription = await self.feed.subscribe()
        await subscription.close()
        self.pubsubs[0].aclose.assert_awaited_once()


class InMemoryStorageClientTests(unittest.TestCase):
    def test_upload_and_url(self):
        storage = InMemoryStorageClient(base_url="https://cdn.test/photos")
        storage.upload_bytes("posts/a.png", b"png", content_type="image/png", cache_seconds=60)
        stored = storage.stored_objects["posts/a.png"]
        self.assertEqual(stored.data, b"png")
        self.assertEqual(stored.cache_control, "max-age=60")
        self.assertEqual(storage.public_url("posts/a.png"), "https://cdn.test/photos/posts/a.png")

    def test_no_overwrite_without_upsert(self):
        storage = InMemoryStorageClient()
        storage.upload_bytes("posts/a.png", b"one", content_type="image/png")
        with self.assertRaises(ObjectExistsError):
            storage.upload_bytes("posts/a.png", b"two", content_type="image/png")
        storage.upload_bytes("posts/a.png", b"two", content_type="image/png", upsert=True)
        self.assertEqual(storage.stored_objects["posts/a.png"].data, b"two")


class S3StorageClientTests(unittest.TestCase):
    def setUp(self):
        patcher = patch("wall.storage.boto3.client")
        self.boto_client = patcher.start()
        self.addCleanup(patcher.stop)
        self.s3 = self.boto_client.return_value

    def make(self, **kwargs):
        options = dict(
            bucket="wall-photos",
            region="us-east-1",
            endpoint="https://s3.example.test",
            access_key_id="key",
            secret_access_key="secret",
        )
        options.update(kwargs)
        return S3StorageClient(**options)

    def test_upload_puts_object_with_cache_control(self):
        self.s3.head_object.side_effect = ClientError(
            {"Error": {"Code": "404"}}, "HeadObject"
        )
        storage = self.make()
        storage.upload_bytes("posts/a.png", b"png", content_type="image/png", cache_seconds=3600)
        self.s3.put_object.assert_called_once_with(
            Bucket="wall-photos",
            Key="posts/a.png",
            Body=b"png",
            ContentType="image/png",
            CacheControl="max-age=3600",
        )

    def test_refuses_to_overwrite(self):
        self.s3.head_object.return_value = {}
        storage = self.make()
        with self.assertRaises(ObjectExistsError):
            storage.upload_bytes("posts/a.png", b"png", content_type="image/png")
        self.s3.put_object.assert_not_called()

    def test_other_head_errors_propagate(self):
        self.s3.head_object.side_effect = ClientError(
            {"Error": {"Code": "403"}}, "HeadObject"
        )
        with self.assertRaises(ClientError):
            self.make().upload_bytes("posts/a.png", b"png", content_type="image/png")

    def test_public_url(self):
        self.assertEqual(
            self.make().public_url("posts/a.png"),
            "https://s3.example.test/wall-photos/posts/a.png",
        )
        self.assertEqual(
            self.make(public_base_url="https://cdn.test/").public_url("posts/a.png"),
            "https://cdn.test/posts/a.png",
        )


if __name__ == "__main__":
    unittest.main()
