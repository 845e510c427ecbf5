import asyncio
import random
import unittest

import httpx

from cache import ThumbnailCache
from config import Settings
from providers import InvidiousProvider, MirrorPool
from thumbnails import ThumbnailResolver, looks_like_url

METADATA = {
    "videoId": "dQw4w9WgXcQ",
    "videoThumbnails": [
        {"quality": "default", "url": "https://x/d.jpg", "width": 120, "height": 90},
        {"quality": "high", "url": "https://x/h.jpg", "width": 480, "height": 360},
    ],
}


class Upstream:
    """Fake mirror + image host counting what it serves."""

    def __init__(self, metadata=METADATA, image_status=200, image_delay=0.0):
        self.metadata = metadata
        self.image_status = image_status
        self.image_delay = image_delay
        self.metadata_calls = 0
        self.image_calls = 0

    async def __call__(self, request):
        if request.url.host == "mirror.example":
            self.metadata_calls += 1
            return httpx.Response(200, json=self.metadata)
        self.image_calls += 1
        if self.image_delay:
            await asyncio.sleep(self.image_delay)
        return httpx.Response(self.image_status, content=b"\xff\xd8jpeg", headers={"content-type": "image/jpeg"})


def build(upstream, quality="default"):
    s = Settings()
    s.DEBUG_UPSTREAM = False
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    provider = InvidiousProvider(client, MirrorPool(["mirror.example"], rng=random.Random(0)), s)
    resolver = ThumbnailResolver(provider, quality)
    return ThumbnailCache(client, resolver, timeout=5.0), resolver, client


class TestThumbnailResolver(unittest.IsolatedAsyncioTestCase):

    async def test_resolves_configured_tier(self):
        _, resolver, client = build(Upstream())
        async with client:
            self.assertEqual(await resolver.resolve_url("dQw4w9WgXcQ"), "https://x/d.jpg")

    async def test_other_tier(self):
        _, resolver, client = build(Upstream(), quality="high")
        async with client:
            self.assertEqual(await resolver.resolve_url("dQw4w9WgXcQ"), "https://x/h.jpg")

    async def test_missing_tier(self):
        upstream = Upstream()
        _, resolver, client = build(upstream, quality="maxres")
        async with client:
            self.assertIsNone(await resolver.resolve_url("dQw4w9WgXcQ"))

    async def test_url_passes_through(self):
        upstream = Upstream()
        _, resolver, client = build(upstream)
        async with client:
            self.assertEqual(await resolver.resolve_url("https://i.ytimg.com/vi/a/default.jpg"),
                             "https://i.ytimg.com/vi/a/default.jpg")
        self.assertEqual(upstream.metadata_calls, 0)

    def test_looks_like_url(self):
        self.assertTrue(looks_like_url("http://x/y.jpg"))
        self.assertTrue(looks_like_url("HTTPS://x/y.jpg"))
        self.assertFalse(looks_like_url("dQw4w9WgXcQ"))
        self.assertFalse(looks_like_url(""))


class TestThumbnailCache(unittest.IsolatedAsyncioTestCase):

    async def test_placeholder_then_filled_in_place(self):
        upstream = Upstream(image_delay=0.01)
        cache, _, client = build(upstream)
        async with client:
            handle = cache.get_image("dQw4w9WgXcQ")
            self.assertEqual(handle.state, "loading")
            self.assertEqual(handle.data, b"")
            self.assertIn("dQw4w9WgXcQ", cache)
            await handle.wait()
        self.assertTrue(handle.ready)
        self.assertEqual(handle.data, b"\xff\xd8jpeg")
        self.assertEqual(handle.url, "https://x/d.jpg")
        self.assertEqual(handle.content_type, "image/jpeg")

    async def test_same_key_same_handle_single_fetch(self):
        upstream = Upstream(image_delay=0.01)
        cache, _, client = build(upstream)
        async with client:
            first = cache.get_image("dQw4w9WgXcQ")
            second = cache.get_image("dQw4w9WgXcQ")
            self.assertIs(first, second)
            await first.wait()
            self.assertIs(cache.get_image("dQw4w9WgXcQ"), first)
        self.assertEqual(upstream.metadata_calls, 1)
        self.assertEqual(upstream.image_calls, 1)
        self.assertEqual(len(cache), 1)

    async def test_clear_forces_fresh_fetch(self):
        upstream = Upstream()
        cache, _, client = build(upstream)
        async with client:
            first = await cache.get_image("https://x/d.jpg").wait()
            cache.clear()
            self.assertEqual(len(cache), 0)
            second = await cache.get_image("https://x/d.jpg").wait()
        self.assertIsNot(first, second)
        self.assertEqual(upstream.image_calls, 2)

    async def test_missing_tier_still_yields_empty_handle(self):
        upstream = Upstream()
        cache, _, client = build(upstream, quality="maxres")
        async with client:
            handle = await cache.get_image("dQw4w9WgXcQ").wait()
        self.assertEqual(handle.state, "failed")
        self.assertEqual(handle.data, b"")
        self.assertEqual(upstream.image_calls, 0)

    async def test_fetch_failure_leaves_placeholder(self):
        upstream = Upstream(image_status=404)
        cache, _, client = build(upstream)
        async with client:
            handle = await cache.get_image("https://x/gone.jpg").wait()
            self.assertIs(cache.get_image("https://x/gone.jpg"), handle)
        self.assertEqual(handle.state, "failed")
        self.assertEqual(handle.data, b"")
        self.assertEqual(upstream.image_calls, 1)

    async def test_subscribers_notified_on_fill(self):
        upstream = Upstream(image_delay=0.01)
        cache, _, client = build(upstream)
        refreshed = []
        async with client:
            handle = cache.get_image("https://x/d.jpg")
            handle.subscribe(refreshed.append)
            await handle.wait()
        self.assertEqual(refreshed, [handle])

    async def test_aclose_settles_pending_handles(self):
        upstream = Upstream(image_delay=10)
        cache, _, client = build(upstream)
        async with client:
            handle = cache.get_image("https://x/slow.jpg")
            await asyncio.sleep(0)
            await cache.aclose()
        self.assertTrue(handle.settled)
        self.assertEqual(handle.state, "failed")

    async def test_peek_never_inserts_or_fetches(self):
        upstream = Upstream()
        cache, _, client = build(upstream)
        async with client:
            self.assertIsNone(cache.peek("http://169.254.169.254/latest/meta-data/iam"))
            self.assertEqual(len(cache), 0)
            handle = cache.get_image("https://x/d.jpg")
            self.assertIs(cache.peek("https://x/d.jpg"), handle)
            await handle.wait()
        self.assertEqual(upstream.image_calls, 1)
        self.assertEqual(len(cache), 1)

    async def test_listener_runs_once_and_is_dropped_after_fill(self):
        upstream = Upstream(image_delay=0.01)
        cache, _, client = build(upstream)
        refreshed = []
        async with client:
            handle = cache.get_image("https://x/d.jpg")
            handle.subscribe(refreshed.append)
            handle.subscribe(refreshed.append)
            await handle.wait()
            handle.subscribe(refreshed.append)
        self.assertEqual(refreshed, [handle])
        self.assertEqual(handle._listeners, [])


if __name__ == '__main__':
    unittest.main()
