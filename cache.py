# cache.py
import asyncio
import logging
from typing import Callable, Dict, List, Optional, Set

import httpx

from thumbnails import ThumbnailResolver

log = logging.getLogger(__name__)


class ImageHandle:
    """Image cell shared between the cache and every surface showing it.

    Starts empty (``loading``) and settles exactly once, either ``ready`` with
    the fetched bytes or ``failed`` and still empty.
    """

    def __init__(self, key: str):
        self.key = key
        self.url: Optional[str] = None
        self.data: bytes = b""
        self.content_type: Optional[str] = None
        self.state = "loading"
        self._settled = asyncio.Event()
        self._listeners: List[Callable[["ImageHandle"], None]] = []

    @property
    def ready(self) -> bool:
        return self.state == "ready"

    @property
    def settled(self) -> bool:
        return self._settled.is_set()

    def subscribe(self, fn: Callable[["ImageHandle"], None]):
        if self.settled or fn in self._listeners:
            return
        self._listeners.append(fn)

    def fill(self, data: bytes, content_type: Optional[str] = None):
        self.data = data
        self.content_type = content_type
        self.state = "ready"
        self._settled.set()
        listeners, self._listeners = self._listeners, []
        for fn in listeners:
            fn(self)

    def fail(self):
        self.state = "failed"
        self._settled.set()
        self._listeners = []

    async def wait(self) -> "ImageHandle":
        await self._settled.wait()
        return self


class ThumbnailCache:
    """Memoize-forever image cache keyed by video id or raw URL."""

    def __init__(self, client: httpx.AsyncClient, resolver: ThumbnailResolver, timeout: float = 10.0):
        self.client = client
        self.resolver = resolver
        self.timeout = timeout
        self._store: Dict[str, ImageHandle] = {}
        self._tasks: Set[asyncio.Task] = set()

    def get_image(self, key: str) -> ImageHandle:
        """Return the handle for ``key`` right away; a miss starts loading it in the background.

        Must be called from inside the running event loop.
        """
        handle = self._store.get(key)
        if handle is not None:
            return handle
        handle = ImageHandle(key)
        self._store[key] = handle
        task = asyncio.get_running_loop().create_task(self._load(handle))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return handle

    async def _load(self, handle: ImageHandle):
        try:
            await self._fetch(handle)
        except asyncio.CancelledError:
            handle.fail()
            raise

    async def _fetch(self, handle: ImageHandle):
        url = await self.resolver.resolve_url(handle.key)
        if not url:
            log.warning(f"no {self.resolver.quality} thumbnail for {handle.key}")
            handle.fail()
            return
        handle.url = url
        try:
            r = await self.client.get(url, timeout=self.timeout)
            r.raise_for_status()
        except httpx.HTTPError as e:
            log.warning(f"thumbnail fetch failed for {handle.key} ({url}): {e!r}")
            handle.fail()
            return
        handle.fill(r.content, r.headers.get("content-type"))

    def peek(self, key: str) -> Optional[ImageHandle]:
        """Cached handle for ``key``, or None. Never inserts or fetches."""
        return self._store.get(key)

    def clear(self):
        self._store.clear()

    async def aclose(self):
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        for handle in self._store.values():
            if not handle.settled:
                handle.fail()

    def __contains__(self, key: str) -> bool:
        return key in self._store

    def __len__(self) -> int:
        return len(self._store)
