# providers.py
import logging
import random
import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlencode

import httpx

from config import Settings
from mappers import map_records
from models import SearchRecord

log = logging.getLogger(__name__)

_HIDDEN_SERVICE = re.compile(r"\.(onion|i2p)$", re.IGNORECASE)


def new_client(settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=settings.REQUEST_TIMEOUT,
        headers={"User-Agent": settings.USER_AGENT, "Accept": "application/json, */*"},
        follow_redirects=True,
        limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
        transport=transport,
    )


def host_base(host: str) -> str:
    host = host.rstrip("/")
    if host.startswith(("http://", "https://")):
        return host
    return f"https://{host}"


class MirrorPool:
    """Process-wide list of mirror hosts.

    Only touched from the event loop thread. Failover loops work on their own
    shuffled copy, so replace() never disturbs a request in flight.
    """

    def __init__(self, hosts: List[str], rng: random.Random | None = None):
        self._hosts = list(hosts)
        self._rng = rng or random.Random()

    @property
    def hosts(self) -> List[str]:
        return list(self._hosts)

    def replace(self, hosts: List[str]):
        self._hosts = list(hosts)

    def shuffled(self) -> List[str]:
        working = list(self._hosts)
        self._rng.shuffle(working)
        return working

    def __len__(self) -> int:
        return len(self._hosts)


class InvidiousProvider:
    """
    Failover client over a pool of Invidious mirrors.
    Docs: https://github.com/iv-org/documentation/blob/master/API.md
    """

    def __init__(self, client: httpx.AsyncClient, pool: MirrorPool, settings: Settings):
        self.client = client
        self.pool = pool
        self.settings = settings

    def _dbg(self, msg: str):
        if self.settings.DEBUG_UPSTREAM:
            log.info(f"[UPSTREAM] {msg}")

    async def _fetch_json(self, url: str, data: Optional[dict]) -> Any:
        if data is None:
            r = await self.client.get(url, timeout=self.settings.REQUEST_TIMEOUT)
        else:
            r = await self.client.post(url, json=data, timeout=self.settings.REQUEST_TIMEOUT)
        r.raise_for_status()
        return r.json()

    async def request(self, path: str, data: Optional[dict] = None) -> Any:
        """Try each mirror once, in random order, until one answers.

        ``path`` carries its query string already encoded. Returns the parsed
        body of the first usable answer, or None once every mirror has failed.
        """
        working = self.pool.shuffled()
        while working:
            base = host_base(working.pop())
            url = f"{base}{path}"
            try:
                body = await self._fetch_json(url, data)
            except httpx.HTTPError as e:
                self._dbg(f"fail {url}: {e!r}")
                continue
            except ValueError as e:
                self._dbg(f"non-JSON from {url}: {e}")
                continue
            if not isinstance(body, (dict, list)):
                self._dbg(f"unexpected body from {url}: {type(body).__name__}")
                continue
            if isinstance(body, dict) and "error" in body:
                self._dbg(f"upstream error from {url}: {body.get('error')}")
                continue
            return body

        log.warning(f"All {len(self.pool)} Invidious mirrors failed for {path}")
        return None

    # search (videos, channels)
    async def search(self, q: str, page: int = 1) -> Optional[List[SearchRecord]]:
        data = await self.request(f"/api/v1/search?{urlencode({'q': q, 'page': page})}")
        return None if data is None else map_records(data)

    async def search_channels(self, q: str, page: int = 1) -> Optional[List[SearchRecord]]:
        data = await self.request(f"/api/v1/search?{urlencode({'type': 'channel', 'q': q, 'page': page})}")
        return None if data is None else map_records(data)

    async def channel_videos(self, author_id: str) -> Optional[List[SearchRecord]]:
        data = await self.request(f"/api/v1/channels/{quote(author_id, safe='')}/videos")
        return None if data is None else map_records(data, default_type="video")

    async def video(self, video_id: str) -> Optional[Dict[str, Any]]:
        data = await self.request(f"/api/v1/videos/{quote(video_id, safe='')}")
        return data if isinstance(data, dict) else None


class InstanceDirectory:
    """Public list of Invidious instances (api.invidious.io)."""

    def __init__(self, client: httpx.AsyncClient, pool: MirrorPool, settings: Settings):
        self.client = client
        self.pool = pool
        self.settings = settings

    async def list_instances(self) -> List[str]:
        try:
            r = await self.client.get(self.settings.INSTANCES_URL)
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            log.warning(f"instance directory fetch failed: {e!r}")
            return []
        hosts: List[str] = []
        if isinstance(data, list):
            for row in data:
                if isinstance(row, list) and row and isinstance(row[0], str):
                    hosts.append(row[0].rstrip("/"))
        return hosts

    async def list_clearnet_instances(self) -> List[str]:
        return [h for h in await self.list_instances() if not _HIDDEN_SERVICE.search(h)]

    async def refresh_instances(self) -> List[str]:
        hosts = await self.list_clearnet_instances()
        if hosts:
            self.pool.replace(hosts)
            log.info(f"mirror pool refreshed: {len(hosts)} hosts")
        else:
            log.warning(f"instance directory yielded no hosts, keeping {len(self.pool)} current mirrors")
        return self.pool.hosts


class VotesProvider:
    """Like/dislike counts from the Return YouTube Dislike API."""

    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self.client = client
        self.settings = settings

    async def votes(self, video_id: str) -> Optional[Dict[str, Any]]:
        try:
            r = await self.client.get(self.settings.VOTES_URL, params={"videoId": video_id})
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            log.warning(f"votes lookup failed for {video_id}: {e!r}")
            return None
        return data if isinstance(data, dict) else None
