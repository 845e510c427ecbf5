# thumbnails.py
import re
from typing import Optional

from mappers import parse_thumbnails
from providers import InvidiousProvider

_URL = re.compile(r"^https?://", re.IGNORECASE)


def looks_like_url(id_or_url: str) -> bool:
    return bool(_URL.match(id_or_url or ""))


class ThumbnailResolver:
    def __init__(self, provider: InvidiousProvider, quality: str = "default"):
        self.provider = provider
        self.quality = quality

    async def resolve_url(self, id_or_url: str) -> Optional[str]:
        """Direct image URL for a video id at the configured tier; URLs pass through."""
        if looks_like_url(id_or_url):
            return id_or_url
        meta = await self.provider.video(id_or_url)
        if meta is None:
            return None
        thumb = parse_thumbnails(meta.get("videoThumbnails")).get(self.quality)
        return thumb.url if thumb else None
