# mappers.py
from typing import Any, Dict, List, Optional

from models import ChannelRecord, OtherRecord, SearchRecord, Thumbnail, VideoDetails, VideoRecord


def _to_int(v: Any) -> Optional[int]:
    try:
        return int(v)
    except Exception:
        return None


def _absolute(url: Any) -> Optional[str]:
    if not isinstance(url, str) or not url:
        return None
    if url.startswith("//"):
        return f"https:{url}"
    if url.startswith("/vi/"):
        return f"https://i.ytimg.com{url}"
    return url


def parse_thumbnails(raw: Any) -> Dict[str, Thumbnail]:
    """Turn an upstream ``videoThumbnails`` array into a mapping keyed by quality tier.

    An already-keyed mapping (``{"default": {"url": ...}}``) is accepted as well.
    Entries without a quality name are dropped; the first entry wins for a tier.
    """
    if isinstance(raw, dict):
        raw = [dict(v, quality=k) for k, v in raw.items() if isinstance(v, dict)]
    if not isinstance(raw, list):
        return {}
    out: Dict[str, Thumbnail] = {}
    for t in raw:
        if not isinstance(t, dict):
            continue
        quality = t.get("quality")
        if not isinstance(quality, str) or quality in out:
            continue
        out[quality] = Thumbnail(
            quality=quality,
            url=_absolute(t.get("url")),
            width=_to_int(t.get("width")),
            height=_to_int(t.get("height")),
        )
    return out


def map_video(v: dict) -> VideoRecord:
    return VideoRecord(
        id=v.get("videoId") or v.get("id") or "",
        title=v.get("title") or "",
        author=v.get("author"),
        authorId=v.get("authorId"),
        thumbnails=parse_thumbnails(v.get("videoThumbnails")),
        viewCountText=v.get("viewCountText") or (str(v["viewCount"]) if v.get("viewCount") is not None else None),
        description=v.get("description") or None,
        lengthSeconds=_to_int(v.get("lengthSeconds")),
        publishedText=v.get("publishedText"),
    )


def map_channel(c: dict) -> ChannelRecord:
    author_id = c.get("authorId") or c.get("ucid") or ""
    return ChannelRecord(
        authorId=author_id,
        author=c.get("author"),
        authorUrl=c.get("authorUrl") or (f"/channel/{author_id}" if author_id else None),
        subCount=_to_int(c.get("subCount")),
        videoCount=_to_int(c.get("videoCount")),
        description=c.get("description") or None,
    )


def map_record(it: Any, default_type: Optional[str] = None) -> SearchRecord:
    if not isinstance(it, dict):
        return OtherRecord()
    t = it.get("type") or default_type
    if t == "video" and (it.get("videoId") or it.get("id")):
        return map_video(it)
    if t == "channel" and (it.get("authorId") or it.get("ucid")):
        return map_channel(it)
    return OtherRecord(type=str(t or "other"))


def map_records(raw: Any, default_type: Optional[str] = None) -> List[SearchRecord]:
    if isinstance(raw, dict):
        # /channels/:id/videos on newer instances: {"videos": [...], "continuation": ...}
        raw = raw.get("videos")
    if not isinstance(raw, list):
        return []
    return [map_record(it, default_type) for it in raw]


def map_video_details(raw: dict) -> VideoDetails:
    return VideoDetails(
        id=raw.get("videoId") or "",
        title=raw.get("title") or "",
        author=raw.get("author"),
        authorId=raw.get("authorId"),
        description=raw.get("description") or "",
        viewCount=_to_int(raw.get("viewCount")) or 0,
        likeCount=_to_int(raw.get("likeCount")) or 0,
        lengthSeconds=_to_int(raw.get("lengthSeconds")) or 0,
        publishedText=raw.get("publishedText"),
        thumbnails=parse_thumbnails(raw.get("videoThumbnails")),
    )
