# models.py
from enum import Enum
from typing import Dict, Literal, Optional, Union

from pydantic import BaseModel


class ThumbnailQuality(str, Enum):
    maxres = "maxres"
    sddefault = "sddefault"
    high = "high"
    medium = "medium"
    default = "default"
    start = "start"
    middle = "middle"
    end = "end"


class Thumbnail(BaseModel):
    quality: Optional[str] = None
    url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


# ---------- search / channel result records ----------

class VideoRecord(BaseModel):
    type: Literal["video"] = "video"
    id: str
    title: str = ""
    author: Optional[str] = None
    authorId: Optional[str] = None
    thumbnails: Dict[str, Thumbnail] = {}
    viewCountText: Optional[str] = None
    description: Optional[str] = None
    lengthSeconds: Optional[int] = None
    publishedText: Optional[str] = None

    def thumbnail_url(self, quality: str) -> Optional[str]:
        t = self.thumbnails.get(quality)
        return t.url if t else None


class ChannelRecord(BaseModel):
    type: Literal["channel"] = "channel"
    authorId: str
    author: Optional[str] = None
    authorUrl: Optional[str] = None
    subCount: Optional[int] = None
    videoCount: Optional[int] = None
    description: Optional[str] = None


class OtherRecord(BaseModel):
    """Anything the renderers do not know how to show (playlists, hashtags, ...)."""
    type: str = "other"


SearchRecord = Union[VideoRecord, ChannelRecord, OtherRecord]


# ---------- video details (description view) ----------

class VideoDetails(BaseModel):
    id: str
    title: str = ""
    author: Optional[str] = None
    authorId: Optional[str] = None
    description: str = ""
    viewCount: int = 0
    likeCount: int = 0
    lengthSeconds: int = 0
    publishedText: Optional[str] = None
    thumbnails: Dict[str, Thumbnail] = {}
