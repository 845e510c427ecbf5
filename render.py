# render.py
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel

from cache import ImageHandle, ThumbnailCache
from config import Settings
from models import ChannelRecord, SearchRecord, VideoDetails, VideoRecord

log = logging.getLogger(__name__)

ExtraFields = Callable[[VideoRecord], Union[str, Iterable[str], None]]


class Button(BaseModel):
    label: str
    action: str  # watch | open-channel | copy-url | description
    target: str


Part = Union[str, Button, ImageHandle]
Line = List[Part]
Block = List[Line]


def _part_dict(p: Part) -> Dict[str, Any]:
    if isinstance(p, Button):
        return {"kind": "button", **p.model_dump()}
    if isinstance(p, ImageHandle):
        return {"kind": "image", "key": p.key, "state": p.state}
    return {"kind": "text", "text": p}


def _part_text(p: Part) -> str:
    if isinstance(p, Button):
        return f"[{p.label}]"
    if isinstance(p, ImageHandle):
        return "[image]" if p.ready else "[image ...]" if p.state == "loading" else "[no image]"
    return p


class Surface:
    """Named display surface: an ordered list of blocks made of text, buttons and images."""

    def __init__(self, name: str):
        self.name = name
        self.blocks: List[Block] = []
        self.visible = False
        self.point = 0
        self.revision = 0

    def clear(self):
        self.blocks = []
        self.point = 0
        self.revision += 1

    def append(self, block: Block):
        self.blocks.append(block)
        for line in block:
            for part in line:
                if isinstance(part, ImageHandle) and not part.settled:
                    part.subscribe(self.refresh)
        self.revision += 1

    def present(self):
        self.visible = True
        self.point = 0

    def shows(self, handle: ImageHandle) -> bool:
        return any(part is handle for block in self.blocks for line in block for part in line)

    def refresh(self, handle: ImageHandle):
        if self.shows(handle):
            self.revision += 1
            log.debug(f"{self.name}: image {handle.key} ready (rev {self.revision})")

    def text(self) -> str:
        return "\n\n".join(
            "\n".join(" ".join(_part_text(p) for p in line) for line in block) for block in self.blocks
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "visible": self.visible,
            "point": self.point,
            "revision": self.revision,
            "blocks": [[[_part_dict(p) for p in line] for line in block] for block in self.blocks],
        }


class SurfaceRegistry:
    def __init__(self, names: Iterable[str]):
        self._surfaces: Dict[str, Surface] = {n: Surface(n) for n in names}
        self._renders: Dict[str, asyncio.Task] = {}

    def get(self, name: str) -> Surface:
        return self._surfaces[name]

    def names(self) -> List[str]:
        return list(self._surfaces)

    def rendering(self, name: str) -> bool:
        return name in self._renders

    def _forget(self, name: str, task: asyncio.Task):
        if self._renders.get(name) is task:
            del self._renders[name]

    async def run(self, name: str, render: Callable[[Surface], Awaitable[Any]]) -> Surface:
        """Render into ``name``, cancelling whatever render was still filling it."""
        surface = self.get(name)
        previous = self._renders.get(name)
        if previous is not None and not previous.done():
            previous.cancel()
        task = asyncio.get_running_loop().create_task(render(surface))
        self._renders[name] = task
        task.add_done_callback(lambda t: self._forget(name, t))
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task.cancelled():
            log.info(f"render into {name} superseded")
        else:
            task.result()
        return surface


def fmt_length(seconds: Optional[int]) -> str:
    if not seconds:
        return ""
    h, rem = divmod(int(seconds), 3600)
    m, s = divmod(rem, 60)
    return f"{h}:{m:02d}:{s:02d}" if h else f"{m}:{s:02d}"


def fmt_count(n: Any) -> str:
    try:
        return f"{int(n):,}"
    except Exception:
        return "?"


class Renderer:
    def __init__(self, cache: ThumbnailCache, settings: Settings, extra_fields: Optional[ExtraFields] = None):
        self.cache = cache
        self.settings = settings
        self.extra_fields = extra_fields

    @property
    def quality(self) -> str:
        return self.cache.resolver.quality

    def watch_url(self, video_id: str) -> str:
        return f"{self.settings.WATCH_BASE_URL}/watch?v={video_id}"

    def channel_url(self, author_id: str, author_url: Optional[str] = None) -> str:
        return f"{self.settings.WATCH_BASE_URL}{author_url or f'/channel/{author_id}'}"

    def _image_for(self, video_id: str, thumbnails_url: Optional[str]) -> ImageHandle:
        # The record usually carries its thumbnails; only fall back to a metadata lookup by id
        return self.cache.get_image(thumbnails_url or video_id)

    def _extra_lines(self, rec: VideoRecord, hook: Optional[ExtraFields]) -> List[Line]:
        if hook is None:
            return []
        out = hook(rec)
        if out is None:
            return []
        if isinstance(out, str):
            return [[out]]
        return [[str(x)] for x in out]

    def _video_block(self, rec: VideoRecord, image: ImageHandle, hook: Optional[ExtraFields]) -> Block:
        url = self.watch_url(rec.id)
        stats = " · ".join(
            s for s in (rec.viewCountText, fmt_length(rec.lengthSeconds), rec.publishedText) if s
        )
        block: Block = [
            [Button(label="Watch", action="watch", target=url), image],
            [rec.title],
        ]
        if rec.authorId:
            block.append([Button(label=rec.author or rec.authorId, action="open-channel", target=rec.authorId)])
        elif rec.author:
            block.append([rec.author])
        if stats:
            block.append([stats])
        actions: Line = [Button(label="Copy URL", action="copy-url", target=url)]
        if rec.description:
            actions.append(Button(label="Description", action="description", target=rec.id))
        block.append(actions)
        block.extend(self._extra_lines(rec, hook))
        return block

    def _channel_block(self, rec: ChannelRecord) -> Block:
        block: Block = [
            [Button(label="Open", action="open-channel", target=rec.authorId), rec.author or rec.authorId],
        ]
        if rec.subCount is not None:
            block.append([f"{fmt_count(rec.subCount)} subscribers"])
        block.append([Button(label="Copy URL", action="copy-url", target=self.channel_url(rec.authorId, rec.authorUrl))])
        return block

    async def render_videos(
        self, records: Iterable[SearchRecord], surface: Surface, extra_fields: Optional[ExtraFields] = None
    ) -> Surface:
        surface.clear()
        hook = extra_fields or self.extra_fields
        for rec in records:
            if not isinstance(rec, VideoRecord):
                continue
            image = self._image_for(rec.id, rec.thumbnail_url(self.quality))
            surface.append(self._video_block(rec, image, hook))
            # one entry at a time; lets other work and cancellation in between
            await asyncio.sleep(0)
        surface.present()
        return surface

    async def render_channels(self, records: Iterable[SearchRecord], surface: Surface) -> Surface:
        surface.clear()
        for rec in records:
            if not isinstance(rec, ChannelRecord):
                continue
            surface.append(self._channel_block(rec))
            await asyncio.sleep(0)
        surface.present()
        return surface

    async def render_video_details(
        self, details: VideoDetails, votes: Optional[Dict[str, Any]], surface: Surface
    ) -> Surface:
        surface.clear()
        url = self.watch_url(details.id)
        thumb = details.thumbnails.get(self.quality)
        image = self._image_for(details.id, thumb.url if thumb else None)

        likes = (votes or {}).get("likes", details.likeCount)
        counts = f"{fmt_count(details.viewCount)} views · {fmt_count(likes)} likes"
        if votes and "dislikes" in votes:
            counts += f" · {fmt_count(votes['dislikes'])} dislikes"

        header: Block = [
            [Button(label="Watch", action="watch", target=url), image],
            [details.title],
        ]
        if details.authorId:
            header.append([Button(label=details.author or details.authorId, action="open-channel", target=details.authorId)])
        header.append([counts])
        meta = " · ".join(s for s in (fmt_length(details.lengthSeconds), details.publishedText) if s)
        if meta:
            header.append([meta])
        header.append([Button(label="Copy URL", action="copy-url", target=url)])
        surface.append(header)
        if details.description:
            surface.append([[line] for line in details.description.splitlines()])
        surface.present()
        return surface
