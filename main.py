"""
IvBrowse — Invidious mirror browser (FastAPI)

Goals
- Failover across a shuffled pool of Invidious mirrors, one pass per request
- Instance discovery from api.invidious.io on demand (and optionally at startup)
- Results rendered into named display surfaces, in order, with thumbnails
  streaming in from an in-memory image cache
- Dislike counts from returnyoutubedislikeapi.com on the video view

Run locally
  uvicorn main:app --host 0.0.0.0 --port 8080 --reload
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx
from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from cache import ThumbnailCache
from config import Settings, setup_logging
from mappers import map_video_details
from providers import InstanceDirectory, InvidiousProvider, MirrorPool, VotesProvider, new_client
from render import ExtraFields, Renderer, SurfaceRegistry
from thumbnails import ThumbnailResolver

log = logging.getLogger(__name__)


def _surface_response(surface, fmt: str):
    if fmt == "text":
        return PlainTextResponse(surface.text())
    return surface.to_dict()


def create_app(
    settings: Optional[Settings] = None,
    transport: httpx.AsyncBaseTransport | None = None,
    extra_fields: Optional[ExtraFields] = None,
) -> FastAPI:
    S = settings or Settings()
    setup_logging(S.LOG_LEVEL)

    # ------------------ App ------------------
    app = FastAPI(title="IvBrowse", version="1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[S.CORS_ORIGINS] if S.CORS_ORIGINS != "*" else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = S
    app.state.pool = MirrorPool(S.INVIDIOUS_HOSTS)
    app.state.surfaces = SurfaceRegistry(S.surface_names())

    # ------------------ Startup/Shutdown ------------------
    @app.on_event("startup")
    async def _on_startup():
        client = new_client(S, transport=transport)
        provider = InvidiousProvider(client, app.state.pool, S)
        app.state.client = client
        app.state.provider = provider
        app.state.directory = InstanceDirectory(client, app.state.pool, S)
        app.state.votes = VotesProvider(client, S)
        app.state.cache = ThumbnailCache(client, ThumbnailResolver(provider, S.THUMBNAIL_QUALITY), S.IMAGE_TIMEOUT)
        app.state.renderer = Renderer(app.state.cache, S, extra_fields=extra_fields)
        if S.DISCOVERY_ON_STARTUP:
            await app.state.directory.refresh_instances()

    @app.on_event("shutdown")
    async def _on_shutdown():
        await app.state.cache.aclose()
        await app.state.client.aclose()

    # ------------------ Endpoints ------------------
    @app.get("/health")
    async def health():
        return {
            "ok": True,
            "active_pool": app.state.pool.hosts,
            "request_timeout": S.REQUEST_TIMEOUT,
            "thumbnail_quality": S.THUMBNAIL_QUALITY,
            "cached_images": len(app.state.cache),
        }

    @app.get("/health/instances")
    async def health_instances():
        return {
            "pool": app.state.pool.hosts,
            "discovery_on_startup": S.DISCOVERY_ON_STARTUP,
            "discovery_source": S.INSTANCES_URL,
        }

    @app.get("/v1/instances")
    async def instances(clearnet: bool = False):
        d = app.state.directory
        hosts = await (d.list_clearnet_instances() if clearnet else d.list_instances())
        return {"instances": hosts}

    @app.post("/v1/instances/refresh")
    async def refresh_instances():
        return {"pool": await app.state.directory.refresh_instances()}

    # Fetch and render run as one unit inside SurfaceRegistry.run, so a newer
    # request on the same surface cancels an older one still waiting upstream.
    async def _search_into(surface, q: str, page: int):
        records = await app.state.provider.search(q, page=page)
        await app.state.renderer.render_videos(records or [], surface)

    async def _channels_into(surface, q: str, page: int):
        records = await app.state.provider.search_channels(q, page=page)
        await app.state.renderer.render_channels(records or [], surface)

    async def _channel_videos_into(surface, author_id: str):
        records = await app.state.provider.channel_videos(author_id)
        await app.state.renderer.render_videos(records or [], surface)

    async def _video_into(surface, video_id: str):
        raw = await app.state.provider.video(video_id)
        if raw is None:
            raise HTTPException(status_code=502, detail=f"Invidious mirrors failed for video {video_id}")
        votes = await app.state.votes.votes(video_id)
        await app.state.renderer.render_video_details(map_video_details(raw), votes, surface)

    @app.get("/v1/search")
    async def search(q: str = Query(..., min_length=1), page: int = 1, format: str = "json"):
        surface = await app.state.surfaces.run(S.SEARCH_SURFACE, lambda s: _search_into(s, q, page))
        return _surface_response(surface, format)

    @app.get("/v1/channels")
    async def channels(q: str = Query(..., min_length=1), page: int = 1, format: str = "json"):
        surface = await app.state.surfaces.run(S.CHANNEL_SURFACE, lambda s: _channels_into(s, q, page))
        return _surface_response(surface, format)

    @app.get("/v1/channels/{author_id}/videos")
    async def channel_videos(author_id: str, format: str = "json"):
        surface = await app.state.surfaces.run(S.VIDEOS_SURFACE, lambda s: _channel_videos_into(s, author_id))
        return _surface_response(surface, format)

    @app.get("/v1/videos/{video_id}")
    async def video(video_id: str, format: str = "json"):
        surface = await app.state.surfaces.run(S.DETAILS_SURFACE, lambda s: _video_into(s, video_id))
        return _surface_response(surface, format)

    @app.get("/v1/votes/{video_id}")
    async def votes(video_id: str):
        data = await app.state.votes.votes(video_id)
        if data is None:
            raise HTTPException(status_code=502, detail=f"votes unavailable for {video_id}")
        return data

    @app.get("/v1/thumbnails/{key:path}")
    async def thumbnail(key: str):
        # only images a render put on a surface; never fetch on behalf of the caller
        handle = app.state.cache.peek(key)
        if handle is None:
            raise HTTPException(status_code=404, detail=f"no thumbnail for {key}")
        await handle.wait()
        if not handle.ready:
            raise HTTPException(status_code=404, detail=f"no thumbnail for {key}")
        return Response(content=handle.data, media_type=handle.content_type or "image/jpeg")

    @app.delete("/v1/thumbnails")
    async def clear_thumbnails():
        n = len(app.state.cache)
        app.state.cache.clear()
        return {"cleared": n}

    @app.get("/v1/surfaces/{name}")
    async def surface(name: str, format: str = "json"):
        try:
            s = app.state.surfaces.get(name)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"unknown surface {name}")
        return _surface_response(s, format)

    # ------------------ Error handler ------------------
    @app.exception_handler(Exception)
    async def unhandled_exceptions(request: Request, exc: Exception):
        log.exception(f"unhandled error on {request.url.path}")
        return JSONResponse(status_code=500, content={"detail": f"Internal error: {str(exc)}"})

    return app


app = create_app()


# ------------------ Entrypoint ------------------
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=app.state.settings.PORT, reload=False)
