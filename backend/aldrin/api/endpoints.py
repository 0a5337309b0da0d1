from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from aldrin.core.errors import InvalidPath, MediaNotFound
from aldrin.core.settings import Settings
from aldrin.domain.models import Catalog, CatalogStats, MediaKind, MediaLocation
from aldrin.services.catalog import CatalogAggregator
from aldrin.services.paths import REQUIRED_SEGMENTS, resolve_location
from aldrin.services.streaming import MediaStreamer

router = APIRouter()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_media_root(request: Request) -> Path:
    return request.app.state.media_root


def get_streamer(request: Request) -> MediaStreamer:
    return request.app.state.streamer


def get_catalog(request: Request) -> CatalogAggregator:
    return request.app.state.catalog


def media_filename(kind: MediaKind, settings: Settings) -> str:
    return {
        MediaKind.COVER: settings.COVER_FILENAME,
        MediaKind.AUDIO: settings.AUDIO_FILENAME,
        MediaKind.VIDEO: settings.VIDEO_FILENAME,
    }[kind]


def raw_media_path(request: Request, kind: MediaKind, media_path: str) -> str:
    """The ``{album}/{track}`` part of the URL as sent, still percent-encoded.

    ``media_path`` has already been decoded by the server, which turns an encoded
    ``%2F`` into a real separator. Splitting the raw path keeps it inside its
    segment, where ``clean_segment`` rejects it.
    """
    raw_path = request.scope.get("raw_path")
    if not raw_path:
        return media_path
    raw = raw_path.decode("latin-1").split("?", 1)[0]
    prefix = f"/media-{kind.value}/"
    index = raw.find(prefix)
    if index == -1:
        return media_path
    return raw[index + len(prefix):]


def parse_location(media_path: str, filename: str) -> MediaLocation:
    segments = media_path.split("/")
    if len(segments) < REQUIRED_SEGMENTS:
        raise InvalidPath("Need album and track")
    if len(segments) > REQUIRED_SEGMENTS:
        raise InvalidPath("Too many path segments")
    album, track = segments
    return MediaLocation(album=album, track=track, filename=filename)


async def serve_media(kind: MediaKind, media_path: str, request: Request) -> Response:
    settings = get_settings(request)
    if kind is not MediaKind.COVER and not settings.MEDIA_PLAYBACK_ENABLED:
        raise MediaNotFound("Media playback disabled")

    location = parse_location(raw_media_path(request, kind, media_path), media_filename(kind, settings))
    path = resolve_location(get_media_root(request), location)
    return await get_streamer(request).stream(path, kind, request.headers.get("range"))


@router.get("/health")
async def health_check():
    return {"status": "ok"}

@router.get("/ready")
async def readiness_check(media_root: Path = Depends(get_media_root)):
    if not media_root.is_dir():
        return JSONResponse({"status": "unavailable", "message": "Media root missing"}, status_code=503)
    return {"status": "ready"}

# {album}/{track}, matched as one path so short or long requests get a 400
@router.get("/media-cover/{media_path:path}")
async def get_cover(media_path: str, request: Request) -> Response:
    return await serve_media(MediaKind.COVER, media_path, request)

@router.get("/media-audio/{media_path:path}")
async def get_audio(media_path: str, request: Request) -> Response:
    return await serve_media(MediaKind.AUDIO, media_path, request)

@router.get("/media-video/{media_path:path}")
async def get_video(media_path: str, request: Request) -> Response:
    return await serve_media(MediaKind.VIDEO, media_path, request)

@router.get("/catalog", response_model=Catalog)
async def get_full_catalog(catalog: CatalogAggregator = Depends(get_catalog)) -> Catalog:
    return await catalog.load()

@router.post("/catalog/reload", response_model=CatalogStats)
async def reload_catalog(catalog: CatalogAggregator = Depends(get_catalog)) -> CatalogStats:
    return (await catalog.reload()).stats
