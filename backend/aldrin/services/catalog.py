import asyncio
import csv
import json
import logging
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import httpx

from aldrin.core.errors import CatalogLoadError, ConfigurationError
from aldrin.core.settings import Settings
from aldrin.domain.models import Album, Catalog, CatalogStats, RawCatalog, Track

logger = logging.getLogger(__name__)

TRACK_TEXT_FIELDS = (
    "title",
    "album_name",
    "album_id",
    "filename",
    "filepath",
    "description",
    "seo_keywords",
    "prompt",
    "cover_prompt",
    "seed",
    "created_at",
)
TRUE_STRINGS = {"true", "1", "yes", "y"}


def parse_tags(value: Any) -> list[str]:
    """Split a pipe-delimited tag field. Entries are trimmed, empties dropped, order kept.

    >>> parse_tags("A|B| C |")
    ['A', 'B', 'C']
    """
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split("|")
    else:
        items = [str(item) for item in value if item is not None]
    return [tag.strip() for tag in items if tag.strip()]


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _flag(row: dict, *keys: str) -> bool:
    for key in keys:
        value = row.get(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in TRUE_STRINGS:
            return True
    return False


def _count(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def normalize_track(row: dict, playback_enabled: bool = True) -> Track:
    track_id = _text(row.get("track_id") or row.get("id")).strip()
    if not track_id:
        raise ValueError(f"track row without track_id: {row.get('title')!r}")

    seed = _text(row.get("seed"))
    cover_url = row.get("coverUrl") or row.get("cover_url")
    if not cover_url and seed:
        cover_url = f"/covers/{seed}.jpg"

    has_audio = playback_enabled and _flag(row, "hasAudio", "has_audio")
    has_video = playback_enabled and _flag(row, "hasVideo", "has_video")

    return Track(
        id=track_id,
        track_id=track_id,
        tags=parse_tags(row.get("tags")),
        cover_url=cover_url,
        has_audio=has_audio,
        has_video=has_video,
        audio_path=(row.get("audioPath") or row.get("audio_path")) if has_audio else None,
        video_path=(row.get("videoPath") or row.get("video_path")) if has_video else None,
        **{field: _text(row.get(field)) for field in TRACK_TEXT_FIELDS},
    )


def normalize_album(row: dict) -> Album:
    album_id = _text(row.get("album_id")).strip()
    if not album_id:
        raise ValueError(f"album row without album_id: {row.get('album_name')!r}")
    return Album(
        album_id=album_id,
        album_name=_text(row.get("album_name")),
        track_count=_count(row.get("track_count")),
    )


def is_row_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(row, dict) for row in value)


def derive_albums(tracks: list[Track]) -> list[Album]:
    counts = Counter(track.album_id for track in tracks if track.album_id)
    albums: dict[str, Album] = {}
    for track in tracks:
        if track.album_id and track.album_id not in albums:
            albums[track.album_id] = Album(
                album_id=track.album_id,
                album_name=track.album_name,
                track_count=counts[track.album_id],
            )
    return list(albums.values())


class CatalogSource(Protocol):
    name: str

    async def fetch(self) -> RawCatalog: ...


class SnapshotSource:
    """Precomputed ``library.json`` with a ``tracks`` list and optional ``albums``."""

    name = "snapshot"

    def __init__(self, path: Path):
        self.path = Path(path)

    async def fetch(self) -> RawCatalog:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogLoadError(self.name, f"{self.path}: {e}") from e

        if not isinstance(data, dict) or not is_row_list(data.get("tracks")):
            raise CatalogLoadError(self.name, f"{self.path}: expected an object with a 'tracks' list")
        albums = data.get("albums") or []
        if not is_row_list(albums):
            raise CatalogLoadError(self.name, f"{self.path}: 'albums' must be a list of objects")

        return RawCatalog(
            source=self.name,
            tracks=data["tracks"],
            albums=albums,
            origin=self.path,
        )


class CsvSource:
    """``tracks.csv`` (required) and ``albums.csv`` (optional) exports with header rows."""

    name = "csv"

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    @property
    def tracks_path(self) -> Path:
        return self.directory / "tracks.csv"

    @property
    def albums_path(self) -> Path:
        return self.directory / "albums.csv"

    async def fetch(self) -> RawCatalog:
        tracks = self.read_rows(self.tracks_path, required_column="track_id")
        albums = []
        if self.albums_path.exists():
            albums = self.read_rows(self.albums_path, required_column="album_id")
        return RawCatalog(source=self.name, tracks=tracks, albums=albums, origin=self.directory)

    def read_rows(self, path: Path, required_column: str) -> list[dict]:
        try:
            # utf-8-sig: spreadsheet exports often start with a BOM
            with path.open(newline="", encoding="utf-8-sig") as f:
                reader = csv.DictReader(f)
                if not reader.fieldnames or required_column not in reader.fieldnames:
                    raise CatalogLoadError(self.name, f"{path}: missing '{required_column}' column")
                return list(reader)
        except (OSError, csv.Error, UnicodeDecodeError) as e:
            raise CatalogLoadError(self.name, f"{path}: {e}") from e


class SupabaseSource:
    """Tracks and albums from a Supabase project's PostgREST API.

    The ``httpx.AsyncClient`` is owned by the caller (the application lifespan).
    """

    name = "supabase"

    def __init__(self, base_url: str, api_key: str, client: httpx.AsyncClient):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.client = client

    @property
    def headers(self) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }

    async def fetch(self) -> RawCatalog:
        tracks = await self.select("tracks", order="created_at.asc")
        albums = await self.select("albums", order="album_id.asc")
        return RawCatalog(source=self.name, tracks=tracks, albums=albums, origin=self.base_url)

    async def select(self, table: str, order: str | None = None) -> list[dict]:
        params = {"select": "*"}
        if order:
            params["order"] = order
        try:
            response = await self.client.get(f"{self.base_url}/rest/v1/{table}", params=params, headers=self.headers)
            response.raise_for_status()
            rows = response.json()
        except httpx.HTTPStatusError as e:
            raise CatalogLoadError(self.name, f"{table}: HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise CatalogLoadError(self.name, f"{table}: {e}") from e

        if not is_row_list(rows):
            raise CatalogLoadError(self.name, f"{table}: expected a list of rows")
        return rows


def build_catalog_source(settings: Settings, client: httpx.AsyncClient | None = None) -> CatalogSource:
    if settings.CATALOG_SOURCE == "csv":
        return CsvSource(settings.CSV_DIR)
    if settings.CATALOG_SOURCE == "supabase":
        if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
            raise ConfigurationError("CATALOG_SOURCE=supabase requires SUPABASE_URL and SUPABASE_KEY")
        if client is None:
            raise ConfigurationError("Supabase catalog source needs an HTTP client")
        return SupabaseSource(settings.SUPABASE_URL, settings.SUPABASE_KEY, client)
    return SnapshotSource(settings.SNAPSHOT_PATH)


class CatalogAggregator:
    """Loads the catalog from one source and caches it until ``reload``."""

    def __init__(self, source: CatalogSource, playback_enabled: bool = True):
        self.source = source
        self.playback_enabled = playback_enabled
        self._catalog: Catalog | None = None
        self._lock = asyncio.Lock()

    @property
    def cached(self) -> Catalog | None:
        return self._catalog

    async def load(self) -> Catalog:
        if self._catalog is not None:
            return self._catalog
        async with self._lock:
            # Another request may have finished loading while we waited
            if self._catalog is None:
                self._catalog = await self._load_from_source()
        return self._catalog

    async def reload(self) -> Catalog:
        async with self._lock:
            # Keep serving the previous catalog if this load fails
            catalog = await self._load_from_source()
            self._catalog = catalog
        return catalog

    def invalidate(self):
        self._catalog = None

    async def _load_from_source(self) -> Catalog:
        try:
            raw = await self.source.fetch()
            catalog = self.build(raw)
        except CatalogLoadError as e:
            logger.error(f"Catalog load failed for source {e.source}: {e.reason}")
            raise
        logger.info(f"Loaded {len(catalog.tracks)} tracks and {len(catalog.albums)} albums from {self.source.name}")
        return catalog

    def build(self, raw: RawCatalog) -> Catalog:
        tracks: list[Track] = []
        seen: set[str] = set()
        try:
            for row in raw.tracks:
                track = normalize_track(row, self.playback_enabled)
                if track.id in seen:
                    logger.warning(f"Duplicate track {track.id} from {raw.source}, keeping the first")
                    continue
                seen.add(track.id)
                tracks.append(track)

            albums = [normalize_album(row) for row in raw.albums] if raw.albums else derive_albums(tracks)
        except (ValueError, TypeError, AttributeError) as e:
            raise CatalogLoadError(raw.source, f"malformed row: {e}") from e

        stats = CatalogStats(
            total_tracks=len(tracks),
            audio_found=sum(1 for track in tracks if track.has_audio),
            videos_rendered=sum(1 for track in tracks if track.has_video),
            last_scan=datetime.now(timezone.utc).isoformat(),
        )
        return Catalog(tracks=tracks, albums=albums, stats=stats)
