"""
Push a CSV export into the Supabase tables read by SupabaseSource.

Rows are normalised exactly as the CSV catalog source does, then upserted in
bulk through PostgREST so re-running a sync updates rows instead of failing on
the primary key.
"""
import logging
from datetime import datetime, timezone
from pathlib import Path

import httpx

from aldrin.domain.models import Album, Track
from aldrin.services.catalog import CsvSource, normalize_album, normalize_track

logger = logging.getLogger(__name__)


def album_row(album: Album) -> dict:
    return album.model_dump()


def track_row(track: Track) -> dict:
    created_at = track.created_at
    try:
        created_at = datetime.fromisoformat(created_at).isoformat() if created_at else None
    except ValueError:
        logger.warning(f"Unparseable created_at {created_at!r} for track {track.track_id}")
        created_at = None

    return {
        "track_id": track.track_id,
        "title": track.title,
        "album_name": track.album_name,
        "album_id": track.album_id,
        "filename": track.filename,
        "filepath": track.filepath,
        "description": track.description,
        "seo_keywords": track.seo_keywords,
        "prompt": track.prompt,
        "tags": track.tags,
        "cover_prompt": track.cover_prompt,
        "seed": track.seed,
        "cover_url": track.cover_url,
        "created_at": created_at or datetime.now(timezone.utc).isoformat(),
    }


def read_export(directory: Path) -> tuple[list[dict], list[dict]]:
    source = CsvSource(directory)
    albums = []
    if source.albums_path.exists():
        albums = [album_row(normalize_album(row)) for row in source.read_rows(source.albums_path, "album_id")]
    tracks = [track_row(normalize_track(row)) for row in source.read_rows(source.tracks_path, "track_id")]
    return albums, tracks


class SupabaseWriter:
    def __init__(self, base_url: str, api_key: str, client: httpx.Client):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.client = client

    def upsert(self, table: str, rows: list[dict], conflict_key: str) -> int:
        if not rows:
            return 0
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Prefer": "resolution=merge-duplicates,return=minimal",
        }
        response = self.client.post(
            f"{self.base_url}/rest/v1/{table}",
            params={"on_conflict": conflict_key},
            json=rows,
            headers=headers,
        )
        response.raise_for_status()
        logger.info(f"Upserted {len(rows)} rows into {table}")
        return len(rows)

    def sync(self, albums: list[dict], tracks: list[dict]) -> dict:
        return {
            "albums": self.upsert("albums", albums, "album_id"),
            "tracks": self.upsert("tracks", tracks, "track_id"),
        }
