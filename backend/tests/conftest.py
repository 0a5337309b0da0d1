"""Shared fixtures: a media tree under tmp_path and an app wired to it."""

import csv
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from aldrin.core.settings import Settings
from aldrin.main import create_app

AUDIO_BYTES = bytes(i % 256 for i in range(1000))
VIDEO_BYTES = bytes((i * 7) % 256 for i in range(2048))
COVER_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 56

TRACK_COLUMNS = [
    "track_id", "title", "album_name", "album_id", "filename", "filepath", "description",
    "seo_keywords", "prompt", "tags", "cover_prompt", "seed", "created_at",
]


def write_csv(path: Path, columns: list[str], rows: list[dict]):
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=columns)
        writer.writeheader()
        writer.writerows(rows)


def track_row(track_id: str, **overrides) -> dict:
    row = {
        "track_id": track_id,
        "title": f"Title {track_id}",
        "album_name": "Neon Tides",
        "album_id": "ALB01",
        "filename": f"{track_id}.mp3",
        "filepath": f"songs/{track_id}.mp3",
        "description": "A generated track",
        "seo_keywords": "synthwave, night drive",
        "prompt": "retro synthwave, 110bpm",
        "tags": "Synthwave|Retro",
        "cover_prompt": "neon city at night",
        "seed": f"ALB01_{track_id}_SEED1",
        "created_at": "2025-01-05T10:00:00",
    }
    row.update(overrides)
    return row


@pytest.fixture
def media_root(tmp_path: Path) -> Path:
    root = tmp_path / "songs"
    track_dir = root / "Neon Tides" / "Track 01"
    track_dir.mkdir(parents=True)
    (track_dir / "song.mp3").write_bytes(AUDIO_BYTES)
    (track_dir / "video.mp4").write_bytes(VIDEO_BYTES)
    (track_dir / "square.png").write_bytes(COVER_BYTES)
    (root / "Neon Tides" / "Track 02").mkdir()
    return root


@pytest.fixture
def csv_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "data"
    directory.mkdir()
    write_csv(directory / "tracks.csv", TRACK_COLUMNS, [
        track_row("T01", tags="A|B| C |"),
        track_row("T02", album_id="ALB02", album_name="Glass Harbor"),
    ])
    write_csv(directory / "albums.csv", ["album_id", "album_name", "track_count"], [
        {"album_id": "ALB01", "album_name": "Neon Tides", "track_count": "12"},
        {"album_id": "ALB02", "album_name": "Glass Harbor", "track_count": "1"},
    ])
    return directory


@pytest.fixture
def settings(tmp_path: Path, media_root: Path, csv_dir: Path) -> Settings:
    return Settings(
        _env_file=None,
        APP_ENV="test",
        MEDIA_ROOT=media_root,
        CATALOG_SOURCE="csv",
        CSV_DIR=csv_dir,
        STATIC_DIR=tmp_path / "no-static",
        STREAM_CHUNK_SIZE=64,
    )


@pytest.fixture
def client(settings: Settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client
