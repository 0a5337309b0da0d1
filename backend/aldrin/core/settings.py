from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "Spectral Aldrin"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    HOST: str = "127.0.0.1"
    PORT: int = 13010

    # Media tree: MEDIA_ROOT/<album>/<track>/<filename>
    MEDIA_ROOT: Path = Path("/data/songs")
    COVER_FILENAME: str = "square.png"
    AUDIO_FILENAME: str = "song.mp3"
    VIDEO_FILENAME: str = "video.mp4"
    STREAM_CHUNK_SIZE: int = 64 * 1024
    COVER_CACHE_CONTROL: str = "public, max-age=31536000, immutable"

    # Catalog
    CATALOG_SOURCE: Literal["snapshot", "csv", "supabase"] = "snapshot"
    SNAPSHOT_PATH: Path = Path("data/library.json")
    CSV_DIR: Path = Path("data")
    MEDIA_PLAYBACK_ENABLED: bool = True

    # Supabase (PostgREST)
    SUPABASE_URL: str | None = None
    SUPABASE_KEY: str | None = None
    SUPABASE_TIMEOUT: float = 10.0

    # Built frontend, served at / when present
    STATIC_DIR: Path = Path("static")

    # Cors
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

settings = Settings()
