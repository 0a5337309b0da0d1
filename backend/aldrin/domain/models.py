from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class Track(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str # track_id of the source row
    track_id: str
    title: str = ""
    album_name: str = ""
    album_id: str = ""
    filename: str = ""
    filepath: str = ""
    description: str = ""
    seo_keywords: str = ""
    prompt: str = ""
    tags: list[str] = []
    cover_prompt: str = ""
    seed: str = ""
    created_at: str = ""

    # Resolved URL for cover image
    cover_url: str | None = Field(default=None, alias="coverUrl")

    # Presence flags, false unless the source says otherwise
    has_audio: bool = Field(default=False, alias="hasAudio")
    has_video: bool = Field(default=False, alias="hasVideo")
    audio_path: str | None = Field(default=None, alias="audioPath")
    video_path: str | None = Field(default=None, alias="videoPath")


class Album(BaseModel):
    album_id: str
    album_name: str = ""
    # Cached by the source, may be stale
    track_count: int = 0


class CatalogStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_tracks: int = Field(alias="totalTracks")
    audio_found: int = Field(alias="audioFound")
    videos_rendered: int = Field(alias="videosRendered")
    last_scan: str = Field(alias="lastScan")


class Catalog(BaseModel):
    tracks: list[Track] = []
    albums: list[Album] = []
    stats: CatalogStats


class MediaKind(str, Enum):
    COVER = "cover"
    AUDIO = "audio"
    VIDEO = "video"

    @property
    def content_type(self) -> str:
        return MEDIA_CONTENT_TYPES[self]


MEDIA_CONTENT_TYPES: dict[MediaKind, str] = {
    MediaKind.COVER: "image/png",
    MediaKind.AUDIO: "audio/mpeg",
    MediaKind.VIDEO: "video/mp4",
}


class MediaLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    album: str
    track: str
    filename: str

    @property
    def segments(self) -> list[str]:
        return [self.album, self.track]


class FullRange(BaseModel):
    """The whole body, ``[0, total_size - 1]``."""

    model_config = ConfigDict(frozen=True)

    total_size: int

    @property
    def start(self) -> int:
        return 0

    @property
    def end(self) -> int:
        return self.total_size - 1

    @property
    def length(self) -> int:
        return self.total_size


class ByteRange(BaseModel):
    """Inclusive byte interval with ``0 <= start <= end < total_size``."""

    model_config = ConfigDict(frozen=True)

    start: int
    end: int
    total_size: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def content_range(self) -> str:
        return f"bytes {self.start}-{self.end}/{self.total_size}"


class RawCatalog(BaseModel):
    """Rows as a catalog source returns them, before normalisation."""

    source: str
    tracks: list[dict] = []
    albums: list[dict] = []
    # Where the rows came from, for logs
    origin: Path | str | None = None
