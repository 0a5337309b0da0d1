import logging
import os
import stat
from collections.abc import AsyncIterator
from pathlib import Path
from typing import BinaryIO

from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response, StreamingResponse
from starlette.types import Receive, Scope, Send

from aldrin.core.errors import IOFailure, MediaNotFound
from aldrin.domain.models import ByteRange, FullRange, MediaKind
from aldrin.services.ranges import parse_range

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


def open_media_file(path: Path) -> BinaryIO:
    return path.open("rb")


def read_cover_file(path: Path) -> bytes:
    return path.read_bytes()


class MediaStreamResponse(StreamingResponse):
    """StreamingResponse that owns an open file and closes it however sending ends.

    Starlette stops iterating when the client goes away but leaves the generator
    suspended, and a generator that never started has no ``finally`` to run.
    """

    def __init__(self, handle: BinaryIO, content: AsyncIterator[bytes], **kwargs):
        super().__init__(content, **kwargs)
        self.handle = handle

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.body_iterator.aclose()
            self.handle.close()


async def iter_file_range(
    handle: BinaryIO, path: Path, start: int, length: int, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> AsyncIterator[bytes]:
    """Yield ``length`` bytes of ``handle`` from ``start``, reading off the event loop.

    Takes ownership of ``handle`` and closes it however iteration ends.
    """
    try:
        await run_in_threadpool(handle.seek, start)
        remaining = length
        while remaining > 0:
            chunk = await run_in_threadpool(handle.read, min(chunk_size, remaining))
            if not chunk:
                # File shrank underneath us
                raise OSError(f"Unexpected end of file with {remaining} bytes left")
            remaining -= len(chunk)
            yield chunk
    except OSError as e:
        logger.error(f"Read failed while streaming {path}: {e}")
        raise
    finally:
        handle.close()


class MediaStreamer:
    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, cover_cache_control: str | None = None):
        self.chunk_size = chunk_size
        self.cover_cache_control = cover_cache_control

    async def stream(self, path: Path, kind: MediaKind, range_header: str | None = None) -> Response:
        if kind is MediaKind.COVER:
            return await self.read_cover(path)

        size = await self._stat_size(path)
        byte_range = parse_range(range_header, size)
        handle = await self._open(path)
        return self.build_response(handle, path, kind, byte_range)

    async def read_cover(self, path: Path) -> Response:
        # Covers are small, read in one go
        await self._stat_size(path)
        try:
            data = await run_in_threadpool(read_cover_file, path)
        except FileNotFoundError:
            raise MediaNotFound("Cover not found") from None
        except OSError as e:
            logger.error(f"Failed to read cover {path}: {e}")
            raise IOFailure() from e

        headers = {}
        if self.cover_cache_control:
            headers["Cache-Control"] = self.cover_cache_control
        return Response(content=data, media_type=MediaKind.COVER.content_type, headers=headers)

    def build_response(
        self, handle: BinaryIO, path: Path, kind: MediaKind, byte_range: FullRange | ByteRange
    ) -> MediaStreamResponse:
        headers = {
            "Accept-Ranges": "bytes",
            "Content-Length": str(byte_range.length),
        }
        status_code = 200
        if isinstance(byte_range, ByteRange):
            headers["Content-Range"] = byte_range.content_range
            status_code = 206

        return MediaStreamResponse(
            handle,
            iter_file_range(handle, path, byte_range.start, byte_range.length, self.chunk_size),
            status_code=status_code,
            media_type=kind.content_type,
            headers=headers,
        )

    async def _stat_size(self, path: Path) -> int:
        try:
            result = await run_in_threadpool(os.stat, path)
        except (FileNotFoundError, NotADirectoryError):
            raise MediaNotFound() from None
        except OSError as e:
            logger.error(f"Cannot stat media file {path}: {e}")
            raise IOFailure() from e

        if not stat.S_ISREG(result.st_mode):
            raise MediaNotFound()
        return result.st_size

    async def _open(self, path: Path) -> BinaryIO:
        try:
            return await run_in_threadpool(open_media_file, path)
        except FileNotFoundError:
            # Deleted between stat and open
            raise MediaNotFound() from None
        except OSError as e:
            logger.error(f"Cannot open media file {path}: {e}")
            raise IOFailure() from e
