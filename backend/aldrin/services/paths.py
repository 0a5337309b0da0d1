"""
Resolution of request path segments to files under the media root.

Segments arrive from the URL and are untrusted. A segment must name a single
directory entry: after percent-decoding it may not be ``.``/``..``, contain a
separator or NUL, or be absolute. The joined path is then canonicalised and must
lie strictly below the canonical root, compared component by component.
"""
import logging
from collections.abc import Sequence
from pathlib import Path, PureWindowsPath
from urllib.parse import unquote

from aldrin.core.errors import AccessDenied, ConfigurationError, InvalidPath
from aldrin.domain.models import MediaLocation

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("aldrin.security")

REQUIRED_SEGMENTS = 2  # album + track
MAX_DECODE_PASSES = 8
FORBIDDEN_CHARS = ("/", "\\", "\x00")


def decode_segment(segment: str) -> str:
    """Percent-decode until the value stops changing, so %252e%252e becomes .."""
    decoded = segment
    for _ in range(MAX_DECODE_PASSES):
        next_value = unquote(decoded)
        if next_value == decoded:
            return decoded
        decoded = next_value
    raise InvalidPath("Too many levels of percent-encoding")


def clean_segment(segment: str) -> str:
    decoded = decode_segment(segment)
    if not decoded or not decoded.strip():
        raise InvalidPath("Empty path segment")

    if decoded in (".", "..") or any(char in decoded for char in FORBIDDEN_CHARS):
        _deny(segment, "segment is not a plain name")

    windows_path = PureWindowsPath(decoded)
    if windows_path.drive or windows_path.anchor:
        _deny(segment, "segment is absolute")

    return decoded


def is_within_root(path: Path, root: Path) -> bool:
    """True when ``path`` is a strict descendant of ``root`` (both canonical).

    ``/data/songs2/x`` is not within ``/data/songs``.
    """
    return path != root and path.is_relative_to(root)


def resolve_media_path(root: Path, segments: Sequence[str], filename: str | None = None) -> Path:
    if len(segments) < REQUIRED_SEGMENTS:
        raise InvalidPath(f"Expected at least {REQUIRED_SEGMENTS} path segments, got {len(segments)}")

    parts = [clean_segment(segment) for segment in segments]
    if filename is not None:
        parts.append(clean_segment(filename))

    try:
        canonical_root = root.resolve(strict=True)
        candidate = canonical_root.joinpath(*parts).resolve()
    except (OSError, RuntimeError) as e:
        # Missing root, symlink loops
        raise InvalidPath(f"Cannot resolve path: {e}") from e

    if not is_within_root(candidate, canonical_root):
        _deny("/".join(segments), f"resolved to {candidate} outside {canonical_root}")

    return candidate


def resolve_location(root: Path, location: MediaLocation) -> Path:
    return resolve_media_path(root, location.segments, location.filename)


def ensure_media_root(root: Path) -> Path:
    """Startup check: the media root must be an absolute, existing directory."""
    if not root.is_absolute():
        raise ConfigurationError(f"MEDIA_ROOT must be an absolute path: {root}")
    if not root.is_dir():
        raise ConfigurationError(f"MEDIA_ROOT is not an existing directory: {root}")
    canonical = root.resolve()
    logger.info(f"Serving media from {canonical}")
    return canonical


def _deny(requested: str, reason: str):
    security_logger.warning(f"Blocked media access for {requested!r}: {reason}")
    raise AccessDenied()
