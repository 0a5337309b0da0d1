class AldrinError(Exception):
    """Base error. ``status_code`` is the HTTP status the API answers with."""

    status_code = 500
    message = "Internal error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)

    @property
    def detail(self) -> str:
        return str(self)


class ConfigurationError(AldrinError):
    message = "Invalid configuration"


class InvalidPath(AldrinError):
    status_code = 400
    message = "Invalid path"


class AccessDenied(AldrinError):
    status_code = 403
    message = "Access denied"


class MediaNotFound(AldrinError):
    status_code = 404
    message = "Media not found"


class RangeNotSatisfiable(AldrinError):
    status_code = 416
    message = "Requested range not satisfiable"

    def __init__(self, total_size: int, message: str | None = None):
        super().__init__(message)
        self.total_size = total_size

    @property
    def headers(self) -> dict[str, str]:
        return {"Content-Range": f"bytes */{self.total_size}"}


class MalformedRange(RangeNotSatisfiable):
    message = "Malformed Range header"


class IOFailure(AldrinError):
    status_code = 500
    message = "Failed to read media"


class CatalogLoadError(AldrinError):
    status_code = 500

    def __init__(self, source: str, reason: str):
        super().__init__(f"Failed to load catalog from {source}: {reason}")
        self.source = source
        self.reason = reason
