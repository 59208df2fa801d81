"""Proxy error definitions for the upload proxy.

Each error maps to a fixed HTTP status and renders as a ``{"error": ...}``
JSON body. Upstream 4xx/5xx responses are not errors here; they are relayed
to the caller unchanged.
"""

from fastapi.responses import JSONResponse

FALLBACK_MESSAGE = "Proxy error"


class ProxyError(Exception):
    """A proxy-level failure with code, message, and HTTP status.

    Attributes:
        code: Short machine-readable error code (e.g. "BucketNotAllowed").
        message: Message sent to the caller in the ``error`` field.
        http_status: The HTTP status code to return.
    """

    def __init__(self, code: str, message: str, http_status: int = 500) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status

    def to_response(self) -> JSONResponse:
        """Render the error as its JSON response."""
        return JSONResponse({"error": self.message}, status_code=self.http_status)


# -- Gate failures ------------------------------------------------------------


class MethodNotAllowed(ProxyError):
    """The request did not use the write method."""

    def __init__(self) -> None:
        super().__init__(code="MethodNotAllowed", message="Method Not Allowed", http_status=405)


class ServerNotConfigured(ProxyError):
    """The upstream base URL or service key is missing."""

    def __init__(self) -> None:
        super().__init__(
            code="ServerNotConfigured", message="Server not configured", http_status=500
        )


class MissingBucketOrFilename(ProxyError):
    """The request path did not yield both a bucket and an object key."""

    def __init__(self) -> None:
        super().__init__(
            code="MissingBucketOrFilename",
            message="Missing bucket or filename",
            http_status=400,
        )


class BucketNotAllowed(ProxyError):
    """The requested bucket is not the allowlisted one."""

    def __init__(self, bucket: str = "") -> None:
        super().__init__(code="BucketNotAllowed", message="Bucket not allowed", http_status=403)
        self.bucket = bucket


class BodyReadError(ProxyError):
    """Reading the request body failed before it completed."""

    def __init__(self, message: str = "") -> None:
        super().__init__(
            code="BodyReadError", message=message or FALLBACK_MESSAGE, http_status=500
        )


def unhandled_error_response(exc: BaseException) -> JSONResponse:
    """Convert an unexpected exception into a 500 carrying its message."""
    return JSONResponse({"error": str(exc) or FALLBACK_MESSAGE}, status_code=500)
