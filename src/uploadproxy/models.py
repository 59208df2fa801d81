"""Per-request data types for the upload proxy.

Both types are immutable and live for a single request.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class ObjectLocator:
    """Target of an upload inside the storage backend.

    Attributes:
        bucket: The bucket name, never empty.
        key: The object key, may contain ``/``, never empty.
    """

    bucket: str
    key: str


@dataclass(frozen=True)
class UploadPayload:
    """A fully read request body and the content type to forward with it.

    Attributes:
        data: The complete request body.
        content_type: Request content type, or ``application/octet-stream``.
    """

    data: bytes
    content_type: str = DEFAULT_CONTENT_TYPE

    @property
    def size(self) -> int:
        return len(self.data)
