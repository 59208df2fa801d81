"""Request gates for the upload proxy.

Each gate runs *independently* of any HTTP handler so it can be unit-tested
in isolation. Gates do not raise: a check returns ``None`` when the request
passes, or the ``ProxyError`` describing why it was rejected.
"""

from uploadproxy.config import UpstreamConfig
from uploadproxy.errors import (
    BucketNotAllowed,
    MethodNotAllowed,
    MissingBucketOrFilename,
    ProxyError,
    ServerNotConfigured,
)
from uploadproxy.models import ObjectLocator

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

WRITE_METHOD = "PUT"

# Inbound paths look like storage/v1/object/<bucket>/<key...>. The leading
# segments mirror the storage API and are skipped without being checked.
SCHEME_MARKER_SEGMENTS = 3


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def check_method(method: str) -> ProxyError | None:
    """Reject anything but the write method."""
    if method != WRITE_METHOD:
        return MethodNotAllowed()
    return None


def check_config(upstream: UpstreamConfig) -> ProxyError | None:
    """Reject requests while the base URL or service key is missing."""
    if not upstream.configured:
        return ServerNotConfigured()
    return None


def resolve_path(path: str) -> ObjectLocator | ProxyError:
    """Split a wildcard path into bucket and object key.

    The first ``SCHEME_MARKER_SEGMENTS`` segments are discarded, the next one
    is the bucket and everything after it, joined with ``/``, is the key.
    Contents are not validated beyond being non-empty.

    Args:
        path: The wildcard part of the request path, without leading ``/``.

    Returns:
        The ObjectLocator, or MissingBucketOrFilename if either part is empty.
    """
    parts = path.split("/")
    bucket = parts[SCHEME_MARKER_SEGMENTS] if len(parts) > SCHEME_MARKER_SEGMENTS else ""
    key = "/".join(parts[SCHEME_MARKER_SEGMENTS + 1 :])

    if not bucket or not key:
        return MissingBucketOrFilename()
    return ObjectLocator(bucket=bucket, key=key)


def check_bucket(locator: ObjectLocator, allowed_bucket: str) -> ProxyError | None:
    """Enforce the single-bucket allowlist (exact, case-sensitive).

    An empty ``allowed_bucket`` lets every bucket through.
    """
    if allowed_bucket and locator.bucket != allowed_bucket:
        return BucketNotAllowed(locator.bucket)
    return None
