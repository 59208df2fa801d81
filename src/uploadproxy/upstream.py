"""Storage backend gateway for the upload proxy.

Forwards a collected upload to the storage API with the service key as a
bearer token. The key never leaves this process.

URL mapping:
    {base_url}/storage/v1/object/{bucket}/{encoded key}
"""

import logging
import urllib.parse

import httpx

from uploadproxy.config import UpstreamConfig
from uploadproxy.models import ObjectLocator, UploadPayload
from uploadproxy.validation import WRITE_METHOD

logger = logging.getLogger(__name__)

STORAGE_API_PREFIX = "storage/v1/object"

# Characters JavaScript's encodeURI leaves as-is, besides letters, digits
# and "-_.~" which urllib.parse.quote never escapes.
_URI_SAFE = ";,/?:@&=+$!*'()#"


def encode_uri(key: str) -> str:
    """Percent-encode an object key the way ``encodeURI`` does."""
    return urllib.parse.quote(key, safe=_URI_SAFE)


def create_http_client() -> httpx.AsyncClient:
    """Create the shared outbound client.

    Timeouts are disabled; the hosting platform bounds request duration.
    """
    return httpx.AsyncClient(timeout=None)


class UpstreamForwarder:
    """Issues the single outbound write for one upload.

    Attributes:
        base_url: Storage backend base URL, without a trailing slash.
    """

    def __init__(self, client: httpx.AsyncClient, upstream: UpstreamConfig) -> None:
        self._client = client
        self._service_key = upstream.service_key
        self.base_url = upstream.base_url.rstrip("/")

    def target_url(self, locator: ObjectLocator) -> str:
        """Build the storage API URL for ``locator``."""
        return f"{self.base_url}/{STORAGE_API_PREFIX}/{locator.bucket}/{encode_uri(locator.key)}"

    async def forward(self, locator: ObjectLocator, payload: UploadPayload) -> httpx.Response:
        """Send the payload upstream exactly once.

        Non-2xx responses are returned like any other; network errors
        (connection refused, DNS failure, ...) propagate to the caller.

        Args:
            locator: Where to write.
            payload: The fully collected body and its content type.

        Returns:
            The upstream response with its body already read.
        """
        url = self.target_url(locator)
        logger.debug("Forwarding %d bytes to %s", payload.size, url)
        return await self._client.request(
            WRITE_METHOD,
            url,
            content=payload.data,
            headers={
                "Authorization": f"Bearer {self._service_key}",
                "Content-Type": payload.content_type,
            },
        )
