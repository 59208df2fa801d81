"""Upload request handler for the upload proxy.

Implements the write pipeline for ``PUT {route_prefix}/storage/v1/object/{bucket}/{key}``:

    method gate -> config check -> path -> bucket allowlist -> body ->
    upstream write -> relay

Gates report failures as values; the handler turns the first failure into
its fixed JSON response. Anything else that goes wrong becomes a 500 carrying
the exception message.
"""

import logging

import httpx
from fastapi import FastAPI, Request, Response

from uploadproxy import metrics
from uploadproxy.config import ProxyConfig
from uploadproxy.errors import BodyReadError, ProxyError, unhandled_error_response
from uploadproxy.models import DEFAULT_CONTENT_TYPE, UploadPayload
from uploadproxy.upstream import UpstreamForwarder
from uploadproxy.validation import check_bucket, check_config, check_method, resolve_path

logger = logging.getLogger(__name__)

# ProxyError.code -> uploads_total outcome label
_OUTCOMES = {
    "MethodNotAllowed": "method_not_allowed",
    "ServerNotConfigured": "not_configured",
    "MissingBucketOrFilename": "bad_path",
    "BucketNotAllowed": "bucket_denied",
    "BodyReadError": "body_error",
}


async def collect_body(request: Request) -> UploadPayload | BodyReadError:
    """Read the request body to completion.

    Nothing is forwarded until the stream has ended, so a client that drops
    mid-upload never produces a partial object.

    Returns:
        The complete payload, or BodyReadError if the stream failed.
    """
    content_type = request.headers.get("content-type") or DEFAULT_CONTENT_TYPE
    buf = bytearray()
    try:
        async for chunk in request.stream():
            buf.extend(chunk)
    except Exception as exc:
        logger.warning("Request body read failed: %s", exc)
        return BodyReadError(str(exc))
    return UploadPayload(data=bytes(buf), content_type=content_type)


def relay(upstream: httpx.Response) -> Response:
    """Copy the upstream status and body back to the caller.

    Upstream headers are not relayed.
    """
    return Response(content=upstream.text or "", status_code=upstream.status_code)


class UploadHandler:
    """Handles upload requests for one application.

    Attributes:
        app: The FastAPI application; the outbound client lives on
            ``app.state.http_client``.
        config: The process-wide proxy configuration.
    """

    def __init__(self, app: FastAPI) -> None:
        self.app = app
        self.config: ProxyConfig = app.state.config

    @property
    def forwarder(self) -> UpstreamForwarder:
        return UpstreamForwarder(self.app.state.http_client, self.config.upstream)

    async def handle(self, request: Request, path: str) -> Response:
        """Run the upload pipeline for one request.

        Args:
            request: The incoming HTTP request.
            path: The wildcard part of the URL after the route prefix.

        Returns:
            A gate's JSON error, the relayed upstream response, or a 500
            for any unexpected failure.
        """
        try:
            return await self._proxy(request, path)
        except Exception as exc:
            logger.exception("Upload proxy failed for %s", request.url.path)
            metrics.record_outcome("proxy_error")
            return unhandled_error_response(exc)

    async def _proxy(self, request: Request, path: str) -> Response:
        upstream_cfg = self.config.upstream

        failure = check_method(request.method) or check_config(upstream_cfg)
        if failure is not None:
            return self._reject(failure, request)

        locator = resolve_path(path)
        if isinstance(locator, ProxyError):
            return self._reject(locator, request)

        failure = check_bucket(locator, upstream_cfg.allowed_bucket)
        if failure is not None:
            return self._reject(failure, request)

        payload = await collect_body(request)
        if isinstance(payload, ProxyError):
            return self._reject(payload, request)

        upstream = await self.forwarder.forward(locator, payload)

        logger.info(
            "Forwarded %s/%s (%d bytes) -> %d",
            locator.bucket,
            locator.key,
            payload.size,
            upstream.status_code,
            extra={"bucket": locator.bucket, "key": locator.key, "size": payload.size},
        )
        metrics.record_outcome("forwarded", payload.size)
        return relay(upstream)

    def _reject(self, error: ProxyError, request: Request) -> Response:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, error.code)
        metrics.record_outcome(_OUTCOMES.get(error.code, "proxy_error"))
        return error.to_response()
