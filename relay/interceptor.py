# relay/interceptor.py
# In-process counterpart of the player's service worker: an httpx transport
# that relays media requests and stamps CORS headers on whatever comes back.
import logging

import httpx

from relay import settings

logger = logging.getLogger(__name__)

MEDIA_EXTENSIONS = (".m3u8", ".ts", ".m3u")

INTERCEPT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

FAILURE_BODY = b"Service Worker: Failed to fetch resource"


def is_media_request(url: httpx.URL) -> bool:
    url = httpx.URL(url)
    return url.path.endswith(MEDIA_EXTENSIONS) or "stream" in url.params


class MediaCorsTransport(httpx.BaseTransport, httpx.AsyncBaseTransport):
    """Wrap another transport and relay media requests with CORS headers.

    Works for both ``httpx.Client`` and ``httpx.AsyncClient``; pass a
    matching inner transport. Non-media requests go straight through.
    A failed media fetch turns into a 503 instead of an exception.

        client = httpx.AsyncClient(transport=MediaCorsTransport(httpx.AsyncHTTPTransport()))
    """

    def __init__(self, transport, enabled=None):
        self._transport = transport
        self.enabled = settings.INTERCEPT_MEDIA if enabled is None else enabled

    def _intercepts(self, request: httpx.Request) -> bool:
        return self.enabled and is_media_request(request.url)

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        if not self._intercepts(request):
            return self._transport.handle_request(request)
        try:
            response = self._transport.handle_request(request)
        except httpx.TransportError as e:
            return self._failure(request, e)
        return self._with_cors(response)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if not self._intercepts(request):
            return await self._transport.handle_async_request(request)
        try:
            response = await self._transport.handle_async_request(request)
        except httpx.TransportError as e:
            return self._failure(request, e)
        return self._with_cors(response)

    def close(self) -> None:
        self._transport.close()

    async def aclose(self) -> None:
        await self._transport.aclose()

    @staticmethod
    def _with_cors(response: httpx.Response) -> httpx.Response:
        headers = httpx.Headers(response.headers)
        headers.update(INTERCEPT_HEADERS)
        # The body stream is handed over unread.
        return httpx.Response(
            status_code=response.status_code,
            headers=headers,
            stream=response.stream,
            extensions=response.extensions,
        )

    @staticmethod
    def _failure(request: httpx.Request, error: Exception) -> httpx.Response:
        logger.error("Media fetch failed for %s: %s", request.url, error)
        return httpx.Response(
            status_code=503,
            headers={"Content-Type": "text/plain"},
            content=FAILURE_BODY,
            extensions={"reason_phrase": b"Service Unavailable"},
        )
