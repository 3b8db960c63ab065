# api/proxy.py
# Serverless Python using FastAPI + httpx
import asyncio
import logging

import httpx
from fastapi import FastAPI, Request, Response

from api._common import install_handlers
from relay import settings
from relay.cors import preflight_headers
from relay.errors import UpstreamUnreachable
from relay.upstream import UpstreamResponse, finalize, outbound_headers, validate_target_url

logger = logging.getLogger(__name__)

app = install_handlers(FastAPI())


def _client(transport=None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=transport,
        follow_redirects=True,
        max_redirects=settings.MAX_REDIRECTS,
        timeout=settings.UPSTREAM_TIMEOUT,
        verify=settings.VERIFY_TLS,
    )


async def fetch_upstream(target_url: str, range_header=None, user_agent=None) -> UpstreamResponse:
    headers = outbound_headers(target_url, range_header, user_agent)
    logger.debug("Fetching %s (range=%s)", target_url, range_header)
    try:
        async with _client() as client:
            # httpx timeouts are per phase; this caps the whole transfer.
            upstream = await asyncio.wait_for(
                client.get(target_url, headers=headers), settings.UPSTREAM_TIMEOUT
            )
    except asyncio.TimeoutError as e:
        logger.warning("Upstream fetch timed out for %s", target_url)
        raise UpstreamUnreachable(
            f"Proxy error: timed out after {settings.UPSTREAM_TIMEOUT:g}s"
        ) from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning("Upstream fetch failed for %s: %s", target_url, e)
        raise UpstreamUnreachable(f"Proxy error: {e}") from e

    return UpstreamResponse(upstream.status_code, dict(upstream.headers.items()), upstream.content)


@app.api_route("/api/proxy", methods=["GET", "OPTIONS"])
async def proxy(req: Request):
    # CORS preflight
    if req.method == "OPTIONS":
        return Response(status_code=204, headers=preflight_headers())

    target_url = validate_target_url(req.query_params.get("url", ""))
    upstream = await fetch_upstream(
        target_url,
        range_header=req.headers.get("range"),
        user_agent=req.headers.get("user-agent"),
    )

    # Segment links point back here: scheme + host + path, query dropped.
    proxy_base = f"{req.url.scheme}://{req.url.netloc}{req.url.path}"
    result = finalize(upstream, target_url, proxy_base)
    return Response(content=result.body, status_code=result.status_code, headers=result.headers)
