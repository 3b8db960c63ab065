# relay/upstream.py
# What both relay deployments share once the HTTP client has done its job:
# validating the target, building outbound headers, and turning the fetched
# response into what goes back to the caller.
import logging
from dataclasses import dataclass, field
from urllib.parse import urlparse

from relay import settings
from relay.cors import forward_headers
from relay.errors import InvalidInput
from relay.playlist import M3U8_CONTENT_TYPE, is_playlist, rewrite_playlist

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class UpstreamResponse:
    status_code: int
    headers: dict = field(default_factory=dict)
    body: bytes = b""

    @property
    def content_type(self):
        for name, value in self.headers.items():
            if name.lower() == "content-type":
                return value
        return ""


def validate_target_url(target_url):
    """Return the usable target URL or raise InvalidInput."""
    if not target_url:
        raise InvalidInput("Missing url parameter")

    # A literal '+' in the target arrives as a space after query decoding.
    if " " in target_url:
        target_url = target_url.replace(" ", "+")

    try:
        parsed = urlparse(target_url)
        parsed.port  # raises on a malformed port
    except ValueError as e:
        raise InvalidInput("Invalid URL") from e
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InvalidInput("Invalid URL")
    return target_url


def outbound_headers(target_url, range_header=None, user_agent=None):
    parsed = urlparse(target_url)
    headers = {
        "User-Agent": user_agent or settings.DEFAULT_USER_AGENT,
        "Referer": f"{parsed.scheme}://{parsed.netloc}",
    }
    if range_header:
        headers["Range"] = range_header
    return headers


def finalize(upstream, target_url, proxy_base_url, sniff_body=False):
    """Rewrite playlists and narrow headers down to the relayed set.

    ``sniff_body`` enables the ``#EXTM3U`` fallback for upstreams that
    mislabel playlists; only the server deployment turns it on.
    """
    body = upstream.body
    content_type = upstream.content_type
    playlist = is_playlist(target_url, content_type, body if sniff_body else None)

    if playlist and upstream.status_code == 200:
        text = body.decode("utf-8-sig", errors="replace")
        body = rewrite_playlist(text, target_url, proxy_base_url).encode("utf-8")
        content_type = M3U8_CONTENT_TYPE
        logger.debug("Rewrote playlist %s (%d bytes)", target_url, len(body))

    headers = forward_headers(upstream.headers, body_length=len(body))
    headers["Content-Type"] = content_type or DEFAULT_CONTENT_TYPE
    return UpstreamResponse(upstream.status_code, headers, body)
