# relay/playlist.py
# M3U8 rewriting: every segment / sub-playlist line is pointed back at the proxy.
import enum
import logging
from urllib.parse import quote, urljoin, urlparse

logger = logging.getLogger(__name__)

M3U8_CONTENT_TYPE = "application/vnd.apple.mpegurl"
PLAYLIST_MARKERS = ("mpegurl", "m3u8")
UTF8_BOM = b"\xef\xbb\xbf"


class LineKind(enum.Enum):
    COMMENT = "comment"
    BLANK = "blank"
    SEGMENT = "segment"


def classify_line(line: str) -> LineKind:
    # A byte-order mark can survive decoding on the first line.
    trimmed = line.strip().lstrip("\ufeff")
    if not trimmed:
        return LineKind.BLANK
    if trimmed.startswith("#"):
        return LineKind.COMMENT
    return LineKind.SEGMENT


def resolve_reference(reference: str, base_url: str) -> str:
    """Make a playlist reference absolute.

    References that already carry an http(s) scheme are returned untouched;
    anything else is resolved against the playlist's own URL, so
    ``/seg/1.ts`` replaces the path and ``1.ts`` lands next to the playlist.
    """
    if reference.startswith(("http://", "https://")):
        return reference
    return urljoin(base_url, reference)


def proxied_url(target_url: str, proxy_base_url: str) -> str:
    return f"{proxy_base_url}?url={quote(target_url, safe='')}"


def rewrite_playlist(content: str, base_url: str, proxy_base_url: str) -> str:
    """Route every segment reference in an M3U8 playlist through the proxy.

    Comment and blank lines (``#EXTM3U``, ``#EXTINF``, ``#EXT-X-*``) come out
    byte-for-byte; the line count never changes. Master and media playlists
    are handled the same way.
    """
    rewritten = []
    count = 0
    for line in content.split("\n"):
        if classify_line(line) is not LineKind.SEGMENT:
            rewritten.append(line)
            continue
        absolute = resolve_reference(line.strip(), base_url)
        rewritten.append(proxied_url(absolute, proxy_base_url))
        count += 1

    logger.debug("Rewrote %d playlist references from %s", count, base_url)
    return "\n".join(rewritten)


def is_playlist(target_url: str, content_type: str, body: bytes = None) -> bool:
    """Decide whether an upstream response is an HLS playlist.

    The URL extension and declared content type win. Only when both say no
    and a ``body`` is supplied is the payload sniffed for ``#EXTM3U``.
    """
    if urlparse(target_url).path.lower().endswith(".m3u8"):
        return True
    content_type = (content_type or "").lower()
    if any(marker in content_type for marker in PLAYLIST_MARKERS):
        return True
    if body is not None:
        if body.startswith(UTF8_BOM):
            body = body[len(UTF8_BOM):]
        return body.startswith(b"#EXTM3U")
    return False
