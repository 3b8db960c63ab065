# relay/cors.py
# The one place CORS headers come from. Both deployments decorate every
# response (errors included) through apply_cors.

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Range",
    "Access-Control-Expose-Headers": "Content-Length, Content-Range, Accept-Ranges",
}

PREFLIGHT_MAX_AGE = "86400"

# Upstream headers worth relaying, keyed by their lowercase name.
FORWARDED_HEADERS = {
    "content-type": "Content-Type",
    "content-length": "Content-Length",
    "content-range": "Content-Range",
    "accept-ranges": "Accept-Ranges",
}


def apply_cors(headers, preflight=False):
    """Set the CORS headers on any mutable header mapping and return it."""
    for name, value in CORS_HEADERS.items():
        headers[name] = value
    if preflight:
        headers["Access-Control-Max-Age"] = PREFLIGHT_MAX_AGE
    return headers


def preflight_headers():
    return apply_cors({}, preflight=True)


def forward_headers(upstream_headers, body_length=None):
    """Map the complete upstream header set onto the relayed subset.

    Content-Length is recomputed from the bytes actually sent, since the
    body may have been decompressed or rewritten on the way through.
    """
    forwarded = {}
    for name, value in upstream_headers.items():
        canonical = FORWARDED_HEADERS.get(name.lower())
        if canonical:
            forwarded[canonical] = value
    if body_length is not None:
        forwarded["Content-Length"] = str(body_length)
    return forwarded
