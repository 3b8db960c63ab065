from flask import Flask, request, Response, jsonify
from curl_cffi import requests as crequests
from curl_cffi.requests.exceptions import RequestException
import logging

from relay import settings
from relay.cors import apply_cors, preflight_headers
from relay.errors import MethodNotAllowed, RelayError, UpstreamUnreachable
from relay.upstream import UpstreamResponse, finalize, outbound_headers, validate_target_url

app = Flask(__name__)
logger = logging.getLogger(__name__)

# curl_cffi impersonates a real browser TLS fingerprint, which keeps CDNs
# behind Cloudflare from rejecting segment requests.


def fetch_upstream(target_url, range_header=None, user_agent=None):
    headers = outbound_headers(target_url, range_header, user_agent)
    logger.debug("Fetching %s (range=%s)", target_url, range_header)
    try:
        resp = crequests.get(
            target_url,
            headers=headers,
            impersonate=settings.IMPERSONATE,
            allow_redirects=True,
            max_redirects=settings.MAX_REDIRECTS,
            timeout=settings.UPSTREAM_TIMEOUT,
            verify=settings.VERIFY_TLS,
        )
    except RequestException as e:
        logger.warning("Upstream fetch failed for %s: %s", target_url, e)
        raise UpstreamUnreachable(f"Proxy error: {e}") from e

    return UpstreamResponse(resp.status_code, dict(resp.headers.items()), resp.content)


@app.after_request
def add_cors(response):
    apply_cors(response.headers)
    return response


@app.errorhandler(RelayError)
def relay_error(e):
    return jsonify(e.to_dict()), e.status_code


@app.errorhandler(405)
def method_not_allowed(e):
    return relay_error(MethodNotAllowed("Method not allowed"))


@app.route('/proxy', methods=['GET', 'OPTIONS'])
def proxy():
    # Preflight answers before the url parameter is even looked at.
    if request.method == 'OPTIONS':
        return Response("", status=200, headers=preflight_headers())

    target_url = validate_target_url(request.args.get('url', ''))
    upstream = fetch_upstream(
        target_url,
        range_header=request.headers.get('Range'),
        user_agent=request.headers.get('User-Agent'),
    )

    # base_url is scheme + host + path with the query stripped.
    result = finalize(upstream, target_url, request.base_url, sniff_body=True)
    return Response(result.body, status=result.status_code, headers=result.headers)


@app.route('/config', methods=['GET', 'OPTIONS'])
def config():
    if request.method == 'OPTIONS':
        return Response("", status=200)
    service_config = settings.load_service_config()
    return jsonify({"success": True, "data": service_config.config_payload()})


@app.route('/services', methods=['GET', 'OPTIONS'])
def services():
    if request.method == 'OPTIONS':
        return Response("", status=200)
    service_config = settings.load_service_config()
    return jsonify({"success": True, "data": service_config.services_payload()})


if __name__ == '__main__':
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.run(host='0.0.0.0', port=settings.PORT)
