from unittest.mock import patch

from starlette.requests import Request

from app.utils.urls import client_address, external_base_url, link_share_url


def make_request(headers=None, client=("10.0.0.5", 5123)):
    scope = {
        "type": "http",
        "method": "GET",
        "scheme": "http",
        "server": ("testserver", 80),
        "path": "/",
        "root_path": "",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


def test_base_url_from_request():
    assert external_base_url(make_request()) == "http://testserver"


def test_base_url_prefers_forwarded_headers():
    request = make_request({"X-Forwarded-Proto": "https", "X-Forwarded-Host": "share.example.com"})
    assert external_base_url(request) == "https://share.example.com"


def test_base_url_rfc7239_forwarded():
    request = make_request({"Forwarded": 'proto=https;host="files.example.org"'})
    assert external_base_url(request) == "https://files.example.org"


def test_configured_base_url_wins():
    with patch("app.utils.urls.settings.PUBLIC_BASE_URL", "https://links.example.net/"):
        assert link_share_url(make_request(), "abc") == "https://links.example.net/links/access/abc"


def test_client_address_first_forwarded_hop():
    request = make_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
    assert client_address(request) == "203.0.113.7"


def test_client_address_falls_back_to_peer():
    assert client_address(make_request()) == "10.0.0.5"
    assert client_address(make_request(client=None)) is None
