"""Tests for the HTTP API server."""
import json
import urllib.error
import urllib.request

import pytest

from api_server import ApiServer


@pytest.fixture
def server(service):
    api = ApiServer(service, host="127.0.0.1", port=0)
    api.start()
    yield api
    api.stop()


def _request(server, path, method="GET", body=None):
    url = f"http://127.0.0.1:{server.port}{path}"
    data = json.dumps(body).encode() if body is not None else None
    req = urllib.request.Request(url, data=data, method=method, headers={"Content-Type": "application/json"})
    try:
        with urllib.request.urlopen(req, timeout=5) as resp:
            return resp.status, dict(resp.headers), resp.read()
    except urllib.error.HTTPError as e:
        return e.code, dict(e.headers), e.read()


class TestApiServer:
    def test_get_action(self, server):
        status, headers, raw = _request(server, "/api?action=getLongestHoldDays&item=dragon")

        assert status == 200
        assert headers["Access-Control-Allow-Origin"] == "*"
        assert json.loads(raw) == {"days": 18, "item_filter": "dragon"}

    def test_post_body(self, server, store):
        body = {"action": "submitQuickAdd", "payload": {"item": "Widget", "buy_price": -9}}
        status, _, raw = _request(server, "/api", method="POST", body=body)

        assert status == 200
        assert json.loads(raw) == {"ok": True, "added": 1}
        assert store.rows("Order Book")[-1][1] == "Widget"

    def test_query_string_wins_over_body(self, server):
        status, _, raw = _request(server, "/api?action=getInventory", method="POST", body={"action": "nope"})
        assert status == 200
        assert "totals" in json.loads(raw)

    def test_options_preflight(self, server):
        status, headers, raw = _request(server, "/api", method="OPTIONS")
        assert status == 200
        assert "OPTIONS" in headers["Access-Control-Allow-Methods"]
        assert raw == b"ok"

    def test_unknown_path_is_404(self, server):
        status, _, _ = _request(server, "/elsewhere?action=getInventory")
        assert status == 404

    def test_error_status_passed_through(self, server):
        status, _, raw = _request(server, "/api?action=nope")
        assert status == 400
        assert json.loads(raw)["ok"] is False
