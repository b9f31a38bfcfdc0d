"""Tests for the HTTP surface: /convert, /convert/url, /render and /pages.

The network is never touched: ``fetch_html`` is replaced with AsyncMocks.
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from pagecraft.main import app
from pagecraft.routers.pages import page_store
from pagecraft.services.fetcher import UpstreamError

client = TestClient(app)


@pytest.fixture(autouse=True)
def reset_state():
    """Clear the slowapi in-memory counter and the page store before every test."""
    app.state.limiter._storage.reset()
    page_store.clear()
    yield


_LANDING_HTML = """
<!DOCTYPE html>
<html lang="en">
<head>
  <title>Acme</title>
  <style>.btn:hover { background: #333 }</style>
</head>
<body>
  <section>
    <h1>Build faster</h1>
    <p>Everything you need.</p>
    <a class="btn" href="/start">Get started</a>
  </section>
  <footer><p>© Acme</p></footer>
</body>
</html>
"""


def _fetch(**kwargs):
    return patch("pagecraft.routers.convert.fetch_html", new=AsyncMock(**kwargs))


def test_health():
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json() == {"message": "pagecraft is running"}


class TestConvert:
    def test_convert_html(self):
        resp = client.post("/convert", json={"html": _LANDING_HTML})

        assert resp.status_code == 200
        data = resp.json()
        assert data["page"]["meta"]["title"] == "Acme"
        assert [s["type"] for s in data["page"]["sections"]] == ["hero", "footer"]
        assert data["stats"]["sections"] == 2
        assert data["stats"]["section_types"] == {"hero": 1, "footer": 1}

    def test_malformed_html_still_converts(self):
        resp = client.post("/convert", json={"html": "<div><p>unclosed <b>tags"})

        assert resp.status_code == 200
        assert len(resp.json()["page"]["sections"]) >= 1

    def test_empty_html(self):
        resp = client.post("/convert", json={"html": ""})

        assert resp.status_code == 200
        assert resp.json()["page"]["sections"][0]["type"] == "content"

    def test_missing_body_field_defaults_to_empty(self):
        assert client.post("/convert", json={}).status_code == 200

    def test_wrong_type_is_rejected(self):
        assert client.post("/convert", json={"html": ["not", "a", "string"]}).status_code == 422


class TestConvertUrl:
    def test_success(self):
        with _fetch(return_value=_LANDING_HTML) as mock:
            resp = client.post("/convert/url", json={"url": "https://example.com/landing"})

        assert resp.status_code == 200
        assert resp.json()["page"]["meta"]["title"] == "Acme"
        mock.assert_awaited_once_with("https://example.com/landing")

    def test_blocked_url_is_400(self):
        with _fetch(side_effect=ValueError("Requests to private/internal addresses are not allowed.")):
            resp = client.post("/convert/url", json={"url": "http://127.0.0.1/"})

        assert resp.status_code == 400
        assert "not allowed" in resp.json()["detail"]

    def test_timeout_is_504(self):
        with _fetch(side_effect=httpx.ReadTimeout("timed out")):
            resp = client.post("/convert/url", json={"url": "https://slow.example.com"})

        assert resp.status_code == 504

    def test_network_error_is_502(self):
        with _fetch(side_effect=httpx.ConnectError("connection refused")):
            resp = client.post("/convert/url", json={"url": "https://down.example.com"})

        assert resp.status_code == 502

    def test_non_html_is_502(self):
        with _fetch(side_effect=UpstreamError("Expected an HTML page, got 'application/pdf'.")):
            resp = client.post("/convert/url", json={"url": "https://example.com/file.pdf"})

        assert resp.status_code == 502
        assert "application/pdf" in resp.json()["detail"]

    def test_invalid_url_is_422(self):
        assert client.post("/convert/url", json={"url": "not a url"}).status_code == 422


class TestRender:
    def test_render_converted_page(self):
        page = client.post("/convert", json={"html": _LANDING_HTML}).json()["page"]

        resp = client.post("/render", json={"page": page})

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/html")
        assert resp.text.startswith("<!DOCTYPE html>")
        assert "Build faster" in resp.text
        assert ":hover" in resp.text

    def test_render_garbage_page(self):
        resp = client.post("/render", json={"page": {"sections": "nope", "meta": 3}})

        assert resp.status_code == 200
        assert resp.text.startswith("<!DOCTYPE html>")


class TestPages:
    def _create(self, html: str = _LANDING_HTML) -> str:
        resp = client.post("/pages", json={"html": html, "name": "Landing"})
        assert resp.status_code == 201
        return resp.json()["id"]

    def test_create_and_read(self):
        page_id = self._create()

        resp = client.get(f"/pages/{page_id}")

        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "Landing"
        assert data["page"] is None
        assert data["converted_at"] is None

    def test_convert_once(self):
        page_id = self._create()

        first = client.post(f"/pages/{page_id}/convert")
        second = client.post(f"/pages/{page_id}/convert")

        assert first.status_code == 200
        assert first.json()["page"]["sections"][0]["type"] == "hero"
        assert first.json()["converted_at"] is not None
        assert second.status_code == 409

    def test_reconvert_replaces_model(self):
        page_id = self._create()
        original = client.post(f"/pages/{page_id}/convert").json()["page"]

        resp = client.post(f"/pages/{page_id}/reconvert")

        assert resp.status_code == 200
        replaced = resp.json()["page"]
        assert replaced["sections"][0]["id"] != original["sections"][0]["id"]

    def test_edit_model_and_render(self):
        page_id = self._create()
        model = client.post(f"/pages/{page_id}/convert").json()["page"]
        model["sections"][0]["rows"][0]["columns"][0]["elements"][0]["content"]["text"] = "Edited headline"

        saved = client.put(f"/pages/{page_id}/model", json={"page": model})
        html = client.get(f"/pages/{page_id}/html")

        assert saved.status_code == 200
        assert html.status_code == 200
        assert "Edited headline" in html.text
        assert "Build faster" not in html.text

    def test_edited_model_survives_plain_convert(self):
        page_id = self._create()
        model = client.post(f"/pages/{page_id}/convert").json()["page"]
        client.put(f"/pages/{page_id}/model", json={"page": model})

        assert client.post(f"/pages/{page_id}/convert").status_code == 409

    def test_invalid_model_is_422(self):
        page_id = self._create()

        resp = client.put(f"/pages/{page_id}/model", json={"page": {"sections": []}})

        assert resp.status_code == 422

    def test_html_before_conversion_is_409(self):
        page_id = self._create()

        assert client.get(f"/pages/{page_id}/html").status_code == 409

    @pytest.mark.parametrize(
        "method, path",
        [
            ("get", "/pages/missing"),
            ("post", "/pages/missing/convert"),
            ("post", "/pages/missing/reconvert"),
            ("get", "/pages/missing/html"),
        ],
    )
    def test_unknown_page_is_404(self, method, path):
        assert getattr(client, method)(path).status_code == 404

    def test_put_unknown_page_is_404(self):
        page = client.post("/convert", json={"html": "<p>x</p>"}).json()["page"]

        assert client.put("/pages/missing/model", json={"page": page}).status_code == 404
