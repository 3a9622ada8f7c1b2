from pathlib import Path

import pytest

from staticstamp.inc.webserver import DynamicWebServer
from staticstamp.modules import resolver
from staticstamp.modules.resolver import CACHE_FOREVER, ServeConfig, StaticFiles


@pytest.fixture
async def client(aiohttp_client, static_files):
    app = DynamicWebServer(static_files).build()
    return await aiohttp_client(app)


async def test_fingerprinted_request_is_cached(client, table):
    resp = await client.get(f"/static/style.css?v={table['style.css']}")

    assert resp.status == 200
    assert resp.headers["Cache-Control"] == CACHE_FOREVER
    assert resp.headers["Content-Type"].startswith("text/css")
    assert await resp.read() == b"body { color: red; }"


async def test_binary_body_and_length(client, table, asset_root: Path):
    resp = await client.get(f"/static/img/logo.png?v={table['img/logo.png']}")

    body = await resp.read()
    assert resp.status == 200
    assert resp.headers["Content-Type"] == "image/png"
    assert int(resp.headers["Content-Length"]) == len(body)
    assert body == (asset_root / "img" / "logo.png").read_bytes()


async def test_missing_fingerprint_redirects(client, table):
    resp = await client.get("/static/style.css", allow_redirects=False)

    assert resp.status == 302
    assert resp.headers["Location"] == f"/static/style.css?v={table['style.css']}"
    assert "Cache-Control" not in resp.headers


async def test_stale_fingerprint_redirects(client, table):
    resp = await client.get("/static/style.css?v=stale123", allow_redirects=False)

    assert resp.status == 302
    assert resp.headers["Location"] == f"/static/style.css?v={table['style.css']}"
    assert "Cache-Control" not in resp.headers


async def test_redirect_lands_on_cached_file(client):
    resp = await client.get("/static/js/app.js")

    assert resp.status == 200
    assert resp.headers["Cache-Control"] == CACHE_FOREVER
    assert await resp.text() == "console.log('hello');"


async def test_untracked_file_is_not_cached(client, asset_root: Path):
    (asset_root / "late.txt").write_text("late")

    resp = await client.get("/static/late.txt?v=anything", allow_redirects=False)

    assert resp.status == 200
    assert "Cache-Control" not in resp.headers
    assert await resp.text() == "late"


async def test_missing_file_is_404(client):
    resp = await client.get("/static/nope.css")
    assert resp.status == 404


async def test_directory_is_404(client):
    resp = await client.get("/static/js/")
    assert resp.status == 404


async def test_dot_segments_never_escape(client):
    resp = await client.get("/static/../secret.txt")
    assert resp.status == 404


async def test_io_error_is_500(client, table, monkeypatch):
    def denied(*args, **kwargs):
        raise PermissionError("denied")

    monkeypatch.setattr(resolver, "open", denied, raising=False)

    resp = await client.get(f"/static/style.css?v={table['style.css']}")
    assert resp.status == 500


async def test_healthz(client, table):
    resp = await client.get("/healthz")

    assert resp.status == 200
    assert await resp.json() == {"ok": True, "files": len(table)}


async def test_custom_prefix(aiohttp_client, asset_root: Path, table):
    sf = StaticFiles(config=ServeConfig.create(asset_root, "/assets/v1/"), table=table)
    client = await aiohttp_client(DynamicWebServer(sf).build())

    resp = await client.get("/assets/v1/style.css", allow_redirects=False)
    assert resp.status == 302
    assert resp.headers["Location"] == f"/assets/v1/style.css?v={table['style.css']}"

    resp = await client.get("/static/style.css")
    assert resp.status == 404
