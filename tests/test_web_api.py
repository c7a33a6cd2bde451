"""Tests for the HTTP surface."""

import asyncio
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from gonlineviz.errors import FetchError
from gonlineviz.fetch.freshness import FreshnessOracle
from gonlineviz.render.cache import RenderCache
from gonlineviz.render.layout import LayoutRenderer
from gonlineviz.service import RenderService
from gonlineviz.throttle import TokenBucket
from gonlineviz.web import api, create_app

from conftest import FakeFetcher


@pytest.fixture
def service(resolver, fetcher, src_root, tmp_path):
    return RenderService(
        resolver=resolver,
        fetcher=fetcher,
        freshness=FreshnessOracle(src_root),
        cache=RenderCache(tmp_path / "cache"),
        throttle=TokenBucket(),
        layout=LayoutRenderer("cat", ()),
    )


@pytest.fixture
def client(service):
    return TestClient(create_app(service=service))


def test_index_is_bad_request(client):
    res = client.get("/")
    assert res.status_code == 400
    assert res.json() == {"error": "bad_request", "message": "please provide a valid package path"}


def test_favicon(client):
    res = client.get("/favicon.ico")
    assert res.status_code == 404
    assert res.text == "Not Found"


def test_render_png(client):
    res = client.get("/example.com/app")
    assert res.status_code == 200
    assert res.headers["content-type"] == "image/png"
    assert res.content.startswith(b"digraph main {")


def test_leaf_is_cached_separately(client, tmp_path):
    res = client.get("/example.com/app", params={"leaf": "true"})
    assert res.status_code == 200
    assert b"shape=note" in res.content
    assert (tmp_path / "cache" / "example.com" / "app" / "dot_leaf.png").exists()


def test_depth(client):
    res = client.get("/example.com/app", params={"depth": 0})
    assert res.status_code == 200
    assert b"->" not in res.content


def test_negative_depth_rejected(client):
    res = client.get("/example.com/app", params={"depth": -1})
    assert res.status_code == 422


def test_reversed(client):
    res = client.get("/example.com/app", params={"reversed": "example.com/lib/b"})
    assert res.status_code == 200
    assert b'"example.com/lib/a" -> "example.com/lib/b";' in res.content


def test_reversed_missing_target(client):
    res = client.get("/example.com/app", params={"reversed": "example.com/nowhere"})
    assert res.status_code == 404
    assert res.json()["error"] == "not_found"


def test_standard_library_is_not_found(client):
    res = client.get("/fmt")
    assert res.status_code == 404
    assert "standard library" in res.json()["message"]


def test_import_cycle(client):
    res = client.get("/example.com/cycle/x")
    assert res.status_code == 422
    assert res.json()["error"] == "import_cycle"


def test_fetch_failure(resolver, src_root, tmp_path):
    service = RenderService(
        resolver=resolver,
        fetcher=FakeFetcher(src_root, error=FetchError("vcs create", "exit status 128")),
        freshness=FreshnessOracle(src_root),
        cache=RenderCache(tmp_path / "cache"),
        throttle=TokenBucket(),
        layout=LayoutRenderer("cat", ()),
    )
    res = TestClient(create_app(service=service)).get("/example.com/remote/dep")
    assert res.status_code == 500
    assert res.json() == {"error": "fetch_failed", "message": "vcs create: exit status 128"}


def test_render_failure(client, service):
    service.layout = LayoutRenderer("false", ())
    res = client.get("/example.com/app")
    assert res.status_code == 500
    assert res.json()["error"] == "render_failed"


class TestRunUntilDisconnect:
    def _request(self, disconnected):
        async def is_disconnected():
            return disconnected

        return SimpleNamespace(is_disconnected=is_disconnected, url=SimpleNamespace(path="/x"))

    def test_returns_result(self):
        async def work():
            return "done"

        assert asyncio.run(api.run_until_disconnect(self._request(False), work())) == "done"

    def test_cancels_work_on_disconnect(self, monkeypatch):
        monkeypatch.setattr(api, "DISCONNECT_POLL_SECONDS", 0.01)
        cancelled = []

        async def work():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                # cleanup that itself awaits, like killing a subprocess
                await asyncio.sleep(0.01)
                cancelled.append(True)
                raise

        async def _test():
            with pytest.raises(api.ClientDisconnected):
                await api.run_until_disconnect(self._request(True), work())
            assert cancelled == [True]

        asyncio.run(_test())
