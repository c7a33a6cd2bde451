"""Tests for the render pipeline: throttle, cache, build, serialize, layout."""

import asyncio
import threading

import pytest

from gonlineviz.errors import BadRequestError, ImportCycleError, PackageNotFoundError, RenderError
from gonlineviz.fetch.freshness import FreshnessOracle
from gonlineviz.models import RenderVariant
from gonlineviz.render.cache import RenderCache
from gonlineviz.render.layout import LayoutRenderer
from gonlineviz.service import RenderService, validate_import_path
from gonlineviz.throttle import TokenBucket


def make_service(resolver, fetcher, src_root, cache_root, layout=None):
    return RenderService(
        resolver=resolver,
        fetcher=fetcher,
        freshness=FreshnessOracle(src_root),
        cache=RenderCache(cache_root),
        throttle=TokenBucket(),
        layout=layout or LayoutRenderer("cat", ()),
    )


@pytest.fixture
def service(resolver, fetcher, src_root, tmp_path):
    return make_service(resolver, fetcher, src_root, tmp_path / "cache")


def _render(service, import_path, **variant):
    return asyncio.run(service.render(import_path, RenderVariant(**variant)))


class TestValidateImportPath:
    @pytest.mark.parametrize("path", ["github.com/a/b", "C", "gopkg.in/yaml.v2"])
    def test_valid(self, path):
        assert validate_import_path(path) == path

    @pytest.mark.parametrize("path", [
        "", "/etc/passwd", "a/../../b", "a//b", "./a", "a/", "a\\b", "a/b\x00", "a\nb", "a\x7fb",
    ])
    def test_invalid(self, path):
        with pytest.raises(BadRequestError):
            validate_import_path(path)


class TestRender:
    def test_renders_forward_graph(self, service):
        image = _render(service, "example.com/app")
        text = image.decode()
        assert text.startswith("digraph main {")
        assert '"example.com/app" -> "example.com/lib/a";' in text
        assert "fmt" not in text

    def test_canonical_result_is_cached(self, service, tmp_path):
        image = _render(service, "example.com/app")
        cached = tmp_path / "cache" / "example.com" / "app" / "dot.png"
        assert cached.read_bytes() == image

    def test_cache_hit_skips_layout(self, service):
        first = _render(service, "example.com/app")
        service.layout = LayoutRenderer("false", ())
        assert _render(service, "example.com/app") == first

    def test_leaf_variant_has_its_own_entry(self, service, tmp_path):
        image = _render(service, "example.com/app", with_leaf=True)
        assert b"shape=note" in image
        assert (tmp_path / "cache" / "example.com" / "app" / "dot_leaf.png").exists()
        assert not (tmp_path / "cache" / "example.com" / "app" / "dot.png").exists()

    def test_depth_variant_not_cached(self, service, tmp_path):
        image = _render(service, "example.com/app", depth=1)
        assert b'"example.com/lib/a" -> "example.com/lib/b"' not in image
        assert not (tmp_path / "cache" / "example.com").exists()

    def test_reversed(self, service, tmp_path):
        image = _render(service, "example.com/app", reversed="example.com/lib/b")
        text = image.decode()
        assert '"example.com/lib/a" -> "example.com/lib/b";' in text
        assert '"example.com/app" -> "example.com/lib/b";' in text
        assert not (tmp_path / "cache" / "example.com").exists()

    def test_reversed_target_not_in_graph(self, service):
        with pytest.raises(PackageNotFoundError, match="example.com/nowhere"):
            _render(service, "example.com/app", reversed="example.com/nowhere")

    def test_reversed_target_is_validated(self, service):
        with pytest.raises(BadRequestError):
            _render(service, "example.com/app", reversed="../x")

    def test_cgo_root_has_no_files(self, service):
        with pytest.raises(PackageNotFoundError, match="no .go files in C"):
            _render(service, "C")

    def test_standard_library_root(self, service):
        with pytest.raises(PackageNotFoundError):
            _render(service, "fmt")

    def test_cycle(self, service):
        with pytest.raises(ImportCycleError):
            _render(service, "example.com/cycle/x")

    def test_bad_path(self, service):
        with pytest.raises(BadRequestError):
            _render(service, "../etc")

    def test_layout_failure(self, resolver, fetcher, src_root, tmp_path):
        service = make_service(resolver, fetcher, src_root, tmp_path / "cache", LayoutRenderer("false", ()))
        with pytest.raises(RenderError):
            _render(service, "example.com/app")
        assert not (tmp_path / "cache" / "example.com").exists()

    def test_cache_write_failure_still_returns_image(self, resolver, fetcher, src_root, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        service = make_service(resolver, fetcher, src_root, blocker)
        assert _render(service, "example.com/app").startswith(b"digraph main {")


class TestDotSource:
    def test_returns_text(self, service):
        text = asyncio.run(service.dot_source("example.com/lib/a", RenderVariant()))
        assert text.splitlines()[0] == "digraph main {"
        assert '"example.com/lib/a" -> "example.com/lib/b";' in text

    def test_from_settings(self, settings):
        service = RenderService.from_settings(settings)
        assert service.cache.root == settings.cache_dir
        assert service.freshness.src_root == settings.src_root
        assert service.layout.command == "dot"
        assert service.throttle.capacity == 10


class TestCacheIO:
    def test_cache_files_are_touched_off_the_event_loop(self, service, monkeypatch):
        threads = []
        real_get, real_put = service.cache.get, service.cache.put

        def get(*args):
            threads.append(threading.current_thread())
            return real_get(*args)

        def put(*args):
            threads.append(threading.current_thread())
            return real_put(*args)

        monkeypatch.setattr(service.cache, "get", get)
        monkeypatch.setattr(service.cache, "put", put)
        _render(service, "example.com/app")
        assert len(threads) == 2
        assert threading.main_thread() not in threads
