"""Tests for cache keys, freshness windows and the stored page format."""

import json

import pytest

from conftest import get
from isr_adapter.dto import CachedPage
from isr_adapter.entities import CompleteResponse, normalize_headers
from isr_adapter.errors import CacheCorruption
from isr_adapter.services import CacheKeyBuilder, Freshness, FreshnessPolicy, normalize_path


class TestCacheKeyBuilder:
    """Key derivation from route and variant."""

    @pytest.mark.parametrize(
        "path, expected",
        [("", "/"), ("/", "/"), ("/blog/", "/blog"), ("//blog//a", "/blog/a"), ("/a/./b", "/a/b")],
    )
    def test_normalize_path(self, path, expected):
        assert normalize_path(path) == expected

    def test_query_is_sorted(self):
        keys = CacheKeyBuilder()
        assert keys.build(get("/list?b=2&a=1")) == keys.build(get("/list/?a=1&b=2")) == "/list?a=1&b=2"

    def test_query_can_be_ignored(self):
        assert CacheKeyBuilder(vary_query=False).build(get("/list?page=3")) == "/list"

    def test_variant_headers_are_part_of_the_key(self):
        keys = CacheKeyBuilder(vary_headers=("X-Locale",))

        assert keys.build(get("/home", {"x-locale": "fr"})) == "/home|x-locale=fr"
        assert keys.build(get("/home")) == "/home"
        assert keys.variant_headers(get("/home", {"X-Locale": "de"})) == {"x-locale": "de"}


class TestFreshnessPolicy:
    """Route windows and age classification."""

    def test_classify(self):
        policy = FreshnessPolicy(default_window=60, max_stale=30)

        assert policy.classify(0, 60) is Freshness.FRESH
        assert policy.classify(59.9, 60) is Freshness.FRESH
        assert policy.classify(60, 60) is Freshness.STALE
        assert policy.classify(89, 60) is Freshness.STALE
        assert policy.classify(90, 60) is Freshness.EXPIRED
        assert policy.classify(10**9, None) is Freshness.FRESH

    def test_without_max_stale_entries_stay_servable(self):
        assert FreshnessPolicy().classify(10**9, 60) is Freshness.STALE

    def test_route_windows(self):
        policy = FreshnessPolicy(
            default_window=60,
            routes={"/": 10, "/blog/*": 300, "/blog/featured/*": 30, "/about": None},
        )

        assert policy.window_for("/") == 10
        assert policy.window_for("/blog/a") == 300
        assert policy.window_for("/blog/featured/x") == 30
        assert policy.window_for("/about/") is None
        assert policy.window_for("/contact") == 60

    def test_from_manifest(self, tmp_path):
        manifest = tmp_path / "routes.json"
        manifest.write_text(json.dumps({"routes": {"/docs/*": 3600, "/static": None}}))

        policy = FreshnessPolicy.from_manifest(manifest, default_window=5)

        assert policy.window_for("/docs/intro") == 3600
        assert policy.window_for("/static") is None
        assert policy.window_for("/other") == 5

    def test_cache_control(self):
        assert FreshnessPolicy.cache_control(60, 0) == "s-maxage=60, stale-while-revalidate=2592000"
        assert FreshnessPolicy.cache_control(60, 45) == "s-maxage=15, stale-while-revalidate=2592000"
        assert FreshnessPolicy.cache_control(60, 600) == "s-maxage=1, stale-while-revalidate=2592000"


class TestCachedPage:
    """Serialized page format."""

    def test_transient_headers_are_not_stored(self):
        response = CompleteResponse(
            status=200,
            headers=normalize_headers({"content-type": "text/html", "age": "3", "x-isr-cache": "MISS"}),
            body=b"\x00binary\xff",
            revalidate=30,
        )

        page = CachedPage.decode("/k", CachedPage.from_response(response).encode())
        restored = page.to_response()

        assert restored.headers == (("content-type", "text/html"),)
        assert restored.body == b"\x00binary\xff"
        assert restored.revalidate == 30

    @pytest.mark.parametrize(
        "raw",
        [b"", b"not json", b'{"status": 999}', b'{"status": 200, "body": "***"}'],
    )
    def test_invalid_payload_is_corruption(self, raw):
        with pytest.raises(CacheCorruption) as exc_info:
            CachedPage.decode("/k", raw)
        assert exc_info.value.key == "/k"
