"""Tests for the engine context and its result cache."""

import threading
import time

import pytest

from autocomplaint.config.settings import AutoComplaintConfig, CacheConfig
from autocomplaint.pipeline.classifier import ClassifierMode
from autocomplaint.pipeline.context import EngineContext, ResultCache

ORDER_TEXT = "Order Number: ORD-123456 Order confirmed Total: $49.99 ordered on 12 March 2024 Sold by Acme Corp"


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestResultCache:
    def test_computes_once_within_ttl(self):
        clock = FakeClock()
        cache = ResultCache(CacheConfig(ttl_s=300), clock=clock)
        calls = []

        def compute():
            calls.append(1)
            return "value"

        assert cache.get_or_compute("k", compute) == "value"
        clock.now += 299
        assert cache.get_or_compute("k", compute) == "value"
        assert len(calls) == 1

    def test_recomputes_after_expiry(self):
        clock = FakeClock()
        cache = ResultCache(CacheConfig(ttl_s=300), clock=clock)
        calls = []
        cache.get_or_compute("k", lambda: calls.append(1) or "a")
        clock.now += 301
        cache.get_or_compute("k", lambda: calls.append(1) or "b")
        assert len(calls) == 2
        assert cache.get("k") == "b"

    def test_zero_ttl_disables_caching(self):
        cache = ResultCache(CacheConfig(ttl_s=0))
        cache.set("k", "v")
        assert cache.get("k") is None

    def test_evicts_oldest_beyond_capacity(self):
        cache = ResultCache(CacheConfig(ttl_s=300, max_entries=2))
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        assert cache.get("a") is None
        assert len(cache) == 2

    def test_failed_computation_is_not_cached(self):
        cache = ResultCache(CacheConfig(ttl_s=300))

        def boom():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            cache.get_or_compute("k", boom)
        assert cache.get_or_compute("k", lambda: "ok") == "ok"

    def test_single_flight_per_key(self):
        cache = ResultCache(CacheConfig(ttl_s=300))
        release = threading.Event()
        calls = []
        results = []

        def compute():
            calls.append(1)
            release.wait(timeout=5)
            return "shared"

        threads = [
            threading.Thread(target=lambda: results.append(cache.get_or_compute("page", compute)))
            for _ in range(5)
        ]
        for thread in threads:
            thread.start()
        time.sleep(0.05)
        release.set()
        for thread in threads:
            thread.join(timeout=5)

        assert len(calls) == 1
        assert results == ["shared"] * 5


class TestEngineContext:
    @pytest.fixture
    def context(self):
        ctx = EngineContext(AutoComplaintConfig())
        yield ctx
        ctx.close()

    def test_classify_is_cached_per_page(self, context):
        first = context.classify("https://shop.example/o/1", ORDER_TEXT)
        second = context.classify("https://shop.example/o/1", ORDER_TEXT)
        assert first is second
        assert first.is_order_page

    def test_modes_cached_separately(self, context):
        informational = context.classify("p", ORDER_TEXT, ClassifierMode.INFORMATIONAL)
        gating = context.classify("p", ORDER_TEXT, ClassifierMode.GATING)
        assert informational.mode == ClassifierMode.INFORMATIONAL
        assert gating.mode == ClassifierMode.GATING

    def test_extract_normalizes_first(self, context):
        record = context.extract("p", "Order   Number:\n ORD-123456\n\nTotal:  $49.99")
        assert record.order_id.value == "ORD-123456"
        assert record.source_url == "p"

    def test_closed_context_rejects_calls(self):
        context = EngineContext()
        context.close()
        assert context.closed
        with pytest.raises(RuntimeError):
            context.classify("p", ORDER_TEXT)

    def test_context_manager_closes(self):
        with EngineContext() as context:
            context.classify("p", ORDER_TEXT)
        assert context.closed
