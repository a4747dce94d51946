"""Engine context — owns the classifier, extractor and the result cache.

One ``EngineContext`` is constructed per host session and closed with it.
Classification and extraction results are cached per page key (usually the
URL) for ``CacheConfig.ttl_s`` seconds. At most one computation per key runs
at a time; concurrent callers for the same key wait for that result.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Sequence, TypeVar

from autocomplaint.config.settings import AutoComplaintConfig, CacheConfig
from autocomplaint.pipeline.classifier import ClassificationResult, ClassifierMode, PageClassifier
from autocomplaint.pipeline.extraction import ExtractedRecord
from autocomplaint.pipeline.heuristic import RecordExtractor
from autocomplaint.pipeline.normalizer import normalize

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _Entry:
    value: Any
    expires_at: float


class ResultCache:
    """TTL cache with per-key single-flight computation."""

    def __init__(
        self,
        config: CacheConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or CacheConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._inflight: dict[str, threading.Event] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> Any | None:
        with self._lock:
            return self._get_locked(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._set_locked(key, value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _get_locked(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry.value

    def _set_locked(self, key: str, value: Any) -> None:
        if self._config.ttl_s <= 0:
            return
        self._entries[key] = _Entry(value, self._clock() + self._config.ttl_s)
        self._entries.move_to_end(key)
        while len(self._entries) > self._config.max_entries:
            self._entries.popitem(last=False)

    def get_or_compute(self, key: str, compute: Callable[[], T]) -> T:
        """Return the fresh cached value for ``key`` or compute it exactly once."""
        while True:
            with self._lock:
                cached = self._get_locked(key)
                if cached is not None:
                    return cached
                event = self._inflight.get(key)
                if event is None:
                    event = threading.Event()
                    self._inflight[key] = event
                    break
            # Another caller is computing this key.
            event.wait()

        try:
            value = compute()
            with self._lock:
                self._set_locked(key, value)
            return value
        finally:
            with self._lock:
                self._inflight.pop(key, None)
            event.set()


class EngineContext:
    """Per-session engine state passed explicitly to callers."""

    def __init__(
        self,
        config: AutoComplaintConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or AutoComplaintConfig()
        self.classifier = PageClassifier(self.config.classifier)
        self.extractor = RecordExtractor(self.config.extraction)
        self.cache = ResultCache(self.config.cache, clock=clock)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("EngineContext is closed")

    def classify(
        self,
        page_key: str,
        raw_text: str,
        mode: ClassifierMode = ClassifierMode.INFORMATIONAL,
    ) -> ClassificationResult:
        """Normalize and classify page text, cached per page key and mode."""
        self._check_open()

        def compute() -> ClassificationResult:
            text = normalize(raw_text, self.config.normalizer.classifier_max_length)
            return self.classifier.classify(text, mode)

        return self.cache.get_or_compute(f"classify:{mode.value}:{page_key}", compute)

    def extract(
        self,
        page_key: str,
        raw_text: str,
        headings: Sequence[str] | None = None,
    ) -> ExtractedRecord:
        """Normalize page text and extract a record, cached per page key."""
        self._check_open()

        def compute() -> ExtractedRecord:
            text = normalize(raw_text, self.config.normalizer.max_length)
            clean_headings = [normalize(h, 200) for h in headings or []]
            return self.extractor.extract_record(text, headings=clean_headings, source_url=page_key)

        return self.cache.get_or_compute(f"extract:{page_key}", compute)

    def close(self) -> None:
        if not self._closed:
            self.cache.clear()
            self._closed = True
            logger.debug("engine context closed")

    def __enter__(self) -> "EngineContext":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
