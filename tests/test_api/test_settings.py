"""Tests for configuration defaults, environment overrides and validation."""

from pathlib import Path

import pytest

from autocomplaint.config.settings import (
    AutoComplaintConfig,
    CacheConfig,
    NormalizerConfig,
    StorageConfig,
)


def test_defaults():
    cfg = AutoComplaintConfig()
    assert cfg.normalizer.max_length == 8000
    assert cfg.normalizer.classifier_max_length == 2000
    assert cfg.cache.ttl_s == 300
    assert cfg.fill.allow_candidate_reuse is False
    assert cfg.fill.monetary_fields == ["price"]
    assert cfg.storage.record_key == "autoComplaintOrder"


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("AUTOCOMPLAINT_MAX_TEXT_LENGTH", "3000")
    monkeypatch.setenv("AUTOCOMPLAINT_CACHE_TTL_S", "60")
    monkeypatch.setenv("AUTOCOMPLAINT_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("AUTOCOMPLAINT_LOG_LEVEL", "DEBUG")
    cfg = AutoComplaintConfig()
    assert cfg.normalizer.max_length == 3000
    assert cfg.cache.ttl_s == 60
    assert cfg.storage.data_dir == Path(tmp_path)
    assert cfg.log_level == "DEBUG"


def test_lookup_keys_put_record_key_first(monkeypatch):
    monkeypatch.setenv("AUTOCOMPLAINT_FALLBACK_KEYS", "legacyOrder, autoComplaintOrder ,nerOrder")
    storage = StorageConfig()
    assert storage.lookup_keys == ["autoComplaintOrder", "legacyOrder", "nerOrder"]


def test_rejects_out_of_range_text_length():
    with pytest.raises(ValueError):
        NormalizerConfig(max_length=10)


def test_rejects_negative_ttl():
    with pytest.raises(ValueError):
        CacheConfig(ttl_s=-1)
