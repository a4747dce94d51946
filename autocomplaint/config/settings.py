"""AutoComplaint configuration settings."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator


def _csv_env(var_name: str, default: str = "") -> list[str]:
    raw = os.getenv(var_name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class NormalizerConfig(BaseModel):
    """Text normalization limits."""

    max_length: int = Field(
        default_factory=lambda: int(os.getenv("AUTOCOMPLAINT_MAX_TEXT_LENGTH", "8000"))
    )
    classifier_max_length: int = 2000

    @field_validator("max_length", "classifier_max_length")
    @classmethod
    def _validate_length(cls, value: int) -> int:
        if not 100 <= value <= 100_000:
            raise ValueError("text length limits must be between 100 and 100000")
        return value


class ClassifierConfig(BaseModel):
    """Order-page classification thresholds.

    The informational threshold is used when the verdict is only shown to the
    user; the gating threshold decides whether extraction runs at all.
    """

    informational_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    gating_threshold: float = Field(default=0.7, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _validate_order(self) -> "ClassifierConfig":
        if self.informational_threshold > self.gating_threshold:
            raise ValueError("informational_threshold cannot exceed gating_threshold")
        return self


class ExtractionConfig(BaseModel):
    """Minimum winning scores per extractor."""

    order_id_min_score: float = Field(default=0.3, ge=0.0, le=1.0)
    price_min_score: float = Field(default=0.3, ge=0.0, le=1.0)
    product_min_score: float = Field(default=0.3, ge=0.0, le=1.0)
    seller_min_score: float = Field(default=0.3, ge=0.0, le=1.0)
    price_context_window: int = Field(default=50, ge=0)


class CacheConfig(BaseModel):
    """Classification/extraction result cache."""

    ttl_s: float = Field(
        default_factory=lambda: float(os.getenv("AUTOCOMPLAINT_CACHE_TTL_S", "300"))
    )
    max_entries: int = 256

    @field_validator("ttl_s")
    @classmethod
    def _validate_ttl(cls, value: float) -> float:
        if value < 0:
            raise ValueError("AUTOCOMPLAINT_CACHE_TTL_S must be >= 0")
        return value


class StorageConfig(BaseModel):
    """Where extracted records are stashed between pages."""

    data_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("AUTOCOMPLAINT_DATA_DIR", "./data"))
    )
    record_key: str = "autoComplaintOrder"
    fallback_keys: list[str] = Field(
        default_factory=lambda: _csv_env(
            "AUTOCOMPLAINT_FALLBACK_KEYS",
            "autoComplaintOrderUniversal,autoComplaintOrderNER",
        )
    )
    read_timeout_s: float = Field(default=5.0, ge=0.0)

    @property
    def lookup_keys(self) -> list[str]:
        return [self.record_key, *[k for k in self.fallback_keys if k != self.record_key]]


class FillConfig(BaseModel):
    """Form fill pass behaviour."""

    allow_candidate_reuse: bool = False
    overflow_wait_ms: int = 500
    element_timeout_ms: int = 5000
    monetary_fields: list[str] = Field(default_factory=lambda: ["price"])


class BrowserConfig(BaseModel):
    """Browser layer configuration."""

    headless: bool = True
    viewport_width: int = 1280
    viewport_height: int = 720
    user_agent: str | None = None
    locale: str = "en-US"


class AutoComplaintConfig(BaseModel):
    """Root configuration for an AutoComplaint host session."""

    normalizer: NormalizerConfig = Field(default_factory=NormalizerConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    fill: FillConfig = Field(default_factory=FillConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    log_level: str = Field(default_factory=lambda: os.getenv("AUTOCOMPLAINT_LOG_LEVEL", "INFO"))
