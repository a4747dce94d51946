"""Extraction data models — scored candidates and the per-page order record."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

# Logical record fields, in the order the orchestrator walks them.
RECORD_FIELDS: tuple[str, ...] = (
    "order_id",
    "product_name",
    "product_category",
    "price",
    "order_date",
    "delivery_date",
    "seller_name",
    "tracking_number",
    "customer_email",
    "customer_phone",
)

_CAMEL_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
)


class Candidate(BaseModel):
    """A scored, possibly-wrong guess produced by an extractor."""

    value: str
    score: float = Field(ge=0.0, le=1.0)
    position: int = 0

    model_config = {"frozen": True}


class ExtractedField(BaseModel):
    """A single extracted field with confidence and provenance."""

    model_config = _CAMEL_CONFIG

    value: str
    confidence: float = Field(ge=0.0, le=1.0, default=1.0)
    extraction_method: str | None = None


class ExtractedRecord(BaseModel):
    """The structured result of scraping one order page.

    Every field is optional; an absent field means "not found". Serialized
    with ``by_alias=True`` the keys are the camelCase names the scraper and
    portal adapter share (``orderId``, ``productName``, ...).
    """

    model_config = _CAMEL_CONFIG

    order_id: ExtractedField | None = None
    product_name: ExtractedField | None = None
    product_category: ExtractedField | None = None
    price: ExtractedField | None = None
    order_date: ExtractedField | None = None
    delivery_date: ExtractedField | None = None
    seller_name: ExtractedField | None = None
    tracking_number: ExtractedField | None = None
    customer_email: ExtractedField | None = None
    customer_phone: ExtractedField | None = None

    source_url: str | None = None
    extracted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def extracted_fields(self) -> list[str]:
        return [name for name in RECORD_FIELDS if getattr(self, name) is not None]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def confidence(self) -> float:
        """Mean field confidence with a bonus for well-populated records."""
        fields = [getattr(self, name) for name in self.extracted_fields]
        if not fields:
            return 0.0
        score = sum(f.confidence for f in fields) / len(fields)
        if len(fields) >= 3:
            score += 0.1
        if len(fields) >= 5:
            score += 0.1
        return round(min(1.0, score), 4)

    def value_of(self, field_name: str) -> str | None:
        """Return the plain value of a logical field, or ``None`` when absent."""
        extracted = getattr(self, field_name, None)
        if isinstance(extracted, ExtractedField):
            return extracted.value
        return None

    def to_storage_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_storage_json(cls, payload: str | bytes) -> "ExtractedRecord":
        return cls.model_validate_json(payload)
