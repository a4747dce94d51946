"""Heuristic record assembly — runs every extractor and keeps the winners.

Deterministic, no model cost. Each logical field is filled by the best
candidate of its extractor when that candidate clears the extractor's floor.
"""

from __future__ import annotations

import logging
from typing import Sequence

from autocomplaint.config.settings import ExtractionConfig
from autocomplaint.pipeline.errors import require_text
from autocomplaint.pipeline.extraction import Candidate, ExtractedField, ExtractedRecord
from autocomplaint.pipeline.extractors import (
    DateExtractor,
    EmailExtractor,
    Extractor,
    OrderIdExtractor,
    PhoneExtractor,
    PriceExtractor,
    ProductCategoryExtractor,
    ProductNameExtractor,
    SellerExtractor,
    TrackingNumberExtractor,
    best,
)

logger = logging.getLogger(__name__)

# Floor for extractors without a configurable minimum.
DEFAULT_MIN_SCORE = 0.3


class RecordExtractor:
    """Builds an ``ExtractedRecord`` from normalized page text."""

    def __init__(self, config: ExtractionConfig | None = None) -> None:
        self.config = config or ExtractionConfig()
        self.product_name = ProductNameExtractor()
        self.category = ProductCategoryExtractor()
        self._extractors: dict[str, tuple[Extractor, float]] = {
            "order_id": (OrderIdExtractor(), self.config.order_id_min_score),
            "price": (
                PriceExtractor(context_window=self.config.price_context_window),
                self.config.price_min_score,
            ),
            "order_date": (DateExtractor("order"), DEFAULT_MIN_SCORE),
            "delivery_date": (DateExtractor("delivery"), DEFAULT_MIN_SCORE),
            "seller_name": (SellerExtractor(), self.config.seller_min_score),
            "tracking_number": (TrackingNumberExtractor(), DEFAULT_MIN_SCORE),
            "customer_email": (EmailExtractor(), DEFAULT_MIN_SCORE),
            "customer_phone": (PhoneExtractor(), DEFAULT_MIN_SCORE),
        }

    def candidates(self, field_name: str, text: str) -> list[Candidate]:
        """Raw ranked candidates for one logical field (diagnostics)."""
        if field_name == "product_name":
            return self.product_name.extract(text)
        if field_name == "product_category":
            return self.category.extract(text)
        extractor, _ = self._extractors[field_name]
        return extractor.extract(text)

    def extract_record(
        self,
        text: str,
        headings: Sequence[str] | None = None,
        source_url: str | None = None,
    ) -> ExtractedRecord:
        """Run all extractors over ``text`` and assemble the record.

        Args:
            text: Normalized page text.
            headings: Heading-like DOM text offered to the product-name extractor.
            source_url: Page the text came from, kept as provenance.

        Raises:
            InputError: if ``text`` is not a string.
        """
        text = require_text(text)
        fields: dict[str, ExtractedField] = {}

        for field_name, (extractor, min_score) in self._extractors.items():
            winner = best(extractor.extract(text), min_score)
            if winner is not None:
                fields[field_name] = _to_field(winner, extractor.name)

        product = best(
            self.product_name.extract(text, headings=headings), self.config.product_min_score
        )
        if product is not None:
            fields["product_name"] = _to_field(product, self.product_name.name)

        # Category from the product name first, the whole page second.
        category = None
        if product is not None:
            category = best(self.category.extract(product.value), DEFAULT_MIN_SCORE)
        if category is None:
            category = best(self.category.extract(text), DEFAULT_MIN_SCORE)
        if category is not None:
            fields["product_category"] = _to_field(category, self.category.name)

        record = ExtractedRecord(source_url=source_url, **fields)
        logger.debug(
            "extracted %d fields (%s) confidence=%.2f",
            len(record.extracted_fields),
            ", ".join(record.extracted_fields),
            record.confidence,
        )
        return record


def _to_field(candidate: Candidate, method: str) -> ExtractedField:
    return ExtractedField(
        value=candidate.value, confidence=candidate.score, extraction_method=method
    )
