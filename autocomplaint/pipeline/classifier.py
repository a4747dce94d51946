"""Order-page classifier — weighted keyword/pattern scoring without a model.

Signals are grouped into tiers. Every rule contributes its weight at most once,
the sum is clamped to [0, 1] and compared against a mode-dependent threshold.
Rule tables are injectable so site-specific variants share one engine.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from pydantic import BaseModel, Field

from autocomplaint.config.settings import ClassifierConfig
from autocomplaint.pipeline.errors import require_text

logger = logging.getLogger(__name__)


class SignalTier(str, Enum):
    STRONG = "strong"
    MEDIUM = "medium"
    WEAK = "weak"
    NEGATIVE = "negative"


TIER_WEIGHTS: dict[SignalTier, float] = {
    SignalTier.STRONG: 0.4,
    SignalTier.MEDIUM: 0.2,
    SignalTier.WEAK: 0.1,
    SignalTier.NEGATIVE: -0.15,
}


class ClassifierMode(str, Enum):
    """INFORMATIONAL verdicts are only displayed; GATING verdicts decide whether to extract."""

    INFORMATIONAL = "informational"
    GATING = "gating"


@dataclass(frozen=True)
class SignalRule:
    """One named pattern. ``weight`` defaults to the tier weight."""

    tag: str
    pattern: str
    tier: SignalTier
    weight: float | None = None

    @property
    def effective_weight(self) -> float:
        return TIER_WEIGHTS[self.tier] if self.weight is None else self.weight


_CURRENCY = r"(?:[$₹£€¥]|rs\.?|inr|usd|eur|gbp)"

DEFAULT_RULES: tuple[SignalRule, ...] = (
    # Strong: explicit order artefacts
    SignalRule("order-number", r"\border\s*(?:number|no\.?|id|#)\s*[:#]?\s*[a-z0-9\-]{4,}", SignalTier.STRONG),
    SignalRule("invoice-confirmed", r"\binvoice\s*(?:number|no\.?|#|confirmed)", SignalTier.STRONG),
    SignalRule("order-status", r"\border\s+(?:confirmed|placed|shipped|delivered)\b", SignalTier.STRONG),
    SignalRule("payment-successful", r"\bpayment\s+(?:successful|received|confirmed)\b", SignalTier.STRONG),
    SignalRule("receipt-number", r"\b(?:confirmation|receipt)\s*(?:number|no\.?|#)", SignalTier.STRONG),
    # Medium: typical order-page furniture
    SignalRule("total-amount", rf"\b(?:grand\s+)?total\s*:?\s*{_CURRENCY}\s?\d", SignalTier.MEDIUM),
    SignalRule("tracking-number", r"\btracking\s*(?:number|no\.?|id)\b", SignalTier.MEDIUM),
    SignalRule("delivery-date", r"\b(?:delivery|delivered)\s+(?:date|on|by)\b", SignalTier.MEDIUM),
    SignalRule("shipping-address", r"\b(?:shipping|delivery)\s+address\b", SignalTier.MEDIUM),
    SignalRule("order-summary", r"\border\s+(?:summary|details|status)\b", SignalTier.MEDIUM),
    SignalRule("subtotal", r"\bsub\s?total\b", SignalTier.MEDIUM),
    # Weak: bare vocabulary
    SignalRule("word-order", r"\border\b", SignalTier.WEAK),
    SignalRule("word-invoice", r"\binvoice\b", SignalTier.WEAK),
    SignalRule("word-receipt", r"\breceipt\b", SignalTier.WEAK),
    SignalRule("word-purchase", r"\bpurchased?\b", SignalTier.WEAK),
    SignalRule("word-shipped", r"\bshipped\b", SignalTier.WEAK),
    SignalRule("word-delivered", r"\bdelivered\b", SignalTier.WEAK),
    # Negative: storefront and catalogue pages
    SignalRule("add-to-cart", r"\badd\s+to\s+(?:cart|bag|basket)\b", SignalTier.NEGATIVE),
    SignalRule("search-results", r"\bsearch\s+results\b", SignalTier.NEGATIVE),
    SignalRule("browse", r"\bbrowse\b", SignalTier.NEGATIVE),
    SignalRule("wishlist", r"\bwish\s?list\b", SignalTier.NEGATIVE),
    SignalRule("recommended", r"\brecommended\s+for\s+you\b", SignalTier.NEGATIVE),
    SignalRule("customer-reviews", r"\bcustomer\s+reviews\b", SignalTier.NEGATIVE),
    SignalRule("frequently-bought", r"\bfrequently\s+bought\b", SignalTier.NEGATIVE),
    SignalRule("privacy-policy", r"\bprivacy\s+policy\b", SignalTier.NEGATIVE),
    SignalRule("about-us", r"\babout\s+us\b", SignalTier.NEGATIVE),
)


class ClassificationResult(BaseModel):
    """Verdict for one page."""

    model_config = {"frozen": True}

    is_order_page: bool
    confidence: float = Field(ge=0.0, le=1.0)
    matched_signals: list[str] = Field(default_factory=list)
    mode: ClassifierMode = ClassifierMode.INFORMATIONAL


class PageClassifier:
    """Scores page text against tiered signal rules."""

    def __init__(
        self,
        config: ClassifierConfig | None = None,
        rules: Sequence[SignalRule] = DEFAULT_RULES,
    ) -> None:
        self.config = config or ClassifierConfig()
        self._rules = [(rule, re.compile(rule.pattern, re.IGNORECASE)) for rule in rules]

    def threshold(self, mode: ClassifierMode) -> float:
        if mode == ClassifierMode.GATING:
            return self.config.gating_threshold
        return self.config.informational_threshold

    def score(self, text: str) -> tuple[float, list[str]]:
        """Return the clamped score and the tags of every rule that fired."""
        text = require_text(text)
        total = 0.0
        matched: list[str] = []
        for rule, pattern in self._rules:
            if pattern.search(text):
                total += rule.effective_weight
                matched.append(rule.tag)
        return round(max(0.0, min(1.0, total)), 4), matched

    def classify(
        self, text: str, mode: ClassifierMode = ClassifierMode.INFORMATIONAL
    ) -> ClassificationResult:
        """Classify normalized page text.

        Raises:
            InputError: if ``text`` is not a string.
        """
        confidence, matched = self.score(text)
        result = ClassificationResult(
            is_order_page=confidence >= self.threshold(mode),
            confidence=confidence,
            matched_signals=matched,
            mode=mode,
        )
        logger.debug(
            "classified page: order=%s confidence=%.2f mode=%s signals=%s",
            result.is_order_page,
            confidence,
            mode.value,
            matched,
        )
        return result
