"""Entity extractors — ranked regex/keyword rules over normalized page text.

Each extractor is independent and pure: ``extract(text)`` returns scored
candidates (possibly none) ordered best-first, with ties broken by first
occurrence in the text. Picking the winner and applying minimum scores is
left to the record assembler in ``pipeline.heuristic``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from autocomplaint.pipeline.errors import InputError, require_text
from autocomplaint.pipeline.extraction import Candidate

CURRENCY_SYMBOLS = "$₹£€¥"
CURRENCY_CODES = ("rs", "inr", "usd", "eur", "gbp", "jpy")

KNOWN_PLATFORMS = (
    "amazon",
    "flipkart",
    "myntra",
    "ebay",
    "etsy",
    "shopify",
    "walmart",
    "alibaba",
    "aliexpress",
    "meesho",
    "snapdeal",
    "ajio",
    "nykaa",
)

MONTHS = (
    "january|february|march|april|may|june|july|august|september|october|november|december"
    "|jan|feb|mar|apr|jun|jul|aug|sept|sep|oct|nov|dec"
)


def _clamp(score: float) -> float:
    return round(max(0.0, min(1.0, score)), 4)


def rank(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Order candidates best-first; equal scores keep text order."""
    return sorted(candidates, key=lambda c: (-c.score, c.position))


def best(candidates: Sequence[Candidate], min_score: float = 0.0) -> Candidate | None:
    """Return the winning candidate if its score is above ``min_score``."""
    ranked = rank(candidates)
    if ranked and ranked[0].score > min_score:
        return ranked[0]
    return None


class Extractor:
    """Base class: validates input and ranks the raw candidates."""

    name: str = "extractor"

    def extract(self, text: str) -> list[Candidate]:
        text = require_text(text)
        if not text:
            return []
        return rank(self._candidates(text))

    def _candidates(self, text: str) -> Iterable[Candidate]:
        raise NotImplementedError


# --- Order ID ---


ORDER_ID_KEYWORD_WEIGHTS: dict[str, float] = {
    "order": 0.5,
    "invoice": 0.45,
    "confirmation": 0.4,
    "transaction": 0.35,
    "reference": 0.3,
}


class OrderIdExtractor(Extractor):
    """Alphanumeric ids following order/invoice/confirmation/... labels."""

    name = "order-id-context"

    def __init__(self, keyword_weights: dict[str, float] | None = None) -> None:
        self._weights = keyword_weights or ORDER_ID_KEYWORD_WEIGHTS
        keywords = "|".join(sorted(self._weights, key=len, reverse=True))
        self._pattern = re.compile(
            rf"\b({keywords})\b(?:\s*(?:number|no\.?|id|#))?\s*[:#]?\s*"
            r"((?=[A-Z\-]*\d)[A-Z0-9][A-Z0-9\-]{4,29})\b",
            re.IGNORECASE,
        )

    def _candidates(self, text: str) -> Iterable[Candidate]:
        for match in self._pattern.finditer(text):
            keyword = match.group(1).lower()
            token = match.group(2).rstrip("-")
            if len(token) < 5:
                continue
            score = self._weights[keyword]
            if re.search(r"[A-Za-z]", token) and re.search(r"\d", token):
                score += 0.2
            if "-" in token:
                score += 0.1
            if len(token) >= 8:
                score += 0.1
            yield Candidate(value=token, score=_clamp(score), position=match.start(2))


# --- Price ---


PRICE_CONTEXT_WEIGHTS: dict[str, float] = {
    "total": 0.5,
    "subtotal": 0.3,
    "amount": 0.2,
    "price": 0.4,
    "paid": 0.4,
    "cost": 0.3,
}
PRICE_PENALTY_WORDS = ("shipping", "tax")
PRICE_PENALTY = 0.3

_AMOUNT = r"\d[\d,]*(?:\.\d+)?"


class PriceExtractor(Extractor):
    """Currency-prefixed amounts and bare amounts following price labels."""

    name = "price-context"

    def __init__(
        self,
        context_window: int = 50,
        context_weights: dict[str, float] | None = None,
        base_score: float = 0.3,
    ) -> None:
        self._window = context_window
        self._weights = context_weights or PRICE_CONTEXT_WEIGHTS
        self._base = base_score
        symbols = re.escape(CURRENCY_SYMBOLS)
        codes = "|".join(CURRENCY_CODES)
        self._prefixed = re.compile(
            rf"[{symbols}]\s?{_AMOUNT}|\b(?:{codes})\.?\s?{_AMOUNT}", re.IGNORECASE
        )
        self._labelled = re.compile(
            rf"\b(?:total|subtotal|amount|price)\s*:?\s*({_AMOUNT})", re.IGNORECASE
        )

    def _spans(self, text: str) -> list[tuple[int, int, str]]:
        spans = [(m.start(), m.end(), m.group(0).strip()) for m in self._prefixed.finditer(text)]
        for m in self._labelled.finditer(text):
            start, end = m.span(1)
            if any(s <= start < e for s, e, _ in spans):
                continue
            spans.append((start, end, m.group(1)))
        spans.sort()
        return spans

    def _context_score(self, context: str) -> float:
        score = 0.0
        for word, weight in self._weights.items():
            if re.search(rf"\b{word}\b", context):
                score += weight
        if any(word in context for word in PRICE_PENALTY_WORDS):
            score -= PRICE_PENALTY
        return score

    def _candidates(self, text: str) -> Iterable[Candidate]:
        lowered = text.lower()
        previous_end = 0
        for start, end, value in self._spans(text):
            left = max(previous_end, start - self._window)
            context = lowered[left:start]
            previous_end = end
            if not re.search(r"[1-9]", value):
                continue
            score = self._base + self._context_score(context)
            yield Candidate(value=value, score=_clamp(score), position=start)


# --- Dates ---


ORDER_DATE_KEYWORDS = ("placed", "ordered", "order", "purchased", "purchase", "confirmed")
DELIVERY_DATE_KEYWORDS = (
    "delivered",
    "delivery",
    "shipping",
    "shipped",
    "arrive",
    "arriving",
    "arrives",
    "expected",
)

_DATE_PATTERN = re.compile(
    r"\b\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}\b"
    r"|\b\d{4}-\d{1,2}-\d{1,2}\b"
    rf"|\b\d{{1,2}}(?:st|nd|rd|th)?\s+(?:{MONTHS})\.?,?\s+\d{{4}}\b"
    rf"|\b(?:{MONTHS})\.?\s+\d{{1,2}}(?:st|nd|rd|th)?,?\s+\d{{4}}\b",
    re.IGNORECASE,
)


@dataclass
class DateMatch:
    value: str
    position: int
    bucket: str
    classified: bool


class DateExtractor(Extractor):
    """Order or delivery date, bucketed by the nearest preceding keyword.

    Unclassified dates fall into the order bucket. Only the first date of the
    requested bucket is returned.
    """

    def __init__(self, bucket: str = "order", context_window: int = 50) -> None:
        if bucket not in ("order", "delivery"):
            raise InputError(f"unknown date bucket: {bucket!r}")
        self.bucket = bucket
        self.name = f"{bucket}-date-context"
        self._window = context_window
        keywords = {k: "order" for k in ORDER_DATE_KEYWORDS}
        keywords.update({k: "delivery" for k in DELIVERY_DATE_KEYWORDS})
        self._keywords = keywords
        self._keyword_pattern = re.compile(
            r"\b(" + "|".join(sorted(keywords, key=len, reverse=True)) + r")\b", re.IGNORECASE
        )

    def classify(self, text: str) -> list[DateMatch]:
        matches = []
        for m in _DATE_PATTERN.finditer(text):
            context = text[max(0, m.start() - self._window) : m.start()]
            hits = list(self._keyword_pattern.finditer(context))
            if hits:
                bucket = self._keywords[hits[-1].group(1).lower()]
                matches.append(DateMatch(m.group(0), m.start(), bucket, True))
            else:
                matches.append(DateMatch(m.group(0), m.start(), "order", False))
        return matches

    def _candidates(self, text: str) -> Iterable[Candidate]:
        for match in self.classify(text):
            if match.bucket == self.bucket:
                score = 0.8 if match.classified else 0.5
                yield Candidate(value=match.value, score=score, position=match.position)
                return


# --- Seller ---


SELLER_KEYWORD_WEIGHTS: dict[str, float] = {
    "sold by": 0.7,
    "seller": 0.6,
    "shipped by": 0.5,
    "fulfilled by": 0.5,
    "brand": 0.5,
}
PLATFORM_BONUS = 0.2
ORGANIZATION_SUFFIXES = (
    "Inc",
    "Corp",
    "Corporation",
    "Ltd",
    "Limited",
    "LLC",
    "Company",
    "Co",
    "Store",
    "Shop",
    "Market",
    "Mart",
    "Retail",
    "Traders",
    "Enterprises",
    "Pvt",
)
# Words that end a captured seller name (the next label on the page).
SELLER_STOP_WORDS = frozenset(
    {
        "order",
        "orders",
        "total",
        "subtotal",
        "grand",
        "item",
        "items",
        "delivered",
        "delivery",
        "shipped",
        "shipping",
        "price",
        "qty",
        "quantity",
        "return",
        "tracking",
        "payment",
        "invoice",
        "contact",
        "email",
        "phone",
        "on",
        "and",
        "via",
        "at",
        "for",
        "the",
    }
)


class SellerExtractor(Extractor):
    """Seller after 'sold by'/'seller'/... labels, else organization-like spans."""

    name = "seller-context"

    def __init__(self, keyword_weights: dict[str, float] | None = None) -> None:
        self._weights = keyword_weights or SELLER_KEYWORD_WEIGHTS
        keywords = "|".join(
            re.escape(k).replace(r"\ ", r"\s+") for k in sorted(self._weights, key=len, reverse=True)
        )
        self._labelled = re.compile(
            rf"(?i:\b({keywords}))\s*(?:name)?\s*:?\s*"
            r"([A-Z0-9][\w&.'\-]*(?:\s+[A-Z0-9&][\w&.'\-]*){0,5})"
        )
        self._platforms = re.compile(r"\b(" + "|".join(KNOWN_PLATFORMS) + r")\b", re.IGNORECASE)
        suffixes = "|".join(ORGANIZATION_SUFFIXES)
        self._organization = re.compile(
            rf"\b((?:[A-Z][\w&'\-]*\s+){{1,3}}(?:{suffixes})\b\.?)"
        )

    @staticmethod
    def _trim(name: str) -> str:
        kept: list[str] = []
        for token in name.split():
            if token.lower().strip(".:,") in SELLER_STOP_WORDS:
                break
            kept.append(token)
        return " ".join(kept).strip(" .,:;-")

    def _platform_bonus(self, name: str) -> float:
        return PLATFORM_BONUS if self._platforms.search(name) else 0.0

    def _candidates(self, text: str) -> Iterable[Candidate]:
        for m in self._labelled.finditer(text):
            keyword = re.sub(r"\s+", " ", m.group(1).lower())
            name = self._trim(m.group(2))
            if len(name) < 2 or len(name) > 60:
                continue
            score = self._weights.get(keyword, 0.5) + self._platform_bonus(name)
            yield Candidate(value=name, score=_clamp(score), position=m.start(2))

        for m in self._organization.finditer(text):
            name = m.group(1).strip(" .")
            if name.split()[0].lower() in SELLER_STOP_WORDS:
                continue
            score = 0.4 + self._platform_bonus(name)
            yield Candidate(value=name, score=_clamp(score), position=m.start(1))

        for m in self._platforms.finditer(text):
            yield Candidate(
                value=m.group(1).capitalize(), score=_clamp(0.3 + PLATFORM_BONUS), position=m.start()
            )


# --- Product name ---


PRODUCT_KEYWORDS = (
    "phone",
    "laptop",
    "book",
    "shirt",
    "shoes",
    "watch",
    "bag",
    "headphone",
    "earbuds",
    "speaker",
    "camera",
    "tablet",
    "charger",
)
# Title-case spans made of page labels are not product names.
PRODUCT_LABEL_WORDS = frozenset(
    {
        "order",
        "number",
        "total",
        "subtotal",
        "sold",
        "seller",
        "invoice",
        "delivered",
        "delivery",
        "shipping",
        "payment",
        "tracking",
        "confirmation",
        "transaction",
        "reference",
        "amount",
        "price",
        "date",
        "status",
        "summary",
        "address",
        "customer",
        "email",
        "phone",
    }
)
_PURCHASE_VERBS = re.compile(r"\b(?:buy|bought|purchased?|ordered)\b", re.IGNORECASE)
_QUOTED = re.compile(r"[\"“]([^\"”]{5,100})[\"”]")
_TITLE_CASE = re.compile(r"\b([A-Z][a-z0-9]+(?:\s+[A-Z][a-z0-9]+){1,5})\b")
_SELLER_LEAD = re.compile(
    r"\b(?:by|from|seller|vendor|merchant|brand)(?:\s+[a-z]+)?\s*:?\s*$", re.IGNORECASE
)


class ProductNameExtractor(Extractor):
    """Quoted text, caller-supplied headings, then Title-Case spans."""

    name = "product-name"

    QUOTED_SCORE = 0.6
    HEADING_SCORE = 0.5
    TITLE_CASE_SCORE = 0.4

    def extract(self, text: str, headings: Sequence[str] | None = None) -> list[Candidate]:
        text = require_text(text)
        candidates = list(self._candidates(text)) if text else []
        for index, heading in enumerate(headings or []):
            heading = " ".join(require_text(heading, "heading").split())
            if 5 <= len(heading) <= 100:
                score = self.HEADING_SCORE + self._keyword_bonus(heading)
                # Headings rank after in-text candidates of equal score.
                candidates.append(
                    Candidate(value=heading, score=_clamp(score), position=len(text) + index)
                )
        return rank(candidates)

    @staticmethod
    def _keyword_bonus(value: str) -> float:
        lowered = value.lower()
        return 0.2 if any(k in lowered for k in PRODUCT_KEYWORDS) else 0.0

    @staticmethod
    def _near_purchase_verb(text: str, position: int) -> bool:
        return any(abs(m.start() - position) < 100 for m in _PURCHASE_VERBS.finditer(text))

    def _candidates(self, text: str) -> Iterable[Candidate]:
        for m in _QUOTED.finditer(text):
            value = m.group(1).strip()
            if len(value) < 5:
                continue
            score = self.QUOTED_SCORE + self._keyword_bonus(value)
            yield Candidate(value=value, score=_clamp(score), position=m.start(1))

        for m in _TITLE_CASE.finditer(text):
            value = m.group(1)
            if not 5 <= len(value) <= 100:
                continue
            if any(word.lower() in PRODUCT_LABEL_WORDS for word in value.split()):
                continue
            if _SELLER_LEAD.search(text[max(0, m.start() - 32) : m.start()]):
                continue
            score = self.TITLE_CASE_SCORE + self._keyword_bonus(value)
            if self._near_purchase_verb(text, m.start()):
                score += 0.1
            yield Candidate(value=value, score=_clamp(score), position=m.start(1))


# --- Contact ---


_EMAIL = re.compile(r"\b[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}\b")
_PHONE_INTERNATIONAL = re.compile(r"(?<![\w+])\+\d{1,3}(?:[\s\-]?\d){8,12}(?!\d)")
_PHONE_LOCAL = re.compile(
    r"(?<![\w+\-])(?:\(\d{3}\)\s?\d{3}[\s\-.]?\d{4}|0?[6-9]\d{9}|\d{3}[\s\-.]\d{3}[\s\-.]\d{4})(?![\w\-])"
)
_PHONE_LEAD = re.compile(r"\b(?:phone|mobile|tel|telephone|contact|call)\b", re.IGNORECASE)
_ORDER_LEAD = re.compile(
    r"\b(?:order|invoice|confirmation|transaction|reference|tracking|awb)\b", re.IGNORECASE
)


class EmailExtractor(Extractor):
    name = "email-pattern"

    def _candidates(self, text: str) -> Iterable[Candidate]:
        for m in _EMAIL.finditer(text):
            yield Candidate(value=m.group(0), score=0.9, position=m.start())


class PhoneExtractor(Extractor):
    """10-digit local numbers and +country-code international numbers."""

    name = "phone-pattern"

    def _score(self, text: str, start: int, base: float) -> float:
        context = text[max(0, start - 30) : start]
        if _PHONE_LEAD.search(context):
            base += 0.2
        elif _ORDER_LEAD.search(context):
            base -= 0.5
        return _clamp(base)

    def _candidates(self, text: str) -> Iterable[Candidate]:
        taken: list[tuple[int, int]] = []
        for m in _PHONE_INTERNATIONAL.finditer(text):
            taken.append(m.span())
            yield Candidate(value=m.group(0), score=self._score(text, m.start(), 0.8), position=m.start())
        for m in _PHONE_LOCAL.finditer(text):
            if any(s <= m.start() < e for s, e in taken):
                continue
            yield Candidate(value=m.group(0), score=self._score(text, m.start(), 0.7), position=m.start())


# --- Tracking number ---


_TRACKING = re.compile(
    r"\b(?:tracking|awb|shipment)\s*(?:number|no\.?|id|code)?\s*[:#]?\s*"
    r"((?=[A-Z]*\d)[A-Z0-9]{8,25})\b",
    re.IGNORECASE,
)


class TrackingNumberExtractor(Extractor):
    name = "tracking-context"

    def _candidates(self, text: str) -> Iterable[Candidate]:
        for m in _TRACKING.finditer(text):
            yield Candidate(value=m.group(1), score=0.7, position=m.start(1))


# --- Product category ---


@dataclass
class CategoryRule:
    category: str
    keywords: tuple[str, ...] = field(default_factory=tuple)


DEFAULT_CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        "Electronics",
        ("phone", "laptop", "tablet", "headphone", "earbud", "speaker", "camera", "tv", "charger"),
    ),
    CategoryRule("Clothing", ("shirt", "t-shirt", "dress", "jean", "trouser", "jacket", "kurta")),
    CategoryRule("Footwear", ("shoe", "sandal", "sneaker", "boot")),
    CategoryRule("Home & Kitchen", ("appliance", "cookware", "furniture", "mattress")),
    CategoryRule("Beauty", ("makeup", "skincare", "perfume", "cosmetic")),
    CategoryRule("Books", ("book", "novel", "textbook")),
)


class ProductCategoryExtractor(Extractor):
    """Category guessed from product keywords; more keyword hits score higher."""

    name = "category-keywords"

    def __init__(self, rules: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES) -> None:
        self._rules = [
            (rule.category, re.compile(r"\b(?:" + "|".join(map(re.escape, rule.keywords)) + r")s?\b", re.IGNORECASE))
            for rule in rules
        ]

    def _candidates(self, text: str) -> Iterable[Candidate]:
        for category, pattern in self._rules:
            hits = list(pattern.finditer(text))
            if hits:
                score = 0.4 + 0.1 * min(len(hits) - 1, 4)
                yield Candidate(value=category, score=_clamp(score), position=hits[0].start())
