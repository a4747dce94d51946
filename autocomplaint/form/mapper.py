"""Field-to-selector mapper — picks the target-form control for one logical field.

Matching cascade, first success wins:

1. exact match of the field name (or the value) against a control's name/id;
2. substring match of the field name or one of its aliases against
   name/id/placeholder/label text;
3. option matching over the remaining ``select`` controls.

A ``select`` reached through step 1 or 2 still needs an option: exact display
text, then substring, then the numeric-range heuristic (monetary fields only),
then an "Other" option with the value kept as overflow text for the free-text
box the portal reveals. A select without a usable option does not match.

Post-condition for ``select`` entries: after assigning ``matched_option_value``
the caller must dispatch a change notification on the control (and, for the
"Other" fallback, write ``overflow_text`` into the revealed text box), or the
portal's own scripts will not see the selection.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Iterable, Sequence

from autocomplaint.form.models import FieldCandidate, FillPlanEntry, MatchStrategy, SelectOption
from autocomplaint.pipeline.errors import InputError, require_text

logger = logging.getLogger(__name__)

# Attribute vocabulary per logical field, most specific first.
FIELD_KEYWORDS: dict[str, tuple[str, ...]] = {
    "order_id": ("order_id", "orderid", "order id", "order number", "order_no", "order", "reference", "invoice", "transaction"),
    "product_name": ("product_name", "productname", "product name", "product", "item"),
    "product_category": ("product_category", "category"),
    "price": ("price", "amount", "product value", "productvalue", "value", "cost"),
    "order_date": ("order_date", "orderdate", "order date", "purchase_date", "purchase date", "date of purchase"),
    "delivery_date": ("delivery_date", "deliverydate", "delivery date", "delivered", "delivery"),
    "seller_name": ("seller_name", "seller", "company", "brand", "dealer", "merchant"),
    "tracking_number": ("tracking", "awb"),
    "customer_email": ("email", "e-mail"),
    "customer_phone": ("phone", "mobile", "tel", "contact"),
}

# Attribute words that rule a control out for a field despite a keyword hit.
FIELD_EXCLUSIONS: dict[str, tuple[str, ...]] = {
    "order_id": ("date", "status", "value", "amount"),
    "product_name": ("category", "value", "price"),
    "price": ("date",),
    "seller_name": ("email", "phone"),
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_AMOUNT = re.compile(
    r"(\d[\d,]*(?:\.\d+)?)\s*(k|lakhs?|lacs?|crores?|cr)?\b", re.IGNORECASE
)
_MULTIPLIERS = {"k": 1_000, "lakh": 100_000, "lac": 100_000, "crore": 10_000_000, "cr": 10_000_000}
_ABOVE = re.compile(r"\b(?:above|over|more\s+than|greater\s+than)\b|>", re.IGNORECASE)
_BELOW = re.compile(r"\b(?:below|under|less\s+than)\b|<", re.IGNORECASE)
_UP_TO = re.compile(r"\bup\s*to\b", re.IGNORECASE)
_BETWEEN = re.compile(r"\s(?:-|–|to)\s|(?<=\d)\s?-\s?(?=\d)", re.IGNORECASE)
_OTHER = re.compile(r"\bothers?\b", re.IGNORECASE)


def canonical_field_name(field_name: str) -> str:
    """``orderId`` / ``order-id`` / ``order_id`` -> ``order_id``."""
    snake = _CAMEL_BOUNDARY.sub("_", field_name)
    return re.sub(r"[\s\-]+", "_", snake).lower()


def field_keywords(field_name: str) -> tuple[str, ...]:
    """Field-name spellings followed by the field's aliases."""
    canonical = canonical_field_name(field_name)
    spellings = (
        field_name.lower(),
        canonical,
        canonical.replace("_", ""),
        canonical.replace("_", " "),
    )
    ordered: list[str] = []
    for word in (*spellings, *FIELD_KEYWORDS.get(canonical, ())):
        if word and word not in ordered:
            ordered.append(word)
    return tuple(ordered)


# --- Amount and range parsing ---


def _amount_value(number: str, unit: str | None) -> float:
    value = float(number.replace(",", ""))
    if unit:
        unit = unit.lower().rstrip("s")
        value *= _MULTIPLIERS.get(unit, 1)
    return value


def parse_amount(text: str) -> float | None:
    """Parse display text such as ``"₹1,23,456.00"`` or ``"2 lakh"`` into a number."""
    match = _AMOUNT.search(require_text(text))
    if match is None:
        return None
    return _amount_value(match.group(1), match.group(2))


def parse_option_range(text: str) -> tuple[float, float] | None:
    """Interpret a range option such as ``"Above 50,000"`` or ``"1 lakh - 5 lakh"``.

    Returns an inclusive ``(low, high)`` pair or ``None`` when the text is not
    a range. Open-ended bounds use 0 and infinity.
    """
    amounts = [_amount_value(m.group(1), m.group(2)) for m in _AMOUNT.finditer(text)]
    if not amounts:
        return None
    if len(amounts) >= 2 and _BETWEEN.search(text):
        low, high = sorted(amounts[:2])
        return low, high
    if _ABOVE.search(text):
        return math.nextafter(amounts[0], math.inf), math.inf
    if _BELOW.search(text):
        return 0.0, math.nextafter(amounts[0], -math.inf)
    if _UP_TO.search(text):
        return 0.0, amounts[0]
    return None


# --- Option resolution ---


def _usable(option: SelectOption) -> bool:
    return len(option.display_text.strip()) >= 2


def resolve_option(
    value: str, options: Sequence[SelectOption], monetary: bool = False
) -> tuple[SelectOption, MatchStrategy] | None:
    """Pick the option for ``value``: exact, substring, range, then "Other"."""
    wanted = value.strip().lower()
    if not wanted:
        return None
    usable = [o for o in options if _usable(o)]

    for option in usable:
        if option.display_text.strip().lower() == wanted:
            return option, MatchStrategy.OPTION_EXACT

    for option in usable:
        text = option.display_text.strip().lower()
        if wanted in text or text in wanted:
            return option, MatchStrategy.OPTION_SUBSTRING

    if monetary:
        amount = parse_amount(value)
        if amount is not None:
            for option in usable:
                bounds = parse_option_range(option.display_text)
                if bounds and bounds[0] <= amount <= bounds[1]:
                    return option, MatchStrategy.OPTION_RANGE

    for option in usable:
        if _OTHER.search(option.display_text):
            return option, MatchStrategy.OPTION_OTHER
    return None


# --- Mapper ---


def _excluded(canonical: str, candidate: FieldCandidate) -> bool:
    words = FIELD_EXCLUSIONS.get(canonical, ())
    return any(word in text for text in candidate.attribute_texts() for word in words)


def _entry(
    field_name: str,
    value: str,
    candidate: FieldCandidate,
    strategy: MatchStrategy,
    monetary: bool,
) -> FillPlanEntry | None:
    if not candidate.is_select:
        return FillPlanEntry(
            field_name=field_name, value=value, candidate=candidate, match_strategy=strategy
        )
    resolved = resolve_option(value, candidate.options, monetary=monetary)
    if resolved is None:
        return None
    option, option_strategy = resolved
    return FillPlanEntry(
        field_name=field_name,
        value=value,
        candidate=candidate,
        match_strategy=option_strategy,
        matched_option_value=option.value,
        overflow_text=value if option_strategy == MatchStrategy.OPTION_OTHER else None,
    )


def _check_candidates(candidates: Iterable[FieldCandidate]) -> list[FieldCandidate]:
    checked = list(candidates)
    for candidate in checked:
        if not isinstance(candidate, FieldCandidate):
            raise InputError(f"candidates must be FieldCandidate, got {type(candidate).__name__}")
    return checked


def map_field(
    field_name: str,
    value: str,
    candidates: Sequence[FieldCandidate],
    monetary: bool = False,
) -> FillPlanEntry | None:
    """Choose the control for ``field_name``.

    Returns ``None`` when no visible candidate matches; that is a normal
    "unfilled" result, not an error. For a ``select`` result the caller must
    dispatch a change notification after assignment.

    Raises:
        InputError: if ``field_name``/``value`` are not strings or a candidate
            is not a ``FieldCandidate``.
    """
    require_text(field_name, "field_name")
    require_text(value, "value")
    visible = [c for c in _check_candidates(candidates) if c.is_visible]
    if not visible or not value.strip():
        return None

    canonical = canonical_field_name(field_name)
    keywords = field_keywords(field_name)
    exact_names = {field_name.lower(), canonical, canonical.replace("_", ""), value.strip().lower()}
    tried: list[FieldCandidate] = []

    # 1. exact name/id
    for candidate in visible:
        if candidate.name.lower() in exact_names or candidate.id.lower() in exact_names:
            tried.append(candidate)
            entry = _entry(field_name, value, candidate, MatchStrategy.EXACT_ATTRIBUTE, monetary)
            if entry is not None:
                return entry

    # 2. substring over name/id/placeholder/label, most specific keyword first
    for keyword in keywords:
        for candidate in visible:
            if candidate in tried or _excluded(canonical, candidate):
                continue
            if any(keyword in text for text in candidate.attribute_texts()):
                tried.append(candidate)
                entry = _entry(field_name, value, candidate, MatchStrategy.SUBSTRING_ATTRIBUTE, monetary)
                if entry is not None:
                    return entry

    # 3. option matching over the remaining selects
    for candidate in visible:
        if candidate.is_select and candidate not in tried:
            entry = _entry(field_name, value, candidate, MatchStrategy.OPTION_EXACT, monetary)
            if entry is not None:
                return entry

    logger.debug("no control matched field %s", field_name)
    return None


def group_candidates(
    field_names: Iterable[str], candidates: Sequence[FieldCandidate]
) -> dict[str, list[FieldCandidate]]:
    """Scope a page's enumerated controls to per-field candidate lists.

    A control belongs to a field when one of the field's keywords occurs in
    its attributes. Controls may appear under several fields; the fill pass
    decides which one claims it.
    """
    checked = _check_candidates(candidates)
    grouped: dict[str, list[FieldCandidate]] = {}
    for field_name in field_names:
        canonical = canonical_field_name(field_name)
        keywords = field_keywords(field_name)
        grouped[field_name] = [
            c
            for c in checked
            if not _excluded(canonical, c)
            and any(k in text for text in c.attribute_texts() for k in keywords)
        ]
    return grouped
