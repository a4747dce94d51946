"""Form data models — target-form controls, fill plans and fill outcomes."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, computed_field


class TagKind(str, Enum):
    TEXT_INPUT = "text_input"
    SELECT = "select"
    TEXTAREA = "textarea"


class SelectOption(BaseModel):
    model_config = {"frozen": True}

    value: str
    display_text: str


class FieldCandidate(BaseModel):
    """One describable control on the target form.

    ``element_ref`` is opaque to the engine; the DOM adapter uses it to find
    the control again when applying a value.
    """

    model_config = {"frozen": True}

    element_ref: Any = None
    name: str = ""
    id: str = ""
    placeholder: str = ""
    associated_label_text: str = ""
    tag_kind: TagKind = TagKind.TEXT_INPUT
    is_visible: bool = True
    options: tuple[SelectOption, ...] = ()

    @property
    def is_select(self) -> bool:
        return self.tag_kind == TagKind.SELECT

    def attribute_texts(self) -> list[str]:
        """Lower-cased name, id, placeholder and label text, skipping blanks."""
        texts = [self.name, self.id, self.placeholder, self.associated_label_text]
        return [t.lower() for t in texts if t]

    def describe(self) -> str:
        return self.name or self.id or self.placeholder or self.associated_label_text or "<unnamed>"


class MatchStrategy(str, Enum):
    EXACT_ATTRIBUTE = "exact_attribute"
    SUBSTRING_ATTRIBUTE = "substring_attribute"
    OPTION_EXACT = "option_exact"
    OPTION_SUBSTRING = "option_substring"
    OPTION_RANGE = "option_range"
    OPTION_OTHER = "option_other"


class FillPlanEntry(BaseModel):
    """The control chosen for one logical field.

    ``overflow_text`` is set only for the two-step "Other" fallback: after the
    "Other" option is selected the value goes into the free-text box that the
    portal reveals next to it.
    """

    model_config = {"frozen": True}

    field_name: str
    value: str
    candidate: FieldCandidate
    match_strategy: MatchStrategy
    matched_option_value: str | None = None
    overflow_text: str | None = None


class FillPlan(BaseModel):
    """Logical field name -> chosen control; fields without a match are listed separately."""

    entries: dict[str, FillPlanEntry] = Field(default_factory=dict)
    unmatched: list[str] = Field(default_factory=list)


class FieldOutcome(BaseModel):
    model_config = {"frozen": True}

    success: bool
    reason: str | None = None
    applied_value: str | None = None


class FillOutcome(BaseModel):
    """Per-field result of one fill pass."""

    model_config = {"frozen": True}

    fields: dict[str, FieldOutcome] = Field(default_factory=dict)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def attempted_count(self) -> int:
        return len(self.fields)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def filled_count(self) -> int:
        return sum(1 for outcome in self.fields.values() if outcome.success)

    def failures(self) -> dict[str, FieldOutcome]:
        return {name: o for name, o in self.fields.items() if not o.success}

    def summary(self) -> str:
        return f"{self.filled_count} of {self.attempted_count} fields filled"
