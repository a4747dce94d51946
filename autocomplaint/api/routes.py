"""REST API routes for the AutoComplaint engine.

Exposes the pure engine over HTTP for hosts that cannot embed Python:
- classifying page text
- extracting an order record from page text
- planning a form fill from a record and a form description
"""

from __future__ import annotations

import hashlib
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, ValidationError

from autocomplaint.api.auth import require_api_auth
from autocomplaint.config.settings import AutoComplaintConfig
from autocomplaint.form.filler import FillOrchestrator
from autocomplaint.form.mapper import group_candidates
from autocomplaint.form.models import FieldCandidate
from autocomplaint.pipeline.classifier import ClassificationResult, ClassifierMode
from autocomplaint.pipeline.context import EngineContext
from autocomplaint.pipeline.errors import InputError
from autocomplaint.pipeline.extraction import RECORD_FIELDS, ExtractedRecord

router = APIRouter()

_config = AutoComplaintConfig()
_context = EngineContext(_config)
_filler = FillOrchestrator(_config.fill)


def _page_key(source_url: str | None, text: str) -> str:
    """Cache key: the page URL, or a digest of the text when no URL is given."""
    if source_url:
        return source_url
    return "sha256:" + hashlib.sha256(text.encode("utf-8")).hexdigest()


# --- Request/Response Models ---


class ClassifyRequest(BaseModel):
    text: str
    source_url: str | None = None
    mode: ClassifierMode = ClassifierMode.INFORMATIONAL


class ExtractRequest(BaseModel):
    text: str
    source_url: str | None = None
    headings: list[str] = Field(default_factory=list)


class FillPlanRequest(BaseModel):
    """A stored record (camelCase JSON) plus the target form's controls.

    ``candidates_by_field`` may be omitted; the flat ``candidates`` list is
    then grouped per field by attribute keywords.
    """

    record: dict[str, Any]
    candidates: list[FieldCandidate] = Field(default_factory=list)
    candidates_by_field: dict[str, list[FieldCandidate]] | None = None


class PlannedField(BaseModel):
    field_name: str
    value: str
    control: str
    match_strategy: str
    matched_option_value: str | None = None
    overflow_text: str | None = None


class FillPlanResponse(BaseModel):
    entries: list[PlannedField]
    unmatched: list[str]
    summary: str


# --- Endpoints ---


@router.post("/classify", response_model=ClassificationResult)
async def classify_page(
    request: ClassifyRequest, _: str = Depends(require_api_auth)
) -> ClassificationResult:
    """Score page text as an order page."""
    try:
        return _context.classify(_page_key(request.source_url, request.text), request.text, request.mode)
    except InputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.post("/extract")
async def extract_record(
    request: ExtractRequest, _: str = Depends(require_api_auth)
) -> dict[str, Any]:
    """Extract an order record. The response uses the storage field names."""
    try:
        record = _context.extract(
            _page_key(request.source_url, request.text), request.text, headings=request.headings
        )
    except InputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return record.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.post("/fill-plan", response_model=FillPlanResponse)
async def plan_fill(
    request: FillPlanRequest, _: str = Depends(require_api_auth)
) -> FillPlanResponse:
    """Plan a fill pass without touching any DOM."""
    try:
        record = ExtractedRecord.model_validate(request.record)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid record: {exc.errors()}") from exc

    by_field = request.candidates_by_field
    if by_field is None:
        by_field = group_candidates(RECORD_FIELDS, request.candidates)

    plan = _filler.plan(record, by_field)
    outcome = _filler.preview(plan)
    entries = [
        PlannedField(
            field_name=name,
            value=entry.value,
            control=entry.candidate.describe(),
            match_strategy=entry.match_strategy.value,
            matched_option_value=entry.matched_option_value,
            overflow_text=entry.overflow_text,
        )
        for name, entry in plan.entries.items()
    ]
    return FillPlanResponse(entries=entries, unmatched=plan.unmatched, summary=outcome.summary())
