"""Fill orchestrator — turns an extracted record into per-field fill outcomes.

The orchestrator walks every logical field that has a value, asks the mapper
for a control, and hands the chosen entry to an applier (the DOM adapter).
It never aborts early: an ``AdapterError`` on one field is recorded in that
field's outcome and the pass moves on. Given the same record and the same
candidates, a pass always produces the same plan and the same outcome.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Mapping, Sequence

from autocomplaint.config.settings import FillConfig
from autocomplaint.form.mapper import canonical_field_name, map_field
from autocomplaint.form.models import FieldCandidate, FieldOutcome, FillOutcome, FillPlan, FillPlanEntry
from autocomplaint.pipeline.errors import AdapterError, InputError
from autocomplaint.pipeline.extraction import RECORD_FIELDS, ExtractedRecord
from autocomplaint.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

Applier = Callable[[FillPlanEntry], None]
AsyncApplier = Callable[[FillPlanEntry], Awaitable[None]]

REASON_NO_MATCH = "no matching control"


class FillOrchestrator:
    """Plans and applies one fill pass at a time."""

    def __init__(self, config: FillConfig | None = None) -> None:
        self.config = config or FillConfig()

    def plan(
        self,
        record: ExtractedRecord,
        candidates_by_field: Mapping[str, Sequence[FieldCandidate]],
    ) -> FillPlan:
        """Map every populated field of ``record`` to at most one control.

        Unless ``allow_candidate_reuse`` is set, a control chosen for one field
        is withheld from the fields after it.
        """
        if not isinstance(record, ExtractedRecord):
            raise InputError(f"record must be an ExtractedRecord, got {type(record).__name__}")
        if not isinstance(candidates_by_field, Mapping):
            raise InputError("candidates_by_field must be a mapping")

        by_field = {canonical_field_name(k): list(v) for k, v in candidates_by_field.items()}
        monetary = {canonical_field_name(f) for f in self.config.monetary_fields}
        plan = FillPlan()
        claimed: list[FieldCandidate] = []

        for field_name in RECORD_FIELDS:
            value = record.value_of(field_name)
            if not value:
                continue
            pool = by_field.get(field_name, [])
            if not self.config.allow_candidate_reuse:
                pool = [c for c in pool if c not in claimed]
            entry = map_field(field_name, value, pool, monetary=field_name in monetary)
            if entry is None:
                plan.unmatched.append(field_name)
                continue
            plan.entries[field_name] = entry
            claimed.append(entry.candidate)
        return plan

    def fill(
        self,
        record: ExtractedRecord,
        candidates_by_field: Mapping[str, Sequence[FieldCandidate]],
        applier: Applier | None = None,
    ) -> FillOutcome:
        """Run a fill pass synchronously.

        Without an ``applier`` the pass is a dry run: a field succeeds when a
        control was found for it.
        """
        plan = self.plan(record, candidates_by_field)
        if applier is None:
            return self.preview(plan)
        results: dict[str, FieldOutcome] = {}
        for field_name in RECORD_FIELDS:
            if field_name in plan.unmatched:
                results[field_name] = FieldOutcome(success=False, reason=REASON_NO_MATCH)
            elif field_name in plan.entries:
                entry = plan.entries[field_name]
                try:
                    applier(entry)
                except AdapterError as exc:
                    results[field_name] = self._adapter_failure(entry, exc)
                else:
                    results[field_name] = _success(entry)
        return self._finish(results)

    async def fill_async(
        self,
        record: ExtractedRecord,
        candidates_by_field: Mapping[str, Sequence[FieldCandidate]],
        applier: AsyncApplier,
    ) -> FillOutcome:
        """Run a fill pass against an asynchronous DOM adapter, one field at a time."""
        plan = self.plan(record, candidates_by_field)
        results: dict[str, FieldOutcome] = {}
        for field_name in RECORD_FIELDS:
            if field_name in plan.unmatched:
                results[field_name] = FieldOutcome(success=False, reason=REASON_NO_MATCH)
            elif field_name in plan.entries:
                entry = plan.entries[field_name]
                try:
                    await applier(entry)
                except AdapterError as exc:
                    results[field_name] = self._adapter_failure(entry, exc)
                else:
                    results[field_name] = _success(entry)
        return self._finish(results)

    def preview(self, plan: FillPlan) -> FillOutcome:
        """Outcome of ``plan`` if every planned control accepts its value."""
        results: dict[str, FieldOutcome] = {}
        for field_name in RECORD_FIELDS:
            if field_name in plan.unmatched:
                results[field_name] = FieldOutcome(success=False, reason=REASON_NO_MATCH)
            elif field_name in plan.entries:
                results[field_name] = _success(plan.entries[field_name])
        return self._finish(results)

    def _adapter_failure(self, entry: FillPlanEntry, exc: AdapterError) -> FieldOutcome:
        emit_structured_error(
            logger,
            code=ErrorCode.ADAPTER_APPLY_FAILED,
            message=str(exc),
            suppressed=True,
            field_name=entry.field_name,
            details={"control": entry.candidate.describe(), "strategy": entry.match_strategy.value},
        )
        return FieldOutcome(success=False, reason=f"adapter error: {exc}")

    @staticmethod
    def _finish(results: dict[str, FieldOutcome]) -> FillOutcome:
        outcome = FillOutcome(fields=results)
        logger.info(outcome.summary())
        return outcome


def _success(entry: FillPlanEntry) -> FieldOutcome:
    return FieldOutcome(
        success=True,
        applied_value=entry.matched_option_value if entry.matched_option_value is not None else entry.value,
    )
