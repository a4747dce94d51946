"""Complaint session — the two user-triggered commands.

``extract_order`` runs on an order page: scrape, gate on the classifier,
extract, stash the record. ``fill_portal`` runs on the grievance portal: wait
for a stashed record, enumerate the form, fill what can be filled. The form is
never submitted; the user reviews and submits it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from autocomplaint.browser.layer import BrowserLayer
from autocomplaint.config.settings import AutoComplaintConfig
from autocomplaint.form.filler import FillOrchestrator
from autocomplaint.form.mapper import group_candidates
from autocomplaint.form.models import FillOutcome
from autocomplaint.pipeline.classifier import ClassificationResult, ClassifierMode
from autocomplaint.pipeline.context import EngineContext
from autocomplaint.pipeline.extraction import RECORD_FIELDS, ExtractedRecord
from autocomplaint.pipeline.store import JsonFileRecordStore, RecordStore

logger = logging.getLogger(__name__)


@dataclass
class ExtractReport:
    """What ``extract_order`` did on one page."""

    url: str
    classification: ClassificationResult
    record: ExtractedRecord | None = None
    stored: bool = False


class ComplaintSession:
    """Owns the engine context, the record store and the browser adapter for one host session."""

    def __init__(
        self,
        config: AutoComplaintConfig | None = None,
        browser: BrowserLayer | None = None,
        store: RecordStore | None = None,
        context: EngineContext | None = None,
    ) -> None:
        self._config = config or AutoComplaintConfig()
        self._browser = browser or BrowserLayer(self._config.browser, self._config.fill)
        self._store = store or JsonFileRecordStore(self._config.storage.data_dir)
        self._context = context or EngineContext(self._config)
        self._filler = FillOrchestrator(self._config.fill)

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def context(self) -> EngineContext:
        return self._context

    async def start(self) -> None:
        await self._browser.start()

    async def extract_order(self, url: str | None = None) -> ExtractReport:
        """Scrape the current (or given) page and stash its record if it is an order page."""
        if url is not None:
            await self._browser.navigate(url)
        page = await self._browser.scrape()

        classification = self._context.classify(page.url, page.text, ClassifierMode.GATING)
        report = ExtractReport(url=page.url, classification=classification)
        if not classification.is_order_page:
            logger.info(
                "not an order page (confidence %.2f): %s", classification.confidence, page.url
            )
            return report

        record = self._context.extract(page.url, page.text, headings=page.headings)
        report.record = record
        if record.extracted_fields:
            report.stored = self._store.set(self._config.storage.record_key, record)
        logger.info(
            "extracted %d fields from %s (stored=%s)",
            len(record.extracted_fields),
            page.url,
            report.stored,
        )
        return report

    async def fill_portal(
        self, url: str | None = None, timeout_s: float | None = None
    ) -> FillOutcome | None:
        """Fill the current (or given) portal form from the stashed record.

        Returns ``None`` when no record arrives within the timeout.
        """
        timeout = self._config.storage.read_timeout_s if timeout_s is None else timeout_s
        record = await self._store.wait_for(self._config.storage.lookup_keys, timeout)
        if record is None:
            logger.info("nothing extracted yet; open an order page first")
            return None

        if url is not None:
            await self._browser.navigate(url)
        candidates = await self._browser.enumerate_candidates()
        by_field = group_candidates(RECORD_FIELDS, candidates)
        return await self._filler.fill_async(record, by_field, self._browser.apply)

    async def close(self) -> None:
        self._context.close()
        await self._browser.stop()
