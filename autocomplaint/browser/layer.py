"""Browser Layer — Playwright adapter for the order page and the grievance portal.

The layer has no decision-making authority. It scrapes page text, describes
form controls as ``FieldCandidate`` objects, and applies the values the fill
orchestrator chose. Failures while applying a value surface as
``AdapterError`` so the orchestrator can isolate them per field.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from playwright.async_api import Browser, BrowserContext, Page, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from autocomplaint.config.settings import BrowserConfig, FillConfig
from autocomplaint.form.models import FieldCandidate, FillPlanEntry, SelectOption, TagKind
from autocomplaint.pipeline.errors import AdapterError
from autocomplaint.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

REF_ATTRIBUTE = "data-autocomplaint-ref"

# Nodes that never hold order details.
NOISE_SELECTORS = [
    "script",
    "style",
    "noscript",
    "nav",
    "header",
    "footer",
    "aside",
    "iframe",
    "[role=navigation]",
    "[role=banner]",
    "[class*=advert]",
    "[class*=cookie]",
    "[id*=ad-]",
]

_SCRAPE_JS = """(noise) => {
    const clone = document.body ? document.body.cloneNode(true) : null;
    if (!clone) return {text: '', headings: []};
    clone.querySelectorAll(noise.join(',')).forEach(el => el.remove());
    const headings = Array.from(document.querySelectorAll('h1, h2, h3'))
        .filter(el => el.offsetParent !== null)
        .map(el => el.innerText.trim())
        .filter(t => t.length > 0);
    return {text: clone.innerText || clone.textContent || '', headings};
}"""

_ENUMERATE_JS = """(refAttr) => {
    const controls = document.querySelectorAll(
        'input:not([type=hidden]):not([type=submit]):not([type=button]):not([type=checkbox]):not([type=radio]), select, textarea'
    );
    const labelFor = (el) => {
        if (el.labels && el.labels.length) return el.labels[0].innerText.trim();
        const aria = el.getAttribute('aria-label');
        if (aria) return aria.trim();
        const wrapper = el.closest('label');
        return wrapper ? wrapper.innerText.trim() : '';
    };
    return Array.from(controls).map((el, index) => {
        el.setAttribute(refAttr, String(index));
        const tag = el.tagName.toLowerCase();
        return {
            ref: String(index),
            name: el.getAttribute('name') || '',
            id: el.id || '',
            placeholder: el.getAttribute('placeholder') || '',
            label: labelFor(el),
            tag: tag === 'select' ? 'select' : (tag === 'textarea' ? 'textarea' : 'text_input'),
            visible: el.offsetParent !== null && !el.disabled,
            options: tag === 'select'
                ? Array.from(el.options).map(o => ({value: o.value, text: o.text}))
                : [],
        };
    });
}"""

# Empty visible text box after the given control in document order.
_OVERFLOW_JS = """([refAttr, ref]) => {
    const anchor = document.querySelector(`[${refAttr}="${ref}"]`);
    if (!anchor) return null;
    const boxes = document.querySelectorAll('input[type=text], input:not([type]), textarea');
    for (const box of boxes) {
        const after = anchor.compareDocumentPosition(box) & Node.DOCUMENT_POSITION_FOLLOWING;
        if (after && box.offsetParent !== null && !box.value) {
            if (!box.hasAttribute(refAttr)) box.setAttribute(refAttr, 'overflow-' + ref);
            return box.getAttribute(refAttr);
        }
    }
    return null;
}"""

INPUT_EVENTS = ("input", "change", "blur")


@dataclass
class ScrapedPage:
    """Visible text of a page plus its heading texts."""

    url: str
    text: str
    headings: list[str] = field(default_factory=list)


def ref_selector(ref: str) -> str:
    return f'[{REF_ATTRIBUTE}="{ref}"]'


class BrowserLayer:
    """Playwright-based DOM adapter.

    Contract:
    - ``scrape`` and ``enumerate_candidates`` never modify form values
    - ``apply`` writes exactly one control (two for the "Other" fallback) and
      fires input/change/blur so the portal's validation reacts
    - ``apply`` raises ``AdapterError``; every other failure mode is a result
    """

    def __init__(
        self,
        config: BrowserConfig | None = None,
        fill_config: FillConfig | None = None,
        page: Page | None = None,
    ) -> None:
        self._config = config or BrowserConfig()
        self._fill_config = fill_config or FillConfig()
        self._playwright: Any = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = page

    @property
    def page(self) -> Page | None:
        return self._page

    async def start(self) -> None:
        """Launch browser and create an isolated context. A supplied page is used as is."""
        if self._page is not None:
            return
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self._config.headless,
        )
        self._context = await self._browser.new_context(
            viewport={
                "width": self._config.viewport_width,
                "height": self._config.viewport_height,
            },
            user_agent=self._config.user_agent,
            locale=self._config.locale,
        )
        self._page = await self._context.new_page()

    async def stop(self) -> None:
        """Clean up browser resources."""
        try:
            if self._context:
                await self._context.close()
            if self._browser:
                await self._browser.close()
            if self._playwright:
                await self._playwright.stop()
        except PlaywrightError as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.BROWSER_CLEANUP_FAILED,
                message=str(exc),
                suppressed=True,
            )
        finally:
            self._context = None
            self._browser = None
            self._playwright = None
            self._page = None

    def _require_page(self) -> Page:
        if self._page is None:
            raise AdapterError("Browser not started")
        return self._page

    async def navigate(self, url: str, timeout_ms: int = 30000) -> bool:
        """Navigate to a URL and wait for the DOM to load."""
        page = self._require_page()
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            return True
        except PlaywrightError as exc:
            logger.warning("navigation to %s failed: %s", url, exc)
            return False

    async def scrape(self) -> ScrapedPage:
        """Visible main-content text with navigation, ads and scripts removed."""
        page = self._require_page()
        try:
            payload = await page.evaluate(_SCRAPE_JS, NOISE_SELECTORS)
        except PlaywrightError as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.PAGE_SCRAPE_FAILED,
                message=str(exc),
                suppressed=True,
                page_key=page.url,
            )
            return ScrapedPage(url=page.url, text="")
        return ScrapedPage(
            url=page.url,
            text=str(payload.get("text") or ""),
            headings=[str(h) for h in payload.get("headings") or []],
        )

    async def enumerate_candidates(self) -> list[FieldCandidate]:
        """Describe every fillable control, tagging each with a stable ref."""
        page = self._require_page()
        try:
            raw = await page.evaluate(_ENUMERATE_JS, REF_ATTRIBUTE)
        except PlaywrightError as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.PAGE_SCRAPE_FAILED,
                message=str(exc),
                suppressed=True,
                page_key=page.url,
            )
            return []
        candidates = [
            FieldCandidate(
                element_ref=item["ref"],
                name=item.get("name", ""),
                id=item.get("id", ""),
                placeholder=item.get("placeholder", ""),
                associated_label_text=item.get("label", ""),
                tag_kind=TagKind(item.get("tag", "text_input")),
                is_visible=bool(item.get("visible", True)),
                options=tuple(
                    SelectOption(value=o["value"], display_text=o["text"])
                    for o in item.get("options", [])
                ),
            )
            for item in raw
        ]
        logger.debug("enumerated %d form controls on %s", len(candidates), page.url)
        return candidates

    async def _dispatch_events(self, selector: str) -> None:
        page = self._require_page()
        for event in INPUT_EVENTS:
            await page.dispatch_event(selector, event)

    async def apply(self, entry: FillPlanEntry) -> None:
        """Write the planned value into its control.

        Raises:
            AdapterError: if the control cannot be written.
        """
        page = self._require_page()
        selector = ref_selector(str(entry.candidate.element_ref))
        timeout = self._fill_config.element_timeout_ms
        try:
            if entry.matched_option_value is not None:
                await page.select_option(selector, value=entry.matched_option_value, timeout=timeout)
            else:
                await page.fill(selector, entry.value, timeout=timeout)
            await self._dispatch_events(selector)
            if entry.overflow_text:
                await self._fill_overflow(entry)
        except PlaywrightError as exc:
            raise AdapterError(str(exc), field_name=entry.field_name) from exc

    async def _fill_overflow(self, entry: FillPlanEntry) -> None:
        """Second step of the "Other" fallback: the free-text box revealed after selection."""
        page = self._require_page()
        await page.wait_for_timeout(self._fill_config.overflow_wait_ms)
        ref = await page.evaluate(_OVERFLOW_JS, [REF_ATTRIBUTE, str(entry.candidate.element_ref)])
        if not ref:
            logger.debug("no overflow text box appeared for %s", entry.field_name)
            return
        selector = ref_selector(ref)
        await page.fill(selector, entry.overflow_text or "", timeout=self._fill_config.element_timeout_ms)
        await self._dispatch_events(selector)

    async def wait_for_element(self, selector: str, timeout_ms: int | None = None) -> bool:
        """Wait for a visible element. Resolves to ``False`` on timeout."""
        page = self._require_page()
        timeout = self._fill_config.element_timeout_ms if timeout_ms is None else timeout_ms
        try:
            await page.wait_for_selector(selector, state="visible", timeout=timeout)
            return True
        except PlaywrightTimeoutError:
            return False
