"""Typer CLI entrypoint for AutoComplaint.

``autocomplaint extract URL`` reads an order page and stashes its record.
``autocomplaint fill URL`` fills a grievance portal from that record and
leaves the form for the user to review and submit.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated

import typer

from autocomplaint.config.settings import AutoComplaintConfig
from autocomplaint.form.models import FillOutcome
from autocomplaint.session.engine import ComplaintSession, ExtractReport

app = typer.Typer(help="AutoComplaint order extraction and grievance form fill", rich_markup_mode=None)

Headed = Annotated[bool, typer.Option("--headed", help="Show the browser window.")]


def _build_session(headed: bool) -> ComplaintSession:
    config = AutoComplaintConfig()
    logging.basicConfig(level=config.log_level.upper())
    if headed:
        config.browser.headless = False
    return ComplaintSession(config)


async def _extract(session: ComplaintSession, url: str) -> ExtractReport:
    await session.start()
    try:
        return await session.extract_order(url)
    finally:
        await session.close()


async def _fill(
    session: ComplaintSession, url: str, timeout_s: float | None, review: bool
) -> FillOutcome | None:
    await session.start()
    try:
        outcome = await session.fill_portal(url, timeout_s)
        if outcome is not None:
            _echo_outcome(outcome)
            if review:
                await asyncio.to_thread(
                    typer.prompt,
                    "Review the form in the browser, then press Enter to close",
                    default="",
                    show_default=False,
                )
        return outcome
    finally:
        await session.close()


def _echo_outcome(outcome: FillOutcome) -> None:
    typer.echo(f"INFO: {outcome.summary()}")
    for name, failure in outcome.failures().items():
        typer.echo(f"WARN: {name}: {failure.reason}")


@app.command("extract")
def extract_command(
    url: Annotated[str, typer.Argument(help="Order confirmation, invoice or receipt page.")],
    headed: Headed = False,
) -> None:
    """Extract order details from an order page and save them for ``fill``."""
    report = asyncio.run(_extract(_build_session(headed), url))
    if not report.classification.is_order_page:
        typer.echo(
            f"ERROR: not an order page (confidence {report.classification.confidence:.2f})"
        )
        raise typer.Exit(code=1)
    record = report.record
    if record is None or not record.extracted_fields:
        typer.echo("ERROR: no order details found on the page")
        raise typer.Exit(code=1)
    for name in record.extracted_fields:
        typer.echo(f"{name}: {record.value_of(name)}")
    if not report.stored:
        typer.echo("ERROR: order details could not be saved")
        raise typer.Exit(code=1)


@app.command("fill")
def fill_command(
    url: Annotated[str, typer.Argument(help="Grievance portal form page.")],
    timeout_s: Annotated[
        float | None, typer.Option("--timeout", help="Seconds to wait for a saved record.")
    ] = None,
    headed: Headed = False,
) -> None:
    """Fill a grievance portal form from the saved order details. The form is never submitted."""
    outcome = asyncio.run(_fill(_build_session(headed), url, timeout_s, review=headed))
    if outcome is None:
        typer.echo("ERROR: nothing extracted yet; run `autocomplaint extract` on an order page first")
        raise typer.Exit(code=1)
