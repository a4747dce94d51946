"""Structured error telemetry helpers."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Canonical error codes for operational telemetry."""

    ADAPTER_APPLY_FAILED = "ADAPTER_APPLY_FAILED"
    STORAGE_WRITE_FAILED = "STORAGE_WRITE_FAILED"
    STORAGE_READ_FAILED = "STORAGE_READ_FAILED"
    PAGE_SCRAPE_FAILED = "PAGE_SCRAPE_FAILED"
    BROWSER_CLEANUP_FAILED = "BROWSER_CLEANUP_FAILED"


def emit_structured_error(
    logger: logging.Logger,
    *,
    code: ErrorCode,
    message: str,
    suppressed: bool,
    field_name: str | None = None,
    page_key: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a structured telemetry event via logging."""
    logger.error(
        "autocomplaint_error",
        extra={
            "error_code": code,
            "error_message": message,
            "suppressed": suppressed,
            "field_name": field_name,
            "page_key": page_key,
            "details": details or {},
        },
    )
