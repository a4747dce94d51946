"""Record store — stashes an ``ExtractedRecord`` under a well-known key.

The store is best-effort: ``set`` reports failure with ``False`` instead of
raising, and ``get`` treats unreadable data as absent. A record written on the
order page is read back later on the grievance portal, possibly before the
write has landed, so readers can ``await wait_for(...)`` with a timeout
instead of polling.
"""

from __future__ import annotations

import asyncio
import logging
import re
import threading
from pathlib import Path
from typing import Sequence

from pydantic import ValidationError

from autocomplaint.pipeline.errors import InputError
from autocomplaint.pipeline.extraction import ExtractedRecord
from autocomplaint.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.\-]{1,128}$")


def _check_key(key: str) -> str:
    if not isinstance(key, str) or not _KEY_PATTERN.match(key):
        raise InputError(f"invalid storage key: {key!r}")
    return key


class RecordStore:
    """Base store: waiter bookkeeping shared by concrete backends."""

    def __init__(self) -> None:
        self._waiters_lock = threading.Lock()
        self._waiters: dict[str, list[tuple[asyncio.AbstractEventLoop, asyncio.Future]]] = {}

    # --- backend hooks ---

    def _read(self, key: str) -> ExtractedRecord | None:
        raise NotImplementedError

    def _write(self, key: str, record: ExtractedRecord) -> None:
        raise NotImplementedError

    # --- public API ---

    def get(self, key: str) -> ExtractedRecord | None:
        return self._read(_check_key(key))

    def get_first(self, keys: Sequence[str]) -> ExtractedRecord | None:
        """Return the record under the first key that has one."""
        for key in keys:
            record = self.get(key)
            if record is not None:
                return record
        return None

    def set(self, key: str, record: ExtractedRecord) -> bool:
        """Store ``record`` under ``key``. Returns ``False`` if the write failed."""
        _check_key(key)
        try:
            self._write(key, record)
        except OSError as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.STORAGE_WRITE_FAILED,
                message=str(exc),
                suppressed=True,
                details={"key": key},
            )
            return False
        self._notify(key, record)
        return True

    async def wait_for(
        self, keys: str | Sequence[str], timeout_s: float
    ) -> ExtractedRecord | None:
        """Wait up to ``timeout_s`` for a record under any of ``keys``.

        Returns ``None`` on timeout. Cancelling the awaiting task cancels the wait.
        """
        key_list = [keys] if isinstance(keys, str) else list(keys)
        for key in key_list:
            _check_key(key)

        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        with self._waiters_lock:
            for key in key_list:
                self._waiters.setdefault(key, []).append((loop, future))
        try:
            # Checked after registering so a concurrent set() is not missed.
            existing = self.get_first(key_list)
            if existing is not None:
                return existing
            try:
                return await asyncio.wait_for(future, timeout=timeout_s)
            except asyncio.TimeoutError:
                logger.debug("no record under %s after %.1fs", key_list, timeout_s)
                return None
        finally:
            with self._waiters_lock:
                for key in key_list:
                    waiters = self._waiters.get(key, [])
                    waiters[:] = [(lp, fut) for lp, fut in waiters if fut is not future]
                    if not waiters:
                        self._waiters.pop(key, None)

    def _notify(self, key: str, record: ExtractedRecord) -> None:
        with self._waiters_lock:
            waiters = list(self._waiters.get(key, []))
        for loop, future in waiters:
            loop.call_soon_threadsafe(_resolve, future, record)


def _resolve(future: asyncio.Future, record: ExtractedRecord) -> None:
    if not future.done():
        future.set_result(record)


class InMemoryRecordStore(RecordStore):
    """Process-local store (tests and single-process hosts)."""

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.Lock()
        self._payloads: dict[str, str] = {}

    def _read(self, key: str) -> ExtractedRecord | None:
        with self._lock:
            payload = self._payloads.get(key)
        if payload is None:
            return None
        return ExtractedRecord.from_storage_json(payload)

    def _write(self, key: str, record: ExtractedRecord) -> None:
        payload = record.to_storage_json()
        with self._lock:
            self._payloads[key] = payload

    def delete(self, key: str) -> None:
        with self._lock:
            self._payloads.pop(_check_key(key), None)


class JsonFileRecordStore(RecordStore):
    """One JSON file per key under ``data_dir``.

    Contract: writes are atomic. A reader sees either the previous record or
    the new one, never a partial file.
    """

    def __init__(self, data_dir: Path) -> None:
        super().__init__()
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def path_for(self, key: str) -> Path:
        return self._data_dir / f"{_check_key(key)}.json"

    def _read(self, key: str) -> ExtractedRecord | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return ExtractedRecord.from_storage_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError, ValueError) as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.STORAGE_READ_FAILED,
                message=str(exc),
                suppressed=True,
                details={"key": key, "path": str(path)},
            )
            return None

    def _write(self, key: str, record: ExtractedRecord) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)
        # Write to temp file then rename
        temp_path = path.with_suffix(".tmp")
        try:
            temp_path.write_text(record.to_storage_json(), encoding="utf-8")
            temp_path.replace(path)
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        if path.exists():
            path.unlink()
