"""Tests for the record stores and the timed record wait."""

import asyncio
import logging
import threading

import pytest

from autocomplaint.pipeline.errors import InputError
from autocomplaint.pipeline.extraction import ExtractedField, ExtractedRecord
from autocomplaint.pipeline.store import InMemoryRecordStore, JsonFileRecordStore

KEY = "autoComplaintOrder"


@pytest.fixture
def record():
    return ExtractedRecord(
        order_id=ExtractedField(value="ORD-123456", confidence=0.9, extraction_method="order-id-context"),
        price=ExtractedField(value="₹1,299", confidence=0.8),
        source_url="https://shop.example/orders/1",
    )


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryRecordStore()
    return JsonFileRecordStore(tmp_path / "records")


class TestRecordStore:
    def test_missing_key_is_absent(self, store):
        assert store.get(KEY) is None

    def test_round_trip(self, store, record):
        assert store.set(KEY, record)
        assert store.get(KEY) == record

    def test_overwrite(self, store, record):
        store.set(KEY, record)
        newer = ExtractedRecord(order_id=ExtractedField(value="ORD-999999"))
        store.set(KEY, newer)
        assert store.get(KEY).order_id.value == "ORD-999999"

    def test_get_first_uses_key_priority(self, store, record):
        store.set("autoComplaintOrderNER", record)
        assert store.get_first([KEY, "autoComplaintOrderNER"]) == record
        assert store.get_first([KEY]) is None

    def test_rejects_bad_keys(self, store, record):
        with pytest.raises(InputError):
            store.get("../escape")
        with pytest.raises(InputError):
            store.set("", record)


class TestJsonFileRecordStore:
    def test_file_written_without_temp_leftovers(self, tmp_path, record):
        store = JsonFileRecordStore(tmp_path)
        store.set(KEY, record)
        assert store.path_for(KEY).exists()
        assert not list(tmp_path.glob("*.tmp"))

    def test_corrupt_file_reads_as_absent(self, tmp_path, caplog):
        store = JsonFileRecordStore(tmp_path)
        store.path_for(KEY).write_text("{not json", encoding="utf-8")
        with caplog.at_level(logging.ERROR):
            assert store.get(KEY) is None
        assert caplog.records[0].error_code == "STORAGE_READ_FAILED"

    def test_write_failure_returns_false(self, tmp_path, record, caplog):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = JsonFileRecordStore(blocker)
        with caplog.at_level(logging.ERROR):
            assert store.set(KEY, record) is False
        assert caplog.records[0].error_code == "STORAGE_WRITE_FAILED"
        assert caplog.records[0].suppressed is True

    def test_delete(self, tmp_path, record):
        store = JsonFileRecordStore(tmp_path)
        store.set(KEY, record)
        store.delete(KEY)
        assert store.get(KEY) is None


class TestWaitFor:
    @pytest.mark.asyncio
    async def test_returns_existing_record_immediately(self, record):
        store = InMemoryRecordStore()
        store.set(KEY, record)
        assert await store.wait_for(KEY, timeout_s=0.01) == record

    @pytest.mark.asyncio
    async def test_resolves_when_record_arrives(self, record):
        store = InMemoryRecordStore()
        asyncio.get_running_loop().call_later(0.05, store.set, KEY, record)
        assert await store.wait_for(KEY, timeout_s=2.0) == record

    @pytest.mark.asyncio
    async def test_resolves_from_another_thread(self, record):
        store = InMemoryRecordStore()
        timer = threading.Timer(0.05, store.set, args=(KEY, record))
        timer.start()
        try:
            assert await store.wait_for(KEY, timeout_s=2.0) == record
        finally:
            timer.join()

    @pytest.mark.asyncio
    async def test_any_of_several_keys(self, record):
        store = InMemoryRecordStore()
        asyncio.get_running_loop().call_later(0.05, store.set, "autoComplaintOrderNER", record)
        result = await store.wait_for([KEY, "autoComplaintOrderNER"], timeout_s=2.0)
        assert result == record

    @pytest.mark.asyncio
    async def test_timeout_resolves_to_none(self):
        store = InMemoryRecordStore()
        assert await store.wait_for(KEY, timeout_s=0.05) is None
        assert store._waiters == {}

    @pytest.mark.asyncio
    async def test_cancellable(self):
        store = InMemoryRecordStore()
        task = asyncio.create_task(store.wait_for(KEY, timeout_s=10.0))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert store._waiters == {}
