"""
Unit tests for the file content loader.

The loader must never raise: missing blobs, storage outages and timeouts all
come back as LoadedFile(load_succeeded=False).
"""
import time

import pytest

from flowbot.services.assistant.file_loader import (
    TRUNCATION_MARKER,
    FileContentLoader,
    decode_text,
    truncate_text,
)
from fakes import FakeStorage


@pytest.mark.asyncio
async def test_no_file_reference_is_vacuous_success():
    storage = FakeStorage()
    loader = FileContentLoader(storage, max_chars=100)

    loaded = await loader.load(None)

    assert loaded.load_succeeded
    assert loaded.raw_text == ""
    assert not loaded.requested
    assert storage.calls == []


@pytest.mark.asyncio
async def test_small_file_is_loaded_verbatim():
    storage = FakeStorage({"owner1/notes.txt": b"hello world"})
    loader = FileContentLoader(storage, max_chars=100)

    loaded = await loader.load("owner1/notes.txt")

    assert loaded.load_succeeded
    assert loaded.raw_text == "hello world"
    assert not loaded.truncated
    assert loaded.file_name == "notes.txt"
    assert loaded.has_content


@pytest.mark.asyncio
async def test_large_file_is_truncated_with_marker():
    storage = FakeStorage({"owner1/report.csv": b"x" * 500})
    loader = FileContentLoader(storage, max_chars=100)

    loaded = await loader.load("owner1/report.csv")

    assert loaded.truncated
    assert loaded.raw_text == "x" * 100 + TRUNCATION_MARKER


@pytest.mark.asyncio
async def test_missing_blob_is_soft_failure():
    loader = FileContentLoader(FakeStorage(), max_chars=100)

    loaded = await loader.load("owner1/missing.pdf")

    assert not loaded.load_succeeded
    assert loaded.raw_text == ""
    assert loaded.requested
    assert not loaded.has_content


@pytest.mark.asyncio
async def test_unconfigured_storage_is_soft_failure():
    loader = FileContentLoader(None, max_chars=100)

    loaded = await loader.load("owner1/report.csv")

    assert not loaded.load_succeeded


@pytest.mark.asyncio
async def test_slow_storage_times_out():
    class SlowStorage:
        def download(self, path):
            time.sleep(0.5)
            return b"late"

    loader = FileContentLoader(SlowStorage(), max_chars=100, timeout_seconds=0.05)

    loaded = await loader.load("owner1/slow.txt")

    assert not loaded.load_succeeded


def test_decode_text_replaces_invalid_bytes():
    text = decode_text(b"caf\xc3\xa9 \xff")
    assert text.startswith("café ")
    assert "\ufffd" in text


def test_decode_text_strips_bom():
    assert decode_text("\ufeffhello".encode("utf-8")) == "hello"


def test_truncate_text_bound_is_inclusive():
    assert truncate_text("abcd", 4) == ("abcd", False)
    assert truncate_text("abcde", 4) == ("abcd" + TRUNCATION_MARKER, True)
