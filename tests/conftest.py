"""Shared fixtures for scanner bot tests."""
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from scanner_bot.config import Settings
from scanner_bot.core.models import ExtractedRecord


@pytest.fixture
def settings(tmp_path):
    """Settings with fast timings and temporary directories."""
    watch = tmp_path / "inbox"
    dest = tmp_path / "filed"
    watch.mkdir()
    dest.mkdir()
    return Settings(
        gemini_api_key="AIza-test-key-for-unit-tests",
        watch_directory=watch,
        destination_directory=dest,
        stability_threshold_seconds=0.05,
        stability_poll_interval=0.01,
        stability_max_wait=2.0,
        upload_poll_interval=0.01,
        upload_processing_timeout=1.0,
        request_timeout_seconds=2.0,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        retry_jitter_range=0.0,
    )


@pytest.fixture
def scan_file(settings) -> Path:
    """A finished scan sitting in the watch directory."""
    path = settings.watch_directory / "scan001.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe0" + b"JPEGDATA" * 64)
    return path


@pytest.fixture
def sample_record():
    return ExtractedRecord(date="2024-01-05", vendor="ACME Market", category="Grocery", total_amount=1200)


def make_asset(state="ACTIVE", name="files/abc123"):
    """Stand-in for a genai File handle."""
    return SimpleNamespace(
        name=name,
        uri=f"https://generativelanguage.googleapis.com/v1beta/{name}",
        mime_type="image/jpeg",
        state=SimpleNamespace(name=state),
    )


def make_response(text):
    """Stand-in for a GenerateContentResponse with one text part."""
    part = SimpleNamespace(text=text)
    candidate = SimpleNamespace(content=SimpleNamespace(parts=[part]))
    return SimpleNamespace(candidates=[candidate], text=text)


@pytest.fixture
def mock_genai_client():
    """Mock Gemini client exposing the async files/models surface."""
    client = MagicMock()
    client.aio = MagicMock()
    client.aio.files.upload = AsyncMock(return_value=make_asset())
    client.aio.files.get = AsyncMock(return_value=make_asset())
    client.aio.files.delete = AsyncMock(return_value=None)
    client.aio.models.generate_content = AsyncMock(
        return_value=make_response('{"date":"2024-01-05","vendor":"ACME","category":"Grocery","total_amount":1200}')
    )
    return client
