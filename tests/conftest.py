"""Test configuration for the markdown-merge service."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Generator

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from markdown_merge.config import reset_settings_cache  # noqa: E402
from markdown_merge.observability import metrics_registry  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Provide isolated configuration for each test."""

    for name in list(os.environ):
        if name.startswith("MARKDOWN_MERGE_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MARKDOWN_MERGE_MAX_DOCUMENT_BYTES", str(4096))
    reset_settings_cache()
    metrics_registry.reset()
    yield
    reset_settings_cache()
    metrics_registry.reset()


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    """Return a test client for the FastAPI application."""

    from markdown_merge.main import app

    with TestClient(app) as test_client:
        yield test_client
