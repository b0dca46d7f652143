from __future__ import annotations

from pathlib import Path

import pytest
from loguru import logger

from citypulse import logging_utils


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "CITYPULSE_API_KEY",
        "CITYPULSE_MODEL",
        "CITYPULSE_GENERATION_API_BASE",
        "CITYPULSE_BASE_URL",
        "CITYPULSE_CITY",
        "CITYPULSE_INDEX",
        "CITYPULSE_COMPONENT_LIMIT",
        "CITYPULSE_REMEMBER_CREDENTIAL",
        "CITYPULSE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CITYPULSE_HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def _reset_logging(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(logging_utils, "_CONFIGURED", None)
    yield
    logger.remove()
