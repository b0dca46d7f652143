from __future__ import annotations

from pathlib import Path

import pytest

from citypulse.config import Settings, get_settings
from citypulse.types import DashboardQuery, clamp_limit


def test_defaults(tmp_path: Path) -> None:
    settings = Settings()

    assert settings.model == "gemini-2.5-flash"
    assert settings.base_url == "http://localhost:4000"
    assert settings.city == "taipei"
    assert settings.index == "traffic"
    assert settings.component_limit == 4
    assert settings.api_key is None
    assert settings.preferences_path == tmp_path / "home" / "preferences.json"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CITYPULSE_MODEL", "gemini-2.5-pro")
    monkeypatch.setenv("CITYPULSE_BASE_URL", "https://citydashboard.taipei")

    settings = Settings()

    assert settings.model == "gemini-2.5-pro"
    assert settings.base_url == "https://citydashboard.taipei"


@pytest.mark.parametrize(("raw", "expected"), [("40", 12), ("0", 1), ("-3", 1), ("7", 7), ("abc", 1)])
def test_component_limit_is_clamped(monkeypatch: pytest.MonkeyPatch, raw: str, expected: int) -> None:
    monkeypatch.setenv("CITYPULSE_COMPONENT_LIMIT", raw)

    assert Settings().component_limit == expected


def test_get_settings_ignores_none_overrides() -> None:
    settings = get_settings(model=None, city="metrotaipei", component_limit=99)

    assert settings.model == "gemini-2.5-flash"
    assert settings.city == "metrotaipei"
    assert settings.component_limit == 12


@pytest.mark.parametrize(("raw", "expected"), [(None, 1), ("", 1), (3, 3), (13, 12), ("2", 2)])
def test_clamp_limit(raw: object, expected: int) -> None:
    assert clamp_limit(raw) == expected


def test_query_create_clamps_limit() -> None:
    assert DashboardQuery.create("taipei", "traffic", 50) == DashboardQuery("taipei", "traffic", 12)
