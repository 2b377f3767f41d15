"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from postier.services.settings import Settings, SettingsStore


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")

    assert store.load() == Settings()


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    original = Settings(
        request_timeout=12.5,
        follow_redirects=False,
        verify_tls=False,
        default_headers={"X-Team": "qa"},
        debug_logging=True,
    )

    written = SettingsStore(path).save(original)
    reloaded = SettingsStore(path).load()

    assert written == path
    assert reloaded == original
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1
    assert not path.with_suffix(".tmp").exists()


def test_load_ignores_unknown_and_fixed_fields(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps({"request_timeout": 5, "request_file_extension": ".json", "theme": "dark"}),
        encoding="utf-8",
    )

    loaded = SettingsStore(path).load()

    assert loaded.request_timeout == 5
    assert loaded.request_file_extension == ".postier"


def test_load_discards_non_object_default_headers(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"default_headers": ["nope"], "verify_tls": False}), encoding="utf-8")

    loaded = SettingsStore(path).load()

    assert loaded.default_headers == {}
    assert loaded.verify_tls is False


def test_load_falls_back_to_defaults_on_invalid_json(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    with caplog.at_level("WARNING"):
        loaded = SettingsStore(path).load()

    assert loaded == Settings()
    assert "not valid JSON" in caplog.text


def test_cli_overrides_apply_before_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    SettingsStore(path).save(Settings(request_timeout=10.0))
    monkeypatch.setenv("POSTIER_REQUEST_TIMEOUT", "45")

    loaded = SettingsStore(path).load(overrides={"request_timeout": 20.0, "follow_redirects": False})

    assert loaded.request_timeout == pytest.approx(45.0)
    assert loaded.follow_redirects is False


def test_overrides_cannot_change_request_file_extension(tmp_path: Path) -> None:
    loaded = SettingsStore(tmp_path / "settings.json").load(overrides={"request_file_extension": ".txt"})

    assert loaded.request_file_extension == ".postier"


def test_bool_env_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("POSTIER_DEBUG_LOGGING", "yes")
    monkeypatch.setenv("POSTIER_VERIFY_TLS", "0")

    loaded = SettingsStore(tmp_path / "settings.json").load()

    assert loaded.debug_logging is True
    assert loaded.verify_tls is False


def test_invalid_float_env_override_is_ignored(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("POSTIER_REQUEST_TIMEOUT", "soon")

    loaded = SettingsStore(tmp_path / "settings.json").load()

    assert loaded.request_timeout == pytest.approx(30.0)
