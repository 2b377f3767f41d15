"""Settings dataclass and its JSON persistence."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from ..editor.request_model import REQUEST_FILE_EXTENSION

__all__ = ["Settings", "SettingsStore", "SETTINGS_DIR"]

LOGGER = logging.getLogger(__name__)
SETTINGS_DIR = Path.home() / ".postier"
_DEFAULT_SETTINGS_PATH = SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "POSTIER_DEBUG_LOGGING": "debug_logging",
    "POSTIER_FOLLOW_REDIRECTS": "follow_redirects",
    "POSTIER_VERIFY_TLS": "verify_tls",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "POSTIER_REQUEST_TIMEOUT": "request_timeout",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
# Not user-configurable; persisted only so the file documents the format.
_FIXED_FIELDS = frozenset({"request_file_extension"})


@dataclass(slots=True)
class Settings:
    """User-level preferences for the request runner and logging."""

    request_timeout: float = 30.0
    follow_redirects: bool = True
    verify_tls: bool = True
    default_headers: dict[str, str] = field(default_factory=dict)
    request_file_extension: str = REQUEST_FILE_EXTENSION
    debug_logging: bool = False


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, then apply CLI and environment overrides."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            data = _filter_fields(payload)
            headers = data.get("default_headers")
            if headers is not None and not isinstance(headers, Mapping):
                LOGGER.warning("Ignoring non-object default_headers in %s", self._path)
                data.pop("default_headers")
            elif headers is not None:
                data["default_headers"] = {str(key): str(value) for key, value in headers.items()}
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            LOGGER.debug("Settings loaded from %s", self._path)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")
        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Write ``settings`` atomically and return the path written."""

        payload: Dict[str, Any] = asdict(settings)
        payload["version"] = _SETTINGS_VERSION
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(data, Mapping):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return dict(data)

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {item.name for item in fields(Settings)} - _FIXED_FIELDS
        filtered = {key: value for key, value in overrides.items() if key in allowed and value is not None}
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(Settings)} - _FIXED_FIELDS
    return {key: value for key, value in payload.items() if key in allowed}
