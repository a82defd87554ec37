"""Settings file and the completion settings read from it."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mysqlit.shared.core.utils import CONFIG_DIR

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_DATABASES = frozenset({"information_schema", "mysql", "performance_schema", "sys"})
DEFAULT_SCHEMA_MAX_AGE_SECONDS = 300.0
DEFAULT_LOG_LEVEL = "WARNING"


def _resolve_settings_path() -> Path:
    override = os.environ.get("MYSQLIT_SETTINGS_PATH", "").strip()
    if override:
        return Path(override).expanduser()
    return CONFIG_DIR / "settings.json"


class SettingsStore:
    """Settings kept as one JSON object, ~/.mysqlit/settings.json by default.

    A missing, unreadable or non-object file loads as ``{}`` so the client
    always starts. Saves replace the file atomically with mode 0600.
    """

    def __init__(self, file_path: Path | None = None) -> None:
        self._file_path = file_path or _resolve_settings_path()

    @property
    def file_path(self) -> Path:
        return self._file_path

    def exists(self) -> bool:
        return self._file_path.exists()

    def load_all(self) -> dict[str, Any]:
        """Load all settings.

        Returns:
            Dictionary of settings, or empty dict if none exist.
        """
        try:
            data = json.loads(self._file_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", self._file_path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def save_all(self, settings: dict[str, Any]) -> None:
        """Save all settings, replacing existing."""
        directory = self._file_path.parent
        directory.mkdir(mode=0o700, parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".settings-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(settings, f, indent=2)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self._file_path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        """Get a specific setting, or ``default`` if it is not set."""
        return self.load_all().get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a specific setting."""
        settings = self.load_all()
        settings[key] = value
        self.save_all(settings)


@dataclass(frozen=True)
class CompletionSettings:
    """Tunables for the schema cache and completion logging."""

    system_databases: frozenset[str] = DEFAULT_SYSTEM_DATABASES
    schema_max_age_seconds: float | None = DEFAULT_SCHEMA_MAX_AGE_SECONDS
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CompletionSettings:
        """Build settings from a raw settings dict, ignoring invalid values."""
        system_databases = cls.system_databases
        raw_dbs = data.get("system_databases")
        if isinstance(raw_dbs, list) and all(isinstance(d, str) for d in raw_dbs):
            system_databases = frozenset(raw_dbs)
        elif raw_dbs is not None:
            logger.warning("Ignoring invalid system_databases setting: %r", raw_dbs)

        max_age = cls.schema_max_age_seconds
        if "schema_max_age_seconds" in data:
            raw_age = data["schema_max_age_seconds"]
            if raw_age is None:
                max_age = None
            elif isinstance(raw_age, (int, float)) and not isinstance(raw_age, bool) and raw_age >= 0:
                max_age = float(raw_age)
            else:
                logger.warning("Ignoring invalid schema_max_age_seconds setting: %r", raw_age)

        log_level = cls.log_level
        raw_level = data.get("log_level")
        if isinstance(raw_level, str) and isinstance(logging.getLevelName(raw_level.strip().upper()), int):
            log_level = raw_level.strip().upper()
        elif raw_level is not None:
            logger.warning("Ignoring invalid log_level setting: %r", raw_level)

        return cls(
            system_databases=system_databases,
            schema_max_age_seconds=max_age,
            log_level=log_level,
        )


def load_completion_settings(store: SettingsStore | None = None) -> CompletionSettings:
    """Load completion settings from the settings file (defaults when absent)."""
    store = store or SettingsStore()
    return CompletionSettings.from_dict(store.load_all())
