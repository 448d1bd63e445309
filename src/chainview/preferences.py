"""Per-layer visibility/opacity preferences.

Preferences are keyed by layer id (``"{chain}.{subsystem}.{stream}"``).
A missing entry reads as :data:`DEFAULT_PREFERENCE`.
"""

from __future__ import annotations

import logging
import os
from enum import IntEnum
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

_logger = logging.getLogger(__name__)


class OpacityLevel(IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2


class LayerPreference(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    opacity: OpacityLevel = OpacityLevel.HIGH
    is_visible: bool = True


DEFAULT_PREFERENCE = LayerPreference()

_PREFERENCE_MAP = TypeAdapter(dict[str, LayerPreference])


class PreferenceStore(Protocol):
    def get(self, key: str) -> LayerPreference: ...

    def put(self, key: str, value: LayerPreference) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryPreferenceStore:
    """Process-local preference store."""

    def __init__(self, initial: dict[str, LayerPreference] | None = None) -> None:
        self._entries: dict[str, LayerPreference] = dict(initial or {})

    def get(self, key: str) -> LayerPreference:
        return self._entries.get(key, DEFAULT_PREFERENCE)

    def put(self, key: str, value: LayerPreference) -> None:
        self._entries[key] = value

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._entries)


class JsonPreferenceStore(MemoryPreferenceStore):
    """Preference store persisted to a JSON file.

    An unreadable or corrupt file yields an empty store; a failed write keeps
    the value in memory. Both cases are logged and never raised, so layer
    setup proceeds with defaults.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)
        super().__init__(self._load())

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, LayerPreference]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError:
            _logger.warning("Preference file unreadable, using defaults path=%s", self._path, exc_info=True)
            return {}
        try:
            return _PREFERENCE_MAP.validate_json(raw)
        except ValidationError:
            _logger.warning("Preference file corrupt, using defaults path=%s", self._path, exc_info=True)
            return {}

    def _flush(self) -> None:
        data = dict(sorted(self._entries.items()))
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(_PREFERENCE_MAP.dump_json(data, indent=2))
            tmp_path.replace(self._path)
        except OSError:
            _logger.warning("Preference file write failed, keeping in memory path=%s", self._path, exc_info=True)

    def put(self, key: str, value: LayerPreference) -> None:
        super().put(key, value)
        self._flush()

    def delete(self, key: str) -> None:
        super().delete(key)
        self._flush()
