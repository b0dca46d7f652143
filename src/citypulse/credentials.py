"""Remembered credential backed by a small key-value store."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Protocol

from loguru import logger

CREDENTIAL_SLOT = "gemini_api_key"


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Process-local store, used when nothing should touch the disk."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class JSONKeyValueStore:
    """
    A JSON file of string values.

    The whole file is rewritten on every change; it only ever holds a handful
    of preferences.
    """

    def __init__(self, file_path: str | Path) -> None:
        self.file_path = Path(file_path)
        self._lock = threading.RLock()
        self._values: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if not self.file_path.exists():
            return {}
        try:
            with open(self.file_path, encoding="utf-8") as f:
                loaded = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading preferences: {e}")
            return {}
        if not isinstance(loaded, dict):
            logger.error(f"Ignoring preferences file with unexpected shape: {self.file_path}")
            return {}
        return {str(key): value for key, value in loaded.items() if isinstance(value, str)}

    def _save(self) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.file_path, "w", encoding="utf-8") as f:
                json.dump(self._values, f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.error(f"Error saving preferences: {e}")

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value
            self._save()

    def remove(self, key: str) -> None:
        with self._lock:
            if self._values.pop(key, None) is not None:
                self._save()


class CredentialHolder:
    """Current credential plus the "remember on this machine" preference."""

    def __init__(self, store: KeyValueStore, *, slot: str = CREDENTIAL_SLOT, remember: bool = True) -> None:
        self._store = store
        self._slot = slot
        self._remember = remember
        self._value = ""

    @property
    def value(self) -> str:
        return self._value

    @property
    def remember(self) -> bool:
        return self._remember

    def load(self) -> str:
        """Read the remembered credential, keeping the current one if nothing is saved."""
        saved = self._store.get(self._slot)
        if saved:
            self._value = saved
        return self._value

    def update(self, value: str) -> None:
        self._value = value
        if self._remember:
            self._store.set(self._slot, value)

    def set_remember(self, remember: bool) -> None:
        self._remember = remember
        if not remember:
            self._store.remove(self._slot)
        elif self._value:
            self._store.set(self._slot, self._value)

    def forget(self) -> None:
        """Erase the remembered credential and clear the current one."""
        self._value = ""
        self._store.remove(self._slot)
