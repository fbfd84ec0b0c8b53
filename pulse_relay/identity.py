"""Stable per-install device identifier."""

import json
import logging
import os
import tempfile
import threading
import uuid
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

DEVICE_ID_KEY = "device_id"


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStore:
    """In-process store, lost on restart."""

    def __init__(self, data: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(data or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore:
    """Flat string key-value store persisted as a JSON object on disk."""

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to read store '%s': %s. Treating as empty.", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Store '%s' is not a JSON object, ignoring contents", self.path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Write to a sibling temp file then rename so readers never see a partial file
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise


class IdentityStore:
    """Resolves the device identifier, creating and persisting it on first use."""

    def __init__(self, store: KeyValueStore, key: str = DEVICE_ID_KEY):
        self._store = store
        self._key = key
        self._device_id: str | None = None
        self._lock = threading.Lock()

    def get_or_create_device_id(self) -> str:
        """Return the device id, generating and persisting one if none exists yet."""
        if self._device_id is not None:
            return self._device_id

        with self._lock:
            if self._device_id is not None:
                return self._device_id

            device_id = self._store.get(self._key)
            if device_id:
                logger.debug("Loaded device id %s", device_id)
            else:
                device_id = str(uuid.uuid4()).upper()
                try:
                    self._store.set(self._key, device_id)
                    logger.info("Created device id %s", device_id)
                except OSError as e:
                    logger.warning("Could not persist device id: %s. It will change on restart.", e)

            self._device_id = device_id
            return device_id
