"""
Local key-value persistence backed by a single JSON file.

Best effort: read, parse and write failures are logged and callers get
defaults back. Nothing here raises on I/O problems.
"""

import json
import logging
import os
from typing import Any

logger = logging.getLogger(__name__)

PLAYER_KEY = "streetart-ctf-player"
CAPTURES_KEY = "streetart-ctf-captures"
DISCOVERIES_KEY = "streetart-ctf-discoveries"
MODE_KEY = "streetart-ctf-mode"
ACHIEVEMENTS_KEY = "streetart-ctf-achievements"

ALL_KEYS = (PLAYER_KEY, CAPTURES_KEY, DISCOVERIES_KEY, MODE_KEY, ACHIEVEMENTS_KEY)


class LocalStorage:
    def __init__(self, path: str):
        self.path = path
        self._data: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Could not read local storage %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring local storage %s: expected a JSON object", self.path)
            return {}
        return data

    def _flush(self) -> bool:
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            tmp_path = f"{self.path}.tmp"
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Could not write local storage %s: %s", self.path, e)
            return False

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> bool:
        """Store a JSON-serializable value. Returns False (and keeps the old value) on failure."""
        previous = self._data.get(key)
        had_key = key in self._data
        self._data[key] = value
        if self._flush():
            return True
        if had_key:
            self._data[key] = previous
        else:
            self._data.pop(key, None)
        return False

    def remove(self, key: str) -> bool:
        if key not in self._data:
            return True
        del self._data[key]
        return self._flush()

    def clear(self, keys=ALL_KEYS) -> bool:
        for key in keys:
            self._data.pop(key, None)
        return self._flush()

    def keys(self) -> list[str]:
        return list(self._data)
