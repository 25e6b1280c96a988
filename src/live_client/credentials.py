"""API key storage.

The key is read from (in order) an explicit value set at runtime, an optional
JSON file, and the configured default. Setting a key persists it to the file
when one is configured.
"""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class CredentialStore:
    """Get/set store for the live endpoint API key."""

    def __init__(self, default: str = "", path: Path | None = None) -> None:
        """Initialize credential store.

        Args:
            default: Key used when nothing has been stored
            path: Optional JSON file used to persist the key
        """
        self._path = path
        self._value = self._load() or default

    def get(self) -> str:
        """Return the current key (empty string when unset)."""
        return self._value

    def set(self, value: str) -> None:
        """Store a new key and persist it if a file is configured."""
        self._value = value.strip()
        if self._path is None:
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump({"api_key": self._value}, f)
        logger.info("API key saved", extra={"path": str(self._path)})

    def _load(self) -> str:
        if self._path is None or not self._path.exists():
            return ""

        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(
                "Failed to read stored API key",
                extra={"path": str(self._path), "error": str(e)},
            )
            return ""

        value = data.get("api_key", "") if isinstance(data, dict) else ""
        return value if isinstance(value, str) else ""
