"""Local key-value storage and the persisted API key."""

import os
import json
import secrets
import string
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union
import structlog


logger = structlog.get_logger()


API_KEY_STORAGE_KEY = "nexus_api_key"
BASE36_ALPHABET = string.digits + string.ascii_uppercase


def to_base36(value: int) -> str:
    """Encode a non-negative integer in upper-case base 36."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_api_key() -> str:
    """Generate a key of the form NEXUS-<random>-<timestamp>."""
    random_part = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(9))
    time_part = to_base36(int(time.time() * 1000))
    return f"NEXUS-{random_part}-{time_part}"


class KeyValueStore:
    """A flat string-keyed JSON file, written atomically."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Unreadable key-value store, ignoring", path=str(self.path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def _atomic_write(self, data: Dict[str, Any]) -> None:
        """Atomically write data to file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Write to temporary file first
        with tempfile.NamedTemporaryFile(
            mode="w", dir=self.path.parent, delete=False, suffix=".tmp"
        ) as tmp_file:
            json.dump(data, tmp_file, indent=2, ensure_ascii=False)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
            tmp_path = tmp_file.name

        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._atomic_write(data)


class ApiKeyStore:
    """Reads and regenerates the single persisted API key."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def load(self) -> str:
        """Return the stored key, or an empty string if none was generated."""
        return self.store.get(API_KEY_STORAGE_KEY) or ""

    def regenerate(self) -> str:
        """Generate a new key, persist it and return it."""
        key = generate_api_key()
        self.store.set(API_KEY_STORAGE_KEY, key)
        logger.info("Generated new API key", path=str(self.store.path))
        return key
