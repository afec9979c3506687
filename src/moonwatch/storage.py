"""Key-value blob stores and the stored API credential."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from moonwatch.config import API_KEY_LENGTH, DEMO_API_KEY

log = logging.getLogger(__name__)

CREDENTIAL_KEY = "moonApiKey"


class BlobStore(Protocol):
    """String-valued key-value storage (browser localStorage semantics)."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryBlobStore:
    """Process-local store. Used by tests and as a session-only fallback."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileBlobStore:
    """All keys kept in one JSON object on disk.

    Every write goes to a temporary file in the same directory and is moved into
    place with os.replace, so readers see either the old or the new file.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            log.warning("Unreadable blob file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            log.warning("Blob file %s is not a JSON object; ignoring it", self.path)
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def delete(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)


def is_valid_api_key(key: str) -> bool:
    """Accept the demo sentinel or a 50-character RapidAPI key."""
    key = key.strip()
    return key == DEMO_API_KEY or len(key) == API_KEY_LENGTH


class CredentialStore:
    """The API key persisted under a fixed blob key."""

    def __init__(self, blob_store: BlobStore, key: str = CREDENTIAL_KEY) -> None:
        self._blobs = blob_store
        self._key = key

    def get(self) -> str | None:
        value = self._blobs.get(self._key)
        return value or None

    def save(self, api_key: str) -> bool:
        """Persist api_key if it looks valid. Returns False without writing otherwise."""
        api_key = api_key.strip()
        if not is_valid_api_key(api_key):
            return False
        self._blobs.set(self._key, api_key)
        return True

    def clear(self) -> None:
        self._blobs.delete(self._key)
