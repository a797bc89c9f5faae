"""
Session context storage.

Separates persistence from domain logic for testability. The engine only
assumes a string key-value store; SessionContextStore layers the
SessionContext lifecycle (create, load, save, clear) on top of it.
"""

import logging
from pathlib import Path
from typing import Protocol, runtime_checkable
from urllib.parse import quote, unquote

from pydantic import ValidationError

from .schema import SessionContext

logger = logging.getLogger(__name__)

SESSION_CONTEXT_KEY = "sidequest_session_context_"


@runtime_checkable
class KeyValueStore(Protocol):
    """
    Abstract string key-value storage.

    Implementations:
    - JsonFileKeyValueStore: one file per key (production)
    - MemoryKeyValueStore: in-memory dict (testing)
    """

    def get(self, key: str) -> str | None:
        """Return the stored value, or None if absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value, overwriting any previous one."""
        ...

    def remove(self, key: str) -> None:
        """Delete a key. Missing keys are ignored."""
        ...


class JsonFileKeyValueStore:
    """
    File-based key-value storage.

    Features:
    - One JSON file per key, named after the (URL-quoted) key
    - Automatic backup of the previous value on overwrite
    """

    def __init__(self, data_dir: Path | str = "sidequest_data"):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{quote(key, safe='')}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)

        # Backup previous save
        if path.exists():
            backup = path.with_suffix(".json.bak")
            backup.write_text(path.read_text(encoding="utf-8"), encoding="utf-8")

        path.write_text(value, encoding="utf-8")

    def remove(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    def keys(self, prefix: str = "") -> list[str]:
        """List stored keys, newest first."""
        files = sorted(
            self.data_dir.glob("*.json"),
            key=lambda f: f.stat().st_mtime,
            reverse=True,
        )
        found = [unquote(f.stem) for f in files if not f.name.startswith(".")]
        return [k for k in found if k.startswith(prefix)]


class MemoryKeyValueStore:
    """
    In-memory key-value storage for testing.

    No file I/O - all data lives in memory.
    """

    def __init__(self):
        self.data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return [k for k in self.data if k.startswith(prefix)]

    def clear(self) -> None:
        """Clear all data (test utility)."""
        self.data.clear()


class SessionContextStore:
    """
    CRUD over per-campaign SessionContext records.

    Never raises on missing keys or bad data:
    - load() returns None when nothing usable is stored
    - save() returns False when the backend refuses the write
    In-memory state stays authoritative when persistence fails.
    """

    def __init__(self, backend: KeyValueStore | Path | str | None = None):
        if backend is None:
            backend = MemoryKeyValueStore()
        elif isinstance(backend, (Path, str)):
            backend = JsonFileKeyValueStore(backend)
        self.backend = backend

    @staticmethod
    def key_for(campaign_id: str) -> str:
        return SESSION_CONTEXT_KEY + campaign_id

    def create(self, campaign_id: str) -> SessionContext:
        """Build a fresh context. Not persisted until save()."""
        return SessionContext(campaign_id=campaign_id)

    def load(self, campaign_id: str) -> SessionContext | None:
        """Load a context by campaign ID. Returns None if absent or unreadable."""
        try:
            raw = self.backend.get(self.key_for(campaign_id))
        except OSError as e:
            logger.warning(f"Failed to read session context {campaign_id}: {e}")
            return None

        if raw is None:
            return None

        try:
            return SessionContext.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                f"Discarding malformed session context {campaign_id}: "
                f"{e.error_count()} error(s)"
            )
            return None

    def save(self, context: SessionContext) -> bool:
        """Persist a context, overwriting any previous one. Returns True on success."""
        try:
            self.backend.set(self.key_for(context.campaign_id), context.model_dump_json())
            return True
        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"Session context {context.campaign_id} not persisted: {e}")
            return False

    def clear(self, campaign_id: str) -> None:
        """Remove the persisted context. In-memory copies are unaffected."""
        try:
            self.backend.remove(self.key_for(campaign_id))
        except OSError as e:
            logger.warning(f"Failed to clear session context {campaign_id}: {e}")

    def exists(self, campaign_id: str) -> bool:
        """Check if a context is persisted for this campaign."""
        try:
            return self.backend.get(self.key_for(campaign_id)) is not None
        except OSError:
            return False

    def list_campaigns(self) -> list[str]:
        """Campaign IDs with a stored context, when the backend can enumerate keys."""
        keys = getattr(self.backend, "keys", None)
        if keys is None:
            return []
        return [k[len(SESSION_CONTEXT_KEY):] for k in keys(SESSION_CONTEXT_KEY)]
