"""Persistence port for NisseKomm game facts.

The engine only talks to the StorageAdapter protocol. Two backends exist:

- LocalStorageAdapter: single device, in memory, optionally mirrored to a
  JSON file.
- SheetsStorageAdapter: remote and multi-tenant by session id. The cache is
  updated synchronously; writes are pushed to the Facts worksheet in the
  background, one at a time, with the retry policy from nissekomm.database.
"""

import copy
import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Any, Protocol

from nissekomm.config import Settings
from nissekomm.database import (
    PersistenceError,
    RateLimitError,
    clear_session_facts,
    delete_fact,
    load_session_facts,
    upsert_fact,
)

logger = logging.getLogger(__name__)


class StorageAdapter(Protocol):
    """Key/value store with JSON-serializable values.

    Implementations guarantee last-write-wins per key and read-after-write
    consistency within the process. Reading a key that was never written
    returns the supplied default.
    """

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...

    def has(self, key: str) -> bool: ...

    def clear(self) -> None: ...

    def add_to_set(self, key: str, item: Any) -> bool: ...

    def set_contains(self, key: str, item: Any) -> bool: ...

    def wait_for_pending_writes(self, timeout: float | None = None) -> bool: ...

    def close(self) -> None: ...


class _CachedAdapter:
    """Shared in-memory behaviour. Subclasses persist through _persist_*."""

    def __init__(self, initial: dict | None = None):
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return copy.deepcopy(default)
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        # Reject values the remote store could not encode
        json.dumps(value)
        self._data[key] = copy.deepcopy(value)
        self._persist_set(key, value)

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._persist_remove(key)

    def has(self, key: str) -> bool:
        return key in self._data

    def clear(self) -> None:
        self._data.clear()
        self._persist_clear()

    def add_to_set(self, key: str, item: Any) -> bool:
        """Append item to the list stored at key unless already present.

        Returns:
            True if the item was added, False if it was already there
        """
        items = self.get(key, [])
        if item in items:
            return False
        items.append(item)
        self.set(key, items)
        return True

    def set_contains(self, key: str, item: Any) -> bool:
        return item in self._data.get(key, [])

    def keys(self) -> list[str]:
        return list(self._data)

    def wait_for_pending_writes(self, timeout: float | None = None) -> bool:
        return True

    def close(self) -> None:
        pass

    def _persist_set(self, key: str, value: Any) -> None:
        pass

    def _persist_remove(self, key: str) -> None:
        pass

    def _persist_clear(self) -> None:
        pass


class LocalStorageAdapter(_CachedAdapter):
    """Single-device store.

    Args:
        path: Optional JSON file mirroring the store. Loaded on start and
            rewritten after every change.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else None
        initial = {}
        if self.path is not None and self.path.exists():
            try:
                with open(self.path, encoding="utf-8") as f:
                    initial = json.load(f)
            except json.JSONDecodeError as e:
                logger.warning(f"Ignoring unreadable local store {self.path}: {e}")
                initial = {}
        super().__init__(initial)

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, ensure_ascii=False, indent=2)

    def _persist_set(self, key: str, value: Any) -> None:
        self._flush()

    def _persist_remove(self, key: str) -> None:
        self._flush()

    def _persist_clear(self) -> None:
        self._flush()


class SheetsStorageAdapter(_CachedAdapter):
    """Remote store backed by the Facts worksheet, keyed by session id.

    Writes are fire-and-forget: the cache changes immediately and the sheet
    catches up on a single background worker, so writes reach the sheet in
    the order they were made. Failures are logged and never raised into the
    caller. Use wait_for_pending_writes() to synchronise.
    """

    def __init__(self, session_id: str, sheets_client, preload: bool = True):
        self.session_id = session_id
        self.sheets_client = sheets_client
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="nissekomm-sheets")
        self._pending: list[Future] = []
        self.failed_writes = 0
        initial = load_session_facts(session_id, sheets_client) if preload else {}
        super().__init__(initial)

    def _submit(self, description: str, func, *args) -> None:
        self._pending = [f for f in self._pending if not f.done()]
        self._pending.append(self._executor.submit(self._write, description, func, *args))

    def _write(self, description: str, func, *args) -> None:
        # Runs on the worker; errors are handled here so a settled future means a logged outcome
        try:
            func(*args)
        except RateLimitError as e:
            self.failed_writes += 1
            logger.error(f"Sheets write '{description}' for session {self.session_id} rate limited: {e}")
        except PersistenceError as e:
            self.failed_writes += 1
            logger.error(f"Sheets write '{description}' for session {self.session_id} failed: {e}")
        except Exception as e:
            self.failed_writes += 1
            logger.error(f"Unexpected error in sheets write '{description}': {e}")

    def _persist_set(self, key: str, value: Any) -> None:
        self._submit(f"set {key}", upsert_fact, self.session_id, key, copy.deepcopy(value), self.sheets_client)

    def _persist_remove(self, key: str) -> None:
        self._submit(f"remove {key}", delete_fact, self.session_id, key, self.sheets_client)

    def _persist_clear(self) -> None:
        self._submit("clear", clear_session_facts, self.session_id, self.sheets_client)

    def wait_for_pending_writes(self, timeout: float | None = None) -> bool:
        """Block until every queued write has settled.

        Returns:
            True if all writes finished within the timeout
        """
        pending = list(self._pending)
        _, not_done = wait(pending, timeout=timeout)
        self._pending = [f for f in self._pending if not f.done()]
        return not not_done

    def close(self) -> None:
        self.wait_for_pending_writes()
        self._executor.shutdown(wait=True)


def create_storage_adapter(settings: Settings, session_id: str | None = None, sheets_client=None):
    """Pick the storage backend from settings.

    The sheets backend needs both a session id and a worksheet; without them
    this falls back to local storage.
    """
    if settings.storage_backend == "sheets":
        if session_id and sheets_client is not None:
            logger.info(f"Using sheets storage for session {session_id}")
            return SheetsStorageAdapter(session_id, sheets_client)
        logger.warning("Sheets storage requested without a session, falling back to local storage")

    return LocalStorageAdapter(settings.local_path)
