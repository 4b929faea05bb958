"""
Unit tests for the storage adapters.
"""

import json

import pytest

from nissekomm.config import Settings
from nissekomm.database import load_session_facts, upsert_fact
from nissekomm.storage import LocalStorageAdapter, SheetsStorageAdapter, create_storage_adapter


class TestLocalStorageAdapter:
    """Test the single-device store."""

    def test_default_for_missing_key(self):
        """Missing keys return the default."""
        storage = LocalStorageAdapter()
        assert storage.get("nope") is None
        assert storage.get("nope", []) == []

    def test_values_are_copied(self):
        """Mutating a returned value does not change the store."""
        storage = LocalStorageAdapter()
        storage.set("codes", ["A"])

        value = storage.get("codes")
        value.append("B")
        assert storage.get("codes") == ["A"]

    def test_set_operations(self):
        """add_to_set reports whether the item was new."""
        storage = LocalStorageAdapter()
        assert storage.add_to_set("files", "velkommen-brev") is True
        assert storage.add_to_set("files", "velkommen-brev") is False
        assert storage.set_contains("files", "velkommen-brev") is True
        assert storage.set_contains("files", "annet") is False

    def test_rejects_unserializable_values(self):
        """Only JSON-encodable values are stored."""
        storage = LocalStorageAdapter()
        with pytest.raises(TypeError):
            storage.set("bad", {1, 2})
        assert storage.has("bad") is False

    def test_file_mirror_survives_restart(self, tmp_path):
        """A path-backed store reloads its data."""
        path = tmp_path / "state.json"
        LocalStorageAdapter(path).set("nissekomm-codes", [{"code": "SEKK", "date": "x"}])

        reloaded = LocalStorageAdapter(path)
        assert reloaded.get("nissekomm-codes") == [{"code": "SEKK", "date": "x"}]

    def test_unreadable_file_starts_empty(self, tmp_path):
        """A corrupt mirror file is ignored."""
        path = tmp_path / "state.json"
        path.write_text("{broken", encoding="utf-8")

        assert LocalStorageAdapter(path).keys() == []

    def test_remove_and_clear(self, tmp_path):
        """Removals reach the mirror file."""
        path = tmp_path / "state.json"
        storage = LocalStorageAdapter(path)
        storage.set("a", 1)
        storage.set("b", 2)
        storage.remove("a")

        assert json.loads(path.read_text(encoding="utf-8")) == {"b": 2}

        storage.clear()
        assert json.loads(path.read_text(encoding="utf-8")) == {}


class TestSheetsStorageAdapter:
    """Test the remote store over a mock worksheet."""

    def test_preloads_session_facts(self, facts_sheet):
        """Existing facts for the session are loaded on start."""
        upsert_fact("s1", "nissekomm-codes", [{"code": "SEKK", "date": "x"}], facts_sheet)
        upsert_fact("s2", "nissekomm-codes", [{"code": "NORDPOL", "date": "x"}], facts_sheet)

        storage = SheetsStorageAdapter("s1", facts_sheet)
        assert storage.get("nissekomm-codes") == [{"code": "SEKK", "date": "x"}]

    def test_writes_reach_the_sheet(self, facts_sheet):
        """Background writes land once pending writes are awaited."""
        storage = SheetsStorageAdapter("s1", facts_sheet)
        storage.set("a", [1])
        storage.add_to_set("a", 2)
        storage.set("b", True)

        assert storage.wait_for_pending_writes(timeout=5) is True
        assert load_session_facts("s1", facts_sheet) == {"a": [1, 2], "b": True}
        storage.close()

    def test_cache_is_read_after_write(self, facts_sheet):
        """Reads see writes immediately."""
        storage = SheetsStorageAdapter("s1", facts_sheet, preload=False)
        storage.set("a", 1)
        assert storage.get("a") == 1
        storage.close()

    def test_remove_and_clear_reach_the_sheet(self, facts_sheet):
        """Removes and clears are mirrored without touching other sessions."""
        upsert_fact("s2", "a", 99, facts_sheet)
        storage = SheetsStorageAdapter("s1", facts_sheet)
        storage.set("a", 1)
        storage.set("b", 2)
        storage.remove("a")
        storage.wait_for_pending_writes(timeout=5)
        assert load_session_facts("s1", facts_sheet) == {"b": 2}

        storage.clear()
        storage.wait_for_pending_writes(timeout=5)
        assert load_session_facts("s1", facts_sheet) == {}
        assert load_session_facts("s2", facts_sheet) == {"a": 99}
        storage.close()

    def test_failed_write_is_logged_not_raised(self, facts_sheet, caplog):
        """A broken sheet never breaks the caller."""
        storage = SheetsStorageAdapter("s1", facts_sheet, preload=False)
        facts_sheet.fail_with_error = True

        storage.set("a", 1)
        storage.wait_for_pending_writes(timeout=5)

        assert storage.get("a") == 1
        assert storage.failed_writes == 1
        assert "failed" in caplog.text
        storage.close()

    def test_settled_writes_are_dropped(self, facts_sheet):
        """Only unfinished writes are kept between calls."""
        storage = SheetsStorageAdapter("s1", facts_sheet, preload=False)
        storage.set("a", 1)
        storage._pending[0].result(timeout=5)

        storage.set("b", 2)

        assert len(storage._pending) == 1
        storage.close()

    def test_close_stops_the_worker(self, facts_sheet):
        """After close the writes are on the sheet and no new ones are accepted."""
        storage = SheetsStorageAdapter("s1", facts_sheet, preload=False)
        storage.set("a", 1)

        storage.close()

        assert load_session_facts("s1", facts_sheet) == {"a": 1}
        with pytest.raises(RuntimeError):
            storage.set("b", 2)


class TestCreateStorageAdapter:
    """Test backend selection."""

    def test_local_by_default(self):
        """Local settings give a local store."""
        assert isinstance(create_storage_adapter(Settings()), LocalStorageAdapter)

    def test_sheets_with_session(self, facts_sheet):
        """Sheets settings with a session give a sheets store."""
        storage = create_storage_adapter(Settings(storage_backend="sheets"), "s1", facts_sheet)
        assert isinstance(storage, SheetsStorageAdapter)
        storage.close()

    def test_sheets_without_session_falls_back(self):
        """Without a session the local store is used."""
        storage = create_storage_adapter(Settings(storage_backend="sheets"))
        assert isinstance(storage, LocalStorageAdapter)
