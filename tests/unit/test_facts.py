"""
Unit tests for the fact store.
"""

import json

from nissekomm.facts import EXPORT_VERSION, FactStore, fact_key
from nissekomm.storage import LocalStorageAdapter


class TestFactStore:
    """Test typed fact access."""

    def test_keys_are_prefixed(self, facts, storage):
        """Facts live under the nissekomm- prefix."""
        facts.add_submitted_code("SEKK", "2025-12-08T10:00:00")
        assert storage.has(fact_key("codes"))
        assert fact_key("codes") == "nissekomm-codes"

    def test_duplicate_code_not_logged(self, facts):
        """A code is logged once."""
        assert facts.add_submitted_code("SEKK", "t1") is True
        assert facts.add_submitted_code("SEKK", "t2") is False
        assert [c.date for c in facts.get_submitted_codes()] == ["t1"]

    def test_revision_bumps_on_write_only(self, facts):
        """Reads leave the revision alone; writes bump it."""
        start = facts.revision
        facts.get_submitted_codes()
        facts.is_module_unlocked("NISSENET")
        assert facts.revision == start

        facts.unlock_module("NISSENET")
        assert facts.revision == start + 1

        facts.unlock_module("NISSENET")
        assert facts.revision == start + 1

    def test_topic_first_day_wins(self, facts):
        """Re-unlocking a topic keeps the original day."""
        assert facts.unlock_topic("brevfugler", 5) is True
        assert facts.unlock_topic("brevfugler", 9) is False
        assert facts.get_unlocked_topics() == {"brevfugler": 5}

    def test_crisis_defaults(self, facts):
        """Both crises start unresolved."""
        assert facts.get_crisis_status() == {"antenna": False, "inventory": False}
        facts.resolve_crisis("antenna")
        assert facts.get_crisis_status() == {"antenna": True, "inventory": False}

    def test_failed_attempts_per_day(self, facts):
        """Counters are kept per day."""
        facts.increment_failed_attempts(3)
        facts.increment_failed_attempts(3)
        facts.increment_failed_attempts(4)

        assert facts.get_failed_attempts(3) == 2
        facts.reset_failed_attempts(3)
        assert facts.get_failed_attempts(3) == 0
        assert facts.get_failed_attempts(4) == 1

    def test_bonus_badges(self, facts):
        """Bonus badges are recorded per day."""
        assert facts.add_bonus_badge(11, "t") is True
        assert facts.add_bonus_badge(11, "t") is False
        assert facts.get_bonus_badge_days() == {11}

    def test_clear_all(self, facts, storage):
        """Every game key is removed."""
        facts.add_submitted_code("SEKK", "t")
        facts.unlock_module("NISSENET")
        storage.set("other-app", 1)

        facts.clear_all()

        assert facts.get_submitted_codes() == []
        assert storage.get("other-app") == 1


class TestExportImport:
    """Test the export document."""

    def test_export_shape(self, facts):
        """Exports carry a version and every category."""
        facts.add_submitted_code("SEKK", "t")
        document = json.loads(facts.export_data())

        assert document["version"] == EXPORT_VERSION
        assert document["facts"]["codes"] == [{"code": "SEKK", "date": "t"}]
        assert document["facts"]["crisis-status"] == {}

    def test_round_trip(self, facts):
        """Importing an export into an empty store reproduces it."""
        facts.add_submitted_code("SEKK", "t")
        facts.unlock_topic("brevfugler", 5)
        facts.add_earned_badge("frost-ekspert", 1765390200000)

        other = FactStore(LocalStorageAdapter())
        assert other.import_data(facts.export_data()) is True
        assert other.export_data() == facts.export_data()

    def test_unknown_category_ignored(self, facts):
        """Categories from newer versions are skipped."""
        document = json.dumps({"version": EXPORT_VERSION, "facts": {
            "codes": [{"code": "SEKK", "date": "t"}],
            "hologram-settings": {"on": True},
        }})

        assert facts.import_data(document) is True
        assert len(facts.get_submitted_codes()) == 1

    def test_malformed_category_rejects_everything(self, facts):
        """One bad category means nothing is written."""
        document = json.dumps({"version": EXPORT_VERSION, "facts": {
            "codes": [{"code": "SEKK", "date": "t"}],
            "failed-attempts": {"3": "many"},
        }})

        assert facts.import_data(document) is False
        assert facts.get_submitted_codes() == []

    def test_wrong_version(self, facts):
        """Unsupported versions are rejected."""
        assert facts.import_data(json.dumps({"version": 99, "facts": {}})) is False
        assert facts.import_data("[]") is False
