"""
Unit tests for progression rules.
"""

from nissekomm.models import QuestStatus
from nissekomm.progression import (
    arc_progress_percentage,
    completed_arcs,
    completed_days,
    is_arc_complete,
    is_bonus_quest_completed,
    normalize_code,
    progression_percentage,
    quest_status,
    requirements_met,
)


class TestCompletedDays:
    """Test deriving completed days from the code log."""

    def test_normalize_code(self):
        """Codes are trimmed and upper-cased."""
        assert normalize_code("  sekk ") == "SEKK"
        assert normalize_code(None) == ""

    def test_completed_days_from_codes(self, catalog):
        """Only codes matching a quest count."""
        assert completed_days(catalog, ["NORDPOL", "SEKK", "TULL"]) == {1, 8}

    def test_completed_days_case_insensitive(self, catalog):
        """Logged codes match regardless of case."""
        assert completed_days(catalog, ["nordpol"]) == {1}

    def test_bonus_code_is_not_a_main_completion(self, catalog):
        """Bonus codes do not complete days."""
        assert completed_days(catalog, ["TURBO"]) == frozenset()


class TestBonusQuests:
    """Test bonus quest completion."""

    def test_parent_approval_needs_bonus_badge(self, catalog):
        """Parent-approved bonus quests complete through the bonus badge record."""
        quest = catalog.quest_for_day(11)
        assert is_bonus_quest_completed(quest, ["ANTENNE"], set()) is False
        assert is_bonus_quest_completed(quest, [], {11}) is True

    def test_code_bonus_needs_code(self, catalog):
        """Code bonus quests complete once their code is logged."""
        quest = catalog.quest_for_day(19)
        assert is_bonus_quest_completed(quest, ["RAKETT"], set()) is False
        assert is_bonus_quest_completed(quest, ["RAKETT", "turbo"], set()) is True

    def test_no_bonus_quest(self, catalog):
        """Days without a bonus quest are never bonus-complete."""
        assert is_bonus_quest_completed(catalog.quest_for_day(1), ["NORDPOL"], {1}) is False


class TestStoryArcs:
    """Test story arc completion."""

    def test_arc_complete_when_all_phases_done(self, catalog):
        """frosne-monster is days 3, 9 and 13."""
        assert is_arc_complete(catalog, "frosne-monster", {3, 9, 13}) is True

    def test_arc_with_gap_is_incomplete(self, catalog):
        """Phases 1 and 3 without 2 do not complete the arc."""
        assert is_arc_complete(catalog, "frosne-monster", {3, 13}) is False

    def test_arc_contiguous_prefix_is_complete(self, catalog):
        """Phases 1 and 2 of 3 already count as complete."""
        assert is_arc_complete(catalog, "frosne-monster", {3, 9}) is True
        assert is_arc_complete(catalog, "frosne-monster", {3}) is True

    def test_arc_without_first_phase_is_incomplete(self, catalog):
        """Later phases alone never complete an arc."""
        assert is_arc_complete(catalog, "frosne-monster", {9, 13}) is False
        assert is_arc_complete(catalog, "frosne-monster", set()) is False

    def test_unknown_arc(self, catalog):
        """Unknown arcs are never complete."""
        assert is_arc_complete(catalog, "ukjent", set(range(1, 25))) is False

    def test_all_days_complete_every_arc(self, catalog):
        """Finishing the calendar finishes every arc."""
        assert completed_arcs(catalog, set(range(1, 25))) == {a.arc_id for a in catalog.story_arcs}

    def test_arc_progress(self, catalog):
        """Progress is the share of an arc's days done."""
        assert arc_progress_percentage(catalog, "brevfugl-mysteriet", {1, 5}) == 50
        assert arc_progress_percentage(catalog, "ukjent", {1}) == 0


class TestQuestStatus:
    """Test per-day status."""

    def test_completed(self, catalog):
        """Completed days report COMPLETED even in the future."""
        quest = catalog.quest_for_day(20)
        assert quest_status(quest, {20}, {}, current_day=1) == QuestStatus.COMPLETED

    def test_future_day_locked(self, catalog):
        """Days after today are locked."""
        assert quest_status(catalog.quest_for_day(11), set(), {}, current_day=10) == QuestStatus.LOCKED

    def test_outside_december_locked(self, catalog):
        """Outside December nothing opens."""
        quest = catalog.quest_for_day(1)
        assert quest_status(quest, set(), {}, current_day=10, current_month=11) == QuestStatus.LOCKED

    def test_test_mode_ignores_date(self, catalog):
        """Test mode opens future days whose requirements hold."""
        quest = catalog.quest_for_day(1)
        assert quest_status(quest, set(), {}, current_day=1, current_month=6, test_mode=True) == QuestStatus.AVAILABLE

    def test_topic_requirement(self, catalog):
        """Day 15 needs fargeteori unlocked."""
        quest = catalog.quest_for_day(15)
        assert quest_status(quest, set(), {}, current_day=20) == QuestStatus.LOCKED
        assert quest_status(quest, set(), {"fargeteori": 10}, current_day=20) == QuestStatus.AVAILABLE

    def test_completed_day_requirement(self, catalog):
        """Day 14 needs day 12 completed as well as the brevfugler topic."""
        quest = catalog.quest_for_day(14)
        topics = {"brevfugler": 5}
        assert requirements_met(quest, set(), topics) is False
        assert requirements_met(quest, {12}, topics) is True


class TestProgressionPercentage:
    """Test the overall percentage."""

    def test_rounding(self):
        """Percentages are rounded to whole numbers."""
        assert progression_percentage(8, 24) == 33
        assert progression_percentage(24, 24) == 100

    def test_zero_total(self):
        """No quests means zero progress."""
        assert progression_percentage(0, 0) == 0
