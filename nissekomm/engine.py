"""NisseKomm progression engine.

GameEngine is the single entry point the app talks to. It owns the fact
store for one player, derives GameState from it (cached until the next
write), applies quest submissions and delegates badges and symbols to their
managers. The catalog is passed in; the engine never reads content from
disk itself.
"""

import logging

from nissekomm import alerts, metrics
from nissekomm.analytics import EventTracker
from nissekomm.badges import BadgeManager
from nissekomm.clock import Clock, SystemClock
from nissekomm.config import Settings
from nissekomm.facts import FactStore
from nissekomm.models import (
    BadgeAwardResult,
    BonusQuestCondition,
    DecryptionResult,
    GameState,
    Quest,
    QuestResult,
    QuestStatus,
    SymbolCollectResult,
)
from nissekomm.progression import (
    arc_progress_percentage,
    derive_game_state,
    is_bonus_quest_completed,
    normalize_code,
    progression_percentage,
    quest_status,
    requirements_met,
)
from nissekomm.symbols import SymbolSystem

logger = logging.getLogger(__name__)

MSG_CODE_ACCEPTED = "KODE AKSEPTERT!"
MSG_CODE_ALREADY_REGISTERED = "KODEN ER ALLEREDE REGISTRERT"
MSG_WRONG_CODE = "FEIL KODE - PRØV IGJEN"
MSG_BONUS_ACCEPTED = "BONUSKODE AKSEPTERT!"
MSG_NO_BONUS_CODE = "Ingen bonusoppdrag med kode denne dagen"
MSG_BONUS_LOCKED = "Fullfør hovedoppdraget først"


class GameEngine:
    """
    Progression engine for one player.

    Args:
        catalog: Validated Catalog from nissekomm.content.load_catalog()
        storage: StorageAdapter holding this player's facts
        clock: Time source (defaults to SystemClock honouring settings)
        settings: Runtime settings (test mode, analytics key)
    """

    def __init__(self, catalog, storage, clock: Clock | None = None, settings: Settings | None = None):
        self.catalog = catalog
        self.storage = storage
        self.settings = settings or Settings()
        self.clock = clock or SystemClock(self.settings)
        self.facts = FactStore(storage)
        self.badges = BadgeManager(catalog, self.facts, self.clock, self.get_game_state)
        self.symbols = SymbolSystem(catalog, self.facts)
        self.events = EventTracker(self.settings.datadog_api_key)

        self._state: GameState | None = None
        self._state_revision = -1

        if self.settings.datadog_api_key:
            self.badges.on_badge_awarded(self._track_badge)

        self.unlock_timed_modules()

    # ============================================================
    # State
    # ============================================================

    def get_game_state(self) -> GameState:
        """Derived game state, recomputed only after the facts change."""
        if self._state is None or self._state_revision != self.facts.revision:
            self._state = derive_game_state(self.catalog, self.facts)
            self._state_revision = self.facts.revision
        return self._state

    def current_day(self) -> int:
        return self.clock.current_day()

    def _track(self, event_name: str, data: dict | None = None) -> None:
        self.events.track(event_name, data)

    def _track_badge(self, badge) -> None:
        self._track("badge_earned", {"badge": badge.badge_id})

    # ============================================================
    # Quest submission
    # ============================================================

    def submit_code(self, code: str, expected_code: str, day: int) -> QuestResult:
        """
        Submit a code for a day.

        A wrong code bumps the day's failed-attempt counter. A correct code
        for an already completed day changes nothing. A new completion logs
        the code, clears the failed attempts, applies the quest's reveals and
        runs a full badge sweep. Symbols are never granted here.

        Args:
            code: Code typed by the player
            expected_code: The day's code
            day: Quest day (1-24)

        Returns:
            QuestResult with success and is_new_completion flags
        """
        normalized = normalize_code(code)

        if normalized != normalize_code(expected_code):
            attempts = self.facts.increment_failed_attempts(day)
            logger.info(f"Wrong code for day {day} (attempt {attempts})")
            self._track("code_failure", {"day": day})
            return QuestResult(False, False, MSG_WRONG_CODE)

        if day in self.get_game_state().completed_days:
            return QuestResult(True, False, MSG_CODE_ALREADY_REGISTERED)

        self.facts.add_submitted_code(normalized, self.clock.iso_now())
        self.facts.reset_failed_attempts(day)
        self.process_content_unlocks(day)
        awarded = self.badges.check_and_award_all_eligible_badges()

        logger.info(f"Day {day} completed, {len(awarded)} badge(s) awarded")
        self._track("code_success", {"day": day})
        return QuestResult(True, True, MSG_CODE_ACCEPTED)

    def process_content_unlocks(self, day: int) -> None:
        """Unlock the files, topics (with their day) and modules a quest reveals."""
        quest = self.catalog.quest_for_day(day)
        if quest is None or quest.reveals is None:
            return

        for file_id in quest.reveals.files:
            self.facts.add_unlocked_file(file_id)
        for topic in quest.reveals.topics:
            self.facts.unlock_topic(topic, day)
        for module_id in quest.reveals.modules:
            self.facts.unlock_module(module_id)

    def is_quest_completed(self, day: int) -> bool:
        return day in self.get_game_state().completed_days

    def get_completed_days(self) -> frozenset[int]:
        return self.get_game_state().completed_days

    def get_completed_quest_count(self) -> int:
        return len(self.get_game_state().completed_days)

    def get_submitted_codes(self):
        return self.facts.get_submitted_codes()

    def get_failed_attempts(self, day: int) -> int:
        return self.facts.get_failed_attempts(day)

    def get_all_quests(self) -> list[Quest]:
        return list(self.catalog.quests)

    # ============================================================
    # Bonus quests
    # ============================================================

    def is_bonus_quest_completed(self, quest: Quest) -> bool:
        return is_bonus_quest_completed(
            quest, self.get_game_state().submitted_codes, self.facts.get_bonus_badge_days()
        )

    def is_bonus_quest_accessible(self, day: int) -> bool:
        """A bonus quest opens once the day's main quest is completed."""
        return self.is_quest_completed(day)

    def submit_bonus_code(self, day: int, code: str) -> QuestResult:
        """Submit the code of a code-validated bonus quest."""
        quest = self.catalog.quest_for_day(day)
        if quest is None or quest.bonus_quest is None or quest.bonus_quest.validation != "code":
            return QuestResult(False, False, MSG_NO_BONUS_CODE)

        if not self.is_bonus_quest_accessible(day):
            return QuestResult(False, False, MSG_BONUS_LOCKED)

        normalized = normalize_code(code)
        if normalized != normalize_code(quest.bonus_quest.code):
            return QuestResult(False, False, MSG_WRONG_CODE)

        if self.is_bonus_quest_completed(quest):
            return QuestResult(True, False, MSG_CODE_ALREADY_REGISTERED)

        self.facts.add_submitted_code(normalized, self.clock.iso_now())
        self.badges.check_and_award_all_eligible_badges()
        logger.info(f"Bonus quest for day {day} completed")
        return QuestResult(True, True, MSG_BONUS_ACCEPTED)

    def approve_bonus_quest(self, day: int) -> BadgeAwardResult:
        """
        Parent approval of a bonus quest.

        Awards the day's bonus badge without evaluating its condition, which
        also resolves the badge's crisis.
        """
        quest = self.catalog.quest_for_day(day)
        if quest is None or quest.bonus_quest is None:
            return BadgeAwardResult(False, None, False, f"Ingen bonusoppdrag på dag {day}")

        if not self.is_bonus_quest_accessible(day):
            return BadgeAwardResult(False, None, False, MSG_BONUS_LOCKED)

        for badge in self.catalog.badges:
            condition = badge.unlock_condition
            if isinstance(condition, BonusQuestCondition) and condition.day == day:
                return self.badges.check_and_award_badge(badge.badge_id, bypass_condition_check=True)

        # Bonus quest without a badge in content: record the approval alone
        self.facts.add_bonus_badge(day, self.clock.iso_now())
        return BadgeAwardResult(True, None, True, f'Bonusoppdrag "{quest.bonus_quest.title}" godkjent')

    # ============================================================
    # Accessibility
    # ============================================================

    def get_quest_status(self, day: int) -> QuestStatus:
        quest = self.catalog.quest_for_day(day)
        if quest is None:
            return QuestStatus.LOCKED
        state = self.get_game_state()
        return quest_status(
            quest,
            state.completed_days,
            state.topics,
            self.clock.current_day(),
            self.clock.current_month(),
            test_mode=self.settings.test_mode,
        )

    def is_mission_accessible(self, day: int) -> bool:
        """True when the quest's required days and topics are in place (ignores the date)."""
        quest = self.catalog.quest_for_day(day)
        if quest is None:
            return True
        state = self.get_game_state()
        return requirements_met(quest, state.completed_days, state.topics)

    def unlock_timed_modules(self) -> list[str]:
        """
        In December, unlock every module revealed by a day before today.

        Returns:
            Module ids unlocked by this call
        """
        if self.clock.current_month() != 12:
            return []

        today = self.clock.current_day()
        unlocked = []
        for quest in self.catalog.quests:
            if quest.reveals is None or quest.day >= today:
                continue
            for module_id in quest.reveals.modules:
                if self.facts.unlock_module(module_id):
                    unlocked.append(module_id)

        if unlocked:
            logger.info(f"Timed module unlocks: {', '.join(unlocked)}")
        return unlocked

    def is_module_unlocked(self, module_id: str) -> bool:
        return self.facts.is_module_unlocked(module_id)

    def get_unlocked_modules(self) -> frozenset[str]:
        return self.get_game_state().unlocked_modules

    def is_file_unlocked(self, file_id: str) -> bool:
        """
        A file is accessible when it was explicitly unlocked, or when its
        unlock conditions (after_day, requires_topics) hold. Files without
        conditions are always accessible.
        """
        if self.facts.is_file_unlocked(file_id):
            return True

        node = self.catalog.find_file(file_id)
        if node is None or node.unlock_conditions is None:
            return True

        conditions = node.unlock_conditions
        if conditions.after_day is not None and self.clock.current_day() < conditions.after_day:
            return False

        topics = self.get_game_state().topics
        return all(topic in topics for topic in conditions.requires_topics)

    def get_newly_unlocked_content(self, day: int) -> dict:
        """Preview of what completing a day reveals."""
        quest = self.catalog.quest_for_day(day)
        if quest is None:
            return {"files": [], "topics": [], "modules": [], "symbols": []}
        reveals = quest.reveals
        return {
            "files": list(reveals.files) if reveals else [],
            "topics": list(reveals.topics) if reveals else [],
            "modules": list(reveals.modules) if reveals else [],
            "symbols": [quest.symbol_clue] if quest.symbol_clue else [],
        }

    # ============================================================
    # Story arcs and progression
    # ============================================================

    def get_completed_arcs(self) -> frozenset[str]:
        return self.get_game_state().completed_arcs

    def get_total_arcs(self) -> int:
        return len({q.story_arc.arc_id for q in self.catalog.quests if q.story_arc})

    def get_arc_progress(self, arc_id: str) -> int:
        return arc_progress_percentage(self.catalog, arc_id, self.get_game_state().completed_days)

    def get_arcs_for_day(self, day: int):
        return self.catalog.arcs_for_day(day)

    def is_game_complete(self) -> bool:
        return self.get_completed_quest_count() == self.catalog.total_days

    def get_progression_percentage(self) -> int:
        return progression_percentage(self.get_completed_quest_count(), self.catalog.total_days)

    def get_progression_summary(self) -> dict:
        state = self.get_game_state()
        bonus_available = sum(1 for q in self.catalog.quests if q.bonus_quest)
        bonus_completed = len(state.completed_bonus_quests)
        badge_progress = self.badges.get_badge_progress()

        return {
            "main_quests": {
                "completed": len(state.completed_days),
                "total": self.catalog.total_days,
                "percentage": self.get_progression_percentage(),
            },
            "bonus_quests": {
                "completed": bonus_completed,
                "available": bonus_available,
                "percentage": progression_percentage(bonus_completed, bonus_available),
            },
            "badges": {
                "earned": badge_progress["earned"],
                "total": badge_progress["total"],
            },
            "modules": {
                "unlocked": len(state.unlocked_modules),
                "total": len(self.catalog.all_modules()),
            },
            "story_arcs": {
                "completed": len(state.completed_arcs),
                "total": self.get_total_arcs(),
            },
            "symbols": {
                "collected": len(state.collected_symbols),
                "total": len(self.catalog.symbols),
            },
            "decryptions": self.symbols.get_decryption_progress(),
            "is_complete": self.is_game_complete(),
        }

    # ============================================================
    # Symbols and decryption
    # ============================================================

    def collect_symbol_by_code(self, code: str) -> SymbolCollectResult:
        result = self.symbols.collect_symbol_by_code(code)
        if result.success:
            self._track("symbol_collected", {"symbol": result.symbol.symbol_id})
            self.badges.check_and_award_all_eligible_badges()
        return result

    def validate_decryption_sequence(self, challenge_id: str, user_sequence: list[int]) -> DecryptionResult:
        already_solved = self.symbols.is_decryption_solved(challenge_id)
        result = self.symbols.validate_decryption_sequence(challenge_id, user_sequence)
        if result.correct and not already_solved:
            self._track("decryption_completed", {"challenge": challenge_id})
            self.badges.check_and_award_all_eligible_badges()
        return result

    # ============================================================
    # Crises
    # ============================================================

    def is_crisis_resolved(self, crisis: str) -> bool:
        return self.get_game_state().crises.get(crisis, False)

    def get_crisis_status(self) -> dict[str, bool]:
        return self.get_game_state().crises

    # ============================================================
    # Read tracking
    # ============================================================

    def mark_email_viewed(self, day: int, bonus: bool = False) -> None:
        self.facts.mark_email_viewed(day, bonus)

    def get_unread_email_count(self) -> int:
        """
        Unread mission emails up to today.

        Counts every day up to today whose main email is unviewed, plus bonus
        emails that are accessible (main quest done) and unviewed.
        """
        viewed = self.facts.get_viewed_emails()
        viewed_bonus = self.facts.get_viewed_emails(bonus=True)
        done_days = self.get_game_state().completed_days

        unread = 0
        for day in range(1, min(self.clock.current_day(), self.catalog.total_days) + 1):
            if day not in viewed:
                unread += 1
            quest = self.catalog.quest_for_day(day)
            if quest and quest.bonus_quest and day in done_days and day not in viewed_bonus:
                unread += 1
        return unread

    def mark_nissenet_visited(self, day: int | None = None) -> None:
        self.facts.set_nissenet_last_visit(day if day is not None else self.clock.current_day())

    def get_unread_file_count(self) -> int:
        """Files revealed by completed days after the last NisseNet visit."""
        last_visit = self.facts.get_nissenet_last_visit()
        done_days = self.get_game_state().completed_days
        return sum(
            len(q.reveals.files)
            for q in self.catalog.quests
            if q.reveals and q.day in done_days and q.day > last_visit
        )

    def mark_diary_read(self, day: int) -> None:
        self.facts.set_diary_last_read(day)

    def get_unread_diary_count(self) -> int:
        """Completed days whose diary entry is newer than the last one read."""
        last_read = self.facts.get_diary_last_read()
        return sum(1 for day in self.get_game_state().completed_days if day > last_read)

    # ============================================================
    # Santa letters
    # ============================================================

    def get_santa_letters(self) -> list[dict]:
        return self.facts.get_santa_letters()

    def add_santa_letter(self, day: int, content: str) -> bool:
        """
        Store a letter for a day, replacing any earlier letter for that day.

        Returns:
            False if the day is outside 1..24 or the content is empty
        """
        if not 1 <= day <= self.catalog.total_days or not (content or "").strip():
            return False

        letters = [letter for letter in self.facts.get_santa_letters() if letter["day"] != day]
        letters.append({"day": day, "content": content.strip(), "timestamp": self.clock.iso_now()})
        self.facts.save_santa_letters(letters)
        return True

    def save_santa_letters(self, letters: list[dict]) -> None:
        self.facts.save_santa_letters(letters)

    # ============================================================
    # Dashboard
    # ============================================================

    def get_progressive_metrics(self, day: int | None = None):
        day = day if day is not None else self.clock.current_day()
        return metrics.progressive_metrics(day, self.get_crisis_status(), self.catalog)

    def get_story_arc_metrics(self, day: int | None = None):
        day = day if day is not None else self.clock.current_day()
        return metrics.story_arc_metrics(day, self.get_game_state().completed_days, self.catalog)

    def get_daily_alerts(self, day: int | None = None):
        day = day if day is not None else self.clock.current_day()
        state = self.get_game_state()
        return alerts.daily_alerts(day, state.completed_days, state.crises, self.catalog.daily_alerts, self.clock)

    def get_christmas_countdown(self) -> dict:
        return metrics.christmas_countdown(self.clock.now())

    # ============================================================
    # Data management
    # ============================================================

    def export_game_state(self) -> str:
        return self.facts.export_data()

    def import_game_state(self, text: str) -> bool:
        return self.facts.import_data(text)

    def reset_game(self) -> None:
        """Administrative reset: delete every game fact for this player."""
        self.facts.clear_all()
        logger.info("Game progress reset")

    def wait_for_pending_writes(self, timeout: float | None = None) -> bool:
        return self.storage.wait_for_pending_writes(timeout)

    def close(self) -> None:
        """Flush queued writes and events, then stop their worker threads."""
        self.events.close()
        self.storage.close()
