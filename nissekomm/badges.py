"""Badge awarding for NisseKomm.

Badges are declared in content with an unlock condition. The manager
evaluates conditions against the derived GameState, persists awards through
the FactStore and notifies registered observers synchronously.
"""

import logging
from typing import Callable

from nissekomm.models import (
    AllDecryptionsSolvedCondition,
    AllSymbolsCollectedCondition,
    Badge,
    BadgeAwardResult,
    BonusQuestCondition,
    EarnedBadge,
    GameState,
    StoryArcCondition,
    UnknownCondition,
    UnlockCondition,
)
from nissekomm.progression import is_bonus_quest_completed

logger = logging.getLogger(__name__)

BadgeListener = Callable[[Badge], None]


class BadgeManager:
    """Evaluates and awards badges.

    Args:
        catalog: Validated Catalog
        facts: FactStore the awards are written to
        clock: Clock used for award timestamps
        get_state: Callable returning the current GameState
    """

    def __init__(self, catalog, facts, clock, get_state: Callable[[], GameState]):
        self.catalog = catalog
        self.facts = facts
        self.clock = clock
        self.get_state = get_state
        self._listeners: list[BadgeListener] = []

    # Observers

    def on_badge_awarded(self, listener: BadgeListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def off_badge_awarded(self, listener: BadgeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, badge: Badge) -> None:
        for listener in list(self._listeners):
            try:
                listener(badge)
            except Exception as e:
                logger.error(f"Badge listener failed for {badge.badge_id}: {e}")

    # Conditions

    def is_unlock_condition_met(self, condition: UnlockCondition) -> bool:
        """Evaluate one unlock condition against the current game state."""
        state = self.get_state()

        if isinstance(condition, BonusQuestCondition):
            quest = self.catalog.quest_for_day(condition.day)
            if quest is None or quest.bonus_quest is None:
                return False
            return is_bonus_quest_completed(quest, state.submitted_codes, self.facts.get_bonus_badge_days())

        if isinstance(condition, StoryArcCondition):
            return condition.arc_id in state.completed_arcs

        if isinstance(condition, AllDecryptionsSolvedCondition):
            challenge_ids = set(self.catalog.decryption_challenges())
            return bool(challenge_ids) and challenge_ids <= state.solved_decryptions

        if isinstance(condition, AllSymbolsCollectedCondition):
            return len(state.collected_symbols) >= len(self.catalog.symbols)

        if isinstance(condition, UnknownCondition):
            logger.warning(f"Unknown badge unlock condition type: {condition.tag!r}")
        else:
            logger.warning(f"Unsupported badge unlock condition: {condition!r}")
        return False

    # Awarding

    def check_and_award_badge(self, badge_id: str, bypass_condition_check: bool = False) -> BadgeAwardResult:
        """
        Award a badge if its condition is met.

        bypass_condition_check is for the parent-approval path, where an adult
        confirms the bonus quest outside the game.

        Args:
            badge_id: Badge to check
            bypass_condition_check: Award without evaluating the condition

        Returns:
            BadgeAwardResult; success is True for a new or existing award
        """
        badge = self.catalog.get_badge(badge_id)
        if badge is None:
            return BadgeAwardResult(False, None, False, f'Badge with ID "{badge_id}" not found')

        if self.facts.is_badge_earned(badge_id):
            return BadgeAwardResult(True, badge, False, f'Badge "{badge.name}" already earned')

        if not bypass_condition_check and not self.is_unlock_condition_met(badge.unlock_condition):
            return BadgeAwardResult(False, badge, False, f'Badge "{badge.name}" unlock condition not yet met')

        self.facts.add_earned_badge(badge_id, self.clock.timestamp_ms())

        if badge.type == "bonusQuest" and isinstance(badge.unlock_condition, BonusQuestCondition):
            self.facts.add_bonus_badge(badge.unlock_condition.day, self.clock.iso_now())
            if badge.crisis:
                self.facts.resolve_crisis(badge.crisis)
                logger.info(f"Crisis '{badge.crisis}' resolved by badge {badge_id}")

        logger.info(f"Badge awarded: {badge_id}")
        self._notify(badge)

        return BadgeAwardResult(True, badge, True, f'Gratulerer! Du har låst opp merket "{badge.name}"!')

    def check_and_award_all_eligible_badges(self) -> list[Badge]:
        """Sweep the whole badge catalog and award everything newly eligible."""
        awarded = []
        for badge in self.catalog.badges:
            result = self.check_and_award_badge(badge.badge_id)
            if result.success and result.is_new_award:
                awarded.append(badge)
        return awarded

    # Queries

    def get_all_badges(self) -> list[Badge]:
        return list(self.catalog.badges)

    def get_badge(self, badge_id: str) -> Badge | None:
        return self.catalog.get_badge(badge_id)

    def get_earned_badges(self) -> list[EarnedBadge]:
        return self.facts.get_earned_badges()

    def is_badge_earned(self, badge_id: str) -> bool:
        return self.facts.is_badge_earned(badge_id)

    def get_badges_by_type(self, badge_type: str) -> list[Badge]:
        return [b for b in self.catalog.badges if b.type == badge_type]

    def get_badge_progress(self) -> dict:
        earned = len(self.get_earned_badges())
        total = len(self.catalog.badges)
        return {
            "earned": earned,
            "total": total,
            "percentage": round(earned / total * 100) if total else 0,
        }

    def reset_all_badges(self) -> None:
        """Administrative reset: forget every earned badge."""
        self.facts.clear_earned_badges()
        logger.info("All badges have been reset")
