"""Quest progression rules for NisseKomm.

Pure derivations from the persisted facts and the catalog: which days are
completed, which bonus quests and story arcs are done, and what status each
day has. Nothing here writes state.
"""

from nissekomm.models import GameState, Quest, QuestStatus


def normalize_code(code: str) -> str:
    """Trim surrounding whitespace and upper-case a submitted code."""
    return (code or "").strip().upper()


def completed_days(catalog, submitted_codes) -> frozenset[int]:
    """Days whose main code appears in the submitted-code log.

    Args:
        catalog: Catalog to match against
        submitted_codes: Iterable of code strings

    Returns:
        Set of completed day numbers
    """
    logged = {normalize_code(code) for code in submitted_codes}
    return frozenset(q.day for q in catalog.quests if normalize_code(q.code) in logged)


def is_bonus_quest_completed(quest: Quest, submitted_codes, bonus_badge_days) -> bool:
    """Check a quest's bonus quest.

    Parent-approved bonus quests are done once a bonus badge is recorded for
    the day. Code-validated ones are done once their code is in the log.
    """
    bonus = quest.bonus_quest
    if bonus is None:
        return False
    if bonus.validation == "parentApproval":
        return quest.day in bonus_badge_days
    if bonus.validation == "code" and bonus.code:
        logged = {normalize_code(code) for code in submitted_codes}
        return normalize_code(bonus.code) in logged
    return False


def completed_bonus_quests(catalog, submitted_codes, bonus_badge_days) -> frozenset[int]:
    return frozenset(
        q.day for q in catalog.quests
        if q.bonus_quest and is_bonus_quest_completed(q, submitted_codes, bonus_badge_days)
    )


def is_arc_complete(catalog, arc_id: str, done_days) -> bool:
    """An arc is complete when its completed phases are exactly 1..N.

    N is the highest phase completed so far. Phases {1, 2} of a three-phase
    arc count as complete; phases {1, 3} do not.
    """
    phases = {q.story_arc.phase for q in catalog.arc_quests(arc_id) if q.day in done_days}
    return bool(phases) and phases == set(range(1, max(phases) + 1))


def completed_arcs(catalog, done_days) -> frozenset[str]:
    return frozenset(arc.arc_id for arc in catalog.story_arcs if is_arc_complete(catalog, arc.arc_id, done_days))


def arc_progress_percentage(catalog, arc_id: str, done_days) -> int:
    arc_quests = catalog.arc_quests(arc_id)
    if not arc_quests:
        return 0
    done = sum(1 for q in arc_quests if q.day in done_days)
    return round(done / len(arc_quests) * 100)


def requirements_met(quest: Quest, done_days, topics) -> bool:
    """True when every required day is completed and every required topic unlocked."""
    if quest.requires is None:
        return True
    if not all(day in done_days for day in quest.requires.completed_days):
        return False
    return all(topic in topics for topic in quest.requires.topics)


def quest_status(quest: Quest, done_days, topics, current_day: int, current_month: int = 12,
                 test_mode: bool = False) -> QuestStatus:
    """
    Per-day quest status.

    COMPLETED once the day's code is logged. AVAILABLE when the calendar has
    reached the day (December only, skipped in test mode) and the quest's
    requirements are met. LOCKED otherwise.
    """
    if quest.day in done_days:
        return QuestStatus.COMPLETED
    if not test_mode:
        if current_month != 12 or quest.day > current_day:
            return QuestStatus.LOCKED
    if not requirements_met(quest, done_days, topics):
        return QuestStatus.LOCKED
    return QuestStatus.AVAILABLE


def progression_percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return round(completed / total * 100)


def derive_game_state(catalog, facts) -> GameState:
    """Project the fact log onto the catalog.

    Args:
        catalog: Validated Catalog
        facts: FactStore to read from

    Returns:
        Frozen GameState
    """
    codes = [entry.code for entry in facts.get_submitted_codes()]
    bonus_badge_days = facts.get_bonus_badge_days()
    done_days = completed_days(catalog, codes)

    return GameState(
        completed_days=done_days,
        submitted_codes=tuple(codes),
        completed_bonus_quests=completed_bonus_quests(catalog, codes, bonus_badge_days),
        earned_badges=tuple(facts.get_earned_badges()),
        unlocked_modules=frozenset(facts.get_unlocked_modules()),
        unlocked_topics=tuple(sorted(facts.get_unlocked_topics().items())),
        resolved_crises=tuple(sorted(facts.get_crisis_status().items())),
        completed_arcs=completed_arcs(catalog, done_days),
        collected_symbols=frozenset(s.symbol_id for s in facts.get_collected_symbols()),
        solved_decryptions=frozenset(facts.get_solved_decryptions()),
    )
