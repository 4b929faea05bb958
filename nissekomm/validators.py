"""Build-time content validation for NisseKomm.

All validators operate on the raw JSON content and raise
ContentValidationError on the first problem they find. Validation failure is
fatal: the catalog is never built from content that did not pass every check.

Validation categories:
    1. Field validation - required fields, closed enums, bonus quest shape
    2. Collection validation - 24 days, no gaps, unique codes
    3. Reference validation - file IDs, story arc IDs, symbol IDs, badges
    4. Dependency validation - topic requirements and cycles
    5. Sequence validation - story arc phases, decryption sequences
"""

import logging
from typing import Iterable

from nissekomm.models import (
    BADGE_TYPES,
    BONUS_BADGE_ICONS,
    BONUS_VALIDATION_MODES,
    CRISIS_TYPES,
    HINT_TYPES,
    SETUP_COMPLEXITIES,
)

logger = logging.getLogger(__name__)

TOTAL_DAYS = 24

REQUIRED_QUEST_FIELDS = (
    "day",
    "title",
    "mail_text",
    "code",
    "diary_entry",
    "mischief",
    "physical_hint",
    "setup_complexity",
    "materials",
    "best_room",
    "hint_type",
)

KNOWN_CONDITION_TAGS = ("bonusQuest", "storyArc", "allDecryptionsSolved", "allSymbolsCollected")


class ContentValidationError(Exception):
    """Raised when static quest, story arc or badge content is inconsistent."""
    pass


def _is_blank(value) -> bool:
    return value is None or value == ""


def validate_quest(quest: dict, week_number: int) -> None:
    """Validate that a single quest has all required fields.

    Args:
        quest: Raw quest dict from a weekly content file
        week_number: Week number (1-4), used in error messages

    Raises:
        ContentValidationError: If a field is missing, an enum value is
            outside its closed set, or the bonus quest is malformed
    """
    day = quest.get("day")
    where = f"Week {week_number}, Day {day}"

    for field_name in REQUIRED_QUEST_FIELDS:
        if _is_blank(quest.get(field_name)):
            raise ContentValidationError(
                f"Validation Error: {where} - Missing required field: {field_name}"
            )

    if not isinstance(quest["day"], int) or isinstance(quest["day"], bool):
        raise ContentValidationError(f"Validation Error: {where} - day must be an integer")

    if not isinstance(quest["materials"], list):
        raise ContentValidationError(f"Validation Error: {where} - materials must be a list")

    if quest["setup_complexity"] not in SETUP_COMPLEXITIES:
        raise ContentValidationError(
            f"Validation Error: {where} - setup_complexity must be one of: {', '.join(SETUP_COMPLEXITIES)}"
        )

    if quest["hint_type"] not in HINT_TYPES:
        raise ContentValidationError(
            f"Validation Error: {where} - hint_type must be one of: {', '.join(HINT_TYPES)}"
        )

    bonus = quest.get("bonus_quest")
    if bonus is not None:
        for field_name in ("title", "description", "validation", "badge_icon", "badge_name"):
            if _is_blank(bonus.get(field_name)):
                raise ContentValidationError(
                    f"Validation Error: {where} - bonus_quest missing required field: {field_name}"
                )
        if bonus["validation"] not in BONUS_VALIDATION_MODES:
            raise ContentValidationError(
                f"Validation Error: {where} - bonus_quest.validation must be one of: {', '.join(BONUS_VALIDATION_MODES)}"
            )
        if bonus["validation"] == "code" and _is_blank(bonus.get("code")):
            raise ContentValidationError(
                f'Validation Error: {where} - bonus_quest with validation="code" must have a code'
            )
        if bonus["badge_icon"] not in BONUS_BADGE_ICONS:
            raise ContentValidationError(
                f"Validation Error: {where} - bonus_quest.badge_icon must be one of: {', '.join(BONUS_BADGE_ICONS)}"
            )


def validate_quest_collection(quests: list[dict]) -> None:
    """Validate the full set of quests.

    Checks:
        1. Exactly 24 quests exist
        2. Day numbers cover 1..24 with no gaps
        3. No duplicate day numbers
        4. Main quest and bonus quest codes are unique (case-insensitive)

    Raises:
        ContentValidationError: If any collection check fails
    """
    if len(quests) != TOTAL_DAYS:
        raise ContentValidationError(
            f"Validation Error: Expected {TOTAL_DAYS} quests, found {len(quests)}"
        )

    days = sorted(q["day"] for q in quests)
    for expected_day in range(1, TOTAL_DAYS + 1):
        if expected_day not in days:
            raise ContentValidationError(f"Validation Error: Missing day {expected_day}")

    if len(set(days)) != TOTAL_DAYS:
        duplicates = sorted({d for d in days if days.count(d) > 1})
        raise ContentValidationError(
            f"Validation Error: Duplicate day numbers found: {', '.join(str(d) for d in duplicates)}"
        )

    seen: dict[str, int] = {}
    for quest in quests:
        codes = [quest["code"]]
        bonus = quest.get("bonus_quest")
        if bonus and bonus.get("code"):
            codes.append(bonus["code"])
        for code in codes:
            normalized = code.strip().upper()
            if normalized in seen:
                raise ContentValidationError(
                    f"Validation Error: Duplicate code '{normalized}' on day {quest['day']} "
                    f"(already used on day {seen[normalized]}). All codes must be unique."
                )
            seen[normalized] = quest["day"]


def validate_file_references(quests: list[dict], available_files: Iterable[str]) -> None:
    """Validate that revealed and decryption-unlocked files exist in the file tree.

    Raises:
        ContentValidationError: If a quest references a file ID that is not
            present in the static content
    """
    available = set(available_files)

    for quest in quests:
        reveals = quest.get("reveals") or {}
        for file_id in reveals.get("files", []):
            if file_id not in available:
                raise ContentValidationError(
                    f"Validation Error: Day {quest['day']} reveals file '{file_id}' not found in static content"
                )

        challenge = quest.get("decryption_challenge") or {}
        for file_id in challenge.get("unlocks_files", []):
            if file_id not in available:
                raise ContentValidationError(
                    f"Validation Error: Day {quest['day']} decryption challenge unlocks file "
                    f"'{file_id}' not found in static content"
                )


def build_topic_graph(quests: list[dict]) -> dict[str, list[str]]:
    """Build the topic dependency graph.

    Every revealed topic is a node. A quest that both requires and reveals
    topics adds an edge from each required topic to each revealed topic.

    Raises:
        ContentValidationError: If a quest requires a topic that no quest reveals
    """
    graph: dict[str, list[str]] = {}

    for quest in quests:
        for topic in (quest.get("reveals") or {}).get("topics", []):
            graph.setdefault(topic, [])

    for quest in quests:
        required = (quest.get("requires") or {}).get("topics", [])
        for topic in required:
            if topic not in graph:
                raise ContentValidationError(
                    f"Validation Error: Day {quest['day']} requires topic '{topic}' which is never revealed"
                )
        revealed = (quest.get("reveals") or {}).get("topics", [])
        for required_topic in required:
            for revealed_topic in revealed:
                graph[required_topic].append(revealed_topic)

    return graph


def find_topic_cycle(graph: dict[str, list[str]]) -> list[str] | None:
    """Depth-first search with a recursion stack.

    Returns:
        The cycle as a list of topics (first and last entry equal), or None
    """
    visited: set[str] = set()
    stack: list[str] = []
    on_stack: set[str] = set()

    def visit(topic: str) -> list[str] | None:
        visited.add(topic)
        stack.append(topic)
        on_stack.add(topic)

        for neighbor in graph.get(topic, []):
            if neighbor in on_stack:
                return stack[stack.index(neighbor):] + [neighbor]
            if neighbor not in visited:
                cycle = visit(neighbor)
                if cycle:
                    return cycle

        stack.pop()
        on_stack.discard(topic)
        return None

    for topic in graph:
        if topic not in visited:
            cycle = visit(topic)
            if cycle:
                return cycle
    return None


def validate_topic_dependencies(quests: list[dict]) -> None:
    """Reject dangling topic requirements and circular topic dependencies.

    Raises:
        ContentValidationError: If a required topic is never revealed or the
            topic graph contains a cycle
    """
    graph = build_topic_graph(quests)
    cycle = find_topic_cycle(graph)
    if cycle:
        raise ContentValidationError(
            "Validation Error: Circular dependency detected in topic requirements involving "
            f"'{cycle[0]}' ({' -> '.join(cycle)})"
        )


def validate_story_arc_references(quests: list[dict], arc_ids: Iterable[str]) -> None:
    """Ensure every quest story_arc reference points to a defined arc."""
    valid = set(arc_ids)
    for quest in quests:
        ref = quest.get("story_arc")
        if ref is None:
            continue
        if ref.get("id") not in valid:
            raise ContentValidationError(
                f"Validation Error: Day {quest['day']} references unknown story arc '{ref.get('id')}'. "
                f"Valid story arc IDs: {', '.join(sorted(valid))}"
            )


def validate_story_arc_phases(quests: list[dict]) -> None:
    """Ensure every story arc has phases 1, 2, ..., N with no gaps or duplicates.

    Example valid:   [1, 2, 3, 4]
    Example invalid: [1, 3, 4] (missing 2), [1, 2, 2, 3] (duplicate 2)
    """
    phases: dict[str, list[int]] = {}
    for quest in quests:
        ref = quest.get("story_arc")
        if ref is not None:
            phases.setdefault(ref["id"], []).append(ref["phase"])

    for arc_id, arc_phases in phases.items():
        for index, phase in enumerate(sorted(arc_phases)):
            expected = index + 1
            if phase != expected:
                raise ContentValidationError(
                    f"Validation Error: Story arc '{arc_id}' has non-sequential phases. "
                    f"Expected phase {expected}, found phase {phase}"
                )


def validate_symbol_references(quests: list[dict], known_symbols: Iterable[str] | None = None) -> None:
    """Validate symbol clues and decryption challenges.

    Checks:
        1. Symbol clues name one of the known collectibles (when given)
        2. Every required symbol of a challenge is awarded by some quest
        3. correct_sequence indices are within bounds

    Raises:
        ContentValidationError: On the first invalid reference
    """
    known = set(known_symbols) if known_symbols is not None else None
    awarded: set[str] = set()

    for quest in quests:
        clue = quest.get("symbol_clue")
        if clue is None:
            continue
        symbol_id = clue.get("symbol_id")
        if known is not None and symbol_id not in known:
            raise ContentValidationError(
                f"Validation Error: Day {quest['day']} symbol clue '{symbol_id}' is not a known symbol"
            )
        awarded.add(symbol_id)

    for quest in quests:
        challenge = quest.get("decryption_challenge")
        if challenge is None:
            continue
        required = challenge.get("required_symbols", [])
        for symbol_id in required:
            if symbol_id not in awarded:
                raise ContentValidationError(
                    f"Validation Error: Day {quest['day']} decryption challenge requires symbol "
                    f"'{symbol_id}' which is never awarded by any quest"
                )

        max_index = len(required) - 1
        for position, index in enumerate(challenge.get("correct_sequence", [])):
            if index < 0 or index > max_index:
                raise ContentValidationError(
                    f"Validation Error: Day {quest['day']} decryption challenge correct_sequence[{position}] "
                    f"= {index} is out of bounds (max index is {max_index})"
                )


def validate_badge_definitions(badges: list[dict], quests: list[dict], arcs: list[dict]) -> None:
    """Validate badge definitions against quests and story arcs.

    Unknown condition tags are allowed through with a warning so new content
    can ship ahead of the evaluator; they simply never unlock.
    """
    quests_by_day = {q["day"]: q for q in quests}
    arc_ids = {a["id"] for a in arcs}
    badges_by_id: dict[str, dict] = {}

    for badge in badges:
        badge_id = badge.get("id")
        if _is_blank(badge_id):
            raise ContentValidationError("Validation Error: Badge missing id")
        if badge_id in badges_by_id:
            raise ContentValidationError(f"Validation Error: Duplicate badge id '{badge_id}'")
        badges_by_id[badge_id] = badge

        if badge.get("type") not in BADGE_TYPES:
            raise ContentValidationError(
                f"Validation Error: Badge '{badge_id}' type must be one of: {', '.join(BADGE_TYPES)}"
            )
        if badge.get("crisis") is not None and badge["crisis"] not in CRISIS_TYPES:
            raise ContentValidationError(
                f"Validation Error: Badge '{badge_id}' crisis must be one of: {', '.join(CRISIS_TYPES)}"
            )

        condition = badge.get("unlock_condition") or {}
        tag = condition.get("type")
        if tag == "bonusQuest":
            quest = quests_by_day.get(condition.get("day"))
            if quest is None or not quest.get("bonus_quest"):
                raise ContentValidationError(
                    f"Validation Error: Badge '{badge_id}' requires bonus quest on day "
                    f"{condition.get('day')} which does not exist"
                )
        elif tag == "storyArc":
            if condition.get("arc_id") not in arc_ids:
                raise ContentValidationError(
                    f"Validation Error: Badge '{badge_id}' references unknown story arc '{condition.get('arc_id')}'"
                )
        elif tag not in KNOWN_CONDITION_TAGS:
            logger.warning(f"Badge '{badge_id}' has unknown unlock condition type: {tag!r}")

    for arc in arcs:
        reward = arc.get("reward_badge_id")
        if reward is None:
            continue
        badge = badges_by_id.get(reward)
        if badge is None:
            raise ContentValidationError(
                f"Validation Error: Story arc '{arc['id']}' references badge '{reward}' which does not exist"
            )
        if badge["type"] != "storyArc":
            raise ContentValidationError(
                f"Validation Error: Story arc '{arc['id']}' references badge '{reward}' with type "
                f"'{badge['type']}', expected 'storyArc'"
            )
        condition = badge.get("unlock_condition") or {}
        if condition.get("type") == "storyArc" and condition.get("arc_id") != arc["id"]:
            raise ContentValidationError(
                f"Validation Error: Badge '{reward}' unlock condition names story arc "
                f"'{condition.get('arc_id')}', but it is referenced by story arc '{arc['id']}'"
            )


def validate_catalog(
    weeks: list[list[dict]],
    arcs: list[dict],
    badges: list[dict],
    available_files: Iterable[str],
    known_symbols: Iterable[str] | None = None,
) -> list[dict]:
    """Run every content check and return the merged quests sorted by day.

    Args:
        weeks: Four lists of raw quests, one per week file
        arcs: Raw story arc definitions
        badges: Raw badge definitions
        available_files: File IDs present in the static file tree
        known_symbols: Symbol IDs of the fixed collectible set

    Returns:
        All quests sorted by day

    Raises:
        ContentValidationError: On the first failed check
    """
    for week_number, week in enumerate(weeks, start=1):
        for quest in week:
            validate_quest(quest, week_number)

    quests = [quest for week in weeks for quest in week]
    validate_quest_collection(quests)

    arc_ids = [a["id"] for a in arcs]
    if len(set(arc_ids)) != len(arc_ids):
        raise ContentValidationError("Validation Error: Duplicate story arc ids")

    try:
        validate_file_references(quests, available_files)
        validate_topic_dependencies(quests)
        validate_story_arc_references(quests, arc_ids)
        validate_story_arc_phases(quests)
        validate_symbol_references(quests, known_symbols)
        validate_badge_definitions(badges, quests, arcs)
    except ContentValidationError as e:
        raise ContentValidationError(f"Multi-day narrative validation failed: {e}") from e

    return sorted(quests, key=lambda q: q["day"])
