"""Static content loading for NisseKomm.

Reads the weekly quest files, story arcs, badges and the static file tree
from the package data directory, runs every content check and returns an
immutable Catalog. The catalog is built once at startup and passed to the
engine; nothing here keeps module-level state.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from nissekomm.models import (
    AllDecryptionsSolvedCondition,
    AllSymbolsCollectedCondition,
    Badge,
    BonusQuest,
    BonusQuestCondition,
    DecryptionChallenge,
    FileNode,
    FileUnlockConditions,
    Quest,
    Requirements,
    Reveals,
    StoryArc,
    StoryArcCondition,
    StoryArcRef,
    Symbol,
    UnknownCondition,
    UnlockCondition,
)
from nissekomm.validators import validate_catalog

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"

WEEK_FILES = ("week1.json", "week2.json", "week3.json", "week4.json")

SYMBOL_COLOR_NAMES = {
    "heart": {"green": "Grønt hjerte", "red": "Rødt hjerte", "blue": "Blått hjerte"},
    "sun": {"green": "Grønn sol", "red": "Rød sol", "blue": "Blå sol"},
    "moon": {"green": "Grønn måne", "red": "Rød måne", "blue": "Blå måne"},
}

# The nine physical collectibles, 3 shapes x 3 colors
FIXED_SYMBOLS = tuple(
    Symbol(f"{shape}-{color}", shape, color, description)
    for shape, colors in SYMBOL_COLOR_NAMES.items()
    for color, description in colors.items()
)


@dataclass(frozen=True)
class Catalog:
    """Validated, read-only game content."""

    quests: tuple[Quest, ...]
    story_arcs: tuple[StoryArc, ...]
    badges: tuple[Badge, ...]
    file_tree: tuple[FileNode, ...] = ()
    symbols: tuple[Symbol, ...] = FIXED_SYMBOLS
    daily_alerts: tuple[dict, ...] = field(default=(), compare=False)
    system_metrics: tuple[dict, ...] = field(default=(), compare=False)
    progression_config: dict = field(default_factory=dict, compare=False)

    @property
    def total_days(self) -> int:
        return len(self.quests)

    @property
    def file_ids(self) -> frozenset[str]:
        return frozenset(node.file_id for node in iter_file_nodes(self.file_tree))

    def quest_for_day(self, day: int) -> Quest | None:
        for quest in self.quests:
            if quest.day == day:
                return quest
        return None

    def find_file(self, file_id: str) -> FileNode | None:
        for node in iter_file_nodes(self.file_tree):
            if node.file_id == file_id:
                return node
        return None

    def get_badge(self, badge_id: str) -> Badge | None:
        for badge in self.badges:
            if badge.badge_id == badge_id:
                return badge
        return None

    def get_story_arc(self, arc_id: str) -> StoryArc | None:
        for arc in self.story_arcs:
            if arc.arc_id == arc_id:
                return arc
        return None

    def arc_quests(self, arc_id: str) -> list[Quest]:
        """Quests belonging to an arc, ordered by phase."""
        quests = [q for q in self.quests if q.story_arc and q.story_arc.arc_id == arc_id]
        return sorted(quests, key=lambda q: q.story_arc.phase)

    def arcs_for_day(self, day: int) -> list[StoryArc]:
        quest = self.quest_for_day(day)
        if quest is None or quest.story_arc is None:
            return []
        arc = self.get_story_arc(quest.story_arc.arc_id)
        return [arc] if arc else []

    def decryption_challenges(self) -> dict[str, tuple[int, DecryptionChallenge]]:
        """Map challenge id to (day, challenge)."""
        return {
            q.decryption_challenge.challenge_id: (q.day, q.decryption_challenge)
            for q in self.quests
            if q.decryption_challenge is not None
        }

    def symbol_clue(self, symbol_id: str) -> Symbol | None:
        """The symbol a quest declares with exactly this id, if any."""
        for quest in self.quests:
            if quest.symbol_clue is not None and quest.symbol_clue.symbol_id == symbol_id:
                return quest.symbol_clue
        return None

    def all_modules(self) -> frozenset[str]:
        return frozenset(m for q in self.quests if q.reveals for m in q.reveals.modules)


def iter_file_nodes(nodes):
    """Yield every node of the file tree depth-first."""
    for node in nodes:
        yield node
        yield from iter_file_nodes(node.children)


def parse_unlock_condition(raw: dict | None) -> UnlockCondition:
    raw = raw or {}
    tag = raw.get("type")
    if tag == "bonusQuest":
        return BonusQuestCondition(day=int(raw["day"]))
    if tag == "storyArc":
        return StoryArcCondition(arc_id=raw["arc_id"])
    if tag == "allDecryptionsSolved":
        return AllDecryptionsSolvedCondition()
    if tag == "allSymbolsCollected":
        return AllSymbolsCollectedCondition()
    return UnknownCondition(tag=str(tag))


def parse_quest(raw: dict) -> Quest:
    bonus = raw.get("bonus_quest")
    reveals = raw.get("reveals")
    requires = raw.get("requires")
    arc = raw.get("story_arc")
    clue = raw.get("symbol_clue")
    challenge = raw.get("decryption_challenge")

    return Quest(
        day=raw["day"],
        title=raw["title"],
        code=raw["code"],
        setup_complexity=raw["setup_complexity"],
        hint_type=raw["hint_type"],
        mail_text=raw.get("mail_text", ""),
        diary_entry=raw.get("diary_entry", ""),
        mischief=raw.get("mischief", ""),
        physical_hint=raw.get("physical_hint", ""),
        best_room=raw.get("best_room", ""),
        materials=tuple(raw.get("materials", [])),
        event=raw.get("event"),
        bonus_quest=BonusQuest(
            title=bonus["title"],
            description=bonus["description"],
            validation=bonus["validation"],
            badge_icon=bonus["badge_icon"],
            badge_name=bonus["badge_name"],
            code=bonus.get("code"),
        ) if bonus else None,
        reveals=Reveals(
            files=tuple(reveals.get("files", [])),
            topics=tuple(reveals.get("topics", [])),
            modules=tuple(reveals.get("modules", [])),
        ) if reveals else None,
        requires=Requirements(
            topics=tuple(requires.get("topics", [])),
            completed_days=tuple(requires.get("completed_days", [])),
        ) if requires else None,
        story_arc=StoryArcRef(arc_id=arc["id"], phase=arc["phase"]) if arc else None,
        symbol_clue=Symbol(
            symbol_id=clue["symbol_id"],
            symbol_icon=clue["symbol_icon"],
            symbol_color=clue["symbol_color"],
            description=clue["description"],
        ) if clue else None,
        decryption_challenge=DecryptionChallenge(
            challenge_id=challenge["challenge_id"],
            required_symbols=tuple(challenge["required_symbols"]),
            correct_sequence=tuple(challenge["correct_sequence"]),
            unlocks_files=tuple(challenge.get("unlocks_files", [])),
            message_when_solved=challenge.get("message_when_solved", "Dekryptering fullført!"),
        ) if challenge else None,
        system_status_override=raw.get("system_status_override"),
        alert_override=raw.get("alert_override"),
    )


def parse_story_arc(raw: dict) -> StoryArc:
    return StoryArc(
        arc_id=raw["id"],
        name=raw["name"],
        description=raw.get("description", ""),
        first_unlock_day=raw.get("first_unlock_day", 1),
        reward_badge_id=raw.get("reward_badge_id"),
        metric_label=raw.get("metric_label", "Fremdrift"),
        inverted_metric=raw.get("inverted_metric", False),
    )


def parse_badge(raw: dict) -> Badge:
    return Badge(
        badge_id=raw["id"],
        name=raw["name"],
        icon=raw.get("icon", ""),
        type=raw["type"],
        unlock_condition=parse_unlock_condition(raw.get("unlock_condition")),
        description=raw.get("description", ""),
        crisis=raw.get("crisis"),
    )


def parse_file_node(raw: dict) -> FileNode:
    conditions = raw.get("unlock_conditions")
    return FileNode(
        file_id=raw["id"],
        name=raw.get("name", raw["id"]),
        type=raw.get("type", "file"),
        children=tuple(parse_file_node(child) for child in raw.get("children", [])),
        unlock_conditions=FileUnlockConditions(
            after_day=conditions.get("after_day"),
            requires_topics=tuple(conditions.get("requires_topics", [])),
        ) if conditions else None,
    )


def _read_json(path: Path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def build_catalog(
    weeks: list[list[dict]],
    arcs: list[dict],
    badges: list[dict],
    static_content: dict,
) -> Catalog:
    """Validate raw content and turn it into a Catalog.

    Raises:
        ContentValidationError: If any content check fails
    """
    file_tree = tuple(parse_file_node(node) for node in static_content.get("files", []))
    file_ids = [node.file_id for node in iter_file_nodes(file_tree)]

    raw_quests = validate_catalog(
        weeks,
        arcs,
        badges,
        file_ids,
        known_symbols=[s.symbol_id for s in FIXED_SYMBOLS],
    )

    return Catalog(
        quests=tuple(parse_quest(q) for q in raw_quests),
        story_arcs=tuple(parse_story_arc(a) for a in arcs),
        badges=tuple(parse_badge(b) for b in badges),
        file_tree=file_tree,
        daily_alerts=tuple(static_content.get("daily_alerts", [])),
        system_metrics=tuple(static_content.get("system_metrics", [])),
        progression_config=static_content.get("progression_config", {}),
    )


def load_catalog(data_dir: Path | str | None = None) -> Catalog:
    """Load and validate all static content from disk.

    Args:
        data_dir: Directory holding quests/, story_arcs.json, badges.json and
            static_content.json (defaults to the packaged data)

    Returns:
        The validated Catalog

    Raises:
        ContentValidationError: If any content check fails
    """
    data_dir = Path(data_dir) if data_dir else DATA_DIR

    weeks = [_read_json(data_dir / "quests" / name) for name in WEEK_FILES]
    arcs = _read_json(data_dir / "story_arcs.json")
    badges = _read_json(data_dir / "badges.json")
    static_content = _read_json(data_dir / "static_content.json")

    catalog = build_catalog(weeks, arcs, badges, static_content)
    logger.info(
        f"Loaded catalog: {len(catalog.quests)} quests, {len(catalog.story_arcs)} story arcs, "
        f"{len(catalog.badges)} badges"
    )
    return catalog
