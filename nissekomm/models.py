"""Domain types for the NisseKomm progression engine.

Static content (quests, story arcs, badges) is parsed into frozen
dataclasses once at startup. Runtime outcomes are returned as small result
objects instead of exceptions so the presentation layer can render the
message directly.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


SETUP_COMPLEXITIES = ("simple", "moderate", "advanced")

HINT_TYPES = (
    "written",
    "visual",
    "hidden_object",
    "arrangement",
    "trail",
    "sound",
    "combination",
)

BONUS_BADGE_ICONS = ("coin", "heart", "zap", "trophy", "gift", "star")

BONUS_VALIDATION_MODES = ("code", "parentApproval")

BADGE_TYPES = ("bonusQuest", "storyArc", "decryption", "collection")

CRISIS_TYPES = ("antenna", "inventory")


class QuestStatus(Enum):
    """Per-day state of the quest state machine."""

    LOCKED = "locked"
    AVAILABLE = "available"
    COMPLETED = "completed"


@dataclass(frozen=True)
class BonusQuest:
    title: str
    description: str
    validation: str
    badge_icon: str
    badge_name: str
    code: str | None = None


@dataclass(frozen=True)
class Reveals:
    files: tuple[str, ...] = ()
    topics: tuple[str, ...] = ()
    modules: tuple[str, ...] = ()


@dataclass(frozen=True)
class Requirements:
    topics: tuple[str, ...] = ()
    completed_days: tuple[int, ...] = ()


@dataclass(frozen=True)
class StoryArcRef:
    arc_id: str
    phase: int


@dataclass(frozen=True)
class Symbol:
    """One of the nine physical collectibles (3 shapes x 3 colors)."""

    symbol_id: str
    symbol_icon: str
    symbol_color: str
    description: str


@dataclass(frozen=True)
class DecryptionChallenge:
    challenge_id: str
    required_symbols: tuple[str, ...]
    correct_sequence: tuple[int, ...]
    unlocks_files: tuple[str, ...] = ()
    message_when_solved: str = "Dekryptering fullført!"


@dataclass(frozen=True)
class Quest:
    """A single calendar day's quest.

    Only the structural fields matter to the engine; narrative text is kept
    so the presentation layer can show it.
    """

    day: int
    title: str
    code: str
    setup_complexity: str
    hint_type: str
    mail_text: str = ""
    diary_entry: str = ""
    mischief: str = ""
    physical_hint: str = ""
    best_room: str = ""
    materials: tuple[str, ...] = ()
    event: str | None = None
    bonus_quest: BonusQuest | None = None
    reveals: Reveals | None = None
    requires: Requirements | None = None
    story_arc: StoryArcRef | None = None
    symbol_clue: Symbol | None = None
    decryption_challenge: DecryptionChallenge | None = None
    system_status_override: dict | None = field(default=None, compare=False)
    alert_override: dict | None = field(default=None, compare=False)


@dataclass(frozen=True)
class StoryArc:
    arc_id: str
    name: str
    description: str = ""
    first_unlock_day: int = 1
    reward_badge_id: str | None = None
    metric_label: str = "Fremdrift"
    inverted_metric: bool = False


@dataclass(frozen=True)
class FileUnlockConditions:
    after_day: int | None = None
    requires_topics: tuple[str, ...] = ()


@dataclass(frozen=True)
class FileNode:
    """A node in the in-fiction file tree (folder or file)."""

    file_id: str
    name: str
    type: str = "file"
    children: tuple["FileNode", ...] = ()
    unlock_conditions: FileUnlockConditions | None = None


# Badge unlock conditions. The set is closed: the evaluator in
# nissekomm.badges and the validator both dispatch on these classes, and
# anything the parser does not recognise becomes UnknownCondition.

@dataclass(frozen=True)
class BonusQuestCondition:
    day: int


@dataclass(frozen=True)
class StoryArcCondition:
    arc_id: str


@dataclass(frozen=True)
class AllDecryptionsSolvedCondition:
    pass


@dataclass(frozen=True)
class AllSymbolsCollectedCondition:
    pass


@dataclass(frozen=True)
class UnknownCondition:
    tag: str


UnlockCondition = Union[
    BonusQuestCondition,
    StoryArcCondition,
    AllDecryptionsSolvedCondition,
    AllSymbolsCollectedCondition,
    UnknownCondition,
]


@dataclass(frozen=True)
class Badge:
    badge_id: str
    name: str
    icon: str
    type: str
    unlock_condition: UnlockCondition
    description: str = ""
    crisis: str | None = None


@dataclass(frozen=True)
class EarnedBadge:
    badge_id: str
    timestamp: int


@dataclass(frozen=True)
class SubmittedCode:
    code: str
    date: str


@dataclass(frozen=True)
class Alert:
    text: str
    type: str
    timestamp: str
    day: int = 0


@dataclass(frozen=True)
class SystemMetric:
    name: str
    value: int
    max: int
    status: str


@dataclass(frozen=True)
class GameState:
    """Projection of the fact log onto the catalog.

    Never mutated and never persisted. Two derivations over the same facts
    compare equal.
    """

    completed_days: frozenset[int] = frozenset()
    submitted_codes: tuple[str, ...] = ()
    completed_bonus_quests: frozenset[int] = frozenset()
    earned_badges: tuple[EarnedBadge, ...] = ()
    unlocked_modules: frozenset[str] = frozenset()
    unlocked_topics: tuple[tuple[str, int], ...] = ()
    resolved_crises: tuple[tuple[str, bool], ...] = (("antenna", False), ("inventory", False))
    completed_arcs: frozenset[str] = frozenset()
    collected_symbols: frozenset[str] = frozenset()
    solved_decryptions: frozenset[str] = frozenset()

    @property
    def topics(self) -> dict[str, int]:
        return dict(self.unlocked_topics)

    @property
    def crises(self) -> dict[str, bool]:
        return dict(self.resolved_crises)


@dataclass(frozen=True)
class QuestResult:
    success: bool
    is_new_completion: bool
    message: str


@dataclass(frozen=True)
class BadgeAwardResult:
    success: bool
    badge: Badge | None
    is_new_award: bool
    message: str


@dataclass(frozen=True)
class SymbolCollectResult:
    success: bool
    message: str
    symbol: Symbol | None = None


@dataclass(frozen=True)
class DecryptionResult:
    correct: bool
    message: str
    correct_count: int
