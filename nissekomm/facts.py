"""Typed access to the persisted game facts.

FactStore is the only writer of game facts. It sits on top of a
StorageAdapter, names every key, and bumps a revision counter on each write
so derived state can be cached until the next change.
"""

import json
import logging
from typing import Any

from nissekomm.models import CRISIS_TYPES, EarnedBadge, SubmittedCode, Symbol

logger = logging.getLogger(__name__)

KEY_PREFIX = "nissekomm-"

EXPORT_VERSION = 1


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _list_of(check):
    return lambda value: isinstance(value, list) and all(check(item) for item in value)


def _dict_of(check):
    return lambda value: isinstance(value, dict) and all(
        isinstance(k, str) and check(v) for k, v in value.items()
    )


def _has_fields(**checks):
    return lambda value: isinstance(value, dict) and all(
        name in value and check(value[name]) for name, check in checks.items()
    )


def _str(value) -> bool:
    return isinstance(value, str)


def _bool(value) -> bool:
    return isinstance(value, bool)


# category -> (default, shape check used on import)
FACT_CATEGORIES = {
    "codes": ([], _list_of(_has_fields(code=_str, date=_str))),
    "collected-symbols": ([], _list_of(_has_fields(
        symbol_id=_str, symbol_icon=_str, symbol_color=_str, description=_str))),
    "solved-decryptions": ([], _list_of(_str)),
    "decryption-attempts": ({}, _dict_of(_is_int)),
    "failed-attempts": ({}, _dict_of(_is_int)),
    "earned-badges": ([], _list_of(_has_fields(badge_id=_str, timestamp=_is_int))),
    "bonus-badges": ({}, _dict_of(_str)),
    "unlocked-files": ([], _list_of(_str)),
    "topic-unlocks": ({}, _dict_of(_is_int)),
    "unlocked-modules": ([], _list_of(_str)),
    "crisis-status": ({}, _dict_of(_bool)),
    "santa-letters": ([], _list_of(_has_fields(day=_is_int, content=_str))),
    "viewed-emails": ([], _list_of(_is_int)),
    "viewed-bonus-emails": ([], _list_of(_is_int)),
    "nissenet-last-visit": (0, _is_int),
    "diary-last-read": (0, _is_int),
}


def fact_key(category: str) -> str:
    return f"{KEY_PREFIX}{category}"


class FactStore:
    """Named game facts over a StorageAdapter."""

    def __init__(self, storage):
        self.storage = storage
        self.revision = 0

    # Generic access

    def _read(self, category: str):
        default, _ = FACT_CATEGORIES[category]
        return self.storage.get(fact_key(category), default)

    def _write(self, category: str, value: Any) -> None:
        self.storage.set(fact_key(category), value)
        self.revision += 1

    def _add(self, category: str, item: Any) -> bool:
        added = self.storage.add_to_set(fact_key(category), item)
        if added:
            self.revision += 1
        return added

    def _contains(self, category: str, item: Any) -> bool:
        return self.storage.set_contains(fact_key(category), item)

    # Submitted codes

    def get_submitted_codes(self) -> list[SubmittedCode]:
        return [SubmittedCode(code=c["code"], date=c["date"]) for c in self._read("codes")]

    def add_submitted_code(self, code: str, date: str) -> bool:
        """Log a code. A code already in the log is not added again."""
        codes = self._read("codes")
        if any(c["code"] == code for c in codes):
            return False
        codes.append({"code": code, "date": date})
        self._write("codes", codes)
        return True

    # Failed attempts per day

    def get_failed_attempts(self, day: int) -> int:
        return self._read("failed-attempts").get(str(day), 0)

    def increment_failed_attempts(self, day: int) -> int:
        attempts = self._read("failed-attempts")
        attempts[str(day)] = attempts.get(str(day), 0) + 1
        self._write("failed-attempts", attempts)
        return attempts[str(day)]

    def reset_failed_attempts(self, day: int) -> None:
        attempts = self._read("failed-attempts")
        if str(day) in attempts:
            del attempts[str(day)]
            self._write("failed-attempts", attempts)

    # Symbols

    def get_collected_symbols(self) -> list[Symbol]:
        return [
            Symbol(s["symbol_id"], s["symbol_icon"], s["symbol_color"], s["description"])
            for s in self._read("collected-symbols")
        ]

    def has_symbol(self, symbol_id: str) -> bool:
        return any(s["symbol_id"] == symbol_id for s in self._read("collected-symbols"))

    def add_collected_symbol(self, symbol: Symbol) -> bool:
        if self.has_symbol(symbol.symbol_id):
            return False
        return self._add("collected-symbols", {
            "symbol_id": symbol.symbol_id,
            "symbol_icon": symbol.symbol_icon,
            "symbol_color": symbol.symbol_color,
            "description": symbol.description,
        })

    def clear_collected_symbols(self) -> None:
        self._write("collected-symbols", [])

    # Decryption

    def get_solved_decryptions(self) -> list[str]:
        return self._read("solved-decryptions")

    def is_decryption_solved(self, challenge_id: str) -> bool:
        return self._contains("solved-decryptions", challenge_id)

    def add_solved_decryption(self, challenge_id: str) -> bool:
        return self._add("solved-decryptions", challenge_id)

    def get_decryption_attempts(self, challenge_id: str) -> int:
        return self._read("decryption-attempts").get(challenge_id, 0)

    def increment_decryption_attempts(self, challenge_id: str) -> int:
        attempts = self._read("decryption-attempts")
        attempts[challenge_id] = attempts.get(challenge_id, 0) + 1
        self._write("decryption-attempts", attempts)
        return attempts[challenge_id]

    # Badges

    def get_earned_badges(self) -> list[EarnedBadge]:
        return [EarnedBadge(b["badge_id"], b["timestamp"]) for b in self._read("earned-badges")]

    def is_badge_earned(self, badge_id: str) -> bool:
        return any(b["badge_id"] == badge_id for b in self._read("earned-badges"))

    def add_earned_badge(self, badge_id: str, timestamp: int) -> bool:
        if self.is_badge_earned(badge_id):
            return False
        return self._add("earned-badges", {"badge_id": badge_id, "timestamp": timestamp})

    def clear_earned_badges(self) -> None:
        self._write("earned-badges", [])
        self._write("bonus-badges", {})

    def get_bonus_badge_days(self) -> set[int]:
        return {int(day) for day in self._read("bonus-badges")}

    def has_bonus_badge(self, day: int) -> bool:
        return str(day) in self._read("bonus-badges")

    def add_bonus_badge(self, day: int, awarded_at: str) -> bool:
        badges = self._read("bonus-badges")
        if str(day) in badges:
            return False
        badges[str(day)] = awarded_at
        self._write("bonus-badges", badges)
        return True

    # Content unlocks

    def get_unlocked_files(self) -> set[str]:
        return set(self._read("unlocked-files"))

    def is_file_unlocked(self, file_id: str) -> bool:
        return self._contains("unlocked-files", file_id)

    def add_unlocked_file(self, file_id: str) -> bool:
        return self._add("unlocked-files", file_id)

    def get_unlocked_topics(self) -> dict[str, int]:
        return self._read("topic-unlocks")

    def unlock_topic(self, topic: str, day: int) -> bool:
        """Record a topic with the day that unlocked it. The first day wins."""
        topics = self._read("topic-unlocks")
        if topic in topics:
            return False
        topics[topic] = day
        self._write("topic-unlocks", topics)
        return True

    def get_unlocked_modules(self) -> set[str]:
        return set(self._read("unlocked-modules"))

    def is_module_unlocked(self, module_id: str) -> bool:
        return self._contains("unlocked-modules", module_id)

    def unlock_module(self, module_id: str) -> bool:
        return self._add("unlocked-modules", module_id)

    # Crises

    def get_crisis_status(self) -> dict[str, bool]:
        stored = self._read("crisis-status")
        return {crisis: bool(stored.get(crisis, False)) for crisis in CRISIS_TYPES}

    def is_crisis_resolved(self, crisis: str) -> bool:
        return self.get_crisis_status().get(crisis, False)

    def resolve_crisis(self, crisis: str) -> None:
        status = self.get_crisis_status()
        if status.get(crisis):
            return
        status[crisis] = True
        self._write("crisis-status", status)

    # Santa letters

    def get_santa_letters(self) -> list[dict]:
        return self._read("santa-letters")

    def save_santa_letters(self, letters: list[dict]) -> None:
        self._write("santa-letters", sorted(letters, key=lambda letter: letter["day"]))

    # Read tracking

    def get_viewed_emails(self, bonus: bool = False) -> set[int]:
        return set(self._read("viewed-bonus-emails" if bonus else "viewed-emails"))

    def mark_email_viewed(self, day: int, bonus: bool = False) -> bool:
        return self._add("viewed-bonus-emails" if bonus else "viewed-emails", day)

    def get_nissenet_last_visit(self) -> int:
        return self._read("nissenet-last-visit")

    def set_nissenet_last_visit(self, day: int) -> None:
        self._write("nissenet-last-visit", day)

    def get_diary_last_read(self) -> int:
        return self._read("diary-last-read")

    def set_diary_last_read(self, day: int) -> None:
        self._write("diary-last-read", day)

    # Whole-store operations

    def clear_all(self) -> None:
        """Remove every game fact."""
        for category in FACT_CATEGORIES:
            self.storage.remove(fact_key(category))
        self.revision += 1

    def export_data(self) -> str:
        """Serialize every fact category to a JSON document."""
        payload = {
            "version": EXPORT_VERSION,
            "facts": {category: self._read(category) for category in FACT_CATEGORIES},
        }
        return json.dumps(payload, ensure_ascii=False, indent=2)

    def import_data(self, text: str) -> bool:
        """Restore facts from an export_data() document.

        Every recognised category is checked before anything is written, so a
        malformed document leaves the store untouched. Unknown categories are
        ignored.

        Returns:
            True if the document was imported, False if it was rejected
        """
        try:
            payload = json.loads(text)
        except (TypeError, json.JSONDecodeError) as e:
            logger.warning(f"Rejected game state import: invalid JSON ({e})")
            return False

        if not isinstance(payload, dict) or payload.get("version") != EXPORT_VERSION:
            logger.warning("Rejected game state import: missing or unsupported version")
            return False

        facts = payload.get("facts")
        if not isinstance(facts, dict):
            logger.warning("Rejected game state import: 'facts' must be an object")
            return False

        accepted = {}
        for category, value in facts.items():
            if category not in FACT_CATEGORIES:
                logger.warning(f"Ignoring unknown fact category on import: {category}")
                continue
            _, check = FACT_CATEGORIES[category]
            if not check(value):
                logger.warning(f"Rejected game state import: malformed '{category}'")
                return False
            accepted[category] = value

        for category, value in accepted.items():
            self._write(category, value)

        logger.info(f"Imported {len(accepted)} fact categories")
        return True
