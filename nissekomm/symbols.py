"""Symbol collection and decryption challenges.

Nine physical symbol cards (3 shapes x 3 colors) are hidden around the house
and scanned or typed in by code. Collected symbols are then arranged in the
decryption challenges, which are scored by position.
"""

import logging

from nissekomm.models import DecryptionResult, Symbol, SymbolCollectResult

logger = logging.getLogger(__name__)


class SymbolSystem:
    """Symbol collection and decryption scoring over a FactStore."""

    def __init__(self, catalog, facts):
        self.catalog = catalog
        self.facts = facts

    def get_all_symbols(self) -> list[Symbol]:
        return list(self.catalog.symbols)

    def get_collected_symbols(self) -> list[Symbol]:
        return self.facts.get_collected_symbols()

    def has_symbol(self, symbol_id: str) -> bool:
        return self.facts.has_symbol(symbol_id)

    def collect_symbol_by_code(self, code: str) -> SymbolCollectResult:
        """
        Collect the symbol a quest declares with this exact code.

        Args:
            code: Symbol id from the QR card, e.g. "heart-green"

        Returns:
            SymbolCollectResult. An unknown code fails without a symbol; an
            already collected symbol fails but still carries the symbol.
        """
        symbol = self.catalog.symbol_clue((code or "").strip())
        if symbol is None:
            return SymbolCollectResult(False, "Ugyldig symbolkode. Prøv igjen!")

        if self.facts.has_symbol(symbol.symbol_id):
            return SymbolCollectResult(False, "Du har allerede samlet dette symbolet!", symbol)

        self.facts.add_collected_symbol(symbol)
        logger.info(f"Symbol collected: {symbol.symbol_id}")
        return SymbolCollectResult(True, f"✓ Symbol funnet!\n\n{symbol.description}", symbol)

    def add_collected_symbol(self, symbol: Symbol) -> bool:
        """Parent manual add, for lost or unreadable cards. No validation."""
        return self.facts.add_collected_symbol(symbol)

    def clear_collected_symbols(self) -> None:
        self.facts.clear_collected_symbols()

    def validate_decryption_sequence(self, challenge_id: str, user_sequence: list[int]) -> DecryptionResult:
        """
        Score an arrangement of symbols against a challenge.

        Scoring is positional: position i counts when user_sequence[i]
        equals correct_sequence[i]. A sequence of the wrong length scores 0.
        Solving unlocks the challenge's files.

        Args:
            challenge_id: Decryption challenge id
            user_sequence: Indices into the challenge's required_symbols

        Returns:
            DecryptionResult with the number of correctly placed symbols
        """
        entry = self.catalog.decryption_challenges().get(challenge_id)
        if entry is None:
            return DecryptionResult(False, "Ukjent dekrypteringsutfordring", 0)

        _, challenge = entry
        target = list(challenge.correct_sequence)

        if self.facts.is_decryption_solved(challenge_id):
            return DecryptionResult(True, "Allerede løst!", len(target))

        user_sequence = list(user_sequence)
        if len(user_sequence) != len(target):
            self.facts.increment_decryption_attempts(challenge_id)
            return DecryptionResult(False, "Feil antall symboler", 0)

        correct_count = sum(1 for given, expected in zip(user_sequence, target) if given == expected)

        if correct_count == len(target):
            self.facts.add_solved_decryption(challenge_id)
            for file_id in challenge.unlocks_files:
                self.facts.add_unlocked_file(file_id)
            logger.info(f"Decryption challenge solved: {challenge_id}")
            return DecryptionResult(True, challenge.message_when_solved, correct_count)

        self.facts.increment_decryption_attempts(challenge_id)
        return DecryptionResult(False, f"{correct_count} av {len(target)} symboler korrekt plassert!", correct_count)

    def get_decryption_attempts(self, challenge_id: str) -> int:
        return self.facts.get_decryption_attempts(challenge_id)

    def is_decryption_solved(self, challenge_id: str) -> bool:
        return self.facts.is_decryption_solved(challenge_id)

    def get_decryption_progress(self) -> dict:
        challenge_ids = set(self.catalog.decryption_challenges())
        solved = challenge_ids & set(self.facts.get_solved_decryptions())
        return {
            "solved": len(solved),
            "total": len(challenge_ids),
            "all_solved": bool(challenge_ids) and solved == challenge_ids,
        }
