"""Keyword-based concept extraction.

Maps free text to concept ids by case-insensitive substring matching
against a table of trigger phrases per concept. Trigger lists may mix
scripts (Japanese and English phrases side by side). For each concept,
scanning stops at the first phrase that matches.

An optional fuzzy pass (rapidfuzz) can rescue misspelled phrases for
concepts that had no exact hit. It is off by default.

Every extractor owns its keyword table, so several configurations can
coexist (e.g. in tests).

Usage:
    from ontorag.engine.concept_extractor import ConceptExtractor
    extractor = ConceptExtractor()
    extractor.extract("for文について教えて")  # ["loops"]
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence

from loguru import logger
from rapidfuzz import fuzz, process

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_CONCEPT_KEYWORDS: dict[str, list[str]] = {
    "programming": ["プログラミング", "プログラム", "コーディング", "coding"],
    "variables": ["変数", "variable", "var", "let", "const"],
    "functions": ["関数", "function", "メソッド", "method"],
    "loops": ["ループ", "for", "while", "繰り返し", "iteration"],
    "conditionals": ["条件分岐", "if", "else", "条件", "conditional"],
    "data-structures": ["データ構造", "data structure", "配列", "array"],
    "algorithms": ["アルゴリズム", "algorithm", "計算手法"],
    "recursion": ["再帰", "recursion", "再帰的"],
    "object-oriented": ["オブジェクト指向", "OOP", "クラス", "インスタンス"],
    "inheritance": ["継承", "inheritance", "親クラス", "子クラス"],
}

# Minimum score (0-100) for fuzzy matching to accept a phrase
FUZZY_THRESHOLD = 85

# Short phrases ("if", "var") fuzzy-match far too much
MIN_FUZZY_PHRASE_LENGTH = 5

_TOKEN_RE = re.compile(r"\w+")


class ConceptExtractor:
    """Extract concept ids from text using an owned keyword table."""

    def __init__(
        self,
        keywords: Mapping[str, Sequence[str]] | None = None,
        *,
        fuzzy: bool = False,
        fuzzy_threshold: int = FUZZY_THRESHOLD,
    ) -> None:
        source = DEFAULT_CONCEPT_KEYWORDS if keywords is None else keywords
        self._keywords: dict[str, list[str]] = {cid: list(phrases) for cid, phrases in source.items()}
        self.fuzzy = fuzzy
        self.fuzzy_threshold = fuzzy_threshold

    @property
    def keywords(self) -> dict[str, list[str]]:
        """Copy of the keyword table."""
        return {cid: list(phrases) for cid, phrases in self._keywords.items()}

    def copy(self) -> ConceptExtractor:
        """Independent extractor with the same table and settings."""
        return ConceptExtractor(self._keywords, fuzzy=self.fuzzy, fuzzy_threshold=self.fuzzy_threshold)

    def add_keywords(self, concept_id: str, phrases: Iterable[str]) -> None:
        """Append trigger phrases to a concept, creating the entry if needed.

        This changes every later :meth:`extract` call on this extractor;
        treat it as configuration rather than a per-query operation.
        """
        self._keywords.setdefault(concept_id, []).extend(phrases)

    def extract(self, text: str) -> list[str]:
        """Return the concept ids mentioned in *text*.

        Order follows the keyword table; each id appears at most once.
        Empty or unmatched text yields an empty list.
        """
        if not text:
            return []

        lower_text = text.lower()
        tokens: list[str] | None = None
        found: list[str] = []

        for concept_id, phrases in self._keywords.items():
            if any(phrase.lower() in lower_text for phrase in phrases):
                found.append(concept_id)
                continue

            if self.fuzzy:
                if tokens is None:
                    tokens = _TOKEN_RE.findall(lower_text)
                if self._fuzzy_match(tokens, phrases):
                    found.append(concept_id)

        return found

    def _fuzzy_match(self, tokens: list[str], phrases: Sequence[str]) -> bool:
        """True if any long-enough phrase closely matches a single token."""
        if not tokens:
            return False
        for phrase in phrases:
            if len(phrase) < MIN_FUZZY_PHRASE_LENGTH or " " in phrase:
                continue
            match = process.extractOne(
                phrase.lower(),
                tokens,
                scorer=fuzz.ratio,
                score_cutoff=self.fuzzy_threshold,
            )
            if match:
                logger.debug("Fuzzy keyword hit: '{}' ~ '{}' ({:.0f})", phrase, match[0], match[1])
                return True
        return False

    def analyze_text(self, text: str) -> list[str]:
        """Extract concepts and log the result (debug helper)."""
        preview = text[:100] + ("..." if len(text) > 100 else "")
        concepts = self.extract(text)
        logger.info("Concept analysis — input: '{}'", preview)
        logger.info("Concept analysis — extracted: {}", concepts)
        return concepts
