"""
Atomic fact extractor - fast local decomposition of memory text.

Splits a memory into clauses and types each clause with precompiled cue
patterns. No network calls, so it is cheap enough to run inline on the
chat path; deeper AI-based extraction lives outside this core.
"""

import re
import time
from datetime import datetime

from wellmind.models.facts import AtomicFact, FactType
from wellmind.utils.id_generator import generate_fact_id
from wellmind.utils.logger import get_logger

logger = get_logger(__name__)

_CLAUSE_SPLIT = re.compile(r"[.!?;\n]+|,\s*(?:but|however)\s+|\s+but\s+|\s+however,?\s+")

# Checked in order; the first pattern that matches a clause decides its type
_FACT_PATTERNS: list[tuple[FactType, re.Pattern, float]] = [
    (
        FactType.CONSTRAINT,
        re.compile(
            r"\b(?:cannot|can't|cant|can not|avoid|allergic|allergy|allergies|intolerant|"
            r"intolerance|restrict(?:ed|ion)?|limit(?:ed)?|not allowed|must not|shouldn't|"
            r"should not|never eat|don't eat|do not eat)\b"
        ),
        0.85,
    ),
    (
        FactType.GOAL,
        re.compile(
            r"\b(?:want to|wanna|goal|target|aim(?:ing)? to|trying to|try to|plan(?:ning)? to|"
            r"hope to|would like to|working (?:on|toward|towards)|training for)\b"
        ),
        0.9,
    ),
    (
        FactType.PREFERENCE,
        re.compile(r"\b(?:prefer|like|love|enjoy|hate|dislike|favou?rite|fan of|can't stand)\b"),
        0.8,
    ),
    (
        FactType.EVENT,
        re.compile(
            r"\b(?:yesterday|tomorrow|tonight|last (?:week|month|night|year)|"
            r"next (?:week|month|year)|on (?:monday|tuesday|wednesday|thursday|friday|"
            r"saturday|sunday)|appointment|scheduled|birthday|surgery|race day)\b"
        ),
        0.75,
    ),
    (
        FactType.EXPERIENCE,
        re.compile(
            r"\b(?:did|went|tried|completed|ran|ate|had|visited|finished|started|felt|"
            r"walked|swam|cooked|slept)\b"
        ),
        0.7,
    ),
    (
        FactType.KNOWLEDGE,
        re.compile(r"\b(?:i am|i'm|im|my|i have|i've|i work|i live)\b"),
        0.6,
    ),
]

_CERTAIN = re.compile(r"\b(?:always|never)\b")
_SPECIFIC = re.compile(r"\b(?:specifically|exactly|definitely)\b")
_HEDGED = re.compile(r"\b(?:maybe|probably|perhaps|might)\b")
_OPINION = re.compile(r"\b(?:think|believe|guess)\b")

MAX_FACT_LENGTH = 120


class AtomicFactExtractor:
    """
    Deterministic pattern-based atomic fact extraction.

    The same content always yields facts with the same types, contents and
    confidences; only IDs and timestamps differ between calls.
    """

    def __init__(self, max_facts_per_memory: int = 5):
        """
        Initialize extractor.

        Args:
            max_facts_per_memory: Upper bound on facts returned per memory
        """
        self.max_facts_per_memory = max_facts_per_memory

    def extract_atomic_facts(self, memory_id: str, content: str) -> list[AtomicFact]:
        """
        Decompose memory content into typed atomic facts.

        Args:
            memory_id: Owning memory ID
            content: Memory text

        Returns:
            Facts in clause order (empty for empty or unparseable content)
        """
        if not content or not content.strip():
            return []

        start_time = time.perf_counter()
        facts: list[AtomicFact] = []
        seen: set[tuple[FactType, str]] = set()
        now = datetime.now()

        for clause in self.split_clauses(content):
            classified = self._classify(clause)
            if classified is None:
                continue

            fact_type, base_confidence = classified
            text = clause[:MAX_FACT_LENGTH]
            key = (fact_type, text.lower())
            if key in seen:
                continue
            seen.add(key)

            facts.append(
                AtomicFact(
                    id=generate_fact_id(),
                    memory_entry_id=memory_id,
                    fact_type=fact_type,
                    content=text,
                    confidence=self.score_confidence(clause, base_confidence),
                    extracted_at=now,
                )
            )
            if len(facts) >= self.max_facts_per_memory:
                break

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"Extracted {len(facts)} atomic facts for {memory_id} in {elapsed_ms:.2f}ms")

        return facts

    @staticmethod
    def split_clauses(content: str) -> list[str]:
        """Split text into trimmed, non-empty clauses."""
        parts = (part.strip(" ,-") for part in _CLAUSE_SPLIT.split(content) if part)
        return [part for part in parts if part]

    def classify_fact_type(self, text: str) -> FactType | None:
        """
        Type a single piece of text.

        Returns:
            The first matching fact type, or None if no cue matches
        """
        classified = self._classify(text)
        return classified[0] if classified else None

    @staticmethod
    def score_confidence(text: str, base: float) -> float:
        """
        Adjust a base confidence by certainty cues in the text.

        Args:
            text: Clause text
            base: Pattern base confidence

        Returns:
            Confidence clamped to [0.1, 1.0]
        """
        lowered = text.lower()
        confidence = base

        if _CERTAIN.search(lowered):
            confidence += 0.1
        if _SPECIFIC.search(lowered):
            confidence += 0.05
        if len(text) > 50:
            confidence += 0.05
        if _HEDGED.search(lowered):
            confidence -= 0.2
        if _OPINION.search(lowered):
            confidence -= 0.1

        return round(max(0.1, min(1.0, confidence)), 4)

    @staticmethod
    def dominant_fact_type(facts: list[AtomicFact]) -> FactType | None:
        """Highest-confidence fact type; earlier facts win ties."""
        if not facts:
            return None
        best = facts[0]
        for fact in facts[1:]:
            if fact.confidence > best.confidence:
                best = fact
        return best.fact_type

    @staticmethod
    def _classify(text: str) -> tuple[FactType, float] | None:
        lowered = text.lower()
        for fact_type, pattern, confidence in _FACT_PATTERNS:
            if pattern.search(lowered):
                return fact_type, confidence
        return None
