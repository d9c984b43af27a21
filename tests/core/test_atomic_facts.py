"""
Tests for the pattern-based atomic fact extractor.
"""

import pytest

from wellmind.core.atomic_facts import AtomicFactExtractor
from wellmind.models.facts import FactType


@pytest.fixture
def extractor():
    return AtomicFactExtractor()


@pytest.mark.unit
class TestFactTyping:
    """Clause typing by cue patterns."""

    def test_allergy_is_constraint(self, extractor):
        facts = extractor.extract_atomic_facts("mem_1", "I am allergic to peanuts")

        assert len(facts) == 1
        assert facts[0].fact_type == FactType.CONSTRAINT
        assert facts[0].confidence == 0.85
        assert facts[0].memory_entry_id == "mem_1"

    def test_goal(self, extractor):
        assert extractor.classify_fact_type("I want to run a marathon") == FactType.GOAL

    def test_preference(self, extractor):
        assert extractor.classify_fact_type("I love morning runs") == FactType.PREFERENCE

    def test_event(self, extractor):
        assert extractor.classify_fact_type("Dentist appointment next week") == FactType.EVENT

    def test_no_cue_returns_none(self, extractor):
        assert extractor.classify_fact_type("The sky") is None

    def test_constraint_checked_before_preference(self, extractor):
        # "like" is a preference cue, but "can't" marks a constraint
        assert extractor.classify_fact_type("I can't eat food I like") == FactType.CONSTRAINT


@pytest.mark.unit
class TestExtraction:
    """Clause splitting, caps and de-duplication."""

    def test_empty_content_yields_nothing(self, extractor):
        assert extractor.extract_atomic_facts("mem_1", "") == []
        assert extractor.extract_atomic_facts("mem_1", "   ") == []

    def test_splits_on_but(self, extractor):
        facts = extractor.extract_atomic_facts("mem_1", "I love pizza but I hate olives")

        assert [f.content for f in facts] == ["I love pizza", "I hate olives"]
        assert all(f.fact_type == FactType.PREFERENCE for f in facts)

    def test_repeated_clause_kept_once(self, extractor):
        facts = extractor.extract_atomic_facts("mem_1", "I like tea. I like tea!")

        assert len(facts) == 1

    def test_respects_max_facts(self):
        extractor = AtomicFactExtractor(max_facts_per_memory=2)

        facts = extractor.extract_atomic_facts("mem_1", "I like tea. I like coffee. I like juice.")

        assert len(facts) == 2

    def test_deterministic_apart_from_ids(self, extractor):
        content = "I want to lose weight. I am allergic to shellfish; I enjoy cycling"

        first = extractor.extract_atomic_facts("mem_1", content)
        second = extractor.extract_atomic_facts("mem_1", content)

        assert [(f.fact_type, f.content, f.confidence) for f in first] == [
            (f.fact_type, f.content, f.confidence) for f in second
        ]
        assert {f.id for f in first}.isdisjoint({f.id for f in second})


@pytest.mark.unit
class TestConfidence:
    """Certainty cue adjustments."""

    def test_certainty_raises_confidence(self, extractor):
        assert extractor.score_confidence("I always avoid sugar", 0.85) == 0.95

    def test_hedging_lowers_confidence(self, extractor):
        assert extractor.score_confidence("maybe I like tea", 0.8) == 0.6

    def test_clamped(self, extractor):
        assert extractor.score_confidence("I always definitely avoid it", 0.99) == 1.0
        assert extractor.score_confidence("maybe I think so", 0.2) == 0.1

    def test_dominant_fact_type(self, extractor):
        facts = extractor.extract_atomic_facts("mem_1", "I like tea. I want to run a marathon")

        assert extractor.dominant_fact_type(facts) == FactType.GOAL
        assert extractor.dominant_fact_type([]) is None
