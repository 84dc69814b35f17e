"""
Tests for Phase 3: Fitness Annotation and Knowledge Validation.

These tests verify:
1. Each confidence component is computed independently
2. Confidence is clamped and survival fitness starts equal to it
3. Annotation is deterministic
4. The optional validator only adds its bonus and flag
"""

import json

import pytest

from livingtriples.domain import DocumentKind
from livingtriples.enrichment.validator import (
    KnowledgeValidator,
    ValidatedConcept,
    ValidatorLoadError,
)
from livingtriples.extraction.extractor import Candidate
from livingtriples.identity import create_triple_id
from livingtriples.scoring.fitness import (
    HIGH_VALUE_BONUS,
    STRUCTURED_KIND_BONUS,
    VALIDATION_BONUS,
    annotate,
    annotate_all,
    compute_breakdown,
    compute_high_value_bonus,
    compute_kind_bonus,
    compute_validation_bonus,
)


# =============================================================================
# TEST FIXTURES
# =============================================================================

def make_candidate(
    obj: str = "architecture",
    category: str = "architecture",
    base_weight: float = 0.8,
    category_bonus: float = 0.04,
    subject: str = "System Architecture",
    predicate: str = "defines",
) -> Candidate:
    """Helper to create a Candidate for testing."""
    return Candidate(
        subject=subject,
        predicate=predicate,
        object=obj,
        category=category,
        rule_name="test_rule",
        base_weight=base_weight,
        category_bonus=category_bonus,
    )


def make_validator(*concepts: str) -> KnowledgeValidator:
    return KnowledgeValidator(entries=[
        ValidatedConcept(concept=c, relevance=0.85) for c in concepts
    ])


# =============================================================================
# COMPONENT TESTS
# =============================================================================

class TestComponents:
    """Test each confidence component in isolation."""

    def test_no_high_value_terms(self):
        score = compute_high_value_bonus("architecture")
        assert score.contribution == 0.0

    def test_one_group(self):
        score = compute_high_value_bonus("golden ratio")
        assert score.contribution == pytest.approx(HIGH_VALUE_BONUS)

    def test_group_counted_once(self):
        score = compute_high_value_bonus("golden phi")
        assert score.raw_value == 1.0

    def test_several_groups(self):
        score = compute_high_value_bonus("conscious anarcho decentralized golden")
        assert score.raw_value == 4.0
        assert score.contribution == pytest.approx(4 * HIGH_VALUE_BONUS)

    def test_structured_kind_bonus(self):
        assert compute_kind_bonus(DocumentKind.STRUCTURED).contribution == STRUCTURED_KIND_BONUS

    @pytest.mark.parametrize("kind", [DocumentKind.TEXT, DocumentKind.CODE, DocumentKind.UNKNOWN])
    def test_other_kinds_no_bonus(self, kind):
        assert compute_kind_bonus(kind).contribution == 0.0

    def test_no_validator_no_bonus(self):
        score = compute_validation_bonus("golden ratio", None)
        assert score.contribution == 0.0
        assert "No knowledge validator" in score.reason

    def test_every_component_has_reason(self):
        breakdown = compute_breakdown(make_candidate(), DocumentKind.TEXT)
        for component in breakdown.components:
            assert component.reason


# =============================================================================
# ANNOTATION TESTS
# =============================================================================

class TestAnnotation:
    """Test candidate -> Triple annotation."""

    def test_text_confidence(self):
        result = annotate(make_candidate(), DocumentKind.TEXT, "notes.md")
        assert result.triple.confidence == pytest.approx(0.84)

    def test_structured_confidence(self):
        result = annotate(make_candidate(), DocumentKind.STRUCTURED, "data.json")
        assert result.triple.confidence == pytest.approx(0.89)

    def test_confidence_clamped(self):
        candidate = make_candidate(
            obj="golden ratio",
            category="mathematical",
            base_weight=0.9,
            category_bonus=0.08,
        )
        result = annotate(candidate, DocumentKind.STRUCTURED, "data.json")

        assert result.breakdown.raw_total > 1.0
        assert result.triple.confidence == 1.0
        assert "clamped" in result.breakdown.explain()

    def test_fitness_starts_at_confidence(self):
        triple = annotate(make_candidate(), DocumentKind.TEXT, "notes.md").triple
        assert triple.survival_fitness == triple.confidence
        assert triple.generation == 0

    def test_triple_fields(self):
        triple = annotate(make_candidate(), DocumentKind.TEXT, "notes.md").triple
        assert triple.id == create_triple_id("System Architecture", "defines", "architecture")
        assert triple.origin_id == "notes.md"
        assert triple.category == "architecture"
        assert triple.web_validated is False

    def test_annotation_is_deterministic(self):
        first = annotate(make_candidate(), DocumentKind.TEXT, "notes.md").triple
        second = annotate(make_candidate(), DocumentKind.TEXT, "notes.md").triple
        for attribute in ("id", "subject", "predicate", "object", "confidence"):
            assert getattr(first, attribute) == getattr(second, attribute)

    def test_annotate_all_shares_timestamp(self):
        results = annotate_all(
            [make_candidate(), make_candidate(obj="infrastructure")],
            DocumentKind.TEXT,
            "notes.md",
        )
        assert len(results) == 2
        assert results[0].triple.extracted_at == results[1].triple.extracted_at

    @pytest.mark.parametrize("obj,base", [
        ("golden ratio", 0.95),
        ("conscious anarcho decentral phi", 0.95),
        ("plain", 0.7),
    ])
    def test_scores_always_in_unit_range(self, obj, base):
        candidate = make_candidate(obj=obj, base_weight=base, category_bonus=0.1)
        validator = make_validator(obj)
        triple = annotate(candidate, DocumentKind.STRUCTURED, "x.json", validator).triple
        assert 0.0 <= triple.confidence <= 1.0
        assert 0.0 <= triple.survival_fitness <= 1.0


# =============================================================================
# VALIDATOR TESTS
# =============================================================================

class TestValidator:
    """Test the optional knowledge validator."""

    def test_object_contained_in_concept(self):
        validator = make_validator("golden ratio optimization")
        assert validator.is_validated("golden ratio")

    def test_concept_contained_in_object(self):
        validator = make_validator("fibonacci")
        assert validator.is_validated("fibonacci sequence")

    def test_match_is_case_insensitive(self):
        validator = make_validator("Golden Ratio")
        assert validator.is_validated("golden RATIO")

    def test_related_concepts_match(self):
        validator = KnowledgeValidator(entries=[
            ValidatedConcept(concept="sacred geometry", related_concepts=("platonic solids",)),
        ])
        assert validator.is_validated("platonic solids")

    def test_no_match(self):
        assert not make_validator("quantum cognition").is_validated("architecture")

    def test_validated_triple_gets_bonus_and_flag(self):
        validator = make_validator("system architecture")
        plain = annotate(make_candidate(), DocumentKind.TEXT, "notes.md").triple
        validated = annotate(make_candidate(), DocumentKind.TEXT, "notes.md", validator).triple

        assert validated.web_validated is True
        assert validated.confidence == pytest.approx(plain.confidence + VALIDATION_BONUS)

    def test_unmatched_validator_changes_nothing(self):
        validator = make_validator("quantum cognition")
        plain = annotate(make_candidate(), DocumentKind.TEXT, "notes.md").triple
        checked = annotate(make_candidate(), DocumentKind.TEXT, "notes.md", validator).triple

        assert checked.confidence == plain.confidence
        assert checked.web_validated is False

    def test_relevance_range(self):
        with pytest.raises(ValueError):
            ValidatedConcept(concept="x", relevance=1.5)

    def test_load_from_json(self, tmp_path):
        path = tmp_path / "concepts.json"
        path.write_text(json.dumps([
            {"concept": "golden ratio", "relatedConcepts": ["phi"], "relevance": 0.85},
            {"concept": "meta-learning"},
        ]), encoding="utf-8")

        validator = KnowledgeValidator.from_json(path)

        assert len(validator) == 2
        assert validator.match("phi").concept == "golden ratio"

    @pytest.mark.parametrize("content", ["nope", "{}", '[{"relevance": 0.5}]'])
    def test_invalid_file(self, tmp_path, content):
        path = tmp_path / "concepts.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ValidatorLoadError):
            KnowledgeValidator.from_json(path)
