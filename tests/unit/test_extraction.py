"""Tests for extraction evaluation."""

import pytest

from src.evaluation.extraction import (
    MetricSet,
    calculate_metrics,
    average_metrics,
    evaluate_entity_extraction,
    evaluate_relationship_extraction,
    evaluate_batch_entity_extraction,
    evaluate_batch_relationship_extraction,
    ExtractionEvaluator,
)
from src.evaluation.config import EvaluationConfig
from src.evaluation.matching import Entity, MatchingMode


def entity(name, type_):
    return {"name": name, "type": type_}


def rel(source, target, type_):
    return {"from": source, "to": target, "type": type_}


class TestCalculateMetrics:
    """Tests for calculate_metrics."""

    def test_all_zero(self):
        """Should return zeros instead of dividing by zero."""
        assert calculate_metrics(0, 0, 0) == MetricSet(0.0, 0.0, 0.0)

    def test_standard_counts(self):
        """Should compute precision, recall and F1."""
        metrics = calculate_metrics(3, 1, 2)

        assert metrics.precision == pytest.approx(0.75)
        assert metrics.recall == pytest.approx(0.6)
        assert metrics.f1 == pytest.approx(2 * 0.75 * 0.6 / 1.35)

    def test_no_true_positives(self):
        """Should give F1 of 0 when nothing matched."""
        assert calculate_metrics(0, 4, 2).f1 == 0.0

    def test_average_metrics(self):
        """Should average metric sets unweighted."""
        avg = average_metrics([MetricSet(1.0, 1.0, 1.0), MetricSet(0.0, 0.5, 0.0)])

        assert avg == MetricSet(0.5, 0.75, 0.5)

    def test_average_of_nothing(self):
        """Should return zeros for an empty list."""
        assert average_metrics([]) == MetricSet()


class TestEntityExtraction:
    """Tests for evaluate_entity_extraction."""

    def test_perfect_extraction(self):
        """Should score identical lists as 1.0."""
        items = [entity("Acme", "ORG"), entity("Alice", "PERSON")]

        result = evaluate_entity_extraction(items, items)

        assert (result.precision, result.recall, result.f1) == (1.0, 1.0, 1.0)
        assert result.true_positives == 2

    def test_mixed_extraction(self):
        """Should count matches, spurious and missed entities."""
        # Arrange
        extracted = [entity("Acme", "ORG"), entity("Globex", "ORG"), entity("Bob", "PERSON")]
        truth = [entity("The Acme", "ORG"), entity("Alice", "PERSON")]

        # Act
        result = evaluate_entity_extraction(extracted, truth)

        # Assert
        assert result.true_positives == 1
        assert result.false_positives == 2
        assert result.false_negatives == 1
        assert result.precision == pytest.approx(1 / 3)
        assert result.recall == pytest.approx(0.5)
        assert result.f1 == pytest.approx(0.4)
        assert [e.name for e in result.unmatched_extracted] == ["Globex", "Bob"]
        assert [e.name for e in result.unmatched_ground_truth] == ["Alice"]

    def test_per_type_breakdown(self):
        """Should split counts by type with support and predicted."""
        extracted = [entity("Acme", "ORG"), entity("Globex", "ORG"), entity("Bob", "PERSON")]
        truth = [entity("Acme", "ORG"), entity("Alice", "PERSON")]

        result = evaluate_entity_extraction(extracted, truth)

        org = result.per_type["ORG"]
        person = result.per_type["PERSON"]
        assert (org.true_positives, org.false_positives, org.false_negatives) == (1, 1, 0)
        assert (org.support, org.predicted) == (1, 2)
        assert (person.true_positives, person.false_positives, person.false_negatives) == (0, 1, 1)
        assert person.f1 == 0.0

    def test_false_positive_counted_under_extracted_type(self):
        """Should file a type-mismatched item under both of its types."""
        result = evaluate_entity_extraction([entity("Acme", "PERSON")], [entity("Acme", "ORG")])

        assert result.per_type["PERSON"].false_positives == 1
        assert result.per_type["ORG"].false_negatives == 1

    def test_empty_document(self):
        """Should return zeros for no extracted and no ground truth."""
        result = evaluate_entity_extraction([], [])

        assert (result.precision, result.recall, result.f1) == (0.0, 0.0, 0.0)
        assert result.per_type == {}

    def test_partial_mode(self):
        """Should accept fuzzy names in PARTIAL mode."""
        result = evaluate_entity_extraction(
            [entity("Jon Smith", "PERSON")], [entity("John Smith", "PERSON")], mode="partial"
        )

        assert result.true_positives == 1
        assert result.mode is MatchingMode.PARTIAL

    def test_rejects_direction_agnostic(self):
        """Should raise ValueError for a relationship-only mode."""
        with pytest.raises(ValueError):
            evaluate_entity_extraction([], [], MatchingMode.DIRECTION_AGNOSTIC)

    def test_to_dict_has_no_direction_fields(self):
        """Should leave direction accounting out of entity results."""
        data = evaluate_entity_extraction([entity("Acme", "ORG")], [entity("Acme", "ORG")]).to_dict()

        assert data["f1"] == 1.0
        assert data["mode"] == "strict"
        assert "direction_accuracy" not in data
        assert "direction_accuracy" not in data["per_type"]["ORG"]

    def test_summary(self):
        """Should render a readable summary."""
        summary = evaluate_entity_extraction([entity("Acme", "ORG")], [entity("Acme", "ORG")]).summary()

        assert "ENTITY EXTRACTION EVALUATION" in summary
        assert "ORG" in summary


class TestRelationshipExtraction:
    """Tests for evaluate_relationship_extraction."""

    def test_direction_accuracy(self):
        """Should count reversed matches as incorrect directions."""
        # Arrange
        extracted = [rel("Manager", "Employee", "REPORTS_TO"), rel("Acme", "Widget", "OWNS")]
        truth = [rel("Employee", "Manager", "REPORTS_TO"), rel("Acme", "Widget", "OWNS")]

        # Act
        result = evaluate_relationship_extraction(extracted, truth, MatchingMode.DIRECTION_AGNOSTIC)

        # Assert
        assert result.true_positives == 2
        assert result.correct_directions == 1
        assert result.incorrect_directions == 1
        assert result.direction_accuracy == pytest.approx(0.5)
        assert result.per_type["REPORTS_TO"].direction_accuracy == 0.0
        assert result.per_type["OWNS"].direction_accuracy == 1.0

    def test_strict_misses_reversed(self):
        """Should treat a reversed edge as a miss in STRICT mode."""
        result = evaluate_relationship_extraction(
            [rel("Manager", "Employee", "REPORTS_TO")],
            [rel("Employee", "Manager", "REPORTS_TO")],
        )

        assert result.true_positives == 0
        assert result.direction_accuracy == 0.0

    def test_no_matches_direction_accuracy_zero(self):
        """Should report 0 direction accuracy with nothing matched."""
        assert evaluate_relationship_extraction([], []).direction_accuracy == 0.0

    def test_to_dict_includes_direction(self):
        """Should include direction fields in relationship results."""
        items = [rel("A", "B", "OWNS")]

        data = evaluate_relationship_extraction(items, items).to_dict()

        assert data["direction_accuracy"] == 1.0
        assert data["per_type"]["OWNS"]["direction_accuracy"] == 1.0
        assert data["matches"][0]["direction_match"] is True

    def test_summary(self):
        """Should mention direction accuracy in the summary."""
        items = [rel("A", "B", "OWNS")]

        summary = evaluate_relationship_extraction(items, items).summary()

        assert "RELATIONSHIP EXTRACTION EVALUATION" in summary
        assert "Direction accuracy" in summary


class TestBatchExtraction:
    """Tests for multi-document evaluation."""

    def setup_method(self):
        self.documents = [
            {"extracted": [entity("Acme", "ORG")], "ground_truth": [entity("Acme", "ORG")]},
            {
                "extracted": [],
                "ground_truth": [entity("Bob", "PERSON"), entity("Carol", "PERSON"), entity("Dan", "PERSON")],
            },
        ]

    def test_micro_pools_counts(self):
        """Should pool TP/FP/FN across documents for micro averages."""
        batch = evaluate_batch_entity_extraction(self.documents)

        assert (batch.true_positives, batch.false_positives, batch.false_negatives) == (1, 0, 3)
        assert batch.micro.precision == pytest.approx(1.0)
        assert batch.micro.recall == pytest.approx(0.25)
        assert batch.micro.f1 == pytest.approx(0.4)

    def test_macro_diverges_from_micro(self):
        """Should average per-type and per-document scores unweighted."""
        batch = evaluate_batch_entity_extraction(self.documents)

        assert batch.macro.f1 == pytest.approx(0.5)
        assert batch.document_macro.f1 == pytest.approx(0.5)
        assert batch.macro.f1 != pytest.approx(batch.micro.f1)

    def test_per_type_pooled(self):
        """Should pool per-type counts across documents."""
        batch = evaluate_batch_entity_extraction(self.documents)

        assert batch.per_type["PERSON"].support == 3
        assert batch.per_type["ORG"].true_positives == 1

    def test_accepts_pairs_and_camel_case_key(self):
        """Should accept (extracted, ground_truth) pairs and groundTruth keys."""
        items = [
            ([entity("Acme", "ORG")], [entity("Acme", "ORG")]),
            {"extracted": [entity("Bob", "PERSON")], "groundTruth": [entity("Bob", "PERSON")]},
        ]

        batch = evaluate_batch_entity_extraction(items)

        assert batch.document_count == 2
        assert batch.true_positives == 2

    def test_empty_batch(self):
        """Should return an empty result with zero metrics."""
        batch = evaluate_batch_entity_extraction([])

        assert batch.document_count == 0
        assert batch.micro == MetricSet()
        assert "BATCH ENTITY" in batch.summary()

    def test_relationship_batch_direction(self):
        """Should pool direction accuracy across documents."""
        items = [
            {
                "extracted": [rel("Manager", "Employee", "REPORTS_TO")],
                "ground_truth": [rel("Employee", "Manager", "REPORTS_TO")],
            },
            {
                "extracted": [rel("Acme", "Widget", "OWNS")],
                "ground_truth": [rel("Acme", "Widget", "OWNS")],
            },
        ]

        batch = evaluate_batch_relationship_extraction(items, MatchingMode.DIRECTION_AGNOSTIC)

        assert batch.direction_accuracy == pytest.approx(0.5)
        assert batch.macro_direction_accuracy == pytest.approx(0.5)
        assert batch.to_dict()["correct_directions"] == 1


class TestMalformedElements:
    """Tests for list elements that are not mappings."""

    def test_none_extracted_entity_is_false_positive(self):
        """Should count a None element as an unmatched extraction."""
        result = evaluate_entity_extraction([None], [entity("Acme", "ORG")])

        assert (result.true_positives, result.false_positives, result.false_negatives) == (0, 1, 1)
        assert result.metrics == MetricSet()

    def test_bare_string_entity_never_matches(self):
        """Should not match a bare string even when it equals a name."""
        result = evaluate_entity_extraction(["Acme"], [entity("Acme", "ORG")])

        assert result.true_positives == 0
        assert result.unmatched_extracted == [Entity("", "")]
        assert result.unmatched_ground_truth == [Entity("Acme", "ORG")]

    def test_malformed_ground_truth_relationship(self):
        """Should count a None reference relationship as missed."""
        result = evaluate_relationship_extraction([], [None])

        assert result.false_negatives == 1
        assert result.direction_accuracy == 0.0

    def test_malformed_element_does_not_stop_batch(self):
        """Should score the other documents when one holds a bad element."""
        items = [
            {"extracted": [None], "ground_truth": []},
            {"extracted": [entity("Acme", "ORG")], "ground_truth": [entity("Acme", "ORG")]},
        ]

        batch = evaluate_batch_entity_extraction(items)

        assert batch.document_count == 2
        assert (batch.true_positives, batch.false_positives) == (1, 1)

    def test_malformed_relationship_batch(self):
        """Should score a relationship batch holding a bad element."""
        items = [{"extracted": ["Acme OWNS Widget"], "ground_truth": [rel("Acme", "Widget", "OWNS")]}]

        batch = evaluate_batch_relationship_extraction(items, MatchingMode.PARTIAL)

        assert (batch.false_positives, batch.false_negatives) == (1, 1)


class TestExtractionEvaluator:
    """Tests for the config-driven ExtractionEvaluator."""

    def test_from_config(self):
        """Should take mode and threshold from EvaluationConfig."""
        config = EvaluationConfig(matching_mode=MatchingMode.PARTIAL, similarity_threshold=0.6)

        evaluator = ExtractionEvaluator.from_config(config)

        assert evaluator.mode == MatchingMode.PARTIAL
        assert evaluator.similarity_threshold == 0.6

    def test_threshold_reaches_matcher(self):
        """Should accept a near miss only under a loose configured threshold."""
        extracted = [entity("Acme Corporation", "ORG")]
        truth = [entity("Acme Corp", "ORG")]

        strict = ExtractionEvaluator(MatchingMode.PARTIAL, 0.99).evaluate_entities(extracted, truth)
        loose = ExtractionEvaluator(MatchingMode.PARTIAL, 0.5).evaluate_entities(extracted, truth)

        assert strict.true_positives == 0
        assert loose.true_positives == 1
        assert loose.similarity_threshold == 0.5

    def test_direction_agnostic_config(self):
        """Should score reversed relationships and fall back to PARTIAL for entities."""
        evaluator = ExtractionEvaluator(MatchingMode.DIRECTION_AGNOSTIC)

        relationships = evaluator.evaluate_batch_relationships([
            {"extracted": [rel("B", "A", "OWNS")], "ground_truth": [rel("A", "B", "OWNS")]},
        ])
        entities = evaluator.evaluate_entities([entity("Acme", "ORG")], [entity("Acme", "ORG")])

        assert relationships.true_positives == 1
        assert relationships.direction_accuracy == 0.0
        assert entities.mode == MatchingMode.PARTIAL
        assert entities.true_positives == 1

    def test_batch_entities_use_configured_mode(self):
        """Should pass the configured mode to batch entity scoring."""
        evaluator = ExtractionEvaluator("type_only")

        batch = evaluator.evaluate_batch_entities([
            {"extracted": [entity("Acme Inc", "ORG")], "ground_truth": [entity("Acme", "ORG")]},
        ])

        assert batch.mode == MatchingMode.TYPE_ONLY
        assert batch.true_positives == 1
