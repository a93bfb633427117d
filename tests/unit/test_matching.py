"""Tests for greedy extraction matching."""

import pytest

from src.evaluation.matching import (
    MatchingMode,
    Entity,
    Relationship,
    resolve_mode,
    compare_entities,
    compare_relationships,
    match_entities,
    match_relationships,
)


class TestResolveMode:
    """Tests for resolve_mode."""

    def test_accepts_name(self):
        """Should map a mode name to the enum, case-insensitively."""
        assert resolve_mode("PARTIAL") is MatchingMode.PARTIAL

    def test_passes_enum_through(self):
        """Should return an enum value unchanged."""
        assert resolve_mode(MatchingMode.TYPE_ONLY) is MatchingMode.TYPE_ONLY

    def test_unknown_mode(self):
        """Should raise ValueError naming the available modes."""
        with pytest.raises(ValueError) as exc_info:
            resolve_mode("fuzzy")

        assert "Unknown matching mode" in str(exc_info.value)
        assert "direction_agnostic" in str(exc_info.value)


class TestItemParsing:
    """Tests for Entity and Relationship construction."""

    def test_entity_from_mapping(self):
        """Should read name and type keys."""
        assert Entity.from_value({"name": "Acme", "type": "ORG"}) == Entity("Acme", "ORG")

    def test_relationship_from_from_to_keys(self):
        """Should read from/to keys."""
        rel = Relationship.from_value({"from": "A", "to": "B", "type": "OWNS"})

        assert rel == Relationship("A", "B", "OWNS")
        assert rel.to_dict() == {"from": "A", "to": "B", "type": "OWNS"}

    def test_relationship_from_source_target_keys(self):
        """Should fall back to source/target keys."""
        rel = Relationship.from_value({"source": "A", "target": "B", "type": "OWNS"})

        assert (rel.source, rel.target) == ("A", "B")

    @pytest.mark.parametrize("value", [None, "Acme", 42])
    def test_entity_from_non_mapping(self, value):
        """Should turn a malformed element into an unnamed entity."""
        assert Entity.from_value(value) == Entity("", "")

    @pytest.mark.parametrize("value", [None, "A -> B", ["A", "B"]])
    def test_relationship_from_non_mapping(self, value):
        """Should turn a malformed element into an unnamed relationship."""
        assert Relationship.from_value(value) == Relationship("", "", "")


class TestCompareEntities:
    """Tests for pairwise entity comparison."""

    def test_strict_matches_normalized_names(self):
        """Should match names that normalize identically."""
        result = compare_entities(Entity("The Acme Corp", "ORG"), Entity("acme corp.", "ORG"))

        assert result.matches
        assert result.similarity == 1.0

    def test_strict_requires_same_type(self):
        """Should reject equal names with different types."""
        result = compare_entities(Entity("Acme", "ORG"), Entity("Acme", "PERSON"))

        assert not result.matches
        assert not result.type_match

    def test_strict_rejects_near_miss(self):
        """Should reject a one-letter difference in STRICT mode."""
        result = compare_entities(Entity("Jon Smith", "PERSON"), Entity("John Smith", "PERSON"))

        assert not result.matches
        assert result.similarity == pytest.approx(0.9)

    def test_partial_accepts_above_threshold(self):
        """Should accept a fuzzy match at or above the threshold."""
        result = compare_entities(
            Entity("Jon Smith", "PERSON"), Entity("John Smith", "PERSON"), MatchingMode.PARTIAL
        )

        assert result.matches

    def test_partial_respects_custom_threshold(self):
        """Should reject a fuzzy match below a stricter threshold."""
        result = compare_entities(
            Entity("Jon Smith", "PERSON"), Entity("John Smith", "PERSON"),
            MatchingMode.PARTIAL, threshold=0.95,
        )

        assert not result.matches

    def test_type_only_accepts_weak_overlap(self):
        """Should accept names above the weak overlap bar in TYPE_ONLY."""
        extracted, truth = Entity("Acme Corp", "ORG"), Entity("Acme Corporation", "ORG")

        assert not compare_entities(extracted, truth, MatchingMode.PARTIAL).matches
        assert compare_entities(extracted, truth, MatchingMode.TYPE_ONLY).matches

    def test_type_only_rejects_unrelated_names(self):
        """Should reject names with no meaningful overlap."""
        result = compare_entities(Entity("abc", "ORG"), Entity("xyz", "ORG"), MatchingMode.TYPE_ONLY)

        assert not result.matches

    def test_empty_names_never_match(self):
        """Should reject names that normalize to nothing."""
        result = compare_entities(Entity("!!!", "X"), Entity("!!!", "X"))

        assert not result.matches

    def test_direction_agnostic_not_valid(self):
        """Should raise ValueError for a relationship-only mode."""
        with pytest.raises(ValueError):
            compare_entities(Entity("A", "X"), Entity("A", "X"), MatchingMode.DIRECTION_AGNOSTIC)


class TestCompareRelationships:
    """Tests for pairwise relationship comparison."""

    def setup_method(self):
        self.forward = Relationship("Manager", "Employee", "REPORTS_TO")
        self.reversed = Relationship("Employee", "Manager", "REPORTS_TO")

    def test_strict_forward(self):
        """Should match identical relationships with correct direction."""
        result = compare_relationships(self.forward, self.forward)

        assert result.matches
        assert result.direction_match

    def test_strict_rejects_reversed(self):
        """Should reject a reversed relationship in STRICT mode."""
        assert not compare_relationships(self.forward, self.reversed).matches

    def test_partial_rejects_reversed(self):
        """Should reject a reversed relationship in PARTIAL mode."""
        assert not compare_relationships(self.forward, self.reversed, MatchingMode.PARTIAL).matches

    def test_direction_agnostic_accepts_reversed(self):
        """Should accept a reversed relationship and flag the direction."""
        result = compare_relationships(self.forward, self.reversed, MatchingMode.DIRECTION_AGNOSTIC)

        assert result.matches
        assert not result.direction_match
        assert result.similarity == 1.0

    def test_direction_agnostic_prefers_forward(self):
        """Should report direction_match for a forward match."""
        result = compare_relationships(self.forward, self.forward, MatchingMode.DIRECTION_AGNOSTIC)

        assert result.matches
        assert result.direction_match

    def test_type_mismatch(self):
        """Should reject relationships of different types in every mode."""
        other = Relationship("Manager", "Employee", "MANAGES")

        for mode in MatchingMode:
            assert not compare_relationships(self.forward, other, mode).matches

    def test_type_only_reports_reversed_direction(self):
        """Should use the better orientation and report its direction."""
        result = compare_relationships(self.forward, self.reversed, MatchingMode.TYPE_ONLY)

        assert result.matches
        assert not result.direction_match

    def test_empty_endpoint_never_matches(self):
        """Should reject relationships with an empty endpoint."""
        broken = Relationship("", "Employee", "REPORTS_TO")

        assert not compare_relationships(broken, broken, MatchingMode.DIRECTION_AGNOSTIC).matches


class TestMatchEntities:
    """Tests for greedy entity assignment."""

    def test_ground_truth_used_once(self):
        """Should match each ground-truth item at most once."""
        # Arrange
        extracted = [{"name": "Acme", "type": "ORG"}, {"name": "Acme", "type": "ORG"}]
        truth = [{"name": "Acme", "type": "ORG"}]

        # Act
        result = match_entities(extracted, truth)

        # Assert
        assert result.true_positives == 1
        assert result.unmatched_extracted == [1]
        assert result.unmatched_ground_truth == []

    def test_picks_most_similar_candidate(self):
        """Should claim the highest-similarity acceptable candidate."""
        extracted = [{"name": "John Smith", "type": "PERSON"}]
        truth = [{"name": "Jon Smith", "type": "PERSON"}, {"name": "John Smith", "type": "PERSON"}]

        result = match_entities(extracted, truth, MatchingMode.PARTIAL)

        assert result.matches[0].ground_truth_index == 1
        assert result.unmatched_ground_truth == [0]

    def test_ties_go_to_lowest_index(self):
        """Should claim the first candidate when similarities tie."""
        extracted = [{"name": "Acme", "type": "ORG"}]
        truth = [{"name": "acme", "type": "ORG"}, {"name": "ACME", "type": "ORG"}]

        result = match_entities(extracted, truth)

        assert result.matches[0].ground_truth_index == 0

    def test_counts_partition_inputs(self):
        """Should satisfy TP + FP = extracted and TP + FN = ground truth."""
        extracted = [{"name": n, "type": "ORG"} for n in ["Acme", "Globex", "Initech"]]
        truth = [{"name": n, "type": "ORG"} for n in ["Acme", "Umbrella"]]

        result = match_entities(extracted, truth)

        assert result.true_positives + result.false_positives == 3
        assert result.true_positives + result.false_negatives == 2

    def test_none_inputs(self):
        """Should treat missing lists as empty."""
        result = match_entities(None, None)

        assert result.matches == []
        assert result.unmatched_extracted == []
        assert result.unmatched_ground_truth == []

    def test_non_list_input_treated_as_empty(self):
        """Should treat a non-list collection as empty."""
        result = match_entities("not a list", [{"name": "Acme", "type": "ORG"}])

        assert result.true_positives == 0
        assert result.unmatched_ground_truth == [0]

    def test_rejects_direction_agnostic(self):
        """Should raise ValueError for a relationship-only mode."""
        with pytest.raises(ValueError):
            match_entities([], [], MatchingMode.DIRECTION_AGNOSTIC)


class TestMatchRelationships:
    """Tests for greedy relationship assignment."""

    def test_strict_vs_direction_agnostic(self):
        """Should only match a reversed edge when direction is ignored."""
        # Arrange
        extracted = [{"from": "Manager", "to": "Employee", "type": "REPORTS_TO"}]
        truth = [{"from": "Employee", "to": "Manager", "type": "REPORTS_TO"}]

        # Act
        strict = match_relationships(extracted, truth, MatchingMode.STRICT)
        agnostic = match_relationships(extracted, truth, MatchingMode.DIRECTION_AGNOSTIC)

        # Assert
        assert strict.true_positives == 0
        assert agnostic.true_positives == 1
        assert agnostic.matches[0].direction_match is False
