"""Greedy bipartite matching of extracted items against ground truth."""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar, Union

from src.evaluation.similarity import calculate_similarity, normalize_name

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.85
TYPE_ONLY_MIN_SIMILARITY = 0.3


class MatchingMode(str, Enum):
    """How an extracted item is compared to a ground-truth item."""
    STRICT = "strict"                          # Exact normalized names, same type
    PARTIAL = "partial"                        # Fuzzy names above threshold, same type
    TYPE_ONLY = "type_only"                    # Same type, weak name overlap
    DIRECTION_AGNOSTIC = "direction_agnostic"  # Relationships only


def resolve_mode(mode: Union[str, MatchingMode]) -> MatchingMode:
    """
    Convert a mode name to a MatchingMode.

    Raises:
        ValueError: If mode is unknown
    """
    if isinstance(mode, MatchingMode):
        return mode
    try:
        return MatchingMode(str(mode).lower())
    except ValueError:
        available = [m.value for m in MatchingMode]
        raise ValueError(
            f"Unknown matching mode: '{mode}'. "
            f"Available: {available}"
        ) from None


@dataclass(frozen=True)
class Entity:
    """An entity with a name and a type label."""
    name: str
    type: str

    @classmethod
    def from_value(cls, value: Union["Entity", Mapping[str, Any]]) -> "Entity":
        if isinstance(value, Entity):
            return value
        if not isinstance(value, Mapping):
            logger.warning(f"Malformed entity {value!r}; treating as unnamed")
            return cls(name="", type="")
        return cls(
            name=str(value.get("name") or ""),
            type=str(value.get("type") or ""),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "type": self.type}


@dataclass(frozen=True)
class Relationship:
    """A typed, directed edge between two named entities."""
    source: str
    target: str
    type: str

    @classmethod
    def from_value(
        cls, value: Union["Relationship", Mapping[str, Any]]
    ) -> "Relationship":
        """Build from a mapping using "from"/"to" (or "source"/"target") keys."""
        if isinstance(value, Relationship):
            return value
        if not isinstance(value, Mapping):
            logger.warning(f"Malformed relationship {value!r}; treating as unnamed")
            return cls(source="", target="", type="")
        return cls(
            source=str(value.get("from") or value.get("source") or ""),
            target=str(value.get("to") or value.get("target") or ""),
            type=str(value.get("type") or ""),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"from": self.source, "to": self.target, "type": self.type}


@dataclass
class PairComparison:
    """Outcome of comparing one extracted item to one ground-truth item."""
    matches: bool
    similarity: float
    type_match: bool
    direction_match: bool = True


@dataclass
class Match:
    """An accepted (extracted, ground truth) pairing."""
    extracted_index: int
    ground_truth_index: int
    similarity: float
    type_match: bool
    direction_match: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "extracted_index": self.extracted_index,
            "ground_truth_index": self.ground_truth_index,
            "similarity": round(self.similarity, 4),
            "type_match": self.type_match,
            "direction_match": self.direction_match,
        }


@dataclass
class MatchResult:
    """Matches plus the indices left unmatched on either side."""
    matches: List[Match] = field(default_factory=list)
    unmatched_extracted: List[int] = field(default_factory=list)
    unmatched_ground_truth: List[int] = field(default_factory=list)

    @property
    def true_positives(self) -> int:
        return len(self.matches)

    @property
    def false_positives(self) -> int:
        return len(self.unmatched_extracted)

    @property
    def false_negatives(self) -> int:
        return len(self.unmatched_ground_truth)


# ============================================================================
# ENTITY ACCEPTANCE
# ============================================================================

def _accept_exact(a: str, b: str, similarity: float, threshold: float) -> bool:
    return normalize_name(a) == normalize_name(b)


def _accept_fuzzy(a: str, b: str, similarity: float, threshold: float) -> bool:
    return similarity >= threshold


def _accept_overlap(a: str, b: str, similarity: float, threshold: float) -> bool:
    return similarity > TYPE_ONLY_MIN_SIMILARITY


_ENTITY_ACCEPTANCE: Dict[MatchingMode, Callable[[str, str, float, float], bool]] = {
    MatchingMode.STRICT: _accept_exact,
    MatchingMode.PARTIAL: _accept_fuzzy,
    MatchingMode.TYPE_ONLY: _accept_overlap,
}


def compare_entities(
    extracted: Entity,
    ground_truth: Entity,
    mode: Union[str, MatchingMode] = MatchingMode.STRICT,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> PairComparison:
    """
    Compare an extracted entity to a ground-truth entity.

    Args:
        extracted: Entity produced by the extraction pipeline
        ground_truth: Reference entity
        mode: Matching mode (DIRECTION_AGNOSTIC is not valid for entities)
        threshold: Minimum similarity for PARTIAL mode

    Returns:
        PairComparison with acceptance, similarity and type agreement

    Raises:
        ValueError: If mode is unknown or not applicable to entities
    """
    mode = resolve_mode(mode)
    accept = _ENTITY_ACCEPTANCE.get(mode)
    if accept is None:
        raise ValueError(f"Matching mode '{mode.value}' applies to relationships only")

    type_match = extracted.type == ground_truth.type
    similarity = calculate_similarity(extracted.name, ground_truth.name)

    # Names that normalize to nothing can never be matched
    if not normalize_name(extracted.name) or not normalize_name(ground_truth.name):
        return PairComparison(False, similarity, type_match)

    accepted = accept(extracted.name, ground_truth.name, similarity, threshold)
    return PairComparison(accepted and type_match, similarity, type_match)


# ============================================================================
# RELATIONSHIP ACCEPTANCE
# ============================================================================

def _orientation(
    source: str,
    target: str,
    other_source: str,
    other_target: str,
    accept: Callable[[str, str, float, float], bool],
    threshold: float,
) -> Tuple[bool, float]:
    """Accept both endpoints in one orientation; return (accepted, mean similarity)."""
    source_sim = calculate_similarity(source, other_source)
    target_sim = calculate_similarity(target, other_target)
    accepted = (
        accept(source, other_source, source_sim, threshold)
        and accept(target, other_target, target_sim, threshold)
    )
    return accepted, (source_sim + target_sim) / 2


def compare_relationships(
    extracted: Relationship,
    ground_truth: Relationship,
    mode: Union[str, MatchingMode] = MatchingMode.STRICT,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> PairComparison:
    """
    Compare an extracted relationship to a ground-truth relationship.

    STRICT and PARTIAL require the endpoints in the given order.
    DIRECTION_AGNOSTIC applies the PARTIAL test in either orientation
    and reports direction_match=False when only the reversed one holds.
    TYPE_ONLY needs the better orientation to clear a weak overlap bar.

    Raises:
        ValueError: If mode is unknown
    """
    mode = resolve_mode(mode)
    type_match = extracted.type == ground_truth.type

    endpoints = (extracted.source, extracted.target, ground_truth.source, ground_truth.target)
    if not all(normalize_name(name) for name in endpoints):
        return PairComparison(False, 0.0, type_match)

    if mode is MatchingMode.STRICT:
        accepted, similarity = _orientation(*endpoints, _accept_exact, threshold)
        return PairComparison(accepted and type_match, similarity, type_match, True)

    if mode is MatchingMode.PARTIAL:
        accepted, similarity = _orientation(*endpoints, _accept_fuzzy, threshold)
        return PairComparison(accepted and type_match, similarity, type_match, True)

    reversed_endpoints = (extracted.source, extracted.target, ground_truth.target, ground_truth.source)

    if mode is MatchingMode.DIRECTION_AGNOSTIC:
        forward_ok, forward_sim = _orientation(*endpoints, _accept_fuzzy, threshold)
        if forward_ok:
            return PairComparison(type_match, forward_sim, type_match, True)
        reverse_ok, reverse_sim = _orientation(*reversed_endpoints, _accept_fuzzy, threshold)
        if reverse_ok:
            return PairComparison(type_match, reverse_sim, type_match, False)
        return PairComparison(False, max(forward_sim, reverse_sim), type_match, True)

    if mode is MatchingMode.TYPE_ONLY:
        _, forward_sim = _orientation(*endpoints, _accept_overlap, threshold)
        _, reverse_sim = _orientation(*reversed_endpoints, _accept_overlap, threshold)
        best = max(forward_sim, reverse_sim)
        accepted = best > TYPE_ONLY_MIN_SIMILARITY
        return PairComparison(accepted and type_match, best, type_match, forward_sim >= reverse_sim)

    raise ValueError(f"Unsupported matching mode: '{mode}'")


# ============================================================================
# GREEDY ASSIGNMENT
# ============================================================================

T = TypeVar("T")


def coerce_items(items: Any, factory: Callable[[Any], T], label: str = "items") -> List[T]:
    """Turn a possibly-missing collection into a list of typed items."""
    if items is None:
        return []
    if not isinstance(items, (list, tuple)):
        logger.warning(f"Expected a list of {label}, got {type(items).__name__}; treating as empty")
        return []
    return [factory(item) for item in items]


def greedy_match(
    extracted: List[T],
    ground_truth: List[T],
    compare: Callable[[T, T], PairComparison],
) -> MatchResult:
    """
    Assign extracted items to ground-truth items greedily.

    Extracted items are visited in input order. Each one claims the
    acceptable, still-unclaimed ground-truth item with the highest
    similarity (lowest index on ties). No index on either side is ever
    used twice.

    Args:
        extracted: Extracted items
        ground_truth: Reference items
        compare: Pairwise comparison function

    Returns:
        MatchResult with matches and unmatched indices
    """
    claimed = [False] * len(ground_truth)
    result = MatchResult()

    for i, item in enumerate(extracted):
        best_index = -1
        best: Optional[PairComparison] = None

        for j, candidate in enumerate(ground_truth):
            if claimed[j]:
                continue
            comparison = compare(item, candidate)
            if not comparison.matches:
                continue
            if best is None or comparison.similarity > best.similarity:
                best_index, best = j, comparison

        if best is None:
            result.unmatched_extracted.append(i)
            continue

        claimed[best_index] = True
        result.matches.append(
            Match(
                extracted_index=i,
                ground_truth_index=best_index,
                similarity=best.similarity,
                type_match=best.type_match,
                direction_match=best.direction_match,
            )
        )

    result.unmatched_ground_truth = [j for j, taken in enumerate(claimed) if not taken]
    return result


def match_entities(
    extracted: Any,
    ground_truth: Any,
    mode: Union[str, MatchingMode] = MatchingMode.STRICT,
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> MatchResult:
    """Match entities (Entity objects or {"name", "type"} mappings)."""
    mode = resolve_mode(mode)
    if mode not in _ENTITY_ACCEPTANCE:
        raise ValueError(f"Matching mode '{mode.value}' applies to relationships only")
    return greedy_match(
        coerce_items(extracted, Entity.from_value, "entities"),
        coerce_items(ground_truth, Entity.from_value, "entities"),
        lambda e, g: compare_entities(e, g, mode, similarity_threshold),
    )


def match_relationships(
    extracted: Any,
    ground_truth: Any,
    mode: Union[str, MatchingMode] = MatchingMode.STRICT,
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> MatchResult:
    """Match relationships (Relationship objects or {"from", "to", "type"} mappings)."""
    mode = resolve_mode(mode)
    return greedy_match(
        coerce_items(extracted, Relationship.from_value, "relationships"),
        coerce_items(ground_truth, Relationship.from_value, "relationships"),
        lambda e, g: compare_relationships(e, g, mode, similarity_threshold),
    )
