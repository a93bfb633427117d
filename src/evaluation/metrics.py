"""Retrieval evaluation metrics."""
import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

if TYPE_CHECKING:
    from src.evaluation.config import EvaluationConfig

logger = logging.getLogger(__name__)

DEFAULT_K_VALUES = [1, 3, 5, 10]


@dataclass
class RankedQuery:
    """One query's ranked results and its relevance judgments."""
    retrieved: List[Any]
    relevant: Set[Any] = field(default_factory=set)

    @classmethod
    def from_value(cls, value: Union["RankedQuery", Mapping[str, Any]]) -> "RankedQuery":
        if isinstance(value, RankedQuery):
            return value
        if not isinstance(value, Mapping):
            logger.warning(f"Malformed query {value!r}; scoring as empty")
            return cls(retrieved=[], relevant=set())
        return cls(
            retrieved=list(value.get("retrieved") or []),
            relevant=set(value.get("relevant") or []),
        )


def _as_list(retrieved: Optional[Sequence[Any]]) -> List[Any]:
    return list(retrieved) if retrieved else []


def _as_set(relevant: Optional[Iterable[Any]]) -> Set[Any]:
    if not relevant:
        return set()
    return relevant if isinstance(relevant, set) else set(relevant)


def _as_queries(queries: Optional[Iterable[Any]]) -> List[RankedQuery]:
    return [RankedQuery.from_value(q) for q in queries] if queries else []


def _hits_at_k(retrieved: List[Any], relevant: Set[Any], k: int) -> int:
    return sum(1 for doc_id in retrieved[:k] if doc_id in relevant)


def precision_at_k(
    retrieved_ids: Sequence[Any],
    relevant_ids: Iterable[Any],
    k: int,
) -> float:
    """
    Precision@K: What fraction of the top K slots hold relevant docs?

    The denominator is always K, so a short result list is penalized.

    Args:
        retrieved_ids: List of retrieved document IDs (ordered by rank)
        relevant_ids: Set of relevant document IDs
        k: Number of top results to consider

    Returns:
        Precision score between 0 and 1
    """
    retrieved = _as_list(retrieved_ids)
    if not retrieved or not k or k <= 0:
        return 0.0

    return _hits_at_k(retrieved, _as_set(relevant_ids), k) / k


def recall_at_k(
    retrieved_ids: Sequence[Any],
    relevant_ids: Iterable[Any],
    k: int,
) -> float:
    """
    Recall@K: What fraction of relevant docs were retrieved?

    Args:
        retrieved_ids: List of retrieved document IDs (ordered by rank)
        relevant_ids: Set of relevant document IDs
        k: Number of top results to consider

    Returns:
        Recall score between 0 and 1, 0 when nothing is relevant
    """
    retrieved = _as_list(retrieved_ids)
    relevant = _as_set(relevant_ids)
    if not retrieved or not relevant or not k or k <= 0:
        return 0.0

    return _hits_at_k(retrieved, relevant, k) / len(relevant)


def f1_at_k(
    retrieved_ids: Sequence[Any],
    relevant_ids: Iterable[Any],
    k: int,
) -> float:
    """
    F1@K: Harmonic mean of precision and recall.

    Args:
        retrieved_ids: List of retrieved document IDs (ordered by rank)
        relevant_ids: Set of relevant document IDs
        k: Number of top results to consider

    Returns:
        F1 score between 0 and 1
    """
    p = precision_at_k(retrieved_ids, relevant_ids, k)
    r = recall_at_k(retrieved_ids, relevant_ids, k)

    if p + r == 0:
        return 0.0

    return 2 * (p * r) / (p + r)


def reciprocal_rank(
    retrieved_ids: Sequence[Any],
    relevant_ids: Iterable[Any],
) -> float:
    """
    Reciprocal rank: 1/rank of the first relevant result.

    Returns:
        Score between 0 and 1 (1.0 means the first result is relevant)
    """
    relevant = _as_set(relevant_ids)
    for i, doc_id in enumerate(_as_list(retrieved_ids)):
        if doc_id in relevant:
            return 1.0 / (i + 1)
    return 0.0


def mean_reciprocal_rank(queries: Optional[Iterable[Any]]) -> float:
    """Mean of reciprocal_rank over queries (RankedQuery or mappings)."""
    ranked = _as_queries(queries)
    if not ranked:
        return 0.0
    return sum(reciprocal_rank(q.retrieved, q.relevant) for q in ranked) / len(ranked)


def dcg(
    relevance_scores: Sequence[float],
    k: Optional[int] = None,
) -> float:
    """
    Discounted Cumulative Gain.

    Args:
        relevance_scores: Relevance score at each rank position
        k: Number of positions to consider (all when None)

    Returns:
        DCG score
    """
    if not relevance_scores:
        return 0.0

    limit = len(relevance_scores) if k is None else min(k, len(relevance_scores))
    score = 0.0
    for i in range(limit):
        # Using log2(i + 2) for positions starting at 0
        score += relevance_scores[i] / math.log2(i + 2)
    return score


def idcg(
    relevance_scores: Sequence[float],
    k: Optional[int] = None,
) -> float:
    """DCG of the same scores in ideal (descending) order."""
    if not relevance_scores:
        return 0.0
    return dcg(sorted(relevance_scores, reverse=True), k)


def ndcg(
    relevance_scores: Sequence[float],
    k: Optional[int] = None,
) -> float:
    """
    Normalized DCG: dcg / idcg, 0 when idcg is 0.

    Args:
        relevance_scores: Graded relevance per rank position
        k: Number of positions to consider

    Returns:
        NDCG score between 0 and 1
    """
    ideal = idcg(relevance_scores, k)
    if ideal == 0:
        return 0.0
    return dcg(relevance_scores, k) / ideal


def ndcg_at_k(
    retrieved_ids: Sequence[Any],
    relevant_ids: Iterable[Any],
    k: int,
) -> float:
    """
    NDCG@K with binary relevance.

    Builds a 0/1 gain vector over the top K results and normalizes it
    against the same gains in ideal order, so the score measures how
    early the retrieved hits appear.

    Args:
        retrieved_ids: List of retrieved document IDs (ordered by rank)
        relevant_ids: Set of relevant document IDs
        k: Number of top results to consider

    Returns:
        NDCG score between 0 and 1
    """
    retrieved = _as_list(retrieved_ids)
    if not retrieved or not k or k <= 0:
        return 0.0

    relevant = _as_set(relevant_ids)
    gains = [1.0 if doc_id in relevant else 0.0 for doc_id in retrieved[:k]]
    return ndcg(gains, k)


def average_precision(
    retrieved_ids: Sequence[Any],
    relevant_ids: Iterable[Any],
) -> float:
    """
    Average Precision: Mean of precision at each relevant doc position.

    Divides by the number of relevant docs, so unretrieved relevant
    docs count as zero precision.

    Args:
        retrieved_ids: List of retrieved document IDs (ordered by rank)
        relevant_ids: Set of relevant document IDs

    Returns:
        AP score between 0 and 1
    """
    retrieved = _as_list(retrieved_ids)
    relevant = _as_set(relevant_ids)
    if not retrieved or not relevant:
        return 0.0

    num_relevant = 0
    precision_sum = 0.0

    for i, doc_id in enumerate(retrieved):
        if doc_id in relevant:
            num_relevant += 1
            precision_sum += num_relevant / (i + 1)

    return precision_sum / len(relevant)


def mean_average_precision(queries: Optional[Iterable[Any]]) -> float:
    """Mean of average_precision over queries."""
    ranked = _as_queries(queries)
    if not ranked:
        return 0.0
    return sum(average_precision(q.retrieved, q.relevant) for q in ranked) / len(ranked)


def hit_at_k(
    retrieved_ids: Sequence[Any],
    relevant_ids: Iterable[Any],
    k: int,
) -> float:
    """
    Hit@K: Did we find at least one relevant doc in top K?

    Returns:
        1.0 if hit, 0.0 if miss (or k is not positive)
    """
    retrieved = _as_list(retrieved_ids)
    if not retrieved or not k or k <= 0:
        return 0.0
    return 1.0 if _hits_at_k(retrieved, _as_set(relevant_ids), k) else 0.0


def mean_hit_rate(queries: Optional[Iterable[Any]], k: int) -> float:
    """Fraction of queries with at least one relevant doc in the top K."""
    ranked = _as_queries(queries)
    if not ranked:
        return 0.0
    return sum(hit_at_k(q.retrieved, q.relevant, k) for q in ranked) / len(ranked)


@dataclass
class CutoffMetrics:
    """Mean per-query metrics at one cutoff K."""
    precision: float
    recall: float
    f1: float
    ndcg: float
    hit_rate: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "precision": self.precision,
            "recall": self.recall,
            "f1": self.f1,
            "ndcg": self.ndcg,
            "hit_rate": self.hit_rate,
        }


@dataclass
class RetrievalReport:
    """Retrieval metrics aggregated over a query set."""
    query_count: int
    mrr: float
    map_score: float  # Mean Average Precision
    metrics: Dict[str, CutoffMetrics] = field(default_factory=dict)

    def at(self, k: int) -> CutoffMetrics:
        """Metrics at cutoff K."""
        return self.metrics[f"@{k}"]

    def summary(self) -> str:
        """Human-readable summary."""
        if self.query_count == 0:
            return "No metrics available (0 queries)"

        cutoff_lines = "\n".join(
            f"║  {label:<5} P={m.precision:.4f} R={m.recall:.4f} F1={m.f1:.4f} "
            f"NDCG={m.ndcg:.4f} Hit={m.hit_rate:.4f}"
            for label, m in self.metrics.items()
        )
        return f"""
╔══════════════════════════════════════════════════════════╗
║  RETRIEVAL METRICS                                       ║
╠══════════════════════════════════════════════════════════╣
║  Queries: {self.query_count:<46} ║
║  MRR: {self.mrr:<51.4f}║
║  MAP: {self.map_score:<51.4f}║
╠══════════════════════════════════════════════════════════╣
{cutoff_lines}
╚══════════════════════════════════════════════════════════╝
"""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "query_count": self.query_count,
            "mrr": self.mrr,
            "map": self.map_score,
            "metrics": {label: m.to_dict() for label, m in self.metrics.items()},
        }


def compute_all_metrics(
    queries: Optional[Iterable[Any]],
    k_values: Optional[List[int]] = None,
) -> RetrievalReport:
    """
    Compute every retrieval metric over a query set.

    MRR and MAP use each query's full ranked list; the "@K" entries
    are per-query metrics averaged over all queries.

    Args:
        queries: RankedQuery objects or {"retrieved", "relevant"} mappings
        k_values: Cutoffs to report (default 1, 3, 5, 10)

    Returns:
        RetrievalReport
    """
    ranked = _as_queries(queries)
    if not ranked:
        logger.warning("compute_all_metrics called with no queries")
        return RetrievalReport(query_count=0, mrr=0.0, map_score=0.0)

    k_values = k_values or DEFAULT_K_VALUES
    n = len(ranked)

    report = RetrievalReport(
        query_count=n,
        mrr=mean_reciprocal_rank(ranked),
        map_score=mean_average_precision(ranked),
    )

    for k in k_values:
        report.metrics[f"@{k}"] = CutoffMetrics(
            precision=sum(precision_at_k(q.retrieved, q.relevant, k) for q in ranked) / n,
            recall=sum(recall_at_k(q.retrieved, q.relevant, k) for q in ranked) / n,
            f1=sum(f1_at_k(q.retrieved, q.relevant, k) for q in ranked) / n,
            ndcg=sum(ndcg_at_k(q.retrieved, q.relevant, k) for q in ranked) / n,
            hit_rate=sum(hit_at_k(q.retrieved, q.relevant, k) for q in ranked) / n,
        )

    logger.info(
        f"Computed retrieval metrics: queries={n}, "
        f"mrr={report.mrr:.4f}, map={report.map_score:.4f}"
    )
    return report


class RetrievalEvaluator:
    """
    Retrieval metrics over a fixed set of cutoffs.

    Usage:
        evaluator = RetrievalEvaluator.from_config(eval_config)
        report = evaluator.evaluate(queries)
        print(report.summary())
    """

    def __init__(self, k_values: Optional[List[int]] = None):
        self.k_values = list(k_values or DEFAULT_K_VALUES)

    @classmethod
    def from_config(cls, config: "EvaluationConfig") -> "RetrievalEvaluator":
        return cls(k_values=config.k_values)

    def evaluate(self, queries: Optional[Iterable[Any]]) -> RetrievalReport:
        return compute_all_metrics(queries, self.k_values)
