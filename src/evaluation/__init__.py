"""Evaluation module - scoring for extraction, retrieval and grounded answers."""
from src.evaluation.exceptions import EvaluationError, JudgeError
from src.evaluation.similarity import (
    normalize_name,
    calculate_similarity,
    cosine_similarity,
    retrieve_top_k,
)
from src.evaluation.matching import (
    MatchingMode,
    Entity,
    Relationship,
    Match,
    MatchResult,
    match_entities,
    match_relationships,
)
from src.evaluation.extraction import (
    MetricSet,
    TypeMetrics,
    ExtractionEvaluation,
    RelationshipEvaluation,
    BatchExtractionEvaluation,
    BatchRelationshipEvaluation,
    calculate_metrics,
    evaluate_entity_extraction,
    evaluate_relationship_extraction,
    evaluate_batch_entity_extraction,
    evaluate_batch_relationship_extraction,
    ExtractionEvaluator,
)
from src.evaluation.metrics import (
    RankedQuery,
    RetrievalReport,
    precision_at_k,
    recall_at_k,
    f1_at_k,
    reciprocal_rank,
    mean_reciprocal_rank,
    dcg,
    idcg,
    ndcg,
    ndcg_at_k,
    average_precision,
    mean_average_precision,
    hit_at_k,
    mean_hit_rate,
    compute_all_metrics,
    RetrievalEvaluator,
)
from src.evaluation.batch import BatchItemResult, ScoreStats, run_bounded
from src.evaluation.judge import BaseJudge, LLMJudge, parse_json_response
from src.evaluation.config import EvaluationConfig
from src.evaluation.grounding import (
    ClaimStatus,
    ClaimVerification,
    GroundingResult,
    BatchGroundingResult,
    QuickGroundingResult,
    GroundingScorer,
    score_verifications,
)
from src.evaluation.answer_quality import (
    AnswerQualityResult,
    BatchAnswerQualityResult,
    AnswerQualityScorer,
)

__all__ = [
    # Errors
    "EvaluationError",
    "JudgeError",
    # Similarity
    "normalize_name",
    "calculate_similarity",
    "cosine_similarity",
    "retrieve_top_k",
    # Matching
    "MatchingMode",
    "Entity",
    "Relationship",
    "Match",
    "MatchResult",
    "match_entities",
    "match_relationships",
    # Extraction
    "MetricSet",
    "TypeMetrics",
    "ExtractionEvaluation",
    "RelationshipEvaluation",
    "BatchExtractionEvaluation",
    "BatchRelationshipEvaluation",
    "calculate_metrics",
    "evaluate_entity_extraction",
    "evaluate_relationship_extraction",
    "evaluate_batch_entity_extraction",
    "evaluate_batch_relationship_extraction",
    "ExtractionEvaluator",
    # Retrieval metrics
    "RankedQuery",
    "RetrievalReport",
    "precision_at_k",
    "recall_at_k",
    "f1_at_k",
    "reciprocal_rank",
    "mean_reciprocal_rank",
    "dcg",
    "idcg",
    "ndcg",
    "ndcg_at_k",
    "average_precision",
    "mean_average_precision",
    "hit_at_k",
    "mean_hit_rate",
    "compute_all_metrics",
    "RetrievalEvaluator",
    # Batch
    "BatchItemResult",
    "ScoreStats",
    "run_bounded",
    # Judge
    "BaseJudge",
    "LLMJudge",
    "parse_json_response",
    # Config
    "EvaluationConfig",
    # Grounding
    "ClaimStatus",
    "ClaimVerification",
    "GroundingResult",
    "BatchGroundingResult",
    "QuickGroundingResult",
    "GroundingScorer",
    "score_verifications",
    # Answer quality
    "AnswerQualityResult",
    "BatchAnswerQualityResult",
    "AnswerQualityScorer",
]
