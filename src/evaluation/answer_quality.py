"""LLM-as-judge answer quality scoring against fixed rubrics."""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from src.evaluation.batch import BatchItemResult, ScoreStats, preview_text, run_bounded
from src.evaluation.config import EvaluationConfig
from src.evaluation.judge import BaseJudge, parse_json_response

logger = logging.getLogger(__name__)

MIN_SCORE = 1
MAX_SCORE = 5
NEUTRAL_SCORE = 3
DEFAULT_QUALITY_CONCURRENCY = 3

RUBRICS: Dict[str, Dict[str, Any]] = {
    "helpfulness": {
        "description": "Does the answer directly address the user's question and provide useful information?",
        "criteria": {
            5: "Excellent: answers the question directly with actionable, relevant information",
            4: "Good: answers the question well with useful information",
            3: "Adequate: partially answers the question with some useful information",
            2: "Poor: barely addresses the question or drifts to tangential information",
            1: "Very poor: does not answer the question or is irrelevant",
        },
    },
    "accuracy": {
        "description": "Is the answer factually correct and grounded in the provided context?",
        "criteria": {
            5: "Excellent: fully accurate, every claim supported by the context",
            4: "Good: mostly accurate with minor unsupported details",
            3: "Adequate: generally accurate but some claims lack support",
            2: "Poor: significant inaccuracies or unsupported claims",
            1: "Very poor: largely inaccurate or invents information absent from the context",
        },
    },
    "completeness": {
        "description": "Does the answer cover all relevant aspects from the context?",
        "criteria": {
            5: "Excellent: comprehensive, covers all relevant information in the context",
            4: "Good: covers most relevant information with minor omissions",
            3: "Adequate: covers the key points but misses some relevant details",
            2: "Poor: significant gaps, misses important information",
            1: "Very poor: severely incomplete",
        },
    },
}

DEFAULT_DIMENSIONS = ["helpfulness", "accuracy", "completeness"]

EVALUATION_PROMPT = """You are an expert evaluator assessing the quality of an AI assistant's answer.

## Task
Score the answer on each rubric below from 1 to 5 and justify every score briefly.

## Question
{question}

## Context (sources available to the assistant)
{context}

## Answer to Evaluate
{answer}

## Evaluation Rubrics
{rubrics}

## Instructions
For each dimension give a score from 1 to 5 that follows the rubric, and a justification of one or two sentences.

Respond with JSON only (no markdown code blocks):
{{
  {fields}
}}"""


def _check_dimensions(dimensions: Sequence[str]) -> List[str]:
    unknown = [d for d in dimensions if d not in RUBRICS]
    if unknown:
        raise ValueError(f"Unknown rubric dimension(s): {unknown}. Available: {list(RUBRICS)}")
    return list(dimensions)


def build_evaluation_prompt(
    question: str,
    answer: str,
    context: Optional[str],
    dimensions: Sequence[str] = DEFAULT_DIMENSIONS,
) -> str:
    """
    Render the rubric prompt for the requested dimensions.

    Raises:
        ValueError: If a dimension has no rubric
    """
    dimensions = _check_dimensions(dimensions)

    sections = []
    for dim in dimensions:
        rubric = RUBRICS[dim]
        criteria = "\n".join(
            f"  {score}: {text}" for score, text in sorted(rubric["criteria"].items(), reverse=True)
        )
        sections.append(f"### {dim.capitalize()}\n{rubric['description']}\nScoring criteria:\n{criteria}")

    fields = ",\n  ".join(
        f'"{dim}": {{"score": <number>, "justification": "<string>"}}' for dim in dimensions
    )

    return EVALUATION_PROMPT.format(
        question=question,
        context=context or "No context provided",
        answer=answer,
        rubrics="\n\n".join(sections),
        fields=fields,
    )


@dataclass
class DimensionScore:
    """Rubric score for one dimension."""
    score: int
    justification: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "justification": self.justification}


def _clamp_score(value: Any) -> int:
    if isinstance(value, bool):
        return NEUTRAL_SCORE
    try:
        score = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return NEUTRAL_SCORE
    return min(MAX_SCORE, max(MIN_SCORE, score))


def parse_evaluation_response(
    response: Optional[str],
    dimensions: Sequence[str] = DEFAULT_DIMENSIONS,
) -> Dict[str, DimensionScore]:
    """
    Parse judge output into per-dimension scores.

    Scores are clamped to 1-5. A missing dimension or invalid score
    falls back to the neutral score of 3.

    Args:
        response: Raw judge text
        dimensions: Dimensions expected in the response

    Returns:
        Mapping of dimension name to DimensionScore
    """
    dimensions = _check_dimensions(dimensions)
    parsed = parse_json_response(response)

    if not isinstance(parsed, dict):
        logger.warning("Failed to parse answer quality response, using neutral scores")
        return {
            dim: DimensionScore(NEUTRAL_SCORE, "Parse error - defaulting to neutral score")
            for dim in dimensions
        }

    scores = {}
    for dim in dimensions:
        entry = parsed.get(dim)
        if isinstance(entry, dict):
            scores[dim] = DimensionScore(
                score=_clamp_score(entry.get("score")),
                justification=str(entry.get("justification") or ""),
            )
        else:
            scores[dim] = DimensionScore(NEUTRAL_SCORE, "Unable to parse evaluation")
    return scores


@dataclass
class AnswerQualityResult:
    """Rubric scores for one answer."""
    dimensions: Dict[str, DimensionScore]
    overall_score: float
    latency_ms: float = 0.0

    def summary(self) -> str:
        """Human-readable summary."""
        lines = "\n".join(
            f"║  {dim.capitalize():<14} {s.score}/5  {s.justification[:36]}"
            for dim, s in self.dimensions.items()
        )
        return f"""
╔══════════════════════════════════════════════════════════╗
║  ANSWER QUALITY EVALUATION                               ║
╠══════════════════════════════════════════════════════════╣
║  Overall Score: {self.overall_score:<37.2f}/5 ║
║  Latency: {self.latency_ms:<45.1f}ms║
╠══════════════════════════════════════════════════════════╣
{lines}
╚══════════════════════════════════════════════════════════╝
"""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dimensions": {dim: s.to_dict() for dim, s in self.dimensions.items()},
            "overall_score": self.overall_score,
            "latency_ms": round(self.latency_ms, 2),
        }


@dataclass
class BatchAnswerQualityResult:
    """Answer quality over many items."""
    results: List[BatchItemResult] = field(default_factory=list)
    dimensions: Dict[str, ScoreStats] = field(default_factory=dict)
    overall: Optional[ScoreStats] = None

    @property
    def item_count(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    def summary(self) -> str:
        """Human-readable summary."""
        if self.item_count == 0:
            return "No batch evaluation results"

        stats = "\n".join(
            f"║  {dim.capitalize():<14} mean={s.mean:.2f} min={s.min:.0f} max={s.max:.0f} sd={s.std_dev:.2f}"
            for dim, s in self.dimensions.items()
        ) or "║  (no successful items)"
        overall = f"{self.overall.mean:.2f}" if self.overall else "n/a"
        return f"""
╔══════════════════════════════════════════════════════════╗
║  BATCH ANSWER QUALITY EVALUATION                         ║
╠══════════════════════════════════════════════════════════╣
║  Items: {self.item_count:<49}║
║  Successful: {self.success_count:<44}║
║  Failed: {self.item_count - self.success_count:<48}║
║  Overall Mean: {overall:<42}║
╠══════════════════════════════════════════════════════════╣
{stats}
╚══════════════════════════════════════════════════════════╝
"""

    def to_dict(self) -> Dict[str, Any]:
        aggregate: Dict[str, Any] = {dim: s.to_dict() for dim, s in self.dimensions.items()}
        if self.overall is not None:
            aggregate["overall"] = self.overall.to_dict()
        return {
            "item_count": self.item_count,
            "success_count": self.success_count,
            "results": [r.to_dict() for r in self.results],
            "aggregate": aggregate,
        }


class AnswerQualityScorer:
    """
    Score answers for helpfulness, accuracy and completeness.

    Usage:
        scorer = AnswerQualityScorer(LLMJudge(llm))
        result = scorer.evaluate(question, answer, context)
        print(result.overall_score)
    """

    def __init__(
        self,
        judge: BaseJudge,
        dimensions: Sequence[str] = DEFAULT_DIMENSIONS,
        concurrency: int = DEFAULT_QUALITY_CONCURRENCY,
    ):
        self.judge = judge
        self.dimensions = _check_dimensions(dimensions)
        self.concurrency = concurrency

    @classmethod
    def from_config(cls, judge: BaseJudge, config: EvaluationConfig) -> "AnswerQualityScorer":
        return cls(judge, concurrency=config.quality_concurrency)

    def evaluate(
        self,
        question: str,
        answer: str,
        context: Optional[str] = None,
        dimensions: Optional[Sequence[str]] = None,
    ) -> AnswerQualityResult:
        """
        Score one answer.

        Args:
            question: User question
            answer: Generated answer
            context: Sources available to the generator
            dimensions: Rubric dimensions (scorer default when None)

        Returns:
            AnswerQualityResult with overall score rounded to 2 decimals

        Raises:
            ValueError: If question or answer is missing
            JudgeError: If the judge backend fails
        """
        if not question or not answer:
            raise ValueError("Question and answer are required for evaluation")

        start = time.time()
        dimensions = _check_dimensions(dimensions or self.dimensions)

        prompt = build_evaluation_prompt(question, answer, context, dimensions)
        scores = parse_evaluation_response(self.judge.complete(prompt), dimensions)
        overall = sum(s.score for s in scores.values()) / len(scores)

        result = AnswerQualityResult(
            dimensions=scores,
            overall_score=round(overall, 2),
            latency_ms=(time.time() - start) * 1000,
        )
        logger.info(
            f"Answer quality evaluated: overall={result.overall_score}, "
            f"dimensions={', '.join(dimensions)}"
        )
        return result

    def evaluate_batch(
        self,
        items: Optional[List[Mapping[str, Any]]],
        concurrency: Optional[int] = None,
    ) -> BatchAnswerQualityResult:
        """
        Score many {"question", "answer", "context"} items concurrently.

        Failed items (including ones missing a question or answer) are
        reported individually and excluded from the aggregates.
        """
        if not items:
            return BatchAnswerQualityResult()

        def evaluate(item: Mapping[str, Any]) -> AnswerQualityResult:
            return self.evaluate(item.get("question"), item.get("answer"), item.get("context"))

        def preview(item: Mapping[str, Any]) -> str:
            question = item.get("question") if isinstance(item, Mapping) else None
            return preview_text(question if isinstance(question, str) else None)

        limit = self.concurrency if concurrency is None else concurrency
        results = run_bounded(items, evaluate, limit, preview=preview)
        batch = BatchAnswerQualityResult(results=results)

        successful = [r.evaluation for r in results if r.success]
        if successful:
            for dim in self.dimensions:
                batch.dimensions[dim] = ScoreStats.from_values(
                    [e.dimensions[dim].score for e in successful]
                )
            batch.overall = ScoreStats.from_values([e.overall_score for e in successful])

        logger.info(
            f"Batch answer quality complete: items={batch.item_count}, "
            f"succeeded={batch.success_count}"
        )
        return batch
