"""Claim-based grounding (hallucination) scoring."""
import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from src.evaluation.batch import BatchItemResult, ScoreStats, preview_text, run_bounded
from src.evaluation.config import EvaluationConfig
from src.evaluation.judge import BaseJudge, parse_json_response

logger = logging.getLogger(__name__)

DEFAULT_GROUNDING_CONCURRENCY = 2
DEFAULT_GROUNDED_THRESHOLD = 0.7
DEFAULT_CONFIDENCE = 0.5


class ClaimStatus(str, Enum):
    """Verdict for a single claim checked against the context."""
    SUPPORTED = "supported"
    PARTIALLY_SUPPORTED = "partially_supported"
    NOT_SUPPORTED = "not_supported"
    NOT_VERIFIABLE = "not_verifiable"

    @classmethod
    def coerce(cls, value: Any) -> "ClaimStatus":
        """Map judge output to a status; anything unknown is NOT_VERIFIABLE."""
        if isinstance(value, ClaimStatus):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.NOT_VERIFIABLE


STATUS_WEIGHTS: Dict[ClaimStatus, float] = {
    ClaimStatus.SUPPORTED: 1.0,
    ClaimStatus.PARTIALLY_SUPPORTED: 0.5,
    ClaimStatus.NOT_SUPPORTED: 0.0,
    ClaimStatus.NOT_VERIFIABLE: 0.0,
}

CLAIM_EXTRACTION_PROMPT = """You are an expert at analyzing text and extracting factual claims.

## Task
List every atomic factual claim made in the answer below. Each claim must be:
- A single, self-contained statement
- Independently verifiable against source documents
- A statement of fact, not an opinion

## Answer
{answer}

## Instructions
Keep closely related facts together only when they cannot be checked separately.

Respond with JSON only (no markdown code blocks):
{{
  "claims": [
    "First factual claim",
    "Second factual claim"
  ]
}}

If the answer makes no verifiable claims, respond with: {{"claims": []}}"""

CLAIM_VERIFICATION_PROMPT = """You are an expert fact-checker verifying claims against source documents.

## Task
Decide, for each numbered claim, whether the source context supports it.

## Claims
{claims}

## Source Context
{context}

## Verdicts
- "supported": stated directly or strongly implied by the context
- "partially_supported": some of the claim is supported, some details are not
- "not_supported": contradicts the context or asserts something it does not say
- "not_verifiable": concerns something the context does not cover

## Instructions
Be strict: only use "supported" when the context clearly backs the claim.

Respond with JSON only (no markdown code blocks):
{{
  "verifications": [
    {{
      "claim_index": 1,
      "status": "supported|partially_supported|not_supported|not_verifiable",
      "evidence": "Quote or explanation",
      "confidence": 0.0
    }}
  ]
}}"""

QUICK_CHECK_PROMPT = """You are evaluating whether an answer is grounded in the given context.

## Context
{context}

## Answer
{answer}

## Task
Rate from 0 to 100 how well the context supports the answer:
- 100: everything in the answer is directly supported
- 75: mostly supported, minor details inferred
- 50: about half is supported
- 25: little is supported
- 0: the answer contradicts or ignores the context

Respond with JSON only:
{{"score": <number>, "reason": "<brief explanation>"}}"""


def build_claim_extraction_prompt(answer: str) -> str:
    return CLAIM_EXTRACTION_PROMPT.format(answer=answer)


def build_claim_verification_prompt(claims: Sequence[str], context: str) -> str:
    numbered = "\n".join(f'{i + 1}. "{claim}"' for i, claim in enumerate(claims))
    return CLAIM_VERIFICATION_PROMPT.format(claims=numbered, context=context)


def build_quick_check_prompt(answer: str, context: str) -> str:
    return QUICK_CHECK_PROMPT.format(answer=answer, context=context)


@dataclass
class ClaimVerification:
    """Judge verdict for one claim."""
    claim_index: int  # 1-based
    claim: str
    status: ClaimStatus
    evidence: str = ""
    confidence: float = 0.0

    @property
    def weight(self) -> float:
        return STATUS_WEIGHTS[self.status]

    @classmethod
    def from_value(
        cls, value: Union["ClaimVerification", Mapping[str, Any]], position: int = 0
    ) -> "ClaimVerification":
        if isinstance(value, ClaimVerification):
            return value
        return cls(
            claim_index=_coerce_index(value.get("claim_index"), position + 1),
            claim=str(value.get("claim") or ""),
            status=ClaimStatus.coerce(value.get("status")),
            evidence=str(value.get("evidence") or ""),
            confidence=_coerce_confidence(value.get("confidence")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "claim_index": self.claim_index,
            "claim": self.claim,
            "status": self.status.value,
            "evidence": self.evidence,
            "confidence": self.confidence,
        }


def _coerce_confidence(value: Any) -> float:
    """Float confidence clamped to [0, 1]; missing or invalid becomes 0.5."""
    if isinstance(value, bool):
        value = None
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        confidence = DEFAULT_CONFIDENCE
    if math.isnan(confidence):
        confidence = DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, confidence))


def _coerce_index(value: Any, fallback: int) -> int:
    if isinstance(value, bool):
        return fallback
    try:
        index = int(value)
    except (TypeError, ValueError):
        return fallback
    return index if index >= 1 else fallback


@dataclass
class GroundingResult:
    """Grounding score for one (answer, context) pair."""
    score: float
    weighted_score: float
    total_claims: int
    breakdown: Dict[str, int] = field(default_factory=dict)
    unsupported_claims: List[Dict[str, str]] = field(default_factory=list)
    verifications: List[ClaimVerification] = field(default_factory=list)
    latency_ms: float = 0.0

    @property
    def supported_claims(self) -> int:
        return self.breakdown.get(ClaimStatus.SUPPORTED.value, 0)

    @property
    def partially_supported_claims(self) -> int:
        return self.breakdown.get(ClaimStatus.PARTIALLY_SUPPORTED.value, 0)

    def summary(self) -> str:
        """Human-readable summary."""
        unsupported = "\n".join(
            f'║  {i + 1}. "{uc["claim"][:60]}" ({uc["status"]})'
            for i, uc in enumerate(self.unsupported_claims)
        ) or "║  (none)"
        return f"""
╔══════════════════════════════════════════════════════════╗
║  GROUNDING SCORE                                         ║
╠══════════════════════════════════════════════════════════╣
║  Score: {self.score * 100:<48.1f}%║
║  Weighted Score: {self.weighted_score * 100:<39.1f}%║
║  Total Claims: {self.total_claims:<42}║
║  Latency: {self.latency_ms:<45.1f}ms║
╠══════════════════════════════════════════════════════════╣
║  Supported: {self.breakdown.get('supported', 0):<45}║
║  Partially Supported: {self.breakdown.get('partially_supported', 0):<35}║
║  Not Supported: {self.breakdown.get('not_supported', 0):<41}║
║  Not Verifiable: {self.breakdown.get('not_verifiable', 0):<40}║
╠══════════════════════════════════════════════════════════╣
║  UNSUPPORTED CLAIMS                                      ║
{unsupported}
╚══════════════════════════════════════════════════════════╝
"""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "score": self.score,
            "weighted_score": self.weighted_score,
            "total_claims": self.total_claims,
            "supported_claims": self.supported_claims,
            "partially_supported_claims": self.partially_supported_claims,
            "breakdown": dict(self.breakdown),
            "unsupported_claims": list(self.unsupported_claims),
            "verifications": [v.to_dict() for v in self.verifications],
            "latency_ms": round(self.latency_ms, 2),
        }


def _empty_breakdown() -> Dict[str, int]:
    return {status.value: 0 for status in ClaimStatus}


def score_verifications(
    verifications: Sequence[Union[ClaimVerification, Mapping[str, Any]]],
    include_verifications: bool = True,
) -> GroundingResult:
    """
    Aggregate per-claim verdicts into a grounding score.

    score is the mean status weight. weighted_score weights each
    claim by its confidence and falls back to score when the
    confidences sum to 0. No claims means fully grounded.

    Args:
        verifications: ClaimVerification objects or equivalent mappings
        include_verifications: Keep the verdicts on the result

    Returns:
        GroundingResult with scores rounded to 3 decimals
    """
    checked = [ClaimVerification.from_value(v, i) for i, v in enumerate(verifications or [])]

    if not checked:
        return GroundingResult(score=1.0, weighted_score=1.0, total_claims=0, breakdown=_empty_breakdown())

    breakdown = _empty_breakdown()
    weight_sum = 0.0
    confidence_weighted_sum = 0.0
    confidence_sum = 0.0

    for v in checked:
        breakdown[v.status.value] += 1
        weight_sum += v.weight
        confidence_weighted_sum += v.weight * v.confidence
        confidence_sum += v.confidence

    score = weight_sum / len(checked)
    weighted_score = confidence_weighted_sum / confidence_sum if confidence_sum > 0 else score

    unsupported = [
        {"claim": v.claim, "status": v.status.value, "evidence": v.evidence}
        for v in checked
        if v.status in (ClaimStatus.NOT_SUPPORTED, ClaimStatus.NOT_VERIFIABLE)
    ]

    return GroundingResult(
        score=round(score, 3),
        weighted_score=round(weighted_score, 3),
        total_claims=len(checked),
        breakdown=breakdown,
        unsupported_claims=unsupported,
        verifications=checked if include_verifications else [],
    )


def extract_claims(answer: str, judge: BaseJudge) -> List[str]:
    """
    Ask the judge to split an answer into atomic claims.

    Falls back to the whole answer as a single claim when the judge
    output cannot be parsed.

    Raises:
        JudgeError: If the judge backend fails
    """
    parsed = parse_json_response(judge.complete(build_claim_extraction_prompt(answer)))

    if isinstance(parsed, dict) and isinstance(parsed.get("claims"), list):
        return [
            str(claim).strip() for claim in parsed["claims"]
            if claim is not None and str(claim).strip()
        ]

    logger.warning("Failed to extract claims, treating answer as single claim")
    return [answer]


def _unverified(claims: Sequence[str], reason: str) -> List[ClaimVerification]:
    return [
        ClaimVerification(i + 1, claim, ClaimStatus.NOT_VERIFIABLE, reason, 0.0)
        for i, claim in enumerate(claims)
    ]


def verify_claims(
    claims: Sequence[str],
    context: str,
    judge: BaseJudge,
) -> List[ClaimVerification]:
    """
    Ask the judge to verify each claim against the context.

    Judge verdicts are normalized: unknown statuses become
    NOT_VERIFIABLE, confidences are clamped, and claims the judge
    skipped are marked NOT_VERIFIABLE with zero confidence. Unparseable
    output marks every claim NOT_VERIFIABLE.

    Args:
        claims: Claims to verify
        context: Source context
        judge: Judge to ask

    Returns:
        One ClaimVerification per claim, ordered by claim_index

    Raises:
        JudgeError: If the judge backend fails
    """
    if not claims:
        return []

    parsed = parse_json_response(judge.complete(build_claim_verification_prompt(claims, context)))

    if not (isinstance(parsed, dict) and isinstance(parsed.get("verifications"), list)):
        logger.warning("Failed to verify claims, defaulting to not_verifiable")
        return _unverified(claims, "Verification failed")

    by_index: Dict[int, ClaimVerification] = {}
    for position, raw in enumerate(parsed["verifications"]):
        if not isinstance(raw, dict):
            continue
        index = _coerce_index(raw.get("claim_index"), position + 1)
        if index > len(claims) or index in by_index:
            continue
        by_index[index] = ClaimVerification(
            claim_index=index,
            claim=claims[index - 1],
            status=ClaimStatus.coerce(raw.get("status")),
            evidence=str(raw.get("evidence") or ""),
            confidence=_coerce_confidence(raw.get("confidence")),
        )

    missing = [i for i in range(1, len(claims) + 1) if i not in by_index]
    if missing:
        logger.warning(f"Judge returned no verdict for claims {missing}")
        for i in missing:
            by_index[i] = ClaimVerification(
                i, claims[i - 1], ClaimStatus.NOT_VERIFIABLE, "No verification returned", 0.0
            )

    return [by_index[i] for i in sorted(by_index)]


@dataclass
class QuickGroundingResult:
    """Single-number grounding estimate without claim analysis."""
    score: float
    is_grounded: bool
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "is_grounded": self.is_grounded, "reason": self.reason}


@dataclass
class BatchGroundingResult:
    """Grounding scores over many (answer, context) pairs."""
    results: List[BatchItemResult] = field(default_factory=list)
    score: Optional[ScoreStats] = None
    weighted_score: Optional[ScoreStats] = None
    total_claims: int = 0
    supported_claims: int = 0
    support_rate: float = 1.0
    latency_ms: float = 0.0

    @property
    def item_count(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed_count(self) -> int:
        return self.item_count - self.success_count

    def summary(self) -> str:
        """Human-readable summary."""
        if self.item_count == 0:
            return "No batch grounding evaluation results"

        header = f"""
╔══════════════════════════════════════════════════════════╗
║  BATCH GROUNDING SCORE                                   ║
╠══════════════════════════════════════════════════════════╣
║  Items: {self.item_count:<49}║
║  Successful: {self.success_count:<44}║
║  Failed: {self.failed_count:<48}║"""
        if self.score is None:
            return header + "\n╚══════════════════════════════════════════════════════════╝\n"

        return header + f"""
╠══════════════════════════════════════════════════════════╣
║  Mean Score: {self.score.mean * 100:.1f}% (±{self.score.std_dev * 100:.1f}%)
║  Score Range: {self.score.min * 100:.1f}% - {self.score.max * 100:.1f}%
║  Mean Weighted Score: {self.weighted_score.mean * 100:.1f}%
║  Claims: {self.total_claims} total, {self.supported_claims} supported
║  Support Rate: {self.support_rate * 100:.1f}%
╚══════════════════════════════════════════════════════════╝
"""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        aggregate: Dict[str, Any] = {}
        if self.score is not None:
            aggregate = {
                "score": self.score.to_dict(),
                "weighted_score": self.weighted_score.to_dict(),
                "claims": {
                    "total": self.total_claims,
                    "supported": self.supported_claims,
                    "support_rate": self.support_rate,
                },
            }
        return {
            "item_count": self.item_count,
            "success_count": self.success_count,
            "results": [r.to_dict() for r in self.results],
            "aggregate": aggregate,
            "latency_ms": round(self.latency_ms, 2),
        }


def _split_item(item: Any) -> Tuple[Any, Any]:
    if isinstance(item, Mapping):
        return item.get("answer"), item.get("context")
    if isinstance(item, (list, tuple)) and len(item) == 2:
        return item[0], item[1]
    raise ValueError(f"Expected an (answer, context) item, got {type(item).__name__}")


class GroundingScorer:
    """
    Score how well answers are grounded in retrieved context.

    Usage:
        scorer = GroundingScorer(LLMJudge(llm))
        result = scorer.score(answer, context)
        print(result.summary())

        batch = scorer.score_batch([{"answer": a, "context": c}, ...])
    """

    def __init__(
        self,
        judge: BaseJudge,
        include_verifications: bool = True,
        concurrency: int = DEFAULT_GROUNDING_CONCURRENCY,
        grounded_threshold: float = DEFAULT_GROUNDED_THRESHOLD,
    ):
        """
        Args:
            judge: Judge used for claim extraction and verification
            include_verifications: Keep per-claim verdicts on single results
            concurrency: Default in-flight judge calls for batches
            grounded_threshold: Minimum quick-check score counted as grounded
        """
        self.judge = judge
        self.include_verifications = include_verifications
        self.concurrency = concurrency
        self.grounded_threshold = grounded_threshold

    @classmethod
    def from_config(cls, judge: BaseJudge, config: EvaluationConfig) -> "GroundingScorer":
        """Create a scorer using the judge-backed settings of an EvaluationConfig."""
        return cls(
            judge,
            include_verifications=config.include_verifications,
            concurrency=config.grounding_concurrency,
            grounded_threshold=config.grounded_threshold,
        )

    def score(
        self,
        answer: Optional[str],
        context: Optional[str],
        include_verifications: Optional[bool] = None,
    ) -> GroundingResult:
        """
        Extract claims from the answer and verify them against context.

        An empty answer is fully grounded; an empty context scores 0
        with the whole answer recorded as one unsupported claim.

        Args:
            answer: Generated answer
            context: Retrieved context the answer should rely on
            include_verifications: Override the scorer default

        Returns:
            GroundingResult

        Raises:
            JudgeError: If the judge backend fails
        """
        start = time.time()
        keep = self.include_verifications if include_verifications is None else include_verifications

        answer = answer if isinstance(answer, str) else ""
        context = context if isinstance(context, str) else ""

        if not answer.strip():
            result = score_verifications([])
        elif not context.strip():
            logger.warning("Empty context provided for grounding evaluation")
            result = score_verifications(
                [
                    ClaimVerification(
                        1, answer, ClaimStatus.NOT_SUPPORTED,
                        "No context provided for verification", 1.0,
                    )
                ],
                include_verifications=keep,
            )
        else:
            logger.debug(f"Extracting claims from answer ({len(answer)} chars)")
            claims = extract_claims(answer, self.judge)
            if not claims:
                result = score_verifications([])
            else:
                logger.debug(f"Verifying {len(claims)} claims against context")
                result = score_verifications(
                    verify_claims(claims, context, self.judge),
                    include_verifications=keep,
                )

        result.latency_ms = (time.time() - start) * 1000
        logger.info(
            f"Grounding score: {result.score:.3f} "
            f"(weighted {result.weighted_score:.3f}, claims={result.total_claims})"
        )
        return result

    def score_batch(
        self,
        items: Optional[List[Any]],
        concurrency: Optional[int] = None,
        include_verifications: bool = False,
    ) -> BatchGroundingResult:
        """
        Score many (answer, context) pairs with bounded concurrency.

        Failed items are reported individually and left out of the
        aggregate statistics.

        Args:
            items: {"answer", "context"} mappings or (answer, context) pairs
            concurrency: Maximum in-flight evaluations
            include_verifications: Keep per-claim verdicts on each result

        Returns:
            BatchGroundingResult
        """
        start = time.time()
        if not items:
            return BatchGroundingResult()

        def evaluate(item: Any) -> GroundingResult:
            answer, context = _split_item(item)
            return self.score(answer, context, include_verifications=include_verifications)

        def preview(item: Any) -> str:
            answer = item.get("answer") if isinstance(item, Mapping) else None
            return preview_text(answer if isinstance(answer, str) else None)

        limit = self.concurrency if concurrency is None else concurrency
        results = run_bounded(items, evaluate, limit, preview=preview)
        batch = BatchGroundingResult(results=results)

        successful = [r.evaluation for r in results if r.success]
        if successful:
            batch.score = ScoreStats.from_values([e.score for e in successful])
            batch.weighted_score = ScoreStats.from_values([e.weighted_score for e in successful])
            batch.total_claims = sum(e.total_claims for e in successful)
            batch.supported_claims = sum(e.supported_claims for e in successful)
            batch.support_rate = (
                batch.supported_claims / batch.total_claims if batch.total_claims > 0 else 1.0
            )

        batch.latency_ms = (time.time() - start) * 1000
        mean_score = f"{batch.score.mean:.3f}" if batch.score else "n/a"
        logger.info(
            f"Batch grounding complete: items={batch.item_count}, "
            f"succeeded={batch.success_count}, failed={batch.failed_count}, mean={mean_score}"
        )
        return batch

    def quick_check(self, answer: Optional[str], context: Optional[str]) -> QuickGroundingResult:
        """
        One-shot 0-100 grounding rating, normalized to [0, 1].

        Raises:
            JudgeError: If the judge backend fails
        """
        answer = answer if isinstance(answer, str) else ""
        context = context if isinstance(context, str) else ""

        if not answer.strip():
            return QuickGroundingResult(1.0, True, "Empty answer")
        if not context.strip():
            return QuickGroundingResult(0.0, False, "No context provided for verification")

        parsed = parse_json_response(self.judge.complete(build_quick_check_prompt(answer, context)))
        raw = parsed.get("score") if isinstance(parsed, dict) else None

        if isinstance(raw, (int, float)) and not isinstance(raw, bool) and not math.isnan(raw):
            score = min(100.0, max(0.0, float(raw))) / 100
            return QuickGroundingResult(
                score=score,
                is_grounded=score >= self.grounded_threshold,
                reason=str(parsed.get("reason") or ""),
            )

        logger.warning("Unable to parse quick grounding response")
        return QuickGroundingResult(0.5, False, "Unable to parse evaluation")
