"""Bounded-concurrency batch execution for judge-backed evaluations."""
import logging
import statistics
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BatchItemResult:
    """Outcome of evaluating one batch item."""
    index: int
    success: bool
    evaluation: Any = None
    error: Optional[str] = None
    preview: str = ""

    def to_dict(self) -> Dict[str, Any]:
        evaluation = self.evaluation
        if evaluation is not None and hasattr(evaluation, "to_dict"):
            evaluation = evaluation.to_dict()
        return {
            "index": self.index,
            "preview": self.preview,
            "success": self.success,
            "error": self.error,
            "evaluation": evaluation,
        }


@dataclass
class ScoreStats:
    """Mean, range and population standard deviation of a score series."""
    mean: float = 0.0
    min: float = 0.0
    max: float = 0.0
    std_dev: float = 0.0

    @classmethod
    def from_values(cls, values: Sequence[float]) -> "ScoreStats":
        if not values:
            return cls()
        return cls(
            mean=statistics.mean(values),
            min=min(values),
            max=max(values),
            std_dev=statistics.pstdev(values) if len(values) > 1 else 0.0,
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "mean": round(self.mean, 4),
            "min": round(self.min, 4),
            "max": round(self.max, 4),
            "std_dev": round(self.std_dev, 4),
        }


def preview_text(text: Optional[str], limit: int = 100) -> str:
    """First `limit` characters of text, with an ellipsis when cut."""
    if not text:
        return ""
    return text[:limit] + ("..." if len(text) > limit else "")


def run_bounded(
    items: Sequence[T],
    worker: Callable[[T], Any],
    concurrency: int = 3,
    preview: Optional[Callable[[T], str]] = None,
) -> List[BatchItemResult]:
    """
    Run worker over items with at most `concurrency` calls in flight.

    A failing item is recorded as success=False with its error and does
    not affect the others. Results are positional: results[i] belongs
    to items[i] regardless of completion order.

    Args:
        items: Work items
        worker: Callable evaluating one item
        concurrency: Maximum number of concurrent worker calls
        preview: Optional callable producing a short label per item

    Returns:
        List of BatchItemResult, one per item

    Raises:
        ValueError: If concurrency is less than 1
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be at least 1, got {concurrency}")

    if not items:
        return []

    results: List[Optional[BatchItemResult]] = [None] * len(items)

    def run_one(index: int, item: T) -> BatchItemResult:
        label = ""
        try:
            if preview:
                label = preview(item)
            return BatchItemResult(index=index, success=True, evaluation=worker(item), preview=label)
        except Exception as e:
            logger.warning(f"Batch item {index} failed: {e}")
            return BatchItemResult(index=index, success=False, error=str(e), preview=label)

    with ThreadPoolExecutor(max_workers=concurrency) as executor:
        futures = [executor.submit(run_one, i, item) for i, item in enumerate(items)]
        for future in as_completed(futures):
            result = future.result()
            results[result.index] = result

    failed = sum(1 for r in results if not r.success)
    logger.debug(f"Batch finished: {len(results)} items, {failed} failed")
    return results
