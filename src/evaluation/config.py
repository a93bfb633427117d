"""Evaluation settings with defaults and validation."""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from src.core.config import Config
from src.evaluation.matching import DEFAULT_SIMILARITY_THRESHOLD, MatchingMode, resolve_mode
from src.evaluation.metrics import DEFAULT_K_VALUES


@dataclass
class EvaluationConfig:
    """
    Settings shared by the evaluators.

    Attributes:
        matching_mode: Default matching mode for extraction evaluation
        similarity_threshold: Fuzzy-match acceptance threshold (0.0-1.0)
        k_values: Retrieval cutoffs to report
        grounding_concurrency: In-flight judge calls for grounding batches
        quality_concurrency: In-flight judge calls for answer-quality batches
        grounded_threshold: Minimum quick-check score counted as grounded
        include_verifications: Keep per-claim verdicts on single results
    """
    # Extraction
    matching_mode: MatchingMode = MatchingMode.STRICT
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD

    # Retrieval
    k_values: List[int] = field(default_factory=lambda: list(DEFAULT_K_VALUES))

    # Judge-backed scoring
    grounding_concurrency: int = 2
    quality_concurrency: int = 3
    grounded_threshold: float = 0.7
    include_verifications: bool = True

    def validate(self) -> None:
        """Validate configuration values."""
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ValueError("similarity_threshold must be between 0.0 and 1.0")
        if not self.k_values:
            raise ValueError("k_values must not be empty")
        if any(isinstance(k, bool) or not isinstance(k, int) or k < 1 for k in self.k_values):
            raise ValueError("k_values must be positive integers")
        if self.grounding_concurrency < 1:
            raise ValueError("grounding_concurrency must be at least 1")
        if self.quality_concurrency < 1:
            raise ValueError("quality_concurrency must be at least 1")
        if not 0.0 <= self.grounded_threshold <= 1.0:
            raise ValueError("grounded_threshold must be between 0.0 and 1.0")

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "EvaluationConfig":
        """Build from an "evaluation" config section; unknown keys are ignored."""
        known = {k: v for k, v in (values or {}).items() if k in cls.__dataclass_fields__}
        if "matching_mode" in known:
            known["matching_mode"] = resolve_mode(known["matching_mode"])
        if "k_values" in known:
            known["k_values"] = list(known["k_values"] or [])
        config = cls(**known)
        config.validate()
        return config

    @classmethod
    def from_config(cls, config: Config) -> "EvaluationConfig":
        """
        Build from the "evaluation" section of a loaded Config.

        Raises:
            ValueError: If a value is out of range
        """
        return cls.from_dict(config.get_section("evaluation"))
