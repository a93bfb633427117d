"""Custom exceptions for the evaluation module."""


class EvaluationError(Exception):
    """Base class for evaluation failures."""
    pass


class JudgeError(EvaluationError):
    """Raised when the judge backend cannot produce a completion."""
    pass
