"""Tests for bounded-concurrency batch execution."""

import threading
import time

import pytest

from src.evaluation.batch import BatchItemResult, ScoreStats, preview_text, run_bounded


class TestRunBounded:
    """Tests for run_bounded."""

    def test_results_are_positional(self):
        """Should place each result at its item's index regardless of finish order."""
        # Arrange
        delays = [0.05, 0.0, 0.02, 0.0]

        def worker(delay):
            time.sleep(delay)
            return delay

        # Act
        results = run_bounded(delays, worker, concurrency=4)

        # Assert
        assert [r.index for r in results] == [0, 1, 2, 3]
        assert [r.evaluation for r in results] == delays

    def test_failure_is_isolated(self):
        """Should record a failing item without affecting the others."""
        def worker(value):
            if value == 2:
                raise RuntimeError("judge unavailable")
            return value * 10

        results = run_bounded([1, 2, 3], worker, concurrency=2)

        assert [r.success for r in results] == [True, False, True]
        assert results[1].error == "judge unavailable"
        assert results[1].evaluation is None
        assert results[2].evaluation == 30

    def test_concurrency_is_bounded(self):
        """Should never run more than `concurrency` workers at once."""
        # Arrange
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def worker(_):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.01)
            with lock:
                state["active"] -= 1

        # Act
        run_bounded(list(range(10)), worker, concurrency=2)

        # Assert
        assert state["peak"] <= 2

    def test_preview_label(self):
        """Should attach the preview label to each result."""
        results = run_bounded(["hello"], str.upper, preview=lambda item: item[:2])

        assert results[0].preview == "he"
        assert results[0].evaluation == "HELLO"

    def test_empty_items(self):
        """Should return an empty list."""
        assert run_bounded([], lambda item: item) == []

    def test_invalid_concurrency(self):
        """Should raise ValueError for concurrency below 1."""
        with pytest.raises(ValueError):
            run_bounded([1], lambda item: item, concurrency=0)

    def test_to_dict_serializes_evaluation(self):
        """Should call to_dict on evaluations that have one."""
        result = BatchItemResult(index=0, success=True, evaluation=ScoreStats(mean=1.0))

        assert result.to_dict()["evaluation"]["mean"] == 1.0


class TestScoreStats:
    """Tests for ScoreStats."""

    def test_from_values(self):
        """Should compute mean, range and population standard deviation."""
        stats = ScoreStats.from_values([1.0, 3.0])

        assert stats.mean == 2.0
        assert (stats.min, stats.max) == (1.0, 3.0)
        assert stats.std_dev == pytest.approx(1.0)

    def test_single_value(self):
        """Should report zero spread for one value."""
        assert ScoreStats.from_values([0.4]).std_dev == 0.0

    def test_no_values(self):
        """Should return zeros for no values."""
        assert ScoreStats.from_values([]) == ScoreStats()


class TestPreviewText:
    """Tests for preview_text."""

    def test_short_text_unchanged(self):
        """Should keep text within the limit."""
        assert preview_text("short") == "short"

    def test_long_text_truncated(self):
        """Should cut to the limit and add an ellipsis."""
        assert preview_text("x" * 150) == "x" * 100 + "..."

    def test_missing_text(self):
        """Should return empty string for None."""
        assert preview_text(None) == ""
