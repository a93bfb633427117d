"""Shared fixtures for evaluation tests."""

import threading
from typing import Callable, List, Union

import pytest

from src.core.config import Config
from src.evaluation.judge import BaseJudge


class StubJudge(BaseJudge):
    """
    Judge returning canned responses in call order.

    A response may be a string, an exception instance (raised) or a
    callable taking the prompt.
    """

    def __init__(self, responses: List[Union[str, Exception, Callable[[str], str]]]):
        self.responses = list(responses)
        self.prompts: List[str] = []
        self._lock = threading.Lock()

    def complete(self, prompt: str) -> str:
        with self._lock:
            self.prompts.append(prompt)
            response = self.responses.pop(0) if self.responses else ""
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(prompt)
        return response


@pytest.fixture
def stub_judge():
    """Factory fixture: stub_judge(["response", ...])."""
    return StubJudge


@pytest.fixture(autouse=True)
def reset_config():
    """Keep the Config singleton from leaking between tests."""
    Config.reset()
    yield
    Config.reset()
