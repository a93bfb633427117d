"""Language-model judge used by the grounding and answer-quality scorers."""
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

from src.evaluation.exceptions import JudgeError
from src.generation import BaseLLM, LLMFactory

logger = logging.getLogger(__name__)

DEFAULT_JUDGE_SYSTEM_PROMPT = "You are an expert evaluator. Respond only with valid JSON, no markdown formatting."

FENCED_BLOCK_PATTERN = re.compile(r"```[a-zA-Z0-9_-]*[ \t]*\n?(.*?)(?:```|\Z)", re.DOTALL)


class BaseJudge(ABC):
    """
    Abstract judge: turns a prompt into a text completion.

    Scorers only depend on this interface, so tests can pass a stub
    that returns canned text.
    """

    @abstractmethod
    def complete(self, prompt: str) -> str:
        """
        Complete a prompt.

        Args:
            prompt: Fully rendered judge prompt

        Returns:
            Raw judge text

        Raises:
            JudgeError: If the backend fails
        """
        pass


class LLMJudge(BaseJudge):
    """
    Judge backed by a generation provider.

    Usage:
        judge = LLMJudge(OllamaLLM(model="llama3.1:8b"))
        text = judge.complete(prompt)

        # Or from the "judge" config section
        judge = LLMJudge.from_config(config.get_section("judge"))
    """

    def __init__(
        self,
        llm: BaseLLM,
        system_prompt: Optional[str] = None,
    ):
        """
        Args:
            llm: Generation provider
            system_prompt: Instructions sent with every prompt
        """
        self.llm = llm
        self.system_prompt = system_prompt or DEFAULT_JUDGE_SYSTEM_PROMPT
        logger.info(f"Initialized LLMJudge: model={llm.model_name}")

    @classmethod
    def from_config(cls, config: dict) -> "LLMJudge":
        """
        Create a judge from a config dict.

        The dict follows the LLMFactory layout ("provider" plus a
        provider section); "judge_system_prompt" overrides the judge
        instructions.
        """
        llm_config = dict(config)
        system_prompt = llm_config.pop("judge_system_prompt", None)
        return cls(LLMFactory.from_config(llm_config), system_prompt=system_prompt)

    def complete(self, prompt: str) -> str:
        try:
            return self.llm.generate(prompt, system_prompt=self.system_prompt)
        except Exception as e:
            raise JudgeError(f"Judge call to {self.llm.model_name} failed: {e}") from e


def parse_json_response(response: Optional[str]) -> Optional[Any]:
    """
    Parse JSON from judge output, tolerating markdown code fences.

    Args:
        response: Raw judge text

    Returns:
        Parsed JSON value, or None when the text is not valid JSON
    """
    if not response or not isinstance(response, str):
        return None

    text = response.strip()
    fenced = FENCED_BLOCK_PATTERN.search(text)
    if fenced:
        text = fenced.group(1)

    try:
        return json.loads(text.strip())
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse judge JSON: {e}")
        return None
