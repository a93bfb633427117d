"""Ollama LLM provider."""

import logging
from typing import Optional

import ollama

from src.generation.base import BaseLLM
from src.generation.factory import register_llm

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = """You are a careful evaluator of question-answering systems.
Judge only from the material you are given.
Respond with valid JSON only, without markdown formatting."""


@register_llm("ollama")
class OllamaLLM(BaseLLM):
    """
    LLM using Ollama.

    Usage:
        llm = OllamaLLM(host="http://localhost:11434", model="llama3.1:8b")
        response = llm.generate("Extract the claims from: ...")
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "llama3.1:8b",
        temperature: float = 0.1,
        max_tokens: int = 2048,
        system_prompt: Optional[str] = None,
        json_mode: bool = True,
    ):
        """
        Args:
            host: Ollama server URL
            model: Model name
            temperature: Sampling temperature (kept low for repeatable judgments)
            max_tokens: Maximum tokens in response
            system_prompt: Default system prompt
            json_mode: Ask the server to constrain output to JSON
        """
        self.host = host
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.system_prompt = system_prompt or DEFAULT_SYSTEM_PROMPT
        self.json_mode = json_mode
        self._client = ollama.Client(host=host)

        logger.info(f"Initialized OllamaLLM: model={model}, host={host}")

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
    ) -> str:
        """
        Generate a response for the given prompt.

        Args:
            prompt: Rendered prompt
            system_prompt: Optional override for system prompt

        Returns:
            Generated text
        """
        kwargs = {}
        if self.json_mode:
            kwargs["format"] = "json"

        response = self._client.chat(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt or self.system_prompt},
                {"role": "user", "content": prompt},
            ],
            options={
                "temperature": self.temperature,
                "num_predict": self.max_tokens,
            },
            **kwargs,
        )

        content = response["message"]["content"]
        logger.debug(f"Ollama response: {len(content)} chars")
        return content

    @property
    def model_name(self) -> str:
        """Return model name."""
        return self.model

    def health_check(self) -> bool:
        """Check if Ollama is accessible."""
        try:
            self._client.list()
            return True
        except Exception as e:
            logger.error(f"Ollama health check failed: {e}")
            return False
