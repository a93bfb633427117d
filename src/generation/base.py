"""Abstract base class for LLM providers used as judges."""

from abc import ABC, abstractmethod
from typing import Optional


class BaseLLM(ABC):
    """
    Abstract base class that all LLM providers must implement.

    Judges only need single-turn completion, so the interface is a
    prompt in and text out.
    """

    @abstractmethod
    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
    ) -> str:
        """
        Generate a response for the given prompt.

        Args:
            prompt: Rendered prompt
            system_prompt: Optional system instructions

        Returns:
            Generated text response
        """
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model name being used."""
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """
        Check if LLM is accessible.

        Returns:
            True if healthy
        """
        pass
