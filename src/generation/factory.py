"""Factory for creating LLM providers with registry pattern."""

import logging
from typing import Any, Callable, Dict, List, Type

from src.generation.base import BaseLLM

logger = logging.getLogger(__name__)

_LLM_REGISTRY: Dict[str, Type[BaseLLM]] = {}


def register_llm(name: str) -> Callable:
    """
    Decorator to register an LLM provider class.

    Usage:
        @register_llm("ollama")
        class OllamaLLM(BaseLLM):
            ...
    """
    def decorator(cls: Type[BaseLLM]) -> Type[BaseLLM]:
        if name in _LLM_REGISTRY:
            logger.warning(f"Overwriting existing LLM: {name}")
        _LLM_REGISTRY[name] = cls
        logger.debug(f"Registered LLM: {name} -> {cls.__name__}")
        return cls
    return decorator


def get_registered_llms() -> List[str]:
    """Return list of registered LLM names."""
    return list(_LLM_REGISTRY.keys())


class LLMFactory:
    """
    Factory that creates judge LLMs from config.

    Usage:
        llm = LLMFactory.from_config({
            "provider": "ollama",
            "ollama": {
                "host": "http://localhost:11434",
                "model": "llama3.1:8b",
            },
        })

        # Or directly
        llm = LLMFactory.create("ollama", model="llama3.1:8b")
    """

    @classmethod
    def create(cls, provider: str, **kwargs) -> BaseLLM:
        """
        Create an LLM instance.

        Raises:
            ValueError: If provider is unknown
        """
        if provider not in _LLM_REGISTRY:
            raise ValueError(
                f"Unknown LLM provider: '{provider}'. "
                f"Available: {get_registered_llms()}"
            )

        logger.info(f"Creating LLM: {provider}")
        return _LLM_REGISTRY[provider](**kwargs)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> BaseLLM:
        """
        Create LLM from config dict.

        Args:
            config: "provider" name plus a section of that name holding
                the provider's keyword arguments

        Returns:
            LLM instance
        """
        provider = config.get("provider", "ollama")
        provider_config = dict(config.get(provider) or {})

        system_prompt = config.get("system_prompt")
        if system_prompt:
            provider_config["system_prompt"] = system_prompt

        logger.debug(f"Creating LLM from config: provider={provider}")
        return cls.create(provider, **provider_config)
