"""Secret resolver - substitutes ${secret:KEY} references in config values."""

import re
import logging
from typing import Any

from src.core.secrets.base import SecretBackend
from src.core.secrets.env_backend import EnvSecretBackend
from src.core.secrets.exceptions import SecretBackendError, SecretNotFoundError

logger = logging.getLogger(__name__)

# ${secret:KEY} or ${secret:KEY:-fallback}
SECRET_PATTERN = re.compile(r'\$\{secret:([^}:]+)(?::-([^}]*))?\}')

BACKENDS = {
    "env": EnvSecretBackend,
}


class SecretResolver:
    """
    Resolves ${secret:KEY} references in config values.

    Usage:
        resolver = SecretResolver(backend="env")
        host = resolver.resolve_value("${secret:OLLAMA_HOST}")

        # Inline fallback when the secret is unset
        model = resolver.resolve_value("${secret:JUDGE_MODEL:-llama3.1:8b}")

        # Or resolve a whole config tree
        config = resolver.resolve_config(raw_config)
    """

    def __init__(self, backend: str = "env", **backend_config):
        """
        Args:
            backend: Backend name (only 'env' is available)
            **backend_config: Backend keyword arguments (e.g. prefix)

        Raises:
            SecretBackendError: If the backend is unknown
        """
        if backend not in BACKENDS:
            raise SecretBackendError(
                f"Unknown backend: {backend}. Available: {list(BACKENDS)}"
            )
        self.backend: SecretBackend = BACKENDS[backend](**backend_config)
        logger.info(f"Initialized SecretResolver with backend: {backend}")

    def resolve_value(self, value: Any) -> Any:
        """
        Replace secret references in a string; other values pass through.

        Raises:
            SecretNotFoundError: If a secret is unset and has no fallback
        """
        if not isinstance(value, str):
            return value

        def replace_secret(match):
            key, fallback = match.group(1), match.group(2)
            try:
                return self.backend.get_secret(key)
            except SecretNotFoundError:
                if fallback is None:
                    raise
                return fallback

        return SECRET_PATTERN.sub(replace_secret, value)

    def resolve_config(self, config: Any) -> Any:
        """Recursively resolve secrets in dicts, lists and strings."""
        if isinstance(config, dict):
            return {k: self.resolve_config(v) for k, v in config.items()}
        if isinstance(config, list):
            return [self.resolve_config(item) for item in config]
        return self.resolve_value(config)

    def health_check(self) -> bool:
        """Check if the secret backend is healthy."""
        return self.backend.health_check()
