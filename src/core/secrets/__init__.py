"""Secrets module - ${secret:KEY} resolution for evaluation config."""

from src.core.secrets.exceptions import SecretNotFoundError, SecretBackendError
from src.core.secrets.base import SecretBackend
from src.core.secrets.env_backend import EnvSecretBackend
from src.core.secrets.resolver import SecretResolver

__all__ = [
    "SecretNotFoundError",
    "SecretBackendError",
    "SecretBackend",
    "EnvSecretBackend",
    "SecretResolver",
]
