"""Environment variable secret backend."""
import os
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from src.core.secrets.base import SecretBackend
from src.core.secrets.exceptions import SecretNotFoundError

logger = logging.getLogger(__name__)


class EnvSecretBackend(SecretBackend):
    """
    Reads secrets from environment variables.

    A .env file at the project root (or the given dotenv_path) is loaded
    once on construction; variables already in the environment win.
    """

    DEFAULTS = {
        "OLLAMA_HOST": "http://localhost:11434",
        "JUDGE_MODEL": "llama3.1:8b",
    }

    def __init__(self, prefix: str = "", dotenv_path: Optional[str] = None):
        self.prefix = prefix
        path = Path(dotenv_path) if dotenv_path else Path(__file__).parents[3] / ".env"
        if path.exists():
            load_dotenv(path, override=False)
            logger.debug(f"Loaded environment file: {path}")

    def _env_key(self, key: str) -> str:
        return f"{self.prefix}{key}" if self.prefix else key

    def get_secret(self, key: str) -> str:
        env_key = self._env_key(key)
        value = os.environ.get(env_key)

        if value is None:
            if key in self.DEFAULTS:
                return self.DEFAULTS[key]
            raise SecretNotFoundError(
                f"Secret '{key}' not found. Set environment variable: {env_key}"
            )
        return value

    def set_secret(self, key: str, value: str) -> None:
        os.environ[self._env_key(key)] = value

    def health_check(self) -> bool:
        return True
