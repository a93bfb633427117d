"""Abstract base class for secret backends."""

from abc import ABC, abstractmethod


class SecretBackend(ABC):
    """
    Interface for anything that can supply ${secret:KEY} values,
    such as judge endpoints or API tokens referenced from config.
    """

    @abstractmethod
    def get_secret(self, key: str) -> str:
        """
        Retrieve a secret by key.

        Raises:
            SecretNotFoundError: If secret doesn't exist
        """
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """Return True if the backend is usable."""
        pass
