"""Secret lookup errors."""


class SecretError(Exception):
    """Base class for secret lookup failures."""
    pass


class SecretNotFoundError(SecretError):
    """A referenced secret is not set and has no default."""
    pass


class SecretBackendError(SecretError):
    """The secret backend is unknown or unusable."""
    pass
