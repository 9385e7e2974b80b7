# src/exceptions.py

"""Application exception classes."""


class BayBotError(Exception):
    """Base class for all baybot failures."""


class SourceUnavailable(BayBotError):
    """Raised when a marketplace search fails for transport reasons."""

    def __init__(
        self,
        message: str,
        *,
        keyword: str = "",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.keyword = keyword
        self.status_code = status_code


class AuthFailure(BayBotError):
    """Raised when marketplace credentials or tokens are rejected.

    Never retried: every keyword shares the same credential.
    """


class QualificationFailure(BayBotError):
    """Raised when the AI call fails or returns malformed output."""


class CacheCorrupt(BayBotError):
    """Raised when a cache entry cannot be decoded."""
