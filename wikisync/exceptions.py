"""Exception hierarchy for wiki synchronization runs."""

from enum import Enum
from typing import Optional


class ErrorCategory(Enum):
    """Classification of remote failures."""
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"


_HINTS = {
    ErrorCategory.NOT_FOUND: (
        "Verify the repository owner and name are correct and that the token "
        "has access to the repository (private repositories need 'repo' scope)."
    ),
    ErrorCategory.UNAUTHORIZED: (
        "The GitHub token was rejected. Check that GITHUB_TOKEN is set to a "
        "valid token and that it has not expired."
    ),
    ErrorCategory.RATE_LIMITED: (
        "GitHub API rate limit exceeded. Wait for the limit to reset or use an "
        "authenticated token with a higher quota."
    ),
    ErrorCategory.TRANSIENT: (
        "The request failed due to a network or server problem. Re-running the "
        "sync is safe."
    ),
    ErrorCategory.UNKNOWN: "Unexpected response from the GitHub API.",
}


class WikiSyncError(Exception):
    """Base exception for wikisync errors."""
    pass


class ConfigurationError(WikiSyncError, ValueError):
    """Invalid or incomplete configuration. The run never starts."""
    pass


class RemoteError(WikiSyncError):
    """Failure talking to the remote repository."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        status: Optional[int] = None,
        url: Optional[str] = None
    ):
        super().__init__(message)
        self.category = category
        self.status = status
        self.url = url

    def hint(self) -> str:
        """Human-readable likely cause of the failure."""
        return _HINTS[self.category]

    def __str__(self) -> str:
        message = super().__str__()
        if self.status is not None:
            return f"{message} (HTTP {self.status}, {self.category.value})"
        return f"{message} ({self.category.value})"


class ValidationError(WikiSyncError, ValueError):
    """Malformed entry encountered while parsing a synced file."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        message = super().__str__()
        return f"{self.path}: {message}" if self.path else message


__all__ = [
    'ErrorCategory',
    'WikiSyncError',
    'ConfigurationError',
    'RemoteError',
    'ValidationError'
]
