"""Custom exceptions for Tether."""

from typing import Any


class TetherError(Exception):
    """Base exception for all Tether errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}


class ConfigError(TetherError):
    """Raised when a user configuration file cannot be loaded or is invalid."""


class InvalidSourceError(TetherError):
    """Raised when a knowledge base source URL is malformed."""


class FetchError(TetherError):
    """Raised when the initial knowledge base clone fails."""


class KnowledgeBaseError(TetherError):
    """Raised when the local knowledge base is missing or unusable."""


class GitCommandError(TetherError):
    """Raised when a git invocation exits with a non-zero status."""


class NotARepoError(TetherError):
    """Raised when a git operation is attempted outside a repository."""


class AssistantError(TetherError):
    """Raised when the external assistant cannot be run or fails."""
