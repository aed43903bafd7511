"""Exception types shared across unfold."""

from __future__ import annotations


class UnfoldError(RuntimeError):
    pass


class FetchError(UnfoldError):
    """A directory listing or file fetch failed.

    The message is opaque; callers only look at ``retryable``.
    """

    def __init__(self, message: str, *, path: str = "", retryable: bool = False) -> None:
        super().__init__(message)
        self.path = path
        self.retryable = retryable


class DecodeError(UnfoldError):
    def __init__(self, message: str, *, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class ExplorationCancelled(UnfoldError):
    """A newer refresh superseded the running exploration."""


class GenerationError(UnfoldError):
    """The external generation call failed (auth, quota, network)."""

    def __init__(self, message: str, *, status: int | None = None, retryable: bool = False) -> None:
        super().__init__(message)
        self.status = status
        self.retryable = retryable
