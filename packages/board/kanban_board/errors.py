"""Exception types raised by the board engine."""

from __future__ import annotations


class BoardError(Exception):
    """Base class for all board engine errors."""


class BoardValidationError(BoardError):
    """Rejected locally before any network call; the message is user-facing."""


class ListValidationError(BoardValidationError):
    pass


class LastListError(ListValidationError):
    def __init__(self) -> None:
        super().__init__("Cannot delete the last list")


class TaskValidationError(BoardValidationError):
    pass


class RemoteStoreError(BoardError):
    """The remote task store rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


class RemoteUnavailableError(RemoteStoreError):
    """Transport-level failure: connect, read or timeout."""
