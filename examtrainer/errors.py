from __future__ import annotations

"""Exception types surfaced to the presentation layer."""


class ExamTrainerError(Exception):
    """Base class; `message` is safe to show to the user."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SessionRejected(ExamTrainerError):
    """A session operation's precondition failed; session state is unchanged."""


class InvalidInput(ExamTrainerError):
    """Editor or catalogue input failed validation."""


class BackupError(ExamTrainerError):
    """A backup could not be written or restored."""
