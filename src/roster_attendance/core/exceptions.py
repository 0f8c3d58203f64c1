from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when an operation is rejected before any state is mutated."""


class InvalidDateError(ValidationError):
    """Raised when a date after today is selected."""


class NotEditableError(ValidationError):
    """Raised when an edit is attempted outside today or outside edit mode."""


class EmptyCommitError(ValidationError):
    """Raised when a commit is requested with nothing staged."""


class RemarksRequiredError(ValidationError):
    """Raised when LATE/EXCUSED would be recorded without remarks."""


class CommitInProgressError(ValidationError):
    """Raised when a second commit (or a date change) overlaps a running commit."""


class NoPendingSelectionError(ValidationError):
    """Raised when remarks are confirmed while no LATE/EXCUSED choice is pending."""


class UnknownRegistrationError(ValidationError):
    """Raised when a registration id is not part of the loaded roster."""


class TransportError(DomainError):
    """Raised when the remote service cannot be reached or answers with an error.

    Commits are atomic, so this never carries partial-success information.
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
