"""Shared domain error messages and error types."""

from typing import Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity or path does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class UploadValidationError(ValidationError):
    """The uploaded file itself was rejected before any import work."""

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = errors
        messages = [message for field_errors in errors.values() for message in field_errors]
        super().__init__(" ".join(messages) or "The given data was invalid.")


class ImportFailedError(DomainError):
    """An import aborted and its transaction was rolled back.

    Carries the row errors collected before the failure so callers can still
    report them.
    """

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


def row_error(row_num: int, message: str) -> str:
    """Return the message recorded for a failed row."""
    return f"Row {row_num}: {message}"


def account_not_found(account_id: int) -> str:
    """Return message for missing chart account."""
    return f"Account {account_id} not found"


def journal_entry_not_found(entry_id: int) -> str:
    """Return message for missing journal entry."""
    return f"Journal entry {entry_id} not found"


def unbalanced_entry(debits, credits) -> str:
    """Return message when debits and credits disagree."""
    return f"Journal entry is not balanced: debits {debits:.2f} != credits {credits:.2f}"
