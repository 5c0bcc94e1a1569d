"""Input validation package."""

from splitledger.validation.validator import (
    LedgerValidator,
    issues_from_validation_error,
)

__all__ = ["LedgerValidator", "issues_from_validation_error"]
