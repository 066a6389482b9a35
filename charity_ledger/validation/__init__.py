"""Record validation package."""

from charity_ledger.validation.validator import (
    RecordValidator,
    ValidationError,
    issues_from_pydantic,
)

__all__ = ["RecordValidator", "ValidationError", "issues_from_pydantic"]
