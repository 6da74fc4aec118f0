"""
Recipient validation models.

Per-item outcome of a pre-flight check and the summary of one
validation call.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ValidationResult:
    """Pre-flight outcome of one payment item."""

    item_id: str
    is_valid: bool
    account_name: str | None = None
    error: str | None = None
    validated_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ValidationResult":
        return cls(
            item_id=str(data["itemId"]),
            is_valid=bool(data.get("isValid")),
            account_name=data.get("accountName") or None,
            error=data.get("error") or None,
            validated_at=data.get("validatedAt"),
        )


@dataclass(frozen=True)
class ValidationSummary:
    """Response of one bulk validation call."""

    total_items: int
    valid_items: int
    invalid_items: int
    results: list[ValidationResult] = field(default_factory=list)

    @property
    def all_valid(self) -> bool:
        return self.valid_items == self.total_items

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "ValidationSummary":
        results = [
            ValidationResult.from_dict(r)
            for r in data.get("results") or []
            if isinstance(r, dict) and r.get("itemId")
        ]
        valid = data.get("validItems")
        invalid = data.get("invalidItems")
        return cls(
            total_items=int(data.get("totalItems") or len(results)),
            valid_items=int(valid if valid is not None else sum(r.is_valid for r in results)),
            invalid_items=int(
                invalid if invalid is not None else sum(not r.is_valid for r in results)
            ),
            results=results,
        )
