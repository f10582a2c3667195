"""Error types and structured results returned by the clinic registry."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


class ClinicError(Exception):
    """Base class for business-rule and validation failures."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ValidationError(ClinicError, ValueError):
    """Raised when a record has missing or malformed fields."""


class ConflictError(ClinicError):
    """A mutation was blocked by an overlapping or future-dated appointment."""

    def __init__(
        self,
        reason: str,
        *,
        appointment_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> None:
        super().__init__(reason)
        self.appointment_id = appointment_id
        self.start = start
        self.end = end


class DanglingReferenceError(ClinicError):
    """An appointment points at a provider or patient that does not exist."""

    def __init__(self, reason: str, *, side: str, missing_id: str) -> None:
        super().__init__(reason)
        self.side = side
        self.missing_id = missing_id


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a registry mutation or availability check."""

    ok: bool
    error: Optional[ClinicError] = None
    record: Any = None

    @classmethod
    def success(cls, record: Any = None) -> "OperationResult":
        return cls(ok=True, record=record)

    @classmethod
    def failure(cls, error: ClinicError) -> "OperationResult":
        return cls(ok=False, error=error)

    @property
    def reason(self) -> Optional[str]:
        return self.error.reason if self.error is not None else None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"ok": self.ok}
        if self.reason:
            payload["reason"] = self.reason
        return payload
