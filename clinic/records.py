"""Record types for providers, patients and appointments.

Records are immutable dataclasses. ``from_dict``/``to_dict`` convert between
the records and the JSON objects kept in the backing store, and ``validate``
returns a normalised copy of a record or raises :class:`ValidationError`.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .errors import ValidationError

APPOINTMENT_DURATION = timedelta(hours=2)

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
PHONE_PATTERN = re.compile(r"[0-9+\-\s()]{7,}")


class Specialty(str, Enum):
    GENERAL = "General Dentistry"
    ORTHODONTICS = "Orthodontics"
    ENDODONTICS = "Endodontics"
    MAXILLOFACIAL_SURGERY = "Maxillofacial Surgery"
    PEDIATRIC = "Pediatric Dentistry"


def name_sort_key(name: str) -> str:
    """Collation key used for every name-ordered listing.

    Names are compared the way a reader expects rather than by code point:
    compatibility-decomposed, stripped of accents and casefolded, so that
    "Álvarez" sorts next to "alvarez" and before "Bravo". Names that fold to
    the same key keep their stored order because callers sort stably.
    """

    decomposed = unicodedata.normalize("NFKD", name)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def parse_instant(value: Any) -> datetime:
    """Coerce *value* to an aware UTC datetime; naive values are read as UTC."""

    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            raise ValidationError("Appointment start time is required")
        if cleaned.endswith(("Z", "z")):
            cleaned = f"{cleaned[:-1]}+00:00"
        try:
            moment = datetime.fromisoformat(cleaned)
        except ValueError as exc:
            raise ValidationError(f"Invalid start time: {value!r}") from exc
    else:
        raise ValidationError("Appointment start time must be a datetime or ISO string")

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def format_instant(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        raise ValidationError("Birth date must be a calendar date, not a timestamp")
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValidationError(f"Invalid birth date: {value!r}") from exc
    raise ValidationError("Birth date is required")


def _require_text(value: Any, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} is required")
    return value


def _require_email(value: Any) -> str:
    email = _require_text(value, "Email")
    if not EMAIL_PATTERN.fullmatch(email):
        raise ValidationError("Invalid email format")
    return email


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}
    return False


def _field(entry: Mapping[str, Any], key: str, default: Any = None) -> Any:
    value = entry.get(key, default)
    return default if value is None else value


@dataclass(frozen=True)
class Provider:
    """A practitioner who can be booked."""

    name: str
    specialty: Specialty
    email: str
    id: str = ""

    def validate(self) -> "Provider":
        _require_text(self.name, "Name")
        if not self.specialty:
            raise ValidationError("Specialty is required")
        try:
            specialty = Specialty(self.specialty)
        except ValueError as exc:
            raise ValidationError(f"Unknown specialty: {self.specialty!r}") from exc
        _require_email(self.email)
        return replace(self, specialty=specialty)

    @classmethod
    def from_dict(cls, entry: Mapping[str, Any]) -> "Provider":
        if not isinstance(entry, Mapping):
            raise ValidationError("Provider entry must be an object")
        return cls(
            id=str(_field(entry, "id", "")),
            name=str(_field(entry, "name", "")),
            specialty=_field(entry, "specialty", ""),
            email=str(_field(entry, "email", "")),
        ).validate()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "specialty": Specialty(self.specialty).value,
            "email": self.email,
        }


@dataclass(frozen=True)
class Patient:
    """A person receiving care at the practice."""

    name: str
    birth_date: date
    phone: str
    email: Optional[str] = None
    subscriber: bool = False
    id: str = ""

    def validate(self) -> "Patient":
        _require_text(self.name, "Name")
        birth_date = _parse_date(self.birth_date)
        phone = _require_text(self.phone, "Phone")
        if not PHONE_PATTERN.fullmatch(phone):
            raise ValidationError("Invalid phone format")
        email = self.email or None
        if email is not None:
            _require_email(email)
        return replace(
            self,
            birth_date=birth_date,
            email=email,
            subscriber=_coerce_bool(self.subscriber),
        )

    @classmethod
    def from_dict(cls, entry: Mapping[str, Any]) -> "Patient":
        if not isinstance(entry, Mapping):
            raise ValidationError("Patient entry must be an object")
        email = entry.get("email")
        return cls(
            id=str(_field(entry, "id", "")),
            name=str(_field(entry, "name", "")),
            birth_date=_field(entry, "birth_date", ""),
            phone=str(_field(entry, "phone", "")),
            email=str(email) if email else None,
            subscriber=_coerce_bool(entry.get("subscriber", False)),
        ).validate()

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "birth_date": self.birth_date.isoformat(),
            "phone": self.phone,
            "subscriber": self.subscriber,
        }
        if self.email:
            payload["email"] = self.email
        return payload


@dataclass(frozen=True)
class Appointment:
    """A two-hour booking of one provider for one patient."""

    provider_id: str
    patient_id: str
    start: datetime
    reason: str
    id: str = ""

    @property
    def end(self) -> datetime:
        return self.start + APPOINTMENT_DURATION

    def overlaps(self, start: datetime, end: datetime) -> bool:
        # Touching intervals do not overlap.
        return start < self.end and end > self.start

    def validate(self) -> "Appointment":
        _require_text(self.provider_id, "Provider")
        _require_text(self.patient_id, "Patient")
        start = parse_instant(self.start)
        _require_text(self.reason, "Reason")
        return replace(self, start=start)

    @classmethod
    def from_dict(cls, entry: Mapping[str, Any]) -> "Appointment":
        if not isinstance(entry, Mapping):
            raise ValidationError("Appointment entry must be an object")
        return cls(
            id=str(_field(entry, "id", "")),
            provider_id=str(_field(entry, "provider_id", "")),
            patient_id=str(_field(entry, "patient_id", "")),
            start=_field(entry, "start", ""),
            reason=str(_field(entry, "reason", "")),
        ).validate()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "provider_id": self.provider_id,
            "patient_id": self.patient_id,
            "start": format_instant(self.start),
            "reason": self.reason,
        }
