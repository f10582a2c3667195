"""Fixture records used when the backing store is empty."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import List

from .records import Appointment, Patient, Provider, Specialty


def seed_providers() -> List[Provider]:
    return [
        Provider(
            id="1",
            name="Dr. John Perez",
            specialty=Specialty.GENERAL,
            email="john.perez@clinic.example",
        ),
        Provider(
            id="2",
            name="Dr. Anna Lopez",
            specialty=Specialty.ORTHODONTICS,
            email="anna.lopez@clinic.example",
        ),
        Provider(
            id="3",
            name="Dr. Robert Gomez",
            specialty=Specialty.MAXILLOFACIAL_SURGERY,
            email="robert.gomez@clinic.example",
        ),
    ]


def seed_patients() -> List[Patient]:
    return [
        Patient(
            id="1",
            name="Carlos Garcia",
            birth_date=date(1985, 4, 12),
            phone="555-1234",
            email="carlos@mail.example",
            subscriber=True,
        ),
        Patient(
            id="2",
            name="Maria Rodriguez",
            birth_date=date(1992, 8, 23),
            phone="555-5678",
            subscriber=False,
        ),
    ]


def seed_appointments(now: datetime) -> List[Appointment]:
    """One cleaning at 10:00 UTC on the day of *now*."""

    day = now.astimezone(timezone.utc).date()
    return [
        Appointment(
            id="1",
            provider_id="1",
            patient_id="1",
            start=datetime.combine(day, time(10, 0), tzinfo=timezone.utc),
            reason="Annual cleaning",
        )
    ]
