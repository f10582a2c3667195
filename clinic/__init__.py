"""Clinic scheduling core: providers, patients and appointments."""

from .errors import (
    ClinicError,
    ConflictError,
    DanglingReferenceError,
    OperationResult,
    ValidationError,
)
from .records import APPOINTMENT_DURATION, Appointment, Patient, Provider, Specialty
from .registry import ClinicRegistry

__all__ = [
    "APPOINTMENT_DURATION",
    "Appointment",
    "ClinicError",
    "ClinicRegistry",
    "ConflictError",
    "DanglingReferenceError",
    "OperationResult",
    "Patient",
    "Provider",
    "Specialty",
    "ValidationError",
]
