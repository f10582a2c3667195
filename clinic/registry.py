"""The clinic registry: owner and sole mutator of all scheduling records."""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, List, Optional, Union

from connector import BlobStore

from .collection import PersistedCollection
from .errors import (
    ClinicError,
    ConflictError,
    DanglingReferenceError,
    OperationResult,
    ValidationError,
)
from .records import (
    APPOINTMENT_DURATION,
    Appointment,
    Patient,
    Provider,
    format_instant,
    name_sort_key,
    parse_instant,
)
from .seed import seed_appointments, seed_patients, seed_providers

logger = logging.getLogger(__name__)

PROVIDERS_KEY = "providers"
PATIENTS_KEY = "patients"
APPOINTMENTS_KEY = "appointments"

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class ClinicRegistry:
    """Owns providers, patients and appointments and enforces their rules.

    All three collections are loaded once when the registry is built and
    written back to ``store`` after every successful mutation. Construct one
    registry per session and hand it to whatever needs it.

    Business-rule failures (blocked deletes, dangling references, schedule
    conflicts) come back as :class:`OperationResult` values. Storage failures
    are not caught here.
    """

    def __init__(
        self,
        store: BlobStore,
        *,
        clock: Optional[Clock] = None,
        seed: bool = True,
    ) -> None:
        self._clock = clock or _utc_now
        self._providers: PersistedCollection[Provider] = PersistedCollection(
            store, PROVIDERS_KEY, Provider.from_dict, seed_providers if seed else None
        )
        self._patients: PersistedCollection[Patient] = PersistedCollection(
            store, PATIENTS_KEY, Patient.from_dict, seed_patients if seed else None
        )
        self._appointments: PersistedCollection[Appointment] = PersistedCollection(
            store,
            APPOINTMENTS_KEY,
            Appointment.from_dict,
            (lambda: seed_appointments(self.now())) if seed else None,
        )

    def now(self) -> datetime:
        """Current instant according to the registry clock, in UTC."""

        return parse_instant(self._clock())

    @staticmethod
    def _reject(error: ClinicError) -> OperationResult:
        logger.warning("Rejected mutation: %s", error.reason)
        return OperationResult.failure(error)

    # --- Providers ---

    async def list_providers(self) -> List[Provider]:
        return sorted(self._providers, key=lambda provider: name_sort_key(provider.name))

    async def get_provider(self, provider_id: str) -> Optional[Provider]:
        return self._providers.get(provider_id)

    async def upsert_provider(self, provider: Provider) -> Provider:
        """Create or fully replace a provider and return the stored record.

        Raises :class:`ValidationError` when a field is missing or malformed,
        or when ``provider.id`` names a provider that does not exist.
        """

        provider = provider.validate()
        if not provider.id:
            provider = replace(provider, id=_new_id())
        elif provider.id not in self._providers:
            raise ValidationError(f"Provider '{provider.id}' does not exist")

        stored = self._providers.upsert(provider)
        logger.info("Saved provider %s", stored.id)
        return stored

    async def delete_provider(self, provider_id: str) -> OperationResult:
        now = self.now()
        if any(
            appointment.provider_id == provider_id and appointment.start > now
            for appointment in self._appointments
        ):
            return self._reject(
                ConflictError("Cannot delete provider: provider has future appointments")
            )

        if self._providers.remove(provider_id):
            logger.info("Deleted provider %s", provider_id)
        else:
            logger.debug("Provider %s not found; nothing to delete", provider_id)
        return OperationResult.success()

    # --- Patients ---

    async def list_patients(self) -> List[Patient]:
        return sorted(self._patients, key=lambda patient: name_sort_key(patient.name))

    async def get_patient(self, patient_id: str) -> Optional[Patient]:
        return self._patients.get(patient_id)

    async def upsert_patient(self, patient: Patient) -> Patient:
        """Create or fully replace a patient and return the stored record."""

        patient = patient.validate()
        if not patient.id:
            patient = replace(patient, id=_new_id())
        elif patient.id not in self._patients:
            raise ValidationError(f"Patient '{patient.id}' does not exist")

        stored = self._patients.upsert(patient)
        logger.info("Saved patient %s", stored.id)
        return stored

    async def delete_patient(self, patient_id: str) -> OperationResult:
        now = self.now()
        if any(
            appointment.patient_id == patient_id and appointment.start > now
            for appointment in self._appointments
        ):
            return self._reject(
                ConflictError("Cannot delete patient: patient has future appointments")
            )

        if self._patients.remove(patient_id):
            logger.info("Deleted patient %s", patient_id)
        else:
            logger.debug("Patient %s not found; nothing to delete", patient_id)
        return OperationResult.success()

    # --- Appointments ---

    async def list_appointments(self) -> List[Appointment]:
        return sorted(self._appointments, key=lambda appointment: appointment.start)

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return self._appointments.get(appointment_id)

    async def list_appointments_by_provider(self, provider_id: str) -> List[Appointment]:
        return sorted(
            (
                appointment
                for appointment in self._appointments
                if appointment.provider_id == provider_id
            ),
            key=lambda appointment: appointment.start,
        )

    async def check_availability(
        self,
        provider_id: str,
        start: Union[datetime, str],
        exclude_appointment_id: Optional[str] = None,
    ) -> OperationResult:
        """Check whether a two-hour slot starting at ``start`` is free.

        ``exclude_appointment_id`` skips one appointment, so an appointment
        being rescheduled is not compared against itself.
        """

        try:
            start = parse_instant(start)
        except ValidationError as exc:
            return OperationResult.failure(exc)
        return self._check_availability(provider_id, start, exclude_appointment_id)

    def _check_availability(
        self,
        provider_id: str,
        start: datetime,
        exclude_appointment_id: Optional[str],
    ) -> OperationResult:
        end = start + APPOINTMENT_DURATION
        logger.debug(
            "Checking availability of provider %s from %s to %s",
            provider_id,
            format_instant(start),
            format_instant(end),
        )
        for appointment in sorted(self._appointments, key=lambda item: item.start):
            if appointment.provider_id != provider_id:
                continue
            if exclude_appointment_id and appointment.id == exclude_appointment_id:
                continue
            if appointment.overlaps(start, end):
                return OperationResult.failure(
                    ConflictError(
                        "Schedule conflict: provider already has an appointment from "
                        f"{format_instant(appointment.start)} to {format_instant(appointment.end)}",
                        appointment_id=appointment.id,
                        start=appointment.start,
                        end=appointment.end,
                    )
                )
        return OperationResult.success()

    async def upsert_appointment(self, appointment: Appointment) -> OperationResult:
        """Book or reschedule an appointment.

        Either every check passes and the appointment is stored, or nothing
        changes and the failed result names the reason.
        """

        try:
            appointment = appointment.validate()
        except ValidationError as exc:
            return self._reject(exc)

        if appointment.provider_id not in self._providers:
            return self._reject(
                DanglingReferenceError(
                    "Selected provider does not exist",
                    side="provider",
                    missing_id=appointment.provider_id,
                )
            )
        if appointment.patient_id not in self._patients:
            return self._reject(
                DanglingReferenceError(
                    "Selected patient does not exist",
                    side="patient",
                    missing_id=appointment.patient_id,
                )
            )
        if appointment.id and appointment.id not in self._appointments:
            return self._reject(ValidationError(f"Appointment '{appointment.id}' does not exist"))

        availability = self._check_availability(
            appointment.provider_id, appointment.start, appointment.id or None
        )
        if not availability.ok:
            logger.warning("Rejected appointment for provider %s: %s", appointment.provider_id, availability.reason)
            return availability

        if not appointment.id:
            appointment = replace(appointment, id=_new_id())
        stored = self._appointments.upsert(appointment)
        logger.info(
            "Scheduled appointment %s for provider %s at %s",
            stored.id,
            stored.provider_id,
            format_instant(stored.start),
        )
        return OperationResult.success(stored)

    async def delete_appointment(self, appointment_id: str) -> OperationResult:
        if self._appointments.remove(appointment_id):
            logger.info("Cancelled appointment %s", appointment_id)
        else:
            logger.debug("Appointment %s not found; nothing to delete", appointment_id)
        return OperationResult.success()
