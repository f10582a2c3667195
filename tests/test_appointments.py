import json
import unittest
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from clinic import (
    Appointment,
    ClinicRegistry,
    ConflictError,
    DanglingReferenceError,
    Patient,
    Provider,
    Specialty,
    ValidationError,
)
from connector import MemoryBlobStore


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


BOOKED_AT = datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)


class AppointmentRegistryTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = MemoryBlobStore()
        self.clock = FakeClock(datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc))
        self.registry = ClinicRegistry(self.store, clock=self.clock, seed=False)

        self.provider = await self.registry.upsert_provider(
            Provider(name="Dr. Ana Lopez", specialty=Specialty.ORTHODONTICS, email="ana@clinic.example")
        )
        self.other_provider = await self.registry.upsert_provider(
            Provider(name="Dr. John Perez", specialty=Specialty.GENERAL, email="john@clinic.example")
        )
        self.patient = await self.registry.upsert_patient(
            Patient(name="Carlos Garcia", birth_date="1985-04-12", phone="555-1234")
        )

    async def _book(self, start: datetime, provider_id: str = "", **overrides):
        appointment = Appointment(
            provider_id=provider_id or self.provider.id,
            patient_id=self.patient.id,
            start=start,
            reason="Check-up",
        )
        return await self.registry.upsert_appointment(replace(appointment, **overrides))

    async def test_book_appointment_success(self) -> None:
        result = await self._book(BOOKED_AT)

        self.assertTrue(result.ok)
        self.assertIsNone(result.reason)
        self.assertTrue(result.record.id)
        self.assertEqual(result.record.start, BOOKED_AT)
        self.assertEqual(await self.registry.list_appointments(), [result.record])

    async def test_overlapping_booking_is_rejected(self) -> None:
        await self._book(BOOKED_AT)

        result = await self._book(BOOKED_AT + timedelta(hours=1))

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, ConflictError)
        self.assertIn("2024-06-01T10:00:00Z", result.reason)
        self.assertIn("2024-06-01T12:00:00Z", result.reason)
        self.assertEqual(len(await self.registry.list_appointments()), 1)

    async def test_touching_booking_is_accepted(self) -> None:
        await self._book(BOOKED_AT)

        after = await self._book(BOOKED_AT + timedelta(hours=2))
        before = await self._book(BOOKED_AT - timedelta(hours=2))

        self.assertTrue(after.ok)
        self.assertTrue(before.ok)
        self.assertEqual(len(await self.registry.list_appointments()), 3)

    async def test_overlap_rule_matches_two_hour_window(self) -> None:
        first = await self._book(BOOKED_AT)
        for minutes in (-150, -120, -119, -1, 0, 1, 60, 119, 120, 121):
            with self.subTest(minutes=minutes):
                start = BOOKED_AT + timedelta(minutes=minutes)
                verdict = await self.registry.check_availability(self.provider.id, start)
                expected = abs(minutes) >= 120
                self.assertEqual(verdict.ok, expected)
        self.assertTrue(first.ok)

    async def test_other_provider_is_not_blocked(self) -> None:
        await self._book(BOOKED_AT)

        result = await self._book(BOOKED_AT, provider_id=self.other_provider.id)

        self.assertTrue(result.ok)

    async def test_reschedule_does_not_conflict_with_itself(self) -> None:
        booked = (await self._book(BOOKED_AT)).record

        moved = await self.registry.upsert_appointment(
            replace(booked, start=BOOKED_AT + timedelta(minutes=30))
        )

        self.assertTrue(moved.ok)
        self.assertEqual(moved.record.id, booked.id)
        appointments = await self.registry.list_appointments()
        self.assertEqual(len(appointments), 1)
        self.assertEqual(appointments[0].start, BOOKED_AT + timedelta(minutes=30))

    async def test_reschedule_is_checked_against_other_appointments(self) -> None:
        booked = (await self._book(BOOKED_AT)).record
        later = (await self._book(BOOKED_AT + timedelta(hours=3))).record

        result = await self.registry.upsert_appointment(
            replace(later, start=BOOKED_AT + timedelta(hours=1))
        )

        self.assertFalse(result.ok)
        self.assertEqual(result.error.appointment_id, booked.id)
        stored = await self.registry.list_appointments()
        self.assertEqual(stored[1].start, BOOKED_AT + timedelta(hours=3))

    async def test_check_availability_is_idempotent(self) -> None:
        await self._book(BOOKED_AT)
        start = BOOKED_AT + timedelta(minutes=90)

        first = await self.registry.check_availability(self.provider.id, start)
        second = await self.registry.check_availability(self.provider.id, start)

        self.assertFalse(first.ok)
        self.assertEqual(first.to_dict(), second.to_dict())

    async def test_check_availability_accepts_iso_strings(self) -> None:
        await self._book(BOOKED_AT)

        busy = await self.registry.check_availability(self.provider.id, "2024-06-01T13:00:00+02:00")
        free = await self.registry.check_availability(self.provider.id, "2024-06-01T12:00:00Z")
        invalid = await self.registry.check_availability(self.provider.id, "not a date")

        self.assertFalse(busy.ok)
        self.assertTrue(free.ok)
        self.assertIsInstance(invalid.error, ValidationError)

    async def test_missing_patient_is_rejected(self) -> None:
        result = await self._book(BOOKED_AT, patient_id="unknown")

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, DanglingReferenceError)
        self.assertEqual(result.error.side, "patient")
        self.assertEqual(await self.registry.list_appointments(), [])
        self.assertIsNone(self.store.load("appointments"))

    async def test_missing_provider_is_rejected(self) -> None:
        result = await self._book(BOOKED_AT, provider_id="unknown")

        self.assertFalse(result.ok)
        self.assertEqual(result.error.side, "provider")
        self.assertIn("provider", result.reason)

    async def test_invalid_fields_are_rejected_without_mutation(self) -> None:
        result = await self._book(BOOKED_AT, reason="   ")

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, ValidationError)
        self.assertEqual(await self.registry.list_appointments(), [])

    async def test_unknown_appointment_id_is_rejected(self) -> None:
        result = await self._book(BOOKED_AT, id="does-not-exist")

        self.assertFalse(result.ok)
        self.assertEqual(await self.registry.list_appointments(), [])

    async def test_cancel_appointment(self) -> None:
        booked = (await self._book(BOOKED_AT)).record

        result = await self.registry.delete_appointment(booked.id)

        self.assertTrue(result.ok)
        self.assertEqual(await self.registry.list_appointments(), [])
        self.assertEqual(json.loads(self.store.load("appointments")), [])

    async def test_cancel_nonexistent_appointment_is_a_no_op(self) -> None:
        result = await self.registry.delete_appointment("999")

        self.assertTrue(result.ok)

    async def test_provider_agenda_sorted(self) -> None:
        late = (await self._book(BOOKED_AT + timedelta(hours=4))).record
        early = (await self._book(BOOKED_AT)).record
        await self._book(BOOKED_AT, provider_id=self.other_provider.id)

        agenda = await self.registry.list_appointments_by_provider(self.provider.id)

        self.assertEqual([item.id for item in agenda], [early.id, late.id])

    async def test_provider_delete_blocked_until_appointment_passes(self) -> None:
        booked = (await self._book(BOOKED_AT)).record

        blocked = await self.registry.delete_provider(self.provider.id)
        self.assertFalse(blocked.ok)
        self.assertIsInstance(blocked.error, ConflictError)
        self.assertIn(self.provider, await self.registry.list_providers())

        self.clock.now = BOOKED_AT + timedelta(minutes=1)
        allowed = await self.registry.delete_provider(self.provider.id)

        self.assertTrue(allowed.ok)
        self.assertNotIn(self.provider, await self.registry.list_providers())
        # Past appointments are kept with their now-dangling provider reference.
        self.assertEqual(await self.registry.list_appointments(), [booked])

    async def test_patient_delete_blocked_by_future_appointment(self) -> None:
        await self._book(BOOKED_AT)

        blocked = await self.registry.delete_patient(self.patient.id)
        self.assertFalse(blocked.ok)
        self.assertEqual(len(await self.registry.list_patients()), 1)

        self.clock.advance(timedelta(days=60))
        allowed = await self.registry.delete_patient(self.patient.id)

        self.assertTrue(allowed.ok)
        self.assertEqual(await self.registry.list_patients(), [])

    async def test_appointment_starting_now_does_not_block_delete(self) -> None:
        await self._book(BOOKED_AT)
        self.clock.now = BOOKED_AT

        result = await self.registry.delete_provider(self.provider.id)

        self.assertTrue(result.ok)

    async def test_lookups_by_id(self) -> None:
        booked = (await self._book(BOOKED_AT)).record

        self.assertEqual(await self.registry.get_appointment(booked.id), booked)
        self.assertEqual(await self.registry.get_provider(self.provider.id), self.provider)
        self.assertEqual(await self.registry.get_patient(self.patient.id), self.patient)
        self.assertIsNone(await self.registry.get_appointment("missing"))
        self.assertEqual(self.registry.now(), self.clock.now)

    async def test_appointments_survive_reload(self) -> None:
        booked = (await self._book(BOOKED_AT)).record

        reloaded = ClinicRegistry(self.store, clock=self.clock)

        self.assertEqual(await reloaded.list_appointments(), [booked])
        rejected = await reloaded.upsert_appointment(
            Appointment(
                provider_id=self.provider.id,
                patient_id=self.patient.id,
                start=BOOKED_AT + timedelta(hours=1),
                reason="Follow-up",
            )
        )
        self.assertFalse(rejected.ok)


if __name__ == "__main__":
    unittest.main()
