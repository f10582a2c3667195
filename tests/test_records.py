import unittest
from datetime import date, datetime, timedelta, timezone

from clinic.records import (
    Appointment,
    Patient,
    Provider,
    Specialty,
    format_instant,
    name_sort_key,
    parse_instant,
)
from clinic.errors import OperationResult, ValidationError


class InstantTests(unittest.TestCase):
    def test_offsets_are_normalised_to_utc(self) -> None:
        moment = parse_instant("2024-06-01T12:00:00+02:00")

        self.assertEqual(moment, datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc))
        self.assertEqual(moment.utcoffset(), timedelta(0))

    def test_naive_values_are_read_as_utc(self) -> None:
        self.assertEqual(
            parse_instant(datetime(2024, 6, 1, 10, 0)),
            datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc),
        )

    def test_invalid_values_raise(self) -> None:
        for value in ("", "tomorrow", 1717236000, None):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    parse_instant(value)

    def test_format_uses_z_suffix(self) -> None:
        self.assertEqual(
            format_instant(datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)),
            "2024-06-01T10:00:00Z",
        )


class RecordSerializationTests(unittest.TestCase):
    def test_provider_from_dict(self) -> None:
        provider = Provider.from_dict(
            {"id": "p1", "name": "Dr. Ana", "specialty": "Endodontics", "email": "ana@clinic.example"}
        )

        self.assertIs(provider.specialty, Specialty.ENDODONTICS)
        self.assertEqual(provider.to_dict()["specialty"], "Endodontics")

    def test_patient_from_dict_coerces_fields(self) -> None:
        patient = Patient.from_dict(
            {
                "id": "x1",
                "name": "Carlos Garcia",
                "birth_date": "1985-04-12",
                "phone": "555-1234",
                "subscriber": "true",
            }
        )

        self.assertEqual(patient.birth_date, date(1985, 4, 12))
        self.assertIsNone(patient.email)
        self.assertTrue(patient.subscriber)

    def test_patient_validate_reads_subscriber_strings(self) -> None:
        for raw, expected in (("false", False), ("no", False), ("", False), ("true", True), ("on", True)):
            with self.subTest(raw=raw):
                patient = Patient(
                    name="Carlos Garcia",
                    birth_date=date(1985, 4, 12),
                    phone="555-1234",
                    subscriber=raw,
                ).validate()
                self.assertIs(patient.subscriber, expected)

    def test_appointment_to_dict(self) -> None:
        appointment = Appointment(
            id="a1",
            provider_id="p1",
            patient_id="x1",
            start=datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc),
            reason="Cleaning",
        )

        self.assertEqual(
            appointment.to_dict(),
            {
                "id": "a1",
                "provider_id": "p1",
                "patient_id": "x1",
                "start": "2024-06-01T10:00:00Z",
                "reason": "Cleaning",
            },
        )
        self.assertEqual(appointment.end, datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc))

    def test_overlap_is_strict(self) -> None:
        appointment = Appointment(
            provider_id="p1",
            patient_id="x1",
            start=datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc),
            reason="Cleaning",
        )
        noon = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

        self.assertFalse(appointment.overlaps(noon, noon + timedelta(hours=2)))
        self.assertTrue(appointment.overlaps(noon - timedelta(seconds=1), noon + timedelta(hours=2)))

    def test_entries_must_be_objects(self) -> None:
        for record_type in (Provider, Patient, Appointment):
            with self.subTest(record_type=record_type.__name__):
                with self.assertRaises(ValidationError):
                    record_type.from_dict(["not", "a", "mapping"])


class HelperTests(unittest.TestCase):
    def test_name_sort_key_ignores_accents_and_case(self) -> None:
        self.assertEqual(name_sort_key("Álvarez"), name_sort_key("alvarez"))
        self.assertLess(name_sort_key("Ñúñez"), name_sort_key("Ortega"))

    def test_operation_result_to_dict(self) -> None:
        self.assertEqual(OperationResult.success().to_dict(), {"ok": True})
        failed = OperationResult.failure(ValidationError("Name is required"))
        self.assertEqual(failed.to_dict(), {"ok": False, "reason": "Name is required"})
        self.assertIsInstance(failed.error, ValueError)


if __name__ == "__main__":
    unittest.main()
