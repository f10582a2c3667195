"""Command-line entry point for the clinic registry."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import Settings, build_store
from .errors import OperationResult, ValidationError
from .records import Appointment, Patient, Provider, Specialty
from .registry import ClinicRegistry
from .reports import build_summary, create_summary_report, default_report_path

logger = logging.getLogger(__name__)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2))


def _report_failure(reason: str) -> int:
    _print_json({"ok": False, "reason": reason})
    return 1


def _report_result(result: OperationResult) -> int:
    if result.ok and result.record is not None:
        _print_json(result.record.to_dict())
    else:
        _print_json(result.to_dict())
    return 0 if result.ok else 1


def _changes(args: argparse.Namespace, fields: Dict[str, str]) -> Dict[str, Any]:
    """Map the options given on the command line to record field names."""

    return {
        field_name: getattr(args, option)
        for option, field_name in fields.items()
        if getattr(args, option, None) is not None
    }


PROVIDER_FIELDS = {"name": "name", "specialty": "specialty", "email": "email"}
PATIENT_FIELDS = {
    "name": "name",
    "birth_date": "birth_date",
    "phone": "phone",
    "email": "email",
    "subscriber": "subscriber",
}
APPOINTMENT_FIELDS = {
    "provider": "provider_id",
    "patient": "patient_id",
    "start": "start",
    "reason": "reason",
}


async def _manage_provider(args: argparse.Namespace, registry: ClinicRegistry) -> int:
    if args.action == "delete":
        return _report_result(await registry.delete_provider(args.id))

    if args.action == "add":
        provider = Provider(name=args.name, specialty=args.specialty, email=args.email)
    else:
        existing = await registry.get_provider(args.id)
        if existing is None:
            return _report_failure(f"Provider '{args.id}' does not exist")
        provider = replace(existing, **_changes(args, PROVIDER_FIELDS))

    try:
        stored = await registry.upsert_provider(provider)
    except ValidationError as exc:
        return _report_failure(exc.reason)
    _print_json(stored.to_dict())
    return 0


async def _manage_patient(args: argparse.Namespace, registry: ClinicRegistry) -> int:
    if args.action == "delete":
        return _report_result(await registry.delete_patient(args.id))

    if args.action == "add":
        patient = Patient(
            name=args.name,
            birth_date=args.birth_date,
            phone=args.phone,
            email=args.email,
            subscriber=bool(args.subscriber),
        )
    else:
        existing = await registry.get_patient(args.id)
        if existing is None:
            return _report_failure(f"Patient '{args.id}' does not exist")
        patient = replace(existing, **_changes(args, PATIENT_FIELDS))

    try:
        stored = await registry.upsert_patient(patient)
    except ValidationError as exc:
        return _report_failure(exc.reason)
    _print_json(stored.to_dict())
    return 0


async def _manage_appointment(args: argparse.Namespace, registry: ClinicRegistry) -> int:
    if args.action == "cancel":
        return _report_result(await registry.delete_appointment(args.id))

    if args.action == "book":
        appointment = Appointment(
            provider_id=args.provider,
            patient_id=args.patient,
            start=args.start,
            reason=args.reason,
        )
    else:
        existing = await registry.get_appointment(args.id)
        if existing is None:
            return _report_failure(f"Appointment '{args.id}' does not exist")
        appointment = replace(existing, **_changes(args, APPOINTMENT_FIELDS))

    return _report_result(await registry.upsert_appointment(appointment))


async def _run(args: argparse.Namespace, registry: ClinicRegistry, settings: Settings) -> int:
    if args.command == "providers":
        _print_json([record.to_dict() for record in await registry.list_providers()])
    elif args.command == "patients":
        _print_json([record.to_dict() for record in await registry.list_patients()])
    elif args.command == "appointments":
        if args.provider:
            records = await registry.list_appointments_by_provider(args.provider)
        else:
            records = await registry.list_appointments()
        _print_json([record.to_dict() for record in records])
    elif args.command == "provider":
        return await _manage_provider(args, registry)
    elif args.command == "patient":
        return await _manage_patient(args, registry)
    elif args.command == "appointment":
        return await _manage_appointment(args, registry)
    elif args.command == "check":
        result = await registry.check_availability(args.provider, args.start, args.exclude)
        _print_json(result.to_dict())
        return 0 if result.ok else 1
    elif args.command == "report":
        summary = await build_summary(registry)
        output = args.output or default_report_path(settings.report_dir, summary.generated_at)
        report_path = create_summary_report(summary, output)
        logger.info("Practice summary report is ready: %s", report_path)
        print(report_path)
    return 0


def _add_provider_parsers(subparsers: argparse._SubParsersAction) -> None:
    provider = subparsers.add_parser("provider", help="Add, edit or delete a provider")
    actions = provider.add_subparsers(dest="action", required=True)
    specialties = [specialty.value for specialty in Specialty]

    add = actions.add_parser("add", help="Register a provider")
    add.add_argument("--name", required=True)
    add.add_argument("--specialty", required=True, choices=specialties)
    add.add_argument("--email", required=True)

    edit = actions.add_parser("edit", help="Replace fields of an existing provider")
    edit.add_argument("id")
    edit.add_argument("--name")
    edit.add_argument("--specialty", choices=specialties)
    edit.add_argument("--email")

    delete = actions.add_parser("delete", help="Delete a provider without future appointments")
    delete.add_argument("id")


def _add_patient_parsers(subparsers: argparse._SubParsersAction) -> None:
    patient = subparsers.add_parser("patient", help="Add, edit or delete a patient")
    actions = patient.add_subparsers(dest="action", required=True)

    add = actions.add_parser("add", help="Register a patient")
    add.add_argument("--name", required=True)
    add.add_argument("--birth-date", dest="birth_date", required=True, help="YYYY-MM-DD")
    add.add_argument("--phone", required=True)
    add.add_argument("--email")
    add.add_argument("--subscriber", action="store_true")

    edit = actions.add_parser("edit", help="Replace fields of an existing patient")
    edit.add_argument("id")
    edit.add_argument("--name")
    edit.add_argument("--birth-date", dest="birth_date", help="YYYY-MM-DD")
    edit.add_argument("--phone")
    edit.add_argument("--email")
    edit.add_argument("--subscriber", dest="subscriber", action="store_true", default=None)
    edit.add_argument("--no-subscriber", dest="subscriber", action="store_false")

    delete = actions.add_parser("delete", help="Delete a patient without future appointments")
    delete.add_argument("id")


def _add_appointment_parsers(subparsers: argparse._SubParsersAction) -> None:
    appointment = subparsers.add_parser("appointment", help="Book, reschedule or cancel")
    actions = appointment.add_subparsers(dest="action", required=True)

    book = actions.add_parser("book", help="Book a two-hour appointment")
    book.add_argument("--provider", required=True, help="Provider id")
    book.add_argument("--patient", required=True, help="Patient id")
    book.add_argument("--start", required=True, help="ISO-8601 start time")
    book.add_argument("--reason", required=True)

    reschedule = actions.add_parser("reschedule", help="Change an existing appointment")
    reschedule.add_argument("id")
    reschedule.add_argument("--provider", help="Provider id")
    reschedule.add_argument("--patient", help="Patient id")
    reschedule.add_argument("--start", help="ISO-8601 start time")
    reschedule.add_argument("--reason")

    cancel = actions.add_parser("cancel", help="Cancel an appointment")
    cancel.add_argument("id")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Clinic scheduling registry")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("providers", help="List providers sorted by name")
    subparsers.add_parser("patients", help="List patients sorted by name")

    appointments = subparsers.add_parser("appointments", help="List appointments by start time")
    appointments.add_argument("--provider", help="Only show this provider's agenda")

    _add_provider_parsers(subparsers)
    _add_patient_parsers(subparsers)
    _add_appointment_parsers(subparsers)

    check = subparsers.add_parser("check", help="Check whether a slot is free")
    check.add_argument("provider", help="Provider id")
    check.add_argument("start", help="Slot start as an ISO-8601 timestamp")
    check.add_argument("--exclude", help="Appointment id to ignore (when rescheduling)")

    report = subparsers.add_parser("report", help="Write the practice summary PDF")
    report.add_argument("--output", type=Path, help="Report file path")

    dashboard = subparsers.add_parser("dashboard", help="Serve the web dashboard")
    dashboard.add_argument("--port", type=int, help="Port to listen on")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    registry = ClinicRegistry(build_store(settings), seed=settings.seed)

    if args.command == "dashboard":
        from ui.dashboard import create_app

        create_app(registry).run(host="0.0.0.0", port=args.port or settings.port, debug=False)
        return 0
    return asyncio.run(_run(args, registry, settings))


if __name__ == "__main__":
    sys.exit(main())
