"""Dashboard web application for the clinic registry.

This module exposes a small Flask application that shows practice figures
and a provider agenda, plus read-only JSON endpoints. It also offers an
availability check so a booking form can pre-validate a slot. Every request
goes through the registry handed to :func:`create_app`; the dashboard never
writes records.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Dict, List, MutableMapping, Optional

from flask import Flask, Response, jsonify, render_template_string, request

from clinic.records import Appointment, format_instant
from clinic.registry import ClinicRegistry
from clinic.reports import build_summary

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"


def parse_iso_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        return None


def filter_agenda(
    appointments: List[Appointment], target_date: date | None
) -> List[Appointment]:
    if target_date is None:
        return list(appointments)
    return [
        appointment
        for appointment in appointments
        if appointment.start.astimezone(timezone.utc).date() == target_date
    ]


async def build_dashboard_context(
    registry: ClinicRegistry,
    target_date: date | None,
    provider_id: str | None,
) -> MutableMapping[str, object]:
    providers = await registry.list_providers()
    patients = await registry.list_patients()
    summary = await build_summary(registry)

    provider_names = {provider.id: provider.name for provider in providers}
    patient_names = {patient.id: patient.name for patient in patients}

    if provider_id:
        appointments = await registry.list_appointments_by_provider(provider_id)
    else:
        appointments = await registry.list_appointments()

    agenda: List[Dict[str, str]] = []
    for appointment in filter_agenda(appointments, target_date):
        agenda.append(
            {
                "start": format_instant(appointment.start),
                "end": format_instant(appointment.end),
                "provider": provider_names.get(appointment.provider_id, ""),
                "patient": patient_names.get(appointment.patient_id, ""),
                "reason": appointment.reason,
            }
        )

    return {
        "filters": {
            "date": target_date.strftime(DATE_FORMAT) if target_date else "",
            "provider": provider_id or "",
            "available_providers": [
                {"id": provider.id, "name": provider.name} for provider in providers
            ],
        },
        "summary": summary.to_dict(),
        "agenda": agenda,
    }


dashboard_template = """
<!doctype html>
<html lang=\"en\">
  <head>
    <meta charset=\"utf-8\">
    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\">
    <title>Clinic Dashboard</title>
    <link
      href=\"https://cdn.jsdelivr.net/npm/bootstrap@5.3.3/dist/css/bootstrap.min.css\"
      rel=\"stylesheet\"
      integrity=\"sha384-QWTKZyjpPEjISv5WaRU9OFeRpok6YctnYmDr5pNlyT2bRjXh0JMhjY6hW+ALEwIH\"
      crossorigin=\"anonymous\"
    >
  </head>
  <body class=\"bg-light\">
    <nav class=\"navbar navbar-expand-lg navbar-dark bg-primary\">
      <div class=\"container-fluid\">
        <a class=\"navbar-brand\" href=\"/dashboard\">Clinic Dashboard</a>
      </div>
    </nav>
    <main class=\"container my-4\">
      <section class=\"row g-4 mb-4\">
        <div class=\"col-md-4\">
          <div class=\"card shadow-sm\"><div class=\"card-body\">
            <p class=\"text-muted mb-1\">Providers</p>
            <p class=\"h3 mb-0\">{{ summary.total_providers }}</p>
          </div></div>
        </div>
        <div class=\"col-md-4\">
          <div class=\"card shadow-sm\"><div class=\"card-body\">
            <p class=\"text-muted mb-1\">Patients</p>
            <p class=\"h3 mb-0\">{{ summary.total_patients }}</p>
          </div></div>
        </div>
        <div class=\"col-md-4\">
          <div class=\"card shadow-sm\"><div class=\"card-body\">
            <p class=\"text-muted mb-1\">Scheduled Appointments</p>
            <p class=\"h3 mb-0\">{{ summary.total_appointments }}</p>
          </div></div>
        </div>
      </section>
      <section class=\"mb-4\">
        <form class=\"row gy-2 gx-3 align-items-center\" method=\"get\" action=\"/dashboard\" aria-label=\"Agenda filters\">
          <div class=\"col-md-3\">
            <label for=\"filter-date\" class=\"form-label\">Date</label>
            <input id=\"filter-date\" name=\"date\" type=\"date\" class=\"form-control\" value=\"{{ filters.date }}\">
          </div>
          <div class=\"col-md-3\">
            <label for=\"filter-provider\" class=\"form-label\">Provider</label>
            <select id=\"filter-provider\" name=\"provider\" class=\"form-select\">
              <option value=\"\">All Providers</option>
              {% for option in filters.available_providers %}
                <option value=\"{{ option.id }}\" {% if option.id == filters.provider %}selected{% endif %}>{{ option.name }}</option>
              {% endfor %}
            </select>
          </div>
          <div class=\"col-md-3 align-self-end\">
            <button type=\"submit\" class=\"btn btn-primary w-100\">Apply Filters</button>
          </div>
        </form>
      </section>
      <section class=\"row g-4\">
        <div class=\"col-lg-8\">
          <div class=\"card shadow-sm h-100\">
            <div class=\"card-header bg-success text-white\">Agenda</div>
            <div class=\"card-body\">
              {% if agenda %}
                <div class=\"table-responsive\">
                  <table class=\"table table-sm table-striped\">
                    <thead>
                      <tr>
                        <th scope=\"col\">Start</th>
                        <th scope=\"col\">End</th>
                        <th scope=\"col\">Provider</th>
                        <th scope=\"col\">Patient</th>
                        <th scope=\"col\">Reason</th>
                      </tr>
                    </thead>
                    <tbody>
                      {% for item in agenda %}
                        <tr>
                          <td>{{ item.start }}</td>
                          <td>{{ item.end }}</td>
                          <td>{{ item.provider or '-' }}</td>
                          <td>{{ item.patient or '-' }}</td>
                          <td>{{ item.reason }}</td>
                        </tr>
                      {% endfor %}
                    </tbody>
                  </table>
                </div>
              {% else %}
                <p class=\"text-muted mb-0\">No appointments found for the selected filters.</p>
              {% endif %}
            </div>
          </div>
        </div>
        <div class=\"col-lg-4\">
          <div class=\"card shadow-sm h-100\">
            <div class=\"card-header bg-info text-white\">Appointments by Specialty</div>
            <div class=\"card-body\">
              {% if summary.appointments_by_specialty %}
                <ul class=\"list-group list-group-flush\">
                  {% for specialty, count in summary.appointments_by_specialty.items() %}
                    <li class=\"list-group-item d-flex justify-content-between\">
                      <span>{{ specialty }}</span><span class=\"badge bg-primary\">{{ count }}</span>
                    </li>
                  {% endfor %}
                </ul>
              {% else %}
                <p class=\"text-muted mb-0\">Not enough data.</p>
              {% endif %}
            </div>
          </div>
        </div>
      </section>
    </main>
  </body>
</html>
"""


def create_app(registry: ClinicRegistry) -> Flask:
    """Build the dashboard application around an existing registry."""

    app = Flask(__name__)

    @app.route("/dashboard", methods=["GET"])
    def dashboard() -> str:
        target_date = parse_iso_date(request.args.get("date"))
        provider_id = request.args.get("provider") or None
        context = asyncio.run(build_dashboard_context(registry, target_date, provider_id))
        return render_template_string(dashboard_template, **context)

    @app.route("/api/providers", methods=["GET"])
    def providers() -> Response:
        records = asyncio.run(registry.list_providers())
        return jsonify([record.to_dict() for record in records])

    @app.route("/api/patients", methods=["GET"])
    def patients() -> Response:
        records = asyncio.run(registry.list_patients())
        return jsonify([record.to_dict() for record in records])

    @app.route("/api/appointments", methods=["GET"])
    def appointments() -> Response:
        provider_id = request.args.get("provider") or None
        if provider_id:
            records = asyncio.run(registry.list_appointments_by_provider(provider_id))
        else:
            records = asyncio.run(registry.list_appointments())
        return jsonify([record.to_dict() for record in records])

    @app.route("/api/availability", methods=["GET"])
    def availability():
        provider_id = request.args.get("provider")
        start = request.args.get("start")
        if not provider_id or not start:
            return jsonify({"ok": False, "reason": "provider and start are required"}), 400
        exclude: Optional[str] = request.args.get("exclude") or None
        result = asyncio.run(registry.check_availability(provider_id, start, exclude))
        return jsonify(result.to_dict())

    @app.route("/api/summary", methods=["GET"])
    def summary() -> Response:
        return jsonify(asyncio.run(build_summary(registry)).to_dict())

    return app


def main() -> None:
    from clinic.config import Settings, build_store

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    registry = ClinicRegistry(build_store(settings), seed=settings.seed)
    create_app(registry).run(host="0.0.0.0", port=settings.port, debug=False)


if __name__ == "__main__":
    main()
