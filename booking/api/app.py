"""Flask JSON API over the booking orchestrator.

Endpoints:
    GET    /health
    GET    /services
    GET    /availability?service_id=...&date=YYYY-MM-DD
    GET    /available-dates?service_id=...
    POST   /appointments
    GET    /appointments?email=...&date=...
    GET    /appointments/<id>
    PATCH  /appointments/<id>                 - cancel (status change, record kept)
    DELETE /appointments/<id>                 - delete the record
    PUT    /appointments/<id>/reschedule
    POST   /appointments/<id>/reminder
    GET    /business-hours
    PUT    /business-hours/<day_of_week>
    GET    /special-dates
    POST   /special-dates
    DELETE /special-dates/<id>
"""
from datetime import date, datetime
from typing import Optional

import pydantic
from flask import Flask, jsonify, request
from flask_cors import CORS

from booking import errors
from booking.api.models import BookAppointmentRequest, RescheduleRequest
from booking.booking_service import BookingApp, BookingRequest, BookingResult, build_booking_app
from booking.config import load_settings
from booking.logging_config import RequestIDMiddleware, get_logger, setup_structured_logging
from booking.models import Appointment, BusinessHours, Client, SpecialDateCreate

logger = get_logger(__name__)


def _appointment_json(appointment: Appointment) -> dict:
    data = appointment.model_dump(mode="json")
    data["ends_at"] = appointment.ends_at.isoformat()
    return data


def _result_json(result: BookingResult, message: str) -> dict:
    return {
        "success": True,
        "appointment": _appointment_json(result.appointment),
        "notified": result.notified,
        "message": message,
    }


def _error(message: str, status: int, **extra):
    return jsonify({"success": False, "error": message, **extra}), status


def _parse_day(value: Optional[str]) -> date:
    if not value:
        raise errors.ValidationError("date parameter is required (YYYY-MM-DD)")
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise errors.ValidationError("Invalid date format. Use YYYY-MM-DD")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not data:
        raise errors.ValidationError("Request body is required")
    if not isinstance(data, dict):
        raise errors.ValidationError("Request body must be a JSON object")
    return data


def create_app(booking_app: Optional[BookingApp] = None) -> Flask:
    """
    Build the Flask application.

    Args:
        booking_app: Wired services (defaults to settings from the environment)
    """
    booking_app = booking_app or build_booking_app()
    service = booking_app.booking

    app = Flask(__name__)
    CORS(app)
    app.wsgi_app = RequestIDMiddleware(app.wsgi_app)

    @app.errorhandler(errors.NotFoundError)
    def handle_not_found(e):
        return _error(str(e), 404)

    @app.errorhandler(errors.SlotUnavailableError)
    def handle_slot_unavailable(e):
        return _error(str(e), 409)

    @app.errorhandler(errors.ValidationError)
    def handle_validation(e):
        return _error(str(e), 400)

    @app.errorhandler(pydantic.ValidationError)
    def handle_invalid_payload(e):
        details = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        return _error("Invalid request data", 400, details=details)

    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({
            "success": True,
            "status": "healthy",
            "total_appointments": len(service.ledger.appointments),
            "timestamp": datetime.now().isoformat(),
        })

    @app.route("/services", methods=["GET"])
    def list_services():
        services = [s.model_dump(mode="json") for s in service.catalog.list_services()]
        return jsonify({"success": True, "services": services, "total": len(services)})

    @app.route("/availability", methods=["GET"])
    def get_availability():
        service_id = request.args.get("service_id")
        if not service_id:
            return _error("service_id parameter is required", 400)
        day = _parse_day(request.args.get("date"))

        slots = service.get_service_availability(service_id, day)
        return jsonify({
            "success": True,
            "date": day.isoformat(),
            "slots": [s.model_dump() for s in slots],
            "total_slots": len(slots),
        })

    @app.route("/available-dates", methods=["GET"])
    def get_available_dates():
        service_id = request.args.get("service_id")
        if not service_id:
            return _error("service_id parameter is required", 400)

        dates = service.get_service_available_dates(service_id)
        return jsonify({
            "success": True,
            "dates": [d.model_dump(mode="json") for d in dates],
            "total": len(dates),
        })

    @app.route("/appointments", methods=["POST"])
    def create_appointment():
        payload = BookAppointmentRequest.model_validate(_json_body())
        result = service.book(BookingRequest(
            service_id=payload.service_id,
            client=Client(**payload.client.model_dump()),
            starts_at=payload.starts_at,
            notes=payload.notes,
        ))
        return jsonify(_result_json(result, f"Appointment confirmed! Reference: {result.appointment.id}")), 201

    @app.route("/appointments", methods=["GET"])
    def list_appointments():
        email = request.args.get("email")
        day = request.args.get("date")
        if email:
            appointments = service.ledger.get_appointments_for_client(email)
        elif day:
            appointments = service.ledger.get_appointments_for_date(_parse_day(day))
        else:
            appointments = service.ledger.list_appointments()
        return jsonify({
            "success": True,
            "appointments": [_appointment_json(a) for a in appointments],
            "total": len(appointments),
        })

    @app.route("/appointments/<appointment_id>", methods=["GET"])
    def get_appointment(appointment_id):
        appointment = service.ledger.get_appointment(appointment_id)
        return jsonify({"success": True, "appointment": _appointment_json(appointment)})

    @app.route("/appointments/<appointment_id>", methods=["PATCH"])
    def cancel_appointment(appointment_id):
        result = service.cancel_appointment(appointment_id)
        return jsonify(_result_json(result, f"Appointment {appointment_id} has been cancelled"))

    @app.route("/appointments/<appointment_id>", methods=["DELETE"])
    def delete_appointment(appointment_id):
        result = service.delete_appointment(appointment_id)
        return jsonify(_result_json(result, f"Appointment {appointment_id} has been deleted"))

    @app.route("/appointments/<appointment_id>/reschedule", methods=["PUT"])
    def reschedule_appointment(appointment_id):
        payload = RescheduleRequest.model_validate(_json_body())
        result = service.reschedule(appointment_id, payload.starts_at)
        return jsonify(_result_json(result, f"Appointment {appointment_id} has been rescheduled"))

    @app.route("/appointments/<appointment_id>/reminder", methods=["POST"])
    def send_reminder(appointment_id):
        sent = service.send_reminder(appointment_id)
        return jsonify({"success": True, "sent": sent})

    @app.route("/business-hours", methods=["GET"])
    def list_business_hours():
        hours = [h.model_dump() for h in service.calendar.business_hours]
        return jsonify({"success": True, "business_hours": hours})

    @app.route("/business-hours/<int:day_of_week>", methods=["PUT"])
    def update_business_hours(day_of_week):
        data = {**_json_body(), "day_of_week": day_of_week}
        hours = BusinessHours.model_validate(data)
        service.calendar.update_business_hours(hours)
        return jsonify({"success": True, "business_hours": hours.model_dump()})

    @app.route("/special-dates", methods=["GET"])
    def list_special_dates():
        special_dates = [sd.model_dump(mode="json") for sd in service.calendar.special_dates]
        return jsonify({"success": True, "special_dates": special_dates})

    @app.route("/special-dates", methods=["POST"])
    def add_special_date():
        special_date = service.calendar.add_special_date(SpecialDateCreate.model_validate(_json_body()))
        return jsonify({"success": True, "special_date": special_date.model_dump(mode="json")}), 201

    @app.route("/special-dates/<special_date_id>", methods=["DELETE"])
    def delete_special_date(special_date_id):
        service.calendar.delete_special_date(special_date_id)
        return jsonify({"success": True, "message": f"Special date {special_date_id} removed"})

    return app


def main():
    """Run the API server with settings from the environment."""
    settings = load_settings()
    setup_structured_logging(settings.log_level)
    app = create_app(build_booking_app(settings))
    logger.info(
        "api_starting",
        port=settings.api_port,
        storage_backend=settings.storage_backend,
    )
    app.run(port=settings.api_port, host="0.0.0.0")


if __name__ == "__main__":
    main()
