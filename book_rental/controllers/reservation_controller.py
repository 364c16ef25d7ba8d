from datetime import date

from flask import Blueprint, current_app, jsonify, request

from book_rental.exceptions import (
    InvalidStateError,
    NotFoundError,
    UnavailableError,
)
from book_rental.services.reservation_service import ReservationService

reservation_bp = Blueprint("reservations", __name__)


def _service() -> ReservationService:
    return ReservationService.from_app(current_app)


def _error(e: Exception):
    if isinstance(e, NotFoundError):
        code = 404
    elif isinstance(e, (UnavailableError, InvalidStateError)):
        code = 409
    else:
        code = 400
    return jsonify({"success": False, "message": str(e)}), code


def _parse_date(value, field: str) -> date:
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValueError(f"{field} must be an ISO date (YYYY-MM-DD)")


@reservation_bp.post("/")
def create_reservation():
    data = request.get_json(silent=True) or {}
    try:
        service = _service()
        r = service.create(
            user_id=int(data["user_id"]),
            book_external_id=int(data["book_external_id"]),
            rental_days=int(data["rental_days"]),
            start_date=_parse_date(data.get("start_date", date.today().isoformat()), "start_date"),
        )
        return jsonify({"success": True, "data": service.to_response(r)}), 201
    except KeyError as e:
        return jsonify({"success": False, "message": f"{e.args[0]} is required"}), 400
    except (TypeError, ValueError) as e:
        return _error(e)


@reservation_bp.post("/<int:reservation_id>/return")
def return_book(reservation_id: int):
    data = request.get_json(silent=True) or {}
    try:
        service = _service()
        return_date = _parse_date(data.get("return_date", date.today().isoformat()), "return_date")
        r = service.return_book(reservation_id, return_date)
        return jsonify({"success": True, "data": service.to_response(r)})
    except ValueError as e:
        return _error(e)


@reservation_bp.get("/<int:reservation_id>")
def get_reservation(reservation_id: int):
    service = _service()
    try:
        return jsonify({"success": True, "data": service.to_response(service.get_by_id(reservation_id))})
    except ValueError as e:
        return _error(e)


@reservation_bp.get("/")
def list_reservations():
    service = _service()
    return jsonify({"success": True, "data": [service.to_response(r) for r in service.get_all()]})


@reservation_bp.get("/user/<int:user_id>")
def list_user_reservations(user_id: int):
    service = _service()
    return jsonify({"success": True, "data": [service.to_response(r) for r in service.get_by_user_id(user_id)]})


@reservation_bp.get("/active")
def list_active_reservations():
    service = _service()
    return jsonify({"success": True, "data": [service.to_response(r) for r in service.get_active()]})


@reservation_bp.get("/overdue")
def list_overdue_reservations():
    service = _service()
    return jsonify({"success": True, "data": [service.to_response(r) for r in service.get_overdue()]})
