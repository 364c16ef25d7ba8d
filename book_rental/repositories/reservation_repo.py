from datetime import date, datetime

from book_rental.models.reservation import Reservation, ReservationStatus
from book_rental.extensions import db

class ReservationRepo:
    @staticmethod
    def get(reservation_id: int):
        return db.session.get(Reservation, reservation_id)

    @staticmethod
    def list_all():
        return Reservation.query.order_by(Reservation.id.asc()).all()

    @staticmethod
    def list_by_user(user_id: int):
        return Reservation.query.filter_by(user_id=user_id).order_by(Reservation.id.asc()).all()

    @staticmethod
    def list_by_status(status: ReservationStatus):
        return Reservation.query.filter_by(status=status).order_by(Reservation.id.asc()).all()

    @staticmethod
    def save(reservation: Reservation):
        """Add or update; flushes so the id is assigned, commit is up to the caller."""
        if reservation.created_at is None:
            reservation.created_at = datetime.utcnow()
        db.session.add(reservation)
        db.session.flush()
        return reservation

    @staticmethod
    def find_overdue(current_date: date):
        return Reservation.query.filter(
            Reservation.status == ReservationStatus.ACTIVE,
            Reservation.expected_return_date < current_date
        ).order_by(Reservation.id.asc()).all()

    @staticmethod
    def find_due_on(day: date):
        return Reservation.query.filter(
            Reservation.status == ReservationStatus.ACTIVE,
            Reservation.expected_return_date == day
        ).order_by(Reservation.id.asc()).all()
