from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal

from book_rental.config import Config
from book_rental.exceptions import (
    InvalidStateError,
    NotFoundError,
    UnavailableError,
    ValidationError,
)
from book_rental.models.reservation import Reservation, ReservationStatus

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# ACTIVE is the only state a reservation can leave
ALLOWED_TRANSITIONS = {
    ReservationStatus.ACTIVE: {ReservationStatus.RETURNED, ReservationStatus.OVERDUE},
    ReservationStatus.RETURNED: set(),
    ReservationStatus.OVERDUE: set(),
}

LATE_RETURN_RULES = ("after_due", "before_due")


class ReservationService:
    """
    Reservation lifecycle: create, return and the read-only views.

    Collaborators are passed in so the same code runs against the SQLAlchemy
    repos (static-method classes over ``db.session``) or the in-memory ones:

    - users: ``get_by_id``
    - books: ``get_by_external_id``, ``decrease_available_quantity``,
      ``increase_available_quantity``
    - reservations: ``save``, ``get``, ``list_*``, ``find_overdue``, ``find_due_on``
    - session: ``commit`` / ``rollback``; create and return are one transaction each
    """

    def __init__(
        self,
        users,
        books,
        reservations,
        session,
        late_fee_percentage: Decimal = Config.LATE_FEE_PERCENTAGE,
        rounding: str = Config.LATE_FEE_ROUNDING,
        late_return_rule: str = Config.LATE_RETURN_RULE,
    ):
        if late_return_rule not in LATE_RETURN_RULES:
            raise ValueError(f"Unknown LATE_RETURN_RULE: {late_return_rule!r}")
        self.users = users
        self.books = books
        self.reservations = reservations
        self.session = session
        self.late_fee_percentage = Decimal(str(late_fee_percentage))
        self.rounding = rounding
        self.late_return_rule = late_return_rule

    @classmethod
    def from_app(cls, app) -> "ReservationService":
        """Wire the SQLAlchemy repos with the app's fee policy."""
        from book_rental.extensions import db
        from book_rental.repositories.book_repo import BookRepo
        from book_rental.repositories.reservation_repo import ReservationRepo
        from book_rental.repositories.user_repo import UserRepo

        return cls(
            users=UserRepo,
            books=BookRepo,
            reservations=ReservationRepo,
            session=db.session,
            late_fee_percentage=app.config.get("LATE_FEE_PERCENTAGE", Config.LATE_FEE_PERCENTAGE),
            rounding=app.config.get("LATE_FEE_ROUNDING", Config.LATE_FEE_ROUNDING),
            late_return_rule=app.config.get("LATE_RETURN_RULE", Config.LATE_RETURN_RULE),
        )

    # ------------------------------------------------------------------
    # fees
    # ------------------------------------------------------------------
    def calculate_total_fee(self, daily_rate, rental_days: int) -> Decimal:
        return (Decimal(daily_rate) * Decimal(rental_days)).quantize(CENT, rounding=self.rounding)

    def calculate_late_fee(self, daily_rate, days_late: int) -> Decimal:
        if days_late < 0:
            raise ValidationError("days_late cannot be negative")
        fee = Decimal(daily_rate) * self.late_fee_percentage * Decimal(days_late)
        return fee.quantize(CENT, rounding=self.rounding)

    def _is_late(self, return_date: date, expected_return_date: date) -> bool:
        if self.late_return_rule == "before_due":
            return return_date < expected_return_date
        return return_date > expected_return_date

    @staticmethod
    def _transition(reservation: Reservation, new_status: ReservationStatus) -> None:
        if new_status not in ALLOWED_TRANSITIONS[reservation.status]:
            raise InvalidStateError(
                f"Reservation {reservation.id} cannot go from {reservation.status.name} to {new_status.name}"
            )
        reservation.status = new_status

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def create(self, user_id: int, book_external_id: int, rental_days: int, start_date: date) -> Reservation:
        if not isinstance(rental_days, int) or isinstance(rental_days, bool) or rental_days <= 0:
            raise ValidationError("rental_days must be a positive integer")

        user = self.users.get_by_id(user_id)
        if not user:
            raise NotFoundError(f"User not found: {user_id}")

        book = self.books.get_by_external_id(book_external_id)
        if not book:
            raise NotFoundError(f"Book not found with external id: {book_external_id}")

        if book.available_quantity is None or book.available_quantity <= 0:
            raise UnavailableError(f"No copies available for book: {book.title}")

        reservation = Reservation(
            user_id=user_id,
            book_external_id=book_external_id,
            rental_days=rental_days,
            start_date=start_date,
            expected_return_date=start_date + timedelta(days=rental_days),
            daily_rate=Decimal(book.price),
            total_fee=Decimal("0.00"),
            late_fee=Decimal("0.00"),
            status=ReservationStatus.ACTIVE,
        )

        try:
            self.books.decrease_available_quantity(book_external_id)
            saved = self.reservations.save(reservation)
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.exception(f"[reservation] create failed user={user_id} book={book_external_id}, rolled back")
            raise

        logger.info(f"[reservation] created id={saved.id} user={user_id} book={book_external_id} due={saved.expected_return_date}")
        return saved

    def return_book(self, reservation_id: int, return_date: date) -> Reservation:
        reservation = self.reservations.get(reservation_id)
        if not reservation:
            raise NotFoundError(f"Reservation not found: {reservation_id}")

        if reservation.status != ReservationStatus.ACTIVE:
            raise InvalidStateError(f"Reservation {reservation_id} was already returned")

        try:
            reservation.actual_return_date = return_date

            if self._is_late(return_date, reservation.expected_return_date):
                days_late = abs((return_date - reservation.expected_return_date).days)
                late_fee = self.calculate_late_fee(reservation.daily_rate, days_late)
                reservation.late_fee = late_fee
                reservation.total_fee = Decimal(reservation.total_fee or 0) + late_fee
                self._transition(reservation, ReservationStatus.OVERDUE)
                logger.info(f"[reservation] id={reservation_id} returned {days_late} day(s) late, late fee {late_fee}")
            else:
                self._transition(reservation, ReservationStatus.RETURNED)
                logger.info(f"[reservation] id={reservation_id} returned on time")

            if not self.books.increase_available_quantity(reservation.book_external_id):
                logger.warning(f"[reservation] book {reservation.book_external_id} already at full stock, availability not increased")

            saved = self.reservations.save(reservation)
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.exception(f"[reservation] return failed id={reservation_id}, rolled back")
            raise

        return saved

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    def get_by_id(self, reservation_id: int) -> Reservation:
        reservation = self.reservations.get(reservation_id)
        if not reservation:
            raise NotFoundError(f"Reservation not found: {reservation_id}")
        return reservation

    def get_all(self):
        return self.reservations.list_all()

    def get_by_user_id(self, user_id: int):
        return self.reservations.list_by_user(user_id)

    def get_active(self):
        return self.reservations.list_by_status(ReservationStatus.ACTIVE)

    def get_overdue(self, current_date: date | None = None):
        """ACTIVE reservations past their due date. Read-only: status stays ACTIVE."""
        return self.reservations.find_overdue(current_date or date.today())

    def get_due_on(self, day: date):
        return self.reservations.find_due_on(day)

    # ------------------------------------------------------------------
    # response shape
    # ------------------------------------------------------------------
    def to_response(self, reservation: Reservation) -> dict:
        user = self.users.get_by_id(reservation.user_id)
        book = self.books.get_by_external_id(reservation.book_external_id)
        rental_fee = self.calculate_total_fee(reservation.daily_rate, reservation.rental_days)
        late_fee = Decimal(reservation.late_fee or 0)
        return {
            "id": reservation.id,
            "user_id": reservation.user_id,
            "user_name": user.name if user else None,
            "book_external_id": reservation.book_external_id,
            "book_title": book.title if book else None,
            "rental_days": reservation.rental_days,
            "start_date": reservation.start_date.isoformat(),
            "expected_return_date": reservation.expected_return_date.isoformat(),
            "actual_return_date": reservation.actual_return_date.isoformat() if reservation.actual_return_date else None,
            "daily_rate": str(reservation.daily_rate),
            "total_fee": str(reservation.total_fee),
            "late_fee": str(late_fee),
            "rental_fee": str(rental_fee),
            "amount_due": str(rental_fee + late_fee),
            "status": reservation.status.name,
            "created_at": reservation.created_at.isoformat() if reservation.created_at else None,
        }
