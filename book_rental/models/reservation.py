import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import validates

from book_rental.extensions import db
from book_rental.exceptions import InvalidStateError


class ReservationStatus(enum.Enum):
    ACTIVE = "ACTIVE"
    RETURNED = "RETURNED"
    OVERDUE = "OVERDUE"


class Reservation(db.Model):
    __tablename__ = "reservations"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    book_external_id = db.Column(db.Integer, db.ForeignKey("books.external_id"), nullable=False, index=True)

    rental_days = db.Column(db.Integer, nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    expected_return_date = db.Column(db.Date, nullable=False, index=True)
    actual_return_date = db.Column(db.Date, nullable=True)

    daily_rate = db.Column(db.Numeric(10, 2), nullable=False)
    total_fee = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    late_fee = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))

    status = db.Column(db.Enum(ReservationStatus), nullable=False, default=ReservationStatus.ACTIVE, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    @validates("user_id", "book_external_id", "daily_rate", "actual_return_date", "created_at")
    def _write_once(self, key, value):
        current = getattr(self, key)
        if current is not None and current != value:
            raise InvalidStateError(f"{key} is already set and cannot change")
        return value

    def __repr__(self):
        return f"<Reservation {self.id} {self.status.name if self.status else None}>"
