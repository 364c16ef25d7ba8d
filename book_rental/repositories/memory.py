"""
In-memory stand-ins for the SQLAlchemy repos.

They keep the same method names so ``ReservationService`` can run without a
database. All of them share one ``MemorySession``: every write records an undo
step, ``commit()`` drops the steps and ``rollback()`` replays them backwards,
the same all-or-nothing behaviour ``db.session`` gives the real repos.
"""
from __future__ import annotations

import itertools
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

from book_rental.exceptions import UnavailableError
from book_rental.models.book import Book
from book_rental.models.reservation import Reservation, ReservationStatus
from book_rental.models.user import User


class MemorySession:
    def __init__(self) -> None:
        self._undo: List[Callable[[], None]] = []
        self.commits = 0
        self.rollbacks = 0

    def record(self, undo: Callable[[], None]) -> None:
        self._undo.append(undo)

    def commit(self) -> None:
        self._undo.clear()
        self.commits += 1

    def rollback(self) -> None:
        while self._undo:
            self._undo.pop()()
        self.rollbacks += 1


class MemoryUserRepo:
    def __init__(self) -> None:
        self._users: Dict[int, User] = {}
        self._ids = itertools.count(1)

    def add(self, user: User) -> User:
        if user.id is None:
            user.id = next(self._ids)
        self._users[user.id] = user
        return user

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self._users.get(user_id)


class MemoryBookRepo:
    def __init__(self, session: MemorySession) -> None:
        self.session = session
        self._books: Dict[int, Book] = {}

    def add(self, book: Book) -> Book:
        self._books[book.external_id] = book
        return book

    def get_by_external_id(self, external_id: int) -> Optional[Book]:
        return self._books.get(external_id)

    def decrease_available_quantity(self, external_id: int) -> None:
        book = self._books.get(external_id)
        if book is None or (book.available_quantity or 0) <= 0:
            raise UnavailableError(f"No copies available for book {external_id}")
        book.available_quantity -= 1
        self.session.record(lambda: setattr(book, "available_quantity", book.available_quantity + 1))

    def increase_available_quantity(self, external_id: int) -> bool:
        book = self._books.get(external_id)
        if book is None or book.available_quantity >= book.stock_quantity:
            return False
        book.available_quantity += 1
        self.session.record(lambda: setattr(book, "available_quantity", book.available_quantity - 1))
        return True


def _columns(reservation: Reservation) -> dict:
    return {c.name: getattr(reservation, c.name) for c in Reservation.__table__.columns}


class MemoryReservationRepo:
    """Stores column snapshots; every read hands back a fresh instance, like a DB would."""

    def __init__(self, session: MemorySession) -> None:
        self.session = session
        self._rows: Dict[int, dict] = {}
        self._ids = itertools.count(1)

    def save(self, reservation: Reservation) -> Reservation:
        if reservation.id is None:
            reservation.id = next(self._ids)
        if reservation.created_at is None:
            reservation.created_at = datetime.utcnow()

        previous = self._rows.get(reservation.id)
        rid = reservation.id
        if previous is None:
            self.session.record(lambda: self._rows.pop(rid, None))
        else:
            self.session.record(lambda: self._rows.__setitem__(rid, previous))

        self._rows[rid] = _columns(reservation)
        return reservation

    def get(self, reservation_id: int) -> Optional[Reservation]:
        row = self._rows.get(reservation_id)
        return Reservation(**row) if row else None

    def list_all(self) -> List[Reservation]:
        return [Reservation(**self._rows[k]) for k in sorted(self._rows)]

    def list_by_user(self, user_id: int) -> List[Reservation]:
        return [r for r in self.list_all() if r.user_id == user_id]

    def list_by_status(self, status: ReservationStatus) -> List[Reservation]:
        return [r for r in self.list_all() if r.status == status]

    def find_overdue(self, current_date: date) -> List[Reservation]:
        return [
            r for r in self.list_by_status(ReservationStatus.ACTIVE)
            if r.expected_return_date < current_date
        ]

    def find_due_on(self, day: date) -> List[Reservation]:
        return [
            r for r in self.list_by_status(ReservationStatus.ACTIVE)
            if r.expected_return_date == day
        ]
