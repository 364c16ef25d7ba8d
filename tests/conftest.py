from datetime import date
from decimal import Decimal

import pytest

from book_rental import create_app
from book_rental.config import TestConfig
from book_rental.extensions import db
from book_rental.models.book import Book
from book_rental.models.user import User
from book_rental.repositories.memory import (
    MemoryBookRepo,
    MemoryReservationRepo,
    MemorySession,
    MemoryUserRepo,
)
from book_rental.services.reservation_service import ReservationService

BOOK_EXTERNAL_ID = 258027
START = date(2024, 1, 15)
DUE = date(2024, 1, 22)


def make_user(**overrides):
    fields = {"id": 1, "name": "Juan Pérez", "email": "juan@example.com"}
    fields.update(overrides)
    return User(**fields)


def make_book(**overrides):
    fields = {
        "external_id": BOOK_EXTERNAL_ID,
        "title": "The Lord of the Rings",
        "author": "J. R. R. Tolkien",
        "price": Decimal("15.99"),
        "stock_quantity": 10,
        "available_quantity": 5,
    }
    fields.update(overrides)
    return Book(**fields)


@pytest.fixture
def memory_session():
    return MemorySession()


@pytest.fixture
def memory_repos(memory_session):
    users = MemoryUserRepo()
    books = MemoryBookRepo(memory_session)
    reservations = MemoryReservationRepo(memory_session)
    users.add(make_user())
    books.add(make_book())
    return users, books, reservations


@pytest.fixture
def service(memory_repos, memory_session):
    users, books, reservations = memory_repos
    return ReservationService(users, books, reservations, memory_session)


@pytest.fixture
def legacy_service(memory_repos, memory_session):
    users, books, reservations = memory_repos
    return ReservationService(users, books, reservations, memory_session, late_return_rule="before_due")


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def seeded_app(app):
    db.session.add(make_user())
    db.session.add(make_book())
    db.session.commit()
    return app


@pytest.fixture
def client(seeded_app):
    return seeded_app.test_client()
