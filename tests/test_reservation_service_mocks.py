from datetime import date, datetime
from decimal import Decimal
from unittest.mock import Mock

import pytest

from book_rental.exceptions import InvalidStateError, UnavailableError
from book_rental.models.reservation import Reservation, ReservationStatus
from book_rental.repositories.book_repo import BookRepo
from book_rental.repositories.reservation_repo import ReservationRepo
from book_rental.repositories.user_repo import UserRepo
from book_rental.services.reservation_service import ReservationService

from conftest import BOOK_EXTERNAL_ID, DUE, START, make_book, make_user


@pytest.fixture
def collaborators():
    users = Mock(spec=UserRepo)
    books = Mock(spec=BookRepo)
    reservations = Mock(spec=ReservationRepo)
    session = Mock()
    users.get_by_id.return_value = make_user()
    books.get_by_external_id.return_value = make_book()
    books.increase_available_quantity.return_value = True
    reservations.save.side_effect = lambda r: r
    return users, books, reservations, session


@pytest.fixture
def mocked_service(collaborators):
    return ReservationService(*collaborators)


def _active_reservation():
    return Reservation(
        id=1,
        user_id=1,
        book_external_id=BOOK_EXTERNAL_ID,
        rental_days=7,
        start_date=START,
        expected_return_date=DUE,
        daily_rate=Decimal("15.99"),
        total_fee=Decimal("0.00"),
        late_fee=Decimal("0.00"),
        status=ReservationStatus.ACTIVE,
        created_at=datetime(2024, 1, 15, 9, 30),
    )


def test_create_calls_each_collaborator_once(mocked_service, collaborators):
    users, books, reservations, session = collaborators

    result = mocked_service.create(1, BOOK_EXTERNAL_ID, 7, START)

    assert result.user_id == 1
    assert result.book_external_id == BOOK_EXTERNAL_ID
    assert result.rental_days == 7
    assert result.status == ReservationStatus.ACTIVE
    users.get_by_id.assert_called_once_with(1)
    books.get_by_external_id.assert_called_once_with(BOOK_EXTERNAL_ID)
    books.decrease_available_quantity.assert_called_once_with(BOOK_EXTERNAL_ID)
    reservations.save.assert_called_once()
    session.commit.assert_called_once()
    session.rollback.assert_not_called()


def test_create_without_copies_touches_nothing(mocked_service, collaborators):
    _users, books, reservations, session = collaborators
    books.get_by_external_id.return_value = make_book(available_quantity=0)

    with pytest.raises(UnavailableError) as exc:
        mocked_service.create(1, BOOK_EXTERNAL_ID, 7, START)

    assert "No copies available" in str(exc.value)
    books.decrease_available_quantity.assert_not_called()
    reservations.save.assert_not_called()
    session.commit.assert_not_called()


def test_create_lost_race_for_last_copy(mocked_service, collaborators):
    _users, books, reservations, session = collaborators
    books.decrease_available_quantity.side_effect = UnavailableError("No copies available")

    with pytest.raises(UnavailableError):
        mocked_service.create(1, BOOK_EXTERNAL_ID, 7, START)

    reservations.save.assert_not_called()
    session.rollback.assert_called_once()


def test_return_on_time_increments_and_saves(mocked_service, collaborators):
    _users, books, reservations, session = collaborators
    reservation = _active_reservation()
    reservations.get.return_value = reservation

    mocked_service.return_book(1, DUE)

    assert reservation.status == ReservationStatus.RETURNED
    assert reservation.late_fee == Decimal("0.00")
    books.increase_available_quantity.assert_called_once_with(BOOK_EXTERNAL_ID)
    reservations.save.assert_called_once_with(reservation)
    session.commit.assert_called_once()


def test_return_overdue(mocked_service, collaborators):
    _users, books, reservations, _session = collaborators
    reservation = _active_reservation()
    reservation.total_fee = Decimal("111.93")
    reservations.get.return_value = reservation

    mocked_service.return_book(1, date(2024, 1, 25))

    assert reservation.status == ReservationStatus.OVERDUE
    assert reservation.late_fee.compare(Decimal("7.20")) == 0
    assert reservation.total_fee == Decimal("119.13")
    books.increase_available_quantity.assert_called_once_with(BOOK_EXTERNAL_ID)
    reservations.save.assert_called_once_with(reservation)


def test_return_non_active_is_rejected(mocked_service, collaborators):
    _users, books, reservations, session = collaborators
    reservation = _active_reservation()
    reservation.status = ReservationStatus.RETURNED
    reservations.get.return_value = reservation

    with pytest.raises(InvalidStateError) as exc:
        mocked_service.return_book(1, DUE)

    assert "already returned" in str(exc.value)
    books.increase_available_quantity.assert_not_called()
    reservations.save.assert_not_called()
    session.commit.assert_not_called()


def test_return_at_full_stock_still_completes(mocked_service, collaborators):
    _users, books, reservations, session = collaborators
    books.increase_available_quantity.return_value = False
    reservations.get.return_value = _active_reservation()

    result = mocked_service.return_book(1, DUE)

    assert result.status == ReservationStatus.RETURNED
    session.commit.assert_called_once()


def test_list_queries_delegate_to_store(mocked_service, collaborators):
    _users, _books, reservations, _session = collaborators
    reservations.list_all.return_value = [_active_reservation(), _active_reservation()]
    reservations.list_by_user.return_value = [_active_reservation()]
    reservations.list_by_status.return_value = [_active_reservation()]
    reservations.find_overdue.return_value = []

    assert len(mocked_service.get_all()) == 2
    assert len(mocked_service.get_by_user_id(1)) == 1
    assert len(mocked_service.get_active()) == 1
    assert mocked_service.get_overdue(date(2024, 2, 1)) == []

    reservations.list_by_user.assert_called_once_with(1)
    reservations.list_by_status.assert_called_once_with(ReservationStatus.ACTIVE)
    reservations.find_overdue.assert_called_once_with(date(2024, 2, 1))
