# book_rental/tasks/overdue_check.py
from __future__ import annotations

from datetime import date, timedelta
from flask import current_app

from book_rental.extensions import db
from book_rental.repositories.notification_repo import NotificationRepo
from book_rental.services.mail_service import MailService
from book_rental.services.reservation_service import ReservationService


def run_overdue_check_job(app, today: date | None = None) -> dict:
    """
    Sends reminder mails for ACTIVE reservations.
    - overdue: expected_return_date already passed (one mail per reservation)
    - due_soon: expected_return_date is tomorrow
    Reservation status is never touched here; overdue is a view until the book comes back.
    """
    with app.app_context():
        stats = {"overdue": 0, "due_soon": 0, "overdue_sent": 0, "due_soon_sent": 0}
        try:
            today = today or date.today()
            service = ReservationService.from_app(app)

            overdue_rows = service.get_overdue(today)
            due_soon_rows = service.get_due_on(today + timedelta(days=1))
            stats["overdue"] = len(overdue_rows)
            stats["due_soon"] = len(due_soon_rows)

            for r in overdue_rows:
                if NotificationRepo.already_sent(r.id, "overdue"):
                    continue
                user = service.users.get_by_id(r.user_id)
                book = service.books.get_by_external_id(r.book_external_id)
                if MailService.send_overdue_mail(r, user, book):
                    stats["overdue_sent"] += 1

            for r in due_soon_rows:
                if NotificationRepo.already_sent(r.id, "due_soon"):
                    continue
                user = service.users.get_by_id(r.user_id)
                book = service.books.get_by_external_id(r.book_external_id)
                if MailService.send_due_soon_mail(r, user, book):
                    stats["due_soon_sent"] += 1

            # single commit for all notification logs
            db.session.commit()

            current_app.logger.info(
                f"[overdue_check] overdue={stats['overdue']} due_soon={stats['due_soon']} "
                f"mail_overdue_sent={stats['overdue_sent']} mail_due_soon_sent={stats['due_soon_sent']}"
            )

        except Exception as e:
            db.session.rollback()
            current_app.logger.exception(f"[overdue_check] Error: {e}")

        return stats
