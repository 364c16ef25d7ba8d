# book_rental/services/mail_service.py
from __future__ import annotations

from datetime import datetime
from flask import current_app
from flask_mail import Message

from book_rental.extensions import mail
from book_rental.models.notification_log import NotificationLog
from book_rental.repositories.notification_repo import NotificationRepo


class MailService:
    @staticmethod
    def send_email(to_email: str, subject: str, body: str) -> tuple[bool, str | None]:
        """
        return: (success, error_text)
        """
        try:
            msg = Message(subject=subject, recipients=[to_email], body=body)
            mail.send(msg)
            return True, None
        except Exception as e:
            # SMTP problems are recorded in the notification log instead of failing the job
            current_app.logger.warning(f"[MailService] Mail could not be sent to {to_email}: {e}")
            return False, str(e)

    @staticmethod
    def log_notification(
        reservation_id: int | None,
        notif_type: str,
        to_email: str | None,
        message: str,
        success: bool,
        error: str | None = None,
    ) -> NotificationLog:
        row = NotificationLog(
            reservation_id=reservation_id,
            type=notif_type,
            email=to_email,
            message=message,
            success=bool(success),
            error_message=error,
            sent_at=datetime.utcnow(),
        )
        return NotificationRepo.log(row)

    @staticmethod
    def _send_reminder(reservation, user, book, notif_type: str, subject: str, body: str) -> bool:
        to_email = getattr(user, "email", None) if user else None
        if not to_email:
            MailService.log_notification(
                reservation_id=reservation.id,
                notif_type=notif_type,
                to_email=None,
                message="User has no email address",
                success=False,
                error="missing_email",
            )
            return False

        ok, err = MailService.send_email(to_email, subject, body)
        MailService.log_notification(
            reservation_id=reservation.id,
            notif_type=notif_type,
            to_email=to_email,
            message=body,
            success=ok,
            error=err,
        )
        return ok

    @staticmethod
    def send_overdue_mail(reservation, user, book) -> bool:
        name = getattr(user, "name", "reader") if user else "reader"
        title = getattr(book, "title", None) or f"Book #{reservation.book_external_id}"
        body = (
            f"Hello {name},\n\n"
            f"'{title}' was due back on {reservation.expected_return_date}.\n"
            f"Late days are charged at {int(current_app.config['LATE_FEE_PERCENTAGE'] * 100)}% "
            f"of the daily rate ({reservation.daily_rate}).\n\n"
            "Please return it as soon as possible.\n"
        )
        return MailService._send_reminder(
            reservation, user, book, "overdue", "Library: overdue book", body
        )

    @staticmethod
    def send_due_soon_mail(reservation, user, book) -> bool:
        name = getattr(user, "name", "reader") if user else "reader"
        title = getattr(book, "title", None) or f"Book #{reservation.book_external_id}"
        body = (
            f"Hello {name},\n\n"
            f"'{title}' is due back on {reservation.expected_return_date}.\n\n"
            "Don't forget to return it.\n"
        )
        return MailService._send_reminder(
            reservation, user, book, "due_soon", "Library: return date is near", body
        )
