from book_rental.models.notification_log import NotificationLog
from book_rental.extensions import db

class NotificationRepo:
    @staticmethod
    def already_sent(reservation_id: int, notif_type: str = "overdue") -> bool:
        return NotificationLog.query.filter_by(
            reservation_id=reservation_id, type=notif_type, success=True
        ).first() is not None

    @staticmethod
    def log(entry: NotificationLog):
        # no commit here, the job commits once at the end
        db.session.add(entry)
        return entry
