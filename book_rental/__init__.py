import logging

from flask import Flask, jsonify
from book_rental.config import Config
from book_rental.extensions import db, migrate, mail


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # models must be imported before create_all / migrations see the metadata
    from book_rental.models import book, notification_log, reservation, user  # noqa: F401

    db.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)

    from book_rental.controllers.reservation_controller import reservation_bp
    app.register_blueprint(reservation_bp, url_prefix="/reservations")

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    # Scheduler (overdue reminders)
    from book_rental.tasks.scheduler import start_scheduler
    start_scheduler(app)

    return app
