import os
from decimal import Decimal, ROUND_HALF_UP


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-key")

    SQLALCHEMY_DATABASE_URI = os.getenv(
        "SQLALCHEMY_DATABASE_URI",
        "sqlite:///book_rental.db"
    )

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Late fee policy: percentage of the daily rate charged per late day
    LATE_FEE_PERCENTAGE = Decimal(os.getenv("LATE_FEE_PERCENTAGE", "0.15"))
    LATE_FEE_ROUNDING = ROUND_HALF_UP

    # "after_due": returned after the due date is late
    # "before_due": legacy comparison, returned before the due date is late
    LATE_RETURN_RULE = os.getenv("LATE_RETURN_RULE", "after_due")

    # Overdue / due-soon reminders
    SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "1") == "1"
    OVERDUE_CHECK_MINUTES = int(os.getenv("OVERDUE_CHECK_MINUTES", "10"))

    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = True
    MAIL_USERNAME = os.getenv("MAIL_USERNAME", "")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD", "")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "noreply@library.local")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SCHEDULER_ENABLED = False
    MAIL_SUPPRESS_SEND = True
    LATE_RETURN_RULE = "after_due"
