# book_rental/tasks/scheduler.py
from __future__ import annotations

import atexit
import os

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger


def start_scheduler(app):
    """
    Starts the overdue reminder job.
    - Disabled with SCHEDULER_ENABLED=0 (tests, one-off CLI runs).
    - Debug reloader runs two processes; only the real one schedules.
    - Shuts down with the interpreter.
    """
    if not app.config.get("SCHEDULER_ENABLED", True):
        app.logger.info("[scheduler] Disabled by config.")
        return None

    # Werkzeug sets WERKZEUG_RUN_MAIN=true in the serving process
    if app.debug and os.environ.get("WERKZEUG_RUN_MAIN") != "true":
        app.logger.info("[scheduler] Debug reloader secondary process: scheduler skipped.")
        return None

    # imported here to avoid a circular import through the service layer
    from book_rental.tasks.overdue_check import run_overdue_check_job

    minutes = int(app.config.get("OVERDUE_CHECK_MINUTES", 10))
    scheduler = BackgroundScheduler(timezone="UTC")

    def _job_wrapper():
        try:
            run_overdue_check_job(app)
        except Exception as ex:
            app.logger.exception(f"[scheduler] overdue_check_job error: {ex}")

    scheduler.add_job(
        func=_job_wrapper,
        trigger=IntervalTrigger(minutes=minutes),
        id="overdue_check_job",
        replace_existing=True,
        max_instances=1,        # never overlap runs
        coalesce=True,          # collapse missed runs into one
        misfire_grace_time=120
    )

    scheduler.start()
    app.logger.info(f"[scheduler] Overdue check job started (every {minutes} minutes).")

    app.extensions["apscheduler"] = scheduler
    atexit.register(lambda: scheduler.shutdown(wait=False) if scheduler.running else None)

    return scheduler
