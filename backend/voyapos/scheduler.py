# Overview: APScheduler interval job for scheduled inventory reconciliation.

"""
Scheduled Reconciliation

The web process can run the stock sync on an interval with a
BackgroundScheduler (SYNC_SCHEDULE_MINUTES > 0). The `flask inventory
sync-loop` command runs the same job body on a BlockingScheduler.

Overlapping runs are refused by the shared SyncState, so a scheduled run
that lands while a manual or login-triggered sync is active is skipped.
"""

from __future__ import annotations

from apscheduler.schedulers.background import BackgroundScheduler
from flask import current_app

from .services.errors import PosError, SyncInProgress
from .services.reconcile_service import sync_inventory
from .services.sync_state import run_sync, sync_state

JOB_ID = "inventory-sync"


def run_scheduled_sync(app, job=sync_inventory, state=sync_state):
    """One reconciliation run inside an app context; None when skipped or failed."""
    with app.app_context():
        try:
            result = run_sync(job, state)
        except SyncInProgress:
            current_app.logger.info("Scheduled sync skipped: sync already in progress")
            return None
        except PosError as e:
            # Already recorded on the state machine as failed
            current_app.logger.warning("Scheduled sync failed: %s", e.message)
            return None
        current_app.logger.info("Scheduled sync completed")
        return result


def init_scheduler(app) -> BackgroundScheduler | None:
    minutes = app.config["SYNC_SCHEDULE_MINUTES"]
    if not minutes or minutes <= 0:
        app.logger.info("Sync scheduler disabled (SYNC_SCHEDULE_MINUTES not set)")
        return None

    scheduler = BackgroundScheduler(daemon=True)
    scheduler.add_job(
        run_scheduled_sync,
        "interval",
        minutes=minutes,
        args=[app],
        id=JOB_ID,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    app.extensions["sync_scheduler"] = scheduler
    app.logger.info("Sync scheduler started (every %d minutes)", minutes)
    return scheduler
