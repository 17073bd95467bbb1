# Overview: Process-scoped reconciliation state and the background sync trigger.

"""
Sync State Machine

    idle --begin()--> syncing --finish()--> idle
                              --fail()----> failed --begin()--> syncing

One SyncState per process guards against overlapping reconciliation runs
(manual, scheduled and login-triggered). status() is what the API exposes.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta

from flask import current_app

from voyapos.time_utils import to_utc_z, utcnow
from .errors import SyncInProgress

IDLE = "idle"
SYNCING = "syncing"
FAILED = "failed"


class SyncState:
    def __init__(self):
        self._lock = threading.Lock()
        self.state = IDLE
        self.last_started_at: datetime | None = None
        self.last_finished_at: datetime | None = None
        self.last_success_at: datetime | None = None
        self.last_result: dict | None = None
        self.last_error: str | None = None

    def begin(self) -> bool:
        """Enter syncing; False if a run is already in progress."""
        with self._lock:
            if self.state == SYNCING:
                return False
            self.state = SYNCING
            self.last_started_at = utcnow()
            return True

    def finish(self, result: dict | None) -> None:
        with self._lock:
            now = utcnow()
            self.state = IDLE
            self.last_finished_at = now
            self.last_success_at = now
            self.last_result = result
            self.last_error = None

    def fail(self, error: str) -> None:
        with self._lock:
            self.state = FAILED
            self.last_finished_at = utcnow()
            self.last_error = error

    def is_syncing(self) -> bool:
        with self._lock:
            return self.state == SYNCING

    def is_fresh(self, min_interval: timedelta) -> bool:
        """True when the last successful sync is younger than min_interval."""
        with self._lock:
            if self.last_success_at is None:
                return False
            return utcnow() - self.last_success_at < min_interval

    def reset(self) -> None:
        with self._lock:
            self.state = IDLE
            self.last_started_at = None
            self.last_finished_at = None
            self.last_success_at = None
            self.last_result = None
            self.last_error = None

    def status(self) -> dict:
        with self._lock:
            return {
                "state": self.state,
                "is_syncing": self.state == SYNCING,
                "last_started_at": to_utc_z(self.last_started_at),
                "last_finished_at": to_utc_z(self.last_finished_at),
                "last_success_at": to_utc_z(self.last_success_at),
                "last_result": self.last_result,
                "last_error": self.last_error,
            }


sync_state = SyncState()


def run_sync(job, state: SyncState = sync_state):
    """
    Run job() under the state machine and return its result.

    job returns an object with to_dict() or a plain dict. Raises
    SyncInProgress when another run holds the state.
    """
    if not state.begin():
        raise SyncInProgress("Inventory sync already in progress")
    try:
        result = job()
    except Exception as exc:
        state.fail(str(exc))
        raise
    state.finish(result.to_dict() if hasattr(result, "to_dict") else result)
    return result


def trigger_background_sync(app, job, *, force: bool = False, state: SyncState = sync_state) -> threading.Thread | None:
    """
    Start job in a daemon thread unless a run is active or the last one is fresh.

    Returns the started thread, or None when skipped.
    """
    min_interval = timedelta(seconds=app.config["SYNC_MIN_INTERVAL_SECONDS"])

    if state.is_syncing():
        app.logger.info("Background sync skipped: sync already in progress")
        return None
    if not force and state.is_fresh(min_interval):
        app.logger.info("Background sync skipped: last sync is recent")
        return None

    def _worker():
        with app.app_context():
            try:
                run_sync(job, state)
                current_app.logger.info("Background sync completed")
            except SyncInProgress:
                current_app.logger.info("Background sync skipped: sync already in progress")
            except Exception:
                current_app.logger.exception("Background sync failed")

    thread = threading.Thread(target=_worker, name="inventory-sync", daemon=True)
    thread.start()
    return thread
