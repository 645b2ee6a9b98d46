import logging
import threading
from datetime import datetime
from typing import Optional

from pymongo.database import Database

from database import utcnow
from push import OneSignalClient, claim, deliver

logger = logging.getLogger(__name__)


def process_due_notifications(db: Database, push: OneSignalClient, now: Optional[datetime] = None) -> dict:
    """Send every scheduled notification whose time has come."""
    now = now or utcnow()
    due = list(db["notification"].find({"status": "scheduled", "scheduledFor": {"$lte": now}}))
    sent = failed = 0
    for notification in due:
        claimed = claim(db, notification["_id"], ["scheduled"])
        if claimed is None:
            continue
        if deliver(db, push, claimed).success:
            sent += 1
        else:
            failed += 1
    if due:
        logger.info("Scheduled notifications processed: %d sent, %d failed", sent, failed)
    return {"sent": sent, "failed": failed}


class NotificationScheduler:
    """Polls for due notifications on a background thread."""

    def __init__(self, db: Database, push: OneSignalClient, interval: int = 60):
        self.db = db
        self.push = push
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="notification-scheduler", daemon=True)
        self._thread.start()
        logger.info("Notification scheduler started (every %ss)", self.interval)

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def _run(self) -> None:
        # first pass runs immediately to pick up anything missed while down
        while True:
            try:
                process_due_notifications(self.db, self.push)
            except Exception:
                logger.exception("Scheduled notification run failed")
            if self._stop.wait(self.interval):
                return
