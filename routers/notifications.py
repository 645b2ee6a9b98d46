import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pymongo.database import Database

from auth import require_admin
from database import create_document, get_db, utcnow
from errors import ApiError
from push import SENDABLE, OneSignalClient, claim, deliver, get_push
from query import NotificationFilter, Page, run_list
from schemas import Notification, NotificationUpdate
from routers.common import delete_or_404, find_or_404, ok, update_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/notifications", tags=["notifications"])


def settle(doc: dict, now) -> dict:
    """Derive target/status invariants on a notification about to be stored."""
    if doc.get("target") == "all":
        doc["userIds"] = []
    scheduled_for = doc.get("scheduledFor")
    if scheduled_for is not None and scheduled_for > now and doc.get("status") in (None, "draft", "scheduled"):
        doc["status"] = "scheduled"
    elif doc.get("status") is None:
        doc["status"] = "draft"
    return doc


def check_recipients(doc: dict) -> None:
    if doc.get("target") == "users" and not doc.get("userIds"):
        raise ApiError(400, "No recipients specified")


def claim_or_409(db: Database, doc: dict) -> dict:
    claimed = claim(db, doc["_id"], SENDABLE)
    if claimed is None:
        raise ApiError(409, "Notification is already being sent")
    return claimed


def push_outcome(result) -> dict:
    if result.success:
        return {"message": "Notification sent", "pushId": result.notification_id}
    return {"message": "Notification could not be delivered", "error": result.error}


@router.get("")
def list_notifications(search: Optional[str] = None, status: Optional[str] = None, target: Optional[str] = None,
                       page: Optional[int] = Query(None), limit: Optional[int] = Query(None),
                       admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    f = NotificationFilter(search=search, status=status, target=target)
    return run_list(db["notification"], f.compile(), f.sort, Page.with_default(page, limit)).envelope("items")


@router.post("", status_code=201)
def create_notification(body: Notification, admin: dict = Depends(require_admin), db: Database = Depends(get_db),
                        push: OneSignalClient = Depends(get_push)):
    doc = settle(body.to_document(), utcnow())
    check_recipients(doc)
    send_now = doc["status"] == "sent"
    if send_now:
        doc["status"] = "sending"
    doc["createdBy"] = admin["_id"]
    doc = create_document(db, "notification", doc)
    if not send_now:
        return ok(item=doc)
    result = deliver(db, push, doc)
    return ok(item=doc, **push_outcome(result))


@router.get("/{notification_id}")
def get_notification(notification_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return ok(item=find_or_404(db["notification"], notification_id, "Notification not found"))


@router.patch("/{notification_id}")
def update_notification(notification_id: str, body: NotificationUpdate, admin: dict = Depends(require_admin),
                        db: Database = Depends(get_db), push: OneSignalClient = Depends(get_push)):
    current = find_or_404(db["notification"], notification_id, "Notification not found")
    changes = body.changes()
    merged = settle({**current, **changes}, utcnow())
    check_recipients(merged)

    send_now = merged["status"] == "sent" and current.get("status") != "sent"
    changes["status"] = current.get("status") if send_now else merged["status"]
    changes["userIds"] = merged.get("userIds", [])
    doc = update_or_404(db["notification"], notification_id, changes, "Notification not found")
    if not send_now:
        return ok(item=doc)
    doc = claim_or_409(db, doc)
    result = deliver(db, push, doc)
    return ok(item=doc, **push_outcome(result))


@router.delete("/{notification_id}")
def delete_notification(notification_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    delete_or_404(db["notification"], notification_id, "Notification not found")
    return {"success": True, "message": "Notification deleted"}


@router.post("/{notification_id}/send")
def send_notification(notification_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db),
                      push: OneSignalClient = Depends(get_push)):
    doc = find_or_404(db["notification"], notification_id, "Notification not found")
    if doc.get("status") == "sent":
        raise ApiError(400, "Notification already sent")
    check_recipients(doc)
    doc = claim_or_409(db, doc)
    result = deliver(db, push, doc)
    if not result.success:
        raise ApiError(500, "Failed to send notification", result.error)
    return ok(item=doc, **push_outcome(result))
