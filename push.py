"""
Push delivery through the OneSignal REST API, and the notification dispatch
rules shared by the admin routes and the scheduler.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from fastapi import Request
from pymongo import ReturnDocument
from pymongo.database import Database

from database import to_object_id, utcnow

logger = logging.getLogger(__name__)

ONESIGNAL_URL = "https://onesignal.com/api/v1/notifications"

# statuses a notification can be sent from
SENDABLE = ["draft", "scheduled", "failed"]


@dataclass
class PushResult:
    success: bool
    notification_id: Optional[str] = None
    error: Optional[str] = None


class OneSignalClient:
    def __init__(self, app_id: Optional[str], api_key: Optional[str], timeout: int = 10):
        self.app_id = app_id
        self.api_key = api_key
        self.timeout = timeout

    def send(self, title: str, message: str, external_user_ids: Optional[List[str]] = None,
             send_to_all: bool = False, data: Optional[Dict[str, Any]] = None) -> PushResult:
        if not self.app_id or not (self.api_key or "").strip():
            return PushResult(False, error="OneSignal configuration missing. Set ONESIGNAL_APP_ID and ONESIGNAL_REST_API_KEY.")

        payload: Dict[str, Any] = {
            "app_id": self.app_id,
            "headings": {"en": title},
            "contents": {"en": message},
        }
        if data:
            payload["data"] = data
        if send_to_all:
            payload["included_segments"] = ["Subscribed Users"]
        elif external_user_ids:
            payload["include_external_user_ids"] = external_user_ids
        else:
            return PushResult(False, error="No recipients specified")

        try:
            res = requests.post(
                ONESIGNAL_URL,
                json=payload,
                headers={"Authorization": f"Basic {self.api_key}", "Accept": "application/json"},
                timeout=self.timeout,
            )
            body = res.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("OneSignal request failed: %s", e)
            return PushResult(False, error=str(e))

        if res.status_code in (401, 403):
            return PushResult(False, error="OneSignal authentication failed. Check ONESIGNAL_REST_API_KEY.")
        errors = body.get("errors") if isinstance(body, dict) else None
        if not res.ok or errors:
            detail = ", ".join(errors) if isinstance(errors, list) else f"OneSignal API error ({res.status_code})"
            logger.error("OneSignal rejected notification: %s", detail)
            return PushResult(False, error=detail)
        notification_id = body.get("id") if isinstance(body, dict) else None
        if not notification_id:
            return PushResult(False, error="No notification id returned")
        return PushResult(True, notification_id=notification_id)

    def send_to_all(self, title: str, message: str, data: Optional[Dict[str, Any]] = None) -> PushResult:
        return self.send(title, message, send_to_all=True, data=data)

    def send_to_users(self, title: str, message: str, user_ids: List[str],
                      data: Optional[Dict[str, Any]] = None) -> PushResult:
        if not user_ids:
            return PushResult(False, error="No user IDs provided")
        return self.send(title, message, external_user_ids=user_ids, data=data)


def get_push(request: Request) -> OneSignalClient:
    return request.app.state.push


def active_recipients(db: Database, user_ids: List[Any]) -> List[str]:
    oids = [oid for oid in (to_object_id(u) for u in user_ids) if oid is not None]
    if not oids:
        return []
    found = db["user"].find({"_id": {"$in": oids}, "active": True}, {"_id": 1})
    return [str(u["_id"]) for u in found]


def claim(db: Database, notification_id: Any, statuses: List[str]) -> Optional[dict]:
    """Move a notification into `sending` if it is still in one of `statuses`.

    Only one caller wins the claim, so a notification is pushed at most once.
    """
    return db["notification"].find_one_and_update(
        {"_id": notification_id, "status": {"$in": statuses}},
        {"$set": {"status": "sending", "updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )


def dispatch(db: Database, push: OneSignalClient, notification: dict) -> PushResult:
    """Deliver a stored notification and record the outcome on it."""
    notification_id = str(notification["_id"])
    if notification.get("target") == "all":
        result = push.send_to_all(notification["title"], notification["message"],
                                  {"notificationId": notification_id, "target": "all"})
    elif notification.get("userIds"):
        recipients = active_recipients(db, notification["userIds"])
        if recipients:
            result = push.send_to_users(notification["title"], notification["message"], recipients,
                                        {"notificationId": notification_id, "target": "users", "userIds": recipients})
        else:
            result = PushResult(False, error="No active users found")
    else:
        result = PushResult(False, error="No recipients specified")

    if result.success:
        changes = {"status": "sent", "sentAt": utcnow(), "updatedAt": utcnow()}
        logger.info("Sent notification %s", notification_id)
    else:
        changes = {"status": "failed", "updatedAt": utcnow()}
        logger.error("Failed to send notification %s: %s", notification_id, result.error)
    db["notification"].update_one({"_id": notification["_id"]}, {"$set": changes})
    notification.update(changes)
    return result


def deliver(db: Database, push: OneSignalClient, notification: dict) -> PushResult:
    """Like `dispatch`, but an unexpected error marks the notification failed
    instead of leaving it claimed."""
    try:
        return dispatch(db, push, notification)
    except Exception as e:
        logger.exception("Notification %s could not be delivered", notification.get("_id"))
        changes = {"status": "failed", "updatedAt": utcnow()}
        db["notification"].update_one({"_id": notification["_id"]}, {"$set": changes})
        notification.update(changes)
        return PushResult(False, error=str(e))
