"""
Mobile app endpoints.

Content reads accept any signed-in principal; everything that writes to or
reads back a user's own data requires an end-user token.
"""
import logging
import mimetypes
import time
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, File, Query, UploadFile
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import config
from answers import AnswerError, build_answers
from auth import Principal, require_admin_or_user, require_user
from database import create_document, get_db, serialize, utcnow
from errors import ApiError
from query import (NEWEST_FIRST, AppResourceFilter, CurrentAffirmationFilter, QuestionFilter, day_window, run_list,
                   week_window)
from schemas import AnswerIn, CheckinSubmission, OnboardingSubmission, Post, UserProfileUpdate
from storage import GridFSStorage, get_storage
from submissions import with_titles
from routers.common import object_id, ok
from routers.community import NOT_DELETED, new_post, with_owners

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/app", tags=["app"])

FEED_SIZE = 100


# -----------------------------
# Affirmations and resources
# -----------------------------
def current_affirmation(db: Database, collection: str, window) -> dict:
    f = CurrentAffirmationFilter(*window)
    found = run_list(db[collection], f.compile(), f.sort, None).items
    if not found:
        raise ApiError(404, "No affirmation available")
    return ok(affirmation=found[0])


@router.get("/daily-affirmation")
def daily_affirmation(principal: Principal = Depends(require_admin_or_user), db: Database = Depends(get_db)):
    return current_affirmation(db, "dailyaffirmation", day_window(utcnow()))


@router.get("/weekly-affirmation")
def weekly_affirmation(principal: Principal = Depends(require_admin_or_user), db: Database = Depends(get_db)):
    return current_affirmation(db, "weeklyaffirmation", week_window(utcnow()))


@router.get("/resources")
def resources(category: Optional[str] = None, principal: Principal = Depends(require_admin_or_user),
              db: Database = Depends(get_db)):
    f = AppResourceFilter(category=category)
    return run_list(db["resource"], f.compile(), f.sort, None).envelope("resources")


# -----------------------------
# Questions and answers
# -----------------------------
def active_questions(db: Database, collection: str) -> dict:
    f = QuestionFilter(active=True)
    return run_list(db[collection], f.compile(), f.sort, None).envelope("questions")


def validated_answers(db: Database, collection: str, submitted: List[AnswerIn], answered_at: datetime,
                      **extra) -> Tuple[List[dict], Dict[str, str]]:
    """Every question must exist and be active, or nothing is stored.

    Returns the rows to store and the title of each answered question.
    """
    ids = [a.question_id for a in submitted]
    if len(set(ids)) != len(ids):
        raise ApiError(400, "Each question may only be answered once per submission")
    oids = [object_id(q) for q in ids]
    questions = list(db[collection].find({"_id": {"$in": oids}, "active": True}))
    found = {str(q["_id"]) for q in questions}
    missing = [q for q in ids if q not in found]
    if missing:
        raise ApiError(400, "Invalid or inactive questions", ", ".join(missing))
    try:
        rows = build_answers(questions, [a.to_document() for a in submitted], answered_at, **extra)
    except AnswerError as e:
        raise ApiError(400, str(e))
    return rows, {str(q["_id"]): q.get("title") for q in questions}


def titled(rows: List[dict], titles: Dict[str, str]) -> List[dict]:
    return [{**r, "questionTitle": titles[r["questionId"]]} for r in rows]


def next_streak(user: dict, check_in: datetime) -> int:
    streak = user.get("streak") or 0
    last = (user.get("activity") or {}).get("lastCheckIn")
    if last is None:
        return 1
    gap = (check_in.date() - last.date()).days
    if gap <= 0:
        return max(streak, 1)
    if gap == 1:
        return streak + 1
    return 1


@router.get("/onboarding-questions")
def onboarding_questions(principal: Principal = Depends(require_admin_or_user), db: Database = Depends(get_db)):
    return active_questions(db, "onboardingquestion")


@router.get("/daily-checkin-questions")
def daily_checkin_questions(principal: Principal = Depends(require_admin_or_user), db: Database = Depends(get_db)):
    return active_questions(db, "dailycheckinquestion")


@router.post("/onboarding-questions/submit")
def submit_onboarding(body: OnboardingSubmission, user: dict = Depends(require_user),
                      db: Database = Depends(get_db)):
    rows, titles = validated_answers(db, "onboardingquestion", body.answers, utcnow())
    answered = {r["questionId"] for r in rows}
    kept = [a for a in user.get("onboardingAnswers") or [] if a.get("questionId") not in answered]
    db["user"].update_one({"_id": user["_id"]},
                          {"$set": {"onboardingAnswers": kept + rows, "updatedAt": utcnow()}})
    return ok(message="Onboarding answers saved", answers=titled(rows, titles))


@router.get("/onboarding-questions/submit")
def onboarding_answers(user: dict = Depends(require_user), db: Database = Depends(get_db)):
    return ok(answers=with_titles(db, "onboardingquestion", user.get("onboardingAnswers") or []))


@router.post("/daily-checkin-questions/submit")
def submit_daily_checkin(body: CheckinSubmission, user: dict = Depends(require_user),
                         db: Database = Depends(get_db)):
    now = utcnow()
    check_in, _ = day_window(body.check_in_date or now)
    rows, titles = validated_answers(db, "dailycheckinquestion", body.answers, now, checkInDate=check_in)

    previous = user.get("dailyCheckinAnswers") or []
    kept = [a for a in previous if a.get("checkInDate") != check_in]
    first_today = len(kept) == len(previous)
    activity = user.get("activity") or {}
    last = activity.get("lastCheckIn")

    streak = next_streak(user, check_in)
    changes = {
        "dailyCheckinAnswers": kept + rows,
        "streak": streak,
        "activity.lastCheckIn": max(last, check_in) if last else check_in,
        "updatedAt": now,
    }
    update = {"$set": changes}
    if first_today:
        update["$inc"] = {"activity.totalCheckIns": 1}
    db["user"].update_one({"_id": user["_id"]}, update)
    return ok(message="Check-in saved", streak=streak, answers=titled(rows, titles))


@router.get("/daily-checkin-questions/submit")
def daily_checkin_answers(check_in_date: Optional[date] = Query(None, alias="date"),
                          user: dict = Depends(require_user), db: Database = Depends(get_db)):
    answers = user.get("dailyCheckinAnswers") or []
    if check_in_date is not None:
        answers = [a for a in answers if a.get("checkInDate") and a["checkInDate"].date() == check_in_date]
    return ok(answers=with_titles(db, "dailycheckinquestion", answers))


# -----------------------------
# Community posts
# -----------------------------
@router.get("/posts")
def feed(user: dict = Depends(require_user), db: Database = Depends(get_db)):
    query = {"status": "approved", "visibility": "public", **NOT_DELETED}
    posts = list(db["post"].find(query, {"flags": 0}).sort(NEWEST_FIRST).limit(FEED_SIZE))
    return ok(posts=with_owners(db, posts))


@router.post("/posts", status_code=201)
def create_post(body: Post, user: dict = Depends(require_user), db: Database = Depends(get_db)):
    doc = create_document(db, "post", new_post(body.to_document(), user["_id"], "pending"))
    db["user"].update_one({"_id": user["_id"]}, {"$inc": {"activity.totalPosts": 1}})
    doc.pop("flags", None)
    return ok(message="Post submitted for review", post=doc)


@router.post("/posts/{post_id}/flag")
def flag_post(post_id: str, user: dict = Depends(require_user), db: Database = Depends(get_db)):
    oid = object_id(post_id)
    post = db["post"].find_one_and_update(
        {"_id": oid, "flags": {"$ne": user["_id"]}, **NOT_DELETED},
        {"$addToSet": {"flags": user["_id"]}, "$inc": {"flagCount": 1},
         "$set": {"flagged": True, "updatedAt": utcnow()}},
        projection={"flagCount": 1},
        return_document=ReturnDocument.AFTER,
    )
    if post is None:
        if db["post"].find_one({"_id": oid, **NOT_DELETED}, {"_id": 1}) is None:
            raise ApiError(404, "Post not found")
        raise ApiError(400, "Post already flagged by you")
    logger.info("Post %s flagged by %s", post_id, user["_id"])
    return ok(message="Post flagged", flagCount=post["flagCount"])


@router.get("/posts/{post_id}/flag")
def flag_status(post_id: str, user: dict = Depends(require_user), db: Database = Depends(get_db)):
    post = db["post"].find_one({"_id": object_id(post_id), **NOT_DELETED}, {"flags": 1, "flagCount": 1})
    if post is None:
        raise ApiError(404, "Post not found")
    return ok(flagged=user["_id"] in (post.get("flags") or []), flagCount=post.get("flagCount", 0))


# -----------------------------
# Uploads and profile
# -----------------------------
@router.post("/upload-image")
def upload_image(image: UploadFile = File(...), user: dict = Depends(require_user),
                 storage: GridFSStorage = Depends(get_storage)):
    if image.content_type not in config.ALLOWED_IMAGE_TYPES:
        raise ApiError(400, "Invalid file type. Only JPEG, PNG, GIF and WEBP images are allowed")
    data = image.file.read(config.MAX_UPLOAD_BYTES + 1)
    if len(data) > config.MAX_UPLOAD_BYTES:
        raise ApiError(400, "File too large. Maximum size is 10MB")

    name = image.filename or ""
    if "." in name:
        extension = name.rsplit(".", 1)[1].lower()
    else:
        extension = (mimetypes.guess_extension(image.content_type) or ".jpg").lstrip(".")
    filename = f"{user['_id']}-{int(time.time() * 1000)}.{extension}"
    url = storage.upload(data, filename, "posts", image.content_type)
    logger.info("Stored upload %s", filename)
    return {"success": True, "message": "Image uploaded successfully", "url": url}


@router.patch("/user/profile")
def update_profile(body: UserProfileUpdate, user: dict = Depends(require_user), db: Database = Depends(get_db)):
    restricted = body.restricted()
    if restricted:
        raise ApiError(400, f"Cannot update restricted fields: {', '.join(restricted)}")
    changes = body.changes()
    if not changes:
        raise ApiError(400, "No valid fields to update")
    if changes.get("email"):
        changes["email"] = changes["email"].strip().lower()
        if db["user"].find_one({"email": changes["email"], "_id": {"$ne": user["_id"]}}, {"_id": 1}):
            raise ApiError(409, "Email already in use")
    changes["updatedAt"] = utcnow()
    try:
        updated = db["user"].find_one_and_update({"_id": user["_id"]}, {"$set": changes},
                                                 projection={"passwordHash": 0},
                                                 return_document=ReturnDocument.AFTER)
    except DuplicateKeyError:
        raise ApiError(409, "Email already in use")
    return {"success": True, "message": "Profile updated successfully", "user": serialize(updated)}
