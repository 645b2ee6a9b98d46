import calendar
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends, Query
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import PASSWORD_PROJECTION, require_admin
from database import create_document, get_db, serialize, utcnow
from errors import ApiError
from query import NEWEST_FIRST, Page, PostFilter, UserFilter, parse_flag, run_list
from schemas import AdminPost, AdminUserUpdate, PostModeration
from submissions import SubmissionQuery, daily_checkin_submissions, with_titles
from routers.common import find_or_404, object_id, ok, update_or_404

router = APIRouter(prefix="/api/admin", tags=["community"])

NOT_DELETED = {"deletedAt": None}
OWNER_FIELDS = {"name": 1, "email": 1}


def new_post(data: dict, user_id, status: str) -> dict:
    return {
        **data,
        "userId": user_id,
        "status": status,
        "published": status == "approved",
        "flags": [],
        "flagCount": 0,
        "flagged": False,
        "deletedAt": None,
    }


def with_owners(db: Database, posts: List[dict]) -> List[dict]:
    """Replace each post's owner id with {_id, name, email}."""
    ids = {p.get("userId") for p in posts if p.get("userId") is not None}
    owners = {u["_id"]: u for u in db["user"].find({"_id": {"$in": list(ids)}}, OWNER_FIELDS)} if ids else {}
    return [{**p, "user": owners.get(p.get("userId"))} for p in posts]


# -----------------------------
# Posts
# -----------------------------
@router.get("/posts")
def list_posts(search: Optional[str] = None, status: Optional[str] = None, published: Optional[str] = None,
               flagged: Optional[str] = None, page: Optional[int] = Query(None), limit: Optional[int] = Query(None),
               admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    f = PostFilter(search=search, status=status, published=parse_flag(published), flagged=parse_flag(flagged))
    result = run_list(db["post"], f.compile(), f.sort, Page.with_default(page, limit))
    result.items = with_owners(db, result.items)
    return result.envelope("posts")


@router.post("/posts", status_code=201)
def create_post(body: AdminPost, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    owner = find_or_404(db["user"], body.user_id, "User not found", {"_id": 1})
    data = body.to_document()
    data.pop("userId")
    status = data.pop("status")
    doc = create_document(db, "post", new_post(data, owner["_id"], status))
    return ok(item=doc)


@router.get("/posts/{post_id}")
def get_post(post_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    # direct lookup still finds soft-deleted posts
    post = find_or_404(db["post"], post_id, "Post not found")
    return ok(item=with_owners(db, [post])[0])


@router.patch("/posts/{post_id}")
def moderate_post(post_id: str, body: PostModeration, admin: dict = Depends(require_admin),
                  db: Database = Depends(get_db)):
    changes = body.changes()
    if "status" in changes and "published" not in changes:
        changes["published"] = changes["status"] == "approved"
    post = update_or_404(db["post"], post_id, changes, "Post not found", extra=NOT_DELETED)
    return ok(item=post, flagCount=post.get("flagCount", 0))


@router.delete("/posts/{post_id}")
def delete_post(post_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    update_or_404(db["post"], post_id, {"deletedAt": utcnow()}, "Post not found", extra=NOT_DELETED)
    return {"success": True, "message": "Post deleted"}


# -----------------------------
# Users
# -----------------------------
def titled_answers(db: Database, user: dict) -> Dict[str, list]:
    return {
        "onboardingAnswers": with_titles(db, "onboardingquestion", user.get("onboardingAnswers") or []),
        "dailyCheckinAnswers": with_titles(db, "dailycheckinquestion", user.get("dailyCheckinAnswers") or []),
    }


@router.get("/users")
def list_users(search: Optional[str] = None, active: Optional[str] = None, page: Optional[int] = Query(None),
               limit: Optional[int] = Query(None), admin: dict = Depends(require_admin),
               db: Database = Depends(get_db)):
    f = UserFilter(search=search, active=parse_flag(active))
    result = run_list(db["user"], f.compile(), f.sort, Page.with_default(page, limit), PASSWORD_PROJECTION)
    return result.envelope("users")


@router.get("/users/{user_id}")
def get_user(user_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    user = find_or_404(db["user"], user_id, "User not found", PASSWORD_PROJECTION)
    user.update(titled_answers(db, user))
    posts_count = db["post"].count_documents({"userId": user["_id"], **NOT_DELETED})
    return ok(user=user, postsCount=posts_count)


@router.patch("/users/{user_id}")
def update_user(user_id: str, body: AdminUserUpdate, admin: dict = Depends(require_admin),
                db: Database = Depends(get_db)):
    changes = body.changes()
    if changes.get("email"):
        changes["email"] = changes["email"].strip().lower()
        clash = db["user"].find_one({"email": changes["email"], "_id": {"$ne": object_id(user_id)}}, {"_id": 1})
        if clash:
            raise ApiError(409, "Email already in use")
    try:
        user = update_or_404(db["user"], user_id, changes, "User not found", PASSWORD_PROJECTION)
    except DuplicateKeyError:
        raise ApiError(409, "Email already in use")
    return ok(message="User updated successfully", user=user)


@router.get("/users/{user_id}/export")
def export_user(user_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    user = find_or_404(db["user"], user_id, "User not found", PASSWORD_PROJECTION)
    answers = titled_answers(db, user)
    user.pop("onboardingAnswers", None)
    user.pop("dailyCheckinAnswers", None)
    posts = list(db["post"].find({"userId": user["_id"], **NOT_DELETED}, {"flags": 0}).sort(NEWEST_FIRST))
    return ok(export={"user": user, "posts": posts, **answers, "exportedAt": utcnow()})


# -----------------------------
# Check-in submissions
# -----------------------------
@router.get("/daily-checkin-submissions")
def list_submissions(check_in_date: Optional[date] = Query(None, alias="date"),
                     user_id: Optional[str] = Query(None, alias="userId"),
                     question_id: Optional[str] = Query(None, alias="questionId"), page: Optional[int] = Query(None),
                     limit: Optional[int] = Query(None), admin: dict = Depends(require_admin),
                     db: Database = Depends(get_db)):
    query = SubmissionQuery(
        check_in_date=check_in_date,
        user_id=object_id(user_id) if user_id else None,
        question_id=question_id or None,
    )
    result = daily_checkin_submissions(db, query, Page.with_default(page, limit, default_limit=50))
    return {"success": True, **serialize(result)}


# -----------------------------
# Dashboard
# -----------------------------
def month_start(value: datetime, months_back: int = 0) -> datetime:
    month_index = value.year * 12 + value.month - 1 - months_back
    return datetime(month_index // 12, month_index % 12 + 1, 1)


def count_between(db: Database, collection: str, start: datetime, end: datetime, extra: Optional[dict] = None) -> int:
    return db[collection].count_documents({"createdAt": {"$gte": start, "$lt": end}, **(extra or {})})


def buckets(bounds: Iterable[tuple], db: Database, label) -> List[dict]:
    return [
        {
            "label": label(start),
            "users": count_between(db, "user", start, end),
            "posts": count_between(db, "post", start, end, NOT_DELETED),
        }
        for start, end in bounds
    ]


@router.get("/dashboard/stats")
def dashboard_stats(admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    now = utcnow()
    week_ago = now - timedelta(days=7)
    upcoming = {"scheduledFor": {"$gt": now}, "active": True, "archived": False}
    stats = {
        "users": {
            "total": db["user"].count_documents({}),
            "active": db["user"].count_documents({"active": True}),
            "newThisWeek": db["user"].count_documents({"createdAt": {"$gte": week_ago}}),
        },
        "posts": {
            "total": db["post"].count_documents(NOT_DELETED),
            "pending": db["post"].count_documents({"status": "pending", **NOT_DELETED}),
            "flagged": db["post"].count_documents({"flagged": True, **NOT_DELETED}),
            "recent": db["post"].count_documents({"createdAt": {"$gte": week_ago}, **NOT_DELETED}),
        },
        "content": {
            "upcomingDailyAffirmations": db["dailyaffirmation"].count_documents(upcoming),
            "upcomingWeeklyAffirmations": db["weeklyaffirmation"].count_documents(upcoming),
            "scheduledNotifications": db["notification"].count_documents({"status": "scheduled"}),
            "resources": db["resource"].count_documents({"active": True, "archived": False}),
        },
    }
    return ok(stats=stats)


@router.get("/dashboard/charts")
def dashboard_charts(admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    now = utcnow()
    months = [(month_start(now, back), month_start(now, back - 1)) for back in range(11, -1, -1)]
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    days = [(today - timedelta(days=back), today - timedelta(days=back - 1)) for back in range(6, -1, -1)]
    return ok(
        monthly=buckets(months, db, lambda start: f"{calendar.month_abbr[start.month]} {start.year}"),
        daily=buckets(days, db, lambda start: start.strftime("%Y-%m-%d")),
    )
