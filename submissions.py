"""
Check-in submission reporting.

Answers live embedded in each user document, so filtering on check-in date
or question and paginating can only happen after the answers are
flattened into rows. Question titles are looked up for the current page
only.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo.database import Database

from database import to_object_id
from query import Page

MISSING_TITLE = "Question not found"
MISSING_TYPE = "unknown"


@dataclass
class SubmissionQuery:
    check_in_date: Optional[date] = None
    user_id: Optional[ObjectId] = None
    question_id: Optional[str] = None


def question_lookup(db: Database, collection: str, question_ids: Iterable[str]) -> Dict[str, dict]:
    """Batched title/type lookup keyed by the string question id."""
    oids = [oid for oid in (to_object_id(q) for q in set(question_ids)) if oid is not None]
    if not oids:
        return {}
    found = db[collection].find({"_id": {"$in": oids}}, {"title": 1, "type": 1})
    return {str(q["_id"]): q for q in found}


def with_titles(db: Database, collection: str, answers: List[dict]) -> List[dict]:
    questions = question_lookup(db, collection, (a.get("questionId") for a in answers))
    return [
        {**a, "questionTitle": questions.get(str(a.get("questionId")), {}).get("title", MISSING_TITLE)}
        for a in answers
    ]


def _day(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


def flatten(users: Iterable[dict], query: SubmissionQuery) -> List[dict]:
    rows = []
    for user in users:
        for answer in user.get("dailyCheckinAnswers") or []:
            if query.check_in_date and _day(answer.get("checkInDate")) != query.check_in_date:
                continue
            if query.question_id and answer.get("questionId") != query.question_id:
                continue
            rows.append({
                "_id": answer.get("_id") or f"{user['_id']}-{answer.get('questionId')}-{answer.get('checkInDate')}",
                "userId": str(user["_id"]),
                "userName": user.get("name"),
                "userEmail": user.get("email"),
                "questionId": answer.get("questionId"),
                "answer": answer.get("answer"),
                "answeredAt": answer.get("answeredAt"),
                "checkInDate": answer.get("checkInDate"),
            })
    rows.sort(key=lambda r: r["answeredAt"] or datetime.min, reverse=True)
    return rows


def daily_checkin_submissions(db: Database, query: SubmissionQuery, page: Page) -> dict:
    user_filter: Dict[str, Any] = {"active": True}
    if query.user_id is not None:
        user_filter["_id"] = query.user_id
    users = db["user"].find(user_filter, {"name": 1, "email": 1, "dailyCheckinAnswers": 1})

    rows = flatten(users, query)
    current = rows[page.skip:page.skip + page.limit]

    questions = question_lookup(db, "dailycheckinquestion", (r["questionId"] for r in current))
    for row in current:
        question = questions.get(str(row["questionId"]), {})
        row["questionTitle"] = question.get("title", MISSING_TITLE)
        row["questionType"] = question.get("type", MISSING_TYPE)

    return {"submissions": current, "pagination": page.envelope(len(rows))}
