from datetime import date, datetime

import pytest

from conftest import make_user
from database import create_document
from query import Page
from submissions import MISSING_TITLE, MISSING_TYPE, SubmissionQuery, daily_checkin_submissions, flatten


def answer(question_id, value, answered_at, check_in):
    return {"questionId": question_id, "answer": value, "answeredAt": answered_at, "checkInDate": check_in}


@pytest.fixture
def seeded(db):
    mood = create_document(db, "dailycheckinquestion", {"title": "Mood", "type": "single", "active": True})
    sleep = create_document(db, "dailycheckinquestion", {"title": "Sleep", "type": "scale", "active": True})
    mood_id, sleep_id = str(mood["_id"]), str(sleep["_id"])
    may1, may2 = datetime(2024, 5, 1), datetime(2024, 5, 2)
    maya = make_user(db, dailyCheckinAnswers=[
        answer(mood_id, "good", datetime(2024, 5, 1, 8), may1),
        answer(sleep_id, 7, datetime(2024, 5, 1, 8, 1), may1),
        answer(mood_id, "low", datetime(2024, 5, 2, 21), may2),
    ])
    omar = make_user(db, email="omar@reclaimapp.com", name="Omar", dailyCheckinAnswers=[
        answer(mood_id, "good", datetime(2024, 5, 2, 7), may2),
        answer("64b7f0c2a1d3e4f5a6b7c8d9", "gone", datetime(2024, 5, 2, 7, 5), may2),
    ])
    make_user(db, email="ina@reclaimapp.com", name="Ina", active=False, dailyCheckinAnswers=[
        answer(mood_id, "low", datetime(2024, 5, 3, 7), datetime(2024, 5, 3)),
    ])
    return {"mood": mood_id, "sleep": sleep_id, "maya": maya, "omar": omar}


def test_flatten_sorts_by_answer_time(db, seeded):
    rows = flatten(db["user"].find({"active": True}), SubmissionQuery())
    assert [r["answer"] for r in rows] == ["low", "gone", "good", 7, "good"]
    assert rows[0]["userName"] == "Maya"


def test_inactive_users_are_excluded(db, seeded):
    result = daily_checkin_submissions(db, SubmissionQuery(), Page(1, 50))
    assert result["pagination"]["total"] == 5
    assert all(r["userName"] != "Ina" for r in result["submissions"])


def test_filters_apply_after_flattening(db, seeded):
    by_date = daily_checkin_submissions(db, SubmissionQuery(check_in_date=date(2024, 5, 2)), Page(1, 50))
    assert by_date["pagination"]["total"] == 3

    by_question = daily_checkin_submissions(db, SubmissionQuery(question_id=seeded["mood"]), Page(1, 50))
    assert [r["answer"] for r in by_question["submissions"]] == ["low", "good", "good"]

    by_user = daily_checkin_submissions(db, SubmissionQuery(user_id=seeded["omar"]["_id"]), Page(1, 50))
    assert {r["userEmail"] for r in by_user["submissions"]} == {"omar@reclaimapp.com"}


def test_pagination_slices_flattened_rows(db, seeded):
    result = daily_checkin_submissions(db, SubmissionQuery(), Page(2, 2))
    assert [r["answer"] for r in result["submissions"]] == ["good", 7]
    assert result["pagination"] == {"page": 2, "limit": 2, "total": 5, "pages": 3}


def test_only_current_page_is_enriched(db, seeded):
    result = daily_checkin_submissions(db, SubmissionQuery(), Page(1, 2))
    assert [(r["questionTitle"], r["questionType"]) for r in result["submissions"]] == [
        ("Mood", "single"), (MISSING_TITLE, MISSING_TYPE),
    ]


def test_page_past_the_end_is_empty(db, seeded):
    result = daily_checkin_submissions(db, SubmissionQuery(), Page(9, 2))
    assert result["submissions"] == []
    assert result["pagination"]["total"] == 5


def test_submissions_route(client, admin_headers, seeded):
    res = client.get("/api/admin/daily-checkin-submissions?date=2024-05-01", headers=admin_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["pagination"] == {"page": 1, "limit": 50, "total": 2, "pages": 1}
    assert [r["questionTitle"] for r in body["submissions"]] == ["Sleep", "Mood"]


def test_submissions_route_rejects_bad_user_id(client, admin_headers):
    res = client.get("/api/admin/daily-checkin-submissions?userId=abc", headers=admin_headers)
    assert res.status_code == 400
