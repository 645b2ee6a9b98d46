import math
from datetime import datetime, timedelta

import pytest

from database import create_document
from errors import ApiError
from query import (CurrentAffirmationFilter, Page, PostFilter, QueryBuilder, QuoteFilter, ResourceFilter, contains,
                   day_window, parse_flag, run_list, week_window)


@pytest.mark.parametrize("raw,expected", [("true", True), ("false", False), ("yes", False), ("", None), (None, None)])
def test_parse_flag(raw, expected):
    assert parse_flag(raw) is expected


def test_contains_escapes_user_input():
    assert contains("a.b(") == {"$regex": r"a\.b\(", "$options": "i"}


@pytest.mark.parametrize("total,limit", [(0, 5), (1, 5), (5, 5), (6, 5), (101, 20)])
def test_envelope_pages(total, limit):
    envelope = Page(1, limit).envelope(total)
    assert envelope == {"page": 1, "limit": limit, "total": total, "pages": math.ceil(total / limit)}


def test_page_optional_needs_both_values():
    assert Page.optional(None, None) is None
    assert Page.optional(1, None) is None
    assert Page.optional(None, 10) is None
    assert Page.optional(2, 10) == Page(2, 10)
    assert Page(3, 10).skip == 20


def test_page_with_default():
    assert Page.with_default(None, None) == Page(1, 20)
    assert Page.with_default(2, None, default_limit=50) == Page(2, 50)


@pytest.mark.parametrize("page,limit", [(0, 10), (1, 0), (-1, 5)])
def test_page_rejects_non_positive_values(page, limit):
    with pytest.raises(ApiError) as exc:
        Page.checked(page, limit)
    assert exc.value.status_code == 400


def test_builder_skips_blank_inputs():
    query = (QueryBuilder()
             .search("", ("title",))
             .flag("active", None)
             .equals("category", "")
             .tag(None)
             .substring("author", None)
             .build())
    assert query == {}


def test_builder_ignores_values_outside_allowed_set():
    assert QueryBuilder().equals("category", "poetry", ("journey", "lesson")).build() == {}
    assert QueryBuilder().equals("category", "lesson", ("journey", "lesson")).build() == {"category": "lesson"}


def test_quote_filter_compiles_every_option():
    query = QuoteFilter(search="calm", active=False, author="rumi", tag="peace").compile()
    assert query == {
        "$or": [{"text": contains("calm")}, {"author": contains("calm")}],
        "active": False,
        "author": contains("rumi"),
        "tags": {"$in": ["peace"]},
    }


def test_post_filter_excludes_deleted():
    assert PostFilter().compile() == {"deletedAt": None}


def test_day_window():
    start, end = day_window(datetime(2024, 5, 15, 13, 45))
    assert start == datetime(2024, 5, 15)
    assert end == datetime(2024, 5, 16)


@pytest.mark.parametrize("now,start", [
    (datetime(2024, 5, 15, 9), datetime(2024, 5, 12)),   # Wednesday
    (datetime(2024, 5, 12, 0, 1), datetime(2024, 5, 12)),  # Sunday
    (datetime(2024, 5, 18, 23, 59), datetime(2024, 5, 12)),  # Saturday
])
def test_week_window_starts_on_sunday(now, start):
    assert week_window(now) == (start, start + timedelta(days=7))


def seed_resources(db, count):
    for i in range(count):
        create_document(db, "resource", {
            "title": f"Resource {i}", "content": "body", "category": "lesson", "order": i,
            "active": True, "archived": False,
        })


def test_run_list_paginates_when_page_given(db):
    seed_resources(db, 5)
    f = ResourceFilter()
    result = run_list(db["resource"], f.compile(), f.sort, Page(2, 2))
    assert [r["order"] for r in result.items] == [2, 3]
    assert result.pagination == {"page": 2, "limit": 2, "total": 5, "pages": 3}


def test_run_list_returns_everything_without_page(db):
    seed_resources(db, 5)
    f = ResourceFilter()
    body = run_list(db["resource"], f.compile(), f.sort, None).envelope("resources")
    assert len(body["resources"]) == 5
    assert "pagination" not in body
    assert all(isinstance(r["_id"], str) for r in body["resources"])


def test_current_affirmation_prefers_latest_schedule(db):
    now = datetime(2024, 5, 15, 10)
    start, end = day_window(now)
    base = {"text": "x", "active": True, "archived": False}
    create_document(db, "dailyaffirmation", {**base, "title": "always", "scheduledFor": None})
    create_document(db, "dailyaffirmation", {**base, "title": "morning", "scheduledFor": datetime(2024, 5, 15, 6)})
    create_document(db, "dailyaffirmation", {**base, "title": "tomorrow", "scheduledFor": datetime(2024, 5, 16, 6)})
    create_document(db, "dailyaffirmation", {**base, "title": "hidden", "scheduledFor": None, "archived": True})
    f = CurrentAffirmationFilter(start, end)
    titles = [a["title"] for a in run_list(db["dailyaffirmation"], f.compile(), f.sort, None).items]
    assert titles == ["morning", "always"]
