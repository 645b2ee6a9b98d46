"""
Resource query building.

Route handlers turn raw query-string values into a typed filter object
(one per resource, below) and hand it to ``run_list``. The filter objects
compile to a MongoDB filter document only at that boundary.

Pagination comes in two flavours:

- ``Page.optional``: dual mode. Only when both ``page`` and ``limit`` are
  supplied is the result sliced and a ``pagination`` envelope returned;
  otherwise the complete result set is returned with no envelope key.
- ``Page.with_default``: always paginated, falling back to page 1 and a
  default limit.
"""
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Tuple

from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection

from database import serialize
from errors import ApiError

SortSpec = List[Tuple[str, int]]


def parse_flag(raw: Optional[str]) -> Optional[bool]:
    """'true' -> True, any other non-empty value -> False, absent/empty -> no filter."""
    if raw is None or raw == "":
        return None
    return raw == "true"


def contains(term: str) -> Dict[str, str]:
    return {"$regex": re.escape(term), "$options": "i"}


@dataclass
class Page:
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def envelope(self, total: int) -> Dict[str, int]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": total,
            "pages": math.ceil(total / self.limit),
        }

    @classmethod
    def optional(cls, page: Optional[int], limit: Optional[int]) -> Optional["Page"]:
        if page is None or limit is None:
            return None
        return cls.checked(page, limit)

    @classmethod
    def with_default(cls, page: Optional[int], limit: Optional[int], default_limit: int = 20) -> "Page":
        return cls.checked(page if page is not None else 1, limit if limit is not None else default_limit)

    @classmethod
    def checked(cls, page: int, limit: int) -> "Page":
        if page < 1 or limit < 1:
            raise ApiError(400, "page and limit must be positive integers")
        return cls(page, limit)


class QueryBuilder:
    """Accumulates filter clauses; blank inputs add nothing."""

    def __init__(self, base: Optional[dict] = None):
        self._query: Dict[str, Any] = dict(base or {})

    def search(self, term: Optional[str], fields: Sequence[str]) -> "QueryBuilder":
        if term:
            self._query["$or"] = [{f: contains(term)} for f in fields]
        return self

    def flag(self, name: str, value: Optional[bool]) -> "QueryBuilder":
        if value is not None:
            self._query[name] = value
        return self

    def equals(self, name: str, value: Any, allowed: Optional[Sequence[Any]] = None) -> "QueryBuilder":
        if value is None or value == "":
            return self
        if allowed is not None and value not in allowed:
            return self
        self._query[name] = value
        return self

    def tag(self, value: Optional[str], name: str = "tags") -> "QueryBuilder":
        if value:
            self._query[name] = {"$in": [value]}
        return self

    def substring(self, name: str, value: Optional[str]) -> "QueryBuilder":
        if value:
            self._query[name] = contains(value)
        return self

    def window(self, name: str, start: datetime, end: datetime, include_unscheduled: bool = True) -> "QueryBuilder":
        in_window = {name: {"$gte": start, "$lt": end}}
        if include_unscheduled:
            self._query["$or"] = [in_window, {name: None}]
        else:
            self._query.update(in_window)
        return self

    def build(self) -> Dict[str, Any]:
        return dict(self._query)


# -----------------------------
# Current-period windows (UTC)
# -----------------------------

def day_window(now: datetime) -> Tuple[datetime, datetime]:
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def week_window(now: datetime) -> Tuple[datetime, datetime]:
    """Sunday 00:00 through the following Sunday 00:00."""
    day_start, _ = day_window(now)
    start = day_start - timedelta(days=(now.weekday() + 1) % 7)
    return start, start + timedelta(days=7)


def run_list(collection: Collection, query: Dict[str, Any], sort: SortSpec,
             page: Optional[Page], projection: Optional[dict] = None) -> "ListResult":
    """Run a list query; the pagination envelope is None unless ``page`` was given."""
    cursor = collection.find(query, projection).sort(sort)
    if page is None:
        return ListResult(list(cursor))
    total = collection.count_documents(query)
    items = list(cursor.skip(page.skip).limit(page.limit))
    return ListResult(items, page.envelope(total))


# -----------------------------
# Per-resource filters
# -----------------------------

NEWEST_FIRST: SortSpec = [("createdAt", DESCENDING)]
QUESTION_ORDER: SortSpec = [("order", ASCENDING), ("createdAt", ASCENDING)]

RESOURCE_CATEGORIES = ("journey", "motivation", "lesson")
MEDIA_TYPES = ("video", "audio")


@dataclass
class AffirmationFilter:
    search: Optional[str] = None
    archived: Optional[bool] = None

    sort: ClassVar[SortSpec] = NEWEST_FIRST

    def compile(self) -> dict:
        return QueryBuilder().search(self.search, ("title", "text")).flag("archived", self.archived).build()


@dataclass
class ScheduledAffirmationFilter:
    """Daily and weekly affirmations share this shape."""
    search: Optional[str] = None
    active: Optional[bool] = None
    archived: Optional[bool] = None

    sort: ClassVar[SortSpec] = NEWEST_FIRST

    def compile(self) -> dict:
        return (QueryBuilder()
                .search(self.search, ("title", "text"))
                .flag("active", self.active)
                .flag("archived", self.archived)
                .build())


@dataclass
class CurrentAffirmationFilter:
    """Active, unarchived, scheduled inside the window or never scheduled."""
    start: datetime
    end: datetime

    sort: ClassVar[SortSpec] = [("scheduledFor", DESCENDING), ("createdAt", DESCENDING)]

    def compile(self) -> dict:
        return (QueryBuilder({"active": True, "archived": False})
                .window("scheduledFor", self.start, self.end)
                .build())


@dataclass
class QuoteFilter:
    search: Optional[str] = None
    active: Optional[bool] = None
    author: Optional[str] = None
    tag: Optional[str] = None

    sort: ClassVar[SortSpec] = NEWEST_FIRST

    def compile(self) -> dict:
        return (QueryBuilder()
                .search(self.search, ("text", "author"))
                .flag("active", self.active)
                .substring("author", self.author)
                .tag(self.tag)
                .build())


@dataclass
class MediaFilter:
    search: Optional[str] = None
    type: Optional[str] = None
    tag: Optional[str] = None

    sort: ClassVar[SortSpec] = NEWEST_FIRST

    def compile(self) -> dict:
        return (QueryBuilder()
                .substring("title", self.search)
                .equals("type", self.type, MEDIA_TYPES)
                .tag(self.tag)
                .build())


@dataclass
class ResourceFilter:
    search: Optional[str] = None
    category: Optional[str] = None
    active: Optional[bool] = None
    archived: Optional[bool] = None

    sort: ClassVar[SortSpec] = [("category", ASCENDING), ("order", ASCENDING), ("createdAt", DESCENDING)]

    def compile(self) -> dict:
        return (QueryBuilder()
                .search(self.search, ("title", "description", "content"))
                .equals("category", self.category, RESOURCE_CATEGORIES)
                .flag("active", self.active)
                .flag("archived", self.archived)
                .build())


@dataclass
class AppResourceFilter:
    category: Optional[str] = None

    sort: ClassVar[SortSpec] = [("order", ASCENDING), ("createdAt", DESCENDING)]

    def compile(self) -> dict:
        return (QueryBuilder({"active": True, "archived": False})
                .equals("category", self.category, RESOURCE_CATEGORIES)
                .build())


@dataclass
class LectureFilter:
    search: Optional[str] = None
    published: Optional[bool] = None
    archived: Optional[bool] = None

    sort: ClassVar[SortSpec] = [("weekOf", DESCENDING)]

    def compile(self) -> dict:
        return (QueryBuilder()
                .search(self.search, ("title", "affirmationText", "reflectionText"))
                .flag("published", self.published)
                .flag("archived", self.archived)
                .build())


@dataclass
class QuestionFilter:
    search: Optional[str] = None
    active: Optional[bool] = None
    type: Optional[str] = None

    sort: ClassVar[SortSpec] = QUESTION_ORDER

    def compile(self) -> dict:
        return (QueryBuilder()
                .search(self.search, ("title", "description"))
                .flag("active", self.active)
                .equals("type", self.type)
                .build())


@dataclass
class PostFilter:
    search: Optional[str] = None
    status: Optional[str] = None
    published: Optional[bool] = None
    flagged: Optional[bool] = None

    sort: ClassVar[SortSpec] = NEWEST_FIRST

    def compile(self) -> dict:
        return (QueryBuilder({"deletedAt": None})
                .search(self.search, ("title", "content"))
                .equals("status", self.status)
                .flag("published", self.published)
                .flag("flagged", self.flagged)
                .build())


@dataclass
class UserFilter:
    search: Optional[str] = None
    active: Optional[bool] = None

    sort: ClassVar[SortSpec] = NEWEST_FIRST

    def compile(self) -> dict:
        return QueryBuilder().search(self.search, ("name", "email")).flag("active", self.active).build()


@dataclass
class NotificationFilter:
    search: Optional[str] = None
    status: Optional[str] = None
    target: Optional[str] = None

    sort: ClassVar[SortSpec] = NEWEST_FIRST

    def compile(self) -> dict:
        return (QueryBuilder()
                .search(self.search, ("title", "message"))
                .equals("status", self.status)
                .equals("target", self.target)
                .build())


@dataclass
class ListResult:
    items: List[dict] = field(default_factory=list)
    pagination: Optional[dict] = None

    def envelope(self, key: str) -> dict:
        body = {"success": True, key: serialize(self.items)}
        if self.pagination is not None:
            body["pagination"] = self.pagination
        return body
