"""
Typed answers for onboarding and daily check-in questions.

An answer's shape is decided by the question's declared type:

    text, single         -> string
    multi, days          -> list of strings
    number, scale        -> number
    date                 -> datetime (ISO date or timestamp on the wire)

``single`` and ``multi`` answers must use option values when the question
defines options.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List

from pydantic import TypeAdapter, ValidationError

from schemas import UtcDatetime

TEXT_TYPES = ("text", "single")
LIST_TYPES = ("multi", "days")
NUMBER_TYPES = ("number", "scale")
DATE_TYPES = ("date",)

_date_adapter = TypeAdapter(UtcDatetime)


class AnswerError(ValueError):
    pass


def coerce_answer(question: Dict[str, Any], value: Any) -> Any:
    qtype = question.get("type")
    title = question.get("title") or str(question.get("_id"))
    option_values = {o.get("value") for o in question.get("options") or []}

    if qtype in TEXT_TYPES:
        if not isinstance(value, str) or not value.strip():
            raise AnswerError(f"Answer to '{title}' must be a non-empty string")
        if qtype == "single" and option_values and value not in option_values:
            raise AnswerError(f"Answer to '{title}' is not one of its options")
        return value

    if qtype in LIST_TYPES:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise AnswerError(f"Answer to '{title}' must be a list of strings")
        if qtype == "multi" and option_values and not set(value) <= option_values:
            raise AnswerError(f"Answer to '{title}' contains unknown options")
        return value

    if qtype in NUMBER_TYPES:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise AnswerError(f"Answer to '{title}' must be a number")
        return value

    if qtype in DATE_TYPES:
        if isinstance(value, datetime):
            return value
        try:
            return _date_adapter.validate_python(value)
        except ValidationError:
            raise AnswerError(f"Answer to '{title}' must be a date")

    raise AnswerError(f"Question '{title}' has unsupported type {qtype!r}")


def build_answers(questions: Iterable[Dict[str, Any]], submitted: List[Dict[str, Any]],
                  answered_at: datetime, **extra) -> List[Dict[str, Any]]:
    """Validate every submitted answer against its question; all or nothing."""
    by_id = {str(q["_id"]): q for q in questions}
    rows = []
    for item in submitted:
        question = by_id[str(item["questionId"])]
        rows.append({
            "questionId": str(item["questionId"]),
            "answer": coerce_answer(question, item.get("answer")),
            "answeredAt": answered_at,
            **extra,
        })
    return rows
