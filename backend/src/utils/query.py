"""Utilities for turning path parameters into MongoDB queries."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING

MAX_LIST_LIMIT = 100

TOP_RANKED_LIMIT = 3
TOP_RANKED_SORT: Tuple[str, int] = ("price", DESCENDING)

_INTEGER_RE = re.compile(r"^-?\d+$")
_NUMERIC_RE = re.compile(r"^\d+(\.\d+)?$")


class QueryParamError(ValueError):
    """Raised when a limit, sort or identifier path parameter is invalid."""


@dataclass
class ListQuery:
    limit: int
    sort: Tuple[str, int]


def _parse_int_arg(
    raw_value: str | None,
    *,
    name: str,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    if raw_value in (None, ""):
        raise QueryParamError(f"{name} is required.")
    try:
        value = int(raw_value)
    except (TypeError, ValueError):
        raise QueryParamError(f"{name} must be an integer.") from None

    if minimum is not None and value < minimum:
        raise QueryParamError(f"{name} must be ≥ {minimum}.")
    if maximum is not None and value > maximum:
        raise QueryParamError(f"{name} must be ≤ {maximum}.")

    return value


def sort_direction(raw_direction: str | None) -> int:
    """Only the literal ``"desc"`` sorts descending."""

    return DESCENDING if raw_direction == "desc" else ASCENDING


def _parse_sort_field(raw_field: str | None) -> str:
    field = (raw_field or "").strip()
    if not field:
        raise QueryParamError("sort field is required.")
    if field.startswith("$") or "\x00" in field:
        raise QueryParamError("sort field must be a document field name.")
    return field


def parse_list_query(
    raw_max: str | None,
    raw_sort_field: str | None,
    raw_direction: str | None,
    *,
    max_limit: int = MAX_LIST_LIMIT,
) -> ListQuery:
    """Parse the ``max``/``sortAspect``/``sortAscDesc`` path segments."""

    limit = _parse_int_arg(raw_max, name="max", minimum=1, maximum=max_limit)
    field = _parse_sort_field(raw_sort_field)
    return ListQuery(limit=limit, sort=(field, sort_direction(raw_direction)))


def parse_lesson_id(raw_id: str | None) -> int:
    return _parse_int_arg(raw_id, name="Lesson id")


def coerce_key(raw_key: str) -> int | str:
    """Integer literals become ints; anything else stays a string."""

    if _INTEGER_RE.match(raw_key):
        return int(raw_key)
    return raw_key


def candidate_document_filters(identifier: str) -> List[Dict[str, Any]]:
    """Lookups tried for ``GET /<collection>/<identifier>``, in order.

    The business key ``id`` is tried for integer literals, then the store
    identity ``_id`` for valid ObjectIds.
    """

    filters: List[Dict[str, Any]] = []
    if _INTEGER_RE.match(identifier):
        filters.append({"id": int(identifier)})
    try:
        filters.append({"_id": ObjectId(identifier)})
    except (InvalidId, TypeError):
        pass

    if not filters:
        raise QueryParamError(
            "Identifier must be an integer id or a 24-character ObjectId."
        )
    return filters


def _numeric_value(term: str) -> int | float:
    number = float(term)
    return int(number) if number.is_integer() else number


def build_search_filter(term: str) -> Dict[str, Any]:
    """Case-insensitive substring match on subject/location, plus numeric
    equality on price/spaces when the term is a number."""

    pattern = re.escape(term)
    conditions: List[Dict[str, Any]] = [
        {"subject": {"$regex": pattern, "$options": "i"}},
        {"location": {"$regex": pattern, "$options": "i"}},
    ]

    if _NUMERIC_RE.match(term):
        value = _numeric_value(term)
        conditions.append({"price": value})
        conditions.append({"spaces": value})

    return {"$or": conditions}


__all__ = [
    "MAX_LIST_LIMIT",
    "TOP_RANKED_LIMIT",
    "TOP_RANKED_SORT",
    "ListQuery",
    "QueryParamError",
    "build_search_filter",
    "candidate_document_filters",
    "coerce_key",
    "parse_lesson_id",
    "parse_list_query",
    "sort_direction",
]
