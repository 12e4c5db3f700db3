"""Seat and order bookkeeping on top of the lesson and order collections."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from .utils.query import coerce_key

logger = logging.getLogger(__name__)

ALLOWED_SPACE_DELTAS = (1, -1)

CHECKOUT_REQUIRED_FIELDS: Tuple[str, ...] = (
    "firstName",
    "lastName",
    "address",
    "city",
    "zip",
    "state",
    "phoneNumber",
    "method",
)


class LessonNotFoundError(LookupError):
    """No lesson carries the requested business key."""


class NoSpacesLeftError(RuntimeError):
    """The lesson exists but has no seats to reserve."""


@dataclass
class CartLine:
    order: Dict[str, Any]
    created: bool


@dataclass
class Reservation:
    lesson: Dict[str, Any]
    cart_line: CartLine


def _is_number(value: Any) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    return math.isfinite(value)


def validate_absolute_spaces(payload: Mapping[str, Any] | None) -> Tuple[Any, str | None]:
    if not isinstance(payload, Mapping):
        return None, "Request body must be JSON."
    spaces = payload.get("spaces")
    if not _is_number(spaces):
        return None, "Invalid spaces value."
    return spaces, None


def validate_spaces_delta(payload: Mapping[str, Any] | None) -> Tuple[Any, str | None]:
    if not isinstance(payload, Mapping):
        return None, "Request body must be JSON."
    delta = payload.get("spaces")
    if not isinstance(delta, int) or isinstance(delta, bool) or delta not in ALLOWED_SPACE_DELTAS:
        return None, "spaces must be 1 or -1."
    return delta, None


def validate_checkout_payload(
    payload: Mapping[str, Any],
) -> Tuple[Dict[str, Any], Dict[str, str]]:
    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}

    for field in CHECKOUT_REQUIRED_FIELDS:
        value = payload.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            errors[field] = f"{field} is required."
        else:
            cleaned[field] = value

    lesson_ids = payload.get("lessonIDs")
    if not isinstance(lesson_ids, list):
        errors["lessonIDs"] = "lessonIDs must be an array."
    else:
        cleaned["lessonIDs"] = lesson_ids

    cleaned["sendGift"] = payload.get("sendGift", False)
    return cleaned, errors


def _invalid_field_names(value: Any, prefix: str = "") -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if isinstance(value, dict):
        for key, nested in value.items():
            path = f"{prefix}{key}"
            if not isinstance(key, str) or key.startswith("$") or "." in key:
                errors[path] = "Field names cannot start with '$' or contain '.'."
            else:
                errors.update(_invalid_field_names(nested, path + "."))
    elif isinstance(value, list):
        for index, item in enumerate(value):
            errors.update(_invalid_field_names(item, f"{prefix}{index}."))
    return errors


def validate_order_fields(payload: Mapping[str, Any]) -> Dict[str, str]:
    """Report field names MongoDB would treat as operators or paths."""

    return _invalid_field_names(dict(payload))


def normalize_lesson_key(lesson_id: Any) -> Any:
    """Integer strings become ints so cart lines and quantity lookups agree."""

    if isinstance(lesson_id, str):
        return coerce_key(lesson_id.strip())
    return lesson_id


def set_spaces(lessons: Collection, lesson_id: int, spaces) -> Dict[str, Any] | None:
    """Set ``spaces`` outright; ``None`` when no lesson matched.

    Setting the current value again still returns the document.
    """

    result = lessons.update_one({"id": lesson_id}, {"$set": {"spaces": spaces}})
    if result.matched_count == 0:
        return None
    return lessons.find_one({"id": lesson_id})


def adjust_spaces(lessons: Collection, lesson_id: int, delta: int) -> Dict[str, Any] | None:
    return lessons.find_one_and_update(
        {"id": lesson_id},
        {"$inc": {"spaces": delta}},
        return_document=ReturnDocument.AFTER,
    )


def add_cart_line(
    orders: Collection, lesson_id: Any, extra_fields: Mapping[str, Any] | None = None
) -> CartLine:
    """Insert a cart line with quantity 1, or bump the existing one by 1.

    Extra fields are only written when the line is first created.
    """

    lesson_id = normalize_lesson_key(lesson_id)
    on_insert = {
        key: value
        for key, value in (extra_fields or {}).items()
        if key not in ("_id", "lessonID", "quantity")
    }
    update: Dict[str, Any] = {"$inc": {"quantity": 1}}
    if on_insert:
        update["$setOnInsert"] = on_insert

    try:
        result = orders.update_one({"lessonID": lesson_id}, update, upsert=True)
    except DuplicateKeyError:
        # Another request inserted the line after this upsert missed it.
        result = orders.update_one({"lessonID": lesson_id}, {"$inc": {"quantity": 1}})
    created = result.upserted_id is not None
    if created:
        order = orders.find_one({"_id": result.upserted_id})
    else:
        order = orders.find_one({"lessonID": lesson_id})
    return CartLine(order=order or {}, created=created)


def insert_checkout_order(orders: Collection, cleaned: Mapping[str, Any]):
    result = orders.insert_one(dict(cleaned))
    return result.inserted_id


def reserve_seat(
    lessons: Collection,
    orders: Collection,
    lesson_id: int,
    extra_fields: Mapping[str, Any] | None = None,
) -> Reservation:
    """Take one seat from a lesson and record it on the lesson's cart line.

    The two writes are separate store operations. If recording the order
    fails the seat is handed back before the error propagates.
    """

    lesson = lessons.find_one_and_update(
        {"id": lesson_id, "spaces": {"$gte": 1}},
        {"$inc": {"spaces": -1}},
        return_document=ReturnDocument.AFTER,
    )
    if lesson is None:
        if lessons.find_one({"id": lesson_id}, {"_id": 1}) is None:
            raise LessonNotFoundError(lesson_id)
        raise NoSpacesLeftError(lesson_id)

    try:
        cart_line = add_cart_line(orders, lesson_id, extra_fields)
    except PyMongoError:
        logger.warning("Order write failed for lesson %s, releasing seat", lesson_id)
        try:
            lessons.update_one({"id": lesson_id}, {"$inc": {"spaces": 1}})
        except PyMongoError:
            logger.exception("Could not release seat for lesson %s", lesson_id)
        raise

    return Reservation(lesson=lesson, cart_line=cart_line)


__all__ = [
    "ALLOWED_SPACE_DELTAS",
    "CHECKOUT_REQUIRED_FIELDS",
    "CartLine",
    "LessonNotFoundError",
    "NoSpacesLeftError",
    "Reservation",
    "add_cart_line",
    "adjust_spaces",
    "insert_checkout_order",
    "normalize_lesson_key",
    "reserve_seat",
    "set_spaces",
    "validate_absolute_spaces",
    "validate_checkout_payload",
    "validate_order_fields",
    "validate_spaces_delta",
]
