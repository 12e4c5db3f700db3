"""Routes bound to the fixed ``lesson`` collection."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from pymongo.errors import PyMongoError

from ..db import (
    LESSON_COLLECTION,
    ORDER_COLLECTION,
    StoreNotReadyError,
    current_store,
    serialize_document,
)
from ..inventory import (
    LessonNotFoundError,
    NoSpacesLeftError,
    adjust_spaces,
    reserve_seat,
    set_spaces,
    validate_absolute_spaces,
    validate_order_fields,
    validate_spaces_delta,
)
from ..utils.query import QueryParamError, build_search_filter, parse_lesson_id
from ..utils.responses import handle_db_error, handle_not_ready, json_error

lessons_bp = Blueprint("lessons", __name__)

logger = logging.getLogger(__name__)


@lessons_bp.get("/lessons")
def list_lessons():
    try:
        lessons = current_store().collection(LESSON_COLLECTION)
        results = [serialize_document(doc) for doc in lessons.find({})]
    except StoreNotReadyError as exc:
        return handle_not_ready(exc)
    except PyMongoError as exc:
        return handle_db_error("Error fetching lessons", exc)

    logger.info("Retrieved %d lesson(s)", len(results))
    return jsonify(results)


@lessons_bp.get("/search/<query>")
def search_lessons(query: str):
    search_filter = build_search_filter(query)
    try:
        lessons = current_store().collection(LESSON_COLLECTION)
        results = [serialize_document(doc) for doc in lessons.find(search_filter)]
    except StoreNotReadyError as exc:
        return handle_not_ready(exc)
    except PyMongoError as exc:
        return handle_db_error("Error performing search", exc)

    logger.info("Search for %r matched %d lesson(s)", query, len(results))
    return jsonify(results)


@lessons_bp.put("/lesson/<lesson_id>/spaces")
def update_lesson_spaces(lesson_id: str):
    try:
        lesson_key = parse_lesson_id(lesson_id)
    except QueryParamError as exc:
        return json_error(str(exc), 400)

    spaces, error = validate_absolute_spaces(request.get_json(silent=True))
    if error:
        return json_error(error, 400)

    logger.info("Setting lesson %s spaces to %s", lesson_key, spaces)
    try:
        lessons = current_store().collection(LESSON_COLLECTION)
        updated = set_spaces(lessons, lesson_key, spaces)
    except StoreNotReadyError as exc:
        return handle_not_ready(exc)
    except PyMongoError as exc:
        return handle_db_error("Error updating lesson spaces", exc)

    if updated is None:
        return json_error("Lesson not found.", 404)
    return jsonify(serialize_document(updated))


@lessons_bp.put("/lesson/<lesson_id>")
def adjust_lesson_spaces(lesson_id: str):
    try:
        lesson_key = parse_lesson_id(lesson_id)
    except QueryParamError as exc:
        return json_error(str(exc), 400)

    delta, error = validate_spaces_delta(request.get_json(silent=True))
    if error:
        return json_error(error, 400)

    logger.info("Adjusting lesson %s spaces by %+d", lesson_key, delta)
    try:
        lessons = current_store().collection(LESSON_COLLECTION)
        updated = adjust_spaces(lessons, lesson_key, delta)
    except StoreNotReadyError as exc:
        return handle_not_ready(exc)
    except PyMongoError as exc:
        return handle_db_error("Error updating lesson spaces", exc)

    if updated is None:
        return json_error("Lesson not found.", 404)
    return jsonify(serialize_document(updated))


@lessons_bp.post("/lesson/<lesson_id>/reserve")
def reserve_lesson(lesson_id: str):
    try:
        lesson_key = parse_lesson_id(lesson_id)
    except QueryParamError as exc:
        return json_error(str(exc), 400)

    extra_fields = request.get_json(silent=True) or {}
    if not isinstance(extra_fields, dict):
        return json_error("Request body must be a JSON object.", 400)
    field_errors = validate_order_fields(extra_fields)
    if field_errors:
        return json_error("Invalid field names", 400, field_errors)

    try:
        store = current_store()
        reservation = reserve_seat(
            store.collection(LESSON_COLLECTION),
            store.collection(ORDER_COLLECTION),
            lesson_key,
            extra_fields,
        )
    except StoreNotReadyError as exc:
        return handle_not_ready(exc)
    except LessonNotFoundError:
        return json_error("Lesson not found.", 404)
    except NoSpacesLeftError:
        logger.info("Lesson %s is full", lesson_key)
        return json_error("No spaces left for this lesson.", 409)
    except PyMongoError as exc:
        return handle_db_error("Error reserving lesson", exc)

    cart_line = reservation.cart_line
    logger.info(
        "Reserved a seat on lesson %s (quantity now %s)",
        lesson_key,
        cart_line.order.get("quantity"),
    )
    payload = {
        "lesson": serialize_document(reservation.lesson),
        "order": serialize_document(cart_line.order),
    }
    return jsonify(payload), 201 if cart_line.created else 200


__all__ = ["lessons_bp"]
