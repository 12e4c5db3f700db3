"""Order creation endpoint."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from pymongo.errors import PyMongoError

from ..db import ORDER_COLLECTION, StoreNotReadyError, current_store
from ..inventory import (
    add_cart_line,
    insert_checkout_order,
    validate_checkout_payload,
    validate_order_fields,
)
from ..utils.responses import handle_db_error, handle_not_ready, json_error

orders_bp = Blueprint("orders", __name__)

logger = logging.getLogger(__name__)


def _save_checkout(order):
    cleaned, errors = validate_checkout_payload(order)
    if errors:
        return json_error("Missing or invalid required fields", 400, errors)

    try:
        orders = current_store().collection(ORDER_COLLECTION)
        inserted_id = insert_checkout_order(orders, cleaned)
    except StoreNotReadyError as exc:
        return handle_not_ready(exc)
    except PyMongoError as exc:
        return handle_db_error("Error saving order", exc, "Failed to save order")

    logger.info(
        "Saved order %s for %d lesson(s)", inserted_id, len(cleaned["lessonIDs"])
    )
    return (
        jsonify({"message": "Order saved successfully", "orderId": str(inserted_id)}),
        201,
    )


def _save_cart_line(order):
    lesson_id = order.get("lessonID")
    if lesson_id in (None, "") or isinstance(lesson_id, (bool, list, dict)):
        return json_error("lessonID is required.", 400, {"lessonID": "lessonID is required."})

    try:
        orders = current_store().collection(ORDER_COLLECTION)
        cart_line = add_cart_line(orders, lesson_id, order)
    except StoreNotReadyError as exc:
        return handle_not_ready(exc)
    except PyMongoError as exc:
        return handle_db_error("Error saving order", exc, "Failed to save order")

    quantity = cart_line.order.get("quantity")
    lesson_id = cart_line.order.get("lessonID", lesson_id)
    if cart_line.created:
        logger.info("Created order line for lessonID %s", lesson_id)
        message, status = "Order saved successfully", 201
    else:
        logger.info("Incremented order line for lessonID %s to %s", lesson_id, quantity)
        message, status = "Order quantity updated", 200

    payload = {
        "message": message,
        "orderId": str(cart_line.order.get("_id", "")),
        "lessonID": lesson_id,
        "quantity": quantity,
    }
    return jsonify(payload), status


@orders_bp.post("/addOrder")
def add_order():
    """Create a checkout order (``lessonIDs``) or bump a cart line (``lessonID``)."""

    order = request.get_json(silent=True)
    if not isinstance(order, dict):
        return json_error("Request body must be a JSON object.", 400)

    field_errors = validate_order_fields(order)
    if field_errors:
        return json_error("Invalid field names", 400, field_errors)

    if "lessonIDs" in order:
        return _save_checkout(order)
    if "lessonID" in order:
        return _save_cart_line(order)
    return json_error(
        "Missing or invalid required fields",
        400,
        {"lessonID": "Provide lessonID or lessonIDs."},
    )


__all__ = ["orders_bp"]
