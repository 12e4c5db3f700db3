"""Shared JSON error responses for the route handlers."""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import jsonify
from pymongo.errors import PyMongoError

from ..db import StoreNotReadyError

logger = logging.getLogger(__name__)


def json_error(message: str, status: int, details: Dict[str, Any] | None = None):
    payload: Dict[str, Any] = {"error": message}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def handle_not_ready(exc: StoreNotReadyError):
    logger.warning("Rejected request: %s", exc)
    return json_error("Database not connected", 500)


def handle_db_error(action: str, exc: PyMongoError, message: str | None = None):
    logger.exception("%s due to MongoDB error", action)
    return json_error(message or f"{action}.", 500)


__all__ = ["json_error", "handle_not_ready", "handle_db_error"]
