"""Routes addressing a collection by name from the URL."""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request
from pymongo.errors import PyMongoError

from ..db import (
    StoreNotReadyError,
    UnknownCollectionError,
    current_store,
    serialize_document,
)
from ..utils.query import (
    TOP_RANKED_LIMIT,
    TOP_RANKED_SORT,
    QueryParamError,
    candidate_document_filters,
    coerce_key,
    parse_list_query,
)
from ..utils.responses import handle_db_error, handle_not_ready, json_error

collections_bp = Blueprint("collections", __name__)

logger = logging.getLogger(__name__)


@collections_bp.before_request
def resolve_collection():
    """Bind ``g.collection`` from the ``collection_name`` URL segment."""

    view_args = request.view_args or {}
    name = view_args.get("collection_name")
    if name is None:
        return None

    store = current_store()
    if not store.ready:
        return handle_not_ready(StoreNotReadyError("Database not connected"))

    try:
        g.collection = store.collection(name)
    except UnknownCollectionError as exc:
        logger.info("Rejected unknown collection %r", exc.name)
        return json_error(str(exc), 400)
    except StoreNotReadyError as exc:
        return handle_not_ready(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to prepare collection", exc)

    logger.debug("Request bound to collection %s", name)
    return None


@collections_bp.get("/<collection_name>")
def list_documents(collection_name: str):
    try:
        results = [serialize_document(doc) for doc in g.collection.find({})]
    except PyMongoError as exc:
        return handle_db_error("Error fetching documents", exc)

    logger.info("Retrieved %d document(s) from %s", len(results), collection_name)
    return jsonify(results)


@collections_bp.get("/<collection_name>/top")
def list_top_ranked(collection_name: str):
    try:
        cursor = g.collection.find({}).sort([TOP_RANKED_SORT]).limit(TOP_RANKED_LIMIT)
        results = [serialize_document(doc) for doc in cursor]
    except PyMongoError as exc:
        return handle_db_error("Error fetching documents", exc)

    logger.info("Retrieved top %d document(s) from %s", len(results), collection_name)
    return jsonify(results)


@collections_bp.get("/<collection_name>/<max_>/<sort_aspect>/<sort_asc_desc>")
def list_sorted(collection_name: str, max_: str, sort_aspect: str, sort_asc_desc: str):
    try:
        list_query = parse_list_query(max_, sort_aspect, sort_asc_desc)
    except QueryParamError as exc:
        return json_error(str(exc), 400)

    try:
        cursor = g.collection.find({}).sort([list_query.sort]).limit(list_query.limit)
        results = [serialize_document(doc) for doc in cursor]
    except PyMongoError as exc:
        return handle_db_error("Error fetching documents", exc)

    logger.info(
        "Retrieved %d document(s) from %s sorted by %s",
        len(results),
        collection_name,
        list_query.sort,
    )
    return jsonify(results)


@collections_bp.get("/<collection_name>/count")
def count_documents(collection_name: str):
    try:
        total = g.collection.count_documents({})
    except PyMongoError as exc:
        return handle_db_error("Error counting documents", exc)

    logger.info("Counted %d document(s) in %s", total, collection_name)
    return jsonify({"count": total})


@collections_bp.get("/<collection_name>/count/<identifier>")
def lesson_quantity(collection_name: str, identifier: str):
    lesson_id = coerce_key(identifier)
    try:
        document = g.collection.find_one({"lessonID": lesson_id})
    except PyMongoError as exc:
        return handle_db_error("Error fetching quantity", exc)

    quantity = (document or {}).get("quantity") or 0
    logger.info("Quantity for lessonID %s in %s is %s", lesson_id, collection_name, quantity)
    return jsonify({"quantity": quantity})


@collections_bp.get("/<collection_name>/<identifier>")
def get_document(collection_name: str, identifier: str):
    try:
        filters = candidate_document_filters(identifier)
    except QueryParamError as exc:
        return json_error(str(exc), 400)

    try:
        document = None
        for candidate in filters:
            document = g.collection.find_one(candidate)
            if document:
                break
    except PyMongoError as exc:
        return handle_db_error("Error fetching document", exc)

    logger.info(
        "Lookup of %s in %s %s",
        identifier,
        collection_name,
        "found a document" if document else "found nothing",
    )
    return jsonify(serialize_document(document))


__all__ = ["collections_bp"]
