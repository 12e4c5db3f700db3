"""Seed helper that loads sample lessons into MongoDB."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from backend.src.config import ConfigError, get_db_name, get_mongo_uri
from backend.src.db import PERMITTED_COLLECTIONS

SEED_PATH = Path(__file__).resolve().parent / "seed.json"


def read_seed_file(path: Path = SEED_PATH) -> Dict[str, List[Dict[str, Any]]]:
    with path.open("r", encoding="utf-8") as seed_file:
        data = json.load(seed_file)
    if not isinstance(data, dict):
        raise ValueError("Seed file must contain an object of collections")

    for collection_name, documents in data.items():
        if collection_name not in PERMITTED_COLLECTIONS:
            raise ValueError(f"Unknown collection '{collection_name}' in seed file")
        if not isinstance(documents, list):
            raise ValueError(
                f"Seed data for collection '{collection_name}' must be a list"
            )
    return data


def load_seed_data(database, seed_data: Dict[str, List[Dict[str, Any]]]) -> Dict[str, int]:
    """Replace each seeded collection's contents; returns counts per collection."""

    loaded: Dict[str, int] = {}
    for collection_name, documents in seed_data.items():
        collection = database[collection_name]
        collection.delete_many({})
        if documents:
            collection.insert_many(documents)
        loaded[collection_name] = len(documents)
    return loaded


def main() -> None:
    try:
        uri = get_mongo_uri()
        db_name = get_db_name()
    except ConfigError as exc:  # pragma: no cover - simple CLI utility
        print(f"Configuration error: {exc}")
        raise SystemExit(1)

    client = MongoClient(uri, serverSelectionTimeoutMS=5000)
    database = client[db_name]

    try:
        loaded = load_seed_data(database, read_seed_file())
        for collection_name, count in loaded.items():
            print(f"Loaded {count} document(s) into '{collection_name}' collection")
        print(f"Seeding complete for database '{db_name}'.")
    except PyMongoError as exc:  # pragma: no cover - requires Mongo connection
        print(f"MongoDB error: {exc}")
        raise SystemExit(1)
    finally:
        client.close()


if __name__ == "__main__":
    main()
