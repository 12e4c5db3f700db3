"""Application configuration helpers."""

import os
from pathlib import Path
from urllib.parse import quote_plus

from dotenv import load_dotenv

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_DOTENV_PATH = os.path.join(_BASE_DIR, ".env")

if os.path.exists(_DOTENV_PATH):
    load_dotenv(_DOTENV_PATH)


class ConfigError(RuntimeError):
    """Raised when configuration values are missing or invalid."""


DEFAULT_PREFIX = "mongodb+srv://"
DEFAULT_DB_NAME = "AfterSchoolClassApp"
DEFAULT_PORT = 3000
DEFAULT_STATIC_DIR = Path(_BASE_DIR).parent / "frontend"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def compose_mongo_uri(prefix, host, user=None, password=None, params=""):
    """Join connection-string components into one MongoDB URI.

    Credentials are percent-escaped; when no user is given the credentials
    section is omitted entirely.
    """

    if not host:
        raise ConfigError("MONGODB_HOST is not set. Define it in backend/.env.")

    credentials = ""
    if user:
        credentials = quote_plus(user)
        if password:
            credentials += ":" + quote_plus(password)
        credentials += "@"

    return f"{prefix or DEFAULT_PREFIX}{credentials}{host}{params or ''}"


def get_mongo_uri():
    """Return the MongoDB connection string from the environment.

    ``MONGODB_URI`` wins when present; otherwise the URI is composed from the
    ``MONGODB_PREFIX``/``HOST``/``USER``/``PASSWORD``/``PARAMS`` variables.
    """

    uri = os.getenv("MONGODB_URI")
    if uri:
        return uri

    return compose_mongo_uri(
        os.getenv("MONGODB_PREFIX", DEFAULT_PREFIX),
        os.getenv("MONGODB_HOST"),
        user=os.getenv("MONGODB_USER"),
        password=os.getenv("MONGODB_PASSWORD"),
        params=os.getenv("MONGODB_PARAMS", ""),
    )


def get_db_name():
    """Return the database holding the lesson and order collections."""

    return os.getenv("MONGODB_DB") or DEFAULT_DB_NAME


def get_port():
    raw = os.getenv("PORT")
    if not raw:
        return DEFAULT_PORT
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"PORT must be an integer, got {raw!r}.") from None


def get_static_dir():
    return Path(os.getenv("STATIC_DIR") or DEFAULT_STATIC_DIR)


__all__ = [
    "ConfigError",
    "LOG_LEVEL",
    "compose_mongo_uri",
    "get_mongo_uri",
    "get_db_name",
    "get_port",
    "get_static_dir",
]
