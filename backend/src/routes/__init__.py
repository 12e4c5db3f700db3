"""Application route blueprints."""

from .collections import collections_bp
from .lessons import lessons_bp
from .orders import orders_bp

__all__ = ["collections_bp", "lessons_bp", "orders_bp"]
