"""Database engine and schema."""

from .engine import get_engine, make_engine, check_connection
from .schema import ensure_core_schema

__all__ = ["ensure_core_schema", "get_engine", "make_engine", "check_connection"]
