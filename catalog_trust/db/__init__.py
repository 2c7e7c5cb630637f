"""Record store access."""

from .client import check_connection, close_connection, execute_query, get_connection
from .repository import BatchFilter, SubjectRepository

__all__ = [
    "BatchFilter",
    "SubjectRepository",
    "check_connection",
    "close_connection",
    "execute_query",
    "get_connection",
]
