"""HTTP clients for the Query Service and user management API."""

from .query_service import QueryServiceClient
from .users import UserServiceClient
from .session import SessionContext
from .schemas import (
    Entry,
    EntryDetail,
    EntryPage,
    Pagination,
    SearchResult,
    Statistics,
    UniqueValues,
    User,
    UserPage,
)

__all__ = [
    "QueryServiceClient",
    "UserServiceClient",
    "SessionContext",
    "Entry",
    "EntryDetail",
    "EntryPage",
    "Pagination",
    "SearchResult",
    "Statistics",
    "UniqueValues",
    "User",
    "UserPage",
]
