"""Cache-first reads with background refetch."""

from offline_sync.query.engine import QueryEngine
from offline_sync.query.models import Fetcher, QueryOptions, QuerySnapshot, ReadResult

__all__ = ["Fetcher", "QueryEngine", "QueryOptions", "QuerySnapshot", "ReadResult"]
