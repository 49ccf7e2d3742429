"""Project Cache - Host-side query data with optimistic update support"""
import copy
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

from ..utils.logger import get_logger

logger = get_logger(__name__)

CacheKey = Tuple[Hashable, ...]

PROJECTS_KEY: CacheKey = ("projects",)
QUERY_COUNTS_KEY: CacheKey = ("queries", "counts")


def project_queries_key(project_id: str) -> CacheKey:
    return ("projects", project_id, "queries")


class CacheSnapshot:
    """Verbatim copy of one cache entry taken before an optimistic update"""

    def __init__(self, key: CacheKey, present: bool, data: Any):
        self.key = key
        self.present = present
        self.data = data


class ProjectCache:
    """
    Keyed cache of query results shared by the host application

    Entries can be invalidated (next read refetches) or mutated in place via
    set_data. Optimistic updates go through snapshot/restore only.
    """

    def __init__(self):
        self._data: Dict[CacheKey, Any] = {}
        self._stale: set = set()

    def get_data(self, key: CacheKey) -> Any:
        return self._data.get(key)

    def has(self, key: CacheKey) -> bool:
        return key in self._data

    def is_stale(self, key: CacheKey) -> bool:
        return key not in self._data or key in self._stale

    def set_data(self, key: CacheKey, value: Any) -> None:
        self._data[key] = value
        self._stale.discard(key)

    def update_data(self, key: CacheKey, updater: Callable[[Any], Any]) -> None:
        """Replace an entry with updater(old); missing entries stay missing"""
        if key not in self._data:
            return
        self._data[key] = updater(self._data[key])

    def invalidate(self, key: CacheKey) -> None:
        """Mark an entry (and every key it prefixes) stale"""
        for cached_key in list(self._data):
            if cached_key[:len(key)] == key:
                self._stale.add(cached_key)
        self._stale.add(key)
        logger.debug(f"Invalidated cache key {key}")

    async def get_or_fetch(self, key: CacheKey, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        """Return cached data, refetching when missing or stale"""
        if not self.is_stale(key):
            return self._data[key]
        value = await fetcher()
        self.set_data(key, value)
        return value

    # =========================================================================
    # Optimistic update
    # =========================================================================

    def snapshot(self, key: CacheKey) -> CacheSnapshot:
        present = key in self._data
        return CacheSnapshot(key, present, copy.deepcopy(self._data.get(key)) if present else None)

    def restore(self, snapshot: CacheSnapshot) -> None:
        """Reinstate exactly what the snapshot captured"""
        if snapshot.present:
            self._data[snapshot.key] = snapshot.data
        else:
            self._data.pop(snapshot.key, None)
        logger.info(f"Restored cache key {snapshot.key} after failed update")

    def set_project_status(self, project_id: str, status: str) -> None:
        """Optimistically set one project's currentStatus in the project list"""

        def _apply(projects: Any) -> Any:
            if not isinstance(projects, list):
                return projects
            return [
                {**p, "currentStatus": status} if isinstance(p, dict) and p.get("id") == project_id else p
                for p in projects
            ]

        self.update_data(PROJECTS_KEY, _apply)

    def get_project(self, project_id: str) -> Optional[Dict[str, Any]]:
        projects = self._data.get(PROJECTS_KEY)
        if not isinstance(projects, list):
            return None
        return next((p for p in projects if isinstance(p, dict) and p.get("id") == project_id), None)
