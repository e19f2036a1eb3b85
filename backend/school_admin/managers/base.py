"""
School Admin Backend — Entity Manager Base
============================================

What:  Shared helpers for the school, classroom, student and user managers.
How:   Managers are plain objects registered by module name. Each lists its
       public handlers in ``http_exposed`` ("verb=name"); the dispatch engine
       binds request fields to handler parameters by name.

Handler conventions:
    - every parameter defaults to None, so a field the client omits arrives
      as None and the handler decides whether it is required
    - special parameters come first, e.g.
          async def delete_school(self, __long_token=None, __is_super_admin=None, school_id=None)
    - expected failures are returned as {"error": "..."} or
      {"errors": [...]}; store faults propagate as StoreError (500)
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from school_admin.services.store import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def utc_now() -> str:
    """ISO-8601 UTC timestamp stored on every document."""
    return datetime.now(timezone.utc).isoformat()


def as_number(value: Any) -> Optional[float]:
    """
    Numbers pass through and numeric strings ("30", " 2.5") are parsed, since
    form bodies carry every field as text. Anything else (bool included)
    becomes None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip()
        try:
            value = int(text)
        except ValueError:
            try:
                value = float(text)
            except ValueError:
                return None
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return value


def _positive_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


class EntityManager:
    """Base class; subclasses set ``label`` and ``http_exposed``."""

    label: str = ""
    http_exposed: list = []

    def __init__(self, store: DocumentStore):
        self.store = store

    # ── Access & paging ───────────────────────────────────────────────────

    @staticmethod
    def _can_access(token: Optional[Mapping[str, Any]], school_id: Optional[str]) -> bool:
        """Superadmins reach every school; school admins only their own."""
        if not token:
            return False
        if token.get("role") == "superadmin":
            return True
        own = token.get("school_id")
        return bool(own) and own == school_id

    @staticmethod
    def _paginate(page: Any, limit: Any) -> Tuple[int, int, int]:
        """(page, limit, offset); invalid values fall back to the defaults."""
        page = _positive_int(page, DEFAULT_PAGE)
        limit = min(_positive_int(limit, DEFAULT_LIMIT), MAX_LIMIT)
        return page, limit, (page - 1) * limit

    # ── Store shortcuts ───────────────────────────────────────────────────

    def _key(self, block_id: str, label: Optional[str] = None) -> str:
        return f"{label or self.label}:{block_id}"

    async def _get(self, block_id: Any, label: Optional[str] = None) -> Optional[Dict[str, Any]]:
        if not block_id or not isinstance(block_id, str):
            return None
        return await self.store.get_block(self._key(block_id, label))

    async def _exists(self, label: str, query: Mapping[str, Any]) -> bool:
        found = await self.store.search_find(label=label, query=query, fields=["_id"], limit=1, offset=0)
        return bool(found.get("items"))

    async def _list(
        self,
        label: str,
        query: Mapping[str, Any],
        fields: Iterable[str],
        page: Any,
        limit: Any,
    ) -> Dict[str, Any]:
        page, limit, offset = self._paginate(page, limit)
        found = await self.store.search_find(
            label=label, query=query, fields=list(fields), limit=limit, offset=offset
        )
        items = found.get("items", [])
        return {"items": items, "total": found.get("total", len(items)), "page": page, "limit": limit}

    @staticmethod
    def _changes(fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Keeps only the fields the client actually sent (non-None)."""
        return {name: value for name, value in fields.items() if value is not None}
