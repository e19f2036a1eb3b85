"""
School Admin Backend — Document Block Store
=============================================

What:  Label/hosted document store used by every entity manager.
How:   Each document is a row of the ``blocks`` table (see models/block.py);
       callers address documents as "<label>:<id>".

Operations:
    add_block({"_label": "school", "_id"?: ..., "_hosts"?: [...], **fields})
    get_block("school:<id>")                      → document | None
    update_block({"_id": "school:<id>", **changes}) → merged document | None
    delete_block("school:<id>")                   → bool
    search_find(label, query, fields, limit, offset) → {"items": [...], "total": n}

Documents come back as plain dicts: {"_id": <id>, **fields}.

Error Handling:
    SQLAlchemy failures are logged with their SQL context and re-raised as
    StoreError, which the dispatch engine reports as a 500 with a generic
    message.
"""

import logging
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import and_, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from school_admin.database import session_scope
from school_admin.exceptions import StoreError
from school_admin.models.block import Block

logger = logging.getLogger(__name__)

RESERVED_KEYS = {"_id", "_label", "_hosts"}


def split_key(key: str) -> Tuple[str, str]:
    """ "school:abc" → ("school", "abc"); raises ValueError on a bare id."""
    label, sep, block_id = (key or "").partition(":")
    if not sep or not label or not block_id:
        raise ValueError(f"invalid block key '{key}', expected '<label>:<id>'")
    return label, block_id


def _match(field: str, value: Any):
    column = Block.data[field]
    if value is None:
        return column.as_string().is_(None)
    if isinstance(value, bool):
        return column.as_boolean() == value
    if isinstance(value, int):
        return column.as_integer() == value
    if isinstance(value, float):
        return column.as_float() == value
    return column.as_string() == str(value)


def _project(document: Dict[str, Any], fields: Optional[Iterable[str]]) -> Dict[str, Any]:
    if not fields:
        return document
    wanted = set(fields) | {"_id"}
    return {k: v for k, v in document.items() if k in wanted}


class DocumentStore:
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def add_block(self, block: Mapping[str, Any]) -> Dict[str, Any]:
        label = block.get("_label")
        if not label:
            raise ValueError("add_block requires a '_label'")
        block_id = str(block.get("_id") or uuid.uuid4().hex)
        data = {k: v for k, v in block.items() if k not in RESERVED_KEYS}
        row = Block(label=label, id=block_id, hosts=list(block.get("_hosts") or []), data=data)

        try:
            async with session_scope(self._session_factory) as session:
                session.add(row)
        except SQLAlchemyError as exc:
            raise self._wrap("add_block", exc, key=f"{label}:{block_id}") from exc

        logger.debug("block added: %s:%s", label, block_id)
        return {"_id": block_id, **data}

    async def get_block(self, key: str) -> Optional[Dict[str, Any]]:
        label, block_id = split_key(key)
        try:
            async with session_scope(self._session_factory) as session:
                row = await session.get(Block, (label, block_id))
                return row.to_document() if row is not None else None
        except SQLAlchemyError as exc:
            raise self._wrap("get_block", exc, key=key) from exc

    async def update_block(self, block: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """Shallow-merges the non-reserved keys; ``_hosts`` replaces the host list."""
        key = block.get("_id")
        label, block_id = split_key(key)
        changes = {k: v for k, v in block.items() if k not in RESERVED_KEYS}
        try:
            async with session_scope(self._session_factory) as session:
                row = await session.get(Block, (label, block_id))
                if row is None:
                    return None
                row.data = {**(row.data or {}), **changes}
                if "_hosts" in block:
                    row.hosts = list(block.get("_hosts") or [])
                return row.to_document()
        except SQLAlchemyError as exc:
            raise self._wrap("update_block", exc, key=key) from exc

    async def delete_block(self, key: str) -> bool:
        label, block_id = split_key(key)
        try:
            async with session_scope(self._session_factory) as session:
                row = await session.get(Block, (label, block_id))
                if row is None:
                    return False
                await session.delete(row)
                return True
        except SQLAlchemyError as exc:
            raise self._wrap("delete_block", exc, key=key) from exc

    async def search_find(
        self,
        label: str,
        query: Optional[Mapping[str, Any]] = None,
        fields: Optional[List[str]] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """Exact-match search on document fields, oldest first."""
        conditions = [Block.label == label]
        conditions.extend(_match(field, value) for field, value in (query or {}).items())
        where = and_(*conditions)

        try:
            async with session_scope(self._session_factory) as session:
                total = (
                    await session.execute(select(func.count()).select_from(Block).where(where))
                ).scalar() or 0
                rows = (
                    await session.execute(
                        select(Block)
                        .where(where)
                        .order_by(Block.created_at.asc(), Block.id.asc())
                        .limit(max(int(limit), 0))
                        .offset(max(int(offset), 0))
                    )
                ).scalars().all()
        except SQLAlchemyError as exc:
            raise self._wrap("search_find", exc, label=label, query=dict(query or {})) from exc

        return {"items": [_project(row.to_document(), fields) for row in rows], "total": total}

    @staticmethod
    def _wrap(operation: str, exc: SQLAlchemyError, **context: Any) -> StoreError:
        logger.error("Store %s failed: %s | Context: %s", operation, exc, context)
        return StoreError(context={"operation": operation, "error": str(exc), **context})
