"""
School Admin Backend — Block SQLAlchemy Model
===============================================

What:  One row per stored document ("block"): a school, classroom, student
       or user.
How:   Documents are addressed as "<label>:<id>" (e.g. "school:3f2a...").
       The document body is a JSON column, so entity fields can change
       without migrations. ``hosts`` lists the blocks a document lives
       under (a student is hosted by its school and classroom).

Query Patterns:
    - get by key:        WHERE label = :label AND id = :id   (primary key)
    - search by fields:  WHERE label = :label AND data->>'field' = :value
      → idx_blocks_label_created keeps per-label listings ordered
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import JSON, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TIMESTAMP

from school_admin.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Block(Base):
    __tablename__ = "blocks"

    label: Mapped[str] = mapped_column(
        String(50),
        primary_key=True,
        comment="Document type: school, classroom, student, user",
    )
    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Document id, unique per label",
    )
    hosts: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Keys of the blocks hosting this one, e.g. ['school:<id>']",
    )
    data: Mapped[Dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Document body",
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_blocks_label_created", "label", "created_at"),
    )

    @property
    def key(self) -> str:
        return f"{self.label}:{self.id}"

    def to_document(self) -> Dict[str, Any]:
        return {"_id": self.id, **(self.data or {})}

    def __repr__(self) -> str:
        return f"<Block(key='{self.key}', hosts={self.hosts})>"
