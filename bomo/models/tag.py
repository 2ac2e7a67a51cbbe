import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import validates

from bomo.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def name_key(name: str) -> str:
    """Comparison form of a tag name. Two names clash when their keys are equal."""
    return name.casefold()


class Tag(Base):
    __tablename__ = "tags"
    __table_args__ = (CheckConstraint("level >= 0", name="ck_tags_level_non_negative"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False)
    # casefold() can expand a name ("ß" -> "ss"), hence the wider column
    name_key = Column(String(150), nullable=False, unique=True)
    color = Column(String(7), nullable=False)  # Hex color like "#2563EB"

    # NULL marks a root tag
    parent_id = Column(
        Uuid,
        ForeignKey("tags.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    # Depth cache: 0 for roots, parent.level + 1 otherwise
    level = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    @validates("name")
    def _sync_name_key(self, key, value):
        self.name_key = name_key(value)
        return value

    def __repr__(self):
        return f"<Tag(id={self.id}, name={self.name!r}, level={self.level})>"
