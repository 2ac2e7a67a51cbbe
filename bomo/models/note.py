import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from bomo.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NoteType(str, enum.Enum):
    GENERAL = "GENERAL"
    READING = "READING"
    REFLECTION = "REFLECTION"
    JOURNAL = "JOURNAL"


class NoteStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class Note(Base):
    """Notes own their own lifecycle; the tag subsystem only reads them."""

    __tablename__ = "notes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False, default="")
    type = Column(Enum(NoteType), nullable=False, default=NoteType.GENERAL)
    status = Column(Enum(NoteStatus), nullable=False, default=NoteStatus.DRAFT)
    is_favorite = Column(Boolean, nullable=False, default=False)
    is_pinned = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    tags = relationship("Tag", secondary="note_tags", lazy="selectin", viewonly=True, order_by="Tag.name")


class NoteTag(Base):
    """Note/tag association. Rows go away with either side."""

    __tablename__ = "note_tags"

    note_id = Column(
        Uuid,
        ForeignKey("notes.id", ondelete="CASCADE"),
        primary_key=True,
    )
    tag_id = Column(
        Uuid,
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
