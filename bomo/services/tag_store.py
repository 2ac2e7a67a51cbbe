"""Persistence for tags and note/tag associations."""
import functools
import logging
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bomo.exceptions import StorageError
from bomo.models.note import Note, NoteStatus, NoteTag
from bomo.models.tag import Tag, name_key

logger = logging.getLogger(__name__)

# Sentinel for TagFilter.parent_id: "no parent filter" as opposed to "roots only"
ANY_PARENT: Any = object()


@dataclass
class TagFilter:
    """Recognized tag listing filters."""
    name_contains: str | None = None
    parent_id: Any = ANY_PARENT  # a UUID, None for roots, or ANY_PARENT


@dataclass
class NoteFilter:
    """Recognized filters for listing the notes of a tag."""
    status: NoteStatus | None = None
    limit: int = 20
    offset: int = 0


def storage_errors(operation: str):
    """Re-raise SQLAlchemy failures as StorageError."""

    def decorator(function):
        @functools.wraps(function)
        async def wrapper(*args, **kwargs):
            try:
                return await function(*args, **kwargs)
            except IntegrityError as e:
                logger.error("Integrity violation during %s: %s", operation, e)
                raise StorageError(
                    f"Data integrity violation during {operation}",
                    operation=operation,
                    original_error=e,
                ) from e
            except SQLAlchemyError as e:
                logger.exception("Storage failure during %s", operation)
                raise StorageError(
                    f"Database operation failed: {operation}",
                    operation=operation,
                    original_error=e,
                ) from e

        return wrapper

    return decorator


class TagStore:
    """Tag records with parent links, plus their note associations.

    No business validation happens here: callers are expected to have checked
    hierarchy invariants before writing.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @storage_errors("get tag")
    async def get(self, tag_id: uuid.UUID) -> Tag | None:
        return await self.session.get(Tag, tag_id)

    @storage_errors("find tag by name")
    async def find_by_name(self, name: str) -> Tag | None:
        """Case-insensitive exact name lookup, by casefolded key."""
        result = await self.session.execute(select(Tag).where(Tag.name_key == name_key(name)))
        return result.scalars().first()

    @storage_errors("insert tag")
    async def insert(self, **values) -> Tag:
        tag = Tag(**values)
        self.session.add(tag)
        await self.session.flush()
        return tag

    @storage_errors("update tag")
    async def update(self, tag: Tag, **values) -> Tag:
        """Partial update of the given columns."""
        for key, value in values.items():
            setattr(tag, key, value)
        await self.session.flush()
        return tag

    @storage_errors("delete tag")
    async def delete(self, tag: Tag) -> None:
        await self.session.delete(tag)
        await self.session.flush()

    @storage_errors("list tags")
    async def list_all(self) -> list[Tag]:
        """Every tag, ordered by level then name."""
        result = await self.session.execute(
            select(Tag).order_by(Tag.level.asc(), Tag.name.asc())
        )
        return list(result.scalars().all())

    async def list_by_parent(self, parent_id: uuid.UUID | None) -> list[Tag]:
        return await self.list_filtered(TagFilter(parent_id=parent_id))

    @storage_errors("filter tags")
    async def list_filtered(self, tag_filter: TagFilter) -> list[Tag]:
        """Tags matching every set filter, ordered by name, case-insensitive."""
        query = select(Tag)
        if tag_filter.name_contains:
            query = query.where(
                Tag.name_key.contains(name_key(tag_filter.name_contains), autoescape=True)
            )
        if tag_filter.parent_id is None:
            query = query.where(Tag.parent_id.is_(None))
        elif tag_filter.parent_id is not ANY_PARENT:
            query = query.where(Tag.parent_id == tag_filter.parent_id)
        result = await self.session.execute(query.order_by(Tag.name_key.asc(), Tag.name.asc()))
        return list(result.scalars().all())

    @storage_errors("count tags")
    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(Tag))
        return result.scalar_one()

    @storage_errors("count children")
    async def count_children(self, tag_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Tag).where(Tag.parent_id == tag_id)
        )
        return result.scalar_one()

    @storage_errors("count associations")
    async def count_associations(self, tag_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(NoteTag).where(NoteTag.tag_id == tag_id)
        )
        return result.scalar_one()

    @storage_errors("count associations per tag")
    async def association_counts(self) -> dict[uuid.UUID, int]:
        """Map of tag id to note count, for tags with at least one note."""
        result = await self.session.execute(
            select(NoteTag.tag_id, func.count(NoteTag.note_id)).group_by(NoteTag.tag_id)
        )
        return {tag_id: count for tag_id, count in result.all()}

    @storage_errors("most used tags")
    async def most_used(self, limit: int) -> list[tuple[Tag, int]]:
        usage = func.count(NoteTag.note_id).label("usage_count")
        result = await self.session.execute(
            select(Tag, usage)
            .outerjoin(NoteTag, NoteTag.tag_id == Tag.id)
            .group_by(Tag.id)
            .order_by(usage.desc(), Tag.name.asc())
            .limit(limit)
        )
        return [(tag, count) for tag, count in result.all()]

    @storage_errors("delete associations")
    async def delete_associations(self, tag_id: uuid.UUID) -> int:
        result = await self.session.execute(
            delete(NoteTag).where(NoteTag.tag_id == tag_id)
        )
        return result.rowcount or 0

    @storage_errors("add association")
    async def add_association(self, note_id: uuid.UUID, tag_id: uuid.UUID) -> None:
        existing = await self.session.get(NoteTag, (note_id, tag_id))
        if existing is None:
            self.session.add(NoteTag(note_id=note_id, tag_id=tag_id))
            await self.session.flush()

    @storage_errors("list notes for tag")
    async def list_notes(self, tag_id: uuid.UUID, note_filter: NoteFilter) -> tuple[list[Note], int]:
        """One page of the tag's notes, most recently updated first, plus the total."""
        conditions = [Note.id.in_(select(NoteTag.note_id).where(NoteTag.tag_id == tag_id))]
        if note_filter.status is not None:
            conditions.append(Note.status == note_filter.status)

        count_result = await self.session.execute(
            select(func.count()).select_from(Note).where(*conditions)
        )
        total = count_result.scalar_one()

        result = await self.session.execute(
            select(Note)
            .where(*conditions)
            .order_by(Note.updated_at.desc())
            .offset(note_filter.offset)
            .limit(note_filter.limit)
        )
        return list(result.scalars().all()), total

    @storage_errors("commit")
    async def commit(self) -> None:
        await self.session.commit()
