import asyncio
import logging
import uuid
import weakref
from contextlib import asynccontextmanager
from typing import Any, Iterable

from bomo.config import settings
from bomo.exceptions import DuplicateNameError, TagNotFoundError, ValidationError
from bomo.models.tag import Tag
from bomo.schemas.tag import validate_hex_color, validate_tag_name
from bomo.services.hierarchy import (
    Arena,
    HierarchyEngine,
    TagNode,
    assemble_tree,
    build_path,
    children_index,
    find_node,
)
from bomo.services.tag_store import NoteFilter, TagFilter, TagStore

logger = logging.getLogger(__name__)

# Default colors, handed out in turn to tags created without one
TAG_PALETTE = [
    "#2563EB",
    "#059669",
    "#7C3AED",
    "#D97706",
    "#DB2777",
    "#F59E0B",
    "#06B6D4",
    "#6B7280",
]

# Marks "parent_id not given" in update(); None means "move to root"
UNSET: Any = object()

# Structural changes to the forest are rare and cheap, so one lock per event loop covers all of them
_forest_locks: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()


def forest_lock() -> asyncio.Lock:
    """The lock serializing forest mutations on the running event loop."""
    loop = asyncio.get_running_loop()
    lock = _forest_locks.get(loop)
    if lock is None:
        lock = _forest_locks[loop] = asyncio.Lock()
    return lock


def _clean_name(name: str | None) -> str | None:
    try:
        return validate_tag_name(name)
    except ValueError as e:
        raise ValidationError(str(e), field="name", value=name) from e


def _clean_color(color: str | None) -> str | None:
    try:
        return validate_hex_color(color)
    except ValueError as e:
        raise ValidationError(str(e), field="color", value=color) from e


class TagService:
    """Entry point for tag operations. Built per request around a TagStore."""

    def __init__(self, store: TagStore, stats_limit: int = settings.TAG_STATS_LIMIT):
        self.store = store
        self.hierarchy = HierarchyEngine(store)
        self.stats_limit = stats_limit

    @asynccontextmanager
    async def _structural_change(self):
        """Serialize a forest mutation and commit it as one transaction."""
        async with forest_lock():
            try:
                yield
                await self.store.commit()
            except Exception:
                await self.store.session.rollback()
                raise

    async def create(
        self,
        name: str,
        color: str | None = None,
        parent_id: uuid.UUID | None = None,
    ) -> TagNode:
        if name is None:
            raise ValidationError("Tag name is required", field="name")
        name = _clean_name(name)
        color = _clean_color(color)

        async with self._structural_change():
            if await self.store.find_by_name(name) is not None:
                logger.warning("Rejected duplicate tag name %r", name)
                raise DuplicateNameError(name)

            level = await self.hierarchy.compute_level(parent_id)
            if color is None:
                color = TAG_PALETTE[await self.store.count() % len(TAG_PALETTE)]

            tag = await self.store.insert(name=name, color=color, parent_id=parent_id, level=level)
            parent = await self.store.get(parent_id) if parent_id is not None else None

        logger.info("Created tag %r (id=%s, level=%d)", tag.name, tag.id, tag.level)
        return TagNode.from_tag(tag, parent=parent)

    async def create_batch(self, items: Iterable[dict]) -> list[TagNode]:
        """Create tags in order, so later items may name earlier ones as parents."""
        return [
            await self.create(item["name"], item.get("color"), item.get("parent_id"))
            for item in items
        ]

    async def update(
        self,
        tag_id: uuid.UUID,
        *,
        name: str | None = None,
        color: str | None = None,
        parent_id: Any = UNSET,
    ) -> TagNode:
        """
        Rename, recolor and/or reparent a tag.

        ``parent_id`` is only applied when passed; ``None`` moves the tag to the
        root. A reparent recomputes the level of the whole moved subtree in the
        same transaction.
        """
        name = _clean_name(name)
        color = _clean_color(color)
        fixed = 0

        async with self._structural_change():
            tag = await self._get_or_raise(tag_id)
            values: dict[str, Any] = {}

            if name is not None and name != tag.name:
                existing = await self.store.find_by_name(name)
                if existing is not None and existing.id != tag.id:
                    logger.warning("Rejected rename of %r to duplicate name %r", tag.name, name)
                    raise DuplicateNameError(name)
                values["name"] = name

            if color is not None:
                values["color"] = color

            if parent_id is not UNSET:
                await self.hierarchy.validate_reparent(tag.id, parent_id)
                values["parent_id"] = parent_id
                values["level"] = await self.hierarchy.compute_level(parent_id)

            if values:
                await self.store.update(tag, **values)
            if parent_id is not UNSET:
                fixed = await self.hierarchy.propagate_levels(tag.id)

        if parent_id is not UNSET:
            logger.info(
                "Moved tag %r under %s (level=%d, %d descendant levels fixed)",
                tag.name, parent_id or "root", tag.level, fixed,
            )
        else:
            logger.info("Updated tag %r (id=%s)", tag.name, tag.id)
        return await self.get_by_id(tag.id)

    async def delete(self, tag_id: uuid.UUID) -> bool:
        """
        Delete a leaf tag and its note associations.

        Returns False, without deleting anything, when the tag still has
        children.
        """
        async with self._structural_change():
            tag = await self._get_or_raise(tag_id)

            child_count = await self.store.count_children(tag.id)
            if child_count:
                logger.warning("Refused to delete tag %r: %d child tags", tag.name, child_count)
                return False

            removed = await self.store.delete_associations(tag.id)
            await self.store.delete(tag)

        logger.info("Deleted tag %r (%d note associations removed)", tag.name, removed)
        return True

    async def get_by_id(self, tag_id: uuid.UUID, include_path: bool = False) -> TagNode:
        arena = await self.hierarchy.load_arena()
        if tag_id not in arena:
            raise TagNotFoundError(tag_id)

        forest = assemble_tree(await self._flat_nodes(arena, arena.values()))
        node = find_node(forest, tag_id)
        if include_path:
            node.path = build_path(arena, tag_id)
        return node

    async def list_all(self) -> list[TagNode]:
        """Every tag, flat, ordered by level then name."""
        arena = await self.hierarchy.load_arena()
        return await self._flat_nodes(arena, arena.values())

    async def list_roots(self) -> list[TagNode]:
        """Root tags, each with its full subtree."""
        return [node for node in await self.tree() if node.parent_id is None]

    async def tree(self) -> list[TagNode]:
        return assemble_tree(await self.list_all())

    async def search(self, term: str) -> list[TagNode]:
        """Tags whose name contains ``term``, case-insensitive, ordered by name."""
        term = (term or "").strip()
        if not term:
            raise ValidationError("Search term cannot be empty", field="search")

        matches = await self.store.list_filtered(TagFilter(name_contains=term))
        arena = await self.hierarchy.load_arena()
        return await self._flat_nodes(arena, matches)

    async def stats(self) -> dict:
        total = await self.store.count()
        most_used = await self.store.most_used(self.stats_limit)
        return {
            "total": total,
            "most_used": [
                {"id": tag.id, "name": tag.name, "color": tag.color, "usage_count": count}
                for tag, count in most_used
            ],
        }

    async def notes_for_tag(self, tag_id: uuid.UUID, note_filter: NoteFilter) -> dict:
        tag = await self.get_by_id(tag_id)
        notes, total = await self.store.list_notes(tag_id, note_filter)
        return {
            "notes": notes,
            "pagination": {
                "total": total,
                "limit": note_filter.limit,
                "offset": note_filter.offset,
                "has_more": note_filter.offset + note_filter.limit < total,
            },
            "tag": tag,
        }

    async def repair_levels(self) -> int:
        """Re-derive every cached level. Safe to run at any time."""
        async with self._structural_change():
            fixed = await self.hierarchy.repair_levels()
        if fixed:
            logger.warning("Repaired %d stale tag levels", fixed)
        return fixed

    async def _get_or_raise(self, tag_id: uuid.UUID) -> Tag:
        tag = await self.store.get(tag_id)
        if tag is None:
            raise TagNotFoundError(tag_id)
        return tag

    async def _flat_nodes(self, arena: Arena, tags: Iterable[Tag]) -> list[TagNode]:
        note_counts = await self.store.association_counts()
        index = children_index(arena)
        return [
            TagNode.from_tag(
                tag,
                note_count=note_counts.get(tag.id, 0),
                child_count=len(index.get(tag.id, [])),
                parent=arena.get(tag.parent_id),
            )
            for tag in tags
        ]
