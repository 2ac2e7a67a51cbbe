"""
Tag hierarchy rules: depth caching, cycle detection, tree assembly and paths.

This is the only place that computes ``Tag.level`` or decides whether a
reparent is legal. Reads go through a ``TagStore``; tree assembly and path
walking work on an in-memory arena (every tag keyed by id) loaded with a
single query.
"""
import dataclasses
import logging
import uuid
from collections import deque
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from bomo.exceptions import CycleError, SelfParentError, TagNotFoundError
from bomo.models.tag import Tag, name_key
from bomo.services.tag_store import TagStore

logger = logging.getLogger(__name__)

Arena = dict[uuid.UUID, Tag]


@dataclass
class TagRef:
    """Just enough of a tag to name and draw it."""
    id: uuid.UUID
    name: str
    color: str


@dataclass
class TagNode:
    """A tag as callers see it: stored fields plus derived counts and children."""
    id: uuid.UUID
    name: str
    color: str
    parent_id: uuid.UUID | None
    level: int
    created_at: datetime
    updated_at: datetime
    note_count: int = 0
    child_count: int = 0
    children: list["TagNode"] = field(default_factory=list)
    path: list[str] | None = None
    parent: TagRef | None = None

    @classmethod
    def from_tag(
        cls,
        tag: Tag,
        note_count: int = 0,
        child_count: int = 0,
        parent: Tag | None = None,
    ) -> "TagNode":
        return cls(
            id=tag.id,
            name=tag.name,
            color=tag.color,
            parent_id=tag.parent_id,
            level=tag.level,
            created_at=tag.created_at,
            updated_at=tag.updated_at,
            note_count=note_count,
            child_count=child_count,
            parent=TagRef(parent.id, parent.name, parent.color) if parent is not None else None,
        )


def by_name(node: Any) -> tuple[str, str]:
    return (name_key(node.name), node.name)


def assemble_tree(
    nodes: Iterable[TagNode],
    sort_key: Callable[[TagNode], Any] = by_name,
) -> list[TagNode]:
    """
    Build a forest from a flat list of nodes.

    Each node's ``children`` becomes exactly the input nodes whose ``parent_id``
    is its id. Nodes with no parent, or whose parent is not part of the input,
    are the roots. Input nodes are not modified.
    """
    copies = [dataclasses.replace(node, children=[]) for node in nodes]
    by_id = {node.id: node for node in copies}

    roots: list[TagNode] = []
    for node in copies:
        parent = by_id.get(node.parent_id) if node.parent_id is not None else None
        if parent is None:
            roots.append(node)
        else:
            parent.children.append(node)

    for node in copies:
        node.children.sort(key=sort_key)
    roots.sort(key=sort_key)
    return roots


def flatten_tree(forest: Iterable[TagNode]) -> Iterator[TagNode]:
    """Pre-order traversal of a forest."""
    stack = list(reversed(list(forest)))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def find_node(forest: Iterable[TagNode], tag_id: uuid.UUID) -> TagNode | None:
    for node in flatten_tree(forest):
        if node.id == tag_id:
            return node
    return None


def iter_ancestors(arena: Arena, tag_id: uuid.UUID) -> Iterator[Tag]:
    """Yield the tag and then each ancestor up to its root.

    Raises TagNotFoundError on a broken parent link.
    """
    seen: set[uuid.UUID] = set()
    current_id: uuid.UUID | None = tag_id
    while current_id is not None:
        if current_id in seen:
            raise CycleError(tag_id, current_id)
        seen.add(current_id)
        tag = arena.get(current_id)
        if tag is None:
            raise TagNotFoundError(current_id)
        yield tag
        current_id = tag.parent_id


def build_path(arena: Arena, tag_id: uuid.UUID) -> list[str]:
    """Root-to-leaf names for ``tag_id``."""
    names = [tag.name for tag in iter_ancestors(arena, tag_id)]
    names.reverse()
    return names


def children_index(arena: Arena) -> dict[uuid.UUID | None, list[Tag]]:
    index: dict[uuid.UUID | None, list[Tag]] = {}
    for tag in arena.values():
        index.setdefault(tag.parent_id, []).append(tag)
    return index


class HierarchyEngine:
    """Validates and applies structural changes to the tag forest."""

    def __init__(self, store: TagStore):
        self.store = store

    async def load_arena(self) -> Arena:
        return {tag.id: tag for tag in await self.store.list_all()}

    async def compute_level(self, parent_id: uuid.UUID | None) -> int:
        if parent_id is None:
            return 0
        parent = await self.store.get(parent_id)
        if parent is None:
            raise TagNotFoundError(parent_id, f'Parent tag with ID "{parent_id}" not found')
        return parent.level + 1

    async def validate_reparent(self, tag_id: uuid.UUID, new_parent_id: uuid.UUID | None) -> None:
        """Raise unless moving ``tag_id`` under ``new_parent_id`` keeps the forest acyclic."""
        if new_parent_id is None:
            return
        if new_parent_id == tag_id:
            raise SelfParentError(tag_id)

        arena = await self.load_arena()
        if new_parent_id not in arena:
            raise TagNotFoundError(new_parent_id, f'Parent tag with ID "{new_parent_id}" not found')

        for ancestor in iter_ancestors(arena, new_parent_id):
            if ancestor.id == tag_id:
                raise CycleError(tag_id, new_parent_id)

    async def propagate_levels(self, tag_id: uuid.UUID) -> int:
        """
        Recompute the level of ``tag_id`` and every descendant.

        Only rows whose cached level is wrong are written, so a second run is a
        no-op. Returns the number of tags updated.
        """
        arena = await self.load_arena()
        tag = arena.get(tag_id)
        if tag is None:
            raise TagNotFoundError(tag_id)

        if tag.parent_id is None:
            start_level = 0
        else:
            parent = arena.get(tag.parent_id)
            if parent is None:
                raise TagNotFoundError(tag.parent_id)
            start_level = parent.level + 1

        return await self._fix_levels(arena, [(tag, start_level)])

    async def repair_levels(self) -> int:
        """Recompute every level in the forest from the roots down."""
        arena = await self.load_arena()
        roots = [(tag, 0) for tag in arena.values() if tag.parent_id is None]
        updated = await self._fix_levels(arena, roots)

        unreachable = len(arena) - self._reachable_count(arena)
        if unreachable:
            logger.warning("%d tags are not reachable from any root", unreachable)
        return updated

    async def resolve_path(self, tag_id: uuid.UUID) -> list[str]:
        return build_path(await self.load_arena(), tag_id)

    async def _fix_levels(self, arena: Arena, start: list[tuple[Tag, int]]) -> int:
        index = children_index(arena)
        changes: list[tuple[Tag, int]] = []
        visited: set[uuid.UUID] = set()

        queue = deque(start)
        while queue:
            tag, level = queue.popleft()
            if tag.id in visited:
                continue
            visited.add(tag.id)
            if tag.level != level:
                changes.append((tag, level))
            for child in index.get(tag.id, []):
                queue.append((child, level + 1))

        for tag, level in changes:
            logger.debug("Level of tag %s: %d -> %d", tag.name, tag.level, level)
            await self.store.update(tag, level=level)
        return len(changes)

    @staticmethod
    def _reachable_count(arena: Arena) -> int:
        index = children_index(arena)
        count = 0
        queue = deque(index.get(None, []))
        seen: set[uuid.UUID] = set()
        while queue:
            tag = queue.popleft()
            if tag.id in seen:
                continue
            seen.add(tag.id)
            count += 1
            queue.extend(index.get(tag.id, []))
        return count
