"""Assertions shared across test modules."""

from bomo.services.tag_store import TagStore


async def snapshot(store: TagStore) -> dict:
    """Map of tag id to (parent_id, level)."""
    return {tag.id: (tag.parent_id, tag.level) for tag in await store.list_all()}


async def assert_forest_consistent(store: TagStore) -> None:
    """Every level matches its parent chain and no parent link is dangling or cyclic."""
    tags = {tag.id: tag for tag in await store.list_all()}
    for tag in tags.values():
        seen = set()
        depth = 0
        current = tag
        while current.parent_id is not None:
            assert current.id not in seen, f"cycle through {tag.name}"
            seen.add(current.id)
            assert current.parent_id in tags, f"dangling parent on {current.name}"
            current = tags[current.parent_id]
            depth += 1
        assert tag.level == depth, f"{tag.name}: level {tag.level} != depth {depth}"
