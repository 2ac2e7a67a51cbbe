import logging

from bomo.database import async_session
from bomo.services.tag_service import TagService
from bomo.services.tag_store import TagStore

logger = logging.getLogger(__name__)

DEFAULT_TAGS = [
    {"name": "Reading Notes", "color": "#2563EB"},
    {"name": "Personal Growth", "color": "#059669"},
    {
        "name": "Tech",
        "color": "#7C3AED",
        "children": [
            {"name": "JavaScript", "color": "#F59E0B"},
            {"name": "React", "color": "#06B6D4"},
            {"name": "Next.js", "color": "#000000"},
        ],
    },
    {"name": "Thoughts", "color": "#D97706"},
    {"name": "Journal", "color": "#DB2777"},
]


async def seed_tags(service: TagService, tags: list[dict], parent_id=None) -> int:
    """Create any of ``tags`` (and their children) not already present by name. Returns the number created."""
    created = 0
    for tag_data in tags:
        existing = await service.store.find_by_name(tag_data["name"])
        if existing is None:
            node = await service.create(tag_data["name"], tag_data.get("color"), parent_id)
            tag_id = node.id
            created += 1
        else:
            tag_id = existing.id
        created += await seed_tags(service, tag_data.get("children", []), tag_id)
    return created


async def seed_default_tags(session_factory=async_session) -> None:
    """Seed the default tags if they don't already exist. Safe to call on every startup."""
    async with session_factory() as session:
        created = await seed_tags(TagService(TagStore(session)), DEFAULT_TAGS)
    if created:
        logger.info("Seeded %d default tags", created)
