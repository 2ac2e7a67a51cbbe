from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bomo.database import get_db
from bomo.exceptions import HasChildrenError
from bomo.models.note import NoteStatus
from bomo.schemas.common import ApiResponse
from bomo.schemas.note import TagNotesResponse
from bomo.schemas.tag import TagCreate, TagResponse, TagStats, TagUpdate
from bomo.services.tag_service import UNSET, TagService
from bomo.services.tag_store import NoteFilter, TagStore

router = APIRouter(prefix="/api/tags", tags=["tags"])


def get_tag_service(db: AsyncSession = Depends(get_db)) -> TagService:
    return TagService(TagStore(db))


def _tags(nodes) -> list[TagResponse]:
    return [TagResponse.model_validate(node) for node in nodes]


@router.get("", response_model=ApiResponse[TagStats | list[TagResponse]])
async def list_tags(
    view: Literal["all", "root", "tree"] = "all",
    search: str | None = None,
    stats: bool = False,
    service: TagService = Depends(get_tag_service),
):
    """
    List tags.

    ``stats=true`` returns usage statistics instead of tags; otherwise a
    non-blank ``search`` filters by name; otherwise ``view`` picks a flat
    list, the root tags with their subtrees, or the whole forest.
    """
    if stats:
        return ApiResponse(data=TagStats.model_validate(await service.stats()))

    if search and search.strip():
        return ApiResponse(data=_tags(await service.search(search)))

    if view == "root":
        nodes = await service.list_roots()
    elif view == "tree":
        nodes = await service.tree()
    else:
        nodes = await service.list_all()
    return ApiResponse(data=_tags(nodes))


@router.post("", response_model=ApiResponse[TagResponse], status_code=201)
async def create_tag(
    tag_data: TagCreate,
    service: TagService = Depends(get_tag_service),
):
    """Create a tag, optionally under a parent."""
    node = await service.create(tag_data.name, tag_data.color, tag_data.parent_id)
    return ApiResponse(data=TagResponse.model_validate(node), message="Tag created")


@router.get("/{tag_id}", response_model=ApiResponse[TagResponse])
async def get_tag(
    tag_id: UUID,
    path: bool = False,
    service: TagService = Depends(get_tag_service),
):
    """Get a tag with its subtree. ``path=true`` adds the root-to-tag name path."""
    node = await service.get_by_id(tag_id, include_path=path)
    return ApiResponse(data=TagResponse.model_validate(node))


@router.put("/{tag_id}", response_model=ApiResponse[TagResponse])
async def update_tag(
    tag_id: UUID,
    tag_data: TagUpdate,
    service: TagService = Depends(get_tag_service),
):
    """Update name, color and/or parent. An explicit null parent moves the tag to the root."""
    node = await service.update(
        tag_id,
        name=tag_data.name,
        color=tag_data.color,
        parent_id=tag_data.parent_id if tag_data.reparent_requested else UNSET,
    )
    return ApiResponse(data=TagResponse.model_validate(node), message="Tag updated")


@router.delete("/{tag_id}", response_model=ApiResponse[None])
async def delete_tag(
    tag_id: UUID,
    service: TagService = Depends(get_tag_service),
):
    """Delete a tag that has no children. Its note associations go with it."""
    if not await service.delete(tag_id):
        raise HasChildrenError(tag_id)
    return ApiResponse(message="Tag deleted")


@router.get("/{tag_id}/notes", response_model=ApiResponse[TagNotesResponse])
async def list_tag_notes(
    tag_id: UUID,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    status: NoteStatus | None = None,
    service: TagService = Depends(get_tag_service),
):
    """Notes carrying this tag, most recently updated first."""
    result = await service.notes_for_tag(
        tag_id, NoteFilter(status=status, limit=limit, offset=offset)
    )
    return ApiResponse(data=TagNotesResponse.model_validate(result, from_attributes=True))
