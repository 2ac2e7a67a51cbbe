import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from bomo.models.note import NoteStatus, NoteType
from bomo.schemas.tag import TagBrief, TagResponse


class NoteResponse(BaseModel):
    id: uuid.UUID
    title: str
    content: str
    type: NoteType
    status: NoteStatus
    is_favorite: bool
    is_pinned: bool
    created_at: datetime
    updated_at: datetime
    tags: list[TagBrief] = []

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class TagNotesResponse(BaseModel):
    notes: list[NoteResponse]
    pagination: Pagination
    tag: TagResponse
