import re
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

TAG_NAME_MAX_LENGTH = 50
HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


def validate_hex_color(v: str | None) -> str | None:
    if v is None:
        return v
    if not HEX_COLOR_RE.match(v):
        raise ValueError("Color must be a 7-character hex string like '#2563EB'")
    return v.upper()


def validate_tag_name(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("Tag name cannot be empty")
    if len(v) > TAG_NAME_MAX_LENGTH:
        raise ValueError(f"Tag name cannot exceed {TAG_NAME_MAX_LENGTH} characters")
    return v


class TagCreate(BaseModel):
    name: str
    color: str | None = None
    parent_id: uuid.UUID | None = Field(default=None, alias="parentId")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return validate_tag_name(v)

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str | None) -> str | None:
        return validate_hex_color(v)


class TagUpdate(BaseModel):
    """Partial update. ``parent_id`` only counts when present in the body; an explicit null moves the tag to the root."""

    name: str | None = None
    color: str | None = None
    parent_id: uuid.UUID | None = Field(default=None, alias="parentId")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return validate_tag_name(v)

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str | None) -> str | None:
        return validate_hex_color(v)

    @property
    def reparent_requested(self) -> bool:
        return "parent_id" in self.model_fields_set


class TagBrief(BaseModel):
    """Minimal tag info embedded in other responses."""
    id: uuid.UUID
    name: str
    color: str

    model_config = ConfigDict(from_attributes=True)


class TagResponse(BaseModel):
    id: uuid.UUID
    name: str
    color: str
    parent_id: uuid.UUID | None = None
    parent: TagBrief | None = None
    level: int
    note_count: int = 0
    child_count: int = 0
    created_at: datetime
    updated_at: datetime
    children: list["TagResponse"] = []
    path: list[str] | None = None

    model_config = ConfigDict(from_attributes=True)


class TagUsage(BaseModel):
    id: uuid.UUID
    name: str
    color: str
    usage_count: int


class TagStats(BaseModel):
    total: int
    most_used: list[TagUsage]
