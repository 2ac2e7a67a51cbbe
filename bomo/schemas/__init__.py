from bomo.schemas.common import ApiResponse
from bomo.schemas.note import NoteResponse, Pagination, TagNotesResponse
from bomo.schemas.tag import TagBrief, TagCreate, TagResponse, TagStats, TagUpdate, TagUsage

__all__ = [
    "ApiResponse",
    "NoteResponse", "Pagination", "TagNotesResponse",
    "TagBrief", "TagCreate", "TagResponse", "TagStats", "TagUpdate", "TagUsage",
]
