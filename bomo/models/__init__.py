from bomo.models.note import Note, NoteStatus, NoteTag, NoteType
from bomo.models.tag import Tag

__all__ = ["Note", "NoteStatus", "NoteTag", "NoteType", "Tag"]
