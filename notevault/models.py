"""
Pydantic models for NoteVault MCP Server.

Contains the Note entity and its partial update, derived related-note results,
and the structured results returned by the git layer and the sync orchestrator.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import NEWLINE_PATTERN, generate_note_id, parse_timestamp, utc_timestamp

ConnectionType = Literal["tags", "project", "category", "content"]


def _unique(items: list[str]) -> list[str]:
    """Drop duplicates while keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


class Note(BaseModel):
    """A single note. `id` and `timestamp` are fixed once assigned."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(frozen=True, min_length=1)
    title: str
    content: str = ""
    timestamp: str = Field(frozen=True, min_length=1)
    tags: list[str] = Field(default_factory=list)
    project: str | None = None
    category: str | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_always_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("title")
    @classmethod
    def _single_line_title(cls, value: str) -> str:
        if NEWLINE_PATTERN.search(value):
            raise ValueError("title must be a single line")
        return value

    @field_validator("project", "category", mode="before")
    @classmethod
    def _blank_as_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def create(
        cls,
        title: str,
        content: str,
        tags: list[str] | None = None,
        project: str | None = None,
        category: str | None = None,
        now: datetime | None = None,
    ) -> "Note":
        """Build a new note with a fresh id and creation timestamp."""
        return cls(
            id=generate_note_id(now.timestamp() if now else None),
            title=title,
            content=content,
            timestamp=utc_timestamp(now),
            tags=_unique(tags or []),
            project=project,
            category=category,
        )

    @property
    def created_at(self) -> datetime | None:
        return parse_timestamp(self.timestamp)

    def apply_update(self, update: "NoteUpdate") -> "Note":
        """Return a copy with the update applied; id and timestamp are kept."""
        data = self.model_dump()
        data.update(update.changes(self.tags))
        data["id"] = self.id
        data["timestamp"] = self.timestamp
        return Note(**data)


class NoteUpdate(BaseModel):
    """Partial update of a note.

    Only fields that were explicitly provided are applied, so passing an empty
    project or category clears it. `tags` replaces the tag list; otherwise
    `add_tags` and `remove_tags` adjust the existing tags.
    """

    title: str | None = None
    content: str | None = None
    tags: list[str] | None = None
    add_tags: list[str] | None = None
    remove_tags: list[str] | None = None
    project: str | None = None
    category: str | None = None

    def changes(self, current_tags: list[str]) -> dict[str, Any]:
        """Compute the field changes against a note's current tags."""
        provided = self.model_fields_set
        changes: dict[str, Any] = {}

        for field in ("title", "content"):
            value = getattr(self, field)
            if value is not None:
                changes[field] = value

        for field in ("project", "category"):
            if field in provided:
                changes[field] = getattr(self, field)

        if self.tags is not None:
            changes["tags"] = _unique(self.tags)
        elif self.add_tags is not None or self.remove_tags is not None:
            merged = _unique(list(current_tags) + list(self.add_tags or []))
            removed = set(self.remove_tags or [])
            changes["tags"] = [tag for tag in merged if tag not in removed]

        return changes


class RelatedNote(BaseModel):
    """A related note with its relevance score. Derived, never persisted."""

    note: Note
    relevance_score: int
    connection_type: ConnectionType
    shared_elements: list[str] = Field(default_factory=list)


class SyncResult(BaseModel):
    """Model for the result of a sync operation."""

    success: bool
    message: str
    details: str = ""
    notes_affected: int | None = None
    connections_created: int | None = None


class GitResult(BaseModel):
    """Model for the result of a single git invocation."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    command: str = ""
    returncode: int | None = None

    @property
    def output(self) -> str:
        """Most relevant output: stderr for failures, stdout otherwise."""
        if not self.success:
            return self.stderr or self.stdout
        return self.stdout


class RemoteInfo(BaseModel):
    """Model for the first configured git remote."""

    has_remote: bool
    remote_name: str = ""
    remote_url: str = ""


class GitStatus(BaseModel):
    """Model for the working tree state of the repository."""

    has_uncommitted_changes: bool
    has_unpushed_commits: bool
    current_branch: str
    remote_name: str = ""
    last_commit_hash: str = ""
    modified_files: list[str] = Field(default_factory=list)


class RepositoryInfo(BaseModel):
    """Model for combined repository information."""

    is_repo: bool
    has_remote: bool = False
    status: GitStatus | None = None
    remote: RemoteInfo | None = None


def newest_first(notes: list[Note]) -> list[Note]:
    """Sort notes by creation time, newest first; unparseable timestamps go last."""
    def key(note: Note) -> tuple[int, float]:
        created = note.created_at
        return (1, created.timestamp()) if created else (0, 0.0)

    return sorted(notes, key=key, reverse=True)
