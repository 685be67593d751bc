"""
Tool handlers for NoteVault MCP Server.

Each handler takes the raw tool arguments and returns the text shown to the
client. Not-found, ambiguous and invalid input are answered in plain text;
unexpected exceptions are logged and reported as "Error: ...".
"""

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from pydantic import ValidationError

from .config import Settings
from .git import GitRepository, GitRunner
from .linking import (
    connection_summary,
    find_backlinks,
    find_related_notes_with_scoring,
    network_density,
    suggest_connections,
)
from .models import Note, NoteUpdate, SyncResult
from .search import search_notes as rank_notes
from .sync import SyncOrchestrator
from .utils import (
    ConfigurationError,
    ContentValidationError,
    TitleValidationError,
    format_date,
    is_note_id,
    truncate,
    validate_content_size,
    validate_title,
)
from .vault import NoteStore, create_store

logger = structlog.get_logger(__name__)

SYNC_OPERATIONS = (
    "full", "status", "pull", "commit", "push", "save-and-push",
    "batch", "emergency", "smart", "stats", "health", "init",
)
UPDATE_FIELDS = ("title", "content", "tags", "add_tags", "remove_tags", "project", "category")

Handler = Callable[[dict[str, Any]], Awaitable[str]]


def _flag(value: Any) -> bool:
    """Interpret a boolean tool argument (clients sometimes send strings)."""
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


def _tag_line(tags: list[str]) -> str:
    return ", ".join(tags) if tags else "none"


def _format_sync(title: str, result: SyncResult) -> str:
    if result.success:
        output = f"**{title} completed**\n\n{result.message}"
        if result.details:
            output += f"\n\n{result.details}"
    else:
        output = f"**{title} failed**\n\n{result.message}"
        if result.details:
            output += f"\n\nDetails:\n{result.details}"

    if result.notes_affected is not None:
        output += f"\n\nNotes affected: {result.notes_affected}"
    if result.connections_created is not None:
        output += f"\nConnections created: {result.connections_created}"
    return output


def _format_matches(matches: list[Note], identifier: str, action: str) -> str:
    output = f'Found {len(matches)} notes matching "{identifier}":\n\n'
    for i, note in enumerate(matches, 1):
        output += f"{i}. **{note.title}** ({note.id})\n   {truncate(note.content)}\n"
    output += f"\nPlease specify the exact note ID to {action}."
    return output


def _not_found(identifier: str) -> str:
    return f'No note found matching "{identifier}". Use search_notes to find the right note ID.'


class NoteHandlers:
    """Implements the MCP tools on top of a note store and the sync orchestrator.

    The store is created on first use so that a missing vault path is reported
    by the tool call instead of preventing the server from starting.
    """

    def __init__(
        self,
        settings: Settings,
        store: NoteStore | None = None,
        sync: SyncOrchestrator | None = None,
        git_runner: GitRunner | None = None,
    ):
        self.settings = settings
        self._store = store
        self._sync = sync
        self._git_runner = git_runner
        self._handlers: dict[str, Handler] = {
            "add_note": self.add_note,
            "search_notes": self.search_notes,
            "list_notes": self.list_notes,
            "update_note": self.update_note,
            "delete_note": self.delete_note,
            "related_notes": self.related_notes,
            "sync_notes": self.sync_notes,
        }

    @property
    def store(self) -> NoteStore:
        if self._store is None:
            self._store = create_store(self.settings)
        return self._store

    @property
    def sync(self) -> SyncOrchestrator:
        if self._sync is None:
            git = GitRepository.from_settings(self.settings, self._git_runner)
            self._sync = SyncOrchestrator(self.settings, self.store, git)
        return self._sync

    async def dispatch(self, name: str, arguments: dict[str, Any] | None) -> str:
        """Run the named tool and return its text output."""
        handler = self._handlers.get(name)
        if handler is None:
            return f"Unknown tool: {name}"

        try:
            return await handler(arguments or {})
        except ConfigurationError as e:
            logger.warning("configuration_error", tool=name, error=e.message)
            output = f"Error: {e.message}"
            if e.remedy:
                output += f"\n\nFix: {e.remedy}"
            return output
        except (TitleValidationError, ContentValidationError) as e:
            return f"Error: {e}"
        except ValidationError as e:
            return f"Error: Invalid arguments for {name}: {e.errors()[0]['msg']}"
        except Exception as e:
            logger.exception("tool_failed", tool=name, error=str(e))
            return f"Error: {e}"

    async def _resolve(self, identifier: str, notes: list[Note], action: str) -> Note | str:
        """Find the note an identifier refers to, or the text explaining why not."""
        if is_note_id(identifier):
            note = next((n for n in notes if n.id == identifier), None)
            return note if note is not None else _not_found(identifier)

        matches = rank_notes(notes, identifier)
        if len(matches) == 1:
            return matches[0]
        if matches:
            return _format_matches(matches, identifier, action)
        return _not_found(identifier)

    # ============== Note tools ==============

    async def add_note(self, arguments: dict[str, Any]) -> str:
        title = arguments.get("title")
        content = arguments.get("content")
        if not title or content is None:
            return "Error: title and content are required"

        title = validate_title(title, self.settings.max_title_length)
        content = validate_content_size(content, self.settings.max_content_size)
        pool = await self.store.list_notes()
        taken = {n.id for n in pool}

        # Ids are millisecond timestamps; step forward until one is free
        moment = datetime.now(timezone.utc)
        while True:
            note = Note.create(
                title=title,
                content=content,
                tags=arguments.get("tags") or [],
                project=arguments.get("project"),
                category=arguments.get("category"),
                now=moment,
            )
            if note.id not in taken:
                break
            moment += timedelta(milliseconds=1)

        result = await self.sync.save_and_sync(note, pool)
        if not result.success and result.notes_affected is None:
            return f"Error: {result.message}\n\n{result.details}".strip()

        output = f'Note "{note.title}" saved successfully with ID: {note.id}'
        if result.connections_created:
            output += f"\nLinked to {result.connections_created} related notes"
        if not result.success:
            output += f"\n\nWarning: {result.message}\n{result.details}".rstrip()
        elif self.settings.auto_sync_on_save:
            output += "\nSynced to Git"
        logger.info("note_added", note_id=note.id)
        return output

    async def search_notes(self, arguments: dict[str, Any]) -> str:
        query = arguments.get("query")
        if not query:
            return "Error: query is required"

        results = rank_notes(await self.store.list_notes(), query)
        if not results:
            return f'No notes found matching "{query}"'

        output = f"Found {len(results)} notes:\n\n"
        for note in results:
            output += f"**{note.title}** ({note.id})\n"
            output += f"{truncate(note.content, 200)}\n"
            output += f"Tags: {_tag_line(note.tags)}\n"
            if note.project:
                output += f"Project: {note.project}\n"
            output += "\n"
        return output.rstrip()

    async def list_notes(self, arguments: dict[str, Any]) -> str:
        notes = await self.store.list_notes()
        if not notes:
            return "No notes found"

        limit = arguments.get("limit")
        shown = notes[: max(1, int(limit))] if limit is not None else notes

        output = f"Your notes ({len(notes)} total):\n\n"
        for note in shown:
            output += f"- **{note.title}** ({note.id}) - {format_date(note.timestamp)}\n"
            if note.tags:
                output += f"  Tags: {_tag_line(note.tags)}\n"
        return output.rstrip()

    async def update_note(self, arguments: dict[str, Any]) -> str:
        identifier = arguments.get("identifier")
        if not identifier:
            return "Error: identifier is required"

        notes = await self.store.list_notes()
        resolved = await self._resolve(identifier, notes, "update")
        if isinstance(resolved, str):
            return resolved
        note = resolved

        update = NoteUpdate(**{field: arguments[field] for field in UPDATE_FIELDS if field in arguments})
        changes = update.changes(note.tags)
        if not changes:
            return f'No updates specified for note "{note.title}" ({note.id})'
        if "title" in changes:
            update.title = changes["title"] = validate_title(changes["title"], self.settings.max_title_length)
        if "content" in changes:
            validate_content_size(changes["content"], self.settings.max_content_size)

        if not _flag(arguments.get("confirm")):
            output = f'**Preview of changes to "{note.title}"** ({note.id})\n\n'
            output += "Current values:\n"
            output += f"- Title: {note.title}\n"
            output += f"- Content: {truncate(note.content)}\n"
            output += f"- Tags: {_tag_line(note.tags)}\n"
            output += f"- Project: {note.project or 'none'}\n"
            output += f"- Category: {note.category or 'none'}\n\n"
            output += "Changes:\n"
            for field, value in changes.items():
                if field == "tags":
                    value = _tag_line(value)
                elif field == "content":
                    value = truncate(value)
                output += f"- {field.capitalize()}: {value if value is not None else 'none'}\n"
            output += "\n**To confirm these changes, run the command again with confirm=true**"
            return output

        updated = note.apply_update(update)
        pool = [updated if n.id == updated.id else n for n in notes]
        result = await self.sync.save_and_sync(updated, pool)
        if not result.success and result.notes_affected is None:
            return f"Error: {result.message}\n\n{result.details}".strip()

        output = f'Successfully updated note "{updated.title}" ({updated.id})'
        output += "\nUpdated fields: " + ", ".join(changes)
        if not result.success:
            output += f"\n\nWarning: {result.message}\n{result.details}".rstrip()
        logger.info("note_updated", note_id=updated.id, fields=list(changes))
        return output

    async def delete_note(self, arguments: dict[str, Any]) -> str:
        identifier = arguments.get("identifier")
        if not identifier:
            return "Error: identifier is required"

        resolved = await self._resolve(identifier, await self.store.list_notes(), "delete")
        if isinstance(resolved, str):
            return resolved
        note = resolved

        if not _flag(arguments.get("confirm")):
            output = f'**About to delete "{note.title}"** ({note.id})\n\n'
            output += f"Content: {truncate(note.content)}\n"
            output += f"Tags: {_tag_line(note.tags)}\n"
            output += f"Created: {format_date(note.timestamp)}\n\n"
            output += "**This cannot be undone. To confirm, run the command again with confirm=true**"
            return output

        result = await self.sync.delete_and_sync(note)
        if not result.success and result.notes_affected is None:
            return f"Error: {result.message}\n\n{result.details}".strip()

        output = f'Successfully deleted note "{note.title}" ({note.id})'
        if not result.success:
            output += f"\n\nWarning: {result.message}\n{result.details}".rstrip()
        return output

    async def related_notes(self, arguments: dict[str, Any]) -> str:
        identifier = arguments.get("identifier")
        if not identifier:
            return "Error: identifier is required"

        notes = await self.store.list_notes()
        resolved = await self._resolve(identifier, notes, "analyze")
        if isinstance(resolved, str):
            return resolved
        note = resolved

        limit = max(1, int(arguments.get("limit") or 10))
        related = find_related_notes_with_scoring(note, notes, limit=limit)
        backlinks = find_backlinks(note, notes)
        suggestions = suggest_connections(note, notes)

        output = f"## Connections for {note.title}\n\n"
        output += f"Network density: {network_density(note, notes):.0%}\n\n"

        output += f"### Related notes ({len(related)})\n"
        if related:
            for item in related:
                output += f"- **{item.note.title}** ({item.note.id}) - {connection_summary(item)}\n"
        else:
            output += "None found\n"

        if backlinks:
            output += f"\n### Possible backlinks ({len(backlinks)})\n"
            for backlink in backlinks:
                output += f"- **{backlink.title}** ({backlink.id})\n"

        if suggestions:
            output += "\n### Suggested connections\n"
            for suggestion, reason in suggestions:
                output += f"- **{suggestion.title}** ({suggestion.id}) - {reason}\n"

        return output.rstrip()

    # ============== Sync ==============

    async def sync_notes(self, arguments: dict[str, Any]) -> str:
        operation = arguments.get("operation") or "full"
        if operation not in SYNC_OPERATIONS:
            return f"Error: Unknown sync operation '{operation}'. Valid operations: {', '.join(SYNC_OPERATIONS)}"

        message = arguments.get("message")
        sync = self.sync

        if operation == "status":
            return _format_sync("Sync status", await sync.status())
        if operation == "pull":
            return _format_sync("Pull", await sync.pull())
        if operation == "commit":
            return _format_sync("Commit", await sync.commit(message))
        if operation == "push":
            return _format_sync("Push", await sync.push())
        if operation == "stats":
            return _format_sync("Sync stats", await sync.stats())
        if operation == "health":
            return _format_sync("Health check", await sync.health_check())
        if operation == "init":
            return _format_sync("Repository init", await sync.init_repository())

        notes = await self.store.list_notes()

        if operation == "save-and-push":
            identifier = arguments.get("identifier")
            if not identifier:
                return "Error: identifier is required for save-and-push"
            resolved = await self._resolve(identifier, notes, "sync")
            if isinstance(resolved, str):
                return resolved
            return _format_sync("Save and push", await sync.save_and_sync(resolved, notes, auto_sync=True))

        if not notes:
            return "No notes to sync"

        if operation == "batch":
            return _format_sync("Batch sync", await sync.batch_sync(notes, message))
        if operation == "emergency":
            return _format_sync("Emergency sync", await sync.emergency_sync(notes))
        if operation == "smart":
            return _format_sync("Smart sync", await sync.smart_sync(notes, force=_flag(arguments.get("force"))))
        return _format_sync("Full sync", await sync.full_sync(notes, message))
