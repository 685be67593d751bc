"""
Sync orchestrator for NoteVault MCP Server.

Combines note writes with git operations: pull, relink and rewrite every
note, then commit and push. Every public operation returns a SyncResult;
exceptions are logged and turned into failed results here.
"""

import functools
from collections.abc import Awaitable, Callable, Sequence
from typing import ParamSpec

import structlog

from .config import Settings
from .git import NO_CHANGES_MESSAGE, GitRepository
from .linking import find_related_notes
from .models import Note, SyncResult
from .vault import NoteStore

logger = structlog.get_logger(__name__)

DEFAULT_COMMIT_MESSAGE = "Update notes via NoteVault"
FULL_SYNC_MESSAGE = "Full sync: update all notes with related links"

P = ParamSpec("P")


def sync_operation(failure_message: str):
    """Convert any exception raised by the wrapped operation into a failed SyncResult."""

    def decorator(func: Callable[P, Awaitable[SyncResult]]) -> Callable[P, Awaitable[SyncResult]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> SyncResult:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                logger.exception("sync_operation_failed", operation=func.__name__, error=str(e))
                return SyncResult(success=False, message=failure_message, details=str(e))

        return wrapper

    return decorator


class SyncOrchestrator:
    """Keeps the note store and its git repository in step."""

    def __init__(self, settings: Settings, store: NoteStore, git: GitRepository):
        self.settings = settings
        self.store = store
        self.git = git

    async def _write_with_links(self, note: Note, pool: Sequence[Note]) -> int:
        """Write one note with its related-notes section; returns the link count."""
        related = find_related_notes(note, pool)
        await self.store.put(note, related)
        return len(related)

    @sync_operation("Failed to check sync setup")
    async def check_setup(self) -> SyncResult:
        """Verify the notes directory exists and is a git repository."""
        path = self.git.path
        if not path.is_dir():
            return SyncResult(
                success=False,
                message="Notes directory not found",
                details=f"Path does not exist: {path}. Create it or fix the configured path.",
            )

        if not await self.git.is_repository():
            return SyncResult(
                success=False,
                message="Git repository not properly configured",
                details=f"{path} is not a Git repository. Run `git init` first (sync operation `init`).",
            )

        remote = await self.git.remote_info()
        branch = await self.git.current_branch()
        if not remote.has_remote:
            details = f"Branch: {branch}\nNo remote configured. Run `git remote add {self.git.remote} <url>` to enable push and pull."
        else:
            details = f"Branch: {branch}\nRemote: {remote.remote_name} ({remote.remote_url})"
        return SyncResult(success=True, message="Sync setup is ready", details=details)

    @sync_operation("Failed to initialize Git repository")
    async def init_repository(self) -> SyncResult:
        """Create the notes directory and run `git init` in it when needed."""
        self.store.ensure_structure()
        if await self.git.is_repository():
            setup = await self.check_setup()
            return SyncResult(success=True, message="Git repository already initialized", details=setup.details)

        result = await self.git.init()
        if not result.success:
            return SyncResult(success=False, message="Failed to initialize Git repository", details=result.output)

        logger.info("repository_initialized", path=str(self.git.path), branch=self.git.branch)
        return SyncResult(
            success=True,
            message="Initialized Git repository",
            details=(
                f"Path: {self.git.path}\nBranch: {self.git.branch}\n"
                f"Run `git remote add {self.git.remote} <url>` to enable push and pull."
            ),
        )

    @sync_operation("Failed to get sync status")
    async def status(self) -> SyncResult:
        setup = await self.check_setup()
        if not setup.success:
            return setup

        status = await self.git.status()
        lines = [
            f"Branch: {status.current_branch}",
            f"Uncommitted changes: {'Yes' if status.has_uncommitted_changes else 'No'}",
            f"Unpushed commits: {'Yes' if status.has_unpushed_commits else 'No'}",
            f"Remote: {status.remote_name or 'not configured'}",
            f"Last commit: {status.last_commit_hash or 'none'}",
            f"Auto-sync on save: {'Enabled' if self.settings.auto_sync_on_save else 'Disabled'}",
        ]
        if status.modified_files:
            lines.append("Modified files:")
            lines.extend(f"- {path}" for path in status.modified_files)

        clean = not (status.has_uncommitted_changes or status.has_unpushed_commits)
        return SyncResult(
            success=True,
            message="Repository is in sync" if clean else "Repository has pending changes",
            details="\n".join(lines),
            notes_affected=len(status.modified_files),
        )

    @sync_operation("Failed to get sync statistics")
    async def stats(self) -> SyncResult:
        """Note count and repository overview. Works without a git repository."""
        notes = await self.store.list_notes()
        lines = [f"Storage: {self.store.root} ({self.settings.storage_backend})"]
        if self.settings.storage_backend == "vault":
            lines.append(f"Notes folder: {self.settings.notes_subfolder}")
        lines.append(f"Notes: {len(notes)}")

        info = await self.git.repository_info()
        if not info.is_repo:
            lines.append("Git repository: No")
        else:
            branches = await self.git.list_branches()
            lines.append("Git repository: Yes")
            lines.append(f"Branches: {', '.join(branches) or 'none'}")
            lines.append(f"Remote: {info.remote.remote_url if info.has_remote else 'not configured'}")
            recent = await self.git.log(5)
            if recent.success and recent.stdout:
                lines.append("Recent commits:")
                lines.extend(f"- {line}" for line in recent.stdout.splitlines())

        return SyncResult(
            success=True,
            message=f"Found {len(notes)} notes",
            details="\n".join(lines),
            notes_affected=len(notes),
        )

    @sync_operation("Health check failed")
    async def health_check(self) -> SyncResult:
        """Check setup, note loading and repository status in one pass."""
        setup = await self.check_setup()
        if not setup.success:
            return setup

        notes = await self.store.list_notes()
        status = await self.status()
        return SyncResult(
            success=True,
            message="System health check passed",
            details=(
                f"Storage: {self.store.root}\n"
                f"Notes loaded: {len(notes)}\n"
                f"Git status: {'OK' if status.success else 'Warning'}\n"
                f"Sync ready: Yes"
            ),
            notes_affected=len(notes),
        )

    @sync_operation("Failed to pull changes")
    async def pull(self) -> SyncResult:
        setup = await self.check_setup()
        if not setup.success:
            return setup

        result = await self.git.pull()
        if not result.success:
            return SyncResult(success=False, message="Failed to pull changes", details=result.output)
        return SyncResult(
            success=True,
            message="Successfully pulled latest changes",
            details=result.stdout or "Already up to date",
        )

    @sync_operation("Failed to commit changes")
    async def commit(self, message: str | None = None) -> SyncResult:
        setup = await self.check_setup()
        if not setup.success:
            return setup

        result = await self.git.add_and_commit(message or DEFAULT_COMMIT_MESSAGE)
        if not result.success:
            return SyncResult(success=False, message="Failed to commit changes", details=result.output)
        if result.stdout == NO_CHANGES_MESSAGE:
            return SyncResult(success=True, message=NO_CHANGES_MESSAGE, details="Working tree is clean")
        return SyncResult(success=True, message="Changes committed", details=result.stdout)

    @sync_operation("Failed to push changes")
    async def push(self) -> SyncResult:
        setup = await self.check_setup()
        if not setup.success:
            return setup

        result = await self.git.push()
        if not result.success:
            return SyncResult(success=False, message="Failed to push changes", details=result.output)
        return SyncResult(
            success=True,
            message="Successfully pushed changes",
            details=result.stdout or result.stderr or "Everything up-to-date",
        )

    @sync_operation("Failed to commit and push changes")
    async def commit_and_push(self, message: str | None = None) -> SyncResult:
        setup = await self.check_setup()
        if not setup.success:
            return setup

        result = await self.git.add_commit_and_push(message or DEFAULT_COMMIT_MESSAGE)
        if not result.success:
            return SyncResult(success=False, message="Failed to commit and push changes", details=result.output)
        if result.stdout == NO_CHANGES_MESSAGE:
            return SyncResult(success=True, message=NO_CHANGES_MESSAGE, details="Repository is up to date")
        return SyncResult(success=True, message="Successfully committed and pushed changes", details=result.stdout)

    @sync_operation("Full sync failed")
    async def full_sync(self, notes: Sequence[Note], message: str | None = None) -> SyncResult:
        """Pull, rewrite every note with its related links, then commit and push.

        Stops at the first failing step; notes already written stay written.
        """
        setup = await self.check_setup()
        if not setup.success:
            return setup

        pulled = await self.git.pull()
        if not pulled.success:
            return SyncResult(success=False, message="Failed to pull changes", details=pulled.output)

        self.store.ensure_structure()
        connections = 0
        for note in notes:
            connections += await self._write_with_links(note, notes)
        logger.info("notes_relinked", notes=len(notes), connections=connections)

        pushed = await self.commit_and_push(message or FULL_SYNC_MESSAGE)
        if not pushed.success:
            return SyncResult(
                success=False,
                message="Notes written but commit and push failed",
                details=pushed.details,
                notes_affected=len(notes),
                connections_created=connections,
            )

        return SyncResult(
            success=True,
            message=f"Full sync completed: {len(notes)} notes, {connections} connections",
            details=pushed.details,
            notes_affected=len(notes),
            connections_created=connections,
        )

    @sync_operation("Failed to save note")
    async def save_and_sync(
        self,
        note: Note,
        pool: Sequence[Note],
        auto_sync: bool | None = None,
    ) -> SyncResult:
        """Write a note with its related links; commit and push it when auto-syncing."""
        if auto_sync is None:
            auto_sync = self.settings.auto_sync_on_save

        connections = await self._write_with_links(note, pool)
        filename = self.store.filename_for(note)
        if not auto_sync:
            return SyncResult(
                success=True,
                message=f"Note saved: {filename}",
                details=f"{connections} related notes linked",
                notes_affected=1,
                connections_created=connections,
            )

        pushed = await self.commit_and_push(f"Add note: {note.title}")
        if not pushed.success:
            return SyncResult(
                success=False,
                message="Note saved locally but Git sync failed",
                details=f"{pushed.message}\n{pushed.details}".strip(),
                notes_affected=1,
                connections_created=connections,
            )
        return SyncResult(
            success=True,
            message=f"Note saved and synced: {filename}",
            details=pushed.details,
            notes_affected=1,
            connections_created=connections,
        )

    @sync_operation("Failed to delete note")
    async def delete_and_sync(self, note: Note, auto_sync: bool | None = None) -> SyncResult:
        if auto_sync is None:
            auto_sync = self.settings.auto_sync_on_save

        if not await self.store.delete(note):
            return SyncResult(
                success=False,
                message=f"Note not found: {note.id}",
                details=f"No file found for note \"{note.title}\"",
            )
        if not auto_sync:
            return SyncResult(success=True, message=f"Note deleted: {note.title}", notes_affected=1)

        pushed = await self.commit_and_push(f"Delete note: {note.title}")
        if not pushed.success:
            return SyncResult(
                success=False,
                message="Note deleted locally but Git sync failed",
                details=f"{pushed.message}\n{pushed.details}".strip(),
                notes_affected=1,
            )
        return SyncResult(success=True, message=f"Note deleted and synced: {note.title}", notes_affected=1)

    @sync_operation("Batch sync failed")
    async def batch_sync(self, notes: Sequence[Note], message: str | None = None) -> SyncResult:
        """Rewrite all notes and record them in a single commit."""
        setup = await self.check_setup()
        if not setup.success:
            return setup

        self.store.ensure_structure()
        connections = 0
        for note in notes:
            connections += await self._write_with_links(note, notes)

        pushed = await self.commit_and_push(message or f"Batch sync: {len(notes)} notes updated")
        if not pushed.success:
            return SyncResult(
                success=False,
                message="Notes written but commit and push failed",
                details=pushed.details,
                notes_affected=len(notes),
                connections_created=connections,
            )
        return SyncResult(
            success=True,
            message=f"Batch sync completed: {len(notes)} notes",
            details=pushed.details,
            notes_affected=len(notes),
            connections_created=connections,
        )

    @sync_operation("Smart sync failed")
    async def smart_sync(self, notes: Sequence[Note], force: bool = False) -> SyncResult:
        """Run a full sync only when the repository has pending work (or when forced)."""
        if not force:
            setup = await self.check_setup()
            if not setup.success:
                return setup
            status = await self.git.status()
            if not (status.has_uncommitted_changes or status.has_unpushed_commits):
                return SyncResult(
                    success=True,
                    message="Smart sync: no changes detected",
                    details="Vault is already synchronized",
                    notes_affected=0,
                )
        return await self.full_sync(notes)

    @sync_operation("Emergency sync failed")
    async def emergency_sync(self, notes: Sequence[Note]) -> SyncResult:
        """Full sync with one recovery attempt: pull, then retry once."""
        first = await self.full_sync(notes)
        if first.success:
            return first

        logger.warning("emergency_sync_retry", reason=first.message)
        await self.git.pull()
        second = await self.full_sync(notes)
        if second.success:
            return second.model_copy(update={"message": f"Recovered after retry. {second.message}"})
        return SyncResult(
            success=False,
            message="Emergency sync failed after retry",
            details=f"First attempt: {first.message}\nSecond attempt: {second.message}\n{second.details}".strip(),
        )
