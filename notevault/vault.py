"""
Vault store for NoteVault MCP Server.

Reads and writes notes as Markdown documents inside the notes folder of the
vault. Every call re-reads the folder; there is no cache.
"""

import asyncio
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

import aiofiles
import structlog

from .config import Settings
from .json_store import JsonNoteStore
from .markdown import NoteParseError, encode_note, parse_note
from .models import Note, newest_first
from .utils import ConfigurationError, PathValidationError, slugify, validate_path_within

logger = structlog.get_logger(__name__)


class VaultStore:
    """Markdown vault store: one `<slug>.md` file per note.

    The slug comes from the mutable title, so the store looks files up by the
    note id stored in their frontmatter. A title change moves the note to a
    new file and removes the old one.
    """

    extension = ".md"

    def __init__(self, vault_path: Path, subfolder: str):
        self.vault_path = vault_path
        self.notes_path = vault_path / subfolder

    @classmethod
    def from_settings(cls, settings: Settings) -> "VaultStore":
        return cls(settings.require_vault_path(), settings.notes_subfolder)

    @property
    def root(self) -> Path:
        return self.vault_path

    def ensure_structure(self) -> None:
        """Check the vault exists and create the notes folder if needed.

        Raises:
            ConfigurationError: If the vault directory does not exist
        """
        if not self.vault_path.is_dir():
            raise ConfigurationError(
                f"Vault directory does not exist: {self.vault_path}",
                remedy="Create the directory or point OBSIDIAN_VAULT_PATH at an existing vault",
            )
        self.notes_path.mkdir(parents=True, exist_ok=True)

    def filename_for(self, note: Note) -> str:
        """Filename derived from the note title (falls back to the id)."""
        slug = slugify(note.title)
        filename = f"{slug}{self.extension}"
        try:
            validate_path_within(filename, self.notes_path)
        except PathValidationError:
            filename = f"{note.id}{self.extension}"
        return filename

    def note_files(self) -> list[Path]:
        """All Markdown files directly inside the notes folder."""
        if not self.notes_path.is_dir():
            return []
        return sorted(p for p in self.notes_path.glob(f"*{self.extension}") if p.is_file())

    async def _load_note(self, note_file: Path) -> tuple[Path, Note] | None:
        """Load a single note from disk, or None when it cannot be decoded."""
        try:
            async with aiofiles.open(note_file, encoding="utf-8", newline="") as f:
                content = await f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("note_read_failed", path=str(note_file), error=str(e))
            return None

        try:
            return note_file, parse_note(content)
        except NoteParseError as e:
            logger.warning("note_decode_failed", path=str(note_file), error=str(e))
            return None

    async def _load_all(self) -> list[tuple[Path, Note]]:
        results = await asyncio.gather(*(self._load_note(p) for p in self.note_files()))
        return [entry for entry in results if entry is not None]

    async def list_notes(self) -> list[Note]:
        """All decodable notes, newest first."""
        return newest_first([note for _, note in await self._load_all()])

    async def get(self, note_id: str) -> Note | None:
        for _, note in await self._load_all():
            if note.id == note_id:
                return note
        return None

    async def find_path(self, note_id: str) -> Path | None:
        """Path of the file currently holding the note with this id."""
        for path, note in await self._load_all():
            if note.id == note_id:
                return path
        return None

    async def put(self, note: Note, related_notes: Sequence[Note] = ()) -> Path:
        """Write (or overwrite) the note document.

        Returns:
            Path of the written file
        """
        self.ensure_structure()
        entries = await self._load_all()
        owners = {path: stored.id for path, stored in entries}
        previous_path = next((path for path, stored in entries if stored.id == note.id), None)

        target = self.notes_path / self.filename_for(note)
        if target.exists() and owners.get(target) != note.id:
            # Another note (or a foreign file) already uses this name
            alternative = self.notes_path / f"{target.stem}-{note.id}{self.extension}"
            logger.warning(
                "note_filename_collision",
                filename=target.name,
                note_id=note.id,
                used=alternative.name,
            )
            target = alternative

        async with aiofiles.open(target, mode="w", encoding="utf-8", newline="") as f:
            await f.write(encode_note(note, related_notes))

        if previous_path is not None and previous_path != target:
            previous_path.unlink(missing_ok=True)
            logger.info("note_file_renamed", old=previous_path.name, new=target.name, note_id=note.id)

        logger.info("note_saved", path=str(target.relative_to(self.vault_path)), note_id=note.id)
        return target

    async def delete(self, note: Note) -> bool:
        """Remove the note's file. Returns False when no file was found."""
        path = await self.find_path(note.id)
        if path is None:
            fallback = self.notes_path / self.filename_for(note)
            path = fallback if fallback.exists() else None
        if path is None:
            return False

        path.unlink()
        logger.info("note_deleted", path=str(path.relative_to(self.vault_path)), note_id=note.id)
        return True


class NoteStore(Protocol):
    """Interface shared by the vault and JSON stores."""

    @property
    def root(self) -> Path: ...

    def ensure_structure(self) -> None: ...

    def filename_for(self, note: Note) -> str: ...

    async def list_notes(self) -> list[Note]: ...

    async def get(self, note_id: str) -> Note | None: ...

    async def put(self, note: Note, related_notes: Sequence[Note] = ()) -> Path: ...

    async def delete(self, note: Note) -> bool: ...


def create_store(settings: Settings) -> NoteStore:
    """Build the store selected by NOTES_STORAGE.

    Raises:
        ConfigurationError: If the vault backend is selected without a vault path
    """
    if settings.storage_backend == "json":
        return JsonNoteStore.from_settings(settings)
    return VaultStore.from_settings(settings)
