"""
Flat-file JSON store for NoteVault MCP Server.

One `<id>.json` file per note in the data directory.
"""

import asyncio
from collections.abc import Sequence
from pathlib import Path

import aiofiles
import structlog
from pydantic import ValidationError

from .config import Settings
from .models import Note, newest_first
from .utils import PathValidationError, validate_path_within

logger = structlog.get_logger(__name__)


class JsonNoteStore:
    """JSON store keyed by note id. Related notes are not persisted."""

    extension = ".json"

    def __init__(self, data_dir: Path):
        self.data_dir = data_dir

    @classmethod
    def from_settings(cls, settings: Settings) -> "JsonNoteStore":
        return cls(settings.data_dir)

    @property
    def root(self) -> Path:
        return self.data_dir

    def ensure_structure(self) -> None:
        """Create the data directory if needed."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def filename_for(self, note: Note) -> str:
        return f"{note.id}{self.extension}"

    def _path_for_id(self, note_id: str) -> Path | None:
        try:
            return validate_path_within(f"{note_id}{self.extension}", self.data_dir)
        except PathValidationError:
            logger.warning("note_id_rejected", note_id=note_id)
            return None

    async def _load_note(self, note_file: Path) -> Note | None:
        try:
            async with aiofiles.open(note_file, encoding="utf-8") as f:
                raw = await f.read()
            return Note.model_validate_json(raw)
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            logger.warning("note_read_failed", path=str(note_file), error=str(e))
            return None

    async def list_notes(self) -> list[Note]:
        """All readable notes, newest first."""
        if not self.data_dir.is_dir():
            return []
        files = sorted(self.data_dir.glob(f"*{self.extension}"))
        results = await asyncio.gather(*(self._load_note(f) for f in files))
        return newest_first([note for note in results if note is not None])

    async def get(self, note_id: str) -> Note | None:
        path = self._path_for_id(note_id)
        if path is None or not path.exists():
            return None
        return await self._load_note(path)

    async def put(self, note: Note, related_notes: Sequence[Note] = ()) -> Path:
        """Write (or overwrite) the note's JSON file."""
        self.ensure_structure()
        path = self.data_dir / self.filename_for(note)
        async with aiofiles.open(path, mode="w", encoding="utf-8") as f:
            await f.write(note.model_dump_json(indent=2, exclude_none=True))
        logger.info("note_saved", path=path.name, note_id=note.id)
        return path

    async def delete(self, note: Note) -> bool:
        """Remove the note's file. Returns False when it does not exist."""
        path = self._path_for_id(note.id)
        if path is None or not path.exists():
            return False
        path.unlink()
        logger.info("note_deleted", path=path.name, note_id=note.id)
        return True
