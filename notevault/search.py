"""
Search functions for NoteVault MCP Server.

Free-text search over a pool of notes by title, content, tags, project, or category.
"""

from collections.abc import Sequence

import structlog

from .models import Note

logger = structlog.get_logger(__name__)


def score_note(note: Note, query_lower: str) -> int:
    """Score how well a note matches a lowercase query (0 means no match)."""
    score = 0

    if query_lower in note.title.lower():
        score += 10

    if any(query_lower in tag.lower() for tag in note.tags):
        score += 5

    if note.project and query_lower in note.project.lower():
        score += 3

    if note.category and query_lower in note.category.lower():
        score += 3

    score += note.content.lower().count(query_lower)

    return score


def search_notes(notes: Sequence[Note], query: str, max_results: int | None = None) -> list[Note]:
    """Search notes by case-insensitive substring match.

    Matches title, content, tags, project and category. Results are ranked by
    score (title matches first); equal scores keep the input order.
    """
    query_lower = query.strip().lower()
    if not query_lower:
        return []

    scored: list[tuple[int, Note]] = []
    for note in notes:
        score = score_note(note, query_lower)
        if score > 0:
            scored.append((score, note))

    scored.sort(key=lambda item: item[0], reverse=True)
    results = [note for _, note in scored]
    if max_results is not None:
        results = results[:max_results]

    logger.debug("search_completed", query=query, results=len(results))
    return results
