"""
Note linking functions for NoteVault MCP Server.

Contains the relatedness heuristics used to auto-link notes: shared tags,
shared project, shared category, and keyword overlap of the content.
"""

import math
import re
from collections.abc import Sequence

from .models import ConnectionType, Note, RelatedNote

SIMPLE_RELATED_LIMIT = 5
SCORED_RELATED_LIMIT = 10

TAG_WEIGHT = 10
PROJECT_WEIGHT = 15
CATEGORY_WEIGHT = 8
CONTENT_WEIGHT = 5
CONTENT_SIMILARITY_THRESHOLD = 0.3
MAX_KEYWORDS = 20
STRONG_CONNECTION_SCORE = 10

PUNCTUATION_PATTERN = re.compile(r'[^\w\s]')
WORD_SPLIT_PATTERN = re.compile(r'\s+')

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "must", "can", "this", "that", "these", "those",
})

# Concept -> terms that suggest a conceptual relation
CONCEPT_MAP: dict[str, list[str]] = {
    "development": ["coding", "programming", "software", "tech"],
    "design": ["ui", "ux", "interface", "visual"],
    "meeting": ["discussion", "call", "agenda", "notes"],
    "project": ["task", "milestone", "deadline", "deliverable"],
}


def shared_tags(note_a: Note, note_b: Note) -> list[str]:
    """Tags of note_a that note_b also carries, in note_a's order."""
    other = set(note_b.tags)
    result: list[str] = []
    for tag in note_a.tags:
        if tag in other and tag not in result:
            result.append(tag)
    return result


def _shares_project(note_a: Note, note_b: Note) -> bool:
    return bool(note_a.project and note_b.project and note_a.project == note_b.project)


def _shares_category(note_a: Note, note_b: Note) -> bool:
    return bool(note_a.category and note_b.category and note_a.category == note_b.category)


def find_related_notes(current: Note, pool: Sequence[Note], limit: int = SIMPLE_RELATED_LIMIT) -> list[Note]:
    """Find notes to auto-link from `current`.

    A note qualifies when it shares at least one tag or the (non-empty)
    project with `current`. Results are ordered by the number of shared tags;
    ties keep pool order.
    """
    candidates: list[Note] = []
    seen: set[str] = {current.id}

    for note in pool:
        if note.id in seen:
            continue
        if shared_tags(note, current) or _shares_project(note, current):
            seen.add(note.id)
            candidates.append(note)

    candidates.sort(key=lambda note: len(shared_tags(note, current)), reverse=True)
    return candidates[:limit]


def extract_keywords(content: str) -> list[str]:
    """Extract up to 20 distinct keywords from content.

    Lowercases, replaces punctuation with spaces, and drops short words and
    stop words.
    """
    cleaned = PUNCTUATION_PATTERN.sub(" ", content.lower())
    keywords: list[str] = []
    for word in WORD_SPLIT_PATTERN.split(cleaned):
        if len(word) > 3 and word not in STOP_WORDS and word not in keywords:
            keywords.append(word)
            if len(keywords) == MAX_KEYWORDS:
                break
    return keywords


def content_similarity(content_a: str, content_b: str) -> float:
    """Jaccard index of the keyword sets of two contents."""
    words_a = set(extract_keywords(content_a))
    words_b = set(extract_keywords(content_b))

    if not words_a or not words_b:
        return 0.0

    return len(words_a & words_b) / len(words_a | words_b)


def analyze_connection(note_a: Note, note_b: Note) -> RelatedNote:
    """Score how strongly note_b relates to note_a."""
    score = 0
    connection_type: ConnectionType = "content"
    shared_elements: list[str] = []

    tags = shared_tags(note_a, note_b)
    if tags:
        score += len(tags) * TAG_WEIGHT
        connection_type = "tags"
        shared_elements.extend(tags)

    if _shares_project(note_a, note_b):
        score += PROJECT_WEIGHT
        connection_type = "project"
        shared_elements.append(note_a.project)

    if _shares_category(note_a, note_b):
        score += CATEGORY_WEIGHT
        connection_type = "category"
        shared_elements.append(note_a.category)

    similarity = content_similarity(note_a.content, note_b.content)
    if similarity > CONTENT_SIMILARITY_THRESHOLD:
        score += math.floor(similarity * CONTENT_WEIGHT)

    return RelatedNote(
        note=note_b,
        relevance_score=score,
        connection_type=connection_type,
        shared_elements=shared_elements,
    )


def find_related_notes_with_scoring(
    current: Note,
    pool: Sequence[Note],
    limit: int = SCORED_RELATED_LIMIT,
) -> list[RelatedNote]:
    """Find related notes with a detailed relevance score.

    Every note other than `current` with a positive score is kept; results are
    ordered by score, ties keep pool order.
    """
    related: list[RelatedNote] = []
    seen: set[str] = {current.id}

    for note in pool:
        if note.id in seen:
            continue
        seen.add(note.id)
        connection = analyze_connection(current, note)
        if connection.relevance_score > 0:
            related.append(connection)

    related.sort(key=lambda r: r.relevance_score, reverse=True)
    return related[:limit]


def connection_summary(related: RelatedNote) -> str:
    """One-line description of why a note is related."""
    if related.connection_type == "tags":
        return "Shared tags: " + ", ".join(f"#{tag}" for tag in related.shared_elements)
    if related.connection_type == "project":
        return f"Same project: {related.shared_elements[-1] if related.shared_elements else ''}"
    if related.connection_type == "category":
        return f"Same category: {related.shared_elements[-1] if related.shared_elements else ''}"
    return f"Similar content ({related.relevance_score}% match)"


def find_backlinks(target: Note, pool: Sequence[Note]) -> list[Note]:
    """Find notes that should link to `target`.

    A note qualifies when its content mentions the target title, or when it
    shares a specific tag (longer than 4 characters) with the target.
    """
    title_lower = target.title.lower()
    backlinks: list[Note] = []

    for note in pool:
        if note.id == target.id:
            continue
        title_mentioned = bool(title_lower) and title_lower in note.content.lower()
        strong_tag = any(len(tag) > 4 for tag in shared_tags(note, target))
        if title_mentioned or strong_tag:
            backlinks.append(note)

    return backlinks


def _conceptual_similarity(note_a: Note, note_b: Note) -> tuple[float, str]:
    """Score (0-1) and reason for a conceptual relation between two notes."""
    title_words = note_a.title.lower().split()
    other_words = note_b.title.lower().split()
    overlap = [word for word in title_words if word in other_words]

    if overlap:
        score = len(overlap) / max(len(title_words), len(other_words))
        return score, f"Similar title keywords: {', '.join(overlap)}"

    content_a = note_a.content.lower()
    content_b = note_b.content.lower()
    for concept, terms in CONCEPT_MAP.items():
        has_concept = concept in content_a or concept in note_a.tags
        has_related = any(term in content_b or term in note_b.tags for term in terms)
        if has_concept and has_related:
            return 0.7, f"Related concepts: {concept} <-> {'/'.join(terms)}"

    return 0.0, ""


def suggest_connections(current: Note, pool: Sequence[Note], limit: int = SIMPLE_RELATED_LIMIT) -> list[tuple[Note, str]]:
    """Suggest notes worth linking that the tag/project signals may miss."""
    suggestions: list[tuple[Note, str]] = []
    content_lower = current.content.lower()

    for note in pool:
        if note.id == current.id:
            continue

        if note.title and note.title.lower() in content_lower:
            suggestions.append((note, f'Mentions "{note.title}" in content'))
            continue

        score, reason = _conceptual_similarity(current, note)
        if score > 0.6:
            suggestions.append((note, f"Conceptually similar: {reason}"))

    return suggestions[:limit]


def network_density(note: Note, pool: Sequence[Note]) -> float:
    """Share of the other notes that are strongly connected to `note`."""
    others = [n for n in pool if n.id != note.id]
    if not others:
        return 0.0

    connections = find_related_notes_with_scoring(note, others, limit=len(others))
    strong = sum(1 for c in connections if c.relevance_score > STRONG_CONNECTION_SCORE)
    return strong / len(others)
