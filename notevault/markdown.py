"""
Markdown document codec for NoteVault MCP Server.

A vault note is stored as one Markdown document:

    ---
    id: "note-1718000000000"
    created: "2024-06-10T06:13:20.000Z"
    updated: "2024-06-11T09:00:00.000Z"
    project: "infra"
    category: ""
    tags: ["infra", "q3"]
    source: "NoteVault"
    version: "3"
    ---

    # Release Plan

    <content>
    %% notevault:end %%

    ---

    ## Related Notes
    ...

The `%% notevault:end %%` line (an Obsidian comment, hidden in preview) ends
the content. Content lines that would read as the boundary are escaped with a
leading backslash. Documents written before the boundary existed (version
"2.0" or no version) are still readable.
"""

import re
from collections.abc import Sequence
from datetime import datetime

import structlog
import yaml
from pydantic import ValidationError

from .models import Note
from .utils import format_date, hashtag, slugify, utc_timestamp

logger = structlog.get_logger(__name__)

SCHEMA_VERSION = "3"
LEGACY_VERSIONS = {"", "2.0"}
DOCUMENT_SOURCE = "NoteVault"
CONTENT_BOUNDARY = "%% notevault:end %%"
UNTITLED = "Untitled"

FRONTMATTER_PATTERN = re.compile(r'^---[ \t]*\n(.*?)\n---[ \t]*(?:\n|$)', re.DOTALL)
BOUNDARY_LINE_PATTERN = re.compile(r'^(\\*)' + re.escape(CONTENT_BOUNDARY) + r'$')
BOUNDARY_SEARCH_PATTERN = re.compile(r'(?:^|\n)' + re.escape(CONTENT_BOUNDARY) + r'(?:\n|$)')
LEGACY_TITLE_PATTERN = re.compile(r'^#\s+(.+)$', re.MULTILINE)
LEGACY_CONTENT_PATTERN = re.compile(r'^\s*#\s+[^\n]+\n\n(.*?)\n\n---', re.DOTALL)


class NoteParseError(ValueError):
    """Raised when a Markdown document cannot be decoded into a Note."""
    pass


# ============== Encoding ==============

def _dump_flow(value: str | list[str]) -> str:
    """Render a value as a single-line, double-quoted YAML flow node.

    PyYAML escapes characters its reader would reject or fold (DEL, NEL,
    line and paragraph separators), so every value reads back unchanged.
    """
    return yaml.safe_dump(
        value,
        default_style='"',
        default_flow_style=True,
        allow_unicode=True,
        width=float("inf"),
    ).rstrip("\n")


def escape_content(content: str) -> str:
    """Escape content lines that would be read as the content boundary."""
    lines = content.split("\n")
    return "\n".join(
        "\\" + line if BOUNDARY_LINE_PATTERN.match(line) else line
        for line in lines
    )


def unescape_content(content: str) -> str:
    """Reverse escape_content."""
    lines = content.split("\n")
    unescaped = []
    for line in lines:
        match = BOUNDARY_LINE_PATTERN.match(line)
        if match and match.group(1):
            line = line[1:]
        unescaped.append(line)
    return "\n".join(unescaped)


def render_frontmatter(note: Note, updated: str) -> str:
    """Render the YAML frontmatter block of a note document."""
    return (
        "---\n"
        f"id: {_dump_flow(note.id)}\n"
        f"created: {_dump_flow(note.timestamp)}\n"
        f"updated: {_dump_flow(updated)}\n"
        f"project: {_dump_flow(note.project or '')}\n"
        f"category: {_dump_flow(note.category or '')}\n"
        f"tags: {_dump_flow(list(note.tags))}\n"
        f"source: {_dump_flow(DOCUMENT_SOURCE)}\n"
        f"version: {_dump_flow(SCHEMA_VERSION)}\n"
        "---\n"
    )


def render_related_section(note: Note, related_notes: Sequence[Note]) -> str:
    """Render the "Related Notes" section, or an empty string when there are none."""
    if not related_notes:
        return ""

    bullets = []
    for related in related_notes:
        shared = " ".join(hashtag(tag) for tag in related.tags if tag in note.tags)
        bullet = f"- [[{slugify(related.title)}|{related.title}]]"
        if shared:
            bullet += f" - {shared}"
        bullets.append(bullet)

    return (
        "\n---\n\n"
        "## Related Notes\n"
        + "\n".join(bullets)
        + "\n\n*Auto-generated connections based on shared tags and content similarity*\n"
    )


def render_footer(note: Note, updated: str) -> str:
    """Render the metadata footer and the trailing hashtag line."""
    footer = (
        "\n---\n\n"
        "## Metadata\n"
        f"- **Project:** {note.project or 'None'}\n"
        f"- **Category:** {note.category or 'None'}\n"
        f"- **Created:** {format_date(note.timestamp)}\n"
        f"- **Updated:** {format_date(updated)}\n"
        f"- **NoteVault ID:** `{note.id}`\n"
    )
    if note.tags:
        footer += "\n" + " ".join(hashtag(tag) for tag in note.tags) + "\n"
    return footer


def encode_note(note: Note, related_notes: Sequence[Note] = (), now: datetime | None = None) -> str:
    """Format a note (and its related notes) as a vault Markdown document.

    Args:
        note: The note to render
        related_notes: Notes to list in the "Related Notes" section
        now: Moment used for the decorative `updated` field (defaults to now)

    Returns:
        The full document text
    """
    updated = utc_timestamp(now)
    return (
        render_frontmatter(note, updated)
        + "\n"
        + f"# {note.title}\n"
        + "\n"
        + escape_content(note.content)
        + "\n"
        + CONTENT_BOUNDARY
        + "\n"
        + render_related_section(note, related_notes)
        + render_footer(note, updated)
    )


# ============== Decoding ==============

def _scalar(meta: dict, field: str) -> str:
    value = meta.get(field)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise NoteParseError(f"frontmatter field '{field}' must be a scalar")
    return value


def _tags(meta: dict) -> list[str]:
    raw = meta.get("tags")
    if raw is None:
        return []
    if isinstance(raw, str):
        # Legacy documents sometimes hold a bare "[a, b]" or "a" string
        raw = [part.strip().strip('"') for part in raw.strip().strip("[]").split(",")]
    if not isinstance(raw, list):
        raise NoteParseError("frontmatter field 'tags' must be a list")
    tags = []
    for tag in raw:
        if not isinstance(tag, str):
            raise NoteParseError("frontmatter field 'tags' must contain strings")
        if tag.strip():
            tags.append(tag)
    return tags


def _parse_body(body: str) -> tuple[str, str]:
    """Split a current-schema body into (title, content)."""
    body = body.lstrip("\n")
    if not body.startswith("# "):
        raise NoteParseError("missing title heading")

    heading, _, remainder = body.partition("\n")
    title = heading[2:]
    if remainder.startswith("\n"):
        remainder = remainder[1:]

    boundary = BOUNDARY_SEARCH_PATTERN.search(remainder)
    if not boundary:
        raise NoteParseError("missing content boundary")

    return title, unescape_content(remainder[:boundary.start()])


def _parse_legacy_body(body: str) -> tuple[str, str]:
    """Split a pre-boundary body: content runs until the first horizontal rule."""
    title_match = LEGACY_TITLE_PATTERN.search(body)
    title = title_match.group(1).strip() if title_match else UNTITLED

    content_match = LEGACY_CONTENT_PATTERN.match(body)
    content = content_match.group(1).strip() if content_match else ""
    return title, content


def parse_note(markdown: str) -> Note:
    """Parse a vault Markdown document back into a Note.

    Raises:
        NoteParseError: If the document structure or metadata is invalid
    """
    match = FRONTMATTER_PATTERN.match(markdown)
    if not match:
        raise NoteParseError("missing frontmatter block")

    try:
        # BaseLoader keeps every scalar a string, so timestamps stay verbatim
        meta = yaml.load(match.group(1), Loader=yaml.BaseLoader)
    except yaml.YAMLError as e:
        raise NoteParseError(f"invalid frontmatter: {e}") from e

    if not isinstance(meta, dict):
        raise NoteParseError("frontmatter is not a mapping")

    note_id = _scalar(meta, "id").strip()
    created = _scalar(meta, "created").strip()
    if not note_id or not created:
        raise NoteParseError("frontmatter is missing 'id' or 'created'")

    version = _scalar(meta, "version").strip()
    body = markdown[match.end():]
    if version == SCHEMA_VERSION:
        title, content = _parse_body(body)
    elif version in LEGACY_VERSIONS:
        title, content = _parse_legacy_body(body)
    else:
        raise NoteParseError(f"unsupported document version: {version}")

    try:
        return Note(
            id=note_id,
            title=title,
            content=content,
            timestamp=created,
            tags=_tags(meta),
            project=_scalar(meta, "project") or None,
            category=_scalar(meta, "category") or None,
        )
    except ValidationError as e:
        raise NoteParseError(f"invalid note fields: {e}") from e


def decode_note(markdown: str) -> Note | None:
    """Parse a vault Markdown document, returning None when it is not a note."""
    try:
        return parse_note(markdown)
    except NoteParseError as e:
        logger.debug("note_parse_failed", error=str(e))
        return None


def extract_pure_content(markdown: str) -> str:
    """Return only the note content of a document, without metadata sections.

    Falls back to the text after the frontmatter when the document is not a
    well-formed note.
    """
    try:
        return parse_note(markdown).content
    except NoteParseError:
        match = FRONTMATTER_PATTERN.match(markdown)
        return (markdown[match.end():] if match else markdown).strip()
