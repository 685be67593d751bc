"""
Utility functions and compiled regex patterns for NoteVault MCP Server.

Contains exceptions, identifier/timestamp helpers, and input validation.
"""

import re
import time
from datetime import datetime, timezone
from pathlib import Path

# Pre-compiled regex patterns for performance
UNSAFE_FILENAME_PATTERN = re.compile(r'[<>:"/\\|?*]')
WHITESPACE_PATTERN = re.compile(r'\s+')
HASHTAG_UNSAFE_PATTERN = re.compile(r'[\s\-]')
NEWLINE_PATTERN = re.compile(r'[\r\n]')

NOTE_ID_PREFIX = "note-"


# ============== Exceptions ==============

class ConfigurationError(Exception):
    """Raised when a required configuration value is missing or unusable."""

    def __init__(self, message: str, remedy: str = ""):
        self.message = message
        self.remedy = remedy
        super().__init__(message)


class PathValidationError(Exception):
    """Raised when path validation fails."""
    pass


class TitleValidationError(Exception):
    """Raised when title validation fails."""
    pass


class ContentValidationError(Exception):
    """Raised when content validation fails."""
    pass


# ============== Helper Functions ==============

def generate_note_id(now: float | None = None) -> str:
    """Generate a timestamp-derived note id (note-<epoch ms>)."""
    millis = int((time.time() if now is None else now) * 1000)
    return f"{NOTE_ID_PREFIX}{millis}"


def is_note_id(identifier: str) -> bool:
    """Check whether an identifier looks like a note id rather than free text."""
    return identifier.startswith(NOTE_ID_PREFIX)


def utc_timestamp(moment: datetime | None = None) -> str:
    """Format a moment as an ISO-8601 UTC string with millisecond precision."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO-8601 timestamp; returns None when it cannot be parsed."""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_date(value: str) -> str:
    """Render a stored timestamp as a short date, or the raw value if unparseable."""
    parsed = parse_timestamp(value)
    return parsed.date().isoformat() if parsed else value


def slugify(title: str, max_length: int = 100) -> str:
    """Derive a filesystem-safe slug from a note title.

    Strips reserved filename characters, collapses whitespace to dashes,
    lowercases and truncates.
    """
    slug = UNSAFE_FILENAME_PATTERN.sub('', title)
    slug = WHITESPACE_PATTERN.sub('-', slug)
    return slug.lower()[:max_length]


def hashtag(tag: str) -> str:
    """Format a tag as an Obsidian hashtag (whitespace and dashes become underscores)."""
    return "#" + HASHTAG_UNSAFE_PATTERN.sub('_', tag)


def truncate(text: str, limit: int = 100) -> str:
    """Shorten text for previews, appending an ellipsis when cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


# ============== Input Validation ==============

def validate_path_within(path_str: str, root: Path) -> Path:
    """Validate that a relative path stays inside a root directory.

    Args:
        path_str: The relative path (or bare filename) to validate
        root: The directory the path must stay in

    Returns:
        The validated absolute Path

    Raises:
        PathValidationError: If the path attempts to escape the root
    """
    if not path_str or not path_str.strip():
        raise PathValidationError("Path cannot be empty")

    if ".." in path_str:
        raise PathValidationError("Path traversal detected: '..' is not allowed")

    if path_str.startswith(("/", "\\")) or (len(path_str) > 1 and path_str[1] == ":"):
        raise PathValidationError("Absolute paths are not allowed")

    full_path = (root / path_str).resolve()
    try:
        full_path.relative_to(root.resolve())
    except ValueError:
        raise PathValidationError(f"Path escapes directory: {path_str}")

    return full_path


def validate_title(title: str, max_length: int = 200) -> str:
    """Validate and sanitize a note title.

    Args:
        title: The title to validate
        max_length: Maximum allowed length

    Returns:
        The validated title

    Raises:
        TitleValidationError: If the title is invalid
    """
    if not title or not title.strip():
        raise TitleValidationError("Title cannot be empty")

    title = title.strip()

    if len(title) > max_length:
        raise TitleValidationError(f"Title exceeds maximum length of {max_length} characters")

    # The title becomes a Markdown heading, which cannot span lines
    if NEWLINE_PATTERN.search(title):
        raise TitleValidationError("Title must be a single line")

    return title


def validate_content_size(content: str, max_size: int = 1 * 1024 * 1024) -> str:
    """Validate content size.

    Args:
        content: The content to validate
        max_size: Maximum allowed size in bytes

    Returns:
        The validated content

    Raises:
        ContentValidationError: If the content exceeds size limits
    """
    content_bytes = len(content.encode('utf-8'))

    if content_bytes > max_size:
        max_mb = max_size / (1024 * 1024)
        actual_mb = content_bytes / (1024 * 1024)
        raise ContentValidationError(
            f"Content size ({actual_mb:.2f}MB) exceeds maximum allowed size ({max_mb}MB)"
        )

    return content
