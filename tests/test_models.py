"""
Tests for NoteVault models and utilities.
"""

import pytest
from datetime import datetime, timezone


# ============== Tests for Note ==============

class TestNote:
    """Tests for the Note model."""

    def test_create_assigns_id_and_timestamp(self):
        """Test that create() derives id and timestamp from the same moment."""
        from notevault.models import Note

        moment = datetime(2024, 6, 10, 6, 13, 20, tzinfo=timezone.utc)
        note = Note.create("Release Plan", "Body", tags=["infra", "q3"], now=moment)

        assert note.id == f"note-{int(moment.timestamp() * 1000)}"
        assert note.timestamp == "2024-06-10T06:13:20.000Z"
        assert note.tags == ["infra", "q3"]

    def test_create_deduplicates_tags(self):
        """Test that duplicate tags are dropped on creation."""
        from notevault.models import Note

        note = Note.create("T", "", tags=["a", "b", "a"])
        assert note.tags == ["a", "b"]

    def test_id_and_timestamp_are_frozen(self, make_note):
        """Test that id and timestamp cannot be reassigned."""
        from pydantic import ValidationError

        note = make_note("Frozen")
        with pytest.raises(ValidationError):
            note.id = "note-other"
        with pytest.raises(ValidationError):
            note.timestamp = "2000-01-01T00:00:00.000Z"

    def test_title_must_be_single_line(self):
        """Test that multi-line titles are rejected."""
        from pydantic import ValidationError
        from notevault.models import Note

        with pytest.raises(ValidationError):
            Note(id="note-1", title="two\nlines", timestamp="2024-01-01T00:00:00.000Z")

    def test_blank_project_and_category_become_none(self):
        """Test that empty strings are normalized to None."""
        from notevault.models import Note

        note = Note(id="note-1", title="T", timestamp="x", project="", category="  ")
        assert note.project is None
        assert note.category is None

    def test_none_tags_become_empty_list(self):
        """Test that tags are always a list."""
        from notevault.models import Note

        note = Note(id="note-1", title="T", timestamp="x", tags=None)
        assert note.tags == []

    def test_created_at_parses_timestamp(self, make_note):
        """Test created_at for valid and invalid timestamps."""
        note = make_note("A")
        assert note.created_at == datetime(2024, 6, 10, 1, tzinfo=timezone.utc)

        broken = make_note("B", timestamp="yesterday")
        assert broken.created_at is None


# ============== Tests for NoteUpdate ==============

class TestNoteUpdate:
    """Tests for partial updates."""

    def test_tag_merge_has_no_duplicates_or_removed_tags(self, make_note):
        """Test add_tags/remove_tags against existing tags."""
        from notevault.models import NoteUpdate

        note = make_note("T", tags=["a", "b", "c"])
        update = NoteUpdate(add_tags=["c", "d", "d", "e"], remove_tags=["b", "e"])
        updated = note.apply_update(update)

        assert updated.tags == ["a", "c", "d"]
        assert len(updated.tags) == len(set(updated.tags))
        assert not {"b", "e"} & set(updated.tags)

    def test_tags_replace_existing(self, make_note):
        """Test that an explicit tag list replaces the old tags."""
        from notevault.models import NoteUpdate

        note = make_note("T", tags=["a", "b"])
        updated = note.apply_update(NoteUpdate(tags=["x", "x", "y"], add_tags=["ignored"]))
        assert updated.tags == ["x", "y"]

    def test_update_keeps_id_and_timestamp(self, make_note):
        """Test that identity survives an update."""
        from notevault.models import NoteUpdate

        note = make_note("Old", "old body")
        updated = note.apply_update(NoteUpdate(title="New", content="new body"))

        assert updated.id == note.id
        assert updated.timestamp == note.timestamp
        assert updated.title == "New"
        assert updated.content == "new body"

    def test_only_provided_fields_change(self, make_note):
        """Test that absent fields are left alone and empty strings clear."""
        from notevault.models import NoteUpdate

        note = make_note("T", project="platform", category="idea")

        assert NoteUpdate().changes(note.tags) == {}
        assert note.apply_update(NoteUpdate(title="X")).project == "platform"

        cleared = note.apply_update(NoteUpdate(project=""))
        assert cleared.project is None
        assert cleared.category == "idea"


# ============== Tests for newest_first() ==============

class TestNewestFirst:
    """Tests for note ordering."""

    def test_orders_by_timestamp_descending(self, make_note):
        """Test newest notes come first and unparseable timestamps last."""
        from notevault.models import newest_first

        old = make_note("Old")
        new = make_note("New")
        broken = make_note("Broken", timestamp="not a date")

        assert [n.title for n in newest_first([broken, old, new])] == ["New", "Old", "Broken"]


# ============== Tests for GitResult ==============

class TestGitResult:
    """Tests for the git result model."""

    def test_output_prefers_stderr_on_failure(self):
        """Test the output property."""
        from notevault.models import GitResult

        assert GitResult(success=False, stdout="out", stderr="err").output == "err"
        assert GitResult(success=False, stdout="out").output == "out"
        assert GitResult(success=True, stdout="out", stderr="warn").output == "out"


# ============== Tests for utils ==============

class TestUtils:
    """Tests for helper functions and validation."""

    def test_slugify(self):
        """Test slug derivation from titles."""
        from notevault.utils import slugify

        assert slugify("Release Plan") == "release-plan"
        assert slugify('What: is <this>?') == "what-is-this"
        assert slugify("x" * 150) == "x" * 100

    def test_hashtag(self):
        """Test hashtag formatting."""
        from notevault.utils import hashtag

        assert hashtag("machine learning") == "#machine_learning"
        assert hashtag("q3-goals") == "#q3_goals"

    def test_is_note_id(self):
        """Test id detection."""
        from notevault.utils import is_note_id

        assert is_note_id("note-1718000000000")
        assert not is_note_id("Release Plan")

    def test_utc_timestamp_format(self):
        """Test ISO formatting with milliseconds and Z suffix."""
        from notevault.utils import utc_timestamp

        moment = datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
        assert utc_timestamp(moment) == "2024-01-02T03:04:05.678Z"

    def test_validate_title(self):
        """Test title validation."""
        from notevault.utils import TitleValidationError, validate_title

        assert validate_title("  Padded  ") == "Padded"
        with pytest.raises(TitleValidationError, match="empty"):
            validate_title("   ")
        with pytest.raises(TitleValidationError, match="maximum length"):
            validate_title("x" * 11, max_length=10)
        with pytest.raises(TitleValidationError, match="single line"):
            validate_title("two\nlines")

    def test_validate_content_size(self):
        """Test content size validation."""
        from notevault.utils import ContentValidationError, validate_content_size

        assert validate_content_size("small", max_size=10) == "small"
        with pytest.raises(ContentValidationError):
            validate_content_size("x" * 11, max_size=10)

    def test_validate_path_within(self, tmp_path):
        """Test traversal protection."""
        from notevault.utils import PathValidationError, validate_path_within

        assert validate_path_within("a.md", tmp_path) == (tmp_path / "a.md").resolve()
        for bad in ("../a.md", "/etc/passwd", "", "C:evil"):
            with pytest.raises(PathValidationError):
                validate_path_within(bad, tmp_path)
