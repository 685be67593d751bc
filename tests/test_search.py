"""
Tests for free-text note search.
"""


# ============== Tests for search_notes() ==============

class TestSearchNotes:
    """Tests for the search_notes function."""

    def test_title_matches_rank_first(self, make_note):
        """Test that a title hit outranks content hits."""
        from notevault.search import search_notes

        body_hit = make_note("Weekly sync", "Talked about docker images and docker compose.")
        title_hit = make_note("Docker tips", "Use multi-stage builds.")

        results = search_notes([body_hit, title_hit], "docker")
        assert results == [title_hit, body_hit]

    def test_case_insensitive(self, make_note):
        """Test that queries ignore case."""
        from notevault.search import search_notes

        note = make_note("Kubernetes Notes")
        assert search_notes([note], "KUBERNETES") == [note]

    def test_matches_tags_project_and_category(self, make_note):
        """Test the non-text fields."""
        from notevault.search import search_notes

        tagged = make_note("A", tags=["finance"])
        project = make_note("B", project="finance-2024")
        category = make_note("C", category="Finance")
        miss = make_note("D", "nothing here")

        results = search_notes([miss, category, project, tagged], "finance")
        assert results == [tagged, category, project]

    def test_score_counts_content_occurrences(self, make_note):
        """Test that repeated content hits raise the score."""
        from notevault.search import score_note

        note = make_note("Untitled", "cache miss, cache hit, cache eviction")
        assert score_note(note, "cache") == 3

    def test_empty_query_returns_nothing(self, make_note):
        """Test that blank queries match nothing."""
        from notevault.search import search_notes

        assert search_notes([make_note("A")], "   ") == []

    def test_no_match(self, make_note):
        """Test a query with no hits."""
        from notevault.search import search_notes

        assert search_notes([make_note("A", "alpha")], "omega") == []

    def test_max_results(self, make_note):
        """Test truncation of ranked results; ties keep input order."""
        from notevault.search import search_notes

        notes = [make_note(f"Plan {i}") for i in range(5)]
        assert search_notes(notes, "plan", max_results=2) == notes[:2]
