"""
Tests for related-note discovery and connection scoring.
"""

import pytest


# ============== Tests for find_related_notes() ==============

class TestFindRelatedNotes:
    """Tests for the simple relatedness form used for auto-linking."""

    def test_release_plan_scenario(self, make_note):
        """Test that a shared tag links exactly the other note."""
        from notevault.linking import find_related_notes, find_related_notes_with_scoring

        plan = make_note("Release Plan", tags=["infra", "q3"])
        budget = make_note("Infra Budget", tags=["infra", "finance"])

        assert find_related_notes(plan, [plan, budget]) == [budget]

        scored = find_related_notes_with_scoring(plan, [plan, budget])
        assert [r.note for r in scored] == [budget]
        assert "infra" in scored[0].shared_elements

    def test_never_includes_self(self, make_note):
        """Test that the current note is skipped, even when duplicated."""
        from notevault.linking import find_related_notes

        note = make_note("Self", tags=["a"])
        assert find_related_notes(note, [note, note]) == []

    def test_limit_is_five(self, make_note):
        """Test the default result cap."""
        from notevault.linking import find_related_notes

        current = make_note("Hub", tags=["shared"])
        pool = [make_note(f"Spoke {i}", tags=["shared"]) for i in range(8)]

        assert len(find_related_notes(current, pool)) == 5
        assert len(find_related_notes(current, pool, limit=2)) == 2

    def test_ordered_by_shared_tag_count(self, make_note):
        """Test that more shared tags rank higher and ties keep pool order."""
        from notevault.linking import find_related_notes

        current = make_note("Current", tags=["a", "b", "c"])
        one_a = make_note("One A", tags=["a"])
        three = make_note("Three", tags=["a", "b", "c"])
        one_b = make_note("One B", tags=["b"])
        two = make_note("Two", tags=["a", "c"])

        related = find_related_notes(current, [one_a, three, one_b, two])
        assert [n.title for n in related] == ["Three", "Two", "One A", "One B"]

    def test_shared_project_qualifies(self, make_note):
        """Test that a common project is enough without shared tags."""
        from notevault.linking import find_related_notes

        current = make_note("Current", project="platform")
        same_project = make_note("Same", project="platform")
        same_category = make_note("Category only", category="meeting")
        other = make_note("Other", project="website")

        assert find_related_notes(current, [same_project, same_category, other]) == [same_project]

    def test_empty_pool(self, make_note):
        """Test that an empty pool gives no related notes."""
        from notevault.linking import find_related_notes

        assert find_related_notes(make_note("Alone", tags=["x"], project="p"), []) == []

    def test_missing_project_never_matches(self, make_note):
        """Test that two notes without a project are not related by it."""
        from notevault.linking import find_related_notes

        assert find_related_notes(make_note("A"), [make_note("B")]) == []


# ============== Tests for analyze_connection() ==============

class TestAnalyzeConnection:
    """Tests for the weighted relevance score."""

    def test_two_shared_tags_score_twenty(self, make_note):
        """Test that only two shared tags give a score of 20."""
        from notevault.linking import analyze_connection

        a = make_note("A", tags=["x", "y"])
        b = make_note("B", tags=["y", "x", "z"])

        connection = analyze_connection(a, b)
        assert connection.relevance_score == 20
        assert connection.connection_type == "tags"
        assert connection.shared_elements == ["x", "y"]

    def test_project_and_category_weights(self, make_note):
        """Test project (+15) and category (+8) weights and type precedence."""
        from notevault.linking import analyze_connection

        a = make_note("A", tags=["x"], project="p", category="c")
        b = make_note("B", tags=["x"], project="p", category="c")

        connection = analyze_connection(a, b)
        assert connection.relevance_score == 10 + 15 + 8
        assert connection.connection_type == "category"
        assert connection.shared_elements == ["x", "p", "c"]

    def test_content_similarity_bonus(self, make_note):
        """Test the floor(similarity * 5) bonus above the threshold."""
        from notevault.linking import analyze_connection

        text = "kubernetes cluster upgrade checklist"
        connection = analyze_connection(make_note("A", text), make_note("B", text))

        assert connection.relevance_score == 5
        assert connection.connection_type == "content"

    def test_unrelated_notes_score_zero(self, make_note):
        """Test that nothing in common means no score."""
        from notevault.linking import analyze_connection

        connection = analyze_connection(make_note("A", "apples oranges"), make_note("B", "rockets planets"))
        assert connection.relevance_score == 0


# ============== Tests for find_related_notes_with_scoring() ==============

class TestScoredRelatedNotes:
    """Tests for the scored relatedness form."""

    def test_sorted_by_score_and_limited(self, make_note):
        """Test ordering, the default cap of 10, and exclusion of zero scores."""
        from notevault.linking import find_related_notes_with_scoring

        current = make_note("Current", tags=["a", "b"], project="p")
        pool = [make_note(f"Tag {i}", tags=["a"]) for i in range(12)]
        strongest = make_note("Strongest", tags=["a", "b"], project="p")
        unrelated = make_note("Unrelated", tags=["zzz"])
        pool += [strongest, unrelated, current]

        related = find_related_notes_with_scoring(current, pool)

        assert len(related) == 10
        assert related[0].note == strongest
        assert related[0].relevance_score == 35
        assert all(r.note.id not in (current.id, unrelated.id) for r in related)
        assert all(r.relevance_score > 0 for r in related)

    def test_empty_pool(self, make_note):
        """Test that an empty pool gives no scored results."""
        from notevault.linking import find_related_notes_with_scoring

        assert find_related_notes_with_scoring(make_note("Alone", tags=["x"]), []) == []


# ============== Tests for keyword helpers ==============

class TestKeywords:
    """Tests for keyword extraction and similarity."""

    def test_extract_keywords(self):
        """Test punctuation, short words and stop words are dropped."""
        from notevault.linking import extract_keywords

        assert extract_keywords("The quick, brown fox: jumps! quick") == ["quick", "brown", "jumps"]

    def test_keywords_capped_at_twenty(self):
        """Test the keyword cap."""
        from notevault.linking import extract_keywords

        words = " ".join(f"word{i:02d}" for i in range(30))
        assert len(extract_keywords(words)) == 20

    @pytest.mark.parametrize("a, b, expected", [
        ("alpha bravo charlie", "alpha bravo charlie", 1.0),
        ("alpha bravo", "charlie delta", 0.0),
        ("alpha bravo", "bravo charlie", 1 / 3),
        ("", "alpha", 0.0),
    ])
    def test_content_similarity(self, a, b, expected):
        """Test the Jaccard index of keyword sets."""
        from notevault.linking import content_similarity

        assert content_similarity(a, b) == pytest.approx(expected)


# ============== Tests for connection analysis helpers ==============

class TestConnectionHelpers:
    """Tests for backlinks, suggestions, summaries and density."""

    def test_find_backlinks(self, make_note):
        """Test title mentions and specific shared tags."""
        from notevault.linking import find_backlinks

        target = make_note("Release Plan", tags=["infra", "q3"])
        mentions = make_note("Standup", "We reviewed the release plan today.")
        strong_tag = make_note("Budget", tags=["infra"])
        weak_tag = make_note("Goals", tags=["q3"])

        assert find_backlinks(target, [target, mentions, strong_tag, weak_tag]) == [mentions, strong_tag]

    def test_suggest_connections(self, make_note):
        """Test suggestions from title mentions and similar titles."""
        from notevault.linking import suggest_connections

        current = make_note("Weekly Meeting", "Follow up on the Infra Budget numbers.")
        budget = make_note("Infra Budget")
        notes = make_note("Weekly Meeting Notes")
        unrelated = make_note("Garden")

        suggestions = suggest_connections(current, [current, budget, notes, unrelated])

        assert [note for note, _ in suggestions] == [budget, notes]
        assert suggestions[0][1] == 'Mentions "Infra Budget" in content'
        assert suggestions[1][1].startswith("Conceptually similar: Similar title keywords")

    def test_connection_summary(self, make_note):
        """Test one-line descriptions per connection type."""
        from notevault.linking import analyze_connection, connection_summary

        by_tags = analyze_connection(make_note("A", tags=["x"]), make_note("B", tags=["x"]))
        by_project = analyze_connection(make_note("C", project="p"), make_note("D", project="p"))

        assert connection_summary(by_tags) == "Shared tags: #x"
        assert connection_summary(by_project) == "Same project: p"

        text = "kubernetes cluster upgrade checklist"
        by_content = analyze_connection(make_note("E", text), make_note("F", text))
        assert connection_summary(by_content) == "Similar content (5% match)"

    def test_network_density(self, make_note):
        """Test the share of strongly connected notes."""
        from notevault.linking import network_density

        current = make_note("Current", tags=["a", "b"])
        strong = make_note("Strong", tags=["a", "b"])
        weak = make_note("Weak", tags=["a"])
        none = make_note("None")

        assert network_density(current, [current, strong, weak, none]) == pytest.approx(1 / 3)
        assert network_density(current, [current]) == 0.0
