"""Unit tests for glossary templates, term tools and context lookups."""

import pytest

from lingoforge.core.models import EntryWithResource, Term
from lingoforge.core.terms import (
    Literal,
    Placeholder,
    ToolRegistry,
    TOOL_DEFINITIONS,
    apply_term_merge,
    compute_term_merge,
    lookup_next_lines,
    lookup_prev_lines,
    lookup_term,
    parse_template,
    referenced_slugs,
    resolve_term_templates,
    search_entries,
    slugify_term_id,
    unique_term_slug,
)
from lingoforge.core.terms.context_tools import UNTRANSLATED_PLACEHOLDER


@pytest.fixture
def glossary():
    return [
        Term(id="t1", slug="argo-trading", original_text="Argo Trading", translation="Argo Handel"),
        Term(id="t2", slug="dashboard", original_text="Dashboard", translation="仪表板", comment="UI"),
        Term(id="t3", slug="pending", original_text="Pending", translation=""),
    ]


@pytest.fixture
def flat_entries():
    return [
        EntryWithResource("res", str(i), f"Source line {i}", f"Target {i}" if i % 2 == 0 else "")
        for i in range(8)
    ]


class TestSlugs:
    """Test term slug generation."""

    @pytest.mark.parametrize("text,expected", [
        ("Argo Trading!", "argo-trading"),
        ("  Save & Close  ", "save-close"),
        ("API v2.0", "api-v2-0"),
        ("---", ""),
    ])
    def test_slugify(self, text, expected):
        """Non-alphanumeric runs collapse to one hyphen."""
        assert slugify_term_id(text) == expected

    def test_slug_length_limited(self):
        """Long phrases are cut."""
        assert len(slugify_term_id("word " * 40)) == 60

    def test_unique_slug(self):
        """Numbered suffixes start at 2."""
        assert unique_term_slug("argo-trading", []) == "argo-trading"
        assert unique_term_slug("argo-trading", ["argo-trading"]) == "argo-trading-2"
        assert unique_term_slug("argo-trading", {"argo-trading", "argo-trading-2"}) == "argo-trading-3"


class TestTemplates:
    """Test ``${{slug}}`` placeholders."""

    def test_parse(self):
        """Literal and placeholder runs come out in order."""
        assert parse_template("Open ${{dashboard}} now") == [
            Literal("Open "), Placeholder("dashboard"), Literal(" now"),
        ]
        assert Placeholder("dashboard").raw == "${{dashboard}}"

    def test_resolve(self, glossary):
        """Known slugs are replaced with their translation."""
        assert resolve_term_templates("${{argo-trading}}: ${{dashboard}}", glossary) == "Argo Handel: 仪表板"

    def test_unknown_or_empty_kept_verbatim(self, glossary):
        """Unknown slugs and terms without a translation stay visible."""
        text = "${{missing}} and ${{pending}}"
        assert resolve_term_templates(text, glossary) == text

    def test_no_placeholder(self):
        """Plain text is returned as is."""
        assert resolve_term_templates("Hello", None) == "Hello"
        assert resolve_term_templates("", []) == ""

    def test_uppercase_not_a_placeholder(self, glossary):
        """Slugs are lowercase kebab-case only."""
        assert resolve_term_templates("${{Dashboard}}", glossary) == "${{Dashboard}}"

    def test_referenced_slugs(self):
        """Slugs are listed in order with repeats."""
        assert referenced_slugs("${{a}} ${{b-2}} ${{a}}") == ["a", "b-2", "a"]


class TestLookupTerm:
    """Test glossary lookup."""

    def test_by_slug_and_text(self, glossary):
        """Exact slug or original text match."""
        assert lookup_term(glossary, "dashboard")['translation'] == "仪表板"
        assert lookup_term(glossary, "Argo Trading")['slug'] == "argo-trading"

    def test_substring(self, glossary):
        """Case-insensitive partial match."""
        assert lookup_term(glossary, "ARGO")['id'] == "t1"

    def test_not_found(self, glossary):
        """A miss is a value, not an exception."""
        assert lookup_term(glossary, "Settings") == {"notFound": True, "query": "Settings"}


class TestTermMerge:
    """Test merging discovered terms."""

    def test_merge(self, glossary):
        """Matching slugs update, new slugs insert, the rest stays."""
        new_terms = [
            Term(id="n1", slug="dashboard", original_text="Dashboard", translation="控制台"),
            Term(id="n2", slug="new-project", original_text="New Project", translation="新项目"),
        ]
        merge = compute_term_merge(glossary, new_terms)
        assert [u.existing_id for u in merge.to_update] == ["t2"]
        assert [t.id for t in merge.to_insert] == ["n2"]

        merged = apply_term_merge(glossary, merge)
        assert [t.id for t in merged] == ["t1", "t2", "t3", "n2"]
        assert merged[1].translation == "控制台"
        assert merged[1].slug == "dashboard"
        assert merged[1].comment is None


class TestContextTools:
    """Test neighbour lookups and search."""

    def test_prev_lines(self, flat_entries):
        """Previous entries with a placeholder for missing translations."""
        result = lookup_prev_lines(flat_entries, 3, 2)
        assert [r['index'] for r in result] == [1, 2]
        assert result[0]['targetText'] == UNTRANSLATED_PLACEHOLDER
        assert result[1]['targetText'] == "Target 2"

    def test_prev_lines_clamped(self, flat_entries):
        """Out of range indices are clamped."""
        assert lookup_prev_lines(flat_entries, 0) == []
        assert len(lookup_prev_lines(flat_entries, 100, 3)) == 3
        assert lookup_prev_lines(flat_entries, 100, 3)[-1]['index'] == 7

    def test_next_lines(self, flat_entries):
        """Following entries carry only source text."""
        result = lookup_next_lines(flat_entries, 5)
        assert result == [
            {'index': 6, 'id': "6", 'sourceText': "Source line 6"},
            {'index': 7, 'id': "7", 'sourceText': "Source line 7"},
        ]
        assert lookup_next_lines(flat_entries, 7) == []
        assert lookup_next_lines(flat_entries, -5, 1)[0]['index'] == 0

    def test_search(self, flat_entries):
        """Source and target text are searched case-insensitively."""
        assert [r['id'] for r in search_entries(flat_entries, "TARGET 4")] == ["4"]
        assert len(search_entries(flat_entries, "source", limit=3)) == 3
        assert search_entries(flat_entries, "line 1")[0]['resourceId'] == "res"


class TestToolRegistry:
    """Test tool dispatch."""

    def test_definitions(self, flat_entries, glossary):
        """All four tools are offered."""
        names = [d["function"]["name"] for d in ToolRegistry(flat_entries, glossary).definitions]
        assert names == ["lookupPrevLines", "lookupNextLines", "searchEntries", "lookupTerm"]
        assert ToolRegistry(flat_entries, glossary).definitions is TOOL_DEFINITIONS

    def test_invoke_json_arguments(self, flat_entries, glossary):
        """Arguments may be a JSON string."""
        registry = ToolRegistry(flat_entries, glossary)
        assert registry.invoke("lookupTerm", '{"query": "dashboard"}')['id'] == "t2"
        assert len(registry.invoke("lookupPrevLines", {"currentIndex": 4})) == 4

    def test_invoke_errors(self, flat_entries, glossary):
        """Unknown tools and bad arguments return an error object."""
        registry = ToolRegistry(flat_entries, glossary)
        assert registry.invoke("deleteAll", {}) == {"error": "Unknown tool: deleteAll"}
        assert "error" in registry.invoke("lookupPrevLines", "{not json")
        assert "error" in registry.invoke("lookupNextLines", {})
        assert "error" in registry.invoke("lookupPrevLines", {"currentIndex": "abc"})
