#!/usr/bin/env python3
"""
Tests for filters and search (matching.py)

Run: pytest tests/test_matching.py -v
"""

import re

import pytest

from build_catalog import load_records
from matching import (
    FilterState,
    exact_matcher,
    extract_plain_text,
    field_texts,
    filter_matcher,
    matches_filters,
    matches_search,
    prefix_matcher,
    search,
    search_pattern,
    searchable_text,
    substring_matcher,
    word_matcher,
)

PLANTS = [
    {"name": "Tomato", "season": ["Summer"], "light": "Full sun"},
    {"name": "Lettuce", "season": ["Spring", "Autumn"], "light": "Part shade"},
    {"name": "Garlic", "season": ["Autumn"], "light": "Full sun"},
    {"name": "Mint", "light": "Part shade"},
]


# ─── Matchers ──────────────────────────────────────────────────────────────

class TestMatchers:
    def test_field_texts(self):
        assert field_texts("a") == ["a"]
        assert field_texts(["a", "", {"x": 1}, 3]) == ["a", "3"]
        assert field_texts({"x": 1}) == []

    def test_substring(self):
        assert substring_matcher("Full sun", "SUN")
        assert not substring_matcher("Part shade", "sun")

    def test_exact(self):
        assert exact_matcher(["Spring", "Autumn"], "autumn")
        assert not exact_matcher("Autumnal", "autumn")

    def test_prefix(self):
        assert prefix_matcher("Autumnal", "autumn")
        assert not prefix_matcher("Late autumn", "autumn")

    def test_word(self):
        assert word_matcher("Late autumn", "autumn")
        assert not word_matcher("Autumnal", "autumn")


# ─── Filters ───────────────────────────────────────────────────────────────

class TestFilters:
    def test_no_filters_match_everything(self):
        assert all(matches_filters(r, {}) for r in PLANTS)

    def test_monotonic(self):
        one = [r for r in PLANTS if matches_filters(r, {"light": "sun"})]
        two = [r for r in PLANTS if matches_filters(r, {"light": "sun", "season": "autumn"})]
        assert [r["name"] for r in one] == ["Tomato", "Garlic"]
        assert [r["name"] for r in two] == ["Garlic"]
        assert all(r in one for r in two)

    def test_absent_field_never_matches(self):
        assert not matches_filters(PLANTS[3], {"season": ""})

    def test_lowercase_field_name_fallback(self):
        assert matches_filters({"light": "Full sun"}, {"Light": "full"})

    def test_list_field(self):
        assert matches_filters(PLANTS[1], {"season": "spring"})

    def test_custom_matcher_overrides(self):
        custom = {"light": exact_matcher}
        assert not matches_filters(PLANTS[0], {"light": "sun"}, custom)
        assert matches_filters(PLANTS[0], {"light": "full sun"}, custom)

    def test_custom_matcher_sees_absent_value(self):
        seen = []

        def record_value(value, wanted):
            seen.append(value)
            return True

        assert matches_filters({"name": "x"}, {"colour": "red"}, {"colour": record_value})
        assert seen == [None]

    def test_filter_matcher_copies_filters(self):
        filters = {"light": "shade"}
        passes = filter_matcher(filters)
        filters["light"] = "sun"
        assert passes(PLANTS[1])


class TestFilterState:
    def test_toggle(self):
        state = FilterState()
        assert state.is_empty()
        assert state.toggle("season", "Autumn") is True
        assert state.as_dict() == {"season": "autumn"}
        assert "season" in state

    def test_same_value_clears(self):
        state = FilterState()
        state.toggle("season", "Autumn")
        assert state.toggle("season", "autumn") is False
        assert state.is_empty()

    def test_other_value_replaces(self):
        state = FilterState()
        state.toggle("season", "autumn")
        state.toggle("season", "spring")
        assert state.as_dict() == {"season": "spring"}

    def test_clear(self):
        state = FilterState()
        state.toggle("season", "autumn")
        state.toggle("light", "sun")
        state.clear()
        assert state.as_dict() == {}

    def test_as_dict_is_a_copy(self):
        state = FilterState()
        state.as_dict()["x"] = "y"
        assert state.is_empty()


# ─── Search ────────────────────────────────────────────────────────────────

class TestSearch:
    def test_word_prefix(self):
        pattern = search_pattern("toma")
        assert matches_search(PLANTS[0], pattern)
        assert not matches_search(PLANTS[0], search_pattern("mato"))

    def test_regex_characters_are_literal(self):
        assert matches_search({"name": "C++ (advanced)"}, search_pattern("c++"))
        assert not matches_search({"name": "Cabbage"}, search_pattern("c.b"))

    def test_nested_records_and_lists(self):
        record = {"name": "Compost", "leader": {"name": "Ana", "tools": ["Fork", {"kind": "Spade"}]}}
        assert matches_search(record, search_pattern("spa"))
        assert matches_search(record, search_pattern("ana"))

    def test_hidden_fields_not_searched(self):
        record = {"name": "X", "images": "sunflower", "link": "sunny.html"}
        assert not matches_search(record, search_pattern("sun"))

    def test_empty_fields_not_searched(self):
        assert not matches_search({"notes": "", "tags": [""], "extra": {}}, re.compile(r"^$"))

    def test_search_keys(self):
        record = {"name": "Mint", "notes": "Keep it in a pot"}
        assert matches_search(record, search_pattern("pot"))
        assert not matches_search(record, search_pattern("pot"), ["name"])

    def test_search_with_filters(self):
        found = search(PLANTS, "g", filters={"season": "autumn"})
        assert [r["name"] for r in found] == ["Garlic"]

    def test_search_keeps_collection_order(self):
        found = search(PLANTS, "part")
        assert [r["name"] for r in found] == ["Lettuce", "Mint"]

    def test_searchable_text(self):
        record = {"name": "Mint", "tags": ["herb", ""], "images": "mint-pot", "where": {"bed": 3}}
        assert searchable_text(record) == "Mint herb 3"

    @pytest.mark.parametrize("term", ["Tom", "Summer", "full", "su"])
    def test_recall(self, term):
        assert matches_search(PLANTS[0], search_pattern(term))


# ─── Markup bodies ─────────────────────────────────────────────────────────

class TestMarkupSearch:
    @pytest.fixture
    def pie(self, tmp_path):
        (tmp_path / "pie.md").write_text("---\nname: Apple Pie\n---\nBake **slowly** until golden.\n",
                                         encoding="utf-8")
        [record] = load_records(tmp_path)
        return record

    def test_body_words_match(self, pie):
        assert matches_search(pie, search_pattern("slowly"))
        assert matches_search(pie, search_pattern("gold"))

    @pytest.mark.parametrize("term", ["strong", "p", "em"])
    def test_tag_names_do_not_match(self, pie, term):
        assert not matches_search(pie, search_pattern(term))

    def test_attributes_do_not_match(self):
        record = {"name": "Pruning",
                  "html": '<p>See the <a href="https://example.org/guide">guide</a> &amp; notes</p>'}
        assert not matches_search(record, search_pattern("href"))
        assert not matches_search(record, search_pattern("example"))
        assert matches_search(record, search_pattern("guide"))

    def test_structured_markup(self):
        markup = {"p": [{"__text": "Cut above a bud."},
                        {"a": {"_href": "https://example.org/pruning", "__text": "Pruning guide"}}]}
        assert extract_plain_text(markup) == "Cut above a bud. Pruning guide"
        assert not matches_search({"name": "X", "html": markup}, search_pattern("example"))

    def test_index_text(self, pie):
        assert searchable_text(pie) == "Apple Pie Bake slowly until golden."
        assert extract_plain_text("<p>a &lt; b</p><p>c</p>") == "a < b c"
