#!/usr/bin/env python3
"""
Tests for slugs, identities and links (content_ids.py)

Run: pytest tests/test_content_ids.py -v
"""

import re
from datetime import date
from urllib.parse import parse_qs, urlsplit

import pytest

from content_ids import (
    category_href,
    details_href,
    find_by_identity,
    identity_of,
    make_id,
    requested_category_path,
    requested_identity,
    selection_key,
    title_of,
)


# ─── make_id ───────────────────────────────────────────────────────────────

class TestMakeId:
    @pytest.mark.parametrize("text, expected", [
        ("Apple Pie", "apple-pie"),
        ("Tomatoes (Cherry)!", "tomatoes-cherry"),
        ("already-a-slug", "already-a-slug"),
        ("Café au lait", "caf-au-lait"),
        ("", ""),
        (None, ""),
        (2030, "2030"),
    ])
    def test_examples(self, text, expected):
        assert make_id(text) == expected

    def test_date_value(self):
        assert make_id(date(2030, 4, 12)) == "2030-04-12"

    @pytest.mark.parametrize("text", [
        "Hello World", "  spaced  out ", "A/B/C", "Über-Größe", "x--y", "Q&A: 1 + 1",
    ])
    def test_idempotent(self, text):
        once = make_id(text)
        assert make_id(once) == once

    @pytest.mark.parametrize("text", ["Hello World", "a_b.c", "ÀÉÎ", "tab\there"])
    def test_charset(self, text):
        assert re.fullmatch(r"[a-z0-9-]*", make_id(text))


# ─── Identity and titles ───────────────────────────────────────────────────

class TestIdentity:
    RECORDS = [
        {"month": "March", "day": 14, "year": 2030, "topic": "Spring planning"},
        {"month": "June", "day": 13, "year": 2030, "topic": "Open day"},
        {"month": "March", "day": 14, "year": 2031, "topic": "Spring planning"},
    ]
    KEYS = ["month", "day", "year"]

    def test_identity_of(self):
        assert identity_of(self.RECORDS[0], self.KEYS) == ("march", "14", "2030")

    def test_missing_key_is_empty(self):
        assert identity_of({"month": "May"}, self.KEYS) == ("may", "", "")

    def test_round_trip(self):
        for record in self.RECORDS:
            found = find_by_identity(self.RECORDS, self.KEYS, identity_of(record, self.KEYS))
            assert found is record

    def test_miss(self):
        assert find_by_identity(self.RECORDS, self.KEYS, ("may", "1", "2030")) is None

    def test_first_wins_on_duplicates(self):
        first = {"name": "Mint"}
        second = {"name": "mint"}
        assert find_by_identity([first, second], ["name"], ("mint",)) is first

    def test_title_of(self):
        assert title_of(self.RECORDS[0], ["topic", "year"], " - ") == "Spring planning - 2030"

    def test_title_of_trims_trailing_separator(self):
        assert title_of({"a": "X"}, ["a", "b"]) == "X"
        assert title_of({"a": "X"}, ["a", "b", "c"], " - ") == "X"
        assert title_of({"b": "Y"}, ["a", "b"], " - ") == " - Y"
        assert title_of({}, ["a"]) == ""

    def test_selection_key_keeps_raw_values(self):
        assert selection_key(self.RECORDS[0], self.KEYS, "/") == "March/14/2030"


# ─── Locators ──────────────────────────────────────────────────────────────

class TestLocators:
    def test_details_href(self):
        href = details_href({"name": "Seed Swap"}, ["name"], "activities")
        assert href == "details.html?src=activities&name=seed-swap"

    def test_details_href_without_src(self):
        assert details_href({"Name": "Mint"}, ["Name"]) == "details.html?name=mint"

    def test_details_href_resolves(self):
        records = [{"name": "Tomato"}, {"name": "Seed Swap"}]
        href = details_href(records[1], ["name"], "plants")
        params = parse_qs(urlsplit(href).query)
        assert find_by_identity(records, ["name"], requested_identity(params, ["name"])) is records[1]

    def test_requested_identity_plain_dict(self):
        assert requested_identity({"name": "mint"}, ["name"]) == ("mint",)

    def test_requested_identity_missing(self):
        assert requested_identity({}, ["name"]) == ("",)

    def test_category_href(self):
        href = category_href("Fruit Trees", ["garden"], "activities")
        assert href == "activities.html?src=activities&cat=garden&cat=fruit-trees"

    def test_category_href_round_trip(self):
        href = category_href("Beds", ["garden"], "activities")
        params = parse_qs(urlsplit(href).query)
        assert requested_category_path(params) == ["garden", "beds"]

    def test_requested_category_path_string(self):
        assert requested_category_path({"cat": "garden"}) == ["garden"]
        assert requested_category_path({}) == []
