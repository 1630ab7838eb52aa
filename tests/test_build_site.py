#!/usr/bin/env python3
"""
Tests for the static site builder (build_site.py)

Run: pytest tests/test_build_site.py -v
"""

import json
from datetime import datetime
from pathlib import Path

import pytest

from build_site import (
    build_site,
    category_page_href,
    category_requests,
    render_page,
    rewrite_links,
    static_filename,
)
from content_display import ContentDisplay
from site_config import ConfigError, SiteConfig

REPO_ROOT = Path(__file__).resolve().parent.parent
NOW = datetime(2030, 1, 1)


# ─── Static file names ─────────────────────────────────────────────────────

class TestStaticFilename:
    @pytest.mark.parametrize("href, name", [
        ("details.html?src=activities&name=seed-swap", "details--src-activities--name-seed-swap.html"),
        ("activities.html?src=activities&cat=garden&cat=beds",
         "activities--src-activities--cat-garden--cat-beds.html"),
        ("details.html?month=march&day=14&year=2030", "details--month-march--day-14--year-2030.html"),
        ("index.html", "index.html"),
    ])
    def test_names(self, href, name):
        assert static_filename(href) == name

    def test_rewrite_links(self):
        page = ('<a href="details.html?src=a&amp;name=b">B</a>'
                '<a href="https://example.org/page.html?x=1">ext</a>'
                '<a href="plants.html">P</a>')
        assert rewrite_links(page) == (
            '<a href="details--src-a--name-b.html">B</a>'
            '<a href="https://example.org/page.html?x=1">ext</a>'
            '<a href="plants.html">P</a>')


class TestCategoryRequests:
    def test_prefixes(self):
        records = [
            {"name": "a", "category": "Garden/Trees/Fruit"},
            {"name": "b", "category": ["Garden/Beds", "Archive/Old"]},
            {"name": "c", "category": "Garden/Archive/Old"},
        ]
        display = ContentDisplay(records, SiteConfig(identity_keys=["name"], content_src="acts",
                                                     ignored_categories=["Archive"]))
        assert category_requests(display) == [
            ["garden"], ["garden", "trees"], ["garden", "trees", "fruit"], ["garden", "beds"],
        ]
        assert category_page_href(display, ["garden", "beds"]) == (
            "acts.html?src=acts&cat=garden&cat=beds")

    def test_empty_segments_skipped(self):
        display = ContentDisplay([{"name": "a", "category": "/Garden//Beds/"}],
                                 SiteConfig(identity_keys=["name"], content_src="acts"))
        assert category_requests(display) == [["garden"], ["garden", "beds"]]


class TestRenderPage:
    def test_regions_placed(self):
        page = render_page({"title": "Plants", "main": "<p>M</p>", "side": "<p>S</p>",
                            "topnav": "<nav/>"}, "My <Site>", "plants")
        assert "<title>Plants | My &lt;Site&gt;</title>" in page
        assert "<p>M</p>" in page and "<p>S</p>" in page and "<nav/>" in page
        assert 'data-src="plants"' in page
        assert "{MAIN}" not in page

    def test_title_falls_back_to_site(self):
        assert "<h1>Garden</h1>" in render_page({"title": ""}, "Garden")


# ─── Full build ────────────────────────────────────────────────────────────

class TestBuildSite:
    @pytest.fixture
    def built(self, tmp_path):
        out = tmp_path / "site"
        counts = build_site(REPO_ROOT / "site.yaml", out, now=NOW)
        return out, counts

    def test_counts(self, built):
        _, counts = built
        assert counts == {"activities": 13, "meetings": 4, "plants": 5}

    def test_files(self, built):
        out, _ = built
        for name in ["index.html", "activities.html", "meetings.html", "plants.html",
                     "catalog.json", "search-data.json", ".htaccess",
                     "details--src-activities--name-weeding.html",
                     "details--src-meetings--month-march--day-14--year-2030.html",
                     "activities--src-activities--cat-garden--cat-beds.html"]:
            assert (out / name).exists(), name
        assert not (out / "activities--src-activities--cat-archive.html").exists()

    def test_links_point_at_files(self, built):
        out, _ = built
        page = (out / "activities.html").read_text(encoding="utf-8")
        assert 'href="details--src-activities--name-weeding.html"' in page
        assert "details.html?" not in page

    def test_detail_page(self, built):
        out, _ = built
        page = (out / "details--src-activities--name-pruning.html").read_text(encoding="utf-8")
        assert "<h1>Pruning</h1>" in page
        assert '<a href="https://example.org/pruning">Pruning guide</a>' in page
        assert 'src="images/pruning.jpg"' in page

    def test_tabular_detail_page(self, built):
        out, _ = built
        page = (out / "details--src-meetings--month-march--day-14--year-2030.html").read_text(
            encoding="utf-8")
        assert "<h1>Spring planning</h1>" in page
        assert "<td>location</td><td>Community hall</td>" in page

    def test_search_data(self, built):
        out, _ = built
        data = json.loads((out / "search-data.json").read_text(encoding="utf-8"))
        assert len(data) == 12
        tomato = next(e for e in data if e["label"] == "Tomato")
        assert tomato["src"] == "plants"
        assert tomato["href"] == "details--src-plants--name-tomato.html"
        assert "Full sun" in tomato["t"]

    def test_catalog(self, built):
        out, _ = built
        catalog = json.loads((out / "catalog.json").read_text(encoding="utf-8"))
        assert catalog["collections"]["meetings"]["record_count"] == 3

    def test_bad_site(self, tmp_path):
        site = tmp_path / "site.yaml"
        site.write_text("collections:\n  x:\n    title: no keys\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            build_site(site, tmp_path / "out")
