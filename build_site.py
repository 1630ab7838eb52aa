#!/usr/bin/env python3
"""
Build the static content site from the collections listed in site.yaml.

Generates a complete static site that can be served from any web server
(including Apache/Nginx subdirectories, GitHub Pages, or even file://).

Usage:
    python build_site.py [--site PATH] [--output PATH] [--now YYYY-MM-DD]

Produces:
    site/
      index.html                           - Links to every collection
      activities.html                      - Collection page (categories, events)
      activities--src-activities--cat-garden.html
                                           - One page per category path
      details--src-activities--name-weeding.html
                                           - One page per record
      catalog.json                         - All records
      search-data.json                     - Search index for the search box
      .htaccess                            - RewriteEngine Off

Links between pages use the portal's query locators
(details.html?src=activities&name=weeding); the static build maps each
locator onto a flat file name so the same markup works without a server.
"""

import argparse
import html
import json
import logging
import re
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from build_catalog import build_catalog, load_collections, write_catalog
from content_display import ContentDisplay
from content_ids import category_href, make_id
from grouping import category_segments
from matching import searchable_text
from site_config import ConfigError, Site, load_site_config


# ---------------------------------------------------------------------------
# Page shell
# ---------------------------------------------------------------------------

PAGE_TEMPLATE = r'''<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{PAGE_TITLE} | {SITE_TITLE}</title>
    <style>
        :root {
            --color-green: #3d6b35;
            --color-green-light: #e9f2e6;
            --color-bg: #fbfaf7;
            --color-card: #ffffff;
            --color-text: #2d3436;
            --color-text-secondary: #636e72;
            --color-border: #dfe6e9;
            --radius-md: 8px;
        }
        * { box-sizing: border-box; margin: 0; padding: 0; }
        body { font-family: Georgia, serif; background: var(--color-bg); color: var(--color-text); line-height: 1.6; }
        #header { background: var(--color-green); color: white; padding: 1.2rem 2rem; }
        #header h1 { font-weight: normal; font-size: 1.8rem; }
        #topnav { background: var(--color-card); border-bottom: 1px solid var(--color-border); padding: 0.6rem 2rem; }
        #topnav a { color: var(--color-green); margin-right: 1.2rem; text-decoration: none; }
        .columns { display: flex; gap: 2rem; padding: 1.5rem 2rem; }
        .column.main { flex: 3; }
        .column.side { flex: 1; }
        .column h3, .column h4 { margin: 0.8rem 0 0.3rem; }
        .column ol, .column ul { margin-left: 1.4rem; }
        .column img { max-width: 100%; border-radius: var(--radius-md); }
        .cat-div { display: flex; gap: 1rem; margin-bottom: 1.2rem; background: var(--color-card);
                   border: 1px solid var(--color-border); border-radius: var(--radius-md); padding: 0.8rem; }
        .cat-img { width: 140px; height: 100px; object-fit: cover; }
        .dropdown { position: relative; display: inline-block; }
        .dropdown-content { display: none; position: absolute; background: var(--color-card);
                            border: 1px solid var(--color-border); z-index: 1; min-width: 12rem; }
        .dropdown:hover .dropdown-content { display: block; }
        .dropdown-content a, .dropdown-content button { display: block; padding: 0.3rem 0.6rem; }
        button.selected { background: var(--color-green-light); }
        #search-side { width: 100%; padding: 0.4rem; margin-bottom: 0.5rem; }
        #search-results a { display: block; }
        table td { padding: 0.2rem 0.8rem; border-bottom: 1px solid var(--color-border); }
        #footer { color: var(--color-text-secondary); padding: 1rem 2rem; font-size: 0.85rem; }
    </style>
</head>
<body>
    <div id="header"><h1>{PAGE_TITLE}</h1></div>
    <div id="topnav">{TOPNAV}</div>
    <div class="columns">
        <div class="column main">
{MAIN}
        </div>
        <div class="column side">
            <input id="search-side" type="search" placeholder="Search..." data-src="{CONTENT_SRC}">
            <div id="search-results"></div>
{SIDE}
        </div>
    </div>
    <div id="footer">{SITE_TITLE}</div>
{EXTRA_JS}
    <script>
    // Try each fallback image in turn until one loads
    function loadAlternative(img) {
        var fallbacks = JSON.parse(img.dataset.fallbacks || '[]');
        if (fallbacks.length) {
            img.src = 'images/' + fallbacks.shift();
            img.dataset.fallbacks = JSON.stringify(fallbacks);
        }
    }
    (function() {
        var box = document.getElementById('search-side');
        var out = document.getElementById('search-results');
        var index = null;
        function escapeRegex(s) { return s.replace(/[-[\]{}()*+?.,\\^$|#\s]/g, '\\$&'); }
        function show(items) {
            out.innerHTML = '';
            items.slice(0, 20).forEach(function(item) {
                var a = document.createElement('a');
                a.href = item.href;
                a.innerHTML = '<i></i>';
                a.firstChild.textContent = item.label;
                out.appendChild(a);
            });
        }
        box.addEventListener('input', function() {
            var term = box.value;
            if (!term) { out.innerHTML = ''; return; }
            if (window.PORTAL_API) {
                fetch('/api/search?src=' + encodeURIComponent(box.dataset.src) +
                      '&term=' + encodeURIComponent(term))
                    .then(function(r) { return r.json(); }).then(show);
                return;
            }
            var run = function() {
                var matcher = new RegExp('\\b' + escapeRegex(term), 'i');
                show(index.filter(function(e) {
                    return (!box.dataset.src || e.src === box.dataset.src) && matcher.test(e.t);
                }));
            };
            if (index) { run(); return; }
            fetch('search-data.json').then(function(r) { return r.json(); })
                .then(function(data) { index = data; run(); });
        });
        if (window.PORTAL_API) {
            document.querySelectorAll('#filter-group .dropdown-content button').forEach(function(btn) {
                btn.addEventListener('click', function() {
                    var url = '/api/filter?src=' + encodeURIComponent(box.dataset.src) +
                        '&filter=' + encodeURIComponent(btn.dataset.filter) +
                        '&value=' + encodeURIComponent(btn.textContent);
                    fetch(url).then(function() { location.reload(); });
                });
            });
            var clear = document.getElementById('clear-filters');
            if (clear) clear.addEventListener('click', function() {
                fetch('/api/filters/clear?src=' + encodeURIComponent(box.dataset.src))
                    .then(function() { location.reload(); });
            });
            document.querySelectorAll('#filter-results input[type=checkbox]').forEach(function(cb) {
                cb.addEventListener('click', function() {
                    var href = cb.parentNode.querySelector('a').getAttribute('href');
                    fetch('/api/selection', {method: 'POST', body: JSON.stringify({
                        action: cb.checked ? 'add' : 'remove', href: href})});
                });
            });
        }
    })();
    </script>
</body>
</html>
'''


def render_page(regions: dict[str, str], site_title: str, content_src: str = '',
                extra_js: str = '') -> str:
    """Fill the page shell with the title, topnav, main and side regions."""
    page = PAGE_TEMPLATE
    for placeholder, value in (
        ('{PAGE_TITLE}', html.escape(regions.get('title') or site_title)),
        ('{SITE_TITLE}', html.escape(site_title)),
        ('{CONTENT_SRC}', html.escape(content_src)),
        ('{TOPNAV}', regions.get('topnav', '')),
        ('{MAIN}', regions.get('main', '')),
        ('{SIDE}', regions.get('side', '')),
        ('{EXTRA_JS}', extra_js),
    ):
        page = page.replace(placeholder, value)
    return page


def index_regions(site: Site, displays: dict[str, ContentDisplay],
                  now: datetime | None = None) -> dict[str, str]:
    """Home page: one link per collection, next event of each in the side column."""
    links = []
    side = []
    for src, display in displays.items():
        label = html.escape(display.config.label)
        links.append(f'<li><a href="{html.escape(src)}.html">{label}</a> '
                     f'({len(display.records)})</li>')
        next_html = display.next_event_html(now)
        if next_html:
            side.append(f'<h4>Next in {label}</h4>\n{next_html}')
    nav = ' '.join(f'<a href="{html.escape(s)}.html">{html.escape(d.config.label)}</a>'
                   for s, d in displays.items())
    return {
        'title': site.title,
        'topnav': nav,
        'main': '<ul>\n' + '\n'.join(links) + '\n</ul>',
        'side': '\n'.join(side),
    }


# ---------------------------------------------------------------------------
# Static file names for query locators
# ---------------------------------------------------------------------------

def static_filename(href: str) -> str:
    """
    Map a query locator onto a flat file name.

    details.html?src=a&name=b  ->  details--src-a--name-b.html
    a.html?src=a&cat=x&cat=y   ->  a--src-a--cat-x--cat-y.html
    """
    parts = urlsplit(href)
    stem = parts.path[:-len('.html')] if parts.path.endswith('.html') else parts.path
    params = parse_qsl(parts.query, keep_blank_values=True)
    return stem + ''.join(f'--{make_id(k)}-{make_id(v)}' for k, v in params) + '.html'


_HREF_RE = re.compile(r'href="([^"#:]+\.html\?[^"]*)"')


def rewrite_links(page: str) -> str:
    """Point every query-locator href at its static file."""
    return _HREF_RE.sub(
        lambda m: 'href="' + html.escape(static_filename(html.unescape(m.group(1)))) + '"',
        page)


def category_requests(display: ContentDisplay) -> list[list[str]]:
    """Every category path prefix (as id lists) that gets a page."""
    ignore = set(display.config.ignored_categories)
    seen = set()
    requests = []
    for record in display.records:
        for path in category_segments(record):
            # Pages stop short of an ignored segment
            kept = next((i for i, seg in enumerate(path) if seg in ignore), len(path))
            ids = [make_id(seg) for seg in path[:kept]]
            for depth in range(1, len(ids) + 1):
                prefix = tuple(ids[:depth])
                if prefix not in seen:
                    seen.add(prefix)
                    requests.append(list(prefix))
    return requests


def category_page_href(display: ContentDisplay, requested: list[str]) -> str:
    # Ids are already slugs, so the last one can stand in for its category name
    return category_href(requested[-1], requested[:-1], display.config.content_src)


# ---------------------------------------------------------------------------
# Site builder
# ---------------------------------------------------------------------------

def write_page(output_dir: Path, name: str, page: str) -> None:
    (output_dir / name).write_text(rewrite_links(page), encoding='utf-8')


def build_site(site_path: Path, output_dir: Path, now: datetime | None = None) -> dict[str, int]:
    """
    Build the complete static site.

    Steps:
      1. Load site.yaml and every collection's records
      2. Write catalog.json
      3. Write index.html and one collection page per collection
      4. Write one page per category path and per record
      5. Write search-data.json and .htaccess

    Returns page counts per collection.
    """
    start_time = time.time()

    print(f"Site configuration: {site_path}")
    print(f"Output directory:   {output_dir}")
    print()

    # ------------------------------------------------------------------
    # Step 1: Load content
    # ------------------------------------------------------------------
    print("=== Loading content ===")
    site = load_site_config(site_path)
    loaded = load_collections(site)
    displays = {
        src: ContentDisplay(loaded[src], config)
        for src, config in site.collections.items()
    }
    print()

    output_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Step 2: Write catalog.json
    # ------------------------------------------------------------------
    print("=== Writing catalog.json ===")
    catalog = build_catalog(site, loaded)
    catalog_path = output_dir / 'catalog.json'
    write_catalog(catalog, catalog_path, compact=True)
    print(f"  Written: catalog.json ({catalog_path.stat().st_size / 1024:.0f} KB)")
    print()

    # ------------------------------------------------------------------
    # Step 3: Index and collection pages
    # ------------------------------------------------------------------
    print("=== Generating pages ===")
    write_page(output_dir, 'index.html', render_page(index_regions(site, displays, now), site.title))

    counts = {}
    search_data: list[dict[str, Any]] = []
    for src, display in displays.items():
        pages = 1
        write_page(output_dir, f'{src}.html',
                   render_page(display.listing_regions(now=now), site.title, src))

        # ------------------------------------------------------------------
        # Step 4: Category and detail pages
        # ------------------------------------------------------------------
        for requested in category_requests(display):
            regions = display.listing_regions(requested=requested, now=now)
            name = static_filename(category_page_href(display, requested))
            write_page(output_dir, name, render_page(regions, site.title, src))
            pages += 1

        for record in display.records:
            href = display.details_href(record)
            regions = display.record_regions(record)
            regions['topnav'] = display.topnav_html()
            write_page(output_dir, static_filename(href), render_page(regions, site.title, src))
            pages += 1

            text = searchable_text(record)
            if text:
                search_data.append({
                    'src': src,
                    'label': display.item_title(record),
                    'href': static_filename(href),
                    't': text,
                })

        counts[src] = pages
        print(f"  {src}: {pages} pages")
    print()

    # ------------------------------------------------------------------
    # Step 5: search-data.json and .htaccess
    # ------------------------------------------------------------------
    print("=== Generating search-data.json ===")
    search_path = output_dir / 'search-data.json'
    with open(search_path, 'w', encoding='utf-8') as f:
        json.dump(search_data, f, ensure_ascii=False, separators=(',', ':'))
    print(f"  Written: search-data.json ({len(search_data)} records)")

    htaccess_path = output_dir / '.htaccess'
    htaccess_path.write_text('RewriteEngine Off\n', encoding='utf-8')
    print(f"  Written: .htaccess")

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------
    elapsed = time.time() - start_time
    print()
    print("=" * 50)
    print(f"  Build complete in {elapsed:.1f}s")
    print(f"  {sum(counts.values()) + 1} pages")
    print(f"  Output: {output_dir.resolve()}")
    print("=" * 50)

    return counts


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(
        description='Build the static content site from site.yaml.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python build_site.py
    python build_site.py --output ./public
    python build_site.py --site ~/garden/site.yaml --output ./site
    python build_site.py --now 2030-01-01
        """,
    )
    parser.add_argument(
        '--site',
        type=Path,
        default=Path('site.yaml'),
        help='Site configuration file (default: ./site.yaml)',
    )
    parser.add_argument(
        '--output',
        type=Path,
        default=Path('site'),
        help='Output directory for the static site (default: ./site)',
    )
    parser.add_argument(
        '--now',
        type=datetime.fromisoformat,
        default=None,
        help='Date treated as "now" for upcoming events (default: current time)',
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format='  %(levelname)s: %(message)s')

    try:
        build_site(args.site, args.output, now=args.now)
    except ConfigError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
