#!/usr/bin/env python3
"""
Content Portal - Local Web Server

Serves the collections listed in site.yaml as live pages, with dropdown
filters, search autocomplete and a tracked selection of records.

Usage:
    python server.py [--port PORT] [--site PATH] [--selection-dir PATH]

Then open http://localhost:8080 in your browser.
"""

import argparse
import json
import logging
import sys
import traceback
from datetime import datetime
from http.server import HTTPServer, BaseHTTPRequestHandler
from pathlib import Path
from typing import Any
from urllib.parse import urlparse, parse_qs

from build_catalog import load_collections
from build_site import index_regions, render_page
from content_display import ContentDisplay
from content_ids import requested_category_path
from matching import FilterState
from selection import open_selection
from site_config import ConfigError, Site, load_site_config

PORTAL_JS = '<script>window.PORTAL_API = true;</script>'
SELECTION_ACTIONS = ('add', 'remove', 'clear', 'all')


class Portal:
    """
    One site's displays plus the state its pages share: the filter
    selections and tracked selection of each collection.
    """

    def __init__(self, site: Site, selection_dir: Path | None = None,
                 loaded: dict[str, list[dict[str, Any]]] | None = None):
        self.site = site
        if loaded is None:
            loaded = load_collections(site)
        self.displays: dict[str, ContentDisplay] = {}
        self.filters: dict[str, FilterState] = {}
        for src, config in site.collections.items():
            selection = None
            if config.track_selection and selection_dir is not None:
                selection = open_selection(selection_dir / f'{src}-selection.json',
                                           config.identity_keys, config.title_separator)
            self.displays[src] = ContentDisplay(loaded.get(src, []), config, selection)
            self.filters[src] = FilterState()

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def route(self, method: str, url: str, body: bytes = b'',
              now: datetime | None = None) -> tuple[int, str, Any]:
        """
        Answer one request.

        Returns (status, kind, payload) where kind is 'html' (payload is the
        page text) or 'json' (payload is the object to serialise).
        """
        parsed = urlparse(url)
        path = parsed.path
        query = parse_qs(parsed.query)

        if path == '/api/selection':
            if method == 'POST':
                return self.update_selection(body)
            return self.selection_json(query)
        if method != 'GET':
            return 405, 'json', {'error': f'{method} not allowed on {path}'}

        if path in ('/', '/index.html'):
            page = render_page(index_regions(self.site, self.displays, now),
                               self.site.title, extra_js=PORTAL_JS)
            return 200, 'html', page

        if path == '/details.html':
            display = self._display(query)
            if display is None:
                return 404, 'json', {'error': 'Unknown collection'}
            regions = display.details_regions(query)
            regions['topnav'] = display.topnav_html()
            return 200, 'html', self._page(regions, display)

        if path == '/api/search':
            return self.search_json(query, now)
        if path == '/api/filter':
            return self.toggle_filter(query)
        if path == '/api/filters/clear':
            display = self._display(query)
            if display is None:
                return 404, 'json', {'error': 'Unknown collection'}
            self.filters[display.config.content_src].clear()
            return 200, 'json', {'filters': {}}

        src = path.strip('/')
        if src.endswith('.html') and src[:-len('.html')] in self.displays:
            src = src[:-len('.html')]
            display = self.displays[src]
            regions = display.listing_regions(
                requested=requested_category_path(query),
                state=self.filters[src],
                now=now,
            )
            return 200, 'html', self._page(regions, display)

        return 404, 'json', {'error': f'Not found: {path}'}

    def _display(self, query: dict[str, list[str]]) -> ContentDisplay | None:
        src = query.get('src', [''])[0]
        return self.displays.get(src)

    def _page(self, regions: dict[str, str], display: ContentDisplay) -> str:
        return render_page(regions, self.site.title, display.config.content_src,
                           extra_js=PORTAL_JS)

    # ------------------------------------------------------------------
    # API endpoints
    # ------------------------------------------------------------------

    def search_json(self, query: dict[str, list[str]], now: datetime | None = None):
        display = self._display(query)
        if display is None:
            return 404, 'json', {'error': 'Unknown collection'}
        term = query.get('term', [''])[0]
        if not term:
            return 200, 'json', []

        # Explicit f-<field> parameters replace the page's dropdown filters
        filters = {name[2:]: values[0] for name, values in query.items() if name.startswith('f-')}
        if not filters:
            filters = self.filters[display.config.content_src].as_dict()
        keys = query.get('keys', [''])[0]
        search_keys = [k for k in keys.split(',') if k] if keys else None
        return 200, 'json', display.autocomplete(term, filters, search_keys, now)

    def toggle_filter(self, query: dict[str, list[str]]):
        display = self._display(query)
        if display is None:
            return 404, 'json', {'error': 'Unknown collection'}
        name = query.get('filter', [''])[0]
        value = query.get('value', [''])[0]
        if not name:
            return 400, 'json', {'error': 'filter is required'}

        state = self.filters[display.config.content_src]
        state.toggle(name, value)
        filters = state.as_dict()
        results = [
            {'label': display.item_title(r), 'href': display.details_href(r)}
            for r in display.filtered(filters)
        ]
        return 200, 'json', {'filters': filters, 'results': results}

    def selection_json(self, query: dict[str, list[str]]):
        display = self._display(query)
        if display is None:
            return 404, 'json', {'error': 'Unknown collection'}
        records = display.selection.all(display.records)
        return 200, 'json', [
            {'label': display.item_title(r), 'href': display.details_href(r)}
            for r in records
        ]

    def update_selection(self, body: bytes):
        """
        Apply {"action": ..., "href": ...} from a selection checkbox.

        add/remove take the details link of one record; clear empties the
        selection and all selects every record passing the current filters.
        Both of those need a "src" instead.
        """
        try:
            request = json.loads(body or b'{}')
        except ValueError:
            return 400, 'json', {'error': 'Body must be JSON'}
        if not isinstance(request, dict):
            return 400, 'json', {'error': 'Body must be a JSON object'}

        action = request.get('action')
        if action not in SELECTION_ACTIONS:
            return 400, 'json', {'error': f"action must be one of {', '.join(SELECTION_ACTIONS)}"}

        params = parse_qs(urlparse(request.get('href', '')).query)
        if 'src' in request:
            params['src'] = [request['src']]
        display = self._display(params)
        if display is None:
            return 404, 'json', {'error': 'Unknown collection'}
        src = display.config.content_src

        if action == 'clear':
            display.clear_selection()
        elif action == 'all':
            display.select_all(display.filtered(self.filters[src].as_dict()))
        else:
            record = display.find(params)
            if record is None:
                return 404, 'json', {'error': 'No record at that link'}
            if action == 'add':
                display.selection.add(record)
            else:
                display.selection.remove(record)

        return self.selection_json({'src': [src]})


class RequestHandler(BaseHTTPRequestHandler):
    protocol_version = 'HTTP/1.0'

    def send_body(self, status: int, content_type: str, body: bytes):
        self.send_response(status)
        self.send_header('Content-Type', content_type)
        self.send_header('Content-Length', str(len(body)))
        self.send_header('Connection', 'close')
        self.end_headers()
        self.wfile.write(body)
        self.wfile.flush()

    def send_json(self, data, status: int = 200):
        """Send JSON response with proper headers."""
        body = json.dumps(data, ensure_ascii=False).encode('utf-8')
        self.send_body(status, 'application/json; charset=utf-8', body)

    def send_html(self, html_content, status: int = 200):
        """Send HTML response with proper headers."""
        self.send_body(status, 'text/html; charset=utf-8', html_content.encode('utf-8'))

    def handle_request(self, method: str, body: bytes = b''):
        try:
            status, kind, payload = self.server.portal.route(method, self.path, body)
        except Exception as e:
            print(f"Error handling request: {e}", flush=True)
            traceback.print_exc()
            self.send_json({'error': 'Internal server error'}, 500)
            return
        if kind == 'html':
            self.send_html(payload, status)
        else:
            self.send_json(payload, status)

    def do_GET(self):
        self.handle_request('GET')

    def do_POST(self):
        length = int(self.headers.get('Content-Length') or 0)
        self.handle_request('POST', self.rfile.read(length) if length else b'')

    def log_message(self, format, *args):
        print(f"[{self.command}] {self.path}", flush=True)


def main():
    parser = argparse.ArgumentParser(description='Content Portal')
    parser.add_argument('--port', type=int, default=8080, help='Port to run server on')
    parser.add_argument('--site', type=Path, default=Path('site.yaml'), help='Path to site.yaml')
    parser.add_argument('--selection-dir', type=Path, default=Path('.'),
                        help='Directory for tracked selection files')

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format='  %(levelname)s: %(message)s')

    try:
        site = load_site_config(args.site)
        portal = Portal(site, args.selection_dir)
    except ConfigError as e:
        print(f"Error: {e}")
        sys.exit(1)

    server = HTTPServer(('localhost', args.port), RequestHandler)
    server.portal = portal
    print(f"\n{'='*50}")
    print(f"  {site.title}")
    print(f"{'='*50}")
    for src, display in portal.displays.items():
        print(f"  {src}: {len(display.records)} records")
    print(f"\n  Open in browser: http://localhost:{args.port}")
    print(f"\n  Press Ctrl+C to stop the server")
    print(f"{'='*50}\n")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nServer stopped.")
        server.shutdown()


if __name__ == '__main__':
    main()
