#!/usr/bin/env python3
"""
Build catalog.json from the site's content data files.

Reads site.yaml, loads every collection's data file (YAML, JSON, or a
directory of Markdown files with YAML frontmatter) and writes one catalog
holding the records of all collections.

Usage:
    python build_catalog.py [--site PATH] [--output PATH] [--validate]

Options:
    --site PATH     Site configuration file
                    Default: site.yaml
    --output PATH   Output catalog file path
                    Default: catalog.json
    --validate      Report records with empty or duplicate identities
"""

import argparse
import html
import json
import logging
import re
import sys
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from content_ids import identity_of
from site_config import ConfigError, Site, check_identity_keys, load_site_config

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Markdown-to-HTML converter (for the bodies of Markdown content files)
# ---------------------------------------------------------------------------

def markdown_to_html(md: str) -> str:
    """
    Convert a Markdown body to an HTML fragment.

    Handles headings, blockquotes, unordered/ordered lists, horizontal rules,
    bold, italic, and regular paragraphs. That is all the content files use.
    """
    lines = md.split('\n')
    html_lines = []
    open_block = None  # 'blockquote', 'ul' or 'ol'

    def close_block():
        nonlocal open_block
        if open_block:
            html_lines.append(f'</{open_block}>')
            open_block = None

    def open_new(tag):
        nonlocal open_block
        if open_block != tag:
            close_block()
            html_lines.append(f'<{tag}>')
            open_block = tag

    for line in lines:
        heading = re.match(r'^(#{1,6})\s+(.*)$', line)
        if heading:
            close_block()
            level = len(heading.group(1))
            html_lines.append(f'<h{level}>{_inline(heading.group(2))}</h{level}>')

        elif line.startswith('> '):
            open_new('blockquote')
            html_lines.append(_inline(line[2:]) + '<br>')

        elif line.strip() == '---':
            close_block()
            html_lines.append('<hr>')

        elif line.startswith('- '):
            open_new('ul')
            html_lines.append(f'<li>{_inline(line[2:])}</li>')

        elif re.match(r'^\d+\.\s', line.strip()):
            open_new('ol')
            text = re.sub(r'^\d+\.\s*', '', line.strip())
            html_lines.append(f'<li>{_inline(text)}</li>')

        elif line.strip() == '':
            close_block()

        else:
            close_block()
            html_lines.append(f'<p>{_inline(line)}</p>')

    close_block()
    return '\n'.join(html_lines)


def _inline(text: str) -> str:
    """Apply inline formatting (bold, italic) after HTML-escaping."""
    text = html.escape(text)
    # Bold must come before italic so **bold** is not eaten by *italic* regex
    text = re.sub(r'\*\*(.+?)\*\*', r'<strong>\1</strong>', text)
    text = re.sub(r'\*(.+?)\*', r'<em>\1</em>', text)
    return text


# ---------------------------------------------------------------------------
# Loading records
# ---------------------------------------------------------------------------

def extract_frontmatter(file_path: Path) -> tuple[dict[str, Any], str] | None:
    """Split a Markdown file into its YAML frontmatter and body."""
    content = file_path.read_text(encoding='utf-8')

    match = re.match(r'^---\s*\n(.*?)\n---\s*\n?(.*)$', content, re.DOTALL)
    if not match:
        return None

    try:
        frontmatter = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        logger.warning(f"Invalid YAML in {file_path}: {e}")
        return None
    if not isinstance(frontmatter, dict):
        return None
    return frontmatter, match.group(2)


def unwrap_records(data: Any) -> list[dict[str, Any]]:
    """
    Dereference wrapper mappings down to the list of records.

    {'activities': {'activity': [...]}} and {'activities': [...]} both give
    the list; a single record under its wrapper becomes a one-item list.
    """
    while isinstance(data, dict) and len(data) == 1:
        inner = next(iter(data.values()))
        if not isinstance(inner, (dict, list)):
            break
        data = inner
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        return [r for r in data if isinstance(r, dict)]
    return []


def load_markdown_dir(content_dir: Path) -> list[dict[str, Any]]:
    records = []
    for file_path in sorted(content_dir.glob('*.md')):
        parsed = extract_frontmatter(file_path)
        if not parsed:
            logger.warning(f"Skipping {file_path.name}: no frontmatter")
            continue
        record, body = parsed
        if body.strip() and 'html' not in record:
            record['html'] = markdown_to_html(body)
        records.append(record)
    return records


def load_records(path: Path) -> list[dict[str, Any]]:
    """Load a collection's records; a missing or unreadable source gives []."""
    path = Path(path)
    if path.is_dir():
        return load_markdown_dir(path)
    if not path.exists():
        logger.warning(f"Data file not found: {path}")
        return []

    try:
        text = path.read_text(encoding='utf-8')
        if path.suffix.lower() == '.json':
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.warning(f"Could not load {path}: {e}")
        return []

    return unwrap_records(data)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

def _json_default(value):
    # YAML dates and datetimes
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def load_collections(site: Site) -> dict[str, list[dict[str, Any]]]:
    """Records of every collection, checked against its identity keys."""
    loaded = {}
    for src, config in site.collections.items():
        records = load_records(site.data_path(config))
        check_identity_keys(records, config)
        loaded[src] = records
    return loaded


def build_catalog(site: Site, loaded: dict[str, list[dict[str, Any]]] | None = None) -> dict[str, Any]:
    """Assemble the catalog for all collections of the site."""
    if loaded is None:
        loaded = load_collections(site)

    collections = {}
    for src, config in site.collections.items():
        records = loaded.get(src, [])
        print(f"  {src}: {len(records)} records")
        collections[src] = {
            'title': config.label,
            'identity_keys': config.identity_keys,
            'title_keys': config.title_keys,
            'record_count': len(records),
            'records': records,
        }

    return {
        'generated': datetime.now().astimezone().isoformat(),
        'site_title': site.title,
        'collections': collections,
    }


def validate_catalog(catalog: dict) -> list[str]:
    """Check for records that cannot be linked to unambiguously."""
    issues = []

    for src, coll in catalog['collections'].items():
        id_keys = coll['identity_keys']
        identities = [identity_of(r, id_keys) for r in coll['records']]
        for pos, ident in enumerate(identities):
            if not all(ident):
                issues.append(f"{src}[{pos}]: Empty identity value for {', '.join(id_keys)}")
        for ident, count in Counter(identities).items():
            if count > 1:
                issues.append(f"{src}: Identity {'/'.join(ident)} used by {count} records")

    return issues


def write_catalog(catalog: dict, output: Path, compact: bool = False) -> None:
    with open(output, 'w', encoding='utf-8') as f:
        if compact:
            json.dump(catalog, f, ensure_ascii=False, separators=(',', ':'), default=_json_default)
        else:
            json.dump(catalog, f, indent=2, ensure_ascii=False, default=_json_default)


def main():
    parser = argparse.ArgumentParser(
        description='Build catalog.json from content data files'
    )
    parser.add_argument(
        '--site',
        type=Path,
        default=Path('site.yaml'),
        help='Site configuration file'
    )
    parser.add_argument(
        '--output',
        type=Path,
        default=Path('catalog.json'),
        help='Output catalog file path'
    )
    parser.add_argument(
        '--validate',
        action='store_true',
        help='Check for empty or duplicate identities'
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format='  %(levelname)s: %(message)s')

    print(f"Site configuration: {args.site}")
    print(f"Output file: {args.output}")

    try:
        site = load_site_config(args.site)
        catalog = build_catalog(site)
    except ConfigError as e:
        print(f"Error: {e}")
        sys.exit(1)

    write_catalog(catalog, args.output)

    total = sum(c['record_count'] for c in catalog['collections'].values())
    print(f"\nCatalog written to {args.output}")
    print(f"Total records: {total}")

    if args.validate:
        issues = validate_catalog(catalog)
        if issues:
            print("\n--- Validation Issues ---")
            for issue in issues:
                print(f"  {issue}")
        else:
            print("\nNo validation issues found.")


if __name__ == '__main__':
    main()
