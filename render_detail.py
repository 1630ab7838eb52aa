"""
Render content records as HTML fragments.

render_record() shows a record of any depth: string fields become a heading
plus a paragraph, lists become ordered lists, nested records become a
heading followed by their own fields one heading level down. Flat records
(e.g. loaded from CSV-like data) can use the two-column table instead.

The 'html' field is an escape hatch for free-form content: a string is
embedded as-is (it is already markup, e.g. converted from a Markdown body)
and a mapping is serialised back into the markup it was parsed from.
"""

import html
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping

from content_ids import make_id
from content_tree import (
    HIDDEN_FIELDS, STRUCTURAL_FIELDS, Kind, classify, enter, is_empty,
    scalar_text, walk_fields,
)

# The html field is walked here (not skipped) so it can be embedded
RENDER_RESERVED = STRUCTURAL_FIELDS - {'html'}

VOID_TAGS = {'br', 'hr', 'img', 'input', 'meta', 'link', 'source', 'wbr'}

IMAGE_DIR = 'images/'
FALLBACK_EXTENSIONS = ('png', 'svg')
DEFAULT_IMAGES = ('default.jpg', 'default.png', 'default.svg')


def make_heading(key: str) -> str:
    """Turn a field name into a heading: capitalise, dashes to spaces."""
    return (key[:1].upper() + key[1:]).replace('-', ' ')


def _h(level: int, text: str) -> str:
    level = min(level, 6)
    return f'<h{level}>{html.escape(text)}</h{level}>'


# ---------------------------------------------------------------------------
# Recursive rendering
# ---------------------------------------------------------------------------

def render_record(record: Mapping[str, Any], id_keys: Iterable[str] = (),
                  title_keys: Iterable[str] = (), level: int = 3) -> str:
    """Render every displayable field of record, starting at heading level."""
    skip = set(id_keys) | set(title_keys)
    lines: list[str] = []
    _display_object(record, lines, level, skip, ())
    return '\n'.join(lines)


def _display_object(obj: Mapping[str, Any], lines: list[str], level: int,
                    skip: set[str], ancestors: tuple[int, ...]) -> None:
    ancestors = enter(obj, ancestors)
    for fld in walk_fields(obj, skip=skip, reserved=RENDER_RESERVED):
        if fld.name.lower() == 'html':
            lines.append(markup_from_value(fld.value))
        elif fld.kind is Kind.SCALAR:
            lines.append(_h(level, make_heading(fld.name)))
            lines.append(f'<p>{html.escape(scalar_text(fld.value))}</p>')
        elif fld.kind is Kind.LIST:
            # Other lists get no heading; it would repeat the enclosing one
            if fld.name.lower() == 'when':
                lines.append(_h(level, 'When'))
            _display_array(fld.value, lines, level, skip, ancestors)
        else:
            lines.append(_h(level, make_heading(fld.name)))
            _display_object(fld.value, lines, level + 1, skip, ancestors)


def _display_array(arr: list, lines: list[str], level: int,
                   skip: set[str], ancestors: tuple[int, ...]) -> None:
    ancestors = enter(arr, ancestors)
    lines.append('<ol>')
    for item in arr:
        if is_empty(item):
            continue
        kind = classify(item)
        if kind is Kind.SCALAR:
            lines.append(f'<li>{html.escape(scalar_text(item))}</li>')
        else:
            lines.append('<li>')
            if kind is Kind.LIST:
                _display_array(item, lines, level, skip, ancestors)
            else:
                _display_object(item, lines, level, skip, ancestors)
            lines.append('</li>')
    lines.append('</ol>')


# ---------------------------------------------------------------------------
# Raw markup payload
# ---------------------------------------------------------------------------

def markup_from_value(value: Any) -> str:
    """
    Serialise the html field back into markup.

    Mappings follow the usual XML-to-JSON convention: '_name' keys are
    attributes, '__text' is the element's text, lists repeat the element.
    """
    if isinstance(value, Mapping):
        return _children_markup(value, ())
    if isinstance(value, (list, tuple)):
        return ''.join(markup_from_value(item) for item in value)
    return scalar_text(value)


def _children_markup(obj: Mapping[str, Any], ancestors: tuple[int, ...]) -> str:
    ancestors = enter(obj, ancestors)
    parts = []
    if '__text' in obj:
        parts.append(html.escape(scalar_text(obj['__text'])))
    for tag, value in obj.items():
        if tag.startswith('_'):
            continue
        items = value if isinstance(value, (list, tuple)) else [value]
        for item in items:
            parts.append(_element_markup(tag, item, ancestors))
    return ''.join(parts)


def _element_markup(tag: str, value: Any, ancestors: tuple[int, ...]) -> str:
    if isinstance(value, Mapping):
        attrs = ''.join(
            f' {key[1:]}="{html.escape(scalar_text(val))}"'
            for key, val in value.items()
            if key.startswith('_') and key != '__text'
        )
        inner = _children_markup(value, ancestors)
    else:
        attrs = ''
        inner = html.escape(scalar_text(value))
    if tag.lower() in VOID_TAGS:
        return f'<{tag}{attrs}>'
    return f'<{tag}{attrs}>{inner}</{tag}>'


# ---------------------------------------------------------------------------
# Flat (table) rendering
# ---------------------------------------------------------------------------

def _flat_text(value: Any) -> str:
    kind = classify(value)
    if kind is Kind.LIST:
        return ', '.join(_flat_text(v) for v in value if not is_empty(v))
    if kind is Kind.RECORD:
        return '; '.join(f'{k}: {_flat_text(v)}' for k, v in value.items() if not is_empty(v))
    return scalar_text(value)


def flat_fields(record: Mapping[str, Any], id_keys: Iterable[str] = (),
                title_keys: Iterable[str] = ()) -> list[tuple[str, str]]:
    skip = set(id_keys) | set(title_keys)
    return [(fld.name, _flat_text(fld.value))
            for fld in walk_fields(record, skip=skip, reserved=HIDDEN_FIELDS)]


def render_table(record: Mapping[str, Any], id_keys: Iterable[str] = (),
                 title_keys: Iterable[str] = ()) -> str:
    rows = [
        f'<tr><td>{html.escape(name)}</td><td>{html.escape(value)}</td></tr>'
        for name, value in flat_fields(record, id_keys, title_keys)
    ]
    return '<table>\n<tbody>\n' + '\n'.join(rows) + '\n</tbody>\n</table>'


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

class ImageHandling(Enum):
    ALL = 1
    FIRST = 2
    RANDOM = 3


@dataclass
class ImageRef:
    """An image to show, plus the sources to try in order if it fails to load."""
    src: str
    title: str
    fallbacks: list[str] = field(default_factory=list)


def _make_img(image_id: str, title: str) -> ImageRef:
    fallbacks = [f'{image_id}.{ext}' for ext in FALLBACK_EXTENSIONS]
    fallbacks.extend(DEFAULT_IMAGES)
    return ImageRef(IMAGE_DIR + image_id + '.jpg', title, fallbacks)


def image_titles(record: Mapping[str, Any]) -> list[str]:
    """Explicit image titles declared by the record, if any."""
    override = record.get('images') if 'images' in record else record.get('Images')
    if is_empty(override):
        return []
    if isinstance(override, str):
        return override.split(':')
    if isinstance(override, Mapping):
        override = override.get('image')
        if isinstance(override, str):
            return [override]
    return [scalar_text(t) for t in override or [] if not is_empty(t)]


def make_imgs(record: Mapping[str, Any], id_keys: Iterable[str],
              title_keys: Iterable[str], title_sep: str = ' ',
              handling: ImageHandling = ImageHandling.ALL,
              now: datetime | None = None) -> list[ImageRef]:
    """
    Build image references for a record.

    Declared image titles win; otherwise a single image is named after the
    identity values and titled after the title values.
    """
    titles = image_titles(record)
    if titles:
        if handling is ImageHandling.ALL:
            return [_make_img(make_id(t), t) for t in titles]
        if handling is ImageHandling.FIRST:
            idx = 0
        else:
            idx = (now or datetime.now()).second % len(titles)
        return [_make_img(make_id(titles[idx]), titles[idx])]

    id_str = ' '.join(scalar_text(record.get(k)) for k in id_keys)
    title = title_sep.join(scalar_text(record.get(k)) for k in title_keys)
    return [_make_img(make_id(id_str), title)]


def img_html(ref: ImageRef, css_class: str = '') -> str:
    title = html.escape(ref.title)
    fallbacks = html.escape(json.dumps(ref.fallbacks))
    class_attr = f' class="{css_class}"' if css_class else ''
    return (f'<img src="{html.escape(ref.src)}" title="{title}" alt="{title}"{class_attr} '
            f'data-fallbacks="{fallbacks}" onerror="loadAlternative(this)">')
