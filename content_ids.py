"""
Identifiers and links for content records.

Every place that turns a key value into a DOM id, an anchor, or a URL
parameter goes through make_id() so that rendering, filtering, linking and
lookup always agree on the same slug.

Locator format:
    details.html?src=recipes&name=apple-pie       (one param per identity key)
    recipes.html?src=recipes&cat=baking&cat=pies  (one cat param per segment)
"""

import re
from urllib.parse import urlencode
from typing import Any, Iterable, Mapping

from content_tree import scalar_text

# Dashes survive so that a slug maps to itself
_NON_ID_CHARS = re.compile(r'[^a-z0-9 -]+')


def make_id(text: Any) -> str:
    """Convert a key value into a slug: lowercase, [a-z0-9 -] only, spaces to dashes."""
    text = scalar_text(text).lower()
    return _NON_ID_CHARS.sub('', text).replace(' ', '-')


# ---------------------------------------------------------------------------
# Identity and titles
# ---------------------------------------------------------------------------

def identity_of(record: Mapping[str, Any], id_keys: Iterable[str]) -> tuple[str, ...]:
    """Slugified values of the identity keys, in key order."""
    return tuple(make_id(record.get(key)) for key in id_keys)


def title_of(record: Mapping[str, Any], title_keys: Iterable[str], sep: str = ' ') -> str:
    """Human-readable label: raw title key values joined with sep."""
    label = sep.join(scalar_text(record.get(key)) for key in title_keys)
    # Missing trailing keys leave no dangling separator
    while sep and label.endswith(sep):
        label = label[:-len(sep)]
    return label


def selection_key(record: Mapping[str, Any], id_keys: Iterable[str], sep: str = ' ') -> str:
    """Storage key for a record: raw identity values joined with sep."""
    return sep.join(scalar_text(record.get(key)) for key in id_keys)


def find_by_identity(records: Iterable[Mapping[str, Any]], id_keys: list[str],
                     wanted: tuple[str, ...]) -> Mapping[str, Any] | None:
    """Return the first record whose identity equals wanted, or None."""
    wanted = tuple(wanted)
    for record in records:
        if identity_of(record, id_keys) == wanted:
            return record
    return None


# ---------------------------------------------------------------------------
# Locators
# ---------------------------------------------------------------------------

def details_href(record: Mapping[str, Any], id_keys: Iterable[str],
                 content_src: str | None = None) -> str:
    params = []
    if content_src:
        params.append(('src', content_src))
    for key in id_keys:
        params.append((make_id(key), make_id(record.get(key))))
    return 'details.html?' + urlencode(params)


def category_href(category: str, path_ids: Iterable[str], content_src: str | None) -> str:
    """Link to a category view one level below path_ids."""
    params = []
    if content_src:
        params.append(('src', content_src))
    for cat_id in list(path_ids) + [make_id(category)]:
        params.append(('cat', cat_id))
    return f"{content_src or 'index'}.html?" + urlencode(params)


def _first(params: Mapping[str, Any], name: str) -> str:
    # parse_qs gives lists, plain dicts give strings
    value = params.get(name, '')
    if isinstance(value, (list, tuple)):
        return value[0] if value else ''
    return value or ''


def requested_identity(params: Mapping[str, Any], id_keys: Iterable[str]) -> tuple[str, ...]:
    """Identity tuple requested by a details locator's parameters."""
    return tuple(_first(params, make_id(key)) for key in id_keys)


def requested_category_path(params: Mapping[str, Any]) -> list[str]:
    value = params.get('cat', [])
    if isinstance(value, str):
        return [value] if value else []
    return [v for v in value if v]
