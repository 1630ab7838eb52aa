"""
Filtering and free-text search over content records.

Filters are {field: wanted} selections made from dropdowns; a record passes
when every selected field contains the wanted text. Search looks for a word
prefix anywhere in the record, descending into nested records and lists.
"""

import html
import re
from typing import Any, Callable, Iterable, Mapping

from content_tree import HIDDEN_FIELDS, Kind, classify, enter, is_empty, scalar_text, walk_fields

Matcher = Callable[[Any, str], bool]


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

def field_texts(value: Any) -> list[str]:
    """Scalar texts of a field value (a list contributes each scalar element)."""
    kind = classify(value)
    if kind is Kind.SCALAR:
        return [scalar_text(value)]
    if kind is Kind.LIST:
        return [scalar_text(v) for v in value if classify(v) is Kind.SCALAR and not is_empty(v)]
    return []


def substring_matcher(value: Any, wanted: str) -> bool:
    wanted = wanted.lower()
    return any(wanted in text.lower() for text in field_texts(value))


def exact_matcher(value: Any, wanted: str) -> bool:
    wanted = wanted.lower()
    return any(text.lower() == wanted for text in field_texts(value))


def prefix_matcher(value: Any, wanted: str) -> bool:
    wanted = wanted.lower()
    return any(text.lower().startswith(wanted) for text in field_texts(value))


def word_matcher(value: Any, wanted: str) -> bool:
    pattern = re.compile(r'\b' + re.escape(wanted) + r'\b', re.IGNORECASE)
    return any(pattern.search(text) for text in field_texts(value))


# Matchers that site.yaml can name in custom_filter_matchers
BUILTIN_MATCHERS: dict[str, Matcher] = {
    'substring': substring_matcher,
    'exact': exact_matcher,
    'prefix': prefix_matcher,
    'word': word_matcher,
}


def _field_value(record: Mapping[str, Any], name: str) -> tuple[bool, Any]:
    if name in record:
        return True, record[name]
    lowered = name.lower()
    if lowered in record:
        return True, record[lowered]
    return False, None


def matches_filters(record: Mapping[str, Any], filters: Mapping[str, str],
                    custom_matchers: Mapping[str, Matcher] | None = None) -> bool:
    """True if record satisfies every filter; an absent field never matches."""
    custom_matchers = custom_matchers or {}
    for name, wanted in filters.items():
        if name in custom_matchers:
            if not custom_matchers[name](record.get(name), wanted):
                return False
            continue
        present, value = _field_value(record, name)
        if not present or not substring_matcher(value, wanted):
            return False
    return True


def filter_matcher(filters: Mapping[str, str],
                   custom_matchers: Mapping[str, Matcher] | None = None
                   ) -> Callable[[Mapping[str, Any]], bool]:
    """Return a predicate checking records against all filters."""
    filters = dict(filters)
    return lambda record: matches_filters(record, filters, custom_matchers)


class FilterState:
    """
    Current dropdown filter selections for one page.

    Values are stored lowercased. Selecting the value a filter already has
    deselects it.
    """

    def __init__(self):
        self._filters: dict[str, str] = {}

    def toggle(self, name: str, value: str) -> bool:
        """Apply a dropdown click. Returns True if the filter is now set."""
        value = value.lower()
        if self._filters.get(name) == value:
            del self._filters[name]
            return False
        self._filters[name] = value
        return True

    def clear(self) -> None:
        self._filters = {}

    def is_empty(self) -> bool:
        return not self._filters

    def as_dict(self) -> dict[str, str]:
        return dict(self._filters)

    def __contains__(self, name: str) -> bool:
        return name in self._filters

    def __repr__(self):
        return f'FilterState({self._filters!r})'


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

_TAG = re.compile(r'<[^>]*>')


def extract_plain_text(markup: Any) -> str:
    """
    Text of an html field for search indexing.

    Tags and attributes are dropped so only the words a reader sees can
    match. A mapping keeps its '__text' values and child elements but not
    its '_attribute' values.
    """
    parts: list[str] = []
    _markup_text(markup, parts, ())
    return ' '.join(parts)


def _markup_text(value: Any, parts: list[str], ancestors: tuple[int, ...]) -> None:
    kind = classify(value)
    if kind is Kind.RECORD:
        ancestors = enter(value, ancestors)
        for key, child in value.items():
            if key == '__text' or not key.startswith('_'):
                _markup_text(child, parts, ancestors)
    elif kind is Kind.LIST:
        ancestors = enter(value, ancestors)
        for item in value:
            _markup_text(item, parts, ancestors)
    else:
        text = html.unescape(_TAG.sub(' ', scalar_text(value)))
        text = re.sub(r'\s+', ' ', text).strip()
        if text:
            parts.append(text)


def search_pattern(term: str) -> re.Pattern:
    """Match the typed text at the start of words only."""
    return re.compile(r'\b' + re.escape(term), re.IGNORECASE)


def matches_search(record: Mapping[str, Any], pattern: re.Pattern,
                   search_keys: Iterable[str] = ()) -> bool:
    """True if pattern matches any scalar reachable in record."""
    return _match_in_object(record, pattern, tuple(search_keys), ())


def _match_in_object(obj: Mapping[str, Any], pattern: re.Pattern,
                     search_keys: tuple[str, ...], ancestors: tuple[int, ...]) -> bool:
    ancestors = enter(obj, ancestors)
    for fld in walk_fields(obj, reserved=HIDDEN_FIELDS, only=search_keys):
        if fld.name.lower() == 'html':
            if pattern.search(extract_plain_text(fld.value)):
                return True
        elif fld.kind is Kind.SCALAR:
            if pattern.search(scalar_text(fld.value)):
                return True
        elif fld.kind is Kind.LIST:
            if _match_in_array(fld.value, pattern, search_keys, ancestors):
                return True
        elif _match_in_object(fld.value, pattern, search_keys, ancestors):
            return True
    return False


def _match_in_array(arr: list, pattern: re.Pattern,
                    search_keys: tuple[str, ...], ancestors: tuple[int, ...]) -> bool:
    ancestors = enter(arr, ancestors)
    for item in arr:
        if is_empty(item):
            continue
        kind = classify(item)
        if kind is Kind.SCALAR:
            if pattern.search(scalar_text(item)):
                return True
        elif kind is Kind.LIST:
            if _match_in_array(item, pattern, search_keys, ancestors):
                return True
        elif _match_in_object(item, pattern, search_keys, ancestors):
            return True
    return False


def searchable_text(record: Mapping[str, Any]) -> str:
    """All searchable scalar text of record, space-joined (for search indexes)."""
    parts: list[str] = []
    _collect_text(record, parts, ())
    return ' '.join(parts)


def _collect_text(value: Any, parts: list[str], ancestors: tuple[int, ...]) -> None:
    kind = classify(value)
    if kind is Kind.SCALAR:
        if not is_empty(value):
            parts.append(scalar_text(value))
    elif kind is Kind.LIST:
        ancestors = enter(value, ancestors)
        for item in value:
            _collect_text(item, parts, ancestors)
    else:
        ancestors = enter(value, ancestors)
        for fld in walk_fields(value, reserved=HIDDEN_FIELDS):
            if fld.name.lower() == 'html':
                text = extract_plain_text(fld.value)
                if text:
                    parts.append(text)
            else:
                _collect_text(fld.value, parts, ancestors)


def search(records: Iterable[Mapping[str, Any]], term: str,
           filters: Mapping[str, str] | None = None,
           search_keys: Iterable[str] = (),
           custom_matchers: Mapping[str, Matcher] | None = None) -> list[Mapping[str, Any]]:
    """Records passing the filters whose text matches term (autocomplete source)."""
    pattern = search_pattern(term)
    passes = filter_matcher(filters or {}, custom_matchers)
    search_keys = tuple(search_keys)
    return [r for r in records if passes(r) and matches_search(r, pattern, search_keys)]
