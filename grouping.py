"""
Category and date groupings over a whole content collection.

Categories are slash-separated paths ('Garden/Vegetables/Tomatoes'); a
record may list several. category_view() shows, for the path selected so
far, the next level down: one group per next segment holding either links
to deeper subcategories or the records that end there.

Dates come from a 'when' field (one value or a list) or from separate
month/day/year fields. A date that cannot be parsed is logged and ignored.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Mapping

from content_ids import make_id
from content_tree import is_empty, scalar_text

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

@dataclass
class CategoryEntry:
    """One line in a category group: a deeper subcategory or a record."""
    name: str
    path_ids: list[str] = field(default_factory=list)
    record: Mapping[str, Any] | None = None

    @property
    def is_subcategory(self) -> bool:
        return self.record is None


@dataclass
class CategoryGroup:
    name: str
    id: str
    image_record: Mapping[str, Any]
    entries: list[CategoryEntry] = field(default_factory=list)


def category_paths(record: Mapping[str, Any]) -> list[str]:
    """All category paths declared by record (possibly none)."""
    paths = record.get('category') if 'category' in record else record.get('Category')
    if is_empty(paths):
        return []
    if not isinstance(paths, (list, tuple)):
        paths = [paths]
    return [scalar_text(p) for p in paths if not is_empty(p)]


def category_segments(record: Mapping[str, Any]) -> list[list[str]]:
    """
    Each category path of record split into its segments.

    Empty segments (from a leading, trailing or doubled slash) are dropped,
    and so is a path with none left.
    """
    segments = []
    for path_str in category_paths(record):
        path = [seg for seg in path_str.split('/') if seg.strip()]
        if path:
            segments.append(path)
    return segments


def top_level_categories(records: Iterable[Mapping[str, Any]],
                         ignore: Iterable[str] = ()) -> list[str]:
    """First segments of every category path, deduplicated and sorted."""
    ignore = set(ignore)
    cats = set()
    for record in records:
        for path in category_segments(record):
            top = path[0]
            if top not in ignore:
                cats.add(top)
    return sorted(cats)


def category_view(records: Iterable[Mapping[str, Any]], requested: list[str],
                  ignore: Iterable[str] = ()) -> list[CategoryGroup]:
    """
    Group records one level below the requested category path.

    requested is the list of category ids (slugs) selected so far. A path
    containing an ignored segment anywhere is skipped. Groups appear in the
    order their first record appears.
    """
    ignore = set(ignore)
    depth = len(requested)
    groups: dict[str, CategoryGroup] = {}
    seen_next: dict[str, set[str]] = {}

    for record in records:
        for path in category_segments(record):
            path_ids = [make_id(seg) for seg in path]
            if path_ids[:depth] != list(requested):
                continue
            if any(seg in ignore for seg in path):
                continue

            # The group is the segment just past the request, unless the
            # path ends at the request; then it's the last segment
            idx = depth if len(path) > depth else depth - 1
            cur_cat, cur_id = path[idx], path_ids[idx]

            group = groups.get(cur_id)
            if group is None:
                group = groups[cur_id] = CategoryGroup(cur_cat, cur_id, record)
                seen_next[cur_id] = set()

            if len(path) > depth + 1:
                next_cat, next_id = path[depth + 1], path_ids[depth + 1]
                if next_id not in seen_next[cur_id]:
                    seen_next[cur_id].add(next_id)
                    group.entries.append(
                        CategoryEntry(next_cat, path_ids=list(requested) + [cur_id]))
            else:
                group.entries.append(CategoryEntry(path[-1], record=record))

    return list(groups.values())


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

DATE_FORMATS = [
    '%B %d %Y', '%b %d %Y', '%B %d, %Y', '%b %d, %Y',
    '%d %B %Y', '%d %b %Y', '%m/%d/%Y',
]
TIME_FORMATS = ['', ' %I:%M %p', ' %I:%M%p', ' %I %p', ' %H:%M', ' %H:%M:%S']


@dataclass(frozen=True)
class EventEntry:
    record: Mapping[str, Any]
    date: datetime


def parse_event_date(value: Any) -> datetime | None:
    """Parse a date value into a datetime, or None if it isn't one."""
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = re.sub(r'\s+', ' ', scalar_text(value)).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text).replace(tzinfo=None)
    except ValueError:
        pass
    for date_fmt in DATE_FORMATS:
        for time_fmt in TIME_FORMATS:
            try:
                return datetime.strptime(text, date_fmt + time_fmt)
            except ValueError:
                continue
    return None


def event_dates(record: Mapping[str, Any]) -> list[datetime]:
    """Valid dates declared by record; invalid ones are logged and dropped."""
    if 'when' in record:
        when = record['when']
        date_values = when if isinstance(when, (list, tuple)) else [when]
    elif all(k in record for k in ('month', 'day', 'year')):
        date_values = [' '.join(scalar_text(record[k]) for k in ('month', 'day', 'year'))]
    else:
        return []

    dates = []
    for value in date_values:
        if is_empty(value):
            continue
        parsed = parse_event_date(value)
        if parsed is None:
            logger.warning(f"Invalid date string {scalar_text(value)!r}")
        else:
            dates.append(parsed)
    return dates


def upcoming_events(records: Iterable[Mapping[str, Any]],
                    now: datetime | None = None) -> list[EventEntry]:
    """Every (record, date) pair with a date after now, earliest first."""
    now = now or datetime.now()
    events = [
        EventEntry(record, d)
        for record in records
        for d in event_dates(record)
        if d > now
    ]
    # sort() is stable: equal dates keep collection order
    events.sort(key=lambda e: e.date)
    return events


def day_label(d: datetime) -> str:
    return d.strftime('%a %b %d %Y')


def time_label(d: datetime) -> str:
    return f"{d.hour % 12 or 12}:{d.minute:02d} {'AM' if d.hour < 12 else 'PM'}"


def group_by_day(events: list[EventEntry]) -> list[tuple[str, list[EventEntry]]]:
    """Consecutive events sharing a calendar day, under that day's label."""
    groups: list[tuple[str, list[EventEntry]]] = []
    for event in events:
        label = day_label(event.date)
        if not groups or groups[-1][0] != label:
            groups.append((label, []))
        groups[-1][1].append(event)
    return groups


def next_event(records: Iterable[Mapping[str, Any]],
               now: datetime | None = None) -> Mapping[str, Any] | None:
    """The record owning the closest future date; first record wins ties."""
    now = now or datetime.now()
    best_date, best = None, None
    for record in records:
        for d in event_dates(record):
            if d > now and (best is None or d < best_date):
                best_date, best = d, record
    return best
