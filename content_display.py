"""
ContentDisplay: everything a page needs to show one content collection.

Each method returns an HTML fragment for one region of the page (the
'main' and 'side' columns, the top navigation, the header). The page shell
(build_site.py for static pages, server.py for the local portal) decides
where the fragments go, using the column names in the collection's
SiteConfig.
"""

import html
from collections import defaultdict
from datetime import datetime
from typing import Any, Iterable, Mapping

from content_ids import (
    category_href, details_href, find_by_identity, make_id, requested_identity,
    title_of,
)
from grouping import (
    CategoryGroup, category_view, group_by_day, next_event, time_label,
    top_level_categories, upcoming_events,
)
from matching import FilterState, field_texts, filter_matcher, search
from render_detail import ImageHandling, img_html, make_imgs, render_record, render_table
from selection import MemorySelection, Selection
from site_config import SiteConfig, check_identity_keys

Record = Mapping[str, Any]


class ContentDisplay:

    def __init__(self, records: Iterable[Record], config: SiteConfig,
                 selection: Selection | None = None):
        self.records = list(records)
        self.config = config
        check_identity_keys(self.records, config)
        self.selection = selection or MemorySelection(config.identity_keys, config.title_separator)

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    @property
    def _target(self) -> str:
        return '_blank' if self.config.open_in_new_tab else '_self'

    def details_href(self, record: Record) -> str:
        return details_href(record, self.config.identity_keys, self.config.content_src)

    def item_title(self, record: Record) -> str:
        return title_of(record, self.config.title_keys, self.config.title_separator)

    def details_link(self, record: Record) -> str:
        return (f'<a href="{html.escape(self.details_href(record))}" target="{self._target}">'
                f'{html.escape(self.item_title(record))}</a>')

    def category_link(self, category: str, path_ids: list[str]) -> str:
        href = category_href(category, path_ids, self.config.content_src)
        return f'<a href="{html.escape(href)}" target="{self._target}">{html.escape(category)}</a>'

    def images(self, record: Record, handling: ImageHandling = ImageHandling.ALL,
               now: datetime | None = None):
        return make_imgs(record, self.config.identity_keys, self.config.title_keys,
                         self.config.title_separator, handling, now)

    # ------------------------------------------------------------------
    # Filtered result list and selection
    # ------------------------------------------------------------------

    def filtered(self, filters: Mapping[str, str] | None = None) -> list[Record]:
        passes = filter_matcher(filters or {}, self.config.custom_filter_matchers)
        return [r for r in self.records if passes(r)]

    def selection_view(self, filtered: list[Record]) -> list[Record]:
        """Records for a visualisation: the selection if one is tracked, else the filtered list."""
        if self.config.track_selection and not self.selection.is_empty():
            return self.selection.all(self.records)
        return filtered

    def select_all(self, filtered: list[Record]) -> None:
        for record in filtered:
            if record not in self.selection:
                self.selection.add(record)

    def clear_selection(self) -> None:
        self.selection.clear()

    def links_html(self, filters: Mapping[str, str] | None = None) -> str:
        items = []
        for record in self.filtered(filters):
            link = self.details_link(record)
            if self.config.track_selection:
                checked = ' checked' if record in self.selection else ''
                value = html.escape(self.item_title(record))
                items.append(
                    f'<li><input type="checkbox" name="vis-select" value="{value}"{checked}>'
                    f'<label>{link}</label></li>')
            else:
                items.append(f'<li>{link}</li>')
        return '<ul id="filter-results">\n' + '\n'.join(items) + '\n</ul>'

    # ------------------------------------------------------------------
    # Details page
    # ------------------------------------------------------------------

    def find(self, params: Mapping[str, Any]) -> Record | None:
        wanted = requested_identity(params, self.config.identity_keys)
        return find_by_identity(self.records, self.config.identity_keys, wanted)

    def details_regions(self, params: Mapping[str, Any]) -> dict[str, str]:
        """Header title plus detail and image columns; empty when nothing matches."""
        record = self.find(params)
        if record is None:
            regions: dict[str, str] = defaultdict(str)
            regions['title'] = ''
            return regions
        return self.record_regions(record)

    def record_regions(self, record: Record) -> dict[str, str]:
        cfg = self.config
        regions: dict[str, str] = defaultdict(str)
        regions['title'] = self.item_title(record)
        if cfg.tabular_detail:
            body = render_table(record, cfg.identity_keys, cfg.title_keys)
        else:
            body = render_record(record, cfg.identity_keys, cfg.title_keys)
        regions[cfg.detail_column] += body
        regions[cfg.image_column] += '\n'.join(img_html(ref) for ref in self.images(record))
        return regions

    # ------------------------------------------------------------------
    # Search with autocomplete
    # ------------------------------------------------------------------

    def autocomplete(self, term: str, filters: Mapping[str, str] | None = None,
                     search_keys: Iterable[str] | None = None,
                     now: datetime | None = None) -> list[dict[str, Any]]:
        if search_keys is None:
            search_keys = self.config.search_keys
        found = search(self.records, term, filters, search_keys, self.config.custom_filter_matchers)
        results = []
        for record in found:
            image = self.images(record, ImageHandling.RANDOM, now)[0]
            results.append({
                'label': self.item_title(record),
                'href': self.details_href(record),
                'image': {'src': image.src, 'title': image.title, 'fallbacks': image.fallbacks},
            })
        return results

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def topnav_html(self) -> str:
        cats = top_level_categories(self.records, self.config.ignored_categories)
        links = '\n'.join(self.category_link(cat, []) for cat in cats)
        return f'<div id="topnav-cat-holder">\n{links}\n</div>'

    def category_groups(self, requested: list[str]) -> list[CategoryGroup]:
        return category_view(self.records, requested, self.config.ignored_categories)

    def category_view_html(self, requested: list[str]) -> str:
        """One block per category one level below requested (a list of category ids)."""
        blocks = []
        for group in self.category_groups(requested):
            entries = []
            for entry in group.entries:
                if entry.is_subcategory:
                    link = self.category_link(entry.name, entry.path_ids)
                else:
                    link = self.details_link(entry.record)
                entries.append(link if self.config.dropdown_categories else f'<li>{link}</li>')

            first = self.images(group.image_record, ImageHandling.FIRST)[0]
            img = img_html(first, 'cat-img')
            holder_id = html.escape(group.id)
            if self.config.dropdown_categories:
                holder = f'<div class="dropdown-content" id="{holder_id}">' + ''.join(entries) + '</div>'
                blocks.append(
                    '<div class="cat-div"><div class="button-group dropdown">'
                    f'<button type="button">{html.escape(group.name)}</button>{holder}</div>'
                    f'{img}</div>')
            else:
                holder = f'<ul id="{holder_id}">' + ''.join(entries) + '</ul>'
                blocks.append(
                    f'<div class="cat-div">{img}<div class="cat-text">'
                    f'<h4>{html.escape(group.name)}</h4>{holder}</div></div>')
        return '\n'.join(blocks)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def upcoming_events_html(self, now: datetime | None = None) -> str:
        parts = []
        for day, events in group_by_day(upcoming_events(self.records, now)):
            items = ''.join(
                f'<li>{time_label(e.date)}: {self.details_link(e.record)}</li>' for e in events)
            parts.append(f'<h4>{html.escape(day)}</h4>\n<ul>{items}</ul>')
        return '\n'.join(parts)

    def next_event_html(self, now: datetime | None = None) -> str:
        record = next_event(self.records, now)
        return self.details_link(record) if record is not None else ''

    # ------------------------------------------------------------------
    # Dropdown filters
    # ------------------------------------------------------------------

    def filter_values(self, field_name: str) -> list[str]:
        values = set()
        for record in self.records:
            value = record.get(field_name, record.get(field_name.lower()))
            values.update(v for v in field_texts(value) if v)
        return sorted(values, key=str.lower)

    def filter_dropdowns_html(self, state: FilterState | None = None,
                              fields: Iterable[str] | None = None) -> str:
        current = state.as_dict() if state else {}
        groups = []
        for name in (fields if fields is not None else self.config.filter_fields):
            selected = current.get(name)
            btn_class = ' class="selected"' if selected is not None else ''
            options = []
            for value in self.filter_values(name):
                opt_class = ' class="selected"' if value.lower() == selected else ''
                options.append(
                    f'<button type="button" data-filter="{html.escape(name)}"{opt_class}>'
                    f'{html.escape(value)}</button>')
            options = ''.join(options)
            groups.append(
                f'<div class="button-group dropdown" id="filter-{make_id(name)}">'
                f'<button type="button"{btn_class}>{html.escape(name)}</button>'
                f'<div class="dropdown-content">{options}</div></div>')
        hidden = ' style="display:none"' if not current else ''
        groups.append(f'<button type="button" id="clear-filters"{hidden}>Clear all filters</button>')
        return '<div id="filter-group">\n' + '\n'.join(groups) + '\n</div>'

    # ------------------------------------------------------------------
    # Whole pages
    # ------------------------------------------------------------------

    def listing_regions(self, requested: list[str] | None = None,
                        filters: Mapping[str, str] | None = None,
                        state: FilterState | None = None,
                        now: datetime | None = None) -> dict[str, str]:
        """
        Regions of a collection page plus its upcoming events.

        A requested category path shows that category's view. Otherwise the
        page shows the filter dropdowns and results when filter fields are
        configured, the top-level category view when records have
        categories, and a plain list of every record when they don't.
        """
        cfg = self.config
        regions: dict[str, str] = defaultdict(str)
        regions['title'] = cfg.label
        regions['topnav'] = self.topnav_html()

        if state is not None:
            filters = state.as_dict()
        groups_html = '' if cfg.filter_fields and not requested else self.category_view_html(requested or [])
        if groups_html or requested:
            regions[cfg.category_column] += groups_html
        else:
            if cfg.filter_fields:
                regions[cfg.category_column] += self.filter_dropdowns_html(state) + '\n'
            regions[cfg.category_column] += self.links_html(filters)

        next_html = self.next_event_html(now)
        if next_html:
            regions[cfg.event_column] += f'<h3>Next</h3>\n{next_html}\n'
        upcoming = self.upcoming_events_html(now)
        if upcoming:
            regions[cfg.event_column] += f'<h3>Upcoming</h3>\n{upcoming}'
        return regions
