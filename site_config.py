"""
Site configuration: which data files to show and how.

site.yaml looks like:

    site_title: Friends of the Garden
    collections:
      activities:
        data: data/activities.yaml
        identity_keys: [name]
        dropdown_categories: true
      meetings:
        data: data/meetings.yaml
        identity_keys: [month, day, year]
        title_keys: [topic]
        ignored_categories: [Archive]

Every option except identity_keys has a default.
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

import yaml

from matching import BUILTIN_MATCHERS


class ConfigError(Exception):
    """Bad site configuration; reported once at setup."""


# Output regions of the page shell
PAGE_COLUMNS = ('main', 'side')


@dataclass
class SiteConfig:
    identity_keys: list[str]
    title_keys: list[str] | None = None
    title_separator: str = ' '
    category_column: str = 'main'
    detail_column: str = 'main'
    image_column: str = 'side'
    event_column: str = 'side'
    ignored_categories: list[str] = field(default_factory=list)
    dropdown_categories: bool = False
    tabular_detail: bool = False
    open_in_new_tab: bool = False
    track_selection: bool = False
    custom_filter_matchers: dict[str, Callable[[Any, str], bool] | str] = field(default_factory=dict)
    content_src: str | None = None
    data: str | None = None
    title: str | None = None
    filter_fields: list[str] = field(default_factory=list)
    search_keys: list[str] = field(default_factory=list)

    def __post_init__(self):
        if isinstance(self.identity_keys, str):
            self.identity_keys = [self.identity_keys]
        if not self.identity_keys:
            raise ConfigError('identity_keys must name at least one field')
        self.identity_keys = [str(k) for k in self.identity_keys]
        if self.title_keys is None:
            self.title_keys = list(self.identity_keys)
        elif isinstance(self.title_keys, str):
            self.title_keys = [self.title_keys]
        for option in ('category_column', 'detail_column', 'image_column', 'event_column'):
            if getattr(self, option) not in PAGE_COLUMNS:
                raise ConfigError(
                    f"{option} must be one of {', '.join(PAGE_COLUMNS)}, not {getattr(self, option)!r}")
        self.custom_filter_matchers = {
            name: _resolve_matcher(name, matcher)
            for name, matcher in (self.custom_filter_matchers or {}).items()
        }

    @property
    def label(self) -> str:
        return self.title or (self.content_src or 'Content').replace('-', ' ').title()


def _resolve_matcher(name: str, matcher):
    if callable(matcher):
        return matcher
    if matcher in BUILTIN_MATCHERS:
        return BUILTIN_MATCHERS[matcher]
    raise ConfigError(
        f"Unknown filter matcher {matcher!r} for {name!r}; "
        f"choose one of {', '.join(sorted(BUILTIN_MATCHERS))}")


OPTION_NAMES = {f.name for f in fields(SiteConfig)}


def config_from_dict(src: str, options: Mapping[str, Any]) -> SiteConfig:
    """Build one collection's config from its site.yaml entry."""
    if not isinstance(options, Mapping):
        raise ConfigError(f"Collection {src!r}: expected a mapping of options")
    unknown = set(options) - OPTION_NAMES
    if unknown:
        raise ConfigError(f"Collection {src!r}: unknown option(s) {', '.join(sorted(unknown))}")
    if 'identity_keys' not in options:
        raise ConfigError(f"Collection {src!r}: identity_keys is required")
    options = dict(options)
    options.setdefault('content_src', src)
    return SiteConfig(**options)


@dataclass
class Site:
    title: str
    collections: dict[str, SiteConfig]
    base_dir: Path = Path('.')

    def data_path(self, config: SiteConfig) -> Path:
        return self.base_dir / (config.data or f'data/{config.content_src}.yaml')


def load_site_config(path: Path) -> Site:
    """Read site.yaml; relative data paths resolve against its directory."""
    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text(encoding='utf-8')) or {}
    except OSError as e:
        raise ConfigError(f"Could not read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    collections = raw.get('collections') or {}
    if not isinstance(collections, Mapping) or not collections:
        raise ConfigError(f"{path}: no collections defined")

    return Site(
        title=raw.get('site_title', 'Content'),
        collections={src: config_from_dict(src, opts) for src, opts in collections.items()},
        base_dir=path.parent,
    )


def check_identity_keys(records: Iterable[Mapping[str, Any]], config: SiteConfig) -> None:
    """Fail if an identity key is missing from every record of a non-empty collection."""
    records = list(records)
    if not records:
        return
    for key in config.identity_keys:
        if not any(key in r for r in records):
            raise ConfigError(
                f"Collection {config.content_src!r}: identity key {key!r} "
                f"is not present in any of its {len(records)} records")
