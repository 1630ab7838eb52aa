"""
Generic traversal over schema-less content records.

Records come straight from YAML/JSON data files, so a field can hold a
string (or another YAML scalar), a nested mapping, or a list mixing all
three. The renderer and the search matcher both walk records through
walk_fields() so that the same fields are skipped everywhere.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, Iterator, Mapping


class Kind(Enum):
    SCALAR = 'scalar'
    LIST = 'list'
    RECORD = 'record'


# Never rendered generically and never searched
HIDDEN_FIELDS = frozenset({'images', 'link'})

# Routed to specialised handling instead of generic rendering
STRUCTURAL_FIELDS = HIDDEN_FIELDS | {'category', 'dates', 'html'}


class CyclicRecordError(ValueError):
    """A record (or list) contains itself, e.g. through a recursive YAML alias."""


@dataclass(frozen=True)
class Field:
    name: str
    kind: Kind
    value: Any


def classify(value: Any) -> Kind:
    if isinstance(value, Mapping):
        return Kind.RECORD
    if isinstance(value, (list, tuple)):
        return Kind.LIST
    return Kind.SCALAR


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ''
    if isinstance(value, (list, tuple, Mapping)):
        return len(value) == 0
    return False


def scalar_text(value: Any) -> str:
    """String form of a scalar value ('' for None)."""
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def enter(value: Any, ancestors: tuple[int, ...]) -> tuple[int, ...]:
    """Extend the chain of containers being visited, refusing to loop."""
    marker = id(value)
    if marker in ancestors:
        raise CyclicRecordError('record refers to itself; cannot traverse a cyclic structure')
    return ancestors + (marker,)


def walk_fields(record: Mapping[str, Any],
                skip: Iterable[str] = (),
                reserved: Iterable[str] = STRUCTURAL_FIELDS,
                only: Iterable[str] = ()) -> Iterator[Field]:
    """
    Yield the present, non-empty fields of record in record order.

    skip      - exact field names to leave out (identity/title keys)
    reserved  - field names left out regardless of case
    only      - if non-empty, yield only these field names
    """
    skip = set(skip)
    reserved = {name.lower() for name in reserved}
    only = set(only)
    for name, value in record.items():
        if name.lower() in reserved or name in skip:
            continue
        if only and name not in only:
            continue
        if is_empty(value):
            continue
        yield Field(name, classify(value), value)
