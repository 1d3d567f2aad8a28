"""
Dual field sets of a quotation line.

Every line carries two views of the same shape: the operational view
(re-derivable from the live catalog) and the snapshot view (frozen at
authorization). ``resolve_line_field`` is the single place that decides
which one wins.
"""
from dataclasses import dataclass, fields, replace
from decimal import Decimal
from typing import Any, Mapping, Optional

SNAPSHOT_SUFFIX = '_snapshot'

DEFAULT_LABELS = {
    'section_name': 'Sin sección',
    'category_name': 'Sin categoría',
    'name': 'Item sin nombre',
}


@dataclass(frozen=True)
class LineFieldSet:
    """One view (operational or snapshot) of a quotation line."""
    name: Optional[str] = None
    description: Optional[str] = None
    category_name: Optional[str] = None
    section_name: Optional[str] = None
    section_order: Optional[int] = None
    category_order: Optional[int] = None
    cost: Optional[Decimal] = None
    expense: Optional[Decimal] = None
    profit: Optional[Decimal] = None
    public_price: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    subtotal: Optional[Decimal] = None
    profit_type: Optional[str] = None

    @classmethod
    def field_names(cls):
        return [f.name for f in fields(cls)]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], suffix: str = '') -> 'LineFieldSet':
        """Read a view out of a flat record, e.g. ``name`` or ``name_snapshot``."""
        return cls(**{name: data.get(f'{name}{suffix}') for name in cls.field_names()})

    @classmethod
    def from_object(cls, obj: Any, suffix: str = '') -> 'LineFieldSet':
        return cls(**{name: getattr(obj, f'{name}{suffix}', None) for name in cls.field_names()})

    def write_to(self, obj: Any, suffix: str = '') -> None:
        """Copy every field onto ``obj`` (e.g. a QuotationItem row)."""
        for name in self.field_names():
            setattr(obj, f'{name}{suffix}', getattr(self, name))

    def with_changes(self, **changes) -> 'LineFieldSet':
        return replace(self, **changes)


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def resolve_line_field(snapshot: LineFieldSet, operational: LineFieldSet, name: str, default: Any = None) -> Any:
    """
    Snapshot value if present, else operational value, else the default.

    Textual attributes with a known label fall back to it when no
    explicit default is given.
    """
    value = getattr(snapshot, name)
    if _is_present(value):
        return value
    value = getattr(operational, name)
    if _is_present(value):
        return value
    if default is None:
        return DEFAULT_LABELS.get(name)
    return default


def resolve_record_field(record: Mapping[str, Any], name: str, default: Any = None) -> Any:
    """``resolve_line_field`` over a flat record holding both views."""
    return resolve_line_field(
        LineFieldSet.from_mapping(record, SNAPSHOT_SUFFIX),
        LineFieldSet.from_mapping(record),
        name,
        default
    )
