"""Filter state for the disease browsing screen.

FilterDraft holds what the user is editing; AppliedFilters is the committed
set the results were (or are being) fetched with. Both are plain dataclasses
and are replaced, never shared, between the two roles.
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, List, Tuple

from autoimmune_console.config.constants import (
    DEFAULT_SORT_BY,
    DEFAULT_SORT_ORDER,
    FILTER_CHAIN,
    FILTER_FIELDS,
    FILTER_LABELS,
    SEARCH_SCOPE_ALL,
    SEARCH_SCOPES,
    SORT_ORDERS,
)


@dataclass(frozen=True)
class FilterValues:
    """Filter values shared by the draft and the applied set."""

    search: str = ""
    search_field: str = SEARCH_SCOPE_ALL
    disease: str = ""
    autoantibody: str = ""
    autoantigen: str = ""
    epitope: str = ""
    type: str = ""
    sort_by: str = DEFAULT_SORT_BY
    sort_order: str = DEFAULT_SORT_ORDER

    def __post_init__(self):
        if self.search_field not in SEARCH_SCOPES:
            raise ValueError(f"Unknown search field: {self.search_field!r}")
        if self.sort_order not in SORT_ORDERS:
            raise ValueError(f"Unknown sort order: {self.sort_order!r}")

    @property
    def has_active_filters(self) -> bool:
        """True when any search text or filter value is set."""
        return any(
            getattr(self, name).strip()
            for name in ("search", "disease", "autoantibody", "autoantigen", "epitope", "type")
        )

    @property
    def active_filter_count(self) -> int:
        """Count of active filters (search counts as one)."""
        return len(self.active_chips())

    def active_chips(self) -> List[Tuple[str, str]]:
        """
        Labelled (label, value) pairs for every non-empty filter.

        The search chip is quoted, the rest are shown as-is.
        """
        chips = []
        for name, label in FILTER_LABELS.items():
            value = getattr(self, name).strip()
            if not value:
                continue
            chips.append((label, f'"{value}"' if name == "search" else value))
        return chips

    def get_summary(self) -> str:
        """Get a human-readable summary of active filters."""
        chips = self.active_chips()
        if not chips:
            return "All entries (no filters)"
        return " | ".join(f"{label}: {value}" for label, value in chips)

    def chain_values(self) -> Dict[str, str]:
        """The disease → epitope selections keyed by field."""
        return {name: getattr(self, name) for name in FILTER_CHAIN}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def merged(self, **changes: Any) -> "FilterValues":
        """
        Return a copy with ``changes`` applied.

        Raises:
            ValueError: If a key is not a declared filter field.
        """
        unknown = [name for name in changes if name not in FILTER_FIELDS]
        if unknown:
            raise ValueError(f"Unknown filter field(s): {', '.join(unknown)}")
        return replace(self, **{name: "" if value is None else value for name, value in changes.items()})


@dataclass(frozen=True)
class FilterDraft(FilterValues):
    """The in-progress, not yet applied selection."""

    def to_applied(self) -> "AppliedFilters":
        return AppliedFilters(**self.to_dict())


@dataclass(frozen=True)
class AppliedFilters(FilterValues):
    """The committed filter set; drives the active filter chips."""

