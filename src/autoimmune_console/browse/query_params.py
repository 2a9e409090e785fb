"""Query parameter building for the Query Service.

Parameters are sparse: a filter is only sent when its trimmed value is
non-empty. A missing parameter means "no constraint"; the service never
receives an empty-string constraint.
"""

from typing import Any, Dict, Mapping, Optional

from autoimmune_console.config.constants import (
    DEFAULT_SORT_BY,
    DEFAULT_SORT_ORDER,
    FILTER_CHAIN,
    SEARCH_SCOPE_ALL,
    VALUE_SCOPE_FIELDS,
)

# Filters sent verbatim under their own name
_PLAIN_FILTERS = ("disease", "autoantibody", "autoantigen", "epitope", "type")


def _clean(value: Any) -> str:
    """Trim a filter value, treating None as empty."""
    if value is None:
        return ""
    return str(value).strip()


def _get(filters: Any, name: str) -> Any:
    """Read a filter from a mapping or an attribute-style object."""
    if isinstance(filters, Mapping):
        return filters.get(name)
    return getattr(filters, name, None)


def build_entries_params(
    filters: Any,
    page: int = 1,
    limit: int = 20,
) -> Dict[str, str]:
    """Build query parameters for the entry list endpoint.

    Args:
        filters: AppliedFilters / FilterDraft, or a mapping with the same
            attribute names (search, search_field, disease, ..., sort_by,
            sort_order).
        page: Page number (1-indexed).
        limit: Results per page.

    Returns:
        Dict of wire parameter name to string value.
    """
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")

    params = {
        "page": str(page),
        "limit": str(limit),
        "sortBy": _clean(_get(filters, "sort_by")) or DEFAULT_SORT_BY,
        "sortOrder": _clean(_get(filters, "sort_order")) or DEFAULT_SORT_ORDER,
    }

    search = _clean(_get(filters, "search"))
    if search:
        params["search"] = search
        scope = _clean(_get(filters, "search_field"))
        if scope and scope != SEARCH_SCOPE_ALL:
            params["field"] = scope

    for name in _PLAIN_FILTERS:
        value = _clean(_get(filters, name))
        if value:
            params[name] = value

    return params


def build_scope_params(field: str, filters: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
    """Build the ancestor scope for a dependent-value request.

    Only the ancestors listed for ``field`` in VALUE_SCOPE_FIELDS are kept,
    and only when non-empty.

    Args:
        field: Chain field whose values are requested.
        filters: Candidate scope values keyed by field name.

    Returns:
        Sparse dict of scope parameters.
    """
    if field not in FILTER_CHAIN:
        raise ValueError(f"Valid field is required ({', '.join(FILTER_CHAIN)}), got {field!r}")

    filters = filters or {}
    scope = {}
    for ancestor in VALUE_SCOPE_FIELDS[field]:
        value = _clean(filters.get(ancestor))
        if value:
            scope[ancestor] = value
    return scope
