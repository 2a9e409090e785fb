"""Grouped search suggestions built from a free-text match list."""

from typing import Any, Dict, Iterable, List, Mapping

from autoimmune_console.config.constants import SUGGESTION_SECTIONS

DEFAULT_LIMIT_PER_FIELD = 6


def _field_value(match: Any, name: str) -> Any:
    if isinstance(match, Mapping):
        return match.get(name)
    return getattr(match, name, None)


def build_suggestion_index(
    matches: Iterable[Any],
    limit_per_field: int = DEFAULT_LIMIT_PER_FIELD,
) -> Dict[str, List[str]]:
    """
    Group raw matches into per-field suggestion lists.

    For each of disease, autoantibody, autoantigen and epitope the matches are
    walked in the order the service returned them. Values are trimmed, empty
    ones skipped, and only the first occurrence of each exact string is kept.
    Each list is cut to the first ``limit_per_field`` distinct values, so
    earlier (better ranked) matches win.

    Args:
        matches: Entry models or mappings, in service rank order.
        limit_per_field: Cap per group.

    Returns:
        Dict of section -> ordered distinct values. Every section is present.
    """
    index: Dict[str, List[str]] = {section: [] for section in SUGGESTION_SECTIONS}
    seen: Dict[str, set] = {section: set() for section in SUGGESTION_SECTIONS}

    for match in matches:
        for section in SUGGESTION_SECTIONS:
            if len(index[section]) >= limit_per_field:
                continue
            value = _field_value(match, section)
            if value is None:
                continue
            value = str(value).strip()
            if not value or value in seen[section]:
                continue
            seen[section].add(value)
            index[section].append(value)

    return index


def empty_suggestion_index() -> Dict[str, List[str]]:
    """An index with every section present and empty."""
    return {section: [] for section in SUGGESTION_SECTIONS}
