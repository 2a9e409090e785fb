"""Disease browsing: filter state, cascading value sets and suggestions."""

from .filter_state import AppliedFilters, FilterDraft, FilterValues
from .query_params import build_entries_params, build_scope_params
from .suggestions import build_suggestion_index, empty_suggestion_index
from .debounce import Debouncer
from .view import ResultsView, no_results_message, results_view
from .engine import BrowseEngine

__all__ = [
    "AppliedFilters",
    "FilterDraft",
    "FilterValues",
    "build_entries_params",
    "build_scope_params",
    "build_suggestion_index",
    "empty_suggestion_index",
    "Debouncer",
    "ResultsView",
    "no_results_message",
    "results_view",
    "BrowseEngine",
]
