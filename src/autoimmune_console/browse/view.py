"""Which results panel a renderer should show."""

from enum import Enum
from typing import Optional, Sequence


class ResultsView(str, Enum):
    """Mutually exclusive states of the results area."""

    INITIAL = "initial"
    LOADING = "loading"
    ERROR = "error"
    NO_RESULTS = "no_results"
    RESULTS = "results"


def results_view(
    has_interacted: bool,
    loading: bool,
    error: Optional[str],
    entries: Sequence,
) -> ResultsView:
    """
    Derive the results panel state.

    Before the first search or filter interaction only the initial prompt is
    shown, even if a query is in flight. Afterwards loading wins over errors,
    and an empty page is a "no results" state rather than an error.
    """
    if not has_interacted:
        return ResultsView.INITIAL
    if loading:
        return ResultsView.LOADING
    if error:
        return ResultsView.ERROR
    if not entries:
        return ResultsView.NO_RESULTS
    return ResultsView.RESULTS


NO_RESULTS_MESSAGES = {
    True: "Try adjusting your search terms or filters to find more results.",
    False: "No entries match your current criteria.",
}


def no_results_message(has_active_filters: bool) -> str:
    return NO_RESULTS_MESSAGES[bool(has_active_filters)]
