"""Cascading filter and suggestion engine for the disease browsing screen.

The engine owns the filter draft, the applied filters, the dependent value
sets of the disease → autoantibody → autoantigen → epitope chain, and the
transient suggestion index. Event handlers are synchronous: they update
state and schedule network work as tasks on the running event loop.

Every logical target (results, each field's value set, suggestions,
statistics) carries a generation counter. A response only writes state if
its generation is still current, so a slow superseded request can never
overwrite a newer one.
"""

import asyncio
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set

from autoimmune_console.browse.debounce import Debouncer
from autoimmune_console.browse.filter_state import AppliedFilters, FilterDraft
from autoimmune_console.browse.query_params import build_entries_params, build_scope_params
from autoimmune_console.browse.suggestions import build_suggestion_index, empty_suggestion_index
from autoimmune_console.browse.view import ResultsView, results_view
from autoimmune_console.client.schemas import Entry, Pagination, Statistics
from autoimmune_console.config import BrowseConfig, config
from autoimmune_console.config.constants import (
    FILTER_CHAIN,
    FILTER_FIELDS,
    SORT_ASC,
    SORT_DESC,
    SUGGESTION_SECTIONS,
)
from autoimmune_console.config.logging_config import get_logger
from autoimmune_console.errors import NetworkFailure

logger = get_logger("browse")

RESULTS = "results"
SUGGESTIONS = "suggestions"
STATISTICS = "statistics"


def _values_target(field: str) -> str:
    return f"values:{field}"


class BrowseEngine:
    """
    State machine behind the disease browsing screen.

    ``service`` is anything with the QueryServiceClient read coroutines:
    ``list_entries``, ``unique_values``, ``filtered_unique_values``,
    ``search_entries`` and ``statistics_overview`` (plus ``create_entry``,
    ``update_entry`` and ``delete_entry`` for the mutation helpers).

    Usage:
        async with QueryServiceClient() as service:
            engine = BrowseEngine(service)
            engine.start()
            engine.change_disease("Systemic lupus erythematosus")
            await engine.wait_idle()
            print(engine.entries)
            engine.close()
    """

    def __init__(self, service: Any, settings: Optional[BrowseConfig] = None):
        self.service = service
        self.settings = settings or config.browse

        self.draft = FilterDraft()
        self.applied = AppliedFilters()
        # Last applied set the service answered successfully
        self._confirmed = AppliedFilters()

        self.value_sets: Dict[str, List[str]] = {name: [] for name in FILTER_CHAIN}
        self.value_errors: Dict[str, str] = {}
        self.loading_values: Set[str] = set()

        self.entries: List[Entry] = []
        self.pagination = Pagination(limit=self.settings.page_size)
        self.loading = False
        self.results_error: Optional[str] = None
        self.has_interacted = False

        self.statistics: Optional[Statistics] = None
        self.statistics_error: Optional[str] = None

        self.suggestions: Dict[str, List[str]] = empty_suggestion_index()
        self.suggestions_visible = False
        self.suggestions_loading = False

        self._generations: Dict[str, int] = defaultdict(int)
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

        self._apply_timer = Debouncer(
            self.settings.apply_debounce_seconds, self._commit_search, name="apply"
        )
        self._suggestion_timer = Debouncer(
            self.settings.suggestion_debounce_seconds, self._fetch_suggestions, name="suggestions"
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Load statistics and the root disease values. No entries are queried."""
        self._ensure_open()
        token = self._next_generation(STATISTICS)
        self._spawn(self._load_statistics(token))
        self._request_values("disease", fetch=lambda: self.service.unique_values("disease"))

    def close(self) -> None:
        """Stop timers and in-flight work; later responses are ignored."""
        if self._closed:
            return
        self._closed = True
        self._apply_timer.cancel()
        self._suggestion_timer.cancel()
        for task in list(self._tasks):
            task.cancel()
        logger.debug("Browse engine closed")

    @property
    def closed(self) -> bool:
        return self._closed

    async def wait_idle(self) -> None:
        """
        Wait until every scheduled request has resolved.

        Debounce timers that have not fired yet are not waited for.
        Unexpected task errors are collected from every task, and the first
        one is re-raised once nothing is left running.
        """
        errors = []
        while self._tasks:
            done, _ = await asyncio.wait(list(self._tasks))
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    errors.append(task.exception())
        if errors:
            if len(errors) > 1:
                logger.error(f"{len(errors)} browse tasks failed; raising the first")
            raise errors[0]

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def view(self) -> ResultsView:
        return results_view(self.has_interacted, self.loading, self.results_error, self.entries)

    @property
    def has_active_filters(self) -> bool:
        return self.draft.has_active_filters

    def is_field_enabled(self, field: str) -> bool:
        """A chain field can be chosen once its parent is selected."""
        position = FILTER_CHAIN.index(field)
        if position == 0:
            return True
        return bool(getattr(self.draft, FILTER_CHAIN[position - 1]).strip())

    # ------------------------------------------------------------------
    # Draft controller
    # ------------------------------------------------------------------

    def set_field(self, field: str, value: str, apply_immediately: bool = False) -> None:
        """
        Merge one value into the draft.

        Args:
            field: One of FILTER_FIELDS.
            value: New value.
            apply_immediately: Commit the draft and query page 1 right away.
                Otherwise only the draft changes; typing into ``search``
                restarts the debounce timers.

        Raises:
            ValueError: If ``field`` is not a filter field.
        """
        self._ensure_open()
        if field not in FILTER_FIELDS:
            raise ValueError(f"Unknown filter field: {field!r}")
        self.draft = self.draft.merged(**{field: value})

        if apply_immediately:
            if field == "search":
                self._cancel_search_timers()
            self._apply()
        elif field == "search":
            self._on_search_typed()

    def change_disease(self, value: str) -> None:
        """Select a disease; clears and reloads everything below it."""
        self._ensure_open()
        value = value or ""
        self.draft = self.draft.merged(disease=value, autoantibody="", autoantigen="", epitope="")
        self._reset_values("autoantibody", "autoantigen", "epitope")
        self._apply()

        if value.strip():
            scope = build_scope_params("autoantibody", {"disease": value})
            self._request_scoped_values("autoantibody", scope)
            self._request_scoped_values("autoantigen", dict(scope))

    def change_autoantibody(self, value: str) -> None:
        """Select an autoantibody; clears and reloads autoantigen and epitope."""
        self._ensure_open()
        value = value or ""
        self.draft = self.draft.merged(autoantibody=value, autoantigen="", epitope="")
        self._reset_values("autoantigen", "epitope")
        self._apply()

        if value.strip() and self.draft.disease.strip():
            scope = build_scope_params(
                "autoantigen", {"disease": self.draft.disease, "autoantibody": value}
            )
            self._request_scoped_values("autoantigen", scope)

    def change_autoantigen(self, value: str) -> None:
        """Select an autoantigen; clears and reloads epitope."""
        self._ensure_open()
        value = value or ""
        self.draft = self.draft.merged(autoantigen=value, epitope="")
        self._reset_values("epitope")
        self._apply()

        if value.strip():
            scope = build_scope_params(
                "epitope", {"disease": self.draft.disease, "autoantigen": value}
            )
            self._request_scoped_values("epitope", scope)

    def change_epitope(self, value: str) -> None:
        self._ensure_open()
        self.draft = self.draft.merged(epitope=value or "")
        self._apply()

    def clear_all(self) -> None:
        """Reset every filter and query the first unfiltered page."""
        self._ensure_open()
        self._cancel_search_timers()
        self._hide_suggestions()
        self.draft = FilterDraft()
        self.applied = AppliedFilters()
        self._reset_values("autoantibody", "autoantigen", "epitope")
        self._request_results(self.applied, page=1)
        logger.info("Filters cleared")

    def toggle_sort(self, field: str) -> None:
        """Flip the order of the current sort column, or sort ascending by a new one."""
        self._ensure_open()
        if field == self.draft.sort_by:
            order = SORT_DESC if self.draft.sort_order == SORT_ASC else SORT_ASC
        else:
            order = SORT_ASC
        self.draft = self.draft.merged(sort_by=field, sort_order=order)
        self._apply()

    def go_to_page(self, page: int) -> None:
        """Re-query the applied filters at another page."""
        self._ensure_open()
        self._request_results(self.applied, page=page)

    def refresh(self) -> None:
        """Re-query the page currently shown."""
        self._ensure_open()
        self._request_results(self.applied, page=max(self.pagination.page, 1))

    def dismiss_error(self) -> None:
        self.results_error = None

    # ------------------------------------------------------------------
    # Free-text search
    # ------------------------------------------------------------------

    def type_search(self, text: str) -> None:
        """Keystroke into the search box."""
        self.set_field("search", text)

    def submit_search(self) -> bool:
        """
        Search button or Enter key.

        Returns:
            False when the trimmed search text is empty and nothing was sent.
        """
        self._ensure_open()
        if not self.draft.search.strip():
            return False
        self._cancel_search_timers()
        self._hide_suggestions()
        self._apply()
        return True

    def select_suggestion(self, section: str, value: str) -> None:
        """Search one field for a suggested value."""
        self._ensure_open()
        if section not in SUGGESTION_SECTIONS:
            raise ValueError(f"Unknown suggestion section: {section!r}")
        self.draft = self.draft.merged(search_field=section, search=value)
        self._cancel_search_timers()
        self._hide_suggestions()
        self._apply()

    def hide_suggestions(self) -> None:
        """Close the suggestion panel (e.g. focus moved away)."""
        self._hide_suggestions()

    def _on_search_typed(self) -> None:
        self._apply_timer.trigger()
        self._suggestion_timer.trigger()
        if len(self.draft.search.strip()) < self.settings.min_suggestion_chars:
            self._hide_suggestions()

    def _commit_search(self) -> None:
        if self._closed:
            return
        if self.draft.search != self.applied.search:
            self.applied = self.applied.merged(search=self.draft.search)
            logger.debug(f"Committed search {self.draft.search!r}")

    def _fetch_suggestions(self) -> None:
        if self._closed:
            return
        term = self.draft.search.strip()
        if len(term) < self.settings.min_suggestion_chars:
            self._hide_suggestions()
            return
        token = self._next_generation(SUGGESTIONS)
        self.suggestions_visible = True
        self.suggestions_loading = True
        self._spawn(self._load_suggestions(token, term))

    def _cancel_search_timers(self) -> None:
        self._apply_timer.cancel()
        self._suggestion_timer.cancel()

    def _hide_suggestions(self) -> None:
        # Invalidate so an in-flight fetch cannot reopen the panel
        self._next_generation(SUGGESTIONS)
        self.suggestions_visible = False
        self.suggestions_loading = False

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_entry(self, payload: Mapping[str, Any]) -> Entry:
        """Create an entry, then re-fetch the shown page."""
        entry = await self.service.create_entry(payload)
        self._refresh_after_mutation()
        return entry

    async def update_entry(self, entry_id: str, payload: Mapping[str, Any]) -> Entry:
        """Update an entry, then re-fetch the shown page."""
        entry = await self.service.update_entry(entry_id, payload)
        self._refresh_after_mutation()
        return entry

    async def delete_entry(self, entry_id: str) -> str:
        """Delete an entry, then re-fetch the shown page."""
        deleted = await self.service.delete_entry(entry_id)
        self._refresh_after_mutation()
        return deleted

    def _refresh_after_mutation(self) -> None:
        if not self._closed and self.has_interacted:
            self.refresh()

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Browse engine is closed")

    def _next_generation(self, target: str) -> int:
        self._generations[target] += 1
        return self._generations[target]

    def _is_current(self, target: str, token: int) -> bool:
        return not self._closed and self._generations[target] == token

    def _spawn(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _apply(self) -> None:
        """Commit the draft and query the first page."""
        self.applied = self.draft.to_applied()
        self.has_interacted = True
        self._request_results(self.applied, page=1)

    def _request_results(self, filters: AppliedFilters, page: int) -> None:
        params = build_entries_params(filters, page=page, limit=self.settings.page_size)
        token = self._next_generation(RESULTS)
        self.loading = True
        self.results_error = None
        logger.debug(f"Requesting entries {params}")
        self._spawn(self._load_results(token, filters, params))

    async def _load_results(self, token: int, filters: AppliedFilters, params: Dict[str, str]) -> None:
        try:
            page = await self.service.list_entries(params)
        except NetworkFailure as e:
            if not self._is_current(RESULTS, token):
                return
            logger.warning(f"Entry query failed: {e}")
            self.loading = False
            self.results_error = e.message
            self.applied = self._confirmed
            return

        if not self._is_current(RESULTS, token):
            logger.debug("Discarding superseded entry page")
            return
        self.loading = False
        self.entries = list(page.data)
        self.pagination = page.pagination
        self._confirmed = filters
        logger.info(f"{page.pagination.total} entries found (page {page.pagination.page})")

    def _reset_values(self, *names: str) -> None:
        for name in names:
            self._next_generation(_values_target(name))
            self.value_sets[name] = []
            self.value_errors.pop(name, None)
            self.loading_values.discard(name)

    def _request_scoped_values(self, field: str, scope: Dict[str, str]) -> None:
        logger.debug(f"Requesting {field} values scoped by {scope}")
        self._request_values(field, fetch=lambda: self.service.filtered_unique_values(field, scope))

    def _request_values(self, field: str, fetch: Callable[[], Awaitable[List[str]]]) -> None:
        token = self._next_generation(_values_target(field))
        self.loading_values.add(field)
        self.value_errors.pop(field, None)
        self._spawn(self._load_values(field, token, fetch))

    async def _load_values(
        self,
        field: str,
        token: int,
        fetch: Callable[[], Awaitable[List[str]]],
    ) -> None:
        target = _values_target(field)
        try:
            values = await fetch()
        except NetworkFailure as e:
            if self._is_current(target, token):
                logger.warning(f"Could not load {field} values: {e}")
                self.loading_values.discard(field)
                self.value_errors[field] = e.message
            return

        if not self._is_current(target, token):
            return
        self.loading_values.discard(field)
        self.value_sets[field] = list(values)

    async def _load_suggestions(self, token: int, term: str) -> None:
        try:
            matches = await self.service.search_entries(
                term, field="all", limit=self.settings.suggestion_fetch_limit
            )
        except NetworkFailure as e:
            if self._is_current(SUGGESTIONS, token):
                logger.debug(f"Suggestion fetch failed, hiding panel: {e}")
                self.suggestions = empty_suggestion_index()
                self.suggestions_visible = False
                self.suggestions_loading = False
            return

        if not self._is_current(SUGGESTIONS, token):
            return
        self.suggestions = build_suggestion_index(matches, self.settings.suggestions_per_field)
        self.suggestions_loading = False

    async def _load_statistics(self, token: int) -> None:
        try:
            statistics = await self.service.statistics_overview()
        except NetworkFailure as e:
            if self._is_current(STATISTICS, token):
                logger.warning(f"Could not load statistics: {e}")
                self.statistics_error = e.message
            return
        if self._is_current(STATISTICS, token):
            self.statistics = statistics
            self.statistics_error = None
