"""Pytest configuration and fixtures for Autoimmune Reference Console tests."""

import asyncio
from typing import Any, Dict, List, Mapping, Optional

import pytest

from autoimmune_console.client.schemas import Entry, EntryPage, Pagination, Statistics
from autoimmune_console.config import BrowseConfig
from autoimmune_console.errors import NetworkFailure

SAMPLE_ENTRIES: List[Dict[str, Any]] = [
    {
        "_id": "e1",
        "disease": "Systemic lupus erythematosus",
        "autoantibody": "Anti-dsDNA",
        "autoantigen": "Double-stranded DNA",
        "type": "Systemic",
    },
    {
        "_id": "e2",
        "disease": "Systemic lupus erythematosus",
        "autoantibody": "Anti-Sm",
        "autoantigen": "Sm antigen",
        "epitope": "SmD1 83-119",
        "uniprotId": "P62314",
        "type": "Systemic",
    },
    {
        "_id": "e3",
        "disease": "Systemic lupus erythematosus",
        "autoantibody": "Anti-Ro",
        "autoantigen": "Ro60",
        "epitope": "Ro60 169-190",
        "uniprotId": "P10155",
        "type": "Systemic",
    },
    {
        "_id": "e4",
        "disease": "Rheumatoid arthritis",
        "autoantibody": "ACPA",
        "autoantigen": "Citrullinated vimentin",
        "epitope": "Vimentin 60-75",
        "uniprotId": "P08670",
        "type": "Systemic",
    },
    {
        "_id": "e5",
        "disease": "Rheumatoid arthritis",
        "autoantibody": "Rheumatoid factor",
        "autoantigen": "IgG Fc",
        "type": "Systemic",
    },
    {
        "_id": "e6",
        "disease": "Sjogren syndrome",
        "autoantibody": "Anti-Ro",
        "autoantigen": "Ro60",
        "epitope": "Ro60 211-232",
        "uniprotId": "P10155",
        "type": "Systemic",
    },
    {
        "_id": "e7",
        "disease": "Type 1 diabetes",
        "autoantibody": "Anti-GAD65",
        "autoantigen": "GAD65",
        "uniprotId": "Q05329",
        "type": "Organ-specific",
    },
    {
        "_id": "e8",
        "disease": "Myasthenia gravis",
        "autoantibody": "Anti-AChR",
        "autoantigen": "AChR alpha subunit",
        "epitope": "MIR 67-76",
        "uniprotId": "P02708",
        "type": "Organ-specific",
    },
    {
        "_id": "e9",
        "disease": "Lupus nephritis",
        "autoantibody": "Anti-C1q",
        "autoantigen": "C1q",
        "type": "Organ-specific",
    },
]

SEARCHABLE_FIELDS = ("disease", "autoantibody", "autoantigen", "epitope")


class FakeQueryService:
    """
    In-memory stand-in for QueryServiceClient.

    Every call is recorded in ``calls`` as (method, args). ``failures`` maps a
    method name to the exception it raises; ``delays`` maps a method name
    to a list of per-call delays in seconds, consumed in call order.
    """

    def __init__(self, entries: Optional[List[Mapping[str, Any]]] = None):
        source = SAMPLE_ENTRIES if entries is None else entries
        self.entries = [Entry.model_validate(dict(e)) for e in source]
        self.calls: List[tuple] = []
        self.failures: Dict[str, Exception] = {}
        self.delays: Dict[str, List[float]] = {}
        self.imported: List[List[Dict[str, Any]]] = []

    def calls_to(self, method: str) -> List[tuple]:
        return [args for name, args in self.calls if name == method]

    async def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        pending = self.delays.get(method)
        delay = pending.pop(0) if pending else 0
        await asyncio.sleep(delay)
        if method in self.failures:
            raise self.failures[method]

    def _matching(self, scope: Mapping[str, str]) -> List[Entry]:
        return [
            entry for entry in self.entries
            if all((getattr(entry, name) or "") == value for name, value in scope.items())
        ]

    async def list_entries(self, params: Mapping[str, str]) -> EntryPage:
        await self._record("list_entries", dict(params))
        scope = {
            name: params[name]
            for name in ("disease", "autoantibody", "autoantigen", "epitope", "type")
            if name in params
        }
        rows = self._matching(scope)

        search = params.get("search", "").lower()
        if search:
            fields = (params["field"],) if "field" in params else SEARCHABLE_FIELDS
            rows = [
                entry for entry in rows
                if any(search in (getattr(entry, name) or "").lower() for name in fields)
            ]

        sort_by = params.get("sortBy", "disease")
        rows.sort(
            key=lambda entry: (getattr(entry, sort_by, "") or "").lower(),
            reverse=params.get("sortOrder") == "desc",
        )

        page = int(params.get("page", "1"))
        limit = int(params.get("limit", "20"))
        start = (page - 1) * limit
        total = len(rows)
        return EntryPage(
            data=rows[start:start + limit],
            pagination=Pagination(page=page, limit=limit, total=total, pages=-(-total // limit)),
            appliedFilters=scope,
        )

    async def unique_values(self, field: str) -> List[str]:
        await self._record("unique_values", field)
        return sorted({getattr(e, field) for e in self.entries if getattr(e, field)})

    async def filtered_unique_values(self, field: str, scope: Optional[Mapping[str, Any]] = None) -> List[str]:
        scope = dict(scope or {})
        await self._record("filtered_unique_values", field, scope)
        return sorted({getattr(e, field) for e in self._matching(scope) if getattr(e, field)})

    async def search_entries(self, term: str, field: str = "all", limit: int = 50) -> List[Entry]:
        await self._record("search_entries", term, field, limit)
        needle = term.lower()
        fields = SEARCHABLE_FIELDS if field == "all" else (field,)
        matches = [
            entry for entry in self.entries
            if any(needle in (getattr(entry, name) or "").lower() for name in fields)
        ]
        return matches[:limit]

    async def statistics_overview(self) -> Statistics:
        await self._record("statistics_overview")
        return Statistics(
            overview={
                "totalEntries": len(self.entries),
                "uniqueDiseases": len({e.disease for e in self.entries}),
            }
        )

    async def create_entry(self, payload: Mapping[str, Any]) -> Entry:
        await self._record("create_entry", dict(payload))
        entry = Entry.model_validate({"_id": f"e{len(self.entries) + 1}", **payload})
        self.entries.append(entry)
        return entry

    async def update_entry(self, entry_id: str, payload: Mapping[str, Any]) -> Entry:
        await self._record("update_entry", entry_id, dict(payload))
        for position, entry in enumerate(self.entries):
            if entry.id == entry_id:
                self.entries[position] = entry.model_copy(update=dict(payload))
                return self.entries[position]
        raise NetworkFailure("Disease entry not found", status_code=404)

    async def delete_entry(self, entry_id: str) -> str:
        await self._record("delete_entry", entry_id)
        self.entries = [entry for entry in self.entries if entry.id != entry_id]
        return entry_id

    async def bulk_import(self, entries: List[Dict[str, Any]]) -> Dict[str, Any]:
        await self._record("bulk_import", list(entries))
        self.imported.append(list(entries))
        return {"success": True, "count": len(entries)}


@pytest.fixture
def sample_entries():
    """Raw entry documents as the service returns them."""
    return [dict(entry) for entry in SAMPLE_ENTRIES]


@pytest.fixture
def fake_service():
    """In-memory Query Service seeded with the sample entries."""
    return FakeQueryService()


@pytest.fixture
def browse_settings():
    """Browse settings with short debounce windows."""
    return BrowseConfig(
        page_size=20,
        apply_debounce_seconds=0.05,
        suggestion_debounce_seconds=0.025,
    )
