"""Async client for the disease reference Query Service.

Wraps the REST endpoints under ``/api/disease``. Idempotent reads are
retried on transport errors and 5xx responses; writes are sent once.
Every failure surfaces as NetworkFailure carrying the server's message.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Type
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from autoimmune_console.browse.query_params import build_scope_params
from autoimmune_console.client.schemas import (
    Entry,
    EntryDetail,
    EntryPage,
    SearchResult,
    Statistics,
    UniqueValues,
)
from autoimmune_console.client.session import SessionContext
from autoimmune_console.config import ServiceConfig, config
from autoimmune_console.config.constants import EXPORT_FORMATS, FILTER_CHAIN, UNIQUE_VALUE_FIELDS
from autoimmune_console.config.logging_config import get_logger
from autoimmune_console.errors import NetworkFailure
from autoimmune_console.records.validation import validate_entry

logger = get_logger("query_service")


def _is_transient(exc: BaseException) -> bool:
    """Transport errors and server-side failures are worth retrying."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


def _server_message(response: httpx.Response) -> Optional[str]:
    """Extract the ``message`` field the API puts in error bodies."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("message")
    return None


def _decode(
    response: httpx.Response,
    model: Optional[Type[BaseModel]] = None,
    unwrap: bool = False,
) -> Any:
    """
    Decode a successful response body.

    Args:
        response: Response returned by _send().
        model: Optional pydantic model to validate the body against.
        unwrap: Use the body's ``data`` member when it has one.

    Raises:
        NetworkFailure: If the body is not JSON or does not match ``model``.
    """
    try:
        body = response.json()
        if unwrap and isinstance(body, dict):
            body = body.get("data", body)
        return model.model_validate(body) if model else body
    except (ValueError, ValidationError) as e:
        request = response.request
        logger.error(f"{request.method} {request.url.path} returned an invalid body: {e.__class__.__name__}")
        raise NetworkFailure("Invalid response from server", status_code=response.status_code) from e


class QueryServiceClient:
    """Client for the disease entry REST API."""

    def __init__(
        self,
        settings: Optional[ServiceConfig] = None,
        session: Optional[SessionContext] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Connection settings (defaults to the global config).
            session: Authenticated session; requests are anonymous without one.
            transport: Optional httpx transport, mainly for tests.
        """
        self.settings = settings or config.service
        self.session = session or SessionContext()
        self._client = httpx.AsyncClient(
            base_url=self.settings.entries_url,
            timeout=self.settings.timeout_seconds,
            transport=transport,
        )
        self._request_count = 0

    async def __aenter__(self) -> "QueryServiceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    @property
    def request_count(self) -> int:
        return self._request_count

    async def _send(
        self,
        method: str,
        path: str,
        failure_message: str,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        retry: bool = True,
    ) -> httpx.Response:
        """
        Send one request, retrying transient failures for reads.

        Args:
            method: HTTP method.
            path: Path relative to ``/api/disease``.
            failure_message: Message used when the server gives none.
            params: Query parameters.
            json: JSON body.
            retry: Whether transient failures are retried.

        Returns:
            The successful response.

        Raises:
            NetworkFailure: On non-2xx status or transport error.
        """
        attempts = max(self.settings.max_retries, 1) if retry else 1
        logger.debug(f"{method} {path} params={dict(params or {})}")

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(attempts),
                wait=wait_exponential(
                    multiplier=self.settings.retry_wait_seconds,
                    max=self.settings.retry_wait_max_seconds,
                ),
                retry=retry_if_exception(_is_transient),
                reraise=True,
            ):
                with attempt:
                    self._request_count += 1
                    response = await self._client.request(
                        method,
                        path,
                        params=params,
                        json=json,
                        headers=self.session.auth_headers(),
                    )
                    response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = _server_message(e.response) or failure_message
            logger.error(f"{method} {path} failed: {message} ({e.response.status_code})")
            raise NetworkFailure(message, status_code=e.response.status_code) from e
        except httpx.TransportError as e:
            logger.error(f"{method} {path} failed: {e!r}")
            raise NetworkFailure(f"{failure_message}: {e}") from e

        return response

    # ------------------------------------------------------------------
    # Browsing
    # ------------------------------------------------------------------

    async def list_entries(self, params: Mapping[str, str]) -> EntryPage:
        """
        Fetch one page of entries.

        Args:
            params: Sparse query parameters from build_entries_params().

        Returns:
            EntryPage with entries, pagination and the filters the service applied.
        """
        response = await self._send("GET", "", "Failed to fetch entries", params=params)
        return _decode(response, EntryPage)

    async def unique_values(self, field: str) -> List[str]:
        """Fetch every distinct value of ``field`` with no scoping."""
        if field not in UNIQUE_VALUE_FIELDS:
            raise ValueError(f"Valid field is required ({', '.join(UNIQUE_VALUE_FIELDS)}), got {field!r}")
        response = await self._send("GET", f"/unique/{field}", "Failed to fetch unique values")
        return _decode(response, UniqueValues).data

    async def filtered_unique_values(
        self,
        field: str,
        scope: Optional[Mapping[str, Any]] = None,
    ) -> List[str]:
        """
        Fetch the values of a chain field valid under its selected ancestors.

        Args:
            field: One of disease, autoantibody, autoantigen, epitope.
            scope: Ancestor selections; fields outside the field's scope and
                empty values are dropped.

        Returns:
            Ordered distinct values.
        """
        if field not in FILTER_CHAIN:
            raise ValueError(f"Valid field is required ({', '.join(FILTER_CHAIN)}), got {field!r}")
        params = build_scope_params(field, scope)
        response = await self._send(
            "GET",
            f"/unique-filtered/{field}",
            "Failed to fetch filtered unique values",
            params=params,
        )
        return _decode(response, UniqueValues).data

    async def search_entries(self, term: str, field: str = "all", limit: int = 50) -> List[Entry]:
        """Free-text search used for suggestions."""
        if not term:
            raise ValueError("Search term is required")
        response = await self._send(
            "GET",
            "/search/entries",
            "Failed to search entries",
            params={"q": term, "field": field, "limit": str(limit)},
        )
        return _decode(response, SearchResult).data

    async def advanced_search(
        self,
        term: str,
        limit: int = 50,
        include_stats: bool = False,
    ) -> Dict[str, Any]:
        """Ranked search across all fields, optionally with match statistics."""
        if not term or len(term.strip()) < 2:
            raise ValueError("Search term must be at least 2 characters long")
        response = await self._send(
            "GET",
            "/search/advanced",
            "Failed to perform advanced search",
            params={
                "q": term.strip(),
                "limit": str(limit),
                "includeStats": "true" if include_stats else "false",
            },
        )
        return _decode(response)

    async def statistics_overview(self) -> Statistics:
        """Fetch database-wide statistics."""
        response = await self._send("GET", "/statistics/overview", "Failed to fetch statistics")
        return _decode(response, Statistics, unwrap=True)

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    async def get_entry(self, entry_id: str) -> EntryDetail:
        """Fetch one entry with its related entries."""
        if not entry_id:
            raise ValueError("Entry ID is required")
        response = await self._send("GET", f"/{entry_id}", "Failed to fetch entry")
        return _decode(response, EntryDetail)

    async def entries_by_disease(self, disease: str) -> List[Entry]:
        """Fetch every entry recorded for a disease."""
        if not disease:
            raise ValueError("Disease name is required")
        response = await self._send(
            "GET",
            f"/disease/{quote(disease, safe='')}",
            "Failed to fetch entries by disease",
        )
        return _decode(response, SearchResult).data

    async def entries_by_uniprot_id(self, uniprot_id: str) -> List[Entry]:
        """Fetch every entry referencing a UniProt accession."""
        if not uniprot_id:
            raise ValueError("UniProt ID is required")
        response = await self._send("GET", f"/uniprot/{uniprot_id}", "Failed to fetch entries by UniProt ID")
        return _decode(response, SearchResult).data

    async def create_entry(self, payload: Mapping[str, Any]) -> Entry:
        """Validate and create an entry."""
        body = validate_entry(payload)
        response = await self._send("POST", "", "Failed to create entry", json=body, retry=False)
        entry = _decode(response, Entry, unwrap=True)
        logger.info(f"Created entry {entry.id} ({entry.disease})")
        return entry

    async def update_entry(self, entry_id: str, payload: Mapping[str, Any]) -> Entry:
        """Validate the changed fields and update an entry."""
        if not entry_id:
            raise ValueError("Entry ID is required")
        body = validate_entry(payload, partial=True)
        response = await self._send("PUT", f"/{entry_id}", "Failed to update entry", json=body, retry=False)
        entry = _decode(response, Entry, unwrap=True)
        logger.info(f"Updated entry {entry_id}")
        return entry

    async def delete_entry(self, entry_id: str) -> str:
        """Delete an entry and return its id."""
        if not entry_id:
            raise ValueError("Entry ID is required")
        await self._send("DELETE", f"/{entry_id}", "Failed to delete entry", retry=False)
        logger.info(f"Deleted entry {entry_id}")
        return entry_id

    async def bulk_import(self, entries: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
        """Upload already-validated entry payloads in one request."""
        if not entries:
            raise ValueError("Valid entries array is required")
        response = await self._send(
            "POST",
            "/bulk/import",
            "Failed to import entries",
            json={"entries": list(entries)},
            retry=False,
        )
        return _decode(response)

    async def export_entries(
        self,
        format: str = "json",
        disease: Optional[str] = None,
        autoantibody: Optional[str] = None,
        autoantigen: Optional[str] = None,
    ) -> Any:
        """
        Export entries in the service's own format.

        Returns:
            CSV text for ``format="csv"``, decoded JSON otherwise.
        """
        if format not in EXPORT_FORMATS:
            raise ValueError(f"Unsupported export format: {format}")
        params = {"format": format}
        for name, value in (("disease", disease), ("autoantibody", autoantibody), ("autoantigen", autoantigen)):
            if value:
                params[name] = value
        response = await self._send("GET", "/export/data", "Failed to export entries", params=params)
        if format == "csv":
            return response.text
        return _decode(response)
