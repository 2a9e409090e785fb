"""Tests for the Query Service HTTP client."""

import json

import httpx
import pytest

from autoimmune_console.client.query_service import QueryServiceClient
from autoimmune_console.client.session import SessionContext
from autoimmune_console.config import ServiceConfig
from autoimmune_console.errors import EntryValidationError, NetworkFailure

SLE = "Systemic lupus erythematosus"


def make_settings(**overrides):
    values = {
        "base_url": "http://testserver",
        "api_token": None,
        "timeout_seconds": 5,
        "max_retries": 3,
        "retry_wait_seconds": 0,
        "retry_wait_max_seconds": 0,
    }
    values.update(overrides)
    return ServiceConfig(**values)


def make_client(handler, session=None, **overrides):
    """Client whose requests are answered by ``handler``."""
    return QueryServiceClient(
        settings=make_settings(**overrides),
        session=session,
        transport=httpx.MockTransport(handler),
    )


class RecordingHandler:
    """Answers every request with queued responses, recording the requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class TestBrowsingEndpoints:
    """Tests for the read endpoints used by the browse screen."""

    @pytest.mark.asyncio
    async def test_list_entries(self, sample_entries):
        """Entries and pagination are parsed and params forwarded."""
        handler = RecordingHandler(httpx.Response(200, json={
            "data": sample_entries[:3],
            "pagination": {"page": 1, "limit": 20, "total": 3, "pages": 1},
            "appliedFilters": {"disease": SLE},
        }))
        async with make_client(handler) as client:
            page = await client.list_entries({"page": "1", "limit": "20", "disease": SLE})

        request = handler.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/api/disease/"
        assert request.url.params["disease"] == SLE
        assert [e.id for e in page.data] == ["e1", "e2", "e3"]
        assert page.pagination.total == 3
        assert page.data[1].uniprotId == "P62314"

    @pytest.mark.asyncio
    async def test_unique_values(self):
        """Unscoped values come from /unique/{field}."""
        handler = RecordingHandler(httpx.Response(200, json={"field": "type", "data": ["Organ-specific", "Systemic"]}))
        async with make_client(handler) as client:
            values = await client.unique_values("type")

        assert handler.requests[0].url.path == "/api/disease/unique/type"
        assert values == ["Organ-specific", "Systemic"]

    @pytest.mark.asyncio
    async def test_unique_values_rejects_unknown_field(self):
        """Fields outside the allowed set are refused before sending."""
        handler = RecordingHandler(httpx.Response(200, json={"data": []}))
        async with make_client(handler) as client:
            with pytest.raises(ValueError):
                await client.unique_values("epitope")
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_filtered_values_send_sparse_scope(self):
        """Only the field's own non-empty ancestors are sent."""
        handler = RecordingHandler(httpx.Response(200, json={"field": "epitope", "data": ["Ro60 169-190"]}))
        async with make_client(handler) as client:
            values = await client.filtered_unique_values(
                "epitope",
                {"disease": SLE, "autoantibody": "Anti-Ro", "autoantigen": "Ro60"},
            )

        request = handler.requests[0]
        assert request.url.path == "/api/disease/unique-filtered/epitope"
        assert dict(request.url.params) == {"disease": SLE, "autoantigen": "Ro60"}
        assert values == ["Ro60 169-190"]

    @pytest.mark.asyncio
    async def test_filtered_values_without_scope(self):
        """An empty scope sends no parameters."""
        handler = RecordingHandler(httpx.Response(200, json={"data": ["ACPA"]}))
        async with make_client(handler) as client:
            await client.filtered_unique_values("autoantibody", {"disease": "  "})

        assert dict(handler.requests[0].url.params) == {}

    @pytest.mark.asyncio
    async def test_search_entries(self, sample_entries):
        """Suggestion searches send q, field and limit."""
        handler = RecordingHandler(httpx.Response(200, json={"data": sample_entries[:2], "count": 2}))
        async with make_client(handler) as client:
            matches = await client.search_entries("lupus", field="all", limit=50)

        params = handler.requests[0].url.params
        assert handler.requests[0].url.path == "/api/disease/search/entries"
        assert (params["q"], params["field"], params["limit"]) == ("lupus", "all", "50")
        assert len(matches) == 2

    @pytest.mark.asyncio
    async def test_statistics_overview(self):
        """Statistics are read from the data envelope."""
        handler = RecordingHandler(httpx.Response(200, json={
            "success": True,
            "data": {"overview": {"totalEntries": 9}, "diseaseBreakdown": [{"_id": SLE, "count": 3}]},
        }))
        async with make_client(handler) as client:
            statistics = await client.statistics_overview()

        assert statistics.overview["totalEntries"] == 9
        assert statistics.diseaseBreakdown[0]["count"] == 3

    @pytest.mark.asyncio
    async def test_advanced_search_needs_two_characters(self):
        """Terms shorter than two characters are refused."""
        handler = RecordingHandler(httpx.Response(200, json={}))
        async with make_client(handler) as client:
            with pytest.raises(ValueError):
                await client.advanced_search(" a ")


class TestErrorHandling:
    """Tests for failure mapping and retries."""

    @pytest.mark.asyncio
    async def test_server_message_is_used(self):
        """A 4xx body message becomes the failure message and is not retried."""
        handler = RecordingHandler(httpx.Response(400, json={"success": False, "message": "Valid field is required"}))
        async with make_client(handler) as client:
            with pytest.raises(NetworkFailure) as exc_info:
                await client.filtered_unique_values("disease")

        assert exc_info.value.message == "Valid field is required"
        assert exc_info.value.status_code == 400
        assert client.request_count == 1

    @pytest.mark.asyncio
    async def test_default_message_without_body(self):
        """Without a body message the operation's own message is used."""
        handler = RecordingHandler(httpx.Response(404, text="not found"))
        async with make_client(handler) as client:
            with pytest.raises(NetworkFailure) as exc_info:
                await client.get_entry("missing")

        assert exc_info.value.message == "Failed to fetch entry"
        assert str(exc_info.value) == "Failed to fetch entry (HTTP 404)"

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self):
        """Reads are retried on 5xx until attempts run out."""
        handler = RecordingHandler(httpx.Response(500, json={"message": "Server error"}))
        async with make_client(handler, max_retries=3) as client:
            with pytest.raises(NetworkFailure) as exc_info:
                await client.list_entries({"page": "1"})

        assert exc_info.value.status_code == 500
        assert client.request_count == 3

    @pytest.mark.asyncio
    async def test_retry_recovers(self):
        """A transient failure followed by success returns the data."""
        handler = RecordingHandler(
            httpx.Response(503),
            httpx.Response(200, json={"data": ["Sjogren syndrome"]}),
        )
        async with make_client(handler) as client:
            values = await client.unique_values("disease")

        assert values == ["Sjogren syndrome"]
        assert client.request_count == 2

    @pytest.mark.asyncio
    async def test_transport_error(self):
        """Connection failures become NetworkFailure without a status."""
        handler = RecordingHandler(httpx.ConnectError("connection refused"))
        async with make_client(handler, max_retries=2) as client:
            with pytest.raises(NetworkFailure) as exc_info:
                await client.list_entries({"page": "1"})

        assert exc_info.value.status_code is None
        assert exc_info.value.message.startswith("Failed to fetch entries:")
        assert client.request_count == 2

    @pytest.mark.asyncio
    async def test_writes_are_not_retried(self):
        """A failed create is attempted once."""
        handler = RecordingHandler(httpx.Response(500, json={"message": "Server error"}))
        async with make_client(handler) as client:
            with pytest.raises(NetworkFailure):
                await client.create_entry({"disease": SLE, "autoantibody": "Anti-Sm", "autoantigen": "Sm antigen"})

        assert client.request_count == 1

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        """A 200 answer that is not JSON becomes a NetworkFailure."""
        handler = RecordingHandler(httpx.Response(200, text="<html>gateway</html>"))
        async with make_client(handler) as client:
            with pytest.raises(NetworkFailure) as exc_info:
                await client.list_entries({"page": "1"})

        assert exc_info.value.message == "Invalid response from server"
        assert exc_info.value.status_code == 200
        assert client.request_count == 1

    @pytest.mark.asyncio
    async def test_body_not_matching_schema(self):
        """JSON of the wrong shape is reported the same way."""
        handler = RecordingHandler(httpx.Response(200, json={"data": "not a list"}))
        async with make_client(handler) as client:
            with pytest.raises(NetworkFailure) as exc_info:
                await client.unique_values("disease")

        assert exc_info.value.message == "Invalid response from server"


class TestRecords:
    """Tests for entry record endpoints."""

    @pytest.mark.asyncio
    async def test_create_entry_sends_normalized_body(self):
        """Payloads are trimmed and blank optionals dropped before POST."""
        handler = RecordingHandler(httpx.Response(201, json={
            "success": True,
            "data": {"_id": "new1", "disease": SLE, "autoantibody": "Anti-Sm", "autoantigen": "Sm antigen"},
        }))
        async with make_client(handler) as client:
            entry = await client.create_entry({
                "disease": f" {SLE} ",
                "autoantibody": "Anti-Sm",
                "autoantigen": "Sm antigen",
                "epitope": "",
                "additional": [("Source", "PMID 123")],
            })

        body = json.loads(handler.requests[0].content)
        assert body == {
            "disease": SLE,
            "autoantibody": "Anti-Sm",
            "autoantigen": "Sm antigen",
            "additional": {"Source": "PMID 123"},
        }
        assert entry.id == "new1"

    @pytest.mark.asyncio
    async def test_create_entry_validates_first(self):
        """Invalid payloads never reach the network."""
        handler = RecordingHandler(httpx.Response(201, json={}))
        async with make_client(handler) as client:
            with pytest.raises(EntryValidationError) as exc_info:
                await client.create_entry({"disease": SLE, "uniprotId": "bad"})

        assert set(exc_info.value.errors) == {"autoantibody", "autoantigen", "uniprotId"}
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_update_entry_partial(self):
        """Updates only validate and send the given fields."""
        handler = RecordingHandler(httpx.Response(200, json={
            "data": {"_id": "e5", "disease": "Rheumatoid arthritis", "autoantibody": "Rheumatoid factor",
                     "autoantigen": "IgG Fc", "type": "Systemic"},
        }))
        async with make_client(handler) as client:
            entry = await client.update_entry("e5", {"type": "Systemic"})

        request = handler.requests[0]
        assert request.method == "PUT"
        assert request.url.path == "/api/disease/e5"
        assert json.loads(request.content) == {"type": "Systemic"}
        assert entry.type == "Systemic"

    @pytest.mark.asyncio
    async def test_delete_entry(self):
        handler = RecordingHandler(httpx.Response(200, json={"success": True}))
        async with make_client(handler) as client:
            assert await client.delete_entry("e9") == "e9"
        assert handler.requests[0].method == "DELETE"

    @pytest.mark.asyncio
    async def test_entries_by_disease_quotes_name(self, sample_entries):
        """Disease names are path-encoded."""
        handler = RecordingHandler(httpx.Response(200, json={"data": sample_entries[:3], "count": 3}))
        async with make_client(handler) as client:
            entries = await client.entries_by_disease(SLE)

        assert b"/api/disease/disease/Systemic%20lupus%20erythematosus" in handler.requests[0].url.raw_path
        assert len(entries) == 3

    @pytest.mark.asyncio
    async def test_get_entry_with_related(self, sample_entries):
        handler = RecordingHandler(httpx.Response(200, json={
            "data": sample_entries[2],
            "relatedEntries": [sample_entries[5]],
        }))
        async with make_client(handler) as client:
            detail = await client.get_entry("e3")

        assert detail.data.autoantigen == "Ro60"
        assert detail.relatedEntries[0].disease == "Sjogren syndrome"

    @pytest.mark.asyncio
    async def test_bulk_import(self):
        """Bulk import wraps the payloads in an entries array."""
        handler = RecordingHandler(httpx.Response(201, json={"success": True, "count": 2}))
        payloads = [
            {"disease": "Type 1 diabetes", "autoantibody": "Anti-IA-2", "autoantigen": "IA-2"},
            {"disease": "Type 1 diabetes", "autoantibody": "Anti-ZnT8", "autoantigen": "ZnT8"},
        ]
        async with make_client(handler) as client:
            result = await client.bulk_import(payloads)

        assert json.loads(handler.requests[0].content) == {"entries": payloads}
        assert result["count"] == 2

    @pytest.mark.asyncio
    async def test_export_csv_returns_text(self):
        """CSV exports are returned as text with sparse filters."""
        handler = RecordingHandler(httpx.Response(200, text="disease,autoantibody\nSjogren syndrome,Anti-Ro\n"))
        async with make_client(handler) as client:
            text = await client.export_entries(format="csv", disease="Sjogren syndrome")

        assert dict(handler.requests[0].url.params) == {"format": "csv", "disease": "Sjogren syndrome"}
        assert text.startswith("disease,autoantibody")

    @pytest.mark.asyncio
    async def test_export_rejects_unknown_format(self):
        handler = RecordingHandler(httpx.Response(200, json={}))
        async with make_client(handler) as client:
            with pytest.raises(ValueError):
                await client.export_entries(format="xml")


class TestAuthentication:
    """Tests for the session header."""

    @pytest.mark.asyncio
    async def test_bearer_token_sent(self):
        """An active session adds the Authorization header."""
        session = SessionContext()
        session.start("token-123", {"username": "admin", "role": "superAdmin"})
        handler = RecordingHandler(httpx.Response(200, json={"data": []}))
        async with make_client(handler, session=session) as client:
            await client.unique_values("disease")

        assert handler.requests[0].headers["Authorization"] == "Bearer token-123"

    @pytest.mark.asyncio
    async def test_anonymous_without_session(self):
        handler = RecordingHandler(httpx.Response(200, json={"data": []}))
        async with make_client(handler) as client:
            await client.unique_values("disease")

        assert "Authorization" not in handler.requests[0].headers
