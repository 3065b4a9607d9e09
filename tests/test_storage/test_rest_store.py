"""
Tests for the PostgREST store using an httpx mock transport.
"""
import json

import httpx
import pytest

from streamline_mcp.config import StoreConfig
from streamline_mcp.exceptions import StoreError
from streamline_mcp.storage.interface import TASKS, eq, is_null
from streamline_mcp.storage.rest_store import RestStore


@pytest.fixture
def config():
    return StoreConfig(project_url="https://example.supabase.co/", api_key="secret-key", user_id="user-1")


class Recorder:
    """Mock transport handler that records requests and replies with a canned response."""

    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self.payload = payload if payload is not None else []
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)


def make_store(config, handler):
    return RestStore(config, client=httpx.Client(transport=httpx.MockTransport(handler)))


class TestRequests:
    def test_select_builds_postgrest_query(self, config):
        # Setup
        handler = Recorder(payload=[{"id": "1"}])
        store = make_store(config, handler)

        # Execute
        rows = store.select(TASKS, {"user_id": eq("user-1"), "due_date": is_null()}, order="name.asc", limit=5)

        # Verify
        assert rows == [{"id": "1"}]
        request = handler.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/tasks"
        assert request.url.params["select"] == "*"
        assert request.url.params["user_id"] == "eq.user-1"
        assert request.url.params["due_date"] == "is.null"
        assert request.url.params["order"] == "name.asc"
        assert request.url.params["limit"] == "5"
        assert request.headers["apikey"] == "secret-key"
        assert request.headers["Authorization"] == "Bearer secret-key"
        assert request.headers["Prefer"] == "return=representation"

    def test_insert_returns_stored_row(self, config):
        handler = Recorder(status_code=201, payload=[{"id": "new", "name": "Task"}])
        store = make_store(config, handler)

        row = store.insert(TASKS, {"name": "Task"})

        assert row == {"id": "new", "name": "Task"}
        assert handler.requests[0].method == "POST"
        assert json.loads(handler.requests[0].content) == {"name": "Task"}

    def test_update_sends_patch_with_filters(self, config):
        handler = Recorder(payload=[{"id": "1", "status": True}])
        store = make_store(config, handler)

        rows = store.update(TASKS, {"id": eq("1")}, {"status": True})

        assert rows == [{"id": "1", "status": True}]
        request = handler.requests[0]
        assert request.method == "PATCH"
        assert request.url.params["id"] == "eq.1"

    def test_delete(self, config):
        handler = Recorder(status_code=204, payload=[])
        store = make_store(config, handler)

        store.delete(TASKS, {"id": eq("1")})

        assert handler.requests[0].method == "DELETE"


class TestErrors:
    def test_error_status_raises_store_error(self, config):
        store = make_store(config, Recorder(status_code=401, payload={"message": "JWT expired"}))

        with pytest.raises(StoreError) as exc_info:
            store.select(TASKS)

        assert exc_info.value.status_code == 401
        assert exc_info.value.operation == "GET tasks"
        assert "JWT expired" in exc_info.value.message

    def test_transport_error_raises_store_error(self, config):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = make_store(config, refuse)

        with pytest.raises(StoreError) as exc_info:
            store.select(TASKS)

        assert isinstance(exc_info.value.original_error, httpx.ConnectError)

    @pytest.mark.parametrize("operation", [
        lambda s: s.update(TASKS, {}, {"status": True}),
        lambda s: s.delete(TASKS, {}),
    ])
    def test_unfiltered_writes_never_reach_the_server(self, config, operation):
        handler = Recorder()
        store = make_store(config, handler)

        with pytest.raises(StoreError):
            operation(store)

        assert handler.requests == []
