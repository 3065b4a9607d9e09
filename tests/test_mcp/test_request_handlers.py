"""
Tests for JSON-RPC dispatch and the MCP tool handlers.
Runs every tool against the in-memory store through handle_jsonrpc_request.
"""
import json
from unittest.mock import patch

import pytest

from streamline_mcp import __version__
from streamline_mcp.mcp.functions import MCP_FUNCTIONS
from streamline_mcp.mcp.request_handlers import handle_jsonrpc_request, list_tools, build_tool_map

WEEKLY_MWF = {"frequency": "weekly", "weekdays": [2, 4, 6]}


def call_tool(name, arguments=None, request_id=1):
    """Call a tool over JSON-RPC and return (decoded result, raw response)."""
    response = handle_jsonrpc_request({
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "tools/call",
        "params": {"name": name, "arguments": arguments or {}},
    })
    text = response["result"]["content"][0]["text"]
    return json.loads(text), response


class TestProtocol:
    def test_initialize(self):
        response = handle_jsonrpc_request({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}})

        assert response["id"] == 1
        assert response["result"]["protocolVersion"] == "2024-11-05"
        assert response["result"]["serverInfo"] == {"name": "streamline-mcp", "version": __version__}
        assert "tools" in response["result"]["capabilities"]

    def test_notifications_get_no_response(self):
        assert handle_jsonrpc_request({"jsonrpc": "2.0", "method": "notifications/initialized"}) is None

    @pytest.mark.parametrize("method,key", [("prompts/list", "prompts"), ("resources/list", "resources")])
    def test_empty_lists(self, method, key):
        response = handle_jsonrpc_request({"jsonrpc": "2.0", "id": 2, "method": method})
        assert response["result"] == {key: []}

    def test_ping(self):
        response = handle_jsonrpc_request({"jsonrpc": "2.0", "id": 3, "method": "ping"})
        assert response == {"jsonrpc": "2.0", "id": 3, "result": {}}

    def test_unknown_method(self):
        response = handle_jsonrpc_request({"jsonrpc": "2.0", "id": 4, "method": "sampling/createMessage"})
        assert response["error"]["code"] == -32601

    def test_unknown_tool(self):
        response = handle_jsonrpc_request({
            "jsonrpc": "2.0", "id": 5, "method": "tools/call",
            "params": {"name": "launch_rocket", "arguments": {}},
        })
        assert response["error"]["code"] == -32601
        assert "launch_rocket" in response["error"]["message"]

    @pytest.mark.parametrize("params", [[1], "tools", 7])
    def test_params_must_be_an_object(self, params):
        response = handle_jsonrpc_request({"jsonrpc": "2.0", "id": 6, "method": "tools/call", "params": params})

        assert response["id"] == 6
        assert response["error"]["code"] == -32602

    def test_arguments_must_be_an_object(self):
        response = handle_jsonrpc_request({
            "jsonrpc": "2.0", "id": 7, "method": "tools/call",
            "params": {"name": "list_tags", "arguments": ["include_hidden"]},
        })

        assert response["error"]["code"] == -32602

    def test_notification_with_bad_params_gets_no_response(self):
        assert handle_jsonrpc_request({"jsonrpc": "2.0", "method": "notifications/cancelled", "params": [1]}) is None

    def test_unexpected_exception_becomes_internal_error(self, container):
        with patch.object(container.task_service, "search_tasks", side_effect=RuntimeError("kaboom")):
            response = handle_jsonrpc_request({
                "jsonrpc": "2.0", "id": 6, "method": "tools/call",
                "params": {"name": "search_tasks", "arguments": {}},
            })

        assert response["error"]["code"] == -32603
        assert "kaboom" in response["error"]["message"]
        assert "Traceback" in response["error"]["data"]


class TestToolsList:
    def test_every_function_is_listed_and_dispatchable(self):
        tools = list_tools()

        assert [t["name"] for t in tools] == [f["name"] for f in MCP_FUNCTIONS]
        assert set(build_tool_map({})) == {t["name"] for t in tools}
        assert len(tools) == 24

    def test_required_parameters(self):
        tools = {t["name"]: t for t in list_tools()}

        assert tools["create_task"]["inputSchema"]["required"] == ["name"]
        assert tools["complete_task"]["inputSchema"]["required"] == ["uuid"]
        assert tools["search_tasks"]["inputSchema"]["required"] == []
        assert tools["tag_task"]["inputSchema"]["required"] == ["uuid", "tag"]
        assert tools["tag_note"]["inputSchema"]["required"] == ["uuid", "tag"]
        assert tools["create_note"]["inputSchema"]["required"] == []
        assert tools["read_workspace"]["inputSchema"]["required"] == []
        assert "recurrence" in tools["create_task"]["inputSchema"]["properties"]

    def test_response_envelope(self):
        response = handle_jsonrpc_request({"jsonrpc": "2.0", "id": "abc", "method": "tools/list"})
        assert response["id"] == "abc"
        assert response["jsonrpc"] == "2.0"


class TestTaskTools:
    def test_create_search_read(self, container):
        # Execute
        created, response = call_tool("create_task", {"name": "Buy milk", "due_date": "today", "tags": ["shop"]})
        found, _ = call_tool("search_tasks", {"query": "milk"})
        read, _ = call_tool("read_task", {"uuid": created["uuid"]})

        # Verify
        assert response["result"]["isError"] is False
        assert created["success"] is True
        assert found["count"] == 1
        assert found["tasks"][0]["uuid"] == created["uuid"]
        assert read["task"]["tags"] == ["shop"]
        assert read["task"]["due_date"] == "Feb 3, 2025"

    def test_validation_failure_is_structured(self, container):
        result, response = call_tool("create_task", {"name": "  "})

        assert response["result"]["isError"] is True
        assert result["success"] is False
        assert result["error"]["code"] == -32602
        assert result["error"]["error_type"] == "ValidationError"
        assert result["error"]["message"] == "Task name is required"

    def test_missing_task_is_structured(self, container):
        result, _ = call_tool("read_task", {"uuid": "nope"})

        assert result["success"] is False
        assert result["error"]["code"] == -32001
        assert result["error"]["error_type"] == "TaskNotFoundError"

    def test_update_complete_delete(self, container):
        created, _ = call_tool("create_task", {"name": "Draft"})
        uuid = created["uuid"]

        updated, _ = call_tool("update_task", {"uuid": uuid, "name": "Final"})
        completed, _ = call_tool("complete_task", {"uuid": uuid})
        deleted, _ = call_tool("delete_task", {"uuid": uuid, "permanent": True})
        missing, _ = call_tool("read_task", {"uuid": uuid})

        assert updated["message"] == "Task updated successfully"
        assert completed["message"] == "Task 'Final' marked as completed"
        assert deleted["message"] == "Task 'Final' permanently deleted"
        assert missing["success"] is False


class TestTagTools:
    def test_tag_lifecycle(self, container):
        created, _ = call_tool("create_task", {"name": "Tag me"})

        made, _ = call_tool("create_tag", {"name": "errands"})
        duplicate, _ = call_tool("create_tag", {"name": "Errands"})
        tagged, _ = call_tool("tag_task", {"uuid": created["uuid"], "tag": "errands"})
        listed, _ = call_tool("list_tags")
        untagged, _ = call_tool("untag_task", {"uuid": created["uuid"], "tag": "errands"})

        assert made == {"success": True, "message": "Created tag: errands"}
        assert duplicate["success"] is False
        assert tagged["message"] == "Added tag 'errands' to task"
        assert listed["count"] == 1
        assert listed["tags"][0]["name"] == "errands"
        assert untagged["message"] == "Removed tag 'errands' from task"


class TestRecurringTools:
    def test_complete_occurrence_creates_next(self, container):
        # Setup
        created, _ = call_tool("create_task", {
            "name": "Water plants", "due_date": "2025-02-03", "recurrence": WEEKLY_MWF,
        })

        # Execute
        completed, _ = call_tool("complete_task", {"uuid": created["uuid"]})

        # Verify
        assert created["recurrence"] == "Every Mon, Wed, Fri"
        assert completed["recurrence"]["generated"] is True
        assert completed["recurrence"]["next_occurrence"]["due_date"] == "Feb 5, 2025"

    def test_skip_pause_resume_end_read(self, container):
        # Setup
        created, _ = call_tool("create_task", {
            "name": "Stretch", "due_date": "2025-02-03", "recurrence": {"frequency": "daily"},
        })
        uuid = created["uuid"]

        # Execute
        skipped, _ = call_tool("skip_task", {"uuid": uuid})
        paused, _ = call_tool("pause_recurrence", {"uuid": uuid})
        paused_again, _ = call_tool("pause_recurrence", {"uuid": uuid})
        resumed, _ = call_tool("resume_recurrence", {"uuid": uuid})
        read, _ = call_tool("read_recurrence", {"uuid": uuid, "preview_count": 2})
        ended, _ = call_tool("end_recurrence", {"uuid": uuid})

        # Verify
        assert skipped["next_occurrence"]["due_date"] == "Feb 4, 2025"
        assert paused["status"] == "paused"
        assert paused_again["success"] is False
        assert paused_again["error"]["error_type"] == "SeriesStateError"
        assert resumed["status"] == "active"
        assert resumed["reason"] == "open_occurrence_exists"
        assert read["series"]["summary"] == "Every day"
        assert read["series"]["upcoming"] == ["Feb 5, 2025", "Feb 6, 2025"]
        assert ended["status"] == "ended"

    def test_zero_preview_count_lists_no_dates(self, container):
        created, _ = call_tool("create_task", {
            "name": "Stretch", "due_date": "2025-02-03", "recurrence": {"frequency": "daily"},
        })

        read, _ = call_tool("read_recurrence", {"uuid": created["uuid"], "preview_count": 0})

        assert read["series"]["upcoming"] == []

    def test_plain_task_is_not_in_series(self, container):
        created, _ = call_tool("create_task", {"name": "One-off"})

        result, _ = call_tool("pause_recurrence", {"uuid": created["uuid"]})

        assert result["success"] is False
        assert result["error"]["error_type"] == "NotInSeriesError"
        assert result["error"]["code"] == -32001

    def test_missing_uuid(self, container):
        result, _ = call_tool("skip_task", {})

        assert result["success"] is False
        assert result["error"]["code"] == -32602


class TestNoteTools:
    def test_create_search_read_update_delete(self, container):
        # Execute
        created, _ = call_tool("create_note", {"content": "Packing list\nPassport and chargers", "tags": ["travel"]})
        found, _ = call_tool("search_notes", {"tags": ["travel"]})
        updated, _ = call_tool("update_note", {"uuid": created["uuid"], "append": "Sunscreen", "is_flagged": True})
        read, _ = call_tool("read_note", {"uuid": created["uuid"]})
        deleted, _ = call_tool("delete_note", {"uuid": created["uuid"]})
        read_again, _ = call_tool("read_note", {"uuid": created["uuid"]})

        # Verify
        assert created["title"] == "Packing list"
        assert found["count"] == 1
        assert found["notes"][0]["preview"] == "Passport and chargers"
        assert updated["message"] == "Note updated successfully"
        assert read["note"]["content"] == "Packing list\nPassport and chargers\n\nSunscreen"
        assert read["note"]["is_flagged"] is True
        assert read["note"]["tags"] == ["travel"]
        assert deleted["message"] == "Note 'Packing list' moved to trash"
        assert read_again["success"] is False
        assert read_again["error"]["error_type"] == "NoteNotFoundError"

    def test_tag_and_untag_note(self, container):
        created, _ = call_tool("create_note", {"content": "Ideas"})

        tagged, _ = call_tool("tag_note", {"uuid": created["uuid"], "tag": "later"})
        again, _ = call_tool("tag_note", {"uuid": created["uuid"], "tag": "later"})
        untagged, _ = call_tool("untag_note", {"uuid": created["uuid"], "tag": "later"})

        assert tagged["message"] == "Added tag 'later' to note"
        assert again["message"] == "Tag 'later' already assigned to note"
        assert untagged["message"] == "Removed tag 'later' from note"
        assert container.tag_service.tag_names_for_note(created["uuid"]) == []

    def test_unknown_note(self, container):
        result, _ = call_tool("update_note", {"uuid": "missing", "content": "x"})

        assert result["success"] is False
        assert result["error"]["code"] == -32001


class TestWorkspaceTools:
    def test_list_and_read(self, container, store):
        # Setup
        store.insert("workspaces", {
            "id": "ws-1",
            "user_id": "user-1",
            "name": "Work",
            "color_name": "blue",
            "sort_index": 0,
            "is_deleted": False,
            "rules_data": {
                "includeGroups": [{"id": "g1", "matchType": "Any of", "tagNames": ["work", "urgent"]}],
                "excludeTags": ["someday"],
                "groupCombinator": "AND",
                "autoTagNames": ["work"],
            },
        })

        # Execute
        listed, _ = call_tool("list_workspaces", {})
        bare, _ = call_tool("list_workspaces", {"include_rules": False})
        read, _ = call_tool("read_workspace", {"name": "work"})

        # Verify
        assert listed["workspaces"] == [{
            "uuid": "ws-1",
            "name": "Work",
            "color": "blue",
            "rules_summary": "Include any of: work, urgent; Exclude: someday",
        }]
        assert "rules_summary" not in bare["workspaces"][0]
        assert read["workspace"]["rules"]["auto_tags"] == ["work"]

    def test_read_requires_uuid_or_name(self, container):
        result, _ = call_tool("read_workspace", {})

        assert result["success"] is False
        assert result["error"]["code"] == -32602
