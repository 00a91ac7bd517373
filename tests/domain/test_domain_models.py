"""Tests for domain models.

Tests cover:
- Message factories, wire rendering and storage round-trip
- Tool schema creation and HTTP request parsing
- ToolCallExecution settlement rules
- Authorization tag groups
- Agent tool bindings and legacy normalization
- ChatSession transcript operations
"""

import pytest

from domain.enums import HttpMethod, MessageRole, ToolCallStatus
from domain.models import Agent, ApiConfig, Authorization, AvailableModel, ChatSession, HttpRequestConfig, Message, Tool, ToolBinding, ToolCallExecution, normalize_tool_bindings
from tests.fixtures.factories import ToolFactory, make_tool_call

# ============================================================================
# MESSAGE
# ============================================================================


class TestMessage:
    """Test Message factories and serialization."""

    def test_tool_result_links_call(self):
        """Tool messages carry the call id and function name."""
        message = Message.tool_result("call_1", "get_weather", "sunny")

        assert message.role == MessageRole.TOOL
        assert message.to_wire() == {"role": "tool", "content": "sunny", "tool_call_id": "call_1", "name": "get_weather"}

    def test_assistant_wire_includes_tool_calls(self):
        """Assistant messages with tool calls render them in wire format."""
        call = make_tool_call("get_weather", '{"city":"Paris"}')
        message = Message.assistant("", tool_calls=(call,))

        wire = message.to_wire()

        assert wire["tool_calls"] == [{"id": "call_1", "type": "function", "function": {"name": "get_weather", "arguments": '{"city":"Paris"}'}}]

    def test_user_wire_has_only_role_and_content(self):
        """Playground metadata never leaks into the request."""
        message = Message.user("Hello")

        assert message.to_wire() == {"role": "user", "content": "Hello"}

    def test_storage_round_trip_keeps_metadata(self):
        """to_dict/from_dict preserve error, retry and tool call fields."""
        call = make_tool_call("get_weather")
        message = Message.assistant("partial", tool_calls=(call,), error="boom", can_retry=True, incomplete=True, reasoning_content="thinking")

        restored = Message.from_dict(message.to_dict())

        assert restored == message

    def test_storage_uses_camel_case_keys(self):
        message = Message.assistant("x", can_retry=True, error="e")

        data = message.to_dict()

        assert data["canRetry"] is True
        assert "can_retry" not in data


# ============================================================================
# TOOL
# ============================================================================


class TestTool:
    """Test Tool creation and parsing."""

    def test_create_builds_function_schema(self):
        """The schema's function name equals the tool name."""
        tool = ToolFactory.create_weather_tool()

        assert tool.schema["type"] == "function"
        assert tool.schema["function"]["name"] == "get_weather"
        assert tool.function_name == "get_weather"
        assert tool.schema["function"]["parameters"]["required"] == ["city"]

    def test_from_dict_without_url_has_no_request(self):
        """A stored httpRequest without url means the tool is simulated."""
        data = ToolFactory.create().to_dict()
        data["httpRequest"] = {"method": "GET", "url": "", "headers": []}

        tool = Tool.from_dict(data)

        assert tool.http_request is None

    def test_http_request_method_is_normalized(self):
        request = HttpRequestConfig.from_dict({"method": "post", "url": "https://api.x", "headers": [{"key": "X-A", "value": "1"}, {"key": "", "value": "ignored"}]})

        assert request.method == HttpMethod.POST
        assert len(request.headers) == 1

    def test_round_trip(self):
        tool = ToolFactory.create_http_tool(headers={"X-Key": "abc"}, tag="weather")

        assert Tool.from_dict(tool.to_dict()) == tool

    def test_only_post_put_patch_carry_a_body(self):
        assert {method for method in HttpMethod if method.carries_body} == {HttpMethod.POST, HttpMethod.PUT, HttpMethod.PATCH}
        assert HttpMethod.DELETE.carries_body is False


# ============================================================================
# TOOL CALL EXECUTION
# ============================================================================


class TestToolCallExecution:
    """Test ToolCallExecution settlement."""

    def test_pending_then_completed(self):
        execution = ToolCallExecution.pending(make_tool_call("get_weather"))

        execution.complete("sunny")

        assert execution.status == ToolCallStatus.COMPLETED
        assert execution.result == "sunny"
        assert execution.is_settled

    def test_cannot_settle_twice(self):
        """Settled executions are immutable."""
        execution = ToolCallExecution.pending(make_tool_call("get_weather"))
        execution.fail("boom")

        with pytest.raises(ValueError):
            execution.complete("late")

        assert execution.status == ToolCallStatus.FAILED
        assert execution.error == "boom"


# ============================================================================
# AUTHORIZATION
# ============================================================================


class TestAuthorization:
    """Test Authorization tag groups."""

    def test_untagged_group_treats_empty_and_none_alike(self):
        authorization = Authorization.create("A", {"X": "1"}, tag="")

        assert authorization.tag is None
        assert authorization.in_group(None)
        assert authorization.in_group("")
        assert not authorization.in_group("weather")

    def test_with_default_returns_new_instance(self):
        authorization = Authorization.create("A", {"X": "1"})

        promoted = authorization.with_default(True)

        assert promoted.is_default_in_tag
        assert not authorization.is_default_in_tag

    def test_round_trip(self):
        authorization = Authorization.create("A", {"X-Key": "1"}, tag="weather", is_default_in_tag=True)

        assert Authorization.from_dict(authorization.to_dict()) == authorization


# ============================================================================
# AGENT
# ============================================================================


class TestAgentBindings:
    """Test Agent tool bindings, including the legacy tools format."""

    def test_legacy_tools_become_bindings(self):
        """A record with only `tools` is normalized into bindings without authorization."""
        agent = Agent.from_dict({"id": "a1", "name": "Legacy", "tools": ["t1", "t2"]})

        assert agent.tool_bindings == (ToolBinding("t1"), ToolBinding("t2"))
        assert agent.tool_ids == ["t1", "t2"]

    def test_tool_bindings_take_precedence(self):
        data = {"tools": ["t1"], "toolBindings": [{"toolId": "t2", "authorizationId": "auth1"}]}

        assert normalize_tool_bindings(data) == (ToolBinding("t2", "auth1"),)

    def test_to_dict_writes_both_formats(self):
        agent = Agent.create("A", tool_bindings=[ToolBinding("t1", "auth1")])

        data = agent.to_dict()

        assert data["tools"] == ["t1"]
        assert data["toolBindings"] == [{"toolId": "t1", "authorizationId": "auth1"}]

    def test_remove_tool(self):
        agent = Agent.create("A", tool_bindings=[ToolBinding("t1"), ToolBinding("t2")])

        updated = agent.remove_tool("t1")

        assert updated.tool_ids == ["t2"]
        assert agent.tool_ids == ["t1", "t2"]


# ============================================================================
# SESSION / CONFIG
# ============================================================================


class TestChatSession:
    """Test ChatSession transcript operations."""

    def test_append_and_index_of(self):
        first = Message.user("Hi")
        second = Message.assistant("Hello")
        session = ChatSession.create().append([first, second])

        assert session.index_of(second.id) == 1
        with pytest.raises(KeyError):
            session.index_of("missing")

    def test_round_trip(self):
        session = ChatSession.create(agent_id="a1", tool_ids=["t1"], system_prompt="Be brief").append([Message.user("Hi")])

        assert ChatSession.from_dict(session.to_dict()) == session


class TestApiConfig:
    def test_with_overrides_leaves_original_untouched(self):
        config = ApiConfig(provider="OpenAI", endpoint="https://e", api_key="k", model="gpt-4o")

        overridden = config.with_overrides(temperature=0.3, max_tokens=20)

        assert overridden.temperature == 0.3
        assert config.temperature == 0.7

    def test_available_model_id(self):
        assert AvailableModel(provider="OpenAI", model="gpt-4o").id == "OpenAI-gpt-4o"

    def test_available_model_round_trip_keeps_empty_display_name(self):
        model = AvailableModel(provider="Deepseek", model="deepseek-chat")

        data = model.to_dict()

        assert data["displayName"] == ""
        assert AvailableModel.from_dict(data) == model
        assert model.label == "deepseek-chat"

    def test_available_model_label_prefers_display_name(self):
        model = AvailableModel(provider="OpenAI", model="gpt-4o", display_name="GPT-4o")

        assert AvailableModel.from_dict(model.to_dict()) == model
        assert model.label == "GPT-4o"
