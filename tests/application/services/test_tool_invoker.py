"""Tests for ToolInvoker.

Tests cover:
- Simulated execution for tools without an HTTP request
- Placeholder substitution in URL and headers
- Query parameters for GET and DELETE, JSON body for POST, PUT and PATCH
- Authorization header merging
- Argument and HTTP failures mapped to ToolExecutionError
- Proxy envelope handling
"""

import json

import httpx
import pytest

from application.services import ToolExecutionError, ToolExecutionErrorKind, ToolInvoker, stringify_result
from domain.enums import HttpMethod
from tests.fixtures.factories import AuthorizationFactory, ToolFactory, make_tool_call


class RecordingTransport:
    """Collects requests and answers them with a fixed response."""

    def __init__(self, response: httpx.Response | None = None, error: Exception | None = None):
        self.requests: list[httpx.Request] = []
        self.response = response or httpx.Response(200, json={"ok": True})
        self.error = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


def make_invoker(transport: RecordingTransport, proxy_url: str | None = None) -> ToolInvoker:
    return ToolInvoker(http_client=httpx.AsyncClient(transport=httpx.MockTransport(transport)), proxy_url=proxy_url)


class TestSimulatedTools:
    """Test tools without an HTTP request template."""

    @pytest.mark.asyncio
    async def test_simulated_result_mentions_tool_and_arguments(self, weather_tool):
        invoker = ToolInvoker()

        result = await invoker.invoke(weather_tool, make_tool_call("get_weather", '{"city":"Paris"}'))

        data = json.loads(result)
        assert data["tool"] == "get_weather"
        assert data["arguments"] == {"city": "Paris"}
        assert data["simulated"] is True

    @pytest.mark.asyncio
    async def test_simulation_never_fails_on_bad_arguments(self, weather_tool):
        result = await ToolInvoker().invoke(weather_tool, make_tool_call("get_weather", "{not json"))

        assert json.loads(result)["arguments"] == "{not json"


class TestRequestBuilding:
    """Test request rendering from the template."""

    @pytest.mark.asyncio
    async def test_url_placeholder_substituted(self):
        """GET https://api.x/{city} with {"city":"NYC"} calls https://api.x/NYC."""
        transport = RecordingTransport()
        tool = ToolFactory.create_http_tool(url="https://api.x/{city}")

        await make_invoker(transport).invoke(tool, make_tool_call(tool.name, '{"city":"NYC"}'))

        assert str(transport.requests[0].url) == "https://api.x/NYC"
        assert transport.requests[0].method == "GET"

    def test_placeholder_values_substituted_raw(self):
        tool = ToolFactory.create_http_tool(url="https://api.x/{path}")

        request = ToolInvoker().build_request(tool, {"path": "users/42"})

        assert request.url == "https://api.x/users/42"

    def test_placeholder_may_hold_base_url(self):
        tool = ToolFactory.create_http_tool(url="{base_url}/v1/{path}")

        request = ToolInvoker().build_request(tool, {"base_url": "https://api.x", "path": "users/42"})

        assert request.url == "https://api.x/v1/users/42"
        assert request.json_body is None

    @pytest.mark.asyncio
    async def test_base_url_placeholder_reaches_server(self):
        transport = RecordingTransport()
        tool = ToolFactory.create_http_tool(url="{base_url}/v1/{path}")

        await make_invoker(transport).invoke(tool, make_tool_call(tool.name, '{"base_url":"https://api.x","path":"users/42"}'))

        assert str(transport.requests[0].url) == "https://api.x/v1/users/42"

    def test_remaining_arguments_become_query_for_get(self):
        tool = ToolFactory.create_http_tool(url="https://api.x/{city}")

        request = ToolInvoker().build_request(tool, {"city": "NYC", "units": "metric", "detailed": True})

        url = httpx.URL(request.url)
        assert url.path == "/NYC"
        assert url.params["units"] == "metric"
        assert url.params["detailed"] == "true"
        assert "city" not in url.params
        assert request.json_body is None

    def test_remaining_arguments_become_json_body_for_post(self):
        tool = ToolFactory.create_http_tool(method=HttpMethod.POST, url="https://api.x/{city}/reports")

        request = ToolInvoker().build_request(tool, {"city": "NYC", "text": "hello"})

        assert request.url == "https://api.x/NYC/reports"
        assert request.json_body == {"text": "hello"}

    def test_post_without_remaining_arguments_has_no_body(self):
        tool = ToolFactory.create_http_tool(method=HttpMethod.POST, url="https://api.x/{city}/reports")

        request = ToolInvoker().build_request(tool, {"city": "NYC"})

        assert request.json_body is None

    @pytest.mark.asyncio
    async def test_delete_sends_remaining_arguments_as_query(self):
        transport = RecordingTransport()
        tool = ToolFactory.create_http_tool(method=HttpMethod.DELETE, url="https://api.x/items/{id}")

        await make_invoker(transport).invoke(tool, make_tool_call(tool.name, '{"id":"42","force":true}'))

        sent = transport.requests[0]
        assert sent.method == "DELETE"
        assert sent.url.path == "/items/42"
        assert sent.url.params["force"] == "true"
        assert sent.content == b""

    def test_unmatched_placeholder_left_verbatim(self):
        tool = ToolFactory.create_http_tool(url="https://api.x/{city}/{missing}")

        request = ToolInvoker().build_request(tool, {"city": "NYC"})

        assert request.url == "https://api.x/NYC/{missing}"

    def test_header_placeholders_and_authorization_merge(self):
        tool = ToolFactory.create_http_tool(headers={"X-Tenant": "{tenant}", "Authorization": "Bearer tool"})
        authorization = AuthorizationFactory.create(headers={"Authorization": "Bearer auth"})

        request = ToolInvoker().build_request(tool, {"tenant": "acme"}, authorization)

        assert request.headers == {"X-Tenant": "acme", "Authorization": "Bearer auth"}


class TestHttpExecution:
    """Test sending the request and handling the response."""

    @pytest.mark.asyncio
    async def test_json_response_is_pretty_printed(self):
        transport = RecordingTransport(httpx.Response(200, json={"temp": 21}))
        tool = ToolFactory.create_http_tool()

        result = await make_invoker(transport).invoke(tool, make_tool_call(tool.name, '{"city":"NYC"}'))

        assert result == stringify_result({"temp": 21})

    @pytest.mark.asyncio
    async def test_text_response_returned_verbatim(self):
        transport = RecordingTransport(httpx.Response(200, text="plain text", headers={"content-type": "text/plain"}))
        tool = ToolFactory.create_http_tool()

        result = await make_invoker(transport).invoke(tool, make_tool_call(tool.name, '{"city":"NYC"}'))

        assert result == "plain text"

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self):
        transport = RecordingTransport()
        tool = ToolFactory.create_http_tool(method=HttpMethod.POST, url="https://api.x/items")

        await make_invoker(transport).invoke(tool, make_tool_call(tool.name, '{"name":"widget"}'))

        assert json.loads(transport.requests[0].content) == {"name": "widget"}

    @pytest.mark.asyncio
    async def test_non_success_status_raises_request_failed(self):
        transport = RecordingTransport(httpx.Response(404, text="not here"))
        tool = ToolFactory.create_http_tool()

        with pytest.raises(ToolExecutionError) as exc_info:
            await make_invoker(transport).invoke(tool, make_tool_call(tool.name, '{"city":"NYC"}'))

        assert exc_info.value.kind == ToolExecutionErrorKind.REQUEST_FAILED
        assert exc_info.value.status == 404
        assert exc_info.value.message == "HTTP 404 Not Found"
        assert exc_info.value.upstream_body == "not here"

    @pytest.mark.asyncio
    async def test_transport_error_raises_request_failed(self):
        transport = RecordingTransport(error=httpx.ConnectError("refused"))
        tool = ToolFactory.create_http_tool()

        with pytest.raises(ToolExecutionError) as exc_info:
            await make_invoker(transport).invoke(tool, make_tool_call(tool.name, '{"city":"NYC"}'))

        assert exc_info.value.kind == ToolExecutionErrorKind.REQUEST_FAILED
        assert exc_info.value.is_retryable

    @pytest.mark.asyncio
    async def test_invalid_arguments_do_not_send_request(self):
        transport = RecordingTransport()
        tool = ToolFactory.create_http_tool()

        with pytest.raises(ToolExecutionError) as exc_info:
            await make_invoker(transport).invoke(tool, make_tool_call(tool.name, '{"city":'))

        assert exc_info.value.kind == ToolExecutionErrorKind.INVALID_ARGUMENTS
        assert exc_info.value.message.startswith("Invalid arguments format")
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_non_object_arguments_rejected(self):
        tool = ToolFactory.create_http_tool()

        with pytest.raises(ToolExecutionError) as exc_info:
            await make_invoker(RecordingTransport()).invoke(tool, make_tool_call(tool.name, "[1, 2]"))

        assert exc_info.value.kind == ToolExecutionErrorKind.INVALID_ARGUMENTS

    @pytest.mark.asyncio
    async def test_empty_arguments_treated_as_empty_object(self):
        transport = RecordingTransport()
        tool = ToolFactory.create_http_tool(url="https://api.x/ping")

        await make_invoker(transport).invoke(tool, make_tool_call(tool.name, ""))

        assert str(transport.requests[0].url) == "https://api.x/ping"


class TestProxyExecution:
    """Test routing through the passthrough proxy."""

    @pytest.mark.asyncio
    async def test_envelope_sent_and_unwrapped(self):
        envelope = {"status": 200, "statusText": "OK", "headers": {}, "data": {"temp": 21}}
        transport = RecordingTransport(httpx.Response(200, json=envelope))
        tool = ToolFactory.create_http_tool(headers={"X-Key": "abc"})

        result = await make_invoker(transport, proxy_url="http://localhost:8080/api/proxy").invoke(tool, make_tool_call(tool.name, '{"city":"NYC"}'))

        sent = json.loads(transport.requests[0].content)
        assert str(transport.requests[0].url) == "http://localhost:8080/api/proxy"
        assert sent == {"method": "GET", "url": "https://api.x/NYC", "headers": {"X-Key": "abc"}, "data": None}
        assert result == stringify_result({"temp": 21})

    @pytest.mark.asyncio
    async def test_upstream_error_status_in_envelope_raises(self):
        envelope = {"status": 500, "statusText": "Internal Server Error", "headers": {}, "data": "boom"}
        transport = RecordingTransport(httpx.Response(200, json=envelope))
        tool = ToolFactory.create_http_tool()

        with pytest.raises(ToolExecutionError) as exc_info:
            await make_invoker(transport, proxy_url="http://proxy/api/proxy").invoke(tool, make_tool_call(tool.name, '{"city":"NYC"}'))

        assert exc_info.value.status == 500
        assert exc_info.value.is_retryable

    @pytest.mark.asyncio
    async def test_proxy_failure_raises_request_failed(self):
        transport = RecordingTransport(httpx.Response(500, json={"error": "Proxy request failed", "message": "refused"}))
        tool = ToolFactory.create_http_tool()

        with pytest.raises(ToolExecutionError) as exc_info:
            await make_invoker(transport, proxy_url="http://proxy/api/proxy").invoke(tool, make_tool_call(tool.name, '{"city":"NYC"}'))

        assert exc_info.value.message == "Request failed: refused"
