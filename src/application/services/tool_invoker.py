"""Tool Invoker service for executing model-requested tool calls.

This service executes one tool call per invocation:
4. Remaining arguments become query parameters (GET, DELETE) or a JSON body (POST, PUT, PATCH)
2. Arguments are parsed from the raw JSON string the model produced
3. `{param}` placeholders in the URL and header values are filled from the arguments
4. Remaining arguments become query parameters (GET) or a JSON body (other methods)
5. Authorization headers are merged over tool headers
6. Exactly one HTTP request is sent, directly or through the passthrough proxy

Key Features:
- No internal retries; a failed request raises ToolExecutionError(kind=REQUEST_FAILED)
- JSON responses are re-serialized, other bodies are returned verbatim
- Request/response logging at DEBUG level with credential masking and truncation
"""

import json
import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import httpx
from opentelemetry import trace

from domain.models import Authorization, Tool, ToolCall
from observability import tool_execution_failures, tool_execution_time, tool_executions

from .authorization_resolver import merge_headers

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Maximum length for logged request/response bodies
MAX_LOG_BODY_LENGTH = 500

PLACEHOLDER_PATTERN = re.compile(r"\{([^{}]+)\}")

SENSITIVE_HEADER_KEYS = frozenset({"authorization", "api-key", "x-api-key", "cookie", "proxy-authorization"})


class ToolExecutionErrorKind(str, Enum):
    """Categories of tool execution failure."""

    INVALID_ARGUMENTS = "invalid_arguments"
    REQUEST_FAILED = "request_failed"
    TOOL_NOT_FOUND = "tool_not_found"


class ToolExecutionError(Exception):
    """Error during tool execution.

    Converted by the orchestrator into a tool-role error message; it never
    aborts the whole turn.

    Attributes:
        message: Human-readable error message
        kind: Failure category
        tool_name: Function name of the tool that failed
        status: HTTP status code from upstream (if one was received)
        upstream_body: Response body from upstream (truncated for safety)
        is_retryable: Whether the error might succeed on retry
        details: Additional error details
    """

    def __init__(
        self,
        message: str,
        kind: ToolExecutionErrorKind,
        tool_name: Optional[str] = None,
        status: Optional[int] = None,
        upstream_body: Optional[str] = None,
        is_retryable: bool = False,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.error_code = kind.value
        self.tool_name = tool_name
        self.status = status
        self.upstream_body = upstream_body
        self.is_retryable = is_retryable
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "message": self.message,
            "error_code": self.error_code,
            "tool_name": self.tool_name,
            "status": self.status,
            "upstream_body": self.upstream_body,
            "is_retryable": self.is_retryable,
            "details": self.details,
        }


@dataclass
class PreparedToolRequest:
    """Fully rendered HTTP request for one tool call."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    json_body: Optional[dict[str, Any]] = None


def _to_text(value: Any) -> str:
    """Render an argument value the way it is substituted into URLs, headers and query strings."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def stringify_result(data: Any) -> str:
    """Strings pass through verbatim, anything else is JSON-encoded with indentation."""
    if isinstance(data, str):
        return data
    return json.dumps(data, indent=2, ensure_ascii=False)


class ToolInvoker:
    """Executes tool calls, either simulated or against the tool's HTTP endpoint.

    Example Usage:
        invoker = ToolInvoker(timeout=30.0)
        result = await invoker.invoke(tool, tool_call, authorization)
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        proxy_url: Optional[str] = None,
    ):
        """Initialize the tool invoker.

        Args:
            http_client: Optional shared HTTP client; a short-lived client is used per call otherwise
            timeout: HTTP timeout in seconds for one tool request
            proxy_url: When set, requests are sent through the passthrough proxy at this URL
        """
        self._http_client = http_client
        self._timeout = timeout
        self._proxy_url = proxy_url
        logger.info(f"ToolInvoker initialized: timeout={timeout}s, proxy={'enabled' if proxy_url else 'disabled'}")

    async def invoke(self, tool: Tool, tool_call: ToolCall, authorization: Optional[Authorization] = None) -> str:
        """Execute one tool call and return its stringified result.

        Args:
            tool: Tool definition resolved from the call's function name
            tool_call: The complete call emitted by the model
            authorization: Authorization selected by the resolver, if any

        Returns:
            Result text to place in the tool message

        Raises:
            ToolExecutionError: INVALID_ARGUMENTS or REQUEST_FAILED
        """
        start_time = time.time()
        mode = "http" if tool.http_request else "simulated"
        tool_executions.add(1, {"tool_name": tool.name, "mode": mode})

        with tracer.start_as_current_span("tool_invoker.invoke") as span:
            span.set_attribute("tool.name", tool.name)
            span.set_attribute("tool.call_id", tool_call.id)
            span.set_attribute("tool.mode", mode)
            try:
                if tool.http_request is None:
                    return self.simulate(tool, tool_call)

                arguments = self.parse_arguments(tool, tool_call)
                request = self.build_request(tool, arguments, authorization)
                if self._proxy_url:
                    return await self._send_via_proxy(tool, request)
                return await self._send_direct(tool, request)

            except ToolExecutionError as e:
                span.set_attribute("error", True)
                span.set_attribute("tool.error_code", e.error_code)
                tool_execution_failures.add(1, {"tool_name": tool.name, "error_code": e.error_code})
                raise
            finally:
                execution_time_ms = (time.time() - start_time) * 1000
                tool_execution_time.record(execution_time_ms, {"tool_name": tool.name, "mode": mode})

    def simulate(self, tool: Tool, tool_call: ToolCall) -> str:
        """Synthesize a result for a tool without a live backend."""
        try:
            arguments: Any = json.loads(tool_call.function.arguments or "{}")
        except json.JSONDecodeError:
            arguments = tool_call.function.arguments
        logger.debug(f"Simulating tool {tool.name} for call {tool_call.id}")
        return stringify_result(
            {
                "tool": tool.name,
                "arguments": arguments,
                "simulated": True,
                "message": f"Simulated result for {tool.name}: no HTTP request is configured for this tool.",
            }
        )

    def parse_arguments(self, tool: Tool, tool_call: ToolCall) -> dict[str, Any]:
        """Parse the raw argument string into an object.

        Raises:
            ToolExecutionError: If the string is not valid JSON or not a JSON object
        """
        raw = tool_call.function.arguments.strip()
        if not raw:
            return {}
        try:
            arguments = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ToolExecutionError(
                message=f"Invalid arguments format: {e.msg}",
                kind=ToolExecutionErrorKind.INVALID_ARGUMENTS,
                tool_name=tool.name,
                details={"arguments": raw[:MAX_LOG_BODY_LENGTH]},
            )
        if not isinstance(arguments, dict):
            raise ToolExecutionError(
                message="Invalid arguments format: expected a JSON object",
                kind=ToolExecutionErrorKind.INVALID_ARGUMENTS,
                tool_name=tool.name,
                details={"arguments": raw[:MAX_LOG_BODY_LENGTH]},
            )
        return arguments

    def build_request(self, tool: Tool, arguments: dict[str, Any], authorization: Optional[Authorization] = None) -> PreparedToolRequest:
        """Render the tool's request template with the given arguments.

        Placeholders without a matching argument are left as literal text.
        """
        if tool.http_request is None:
            raise ValueError(f"Tool {tool.name} has no HTTP request template")

        consumed: set[str] = set()
        url = self._substitute(tool.http_request.url, arguments, consumed)

        headers: dict[str, str] = {}
        for header in merge_headers(tool, authorization):
            if header.key and header.value:
                headers[header.key] = self._substitute(header.value, arguments, consumed)

        remaining = {key: value for key, value in arguments.items() if key not in consumed}
        method = tool.http_request.method
        json_body: Optional[dict[str, Any]] = None
        if method.carries_body:
            json_body = remaining or None
        elif remaining:
            url = str(httpx.URL(url).copy_merge_params({key: _to_text(value) for key, value in remaining.items()}))

        return PreparedToolRequest(method=method.value, url=url, headers=headers, json_body=json_body)

    def _substitute(self, template: str, arguments: dict[str, Any], consumed: set[str]) -> str:
        def replace(match: re.Match) -> str:
            name = match.group(1)
            if name not in arguments:
                return match.group(0)
            consumed.add(name)
            return _to_text(arguments[name])

        return PLACEHOLDER_PATTERN.sub(replace, template)

    # =========================================================================
    # Transport
    # =========================================================================

    async def _do_http_request(self, method: str, url: str, headers: dict[str, str], json_body: Optional[Any]) -> httpx.Response:
        """Execute an HTTP request with the shared client or a short-lived one."""
        if self._http_client is not None:
            return await self._http_client.request(method, url, headers=headers, json=json_body, timeout=self._timeout)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, url, headers=headers, json=json_body)

    async def _send_direct(self, tool: Tool, request: PreparedToolRequest) -> str:
        self._log_request(request)
        try:
            response = await self._do_http_request(request.method, request.url, request.headers, request.json_body)
        except httpx.TimeoutException:
            raise ToolExecutionError(
                message=f"Request timed out after {self._timeout}s",
                kind=ToolExecutionErrorKind.REQUEST_FAILED,
                tool_name=tool.name,
                is_retryable=True,
            )
        except httpx.HTTPError as e:
            raise ToolExecutionError(
                message=f"Request failed: {e}",
                kind=ToolExecutionErrorKind.REQUEST_FAILED,
                tool_name=tool.name,
                is_retryable=True,
            )

        self._log_response(response.status_code, response.text)
        if not response.is_success:
            raise self._status_error(tool, response.status_code, response.reason_phrase, response.text)
        return stringify_result(self._parse_response(response))

    async def _send_via_proxy(self, tool: Tool, request: PreparedToolRequest) -> str:
        """Send the request through the passthrough proxy and unwrap its envelope."""
        envelope_request = {
            "method": request.method,
            "url": request.url,
            "headers": request.headers,
            "data": request.json_body,
        }
        self._log_request(request)
        try:
            response = await self._do_http_request("POST", self._proxy_url or "", {"Content-Type": "application/json"}, envelope_request)
            envelope = response.json()
        except httpx.HTTPError as e:
            raise ToolExecutionError(
                message=f"Request failed: {e}",
                kind=ToolExecutionErrorKind.REQUEST_FAILED,
                tool_name=tool.name,
                is_retryable=True,
            )
        except ValueError:
            raise ToolExecutionError(
                message="Request failed: proxy returned a non-JSON response",
                kind=ToolExecutionErrorKind.REQUEST_FAILED,
                tool_name=tool.name,
            )

        if not response.is_success or not isinstance(envelope, dict):
            detail = envelope.get("message") or envelope.get("error") if isinstance(envelope, dict) else None
            raise ToolExecutionError(
                message=f"Request failed: {detail or 'HTTP request failed'}",
                kind=ToolExecutionErrorKind.REQUEST_FAILED,
                tool_name=tool.name,
                is_retryable=response.status_code >= 500,
            )

        status = int(envelope.get("status", 0))
        data = envelope.get("data")
        self._log_response(status, stringify_result(data) if data is not None else "")
        if not 200 <= status < 300:
            raise self._status_error(tool, status, envelope.get("statusText") or "", stringify_result(data) if data is not None else "")
        return stringify_result(data if data is not None else "")

    def _status_error(self, tool: Tool, status: int, reason: str, body: str) -> ToolExecutionError:
        return ToolExecutionError(
            message=f"HTTP {status} {reason}".strip(),
            kind=ToolExecutionErrorKind.REQUEST_FAILED,
            tool_name=tool.name,
            status=status,
            upstream_body=body[:MAX_LOG_BODY_LENGTH],
            is_retryable=status >= 500 or status == 429,
        )

    def _parse_response(self, response: httpx.Response) -> Any:
        """Decode JSON bodies; everything else is returned as text."""
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                return response.json()
            except ValueError:
                return response.text
        return response.text

    def _log_request(self, request: PreparedToolRequest) -> None:
        """Log request details at DEBUG level with credential masking and truncation."""
        if not logger.isEnabledFor(logging.DEBUG):
            return

        safe_headers = {key: ("***" if key.lower() in SENSITIVE_HEADER_KEYS else value) for key, value in request.headers.items()}

        truncated_body = None
        if request.json_body is not None:
            body = json.dumps(request.json_body)
            truncated_body = body[:MAX_LOG_BODY_LENGTH]
            if len(body) > MAX_LOG_BODY_LENGTH:
                truncated_body += f"... ({len(body)} bytes total)"

        logger.debug(f"Tool request: {request.method} {request.url}\n" f"Headers: {safe_headers}\n" f"Body: {truncated_body}")

    def _log_response(self, status_code: int, body: str) -> None:
        """Log response details at DEBUG level with truncation."""
        if not logger.isEnabledFor(logging.DEBUG):
            return

        truncated_body = body[:MAX_LOG_BODY_LENGTH]
        if len(body) > MAX_LOG_BODY_LENGTH:
            truncated_body += f"... ({len(body)} bytes total)"

        logger.debug(f"Tool response: {status_code}\nBody: {truncated_body}")
