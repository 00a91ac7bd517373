"""Passthrough proxy controller.

Browsers cannot call most tool endpoints directly because of CORS. The
proxy performs the request server-side and wraps the upstream response in
an envelope: {status, statusText, headers, data}. Upstream error statuses
are reported inside the envelope, not as the proxy's own status.
"""

import logging
from typing import Any, Optional

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from api.dependencies import get_http_client

logger = logging.getLogger(__name__)

router = APIRouter()

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


# ============================================================================
# REQUEST MODELS
# ============================================================================


class ProxyRequest(BaseModel):
    """Request to forward to an upstream URL."""

    method: Optional[str] = Field(default=None, description="HTTP method of the upstream request")
    url: Optional[str] = Field(default=None, description="Absolute http(s) URL")
    headers: Optional[dict[str, Any]] = Field(default=None, description="Headers merged over Content-Type: application/json; values are sent as strings")
    data: Any = Field(default=None, description="JSON body, sent for POST, PUT and PATCH")

    class Config:
        json_schema_extra = {
            "example": {
                "method": "GET",
                "url": "https://api.example.com/weather?city=Paris",
                "headers": {"Authorization": "Bearer token"},
            }
        }


# ============================================================================
# ENDPOINTS
# ============================================================================


@router.post("/api/proxy", tags=["Proxy"])
async def proxy_request(body: ProxyRequest, http_client: httpx.AsyncClient = Depends(get_http_client)):
    """Forward a request and return the upstream response envelope."""
    if not body.method or not body.url:
        return JSONResponse(status_code=400, content={"error": "Method and URL are required"})
    if not body.url.startswith(("http://", "https://")):
        return JSONResponse(status_code=400, content={"error": "URL must start with http:// or https://"})

    method = body.method.upper()
    headers = {"Content-Type": "application/json", **_header_values(body.headers)}
    json_body = body.data if method in BODY_METHODS and body.data else None

    try:
        response = await http_client.request(method, body.url, headers=headers, json=json_body)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error(f"Proxy request failed: {method} {body.url}: {e}")
        return JSONResponse(status_code=500, content={"error": "Proxy request failed", "message": str(e) or type(e).__name__})

    logger.debug(f"Proxied {method} {body.url} -> {response.status_code}")
    return {
        "status": response.status_code,
        "statusText": response.reason_phrase,
        "headers": dict(response.headers.items()),
        "data": _parse_body(response),
    }


def _header_values(headers: Optional[dict[str, Any]]) -> dict[str, str]:
    """Stringify header values, dropping nulls."""
    return {key: str(value) for key, value in (headers or {}).items() if value is not None}


def _parse_body(response: httpx.Response) -> Any:
    if "application/json" in response.headers.get("content-type", ""):
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text
