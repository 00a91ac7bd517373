"""Authorization resolution for HTTP-backed tools.

Pure functions, no I/O. Decides which Authorization applies to a tool call,
merges its headers into the tool's request headers, and maintains the
one-default-per-tag invariant.
"""

import logging
from typing import Awaitable, Callable, Iterable, Optional, Union

from domain.models import Authorization, HttpHeader, Tool, ToolBinding

logger = logging.getLogger(__name__)

PersistOne = Callable[[Authorization], Union[Awaitable[None], None]]


def resolve(tool: Tool, authorizations: Iterable[Authorization], binding: Optional[ToolBinding] = None) -> Optional[Authorization]:
    """Select the authorization for a tool call.

    Precedence:
        1. The binding's explicit authorization id. If it does not resolve,
           None is returned; an explicit choice never falls back to defaults.
        2. The first default authorization whose tag equals the tool's tag.
        3. The first untagged default authorization.
        4. None.

    Iteration order of `authorizations` decides between duplicate defaults.
    """
    candidates = list(authorizations)

    if binding is not None and binding.authorization_id:
        for authorization in candidates:
            if authorization.id == binding.authorization_id:
                return authorization
        logger.warning(f"Authorization {binding.authorization_id} bound to tool {tool.name} does not exist")
        return None

    if tool.tag:
        for authorization in candidates:
            if authorization.is_default_in_tag and authorization.tag == tool.tag:
                return authorization

    for authorization in candidates:
        if authorization.is_default_in_tag and not authorization.tag:
            return authorization

    return None


def merge_headers(tool: Tool, authorization: Optional[Authorization]) -> list[HttpHeader]:
    """Merge tool-level headers with authorization headers.

    Keys are compared case-sensitively. Authorization values win on
    collision; first-seen key order is kept.
    """
    merged: dict[str, str] = {}
    if tool.http_request is not None:
        for header in tool.http_request.headers:
            merged[header.key] = header.value
    if authorization is not None:
        for header in authorization.headers:
            merged[header.key] = header.value
    return [HttpHeader(key=key, value=value) for key, value in merged.items()]


async def set_default(authorization_id: str, authorizations: Iterable[Authorization], persist_one: PersistOne) -> list[Authorization]:
    """Make one authorization the default of its tag group.

    Every other default in the target's group (same tag, or the untagged
    group) is cleared and persisted first; then the target is set and
    persisted. Records outside the group are left untouched.

    Args:
        authorization_id: Id of the authorization to make default
        authorizations: All known authorizations
        persist_one: Callback storing one updated authorization, sync or async

    Returns:
        The full list with the updated records in place

    Raises:
        KeyError: If authorization_id is unknown
    """
    current = list(authorizations)
    target = next((authorization for authorization in current if authorization.id == authorization_id), None)
    if target is None:
        raise KeyError("Authorization not found")

    updated: list[Authorization] = []
    for authorization in current:
        if authorization.id != target.id and authorization.in_group(target.tag) and authorization.is_default_in_tag:
            authorization = authorization.with_default(False)
            await _persist(persist_one, authorization)
        updated.append(authorization)

    promoted = target.with_default(True)
    await _persist(persist_one, promoted)
    logger.info(f"Authorization {promoted.name} is now default for tag {promoted.tag or '<untagged>'}")
    return [promoted if authorization.id == promoted.id else authorization for authorization in updated]


async def _persist(persist_one: PersistOne, authorization: Authorization) -> None:
    result = persist_one(authorization)
    if result is not None:
        await result


def available_authorizations(tool: Tool, authorizations: Iterable[Authorization]) -> list[Authorization]:
    """Authorizations selectable for a tool: untagged ones plus those sharing its tag."""
    return [authorization for authorization in authorizations if not authorization.tag or authorization.tag == tool.tag]


def tool_tags(tools: Iterable[Tool]) -> list[str]:
    """Unique, sorted tags used across tools."""
    return sorted({tool.tag for tool in tools if tool.tag})
