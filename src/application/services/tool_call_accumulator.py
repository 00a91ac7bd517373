"""Reassembly of streamed tool-call fragments into complete tool calls."""

import logging
from dataclasses import dataclass
from typing import Iterable

from application.clients import ToolCallDelta
from domain.models import FunctionCall, ToolCall, generate_id

logger = logging.getLogger(__name__)


@dataclass
class PartialToolCall:
    """Tool call under construction for one stream index."""

    index: int
    id: str = ""
    name: str = ""
    arguments: str = ""


class ToolCallAccumulator:
    """Merges tool-call deltas by stream index.

    For `id` and `name` the first non-empty value wins; argument fragments
    always concatenate in arrival order. Zero-length fragments are ignored,
    so the result does not depend on how the stream was chunked.
    """

    def __init__(self) -> None:
        self._calls: dict[int, PartialToolCall] = {}

    def add(self, delta: ToolCallDelta) -> None:
        partial = self._calls.get(delta.index)
        if partial is None:
            partial = PartialToolCall(index=delta.index)
            self._calls[delta.index] = partial
        if delta.id and not partial.id:
            partial.id = delta.id
        if delta.name and not partial.name:
            partial.name = delta.name
        if delta.arguments_fragment:
            partial.arguments += delta.arguments_fragment

    def add_all(self, deltas: Iterable[ToolCallDelta]) -> None:
        for delta in deltas:
            self.add(delta)

    @property
    def is_empty(self) -> bool:
        return not self._calls

    def partials(self) -> list[PartialToolCall]:
        """In-progress calls in stream index order, for incremental display."""
        return [self._calls[index] for index in sorted(self._calls)]

    def complete_calls(self) -> list[ToolCall]:
        """Calls that can be dispatched, in stream index order.

        A call is complete once it has a function name. Missing ids are
        generated and empty arguments become an empty JSON object.
        """
        calls: list[ToolCall] = []
        for partial in self.partials():
            if not partial.name:
                logger.warning(f"Dropping tool call at index {partial.index}: no function name received")
                continue
            calls.append(
                ToolCall(
                    id=partial.id or f"call_{generate_id()}",
                    function=FunctionCall(name=partial.name, arguments=partial.arguments or "{}"),
                )
            )
        return calls
