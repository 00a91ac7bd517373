"""Tests for ToolCallAccumulator.

Tests cover:
- Merging fragments by index
- First non-empty id/name wins
- Independence from how arguments are split across chunks
- Completion rules (missing name, missing id, empty arguments)
"""

import json

from application.clients import ToolCallDelta
from application.services import ToolCallAccumulator


def _split(text: str, size: int) -> list[str]:
    return [text[i : i + size] for i in range(0, len(text), size)]


class TestToolCallAccumulator:
    """Test tool-call reassembly."""

    def test_fragments_concatenate_in_order(self):
        accumulator = ToolCallAccumulator()
        accumulator.add(ToolCallDelta(index=0, id="call_1", name="get_weather", arguments_fragment='{"ci'))
        accumulator.add(ToolCallDelta(index=0, arguments_fragment='ty":"Pa'))
        accumulator.add(ToolCallDelta(index=0, arguments_fragment='ris"}'))

        calls = accumulator.complete_calls()

        assert len(calls) == 1
        assert calls[0].id == "call_1"
        assert calls[0].function.name == "get_weather"
        assert json.loads(calls[0].function.arguments) == {"city": "Paris"}

    def test_first_non_empty_id_and_name_win(self):
        """Later repeats of id or name never overwrite the first value."""
        accumulator = ToolCallAccumulator()
        accumulator.add(ToolCallDelta(index=0, id="", name=""))
        accumulator.add(ToolCallDelta(index=0, id="call_a", name="first"))
        accumulator.add(ToolCallDelta(index=0, id="call_b", name="second"))

        call = accumulator.complete_calls()[0]

        assert call.id == "call_a"
        assert call.function.name == "first"

    def test_chunk_boundaries_do_not_change_result(self):
        """Any split of the argument string yields the same calls."""
        arguments = json.dumps({"city": "Paris", "units": "metric", "days": 3})
        results = []
        for size in (1, 2, 5, 7, len(arguments)):
            accumulator = ToolCallAccumulator()
            accumulator.add(ToolCallDelta(index=0, id="call_1", name="forecast"))
            for fragment in _split(arguments, size):
                accumulator.add(ToolCallDelta(index=0, arguments_fragment=fragment))
                accumulator.add(ToolCallDelta(index=0, arguments_fragment=""))
            results.append(accumulator.complete_calls())

        assert all(result == results[0] for result in results)
        assert results[0][0].function.arguments == arguments

    def test_interleaved_indices(self):
        """Fragments for several calls may interleave; results follow index order."""
        accumulator = ToolCallAccumulator()
        accumulator.add_all(
            [
                ToolCallDelta(index=1, id="call_2", name="b", arguments_fragment='{"x"'),
                ToolCallDelta(index=0, id="call_1", name="a", arguments_fragment="{}"),
                ToolCallDelta(index=1, arguments_fragment=":1}"),
            ]
        )

        calls = accumulator.complete_calls()

        assert [call.id for call in calls] == ["call_1", "call_2"]
        assert calls[1].function.arguments == '{"x":1}'

    def test_call_without_name_is_dropped(self):
        accumulator = ToolCallAccumulator()
        accumulator.add(ToolCallDelta(index=0, id="call_1", arguments_fragment="{}"))

        assert accumulator.complete_calls() == []
        assert not accumulator.is_empty

    def test_missing_id_generated_and_empty_arguments_defaulted(self):
        accumulator = ToolCallAccumulator()
        accumulator.add(ToolCallDelta(index=0, name="ping"))

        call = accumulator.complete_calls()[0]

        assert call.id.startswith("call_")
        assert call.function.arguments == "{}"

    def test_partials_expose_progress(self):
        accumulator = ToolCallAccumulator()
        accumulator.add(ToolCallDelta(index=0, id="call_1", name="get_weather", arguments_fragment='{"ci'))

        partial = accumulator.partials()[0]

        assert (partial.index, partial.name, partial.arguments) == (0, "get_weather", '{"ci')
