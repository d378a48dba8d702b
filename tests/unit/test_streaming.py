"""Unit tests for the response accumulator and its segments."""

import pytest

from streamwright.errors import (
    IndexOutOfRange,
    MalformedEvent,
    SegmentClosed,
    ToolArgumentParseError,
)
from streamwright.message import TextBlock, ToolUseBlock
from streamwright.streaming import ResponseAccumulator, TextSegment, ToolUseSegment


class TestToolUseSegment:
    def test_fragments_parse_at_close(self):
        seg = ToolUseSegment(id="call_1", name="getWeather")
        seg.partial_arguments += '{"loc'
        seg.partial_arguments += 'ation":"NYC"}'
        assert seg.arguments is None

        seg.close(0)

        assert seg.arguments == {"location": "NYC"}
        assert seg.closed

    def test_invalid_json_raises(self):
        seg = ToolUseSegment(id="c1", name="f", partial_arguments='{"a": ')
        with pytest.raises(ToolArgumentParseError) as exc_info:
            seg.close(2)
        assert exc_info.value.index == 2
        assert exc_info.value.partial_json == '{"a": '
        assert seg.arguments is None
        assert not seg.closed

    def test_non_object_json_raises(self):
        seg = ToolUseSegment(id="c1", name="f", partial_arguments="[1, 2]")
        with pytest.raises(ToolArgumentParseError, match="expected an object"):
            seg.close(0)

    def test_empty_buffer_raises(self):
        seg = ToolUseSegment(id="c1", name="now")
        with pytest.raises(ToolArgumentParseError) as exc_info:
            seg.close(0)
        assert exc_info.value.partial_json == ""
        assert seg.arguments is None
        assert not seg.closed

    def test_to_block(self):
        seg = ToolUseSegment(id="c1", name="f", partial_arguments='{"x": 1}')
        seg.close(0)
        assert seg.to_block() == ToolUseBlock(id="c1", name="f", input={"x": 1})


class TestResponseAccumulator:
    def test_start_sets_scalars(self):
        acc = ResponseAccumulator()
        acc.start(id="msg_1", model="m", role="assistant", type="message", input_tokens=10)
        assert (acc.id, acc.model, acc.role, acc.type) == ("msg_1", "m", "assistant", "message")
        assert acc.input_tokens == 10

    def test_duplicate_start_rejected(self):
        acc = ResponseAccumulator()
        acc.start(id="msg_1", model="m", role="assistant", type="message", input_tokens=10)
        with pytest.raises(MalformedEvent, match="duplicate"):
            acc.start(id="msg_2", model="x", role="user", type="message", input_tokens=99)
        assert acc.id == "msg_1"
        assert acc.input_tokens == 10

    def test_finish_is_write_once(self):
        acc = ResponseAccumulator()
        acc.finish(output_tokens=3, stop_reason="end_turn")
        with pytest.raises(MalformedEvent):
            acc.finish(output_tokens=7)
        assert acc.output_tokens == 3

    def test_finish_keeps_stop_reason_when_absent(self):
        acc = ResponseAccumulator()
        acc.finish(output_tokens=3)
        assert acc.stop_reason is None
        assert acc.output_tokens == 3

    def test_segments_open_in_sequence(self):
        acc = ResponseAccumulator()
        acc.open_segment(0, TextSegment())
        acc.open_segment(1, ToolUseSegment(id="c1", name="f"))
        assert [type(s) for s in acc.content] == [TextSegment, ToolUseSegment]

    @pytest.mark.parametrize("index", [1, 5, -1])
    def test_out_of_sequence_start_rejected(self, index):
        acc = ResponseAccumulator()
        with pytest.raises(IndexOutOfRange) as exc_info:
            acc.open_segment(index, TextSegment())
        assert exc_info.value.index == index
        assert acc.content == []

    def test_restart_of_existing_index_rejected(self):
        acc = ResponseAccumulator()
        acc.open_segment(0, TextSegment())
        with pytest.raises(IndexOutOfRange):
            acc.open_segment(0, TextSegment())

    def test_segment_at_unknown_index(self):
        acc = ResponseAccumulator()
        acc.open_segment(0, TextSegment())
        with pytest.raises(IndexOutOfRange):
            acc.segment_at(1)

    def test_segment_at_closed_segment(self):
        acc = ResponseAccumulator()
        seg = TextSegment()
        acc.open_segment(0, seg)
        seg.close(0)
        with pytest.raises(SegmentClosed):
            acc.segment_at(0)

    def test_skipped_slot_keeps_indices_aligned(self):
        acc = ResponseAccumulator()
        acc.open_segment(0, None)
        acc.open_segment(1, TextSegment(text="after"))
        assert acc.segment_at(0) is None
        assert acc.segment_at(1).text == "after"
        assert len(acc.content) == 1

    def test_snapshot(self):
        acc = ResponseAccumulator()
        acc.start(id="msg_1", model="m", role="assistant", type="message", input_tokens=10)
        acc.open_segment(0, TextSegment(text="Hi"))
        tool = ToolUseSegment(id="c1", name="f", partial_arguments='{"a": 1}')
        acc.open_segment(1, tool)
        tool.close(1)
        acc.finish(output_tokens=3, stop_reason="tool_use")

        message = acc.snapshot()

        assert message.content == (
            TextBlock(text="Hi"),
            ToolUseBlock(id="c1", name="f", input={"a": 1}),
        )
        assert message.stop_reason == "tool_use"
        assert message.usage.input_tokens == 10
        assert message.usage.output_tokens == 3

    def test_snapshot_rejects_unclosed_tool_use(self):
        acc = ResponseAccumulator()
        acc.open_segment(0, ToolUseSegment(id="c1", name="f"))
        with pytest.raises(MalformedEvent, match="tool_use block 0"):
            acc.snapshot()
