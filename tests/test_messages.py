"""Tests for inbound message classification."""

from __future__ import annotations

import json

import pytest

from live_session_core.messages import (
    GoAwayWarning,
    ModelTurn,
    ResumptionUpdate,
    ServerContent,
    SetupComplete,
    ToolCall,
    ToolCallCancellation,
    Unrecognized,
    classify_message,
)

from .conftest import audio_part, text_part


class TestControlMessages:
    """Tests for setup, GoAway and resumption frames."""

    def test_setup_complete(self):
        """setupComplete marker yields SetupComplete."""
        assert classify_message({"setupComplete": {}}) == SetupComplete()

    def test_setup_complete_wins_over_other_markers(self):
        """Priority order: setupComplete is checked first."""
        result = classify_message({"setupComplete": {}, "serverContent": {"turnComplete": True}})
        assert isinstance(result, SetupComplete)

    def test_go_away_with_duration(self):
        """goAway carries the raw and parsed time left."""
        result = classify_message({"goAway": {"timeLeft": "10s"}})
        assert result == GoAwayWarning(time_left="10s", time_left_seconds=10.0)

    def test_go_away_without_time_left(self):
        """goAway without timeLeft has no parsed deadline."""
        result = classify_message({"goAway": {}})
        assert isinstance(result, GoAwayWarning)
        assert result.time_left_seconds is None

    def test_go_away_negative_time_left(self):
        """Negative time left does not parse."""
        result = classify_message({"goAway": {"timeLeft": -5}})
        assert isinstance(result, GoAwayWarning)
        assert result.time_left_seconds is None

    def test_resumption_update(self):
        """sessionResumptionUpdate exposes handle and resumable flag."""
        result = classify_message(
            {"sessionResumptionUpdate": {"newHandle": "abc", "resumable": True}}
        )
        assert result == ResumptionUpdate(new_handle="abc", resumable=True)

    def test_resumption_update_not_resumable(self):
        """resumable defaults to False."""
        result = classify_message({"sessionResumptionUpdate": {"newHandle": "abc"}})
        assert result == ResumptionUpdate(new_handle="abc", resumable=False)

    def test_resumption_update_empty_handle(self):
        """Empty handles are normalized to None."""
        result = classify_message(
            {"sessionResumptionUpdate": {"newHandle": "", "resumable": True}}
        )
        assert isinstance(result, ResumptionUpdate)
        assert result.new_handle is None


class TestToolMessages:
    """Tests for tool call frames."""

    def test_tool_call(self):
        """toolCall exposes the function calls in order."""
        calls = [{"id": "1", "name": "a", "args": {}}, {"id": "2", "name": "b"}]
        result = classify_message({"toolCall": {"functionCalls": calls}})
        assert isinstance(result, ToolCall)
        assert [call["id"] for call in result.function_calls] == ["1", "2"]
        assert result.raw == {"functionCalls": calls}

    def test_tool_call_cancellation(self):
        """toolCallCancellation exposes the ids."""
        result = classify_message({"toolCallCancellation": {"ids": ["1", "2"]}})
        assert result == ToolCallCancellation(ids=("1", "2"))

    def test_snake_case_keys(self):
        """snake_case keys are accepted as a fallback."""
        result = classify_message({"tool_call": {"function_calls": [{"id": "x"}]}})
        assert isinstance(result, ToolCall)
        assert result.function_calls == ({"id": "x"},)


class TestServerContent:
    """Tests for serverContent demultiplexing."""

    def test_interrupted_excludes_everything_else(self):
        """interrupted short-circuits turnComplete and modelTurn."""
        result = classify_message(
            {
                "serverContent": {
                    "interrupted": True,
                    "turnComplete": True,
                    "modelTurn": {"parts": [text_part("x")]},
                }
            }
        )
        assert result == ServerContent(interrupted=True)

    def test_turn_complete_only(self):
        """turnComplete alone."""
        result = classify_message({"serverContent": {"turnComplete": True}})
        assert result == ServerContent(turn_complete=True)

    def test_audio_split_from_other_parts(self):
        """Audio parts are decoded in order; other parts keep their order."""
        result = classify_message(
            {
                "serverContent": {
                    "modelTurn": {
                        "parts": [audio_part(b"AAA"), text_part("B"), audio_part(b"CC")]
                    }
                }
            }
        )
        assert isinstance(result, ServerContent)
        assert result.audio == (b"AAA", b"CC")
        assert result.model_turn == ModelTurn(parts=({"text": "B"},))

    def test_only_audio_has_no_model_turn(self):
        """A turn made only of audio yields no model turn."""
        result = classify_message(
            {"serverContent": {"modelTurn": {"parts": [audio_part(b"\x00\x01")]}}}
        )
        assert isinstance(result, ServerContent)
        assert result.audio == (b"\x00\x01",)
        assert result.model_turn is None

    def test_turn_complete_with_model_turn(self):
        """turnComplete and modelTurn can both be present."""
        result = classify_message(
            {
                "serverContent": {
                    "turnComplete": True,
                    "modelTurn": {"parts": [text_part("done")]},
                }
            }
        )
        assert isinstance(result, ServerContent)
        assert result.turn_complete is True
        assert result.model_turn == ModelTurn(parts=({"text": "done"},))

    def test_non_pcm_inline_data_is_content(self):
        """Inline data that is not audio/pcm stays in the model turn."""
        image = {"inlineData": {"mimeType": "image/png", "data": "aGk="}}
        wav = {"inlineData": {"mimeType": "audio/wav", "data": "aGk="}}
        result = classify_message({"serverContent": {"modelTurn": {"parts": [image, wav]}}})
        assert isinstance(result, ServerContent)
        assert result.audio == ()
        assert result.model_turn == ModelTurn(parts=(image, wav))

    def test_invalid_audio_payload_is_skipped(self):
        """Audio with undecodable base64 is dropped."""
        bad = {"inlineData": {"mimeType": "audio/pcm", "data": "not base64!!"}}
        result = classify_message({"serverContent": {"modelTurn": {"parts": [bad]}}})
        assert isinstance(result, ServerContent)
        assert result.audio == ()
        assert result.model_turn is None

    def test_empty_server_content(self):
        """serverContent with no known fields has no effects."""
        assert classify_message({"serverContent": {}}) == ServerContent()

    def test_model_turn_to_dict(self):
        """ModelTurn renders in the wire shape."""
        turn = ModelTurn(parts=({"text": "hi"},))
        assert turn.to_dict() == {"modelTurn": {"parts": [{"text": "hi"}]}}


class TestRawPayloads:
    """Tests for undecoded and malformed frames."""

    def test_json_text(self):
        """JSON text is decoded before classification."""
        assert classify_message('{"setupComplete": {}}') == SetupComplete()

    def test_json_bytes(self):
        """JSON in binary frames is decoded."""
        payload = json.dumps({"toolCallCancellation": {"ids": ["9"]}}).encode()
        assert classify_message(payload) == ToolCallCancellation(ids=("9",))

    def test_invalid_json_is_unrecognized(self):
        """Malformed frames never raise."""
        result = classify_message("{not json")
        assert isinstance(result, Unrecognized)
        assert result.raw == "{not json"

    def test_non_object_json_is_unrecognized(self):
        """JSON arrays are not messages."""
        assert isinstance(classify_message("[1, 2]"), Unrecognized)

    def test_unknown_marker(self):
        """Frames with no known marker are Unrecognized."""
        result = classify_message({"usageMetadata": {"totalTokenCount": 3}})
        assert isinstance(result, Unrecognized)
        assert result.raw == {"usageMetadata": {"totalTokenCount": 3}}

    def test_unsupported_type(self):
        """Arbitrary objects are Unrecognized."""
        assert isinstance(classify_message(42), Unrecognized)

    @pytest.mark.parametrize(
        ("frame", "reason"),
        [
            ({"toolCall": {"functionCalls": 5}}, "malformed toolCall"),
            ({"toolCallCancellation": {"ids": 7}}, "malformed toolCallCancellation"),
            ({"serverContent": {"modelTurn": {"parts": 3}}}, "malformed serverContent"),
            ({"toolCall": {"functionCalls": "call"}}, "malformed toolCall"),
        ],
    )
    def test_non_array_fields_are_unrecognized(self, frame, reason):
        """Array fields holding scalars classify as Unrecognized instead of raising."""
        result = classify_message(frame)
        assert result == Unrecognized(frame, reason)
