"""Tests for request and response frame models."""

import json

import pytest
from pydantic import ValidationError

from src.unity_bridge.models import RequestFrame, ResponseFrame


class TestRequestFrame:
    def test_serializes_id_method_and_params(self):
        frame = RequestFrame(id="A", method="get_scene", params={"depth": 1})

        assert json.loads(frame.model_dump_json()) == {
            "id": "A",
            "method": "get_scene",
            "params": {"depth": 1},
        }

    def test_empty_method_is_invalid(self):
        with pytest.raises(ValidationError):
            RequestFrame(id="A", method="")


class TestResponseFrame:
    def test_result_frame(self):
        frame = ResponseFrame.model_validate_json(
            '{"jsonrpc": "2.0", "id": "X", "result": {"ok": true}}'
        )

        assert frame.id == "X"
        assert frame.result == {"ok": True}
        assert not frame.is_error

    def test_error_frame(self):
        frame = ResponseFrame.model_validate_json(
            '{"id": "Y", "error": {"message": "bad op", "type": "TOOL", "details": [1]}}'
        )

        assert frame.is_error
        assert frame.error.message == "bad op"
        assert frame.error.type == "TOOL"
        assert frame.error.details == [1]

    def test_bare_string_error(self):
        frame = ResponseFrame.model_validate({"id": "Y", "error": "boom"})

        assert frame.error.message == "boom"
        assert frame.error.type == ""

    def test_error_without_message_gets_placeholder(self):
        frame = ResponseFrame.model_validate({"id": "Y", "error": {}})

        assert frame.error.message == "Unknown error"

    def test_missing_jsonrpc_and_result(self):
        frame = ResponseFrame.model_validate({"id": "Z"})

        assert frame.jsonrpc == "2.0"
        assert frame.result is None
        assert frame.error is None

    def test_numeric_id_is_matched_as_string(self):
        frame = ResponseFrame.model_validate({"id": 42, "result": 1})

        assert frame.id == "42"

    def test_missing_id(self):
        frame = ResponseFrame.model_validate({"result": 1})

        assert frame.id is None

    @pytest.mark.parametrize("payload", ["not json", "[1, 2]", '{"id": true}', '{"id": [1]}'])
    def test_invalid_frames_raise(self, payload):
        with pytest.raises(ValidationError):
            ResponseFrame.model_validate_json(payload)
