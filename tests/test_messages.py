import json

import pytest

from typearena.core.messages import (
    ErrorCode,
    ErrorMessage,
    JoinMessage,
    NewResultMessage,
    PongMessage,
    ResultSummary,
    dump_message,
    parse_client_message,
    parse_server_message,
)


class TestClientMessages:
    def test_join(self):
        msg = parse_client_message('{"type": "JOIN", "eventId": 3}')
        assert isinstance(msg, JoinMessage)
        assert msg.eventId == 3

    def test_pong_without_timestamp(self):
        assert isinstance(parse_client_message({"type": "PONG"}), PongMessage)

    @pytest.mark.parametrize(
        "raw",
        ['{"type": "SUBSCRIBE", "eventId": 1}', '{"type": "JOIN"}', "[1, 2]", "not json"],
    )
    def test_rejects_bad_frames(self, raw):
        with pytest.raises(ValueError):
            parse_client_message(raw)


class TestServerMessages:
    def test_new_result_uses_class_key_on_the_wire(self):
        summary = ResultSummary(
            name="Ana", class_name="9A", wpm=40, accuracy=95, totalWords=10, correctWords=9
        )
        frame = json.loads(dump_message(NewResultMessage(eventId=1, result=summary)))
        assert frame["type"] == "NEW_RESULT"
        assert frame["result"]["class"] == "9A"
        assert "timeTaken" not in frame["result"]

    def test_error_round_trip(self):
        raw = dump_message(ErrorMessage(code=ErrorCode.NOT_JOINED, message="nope"))
        parsed = parse_server_message(raw)
        assert isinstance(parsed, ErrorMessage)
        assert parsed.code is ErrorCode.NOT_JOINED
