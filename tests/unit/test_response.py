"""
Unit tests for reply envelopes.
"""

import json
from datetime import datetime

from telemetry_ingest.ingest.response import (
    STORED,
    build_response,
    encode_response,
    error,
    success,
)


class TestResponse:
    """Tests for building and encoding replies."""

    def test_success_defaults(self):
        response = success()
        assert response.status == "success"
        assert response.message == STORED

    def test_error_message(self):
        response = error("Invalid JSON: expected value at line 1 column 1")
        assert response.status == "error"
        assert response.message.startswith("Invalid JSON")

    def test_timestamp_is_rfc3339_utc(self):
        response = build_response("success", "ok")

        parsed = datetime.fromisoformat(response.timestamp)

        assert parsed.tzinfo is not None
        assert parsed.utcoffset().total_seconds() == 0

    def test_encode_is_one_json_line(self):
        data = encode_response(error("boom"))

        assert data.endswith(b"\n")
        assert data.count(b"\n") == 1
        body = json.loads(data)
        assert set(body) == {"status", "message", "timestamp"}
        assert body["message"] == "boom"
