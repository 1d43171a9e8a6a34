"""Unit tests for the chunked bulk uploader.

Tests cover:
- Contiguous chunking of the valid records
- Stop-on-error and continue-on-error policies
- Saved counts taken from the server response
- Failure message extraction from error responses
"""

import json

import httpx
import pytest

from hospitalms.adapters.http.bulk_uploader import (
    ChunkedUploader,
    chunked,
    failure_message,
)
from hospitalms.domain.enums import UploadPolicy
from hospitalms.domain.ports import BulkUploadError


class RecordingServer:
    """MockTransport handler that records bulk requests.

    ``fail_chunks`` maps a 0-based request index to the response returned
    for it; every other request succeeds with ``{"count": len(body)}``.
    """

    def __init__(self, fail_chunks=None, omit_count=False):
        self.requests = []
        self.fail_chunks = fail_chunks or {}
        self.omit_count = omit_count

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        index = len(self.requests)
        self.requests.append((request.url.path, body))
        if index in self.fail_chunks:
            return self.fail_chunks[index]
        if self.omit_count:
            return httpx.Response(201, json={"message": "ok"})
        return httpx.Response(201, json={"message": "ok", "count": len(body)})

    @property
    def sizes(self):
        return [len(body) for _, body in self.requests]


def make_client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler), base_url="http://testserver")


def records(n):
    return [{"patient_id": f"PAT{i:05d}"} for i in range(1, n + 1)]


class TestChunking:
    """Test chunking."""

    def test_contiguous_chunks(self):
        """Test splitting records into contiguous chunks."""
        assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_invalid_size(self):
        """Test that a chunk size below one is rejected."""
        with pytest.raises(ValueError):
            chunked([1], 0)
        with pytest.raises(ValueError):
            ChunkedUploader(make_client(RecordingServer()), chunk_size=0)


class TestUpload:
    """Test upload."""

    def test_1200_records_are_sent_as_500_500_200(self):
        """Test that 1200 records are sent in chunks of 500, 500 and 200."""
        server = RecordingServer()
        uploader = ChunkedUploader(make_client(server), chunk_size=500)

        saved = uploader.upload("/api/patients", records(1200))

        assert saved == 1200
        assert server.sizes == [500, 500, 200]
        assert {path for path, _ in server.requests} == {"/api/patients/bulk"}
        assert server.requests[1][1][0]["patient_id"] == "PAT00501"

    def test_no_records_means_no_request(self):
        """Test no records means no request."""
        server = RecordingServer()
        uploader = ChunkedUploader(make_client(server))
        assert uploader.upload("/api/visits", []) == 0
        assert server.requests == []
        assert uploader.last_report.chunks_sent == 0

    def test_saved_count_falls_back_to_chunk_length(self):
        """Test saved count falls back to chunk length."""
        server = RecordingServer(omit_count=True)
        uploader = ChunkedUploader(make_client(server), chunk_size=4)
        assert uploader.upload("/api/visits/", records(10)) == 10
        assert server.requests[0][0] == "/api/visits/bulk"

    def test_server_count_is_trusted(self):
        """Test server count is trusted."""
        def handler(request):
            return httpx.Response(201, json={"count": 1})

        uploader = ChunkedUploader(make_client(handler), chunk_size=2)
        assert uploader.upload("/api/patients", records(4)) == 2


class TestStopOnError:
    """Test stop on error."""

    def test_remaining_chunks_are_not_sent(self):
        """Test remaining chunks are not sent."""
        server = RecordingServer(fail_chunks={1: httpx.Response(400, json={"message": "Duplicate patient_id found"})})
        uploader = ChunkedUploader(make_client(server), policy=UploadPolicy.STOP_ON_ERROR, chunk_size=2)

        with pytest.raises(BulkUploadError) as exc_info:
            uploader.upload("/api/patients", records(6))

        assert str(exc_info.value) == "Duplicate patient_id found"
        assert exc_info.value.chunk_index == 1
        assert exc_info.value.status_code == 400
        assert exc_info.value.saved_before_failure == 2
        assert server.sizes == [2, 2]

    def test_transport_error(self):
        """Test that a transport error stops the upload."""
        def handler(request):
            raise httpx.ConnectError("connection refused")

        uploader = ChunkedUploader(make_client(handler))
        with pytest.raises(BulkUploadError) as exc_info:
            uploader.upload("/api/patients", records(1))
        assert exc_info.value.status_code is None
        assert "connection refused" in str(exc_info.value)


class TestContinueOnError:
    """Test continue on error."""

    def test_failed_chunk_is_reported_and_upload_continues(self):
        """Test failed chunk is reported and upload continues."""
        server = RecordingServer(fail_chunks={0: httpx.Response(500, text="database offline")})
        failures = []
        uploader = ChunkedUploader(
            make_client(server),
            policy=UploadPolicy.CONTINUE_ON_ERROR,
            chunk_size=3,
            on_failure=failures.append,
        )

        report = uploader.upload_with_report("/api/prescriptions", records(7))

        assert report.saved == 4
        assert report.chunks_sent == 3
        assert not report.ok
        assert [(f.index, f.size, f.message, f.status_code) for f in failures] == [
            (0, 3, "database offline", 500)
        ]
        assert report.failures == failures


class TestFailureMessage:
    """Test failure message."""

    def test_json_message_wins(self):
        """Test that the JSON message field is preferred."""
        response = httpx.Response(400, json={"message": "Invalid data", "error": "x"})
        assert failure_message(response) == "Invalid data"

    def test_body_text(self):
        """Test falling back to the response text."""
        assert failure_message(httpx.Response(502, text="  Bad gateway \n")) == "Bad gateway"

    def test_json_without_message_uses_body(self):
        """Test JSON without a message field falls back to the body."""
        response = httpx.Response(400, json={"error": "boom"})
        message = failure_message(response)
        assert message.startswith("{")
        assert "boom" in message

    def test_empty_body(self):
        """Test the generic message for an empty body."""
        assert failure_message(httpx.Response(503)) == "Upload failed (503)"
