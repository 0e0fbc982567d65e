"""Shared fixtures: a fake data-objects server behind httpx.MockTransport."""
import random
from typing import Dict, List, Optional, Set, Tuple
from urllib.parse import parse_qs

import httpx
import pytest
from python_multipart import FormParser

BOUNDARY = "------BOUNDARY------"


def decode_multipart(body: bytes, boundary: str = BOUNDARY) -> List[Tuple[str, bytes]]:
    """Decode a multipart body with python-multipart, keeping field order."""
    fields: List[Tuple[str, bytes]] = []

    def on_field(field) -> None:
        fields.append((field.field_name.decode("utf-8"), field.value))

    parser = FormParser("multipart/form-data", on_field, None, boundary=boundary)
    parser.write(body)
    parser.finalize()
    return fields


class FakeDataObjectsServer:
    """
    In-memory parallel write server.

    Tracks an implicit write cursor per stream: the first write of a stream
    must carry ``offset``, later writes must not.
    """

    def __init__(self, token: str = "token-123", handle: str = "pw-handle-1"):
        self.token = token
        self.handle = handle
        self.init_payload: Optional[dict] = None
        self.write_failures: Set[Tuple[int, int]] = set()  # (stream_index, frame number)
        self.shutdown_status = 200
        self.data = bytearray()
        self.extents: List[Tuple[int, int]] = []  # written [start, end)
        self.cursors: Dict[int, int] = {}
        self.writes: List[List[Tuple[str, bytes]]] = []
        self.frames_per_stream: Dict[int, int] = {}
        self.protocol_violations: List[str] = []
        self.calls: List[str] = []
        self.auth_headers: List[str] = []
        self.init_form: Optional[Dict[str, str]] = None
        self.shutdown_form: Optional[Dict[str, str]] = None

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle_request)

    def count(self, op: str) -> int:
        return self.calls.count(op)

    def written_bytes(self) -> bytes:
        return bytes(self.data)

    def bytes_written(self) -> int:
        return sum(end - start for start, end in self.extents)

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        self.auth_headers.append(request.headers.get("authorization", ""))
        if request.url.path.endswith("/authenticate"):
            self.calls.append("authenticate")
            if not request.headers.get("authorization", "").startswith("Basic "):
                return httpx.Response(401, text="missing credentials")
            return httpx.Response(200, text=self.token)

        if request.headers.get("authorization") != f"Bearer {self.token}":
            return httpx.Response(401, text="bad token")

        content_type = request.headers.get("content-type", "")
        if content_type.startswith("multipart/form-data"):
            boundary = content_type.split("boundary=", 1)[1]
            return self._write(decode_multipart(request.content, boundary))

        form = {k: v[0] for k, v in parse_qs(request.content.decode("utf-8")).items()}
        op = form.get("op")
        self.calls.append(op)
        if op == "parallel_write_init":
            self.init_form = form
            # every session writes a fresh object
            self.data = bytearray()
            self.extents = []
            self.cursors = {}
            self.frames_per_stream = {}
            payload = self.init_payload
            if payload is None:
                payload = {"irods_response": {"status_code": 0}, "parallel_write_handle": self.handle}
            return httpx.Response(200, json=payload)
        if op == "parallel_write_shutdown":
            self.shutdown_form = form
            return httpx.Response(self.shutdown_status, json={"irods_response": {"status_code": 0}})
        return httpx.Response(400, text=f"unknown op {op}")

    def _write(self, fields: List[Tuple[str, bytes]]) -> httpx.Response:
        self.calls.append("write")
        self.writes.append(fields)
        values = dict(fields)
        stream = int(values["stream-index"])
        frame = self.frames_per_stream.get(stream, 0) + 1
        self.frames_per_stream[stream] = frame

        if (stream, frame) in self.write_failures:
            return httpx.Response(500, text="write failed")

        if values.get("parallel-write-handle", b"").decode() != self.handle:
            self.protocol_violations.append(f"stream {stream}: wrong handle")

        if "offset" in values:
            if stream in self.cursors:
                self.protocol_violations.append(f"stream {stream}: offset resent on frame {frame}")
            self.cursors[stream] = int(values["offset"])
        elif stream not in self.cursors:
            self.protocol_violations.append(f"stream {stream}: first frame without offset")
            self.cursors[stream] = 0

        payload = values["bytes"]
        if int(values["count"]) != len(payload):
            self.protocol_violations.append(f"stream {stream}: count mismatch")
        position = self.cursors[stream]
        end = position + len(payload)
        for start, stop in self.extents:
            if position < stop and start < end:
                self.protocol_violations.append(f"stream {stream}: overlap at {max(start, position)}")
        if payload:
            self.extents.append((position, end))
        if len(self.data) < end:
            self.data.extend(bytes(end - len(self.data)))
        self.data[position:end] = payload
        self.cursors[stream] = position + len(payload)
        return httpx.Response(200, json={"irods_response": {"status_code": 0}})


@pytest.fixture
def server():
    return FakeDataObjectsServer()


@pytest.fixture
def make_file(tmp_path):
    def _make(size: int, name: str = "payload.bin"):
        path = tmp_path / name
        path.write_bytes(random.Random(size).randbytes(size))
        return path

    return _make
