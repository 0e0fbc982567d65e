"""Tests for multipart frame encoding."""
import pytest

from parallel_uploader.services.multipart import (
    FormField,
    build_frame,
    content_type,
    frame_size,
)

from conftest import BOUNDARY, decode_multipart


def test_exact_layout():
    segments = build_frame(
        "XYZ",
        [FormField.text("op", "write"), FormField.binary("bytes", b"ab\r\ncd")],
    )

    assert b"".join(segments) == (
        b"--XYZ\r\n"
        b"Content-Disposition: form-data; name=op\r\n"
        b"Content-Type: application/octet-stream\r\n"
        b"Content-Transfer-Encoding: binary\r\n"
        b"\r\n"
        b"write\r\n"
        b"--XYZ\r\n"
        b"Content-Disposition: form-data; name=bytes\r\n"
        b"Content-Type: application/octet-stream\r\n"
        b"Content-Transfer-Encoding: binary\r\n"
        b"Content-Length: 6\r\n"
        b"\r\n"
        b"ab\r\ncd\r\n"
        b"--XYZ--\r\n"
    )


def test_payload_is_its_own_segment():
    payload = b"\x00" * 10
    segments = build_frame(BOUNDARY, [FormField.binary("bytes", payload)])

    assert payload in segments
    assert segments[-1] == f"--{BOUNDARY}--\r\n".encode()
    assert frame_size(segments) == len(b"".join(segments))


def test_decodes_with_standard_parser():
    payload = b"line1\r\nline2\r\n\x00\xff\r\n-x\r\n\r\ntail"
    fields = [
        FormField.text("op", "write"),
        FormField.text("parallel-write-handle", "h-1"),
        FormField.text("stream-index", 2),
        FormField.text("offset", 1024),
        FormField.text("count", len(payload)),
        FormField.binary("bytes", payload),
    ]

    decoded = decode_multipart(b"".join(build_frame(BOUNDARY, fields)))

    assert decoded == [
        ("op", b"write"),
        ("parallel-write-handle", b"h-1"),
        ("stream-index", b"2"),
        ("offset", b"1024"),
        ("count", str(len(payload)).encode()),
        ("bytes", payload),
    ]


def test_text_is_utf8():
    decoded = decode_multipart(b"".join(build_frame(BOUNDARY, [FormField.text("lpath", "/zone/café")])))

    assert decoded == [("lpath", "/zone/café".encode("utf-8"))]


def test_binary_length_slices_buffer():
    buffer = bytearray(b"0123456789")
    field = FormField.binary("bytes", buffer, 4)

    assert field.value == b"0123"
    assert field.is_binary


def test_binary_length_out_of_bounds():
    with pytest.raises(ValueError):
        FormField.binary("bytes", b"abc", 4)


def test_frames_do_not_share_state():
    first = build_frame(BOUNDARY, [FormField.text("offset", 0), FormField.binary("bytes", b"aaa")])
    second = build_frame(BOUNDARY, [FormField.binary("bytes", b"bbb")])

    assert first is not second
    assert b"offset" in b"".join(first)
    assert b"offset" not in b"".join(second)
    assert decode_multipart(b"".join(first))[1] == ("bytes", b"aaa")


def test_empty_frame_is_terminator_only():
    assert build_frame("B", []) == [b"--B--\r\n"]


def test_content_type():
    assert content_type("abc") == "multipart/form-data; boundary=abc"
