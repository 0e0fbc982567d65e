"""
Multipart/form-data frame encoding for parallel writes.

build_frame is a pure function: every call allocates a new segment list, so a
frame handed to the transport can never be changed by the next one.
"""
from dataclasses import dataclass
from typing import List, Sequence, Union

CRLF = b"\r\n"

FieldValue = Union[str, bytes, bytearray, memoryview]


@dataclass(frozen=True)
class FormField:
    """One named multipart field, either UTF-8 text or a raw byte payload."""
    name: str
    value: FieldValue

    @property
    def is_binary(self) -> bool:
        return not isinstance(self.value, str)

    @classmethod
    def text(cls, name: str, value: object) -> "FormField":
        return cls(name, str(value))

    @classmethod
    def binary(cls, name: str, data: FieldValue, length: int = None) -> "FormField":
        """Binary field holding the first ``length`` bytes of ``data``."""
        view = memoryview(data)
        if length is not None:
            if length < 0 or length > len(view):
                raise ValueError(f"length {length} out of bounds for {len(view)} bytes")
            view = view[:length]
        return cls(name, bytes(view))


def content_type(boundary: str) -> str:
    """Content-Type header value for a frame built with ``boundary``."""
    return f"multipart/form-data; boundary={boundary}"


def _part_header(boundary: str, field: FormField, length: int = None) -> bytes:
    lines = [
        f"--{boundary}",
        f"Content-Disposition: form-data; name={field.name}",
        "Content-Type: application/octet-stream",
        "Content-Transfer-Encoding: binary",
    ]
    if length is not None:
        lines.append(f"Content-Length: {length}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")


def build_frame(boundary: str, fields: Sequence[FormField]) -> List[bytes]:
    """
    Encode ``fields`` as an ordered list of byte segments.

    Concatenating the segments yields the exact request body. Binary fields are
    emitted as separate segments so the payload is not copied into the header.
    """
    segments: List[bytes] = []
    for field in fields:
        if field.is_binary:
            payload = bytes(field.value)
            segments.append(_part_header(boundary, field, len(payload)))
            segments.append(payload)
            segments.append(CRLF)
        else:
            segments.append(
                _part_header(boundary, field) + field.value.encode("utf-8") + CRLF
            )
    segments.append(f"--{boundary}--\r\n".encode("utf-8"))
    return segments


def frame_size(segments: Sequence[bytes]) -> int:
    return sum(len(s) for s in segments)
