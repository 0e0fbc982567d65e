"""Byte range partitioning."""
from typing import List

from ..errors import InvalidArgumentError
from ..models import ByteRange


def plan(file_size: int, stream_count: int) -> List[ByteRange]:
    """
    Split ``file_size`` bytes into ``stream_count`` contiguous ranges.

    Every range gets ``file_size // stream_count`` bytes; the last one also
    takes the remainder. Ranges may be empty when there are more streams than
    bytes.
    """
    if stream_count < 1:
        raise InvalidArgumentError(f"stream_count must be >= 1, got {stream_count}")
    if file_size < 0:
        raise InvalidArgumentError(f"file_size must be >= 0, got {file_size}")

    chunk_size, remainder = divmod(file_size, stream_count)
    last = stream_count - 1
    return [
        ByteRange(
            stream_index=i,
            base_offset=i * chunk_size,
            length=chunk_size + (remainder if i == last else 0),
        )
        for i in range(stream_count)
    ]
