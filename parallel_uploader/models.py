"""
Models for parallel_uploader.

Immutable dataclasses for sessions, ranges and results. StreamCursor is the one
mutable type and never leaves the worker that owns it.
"""
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple

from .errors import InvalidArgumentError, ParallelWriteError, UploadError

MIB = 1024 * 1024


@dataclass(frozen=True)
class WriteSession:
    """Server-side parallel write session. Consumed by exactly one close."""
    handle: str
    stream_count: int
    target_path: str


@dataclass(frozen=True)
class ByteRange:
    """Contiguous slice of the local file assigned to one stream."""
    stream_index: int
    base_offset: int
    length: int

    @property
    def end(self) -> int:
        """Exclusive end offset."""
        return self.base_offset + self.length


@dataclass
class StreamCursor:
    """Per-worker position inside its range."""
    current_offset: int
    remaining: int
    first_frame_sent: bool = False

    @classmethod
    def start(cls, byte_range: ByteRange) -> "StreamCursor":
        return cls(current_offset=byte_range.base_offset, remaining=byte_range.length)

    def advance(self, count: int) -> None:
        self.current_offset += count
        self.remaining -= count
        self.first_frame_sent = True


class StreamStatus(Enum):
    """Terminal state of a stream worker."""
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class StreamResult:
    """Immutable outcome of one stream worker."""
    stream_index: int
    status: StreamStatus = StreamStatus.DONE
    bytes_sent: int = 0
    frames_sent: int = 0
    error: Optional[UploadError] = None
    short_read: bool = False  # source ended before the range did

    @property
    def success(self) -> bool:
        return self.status == StreamStatus.DONE

    @classmethod
    def done(cls, stream_index: int, bytes_sent: int, frames_sent: int, short_read: bool = False):
        return cls(
            stream_index=stream_index,
            status=StreamStatus.DONE,
            bytes_sent=bytes_sent,
            frames_sent=frames_sent,
            short_read=short_read,
        )

    @classmethod
    def fail(cls, stream_index: int, error: UploadError, bytes_sent: int = 0, frames_sent: int = 0):
        return cls(
            stream_index=stream_index,
            status=StreamStatus.FAILED,
            bytes_sent=bytes_sent,
            frames_sent=frames_sent,
            error=error,
        )

    @classmethod
    def cancelled(cls, stream_index: int, error: UploadError, bytes_sent: int = 0, frames_sent: int = 0):
        return cls(
            stream_index=stream_index,
            status=StreamStatus.CANCELLED,
            bytes_sent=bytes_sent,
            frames_sent=frames_sent,
            error=error,
        )


@dataclass(frozen=True)
class RunResult:
    """Aggregated outcome of all stream workers of one session."""
    streams: Tuple[StreamResult, ...] = ()

    @property
    def success(self) -> bool:
        return all(r.success for r in self.streams)

    @property
    def failed_streams(self) -> Dict[int, UploadError]:
        return {
            r.stream_index: r.error
            for r in self.streams
            if not r.success and r.error is not None
        }

    @property
    def bytes_sent(self) -> int:
        return sum(r.bytes_sent for r in self.streams)


class UploadStatus(Enum):
    """Upload operation status."""
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadResult:
    """Immutable result of a parallel upload."""
    local_path: Path
    target_path: str
    status: UploadStatus = UploadStatus.SUCCESS
    file_size: int = 0
    bytes_sent: int = 0
    streams: Tuple[StreamResult, ...] = ()
    close_error: Optional[UploadError] = None
    elapsed: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == UploadStatus.SUCCESS

    @property
    def failures(self) -> Dict[int, UploadError]:
        return RunResult(self.streams).failed_streams

    @property
    def short_streams(self) -> Tuple[int, ...]:
        return tuple(r.stream_index for r in self.streams if r.short_read)

    def raise_for_status(self) -> "UploadResult":
        """Raise ParallelWriteError if any stream or the session close failed."""
        if not self.success:
            raise ParallelWriteError(self.failures, self.close_error)
        return self

    @classmethod
    def from_run(
        cls,
        local_path: Path,
        target_path: str,
        file_size: int,
        run: RunResult,
        close_error: Optional[UploadError] = None,
        elapsed: float = 0.0,
    ):
        ok = run.success and close_error is None
        return cls(
            local_path=local_path,
            target_path=target_path,
            status=UploadStatus.SUCCESS if ok else UploadStatus.FAILED,
            file_size=file_size,
            bytes_sent=run.bytes_sent,
            streams=run.streams,
            close_error=close_error,
            elapsed=elapsed,
        )


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for parallel uploads."""
    stream_count: int = 4
    buffer_size: int = 4 * MIB
    boundary: str = "------BOUNDARY------"
    endpoint: str = "/data-objects"
    timeout: float = 60.0
    frame_retries: int = 0  # resends of one frame on connection errors / 5xx
    retry_backoff: float = 0.5

    def __post_init__(self):
        if self.stream_count < 1:
            raise InvalidArgumentError(f"stream_count must be >= 1, got {self.stream_count}")
        if self.buffer_size < 1:
            raise InvalidArgumentError(f"buffer_size must be >= 1, got {self.buffer_size}")
        if not self.boundary:
            raise InvalidArgumentError("boundary must not be empty")
        if self.frame_retries < 0:
            raise InvalidArgumentError(f"frame_retries must be >= 0, got {self.frame_retries}")
