"""
parallel_uploader - upload one large file over N concurrent HTTP streams.

The file is split into N contiguous byte ranges. Each range is streamed by its
own worker as a sequence of multipart write frames, all inside one server-side
parallel write session that is opened once and closed once.

Usage:
    from parallel_uploader import ParallelUploadOrchestrator, UploadConfig

    config = UploadConfig(stream_count=4)
    async with ParallelUploadOrchestrator(base_url, username, password, config) as uploader:
        result = await uploader.upload(Path("100mb.bin"), "/tempZone/home/rods/100mb.bin")

    if not result.success:
        for stream_index, error in result.failures.items():
            print(stream_index, error)
"""
from .errors import (
    InvalidArgumentError,
    LocalIOError,
    ParallelWriteError,
    ProtocolError,
    TransportError,
    UploadCancelledError,
    UploadError,
)
from .models import (
    ByteRange,
    RunResult,
    StreamResult,
    StreamStatus,
    UploadConfig,
    UploadResult,
    UploadStatus,
    WriteSession,
)
from .orchestrator import ParallelUploadOrchestrator, SessionCoordinator, StreamWorker, plan
from .services import FormField, HTTPAPIClient, build_frame

__version__ = "0.1.0"
__all__ = [
    # Main
    "ParallelUploadOrchestrator",
    "SessionCoordinator",
    "StreamWorker",
    "plan",
    # Models
    "ByteRange",
    "RunResult",
    "StreamResult",
    "StreamStatus",
    "UploadConfig",
    "UploadResult",
    "UploadStatus",
    "WriteSession",
    # Services
    "FormField",
    "HTTPAPIClient",
    "build_frame",
    # Errors
    "UploadError",
    "InvalidArgumentError",
    "LocalIOError",
    "TransportError",
    "ProtocolError",
    "UploadCancelledError",
    "ParallelWriteError",
]
