"""Orchestrator data models."""
from dataclasses import dataclass
from typing import Callable, Optional

from ..protocols import IAPIClient

# (stream_index, bytes_sent, range_length)
ProgressCallback = Callable[[int, int, int], None]


@dataclass(frozen=True)
class UploadContext:
    """Read-only state shared by every stream of one upload."""
    api: IAPIClient
    token: str
    endpoint: str = "/data-objects"
    boundary: str = "------BOUNDARY------"
    buffer_size: int = 4 * 1024 * 1024
    progress_callback: Optional[ProgressCallback] = None
