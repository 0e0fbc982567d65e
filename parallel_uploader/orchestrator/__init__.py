"""Orchestrator package - coordinates parallel write sessions."""
from .coordinator import SessionCoordinator
from .core import ParallelUploadOrchestrator
from .models import UploadContext
from .planner import plan
from .stream_worker import StreamWorker

__all__ = [
    "ParallelUploadOrchestrator",
    "SessionCoordinator",
    "StreamWorker",
    "UploadContext",
    "plan",
]
