"""Services for parallel_uploader."""
from .api_client import HTTPAPIClient
from .auth import authenticate
from .multipart import FormField, build_frame, content_type, frame_size

__all__ = [
    "HTTPAPIClient",
    "authenticate",
    "FormField",
    "build_frame",
    "content_type",
    "frame_size",
]
