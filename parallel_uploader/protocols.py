"""
Protocols (Interfaces) for Dependency Inversion.

The orchestrator only depends on these, so tests can inject fakes.
"""
from typing import Any, Dict, Optional, Protocol, Sequence, runtime_checkable


@runtime_checkable
class IAPIClient(Protocol):
    """Interface for data-objects API requests."""

    async def post_form(
        self,
        endpoint: str,
        data: Dict[str, Any],
        token: Optional[str] = None,
        auth: Any = None,
    ) -> Any:
        """POST form-encoded control request."""
        ...

    async def post_multipart(
        self,
        endpoint: str,
        segments: Sequence[bytes],
        boundary: str,
        token: Optional[str] = None,
    ) -> Any:
        """POST pre-encoded multipart frame."""
        ...
