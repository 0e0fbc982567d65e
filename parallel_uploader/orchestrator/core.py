"""Core orchestrator - authenticates and drives one parallel upload."""
import asyncio
from pathlib import Path
from typing import Optional, Set

import httpx

from ..models import UploadConfig, UploadResult
from ..services.api_client import HTTPAPIClient
from ..services.auth import authenticate
from .coordinator import SessionCoordinator
from .models import ProgressCallback, UploadContext


class ParallelUploadOrchestrator:
    """
    Orchestrates parallel uploads using injected services.

    Usage:
        async with ParallelUploadOrchestrator(base_url, "rods", "secret") as uploader:
            result = await uploader.upload(Path("100mb.bin"), "/tempZone/home/rods/100mb.bin")
            result.raise_for_status()
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        config: Optional[UploadConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            base_url: API root, e.g. http://localhost:9000/irods-http-api/0.5.0
            username: Account used for Basic authentication
            password: Account password
            config: Upload configuration
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._base_url = base_url
        self._username = username
        self._password = password
        self._config = config or UploadConfig()
        self._transport = transport

        # Initialized in __aenter__
        self._api_client: Optional[HTTPAPIClient] = None
        self._token: Optional[str] = None
        self._running: Set[asyncio.Event] = set()

    async def __aenter__(self):
        """Open the HTTP client and authenticate."""
        self._api_client = HTTPAPIClient(
            self._base_url,
            timeout=self._config.timeout,
            max_connections=self._config.stream_count + 1,
            retries=self._config.frame_retries,
            retry_backoff=self._config.retry_backoff,
            transport=self._transport,
        )
        await self._api_client.__aenter__()
        try:
            self._token = await authenticate(self._api_client, self._username, self._password)
        except BaseException:
            await self._api_client.__aexit__(None, None, None)
            self._api_client = None
            raise
        return self

    async def __aexit__(self, *args):
        """Cleanup resources."""
        if self._api_client:
            await self._api_client.__aexit__(*args)
            self._api_client = None

    def _context(self, progress_callback: Optional[ProgressCallback]) -> UploadContext:
        return UploadContext(
            api=self._api_client,
            token=self._token,
            endpoint=self._config.endpoint,
            boundary=self._config.boundary,
            buffer_size=self._config.buffer_size,
            progress_callback=progress_callback,
        )

    async def upload(
        self,
        local_path: Path,
        target_path: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> UploadResult:
        """Upload one file through a single parallel write session."""
        assert self._api_client is not None and self._token is not None, "use 'async with'"
        cancel_event = asyncio.Event()
        self._running.add(cancel_event)
        try:
            coordinator = SessionCoordinator(self._context(progress_callback))
            return await coordinator.upload(
                Path(local_path),
                target_path,
                self._config.stream_count,
                cancel_event=cancel_event,
            )
        finally:
            self._running.discard(cancel_event)

    def cancel(self) -> None:
        """Ask the uploads in progress to stop before their next frame. Later uploads are unaffected."""
        for cancel_event in self._running:
            cancel_event.set()
