"""HTTP adapter for the data-objects API."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from ..errors import TransportError
from .multipart import content_type

logger = logging.getLogger(__name__)


class HTTPAPIClient:
    """
    HTTP client adapter for control and data requests.

    Implements IAPIClient protocol. One instance is shared read-only by every
    stream worker; the underlying connection pool is sized so each stream can
    hold its own connection.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 60,
        max_connections: int = 10,
        retries: int = 0,
        retry_backoff: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_connections,
        )
        self._retries = retries
        self._retry_backoff = retry_backoff
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            limits=self._limits,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _headers(token: Optional[str], extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = dict(extra or {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def post_form(
        self,
        endpoint: str,
        data: Dict[str, Any],
        token: Optional[str] = None,
        auth: Optional[httpx.Auth] = None,
    ) -> httpx.Response:
        """POST a form-encoded body."""
        return await self._post(
            endpoint,
            headers=self._headers(token),
            data={k: str(v) for k, v in data.items()},
            auth=auth,
        )

    async def post_multipart(
        self,
        endpoint: str,
        segments: Sequence[bytes],
        boundary: str,
        token: Optional[str] = None,
    ) -> httpx.Response:
        """
        POST a pre-encoded multipart frame.

        The body is sent exactly as built; a retry resends the same bytes.
        """
        body = b"".join(segments)
        headers = self._headers(token, {"Content-Type": content_type(boundary)})
        return await self._post(endpoint, headers=headers, content=body)

    async def _post(self, endpoint: str, **kwargs) -> httpx.Response:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")

        max_attempts = self._retries + 1
        last_exception: Optional[Exception] = None

        for attempt in range(max_attempts):
            try:
                response = await self._client.post(endpoint, **kwargs)

                if response.status_code >= 500 and attempt < max_attempts - 1:
                    logger.debug(
                        "POST %s returned %d, retrying (%d/%d)",
                        endpoint, response.status_code, attempt + 1, max_attempts - 1,
                    )
                    await asyncio.sleep(self._retry_backoff * (attempt + 1))
                    continue

                if not response.is_success:
                    raise TransportError(
                        f"API error {response.status_code} on POST {endpoint}: {response.text[:200]}",
                        status_code=response.status_code,
                    )

                return response
            except httpx.TransportError as exc:
                # Includes timeouts
                last_exception = exc
                if attempt < max_attempts - 1:
                    logger.debug("POST %s failed (%s), retrying", endpoint, exc)
                    await asyncio.sleep(self._retry_backoff * (attempt + 1))
                    continue
                raise TransportError(f"POST {endpoint} failed: {exc!r}") from exc

        raise TransportError(f"Failed to POST {endpoint} after {max_attempts} attempts") from last_exception


def irods_status(response: httpx.Response) -> Optional[int]:
    """``irods_response.status_code`` from a JSON body, or None when absent."""
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    irods_response = payload.get("irods_response")
    if not isinstance(irods_response, dict):
        return None
    code = irods_response.get("status_code")
    return code if isinstance(code, int) else None
