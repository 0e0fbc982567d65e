"""
Session coordinator - owns the parallel write session.

Flow:
1. Open the session (parallel_write_init) and obtain the handle
2. Plan byte ranges and run one StreamWorker task per range
3. Join every worker
4. Close the session (parallel_write_shutdown), always, exactly once

An upload already cancelled when it starts never opens a session.
"""
import asyncio
import logging
import time
from pathlib import Path
from typing import List, Optional, Sequence, Set

from ..errors import LocalIOError, ProtocolError, UploadCancelledError, UploadError
from ..models import ByteRange, RunResult, StreamResult, UploadResult, WriteSession
from ..services.api_client import irods_status
from .models import UploadContext
from .planner import plan
from .stream_worker import StreamWorker

logger = logging.getLogger(__name__)


class SessionCoordinator:
    """
    Opens, supervises and closes one parallel write session per upload.

    Usage:
        coordinator = SessionCoordinator(context)
        result = await coordinator.upload(Path("big.bin"), "/zone/home/me/big.bin", 4)
    """

    def __init__(self, context: UploadContext):
        self._context = context
        self._closed: Set[str] = set()

    async def open_session(self, target_path: str, stream_count: int) -> WriteSession:
        """
        Open a parallel write session.

        Raises:
            TransportError: request failed
            ProtocolError: response carries no usable handle
        """
        response = await self._context.api.post_form(
            self._context.endpoint,
            data={
                "op": "parallel_write_init",
                "lpath": target_path,
                "stream-count": stream_count,
            },
            token=self._context.token,
        )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProtocolError(f"parallel_write_init returned non-JSON body: {response.text[:200]!r}") from exc

        status = irods_status(response)
        if status:
            raise ProtocolError(f"parallel_write_init failed with status {status}")

        handle = payload.get("parallel_write_handle") if isinstance(payload, dict) else None
        if not isinstance(handle, str) or not handle:
            raise ProtocolError("parallel_write_init response has no parallel_write_handle")

        logger.info("Opened parallel write session %s for %s (%d streams)", handle, target_path, stream_count)
        return WriteSession(handle=handle, stream_count=stream_count, target_path=target_path)

    async def close_session(self, session: WriteSession) -> None:
        """
        Close the session. May be called at most once per session.

        Raises:
            ProtocolError: session was already closed
            TransportError: request failed
        """
        if session.handle in self._closed:
            raise ProtocolError(f"session {session.handle} already closed")
        self._closed.add(session.handle)

        await self._context.api.post_form(
            self._context.endpoint,
            data={
                "op": "parallel_write_shutdown",
                "parallel-write-handle": session.handle,
            },
            token=self._context.token,
        )
        logger.info("Closed parallel write session %s", session.handle)

    async def run(
        self,
        session: WriteSession,
        local_file: Path,
        ranges: Sequence[ByteRange],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunResult:
        """
        Run one worker per range and wait for all of them.

        A failed stream never stops its siblings. If this coroutine is
        cancelled, the workers are cancelled too and the cancellation
        propagates once they have stopped.
        """
        workers = [
            StreamWorker(self._context, session.handle, r, local_file, cancel_event)
            for r in ranges
        ]
        tasks = [
            asyncio.create_task(w.run(), name=f"stream-{w.stream_index}")
            for w in workers
        ]

        try:
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        results: List[StreamResult] = []
        for worker, outcome in zip(workers, outcomes):
            if isinstance(outcome, StreamResult):
                results.append(outcome)
                continue
            # Unexpected exception escaped the worker
            error = outcome if isinstance(outcome, UploadError) else UploadError(repr(outcome))
            logger.error("[stream %d] crashed: %r", worker.stream_index, outcome)
            results.append(StreamResult.fail(worker.stream_index, error))

        run = RunResult(tuple(results))
        for index, error in run.failed_streams.items():
            logger.error("Stream %d failed: %s", index, error)
        return run

    async def upload(
        self,
        local_file: Path,
        target_path: str,
        stream_count: int,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> UploadResult:
        """
        Upload ``local_file`` to ``target_path`` over ``stream_count`` streams.

        Planning and session-open failures raise. Stream and close failures
        are reported in the returned UploadResult.
        """
        start = time.monotonic()
        local_file = Path(local_file)

        try:
            file_size = local_file.stat().st_size
        except OSError as exc:
            raise LocalIOError(f"cannot stat {local_file}: {exc}") from exc

        ranges = plan(file_size, stream_count)
        chunk_size, remainder = divmod(file_size, stream_count)
        logger.info(
            "Uploading %s (%d bytes): chunk size = %d, chunk size remainder = %d",
            local_file.name, file_size, chunk_size, remainder,
        )

        if cancel_event is not None and cancel_event.is_set():
            logger.info("Upload of %s cancelled before the session was opened", local_file.name)
            run = RunResult(tuple(
                StreamResult.cancelled(r.stream_index, UploadCancelledError(f"stream {r.stream_index} cancelled"))
                for r in ranges
            ))
            return UploadResult.from_run(
                local_file, target_path, file_size, run, elapsed=time.monotonic() - start
            )

        session = await self.open_session(target_path, stream_count)

        run = RunResult()
        close_error: Optional[UploadError] = None
        try:
            run = await self.run(session, local_file, ranges, cancel_event)
        finally:
            try:
                await self.close_session(session)
            except UploadError as exc:
                logger.error("Failed to close session %s: %s", session.handle, exc)
                close_error = exc

        elapsed = time.monotonic() - start
        result = UploadResult.from_run(
            local_file, target_path, file_size, run, close_error, elapsed
        )
        logger.info(
            "Upload %s: %d/%d bytes in %.3f s",
            "complete" if result.success else "failed",
            result.bytes_sent, file_size, elapsed,
        )
        return result
