"""
Stream worker - uploads one byte range as a sequence of multipart frames.

Flow per frame:
1. Read up to buffer_size bytes from the worker's own file handle
2. Encode op=write frame (offset only on the first frame of the stream)
3. Send and wait for the response before reading the next chunk

The server tracks each stream's write cursor after the first frame, so the
offset field must appear exactly once per stream.
"""
import asyncio
import logging
from pathlib import Path
from typing import BinaryIO, List, Optional

from ..errors import LocalIOError, UploadCancelledError, UploadError
from ..models import ByteRange, StreamCursor, StreamResult
from ..services.api_client import irods_status
from ..services.multipart import FormField, build_frame
from .models import UploadContext

logger = logging.getLogger(__name__)


def _open_at(path: Path, offset: int) -> BinaryIO:
    handle = open(path, "rb")
    try:
        handle.seek(offset)
    except OSError:
        handle.close()
        raise
    return handle


class StreamWorker:
    """Uploads a single ByteRange of the local file. Frames are strictly sequential."""

    def __init__(
        self,
        context: UploadContext,
        session_handle: str,
        byte_range: ByteRange,
        local_path: Path,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        self._context = context
        self._handle = session_handle
        self._range = byte_range
        self._local_path = Path(local_path)
        self._cancel_event = cancel_event

    @property
    def stream_index(self) -> int:
        return self._range.stream_index

    def write_fields(self, cursor: StreamCursor, data: bytes, count: int) -> List[FormField]:
        """Fields of the next write frame for ``cursor``."""
        fields = [
            FormField.text("op", "write"),
            FormField.text("parallel-write-handle", self._handle),
            FormField.text("stream-index", self.stream_index),
        ]
        if not cursor.first_frame_sent:
            fields.append(FormField.text("offset", cursor.current_offset))
        fields.append(FormField.text("count", count))
        fields.append(FormField.binary("bytes", data, count))
        return fields

    async def run(self) -> StreamResult:
        """Upload the whole range. Never raises for upload failures; see StreamResult."""
        index = self.stream_index
        cursor = StreamCursor.start(self._range)
        frames = 0
        sent = 0

        if cursor.remaining == 0:
            logger.debug("[stream %d] empty range, nothing to send", index)
            return StreamResult.done(index, 0, 0)

        try:
            source = await asyncio.to_thread(_open_at, self._local_path, cursor.current_offset)
        except OSError as exc:
            error = LocalIOError(f"cannot open {self._local_path} at offset {cursor.current_offset}: {exc}")
            logger.error("[stream %d] %s", index, error)
            return StreamResult.fail(index, error)

        try:
            while cursor.remaining > 0:
                if self._cancel_event is not None and self._cancel_event.is_set():
                    logger.info("[stream %d] cancelled after %d frame(s)", index, frames)
                    return StreamResult.cancelled(
                        index, UploadCancelledError(f"stream {index} cancelled"), sent, frames
                    )

                try:
                    data = await asyncio.to_thread(
                        source.read, min(self._context.buffer_size, cursor.remaining)
                    )
                except OSError as exc:
                    error = LocalIOError(f"read failed at offset {cursor.current_offset}: {exc}")
                    logger.error("[stream %d] %s", index, error)
                    return StreamResult.fail(index, error, sent, frames)

                if not data:
                    logger.warning(
                        "[stream %d] source ended at offset %d with %d byte(s) of the range left",
                        index, cursor.current_offset, cursor.remaining,
                    )
                    return StreamResult.done(index, sent, frames, short_read=True)

                count = min(cursor.remaining, len(data))
                segments = build_frame(
                    self._context.boundary, self.write_fields(cursor, data, count)
                )

                try:
                    response = await self._context.api.post_multipart(
                        self._context.endpoint,
                        segments,
                        self._context.boundary,
                        token=self._context.token,
                    )
                except UploadError as exc:
                    logger.error("[stream %d] frame %d failed: %s", index, frames + 1, exc)
                    return StreamResult.fail(index, exc, sent, frames)

                status = irods_status(response)
                if status:
                    logger.warning("[stream %d] server reported status %d for frame %d", index, status, frames + 1)

                cursor.advance(count)
                frames += 1
                sent += count
                logger.debug(
                    "[stream %d] frame %d sent: %d bytes, %d remaining",
                    index, frames, count, cursor.remaining,
                )
                if self._context.progress_callback:
                    self._context.progress_callback(index, sent, self._range.length)
        finally:
            source.close()

        return StreamResult.done(index, sent, frames)
