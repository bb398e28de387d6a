"""
Progress Streaming
Single-producer progress channel and the SSE transport that drains it
"""
import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from ..core.constants import PIPELINE_STAGES

logger = logging.getLogger(__name__)

_CLOSED = object()


def create_progress_frame(
    step: int,
    message: str,
    steps: List[str],
    is_error: bool = False
) -> Dict[str, Any]:
    """Build one progress frame `{step, message, steps, isError?}`"""
    frame: Dict[str, Any] = {"step": step, "message": message, "steps": list(steps)}
    if is_error:
        frame["isError"] = True
    return frame


class ProgressChannel:
    """
    Ordered push channel from the pipeline to one transport.

    The pipeline is the only writer. Step indexes never go backwards;
    exactly one terminal frame (complete or error) is written; the channel
    is closed exactly once, after which writes are ignored. A detached
    consumer turns every further write into a no-op.
    """

    def __init__(self, steps: Optional[List[str]] = None):
        self.steps = list(steps or PIPELINE_STAGES)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._last_step = -1
        self._terminated = False
        self._closed = False
        self._detached = False
        self.close_count = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def detached(self) -> bool:
        return self._detached

    @property
    def current_step(self) -> int:
        return self._last_step

    def _put(self, frame: Dict[str, Any]) -> None:
        if self._closed or self._detached:
            return
        self._queue.put_nowait(frame)

    def emit(self, step: int, message: str, is_error: bool = False) -> None:
        """
        Write a progress frame for `step`.

        Raises:
            ValueError: If `step` is unknown or earlier than the last step
        """
        if not 0 <= step < len(self.steps):
            raise ValueError(f"Unknown pipeline step {step}")
        if step < self._last_step:
            raise ValueError(
                f"Progress out of order: step {step} after step {self._last_step}"
            )
        self._last_step = step
        self._put(create_progress_frame(step, message, self.steps, is_error))

    def complete(self, result: Dict[str, Any]) -> None:
        """Write the terminal success frame"""
        if self._terminated:
            logger.warning("Ignoring completion on an already terminated channel")
            return
        self._terminated = True
        self._put({"type": "complete", "result": result})

    def fail(self, message: str) -> None:
        """Write an error progress frame for the current step and the terminal error frame"""
        if self._terminated:
            logger.warning("Ignoring failure on an already terminated channel")
            return
        self._terminated = True
        step = max(self._last_step, 0)
        self._put(create_progress_frame(step, message, self.steps, is_error=True))
        self._put({"type": "error", "message": message})

    def close(self) -> bool:
        """
        Close the channel.

        Returns:
            True on the closing call, False if it was already closed
        """
        if self._closed:
            return False
        self._queue.put_nowait(_CLOSED)
        self._closed = True
        self.close_count += 1
        return True

    def detach(self) -> None:
        """Mark the consumer as gone; later writes are dropped"""
        if not self._detached:
            logger.info("Progress consumer detached")
        self._detached = True

    async def frames(self) -> AsyncIterator[Dict[str, Any]]:
        """Yield frames in write order until the channel closes"""
        while True:
            frame = await self._queue.get()
            if frame is _CLOSED:
                return
            yield frame


def format_sse(frame: Dict[str, Any]) -> str:
    """Encode one frame as a server-sent event"""
    return f"data: {json.dumps(frame, ensure_ascii=False)}\n\n"


async def sse_stream(channel: ProgressChannel, producer: "asyncio.Future") -> AsyncIterator[str]:
    """
    Drain a channel into SSE text frames.

    Args:
        channel: Channel the pipeline writes into
        producer: Task running the pipeline; awaited once the channel closes

    If the client disconnects the generator is closed early; the channel
    is detached and the pipeline task keeps running to completion.
    """
    try:
        async for frame in channel.frames():
            yield format_sse(frame)
        await producer
    finally:
        if not producer.done():
            channel.detach()
