import asyncio
import inspect
import logging
from functools import partial
from collections.abc import AsyncIterable, Awaitable, Callable

import httpx

from streamwright.dispatcher import EventDispatcher, TextSink
from streamwright.errors import StreamCancelled, StreamError, TruncatedStream
from streamwright.message import AssembledMessage
from streamwright.sse import decode_line

logger = logging.getLogger(__name__)


class StreamRunner:
    """Drives one streamed message from raw lines to a final result.

    Reading, decoding and dispatch all happen in a single background
    task, the only writer to the accumulator.  ``run()`` suspends until
    that task delivers exactly one outcome through a future: the
    :class:`AssembledMessage` once ``message_stop`` arrives, or a
    :class:`StreamError`.  The transport is released on every exit
    path before ``run()`` returns.

    ``cancel()`` abandons the read; the caller then receives
    :class:`StreamCancelled`.  Cancelling the task awaiting ``run()``
    cancels the read as well and propagates ``CancelledError``.

    Args:
        lines: Async iterable of decoded text lines from the body.
        on_text: Optional per-fragment text callback.
        close: Optional callable releasing the transport; may return
            an awaitable.
        logger: Diagnostics collaborator handed to the dispatcher.
    """

    def __init__(
        self,
        lines: AsyncIterable[str],
        on_text: TextSink | None = None,
        *,
        close: Callable[[], Awaitable[None] | None] | None = None,
        logger: logging.Logger | None = None,
    ):
        self.lines = lines
        self.dispatcher = EventDispatcher(on_text, logger=logger)
        self._close = close
        self._task: asyncio.Task | None = None
        self._released = False

    async def run(self) -> AssembledMessage:
        if self._task is not None:
            raise RuntimeError("StreamRunner.run() can only be called once")
        outcome: asyncio.Future = asyncio.get_running_loop().create_future()
        self._task = asyncio.create_task(self._pump(outcome))
        self._task.add_done_callback(partial(_on_pump_done, outcome))
        try:
            return await outcome
        finally:
            # A cancelled outcome means the caller itself was cancelled.
            if outcome.cancelled():
                self._task.cancel()
            await asyncio.wait({self._task})
            await self._release()

    def cancel(self) -> None:
        """Abandon the stream; ``run()`` raises :class:`StreamCancelled`."""
        if self._task is not None and not self._task.done():
            self._task.cancel()

    @property
    def released(self) -> bool:
        return self._released

    # ------------------------------------------------------------------
    # Background task
    # ------------------------------------------------------------------

    async def _pump(self, outcome: asyncio.Future) -> None:
        try:
            message = await self._consume()
        except asyncio.CancelledError:
            logger.debug("Stream cancelled before a terminal event")
            raise
        except Exception as e:
            logger.debug(f"Stream aborted: {e!r}")
            _deliver(outcome, error=e)
        else:
            logger.debug(f"Stream complete: message {message.id}")
            _deliver(outcome, result=message)
        finally:
            try:
                await self._release()
            except Exception as e:
                # The outcome is already delivered.
                logger.warning(f"Failed to release stream transport: {e!r}")

    async def _consume(self) -> AssembledMessage:
        lines = aiter(self.lines)
        while True:
            try:
                line = await anext(lines)
            except StopAsyncIteration:
                raise TruncatedStream(
                    "stream ended before message_stop"
                ) from None
            except StreamError:
                raise
            except Exception as e:
                raise TruncatedStream(f"issue reading stream: {e}") from e

            raw = decode_line(line)
            if raw is None:
                continue
            if await self.dispatcher.dispatch(raw):
                return self.dispatcher.result()

    async def _release(self) -> None:
        if self._released:
            return
        self._released = True
        aclose = getattr(self.lines, "aclose", None)
        try:
            if aclose is not None:
                await aclose()
        finally:
            if self._close is not None:
                result = self._close()
                if inspect.isawaitable(result):
                    await result


def _deliver(outcome: asyncio.Future, result=None, error=None) -> None:
    # The future is already cancelled when the awaiting caller was.
    if outcome.done():
        return
    if error is not None:
        outcome.set_exception(error)
    else:
        outcome.set_result(result)


def _on_pump_done(outcome: asyncio.Future, task: asyncio.Task) -> None:
    if task.cancelled():
        _deliver(outcome, error=StreamCancelled(
            "stream cancelled before message_stop"
        ))


async def assemble_lines(
    lines: AsyncIterable[str],
    on_text: TextSink | None = None,
    *,
    logger: logging.Logger | None = None,
) -> AssembledMessage:
    """Assemble a message from an async iterable of SSE lines."""
    return await StreamRunner(lines, on_text, logger=logger).run()


async def assemble_response(
    response: httpx.Response,
    on_text: TextSink | None = None,
    *,
    logger: logging.Logger | None = None,
) -> AssembledMessage:
    """Assemble a message from a streaming ``httpx.Response``.

    The response is closed whether assembly succeeds or fails.
    """
    runner = StreamRunner(
        response.aiter_lines(), on_text,
        close=response.aclose, logger=logger,
    )
    return await runner.run()
