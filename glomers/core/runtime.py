"""
Node runtime: process lifecycle and event multiplexing.

The runtime reads the init handshake, acknowledges it, builds the node, then
merges two event sources into one ordered queue:

- wire messages, read line by line from the input stream on a reader thread
  and decoded on the event loop
- periodic ``Tick`` events from a background task

A single worker task drains the queue and feeds ``node.step``; every message a
step produces is written and flushed before the next event is taken, so node
state is only ever touched by that worker.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import sys
import threading
import time
from collections.abc import Iterator
from dataclasses import dataclass
from typing import BinaryIO

from loguru import logger

from glomers.datastructures.type_aliases import DurationSeconds

from .codec import decode_message, encode_message
from .config import NodeSettings
from .envelope import Message
from .errors import GlomersError, ProtocolViolationError
from .logging import configure_logging, set_default_node_id
from .node import Event, NodeStateMachine, Tick
from .payloads import HANDSHAKE_ADAPTER, Init, InitOk

_READ_CHUNK = 64 * 1024


def iter_lines(stream: BinaryIO) -> Iterator[bytes]:
    """Yield newline-terminated lines from ``stream``.

    Streams backed by a file descriptor are read with ``os.read``: a daemon
    thread blocked inside a buffered reader holds its lock, and interpreter
    shutdown aborts when it cannot take that lock.
    """
    try:
        fd = stream.fileno()
    except (OSError, ValueError):
        # in-memory streams (io.UnsupportedOperation is both)
        yield from stream
        return

    pending = b""
    while chunk := os.read(fd, _READ_CHUNK):
        *lines, pending = (pending + chunk).split(b"\n")
        for line in lines:
            yield line + b"\n"
    if pending:
        yield pending


@dataclass(slots=True)
class RuntimeStatistics:
    """Counters describing what the runtime has done so far."""

    lines_read: int = 0
    ticks_emitted: int = 0
    events_processed: int = 0
    messages_written: int = 0
    max_tick_lag: DurationSeconds = 0.0


class NodeRuntime:
    """Drives one ``NodeStateMachine`` subclass over a pair of byte streams."""

    def __init__(
        self,
        node_cls: type[NodeStateMachine],
        settings: NodeSettings | None = None,
        *,
        input_stream: BinaryIO | None = None,
        output_stream: BinaryIO | None = None,
    ) -> None:
        self.node_cls = node_cls
        self.settings = settings if settings is not None else NodeSettings()
        self.input_stream = (
            input_stream if input_stream is not None else sys.stdin.buffer
        )
        self.output_stream = (
            output_stream if output_stream is not None else sys.stdout.buffer
        )
        self.node: NodeStateMachine | None = None
        self.stats = RuntimeStatistics()

        self._lines: asyncio.Queue[bytes | None] = asyncio.Queue()
        # None is the shutdown sentinel
        self._events: asyncio.Queue[Event | None] = asyncio.Queue()
        self._reader: threading.Thread | None = None

    async def run(self) -> None:
        """Run until the input stream ends; fatal errors propagate."""
        self._start_reader(asyncio.get_running_loop())

        init = await self._handshake()
        set_default_node_id(init.node_id)
        self.node = self.node_cls.from_init(init, self.settings)
        logger.info(
            "Started {} {} in a cluster of {} node(s)",
            self.node_cls.__name__,
            init.node_id,
            len(init.node_ids),
        )

        tick_task = asyncio.create_task(self._tick_loop())
        worker = asyncio.create_task(self._process_events(self.node))
        try:
            while (line := await self._next_line(worker)) is not None:
                if not line.strip():
                    continue
                self._events.put_nowait(
                    decode_message(line, self.node_cls.payload_adapter)
                )

            logger.debug("Input closed, draining {} event(s)", self._events.qsize())
            await self._cancel(tick_task)
            self._events.put_nowait(None)
            await worker
        finally:
            await self._cancel(tick_task)
            await self._cancel(worker)

        logger.info(
            "{} stopped after {} event(s), {} message(s) written",
            init.node_id,
            self.stats.events_processed,
            self.stats.messages_written,
        )

    def _start_reader(self, loop: asyncio.AbstractEventLoop) -> None:
        def hand_off(line: bytes | None) -> None:
            # the loop is gone once run() has raised; nothing is listening
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(self._lines.put_nowait, line)

        def read_lines() -> None:
            try:
                for line in iter_lines(self.input_stream):
                    hand_off(line)
            except OSError as e:
                # descriptor closed under the reader; same as end of input
                logger.debug("input stream closed: {}", e)
            finally:
                hand_off(None)

        self._reader = threading.Thread(
            target=read_lines, name="glomers-stdin-reader", daemon=True
        )
        self._reader.start()

    async def _handshake(self) -> Init:
        line = await self._lines.get()
        while line is not None and not line.strip():
            line = await self._lines.get()
        if line is None:
            raise ProtocolViolationError("input closed before the init handshake")
        self.stats.lines_read += 1

        message = decode_message(line, HANDSHAKE_ADAPTER)
        init = message.payload
        if not isinstance(init, Init):
            raise ProtocolViolationError(f"first message must be init, got {init.type}")

        # init_ok must reach the harness before anything else is processed
        self._write(message.reply(None, InitOk()))
        return init

    async def _next_line(self, worker: asyncio.Task[None]) -> bytes | None:
        """Wait for the next input line, surfacing a worker failure immediately."""
        getter = asyncio.ensure_future(self._lines.get())
        await asyncio.wait({getter, worker}, return_when=asyncio.FIRST_COMPLETED)

        if worker.done():
            getter.cancel()
            worker.result()
            raise GlomersError("event worker stopped before the input ended")

        line = getter.result()
        if line is not None:
            self.stats.lines_read += 1
        return line

    async def _tick_loop(self) -> None:
        interval = self.settings.tick_interval
        while True:
            await asyncio.sleep(interval)
            self._events.put_nowait(Tick())
            self.stats.ticks_emitted += 1

    async def _process_events(self, node: NodeStateMachine) -> None:
        while True:
            event = await self._events.get()
            if event is None:
                return
            if isinstance(event, Tick):
                lag = time.monotonic() - event.issued_at
                self.stats.max_tick_lag = max(self.stats.max_tick_lag, lag)

            for outbound in node.step(event):
                self._write(outbound)
            self.stats.events_processed += 1

    def _write(self, message: Message) -> None:
        self.output_stream.write(encode_message(message))
        self.output_stream.flush()
        self.stats.messages_written += 1

    @staticmethod
    async def _cancel(task: asyncio.Task[None]) -> None:
        if task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


def run_node(
    node_cls: type[NodeStateMachine], settings: NodeSettings | None = None
) -> None:
    """Process entry point: run a node on stdin/stdout, exit 1 on fatal errors."""
    settings = settings if settings is not None else NodeSettings()
    configure_logging(settings)

    try:
        asyncio.run(NodeRuntime(node_cls, settings).run())
    except GlomersError as e:
        logger.error("{} terminating: {}", node_cls.__name__, e)
        sys.exit(1)
