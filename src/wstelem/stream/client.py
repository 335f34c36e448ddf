"""Reconnecting WebSocket telemetry client.

One asyncio task drives the connection loop::

    IDLE → CONNECTING → OPEN → CLOSING → IDLE → ...
                  (any state) → STOPPED

Each pass through the loop is a :class:`Session`.  Connect failures and
mid-session transport errors are logged and followed by a backoff wait;
they never escape :meth:`TelemetryClient.run`.  A session is *healthy*
when it delivered at least one non-empty message or ended with a close
frame from the server (or a hub close that allows reconnecting).  A
healthy session resets the backoff delay to its minimum, an unhealthy one
grows it.

Every suspension point (connect, hub handshake, receive, backoff sleep)
is raced against the stop signal, so :meth:`TelemetryClient.stop` takes
effect promptly.
"""

from __future__ import annotations

import asyncio
import contextlib
import errno
import logging
from collections import deque
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, TypeVar

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException
from websockets.frames import Frame as WireFrame
from websockets.frames import Opcode
from websockets.protocol import State

from wstelem.models.config import ClientSettings
from wstelem.stream.backoff import BackoffPolicy
from wstelem.stream.decoder import (
    BinaryPreview,
    Frame,
    FrameDecoder,
    FrameKind,
    KeyValueSet,
    TelemetrySample,
)
from wstelem.stream.endpoint import Endpoint, Transport
from wstelem.stream.fanout import Fanout
from wstelem.stream.hub import handshake_request, parse_handshake_response, unwrap
from wstelem.stream.log_sink import LogLine, LogSink
from wstelem.stream.state import TelemetryState

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSE_TIMEOUT = 2.0


class ConnectionState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    STOPPED = "stopped"


@dataclass(slots=True)
class Session:
    """Bookkeeping for one connect-to-disconnect lifecycle."""

    number: int
    got_any_data: bool = False
    clean_close: bool = False
    frames: int = 0

    @property
    def healthy(self) -> bool:
        return self.got_any_data or self.clean_close


class _FrameConnection(ClientConnection):
    """Client connection that hands out whole messages as undecoded frames.

    Text messages are not UTF-8 decoded by the transport, so a peer sending
    invalid UTF-8 does not fail the connection; the decoder deals with it.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._kinds: deque[FrameKind] = deque()

    def process_event(self, event: Any) -> None:
        super().process_event(event)
        # Only the first frame of a message carries its kind.
        if isinstance(event, WireFrame) and event.opcode in (Opcode.TEXT, Opcode.BINARY):
            kind = FrameKind.TEXT if event.opcode is Opcode.TEXT else FrameKind.BINARY
            self._kinds.append(kind)

    async def recv_frame(self) -> Frame:
        payload = await self.recv(decode=False)
        return Frame(self._kinds.popleft(), payload)


class _Stopped(Exception):
    """Raised internally when the stop signal wins a race."""


def _socket_errno(exc: BaseException) -> int | None:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, OSError) and current.errno is not None:
            return current.errno
        current = current.__cause__ or current.__context__
    return None


def describe_error(exc: BaseException) -> str:
    """Summarise a connect or transport error for the log.

    Includes the exception class, close codes for closed connections, the
    HTTP status for rejected upgrades and the socket errno when one is
    found anywhere in the exception chain.
    """
    details: list[str] = []
    if isinstance(exc, ConnectionClosed):
        rcvd = exc.rcvd.code if exc.rcvd is not None else "none"
        sent = exc.sent.code if exc.sent is not None else "none"
        details.append(f"close received={rcvd} sent={sent}")
    if isinstance(exc, InvalidStatus):
        details.append(f"HTTP {exc.response.status_code}")
    code = _socket_errno(exc)
    if code is not None:
        name = errno.errorcode.get(code)
        details.append(f"socket error {code} ({name})" if name else f"socket error {code}")

    summary = type(exc).__name__
    if details:
        summary += f" [{', '.join(details)}]"
    message = str(exc)
    return f"{summary}: {message}" if message else summary


class TelemetryClient:
    """Connects to a telemetry WebSocket and keeps reconnecting until stopped.

    Parameters
    ----------
    settings:
        A :class:`ClientSettings`, a bare endpoint URL, or ``None`` for the
        environment-derived defaults.
    telemetry:
        Store for the latest sample.  Created if not given.
    log_sink:
        Scrollback for log lines.  Created from the settings if not given.

    Raises :class:`~wstelem.errors.ConfigError` for an invalid endpoint or
    backoff parameters.
    """

    def __init__(
        self,
        settings: ClientSettings | str | None = None,
        *,
        telemetry: TelemetryState | None = None,
        log_sink: LogSink | None = None,
    ) -> None:
        if settings is None:
            settings = ClientSettings()
        elif isinstance(settings, str):
            settings = ClientSettings(url=settings)
        self._settings = settings
        self._endpoint = Endpoint.parse(settings.url, settings.transport)
        self._policy = BackoffPolicy(
            min_delay_ms=settings.min_delay_ms,
            max_delay_ms=settings.max_delay_ms,
            factor=settings.backoff_factor,
        )
        self._telemetry = telemetry if telemetry is not None else TelemetryState()
        self._log_sink = (
            log_sink
            if log_sink is not None
            else LogSink(max_lines=settings.max_log_lines, view_height=settings.view_height)
        )
        self._decoder = FrameDecoder()
        self._samples: Fanout[TelemetrySample] = Fanout("sample")
        self._logs: Fanout[LogLine] = Fanout("log line")

        self._stop = asyncio.Event()
        self._state = ConnectionState.IDLE
        self._running = False
        self._current_delay_ms = self._policy.reset()
        self._session_count = 0
        self._frame_count = 0
        self._last_session: Session | None = None

    # -- Public accessors -----------------------------------------------------

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def policy(self) -> BackoffPolicy:
        return self._policy

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def current_delay_ms(self) -> int:
        """Delay the next unhealthy session will wait before reconnecting."""
        return self._current_delay_ms

    @property
    def session_count(self) -> int:
        return self._session_count

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def last_session(self) -> Session | None:
        return self._last_session

    @property
    def telemetry(self) -> TelemetryState:
        return self._telemetry

    @property
    def log_sink(self) -> LogSink:
        return self._log_sink

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def on_sample(self, callback: Callable[[TelemetrySample], Awaitable[None]]) -> None:
        """Register an async observer for decoded telemetry samples."""
        self._samples.add(callback)

    def on_log(self, callback: Callable[[LogLine], Awaitable[None]]) -> None:
        """Register an async observer for log lines."""
        self._logs.add(callback)

    def stop(self) -> None:
        """Signal the loop to stop.  Idempotent; cannot be undone."""
        self._stop.set()

    # -- Connection loop ------------------------------------------------------

    async def run(self) -> None:
        """Run the connection loop until :meth:`stop` is called or the task is cancelled."""
        if self._running:
            raise RuntimeError("TelemetryClient.run() is already running")
        self._running = True
        try:
            while not self._stop.is_set():
                session = await self._run_session()
                self._last_session = session
                if self._stop.is_set():
                    break

                if session.healthy:
                    self._current_delay_ms = self._policy.reset()
                delay = self._current_delay_ms
                await self._emit(f"Reconnecting in {delay}ms...")
                if await self._backoff_wait(delay):
                    break
                if not session.healthy:
                    self._current_delay_ms = self._policy.next(delay)
        except _Stopped:
            pass
        finally:
            self._running = False
            self._state = ConnectionState.STOPPED
            await self._emit("Listener stopped.")

    async def _run_session(self) -> Session:
        self._session_count += 1
        session = Session(number=self._session_count)
        self._last_session = session

        self._state = ConnectionState.CONNECTING
        await self._emit(f"Connecting to {self._endpoint}...")
        try:
            ws, pending = await self._until_stopped(self._open())
        except _Stopped:
            raise
        except Exception as exc:
            self._state = ConnectionState.IDLE
            await self._emit(f"Connect failed: {describe_error(exc)}", logging.WARNING)
            return session

        self._state = ConnectionState.OPEN
        await self._emit("Connected")
        try:
            if pending and not await self._handle_message(Frame.from_message(pending), session):
                return session
            while not self._stop.is_set():
                frame = await self._until_stopped(ws.recv_frame())
                if not await self._handle_message(frame, session):
                    break
        except ConnectionClosed as exc:
            if exc.rcvd is not None:
                session.clean_close = True
                await self._emit(f"Server sent close: {exc.rcvd.code} - {exc.rcvd.reason}")
            else:
                await self._emit(f"Receive error: {describe_error(exc)}", logging.WARNING)
        except (WebSocketException, OSError) as exc:
            await self._emit(f"Receive error: {describe_error(exc)}", logging.WARNING)
        finally:
            self._state = ConnectionState.CLOSING
            await self._close_quietly(ws)
            self._state = ConnectionState.IDLE
        return session

    async def _open(self) -> tuple[_FrameConnection, str]:
        """Connect and, for the hub transport, complete the handshake.

        Returns the connection and any hub records that arrived together
        with the handshake response.
        """
        ws = await connect(
            self._endpoint.websocket_uri,
            open_timeout=self._settings.connect_timeout,
            ping_interval=self._settings.keepalive,
            max_size=self._settings.max_message_bytes,
            close_timeout=_CLOSE_TIMEOUT,
            create_connection=_FrameConnection,
        )
        assert isinstance(ws, _FrameConnection)
        if self._endpoint.transport is not Transport.HUB:
            return ws, ""

        try:
            await ws.send(handshake_request())
            response = await asyncio.wait_for(
                ws.recv_frame(), timeout=self._settings.connect_timeout
            )
            return ws, parse_handshake_response(response.payload)
        except BaseException:
            await self._close_quietly(ws)
            raise

    async def _handle_message(self, message: str | bytes, session: Session) -> bool:
        """Dispatch one complete message.  Returns ``False`` on a hub close record."""
        if self._endpoint.transport is not Transport.HUB:
            await self._dispatch(Frame.from_message(message), session)
            return True

        batch = unwrap(message)
        for frame in batch.frames:
            await self._dispatch(frame, session)
        if batch.close is not None:
            reason = batch.close.reason or "no reason"
            if batch.close.allow_reconnect:
                session.clean_close = True
                await self._emit(f"Hub sent close: {reason}")
            else:
                # Keep retrying, but back off as after a failure.
                await self._emit(
                    f"Hub sent close: {reason} (reconnect not allowed)", logging.WARNING
                )
            return False
        return True

    async def _dispatch(self, frame: Frame, session: Session) -> None:
        if frame.payload:
            session.got_any_data = True
        session.frames += 1
        self._frame_count += 1

        event = self._decoder.decode(frame)
        if isinstance(event, TelemetrySample):
            self._telemetry.update(event)
            logger.debug("Telemetry sample: %s", event.raw_line)
            if self._samples.has_observers():
                await self._samples.publish(event)
        elif isinstance(event, KeyValueSet):
            await self._emit(event.raw_line)
            for key, value in event.items():
                await self._emit(f"{key} = {value}")
        elif isinstance(event, BinaryPreview):
            await self._emit(f"Binary preview (hex): {event.hex_preview}")
            if self._settings.binary_base64:
                await self._emit(f"Base64 (first 256 chars): {event.base64_preview}")
        else:
            await self._emit(event.text)

    # -- Helpers --------------------------------------------------------------

    async def _until_stopped(self, aw: Awaitable[T]) -> T:
        """Await *aw*, raising :class:`_Stopped` if the stop signal fires first."""
        if self._stop.is_set():
            if asyncio.iscoroutine(aw):
                aw.close()
            raise _Stopped
        task = asyncio.ensure_future(aw)
        stop_waiter = asyncio.ensure_future(self._stop.wait())
        try:
            await asyncio.wait({task, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            stop_waiter.cancel()

        if task.done():
            return task.result()
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        raise _Stopped

    async def _backoff_wait(self, delay_ms: int) -> bool:
        """Sleep *delay_ms*.  Returns ``True`` if stopped during the wait."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=delay_ms / 1000)
        except TimeoutError:
            return False
        return True

    async def _close_quietly(self, ws: _FrameConnection) -> None:
        if ws.state is not State.OPEN:
            return
        try:
            await ws.close(1000, "Client closing")
        except (WebSocketException, OSError) as exc:
            logger.debug("Ignoring error while closing websocket: %s", exc)

    async def _emit(self, text: str, level: int = logging.INFO) -> None:
        line = self._log_sink.append(LogLine(text=text, level=level))
        logger.log(level, "%s", line.text)
        if self._logs.has_observers():
            await self._logs.publish(line)
