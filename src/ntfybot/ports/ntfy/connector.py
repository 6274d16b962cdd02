"""
Per-topic streaming connection to an ntfy server.

Each connector runs one daemon thread:
- GET <topic>/json and read newline-delimited JSON records
- push `message` events to the shared sink, drop keepalive/open events
- on any failure (or clean end of stream) wait `retry_delay`, reconnect
- exit only when stopped
"""

from __future__ import annotations

import logging
import queue
import socket
import threading
from typing import Any, Callable, Optional

import requests

from ...contracts.v1 import NotificationMessage


logger = logging.getLogger("ntfybot.connector")

RETRY_DELAY = 5.0


class StreamEnded(Exception):
    """The server closed the stream without an error."""


def _response_socket(resp: Any) -> Any:
    conn = getattr(getattr(resp, "raw", None), "connection", None)
    return getattr(conn, "sock", None)


def _extend_read_timeout(resp: Any, timeout: Optional[float]) -> None:
    """Switch an established stream from the header timeout to the read timeout."""
    sock = _response_socket(resp)
    if sock is not None:
        try:
            sock.settimeout(timeout)
        except OSError:
            pass


def _abort_response(resp: Any) -> None:
    """Unblock a thread reading `resp` from another thread."""
    # Closing the socket does not wake a blocked recv(); shutdown does.
    sock = _response_socket(resp)
    if sock is not None:
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
    try:
        resp.close()
    except Exception:
        pass


class StreamConnector:
    """Long-lived reader for one topic's `/json` stream."""

    def __init__(
        self,
        topic: str,
        sink: "queue.Queue[Optional[NotificationMessage]]",
        *,
        retry_delay: float = RETRY_DELAY,
        connect_timeout: float = 5.0,
        read_timeout: Optional[float] = 60.0,
        session_factory: Callable[[], Any] = requests.Session,
    ):
        self.topic = topic
        self.sink = sink
        self.retry_delay = retry_delay
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self._session_factory = session_factory

        self._cancel = threading.Event()
        self._lock = threading.Lock()
        self._response: Any = None
        self._thread: Optional[threading.Thread] = None
        self.attempts = 0

    @property
    def stream_url(self) -> str:
        return f"{self.topic}/json"

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def start(self) -> "StreamConnector":
        if self._thread is not None:
            return self
        self._thread = threading.Thread(
            target=self._run,
            name=f"ntfy-connector:{self.topic}",
            daemon=True,
        )
        self._thread.start()
        return self

    def stop(self) -> None:
        """Request cancellation; interrupts an in-flight read and the retry wait."""
        self._cancel.set()
        with self._lock:
            resp = self._response
        if resp is not None:
            _abort_response(resp)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the connector thread. Returns True if it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        extra = {"topic": self.topic}
        session = self._session_factory()
        try:
            while not self._cancel.is_set():
                self.attempts += 1
                try:
                    self._connect_once(session)
                except Exception as e:
                    if self._cancel.is_set():
                        break
                    logger.warning(
                        f"[connect] connection to {self.topic} failed: {e}",
                        extra={**extra, "attempt": self.attempts},
                    )
                if self._cancel.wait(self.retry_delay):
                    break
        finally:
            try:
                session.close()
            except Exception:
                pass
            logger.info(f"[connect] connection to {self.topic} exited", extra=extra)

    def _connect_once(self, session: Any) -> None:
        logger.debug(f"[connect] opening {self.stream_url}", extra={"topic": self.topic})
        # No response object exists to abort until the headers arrive, so
        # the header wait is bounded by connect_timeout, not read_timeout.
        resp = session.get(
            self.stream_url,
            stream=True,
            timeout=(self.connect_timeout, self.connect_timeout),
        )
        with self._lock:
            self._response = resp
        try:
            # stop() may have run between get() and registering the response.
            if self._cancel.is_set():
                return
            resp.raise_for_status()
            _extend_read_timeout(resp, self.read_timeout)
            # Records are split on b"\n" only; str.splitlines() would also
            # break on U+0085 and U+2028 inside a JSON string.
            for raw in resp.iter_lines(delimiter=b"\n"):
                if self._cancel.is_set():
                    return
                line = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
                if not line or not line.strip():
                    continue
                # A bad line drops the whole connection; the retry loop reconnects.
                msg = NotificationMessage.from_json_line(line)
                if not msg.is_message:
                    logger.debug(f"[stream] {msg.event} on {self.topic}", extra={"topic": self.topic})
                    continue
                with self._lock:
                    if self._cancel.is_set():
                        return
                    self.sink.put(msg.model_copy(update={"topic": self.topic}))
            if not self._cancel.is_set():
                raise StreamEnded("stream closed by server")
        finally:
            with self._lock:
                self._response = None
            resp.close()
