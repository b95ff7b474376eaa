import dataclasses
import logging
import threading
from concurrent.futures import Future
from threading import Lock
from typing import Any, Callable, Dict, Mapping, Optional

from src.infrastructure.observability.structured_runtime_logger import StructuredRuntimeLogger
from src.messaging.domain.connection_state import ConnectionState, ConnectionStatus
from src.messaging.domain.exceptions import DecodeError, SessionStartError, TransportError
from src.messaging.interfaces.streaming_connection import ConnectionFactory, StreamingConnection

logger = logging.getLogger(__name__)

SendFunc = Callable[[str, Optional[Mapping[str, Any]]], Future]
DigestFunc = Callable[[str], Any]


class SessionLifecycle:
    """
    Owns the streaming connection of one adapter.

    State machine: ABSENT -> CONNECTING -> OPEN -> CLOSED.
    Only the open/close handlers and session start write the state; every
    transition swaps in a new ConnectionState under the lock.
    """

    def __init__(
            self,
            send: SendFunc,
            digest: DigestFunc,
            connection_factory: ConnectionFactory,
            session_endpoint: str = "rtm.start",
            runtime_logger: Optional[StructuredRuntimeLogger] = None,
    ):
        self._send = send
        self._digest = digest
        self._connection_factory = connection_factory
        self.session_endpoint = session_endpoint
        self.runtime_logger = runtime_logger or StructuredRuntimeLogger()

        self._state = ConnectionState()
        self._lock = Lock()

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def identity(self) -> Optional[Dict[str, Any]]:
        return self.state.identity

    def current_connection(self) -> Optional[StreamingConnection]:
        with self._lock:
            return self._state.connection if self._state.is_open else None

    def start_session(self, options: Optional[Mapping[str, Any]] = None) -> Future:
        """
        Issues the bootstrap call and opens a socket to the returned url.
        The future resolves with the connection once it is open.
        """
        result: Future = Future()

        with self._lock:
            if self._state.status != ConnectionStatus.OPEN:
                self._state = dataclasses.replace(self._state, status=ConnectionStatus.CONNECTING, connection=None)

        bootstrap = self._send(self.session_endpoint, options)
        bootstrap.add_done_callback(lambda f: self._on_bootstrap(f, result))
        return result

    def close(self) -> None:
        connection = self.current_connection()
        if connection is not None:
            connection.close()

    def _on_bootstrap(self, bootstrap: Future, result: Future) -> None:
        try:
            data = bootstrap.result()
        except Exception as e:
            logger.error(f"Session bootstrap failed: {e!r}")
            self._abort_connecting()
            result.set_exception(e)
            return

        url = data.get("url") if isinstance(data, dict) else None
        if not url:
            reason = data.get("error", "no socket url") if isinstance(data, dict) else "no socket url"
            self._abort_connecting()
            result.set_exception(SessionStartError(f"Session start rejected: {reason}"))
            return

        with self._lock:
            self._state = dataclasses.replace(self._state, identity=data.get("self"))

        # Connect off the callback thread; open() blocks until the handshake completes
        threading.Thread(
            target=self._connect,
            args=(url, result),
            name="slack-session-start",
            daemon=True,
        ).start()

    def _connect(self, url: str, result: Future) -> None:
        connection: Optional[StreamingConnection] = None

        def on_open() -> None:
            self._on_open(connection)

        def on_close() -> None:
            self._on_close(connection)

        try:
            connection = self._connection_factory(url, self._on_message, on_open, on_close)
            connection.open()
        except Exception as e:
            logger.error(f"Socket connect to {url} failed: {e!r}")
            self._abort_connecting()
            error = e if isinstance(e, TransportError) else TransportError(f"Socket connect failed: {e}")
            result.set_exception(error)
            return

        if self.current_connection() is connection:
            result.set_result(connection)
        else:
            self._abort_connecting()
            result.set_exception(TransportError("Socket closed before the session was ready"))

    def _on_open(self, connection: StreamingConnection) -> None:
        with self._lock:
            previous = self._state.connection if self._state.is_open else None
            self._state = ConnectionState(
                status=ConnectionStatus.OPEN,
                connection=connection,
                identity=self._state.identity,
            )

        self.runtime_logger.emit("SESSION_OPEN", user=(self.identity or {}).get("id"))

        if previous is not None and previous is not connection:
            previous.close()

    def _on_close(self, connection: StreamingConnection) -> None:
        with self._lock:
            if self._state.connection is not connection:
                return
            self._state = ConnectionState(
                status=ConnectionStatus.CLOSED,
                connection=None,
                identity=self._state.identity,
            )

        self.runtime_logger.emit("SESSION_CLOSED")

    def _on_message(self, frame: str) -> None:
        try:
            self._digest(frame)
        except DecodeError as e:
            logger.warning(f"Dropping undecodable socket frame: {e}")
            self.runtime_logger.error("DIGEST_DECODE_FAILED", source="socket", error=str(e))

    def _abort_connecting(self) -> None:
        with self._lock:
            if self._state.status == ConnectionStatus.CONNECTING:
                self._state = dataclasses.replace(self._state, status=ConnectionStatus.ABSENT, connection=None)
