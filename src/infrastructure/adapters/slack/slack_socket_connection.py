import logging
import threading
from contextlib import ExitStack
from typing import Optional

from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.sync.client import ClientConnection, connect

from src.messaging.domain.exceptions import TransportError
from src.messaging.interfaces.streaming_connection import (
    LifecycleCallback,
    MessageCallback,
    StreamingConnection,
)

logger = logging.getLogger(__name__)


class SlackSocketConnection(StreamingConnection):
    """
    RTM websocket. Inbound text frames are handed to the message callback
    from a daemon reader thread; the close callback fires exactly once,
    from close() or from the reader when the server goes away.
    """

    def __init__(
            self,
            url: str,
            on_message: MessageCallback,
            on_open: LifecycleCallback,
            on_close: LifecycleCallback,
            open_timeout: float = 10.0,
    ):
        self.url = url
        self.open_timeout = open_timeout
        self._on_message = on_message
        self._on_open = on_open
        self._on_close = on_close

        self._ws: Optional[ClientConnection] = None
        self._exit_stack = ExitStack()
        self._reader: Optional[threading.Thread] = None
        self._closed = False
        self._close_lock = threading.Lock()

    def open(self) -> None:
        try:
            self._ws = self._exit_stack.enter_context(connect(self.url, open_timeout=self.open_timeout))
        except (WebSocketException, OSError, TimeoutError) as e:
            raise TransportError(f"Could not open socket: {e}") from e

        self._on_open()

        self._reader = threading.Thread(target=self._read_loop, name="slack-socket-reader", daemon=True)
        self._reader.start()

    def send_frame(self, frame: str) -> None:
        if self._ws is None or self._closed:
            raise TransportError("Socket is not open")
        try:
            self._ws.send(frame)
        except (ConnectionClosed, OSError) as e:
            raise TransportError(f"Socket send failed: {e}") from e

    def close(self) -> None:
        # Leaves the connect() context, which runs the closing handshake
        self._exit_stack.close()
        self._fire_close()

    def _read_loop(self) -> None:
        try:
            for message in self._ws:
                if isinstance(message, bytes):
                    message = message.decode("utf-8", errors="replace")
                try:
                    self._on_message(message)
                except Exception:
                    logger.exception("Unhandled error while digesting socket frame")
        except ConnectionClosed as e:
            logger.info(f"Socket closed: {e}")
        finally:
            self._fire_close()

    def _fire_close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._on_close()


def socket_connection_factory(open_timeout: float = 10.0):
    def factory(url, on_message, on_open, on_close) -> SlackSocketConnection:
        return SlackSocketConnection(url, on_message, on_open, on_close, open_timeout=open_timeout)
    return factory
