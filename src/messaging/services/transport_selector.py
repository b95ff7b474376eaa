import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Mapping, Optional, Union

from src.messaging.domain.exceptions import TransportError
from src.messaging.domain.outbound_message import (
    ATTACHMENTS_KEY,
    PLAIN_MESSAGE_TYPE,
    OutboundMessage,
    TransportKind,
    to_plain_message,
)
from src.messaging.interfaces.api_caller import ApiCaller
from src.messaging.interfaces.streaming_connection import StreamingConnection

logger = logging.getLogger(__name__)

ConnectionSource = Callable[[], Optional[StreamingConnection]]


class TransportSelector:
    """
    Sends outbound messages over the live socket when it can carry them,
    and over the request/response API otherwise.

    Precedence is strict: a plain message without attachments goes over an
    open socket; everything else goes to the API with attachments encoded
    as a JSON string.
    """

    def __init__(
            self,
            api: ApiCaller,
            connection_source: ConnectionSource,
            defaults: Optional[Mapping[str, Any]] = None,
            post_endpoint: str = "chat.postMessage",
            executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.api = api
        self.connection_source = connection_source
        self.defaults: Dict[str, Any] = dict(defaults or {})
        self.post_endpoint = post_endpoint
        # Single thread keeps socket frames in send order
        self._socket_executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="slack-socket-send"
        )

    def send(self, endpoint: str, payload: Optional[Mapping[str, Any]] = None) -> Future:
        args: OutboundMessage = {**self.defaults, **(payload or {})}
        connection = self.connection_source()

        kind = self.select(args, connection)
        logger.debug(f"Sending to {endpoint} via {kind.value}")

        if kind == TransportKind.STREAMING:
            return self._send_frame(connection, args)

        if args.get(ATTACHMENTS_KEY) is not None:
            args[ATTACHMENTS_KEY] = json.dumps(args[ATTACHMENTS_KEY])

        return self.api.call(endpoint, args)

    def write(self, message: Union[str, Mapping[str, Any]]) -> Future:
        return self.send(self.post_endpoint, to_plain_message(message))

    @staticmethod
    def select(args: Mapping[str, Any], connection: Optional[StreamingConnection]) -> TransportKind:
        if (
                connection is not None
                and args.get("type") == PLAIN_MESSAGE_TYPE
                and args.get(ATTACHMENTS_KEY) is None
        ):
            return TransportKind.STREAMING
        return TransportKind.REQUEST_RESPONSE

    def shutdown(self) -> None:
        self._socket_executor.shutdown(wait=False)

    def _send_frame(self, connection: StreamingConnection, args: OutboundMessage) -> Future:
        frame = json.dumps(args)

        def _transmit() -> StreamingConnection:
            try:
                connection.send_frame(frame)
            except TransportError:
                raise
            except Exception as e:
                raise TransportError(f"Socket send failed: {e}") from e
            return connection

        return self._socket_executor.submit(_transmit)
