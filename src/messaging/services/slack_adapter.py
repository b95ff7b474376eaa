import logging
from concurrent.futures import Future
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union

from src.config.settings import Settings, settings as default_settings
from src.infrastructure.adapters.slack.slack_api_client import SlackApiClient
from src.infrastructure.adapters.slack.slack_socket_connection import socket_connection_factory
from src.infrastructure.inbound.slack.slack_webhook_server import run_webhook_server
from src.infrastructure.observability.structured_runtime_logger import StructuredRuntimeLogger
from src.messaging.domain.canonical_record import CanonicalRecord
from src.messaging.interfaces.api_caller import ApiCaller
from src.messaging.interfaces.streaming_connection import ConnectionFactory
from src.messaging.services.event_dispatcher import EventDispatcher
from src.messaging.services.listener_registry import Listener, ListenerRegistry
from src.messaging.services.payload_decoder import RawMessage
from src.messaging.services.session_lifecycle import SessionLifecycle
from src.messaging.services.transport_selector import TransportSelector

logger = logging.getLogger(__name__)


class SlackAdapter:
    """
    One Slack adapter: its own listeners, defaults and streaming connection.

    Usage:
        slack = SlackAdapter({"token": "xoxb-..."})
        slack.on(["/deploy", "deploy_button"], handle_deploy)
        slack.start_session().result(timeout=10)
        slack.write("deploying")
    """

    def __init__(
            self,
            defaults: Optional[Mapping[str, Any]] = None,
            api: Optional[ApiCaller] = None,
            connection_factory: Optional[ConnectionFactory] = None,
            settings: Optional[Settings] = None,
            runtime_logger: Optional[StructuredRuntimeLogger] = None,
    ):
        self.settings = settings or default_settings
        self.defaults: Dict[str, Any] = dict(defaults or {})
        self.runtime_logger = runtime_logger or StructuredRuntimeLogger()

        self.api = api or SlackApiClient(
            base_url=self.settings.SLACK_API_BASE_URL,
            timeout=self.settings.REQUEST_TIMEOUT_SECONDS,
            max_workers=self.settings.SEND_WORKERS,
        )

        self.registry = ListenerRegistry()
        self.dispatcher = EventDispatcher(self.registry, runtime_logger=self.runtime_logger)
        self.session = SessionLifecycle(
            send=self.send,
            digest=self.digest,
            connection_factory=connection_factory or socket_connection_factory(
                self.settings.SOCKET_OPEN_TIMEOUT_SECONDS
            ),
            session_endpoint=self.settings.SLACK_SESSION_ENDPOINT,
            runtime_logger=self.runtime_logger,
        )
        self.sender = TransportSelector(
            api=self.api,
            connection_source=self.session.current_connection,
            defaults=self.defaults,
            post_endpoint=self.settings.SLACK_POST_ENDPOINT,
        )

    def instance(self, defaults: Optional[Mapping[str, Any]] = None) -> "SlackAdapter":
        """New independent adapter sharing only the settings."""
        return type(self)(defaults, settings=self.settings, runtime_logger=self.runtime_logger)

    # Inbound

    def on(self, keys: Union[str, Iterable[str]], callback: Listener) -> "SlackAdapter":
        self.registry.register(keys, callback)
        return self

    def listener(self, *keys: str) -> Callable[[Listener], Listener]:
        return self.registry.listener(*keys)

    def digest(self, message: RawMessage) -> CanonicalRecord:
        return self.dispatcher.digest(message)

    # Outbound

    def send(self, endpoint: str, payload: Optional[Mapping[str, Any]] = None) -> Future:
        return self.sender.send(endpoint, payload)

    def write(self, message: Union[str, Mapping[str, Any]]) -> Future:
        return self.sender.write(message)

    # Session

    def start_session(self, options: Optional[Mapping[str, Any]] = None) -> Future:
        return self.session.start_session(options)

    def close(self) -> None:
        self.session.close()

    def shutdown(self) -> None:
        """Closes the socket and releases the send threads and HTTP session."""
        self.close()
        self.sender.shutdown()
        api_shutdown = getattr(self.api, "shutdown", None)
        if callable(api_shutdown):
            api_shutdown()

    @property
    def cache(self) -> Dict[str, Any]:
        return self.session.identity or {}

    @property
    def is_connected(self) -> bool:
        return self.session.current_connection() is not None

    def listen(self, port: Optional[int] = None, path: Optional[str] = None, host: Optional[str] = None) -> None:
        """Serve the webhook listener. Blocks until the server stops."""
        run_webhook_server(
            self,
            port=port or self.settings.WEBHOOK_PORT,
            path=path or self.settings.WEBHOOK_PATH,
            host=host or self.settings.WEBHOOK_HOST,
        )
