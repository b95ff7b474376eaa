import logging
from threading import RLock
from typing import Any, List, Optional

from src.infrastructure.observability.structured_runtime_logger import StructuredRuntimeLogger
from src.messaging.domain.canonical_record import (
    CanonicalRecord,
    CALLBACK_ID_KEY,
    COMMAND_KEY,
    EVENT_KEY,
    PAYLOAD_KEY,
    TRIGGER_WORD_KEY,
    TYPE_KEY,
)
from src.messaging.domain.exceptions import ListenerError
from src.messaging.services.listener_registry import ListenerRegistry, WILDCARD
from src.messaging.services.payload_decoder import PayloadDecoder, RawMessage

logger = logging.getLogger(__name__)


class EventDispatcher:
    """
    Decodes inbound messages and notifies every listener group whose key
    the record matches. Checks are independent: a record carrying both a
    command and an event fires both groups, plus the wildcard listeners.
    """

    def __init__(
            self,
            registry: ListenerRegistry,
            decoder: Optional[PayloadDecoder] = None,
            runtime_logger: Optional[StructuredRuntimeLogger] = None,
    ):
        self.registry = registry
        self.decoder = decoder or PayloadDecoder()
        self.runtime_logger = runtime_logger or StructuredRuntimeLogger()
        # Fan-out of one record never interleaves with another digestion
        self._dispatch_lock = RLock()

    def digest(self, raw: RawMessage) -> CanonicalRecord:
        record = self.decoder.decode(raw)

        with self._dispatch_lock:
            for key in self.classify(record):
                self._notify(key, record)

        return record

    def classify(self, record: CanonicalRecord) -> List[str]:
        """Event keys matched by the record, wildcard first."""
        keys = [WILDCARD]

        # 1. Interactive callbacks by callback_id
        payload = record.get(PAYLOAD_KEY)
        if isinstance(payload, dict):
            self._append_key(keys, payload.get(CALLBACK_ID_KEY))

        # 2. RTM messages by type
        self._append_key(keys, record.get(TYPE_KEY))

        # 3. Slash commands
        self._append_key(keys, record.get(COMMAND_KEY))

        # 4. Events API by event type
        event = record.get(EVENT_KEY)
        if isinstance(event, dict):
            self._append_key(keys, event.get(TYPE_KEY))

        # 5. Outgoing webhooks by trigger word
        self._append_key(keys, record.get(TRIGGER_WORD_KEY))

        return keys

    def _notify(self, key: str, record: CanonicalRecord) -> None:
        for listener in self.registry.listeners(key):
            try:
                listener(record)
            except Exception as e:
                error = ListenerError(key=key, listener=listener, cause=e)
                logger.error(str(error), exc_info=e)
                self.runtime_logger.error(
                    "LISTENER_FAILED",
                    key=key,
                    listener=getattr(listener, "__qualname__", repr(listener)),
                    error=repr(e),
                )

    @staticmethod
    def _append_key(keys: List[str], value: Any) -> None:
        if isinstance(value, str) and value:
            keys.append(value)
