from dataclasses import dataclass
from typing import Any, Callable, Optional


class SlackAdapterError(Exception):
    """Base class for adapter errors."""
    pass


class DecodeError(SlackAdapterError):
    """Inbound message is neither JSON nor form-encoded, or its payload field is not a JSON object."""
    pass


class TransportError(SlackAdapterError):
    """Socket send or network call failed."""
    pass


class ResponseParseError(TransportError):
    """API answered with a body that is not JSON. The raw text is kept on `body`."""

    def __init__(self, body: str):
        super().__init__(body)
        self.body = body


class SessionStartError(SlackAdapterError):
    """Bootstrap call did not return a socket url."""
    pass


@dataclass
class ListenerError(SlackAdapterError):
    """A listener raised while a record was being dispatched."""
    key: str
    listener: Callable[..., Any]
    cause: Optional[BaseException] = None

    def __str__(self) -> str:
        name = getattr(self.listener, "__qualname__", repr(self.listener))
        return f"Listener {name} failed for '{self.key}': {self.cause!r}"
