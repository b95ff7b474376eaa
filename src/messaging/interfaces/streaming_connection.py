from abc import ABC, abstractmethod
from typing import Callable

MessageCallback = Callable[[str], None]
LifecycleCallback = Callable[[], None]


class StreamingConnection(ABC):
    """
    Persistent bidirectional connection carrying JSON text frames.
    """

    @abstractmethod
    def open(self) -> None:
        """Blocks until the connection is open. Fires the open callback."""
        pass

    @abstractmethod
    def send_frame(self, frame: str) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


# (url, on_message, on_open, on_close) -> connection, not yet opened
ConnectionFactory = Callable[[str, MessageCallback, LifecycleCallback, LifecycleCallback], StreamingConnection]
