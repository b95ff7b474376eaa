from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ConnectionStatus(Enum):
    ABSENT = "absent"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class ConnectionState:
    """
    Snapshot of the streaming connection owned by one adapter.
    Replaced as a whole on every transition.
    """
    status: ConnectionStatus = ConnectionStatus.ABSENT
    connection: Optional[Any] = None
    identity: Optional[Dict[str, Any]] = None

    @property
    def is_open(self) -> bool:
        return self.status == ConnectionStatus.OPEN and self.connection is not None
