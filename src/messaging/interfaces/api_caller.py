from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Any, Dict, Mapping, Optional


class ApiCaller(ABC):
    """
    Stateless request/response transport.
    The returned future resolves with the parsed JSON body.
    """

    @abstractmethod
    def call(self, endpoint: str, payload: Optional[Mapping[str, Any]] = None) -> "Future[Dict[str, Any]]":
        pass
