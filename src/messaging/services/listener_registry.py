from threading import Lock
from typing import Any, Callable, Dict, Iterable, List, Tuple, Union

from src.messaging.domain.canonical_record import CanonicalRecord

Listener = Callable[[CanonicalRecord], Any]

WILDCARD = "*"


class ListenerRegistry:
    """
    Maps event keys to ordered sets of listeners.
    One call binds one listener under several keys.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}
        self._lock = Lock()

    def register(self, keys: Union[str, Iterable[str]], callback: Listener) -> "ListenerRegistry":
        if not callable(callback):
            raise TypeError(f"Listener must be callable, got {type(callback).__name__}")

        names = self._normalize_keys(keys)

        with self._lock:
            for name in names:
                bound = self._listeners.setdefault(name, [])
                if callback not in bound:
                    bound.append(callback)

        return self

    def listener(self, *keys: str) -> Callable[[Listener], Listener]:
        """
        Decorator form of register.

        Usage:
            @registry.listener("/deploy", "deploy_button")
            def on_deploy(record): ...
        """
        def decorator(func: Listener) -> Listener:
            self.register(keys, func)
            return func
        return decorator

    def listeners(self, key: str) -> Tuple[Listener, ...]:
        with self._lock:
            return tuple(self._listeners.get(key, ()))

    def keys(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._listeners)

    @staticmethod
    def _normalize_keys(keys: Union[str, Iterable[str]]) -> List[str]:
        if isinstance(keys, str):
            keys = [keys]
        names = list(keys)
        if not names:
            raise ValueError("At least one event key is required")
        for name in names:
            if not isinstance(name, str) or not name:
                raise ValueError(f"Invalid event key: {name!r}")
        return names
