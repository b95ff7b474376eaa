import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class StructuredRuntimeLogger:
    """
    JSON-lines logger for digestion, session and webhook paths.
    Used as the adapter's diagnostic hook.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, component: str = "slack-adapter"):
        self._logger = logger or logging.getLogger("runtime")
        self._component = component

    def emit(self, event_type: str, level: int = logging.INFO, **fields: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        record: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "component": self._component,
            "event_type": event_type,
        }
        record.update(fields)
        self._logger.log(level, json.dumps(record, default=str, ensure_ascii=True))

    def error(self, event_type: str, **fields: Any) -> None:
        self.emit(event_type, level=logging.ERROR, **fields)
