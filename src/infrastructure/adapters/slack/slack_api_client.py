import json
import logging
import re
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlencode

import requests

from src.messaging.domain.exceptions import ResponseParseError, TransportError
from src.messaging.interfaces.api_caller import ApiCaller

logger = logging.getLogger(__name__)

_ABSOLUTE_URL = re.compile(r"^http", re.IGNORECASE)


class SlackApiClient(ApiCaller):
    """
    HTTP client for Slack Web API methods.
    Posts form-encoded bodies and resolves with the parsed JSON response.
    No retries: every failure surfaces on the returned future.
    """

    def __init__(
            self,
            base_url: str = "https://slack.com/api/",
            timeout: float = 10.0,
            max_workers: int = 4,
            session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout
        self.session = session or requests.Session()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="slack-api")

    def call(self, endpoint: str, payload: Optional[Mapping[str, Any]] = None) -> "Future[Dict[str, Any]]":
        return self._executor.submit(self.post, endpoint, payload)

    def post(self, endpoint: str, payload: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """
        Blocking form of call().
        Raises TransportError on network failure, ResponseParseError on a non-JSON body.
        """
        url = self.resolve_url(endpoint)
        body = urlencode(self.form_fields(payload or {})).encode("utf-8")
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Content-Length": str(len(body)),
        }

        try:
            response = self.session.post(url, data=body, headers=headers, timeout=self.timeout)
            text = response.text
        except requests.RequestException as e:
            logger.error(f"Slack network error on {url}: {e}")
            raise TransportError(f"Request failed: {e}") from e

        try:
            return json.loads(text)
        except ValueError:
            logger.error(f"Slack returned non-JSON body from {url} (HTTP {response.status_code})")
            raise ResponseParseError(text)

    def resolve_url(self, endpoint: str) -> str:
        if _ABSOLUTE_URL.match(endpoint):
            return endpoint
        return self.base_url + endpoint.lstrip("/")

    @staticmethod
    def form_fields(payload: Mapping[str, Any]) -> List[Tuple[str, str]]:
        fields: List[Tuple[str, str]] = []
        for key, value in payload.items():
            if value is None:
                continue
            if isinstance(value, bool):
                value = "true" if value else "false"
            elif isinstance(value, (dict, list, tuple)):
                value = json.dumps(value)
            fields.append((key, str(value)))
        return fields

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)
        self.session.close()
