from enum import Enum
from typing import Any, Dict, Mapping, Union

PLAIN_MESSAGE_TYPE = "message"
ATTACHMENTS_KEY = "attachments"

OutboundMessage = Dict[str, Any]


class TransportKind(Enum):
    STREAMING = "streaming"
    REQUEST_RESPONSE = "request_response"


def to_plain_message(message: Union[str, Mapping[str, Any]]) -> OutboundMessage:
    """
    Wraps a bare string into {"text": ...} and tags it as a plain message.
    """
    if isinstance(message, str):
        message = {"text": message}
    payload = dict(message)
    payload["type"] = PLAIN_MESSAGE_TYPE
    return payload
