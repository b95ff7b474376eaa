import json
from concurrent.futures import Future

import pytest

from src.messaging.domain.exceptions import TransportError
from src.messaging.domain.outbound_message import TransportKind
from src.messaging.interfaces.api_caller import ApiCaller
from src.messaging.interfaces.streaming_connection import StreamingConnection
from src.messaging.services.transport_selector import TransportSelector


class _Api(ApiCaller):
    def __init__(self):
        self.calls = []

    def call(self, endpoint, payload=None):
        self.calls.append((endpoint, dict(payload or {})))
        future = Future()
        future.set_result({"ok": True})
        return future


class _Connection(StreamingConnection):
    def __init__(self, fail=False):
        self.frames = []
        self.fail = fail

    def open(self):
        return None

    def send_frame(self, frame):
        if self.fail:
            raise ConnectionResetError("socket gone")
        self.frames.append(frame)

    def close(self):
        return None


def _selector(connection=None, defaults=None):
    api = _Api()
    selector = TransportSelector(api, lambda: connection, defaults=defaults or {"token": "xoxb"})
    return api, selector


def test_plain_message_without_connection_uses_api():
    api, selector = _selector()

    result = selector.send("chat.postMessage", {"type": "message", "text": "hi"}).result(timeout=1)

    assert result == {"ok": True}
    assert api.calls == [("chat.postMessage", {"token": "xoxb", "type": "message", "text": "hi"})]


def test_plain_message_with_connection_uses_socket():
    connection = _Connection()
    api, selector = _selector(connection)

    handle = selector.send("chat.postMessage", {"type": "message", "text": "hi", "channel": "C1"}).result(timeout=1)

    assert handle is connection
    assert api.calls == []
    assert json.loads(connection.frames[0]) == {
        "token": "xoxb", "type": "message", "text": "hi", "channel": "C1",
    }


def test_attachments_always_use_api_with_serialized_attachments():
    attachments = [{"title": "Build", "color": "good"}]
    for connection in (None, _Connection()):
        api, selector = _selector(connection)

        selector.send("chat.postMessage", {"type": "message", "attachments": attachments}).result(timeout=1)

        endpoint, body = api.calls[0]
        assert endpoint == "chat.postMessage"
        assert isinstance(body["attachments"], str)
        assert json.loads(body["attachments"]) == attachments
        if connection is not None:
            assert connection.frames == []


def test_non_message_type_uses_api_even_when_connected():
    connection = _Connection()
    api, selector = _selector(connection)

    selector.send("reactions.add", {"name": "thumbsup"}).result(timeout=1)

    assert api.calls[0][0] == "reactions.add"
    assert connection.frames == []


def test_payload_fields_override_defaults():
    api, selector = _selector(defaults={"token": "default", "channel": "C0"})

    selector.send("chat.postMessage", {"channel": "C9"}).result(timeout=1)

    assert api.calls[0][1] == {"token": "default", "channel": "C9"}


def test_write_wraps_string_as_plain_message():
    api, selector = _selector()

    selector.write("hello").result(timeout=1)

    assert api.calls == [("chat.postMessage", {"token": "xoxb", "text": "hello", "type": "message"})]


def test_write_tags_mapping_as_plain_message():
    connection = _Connection()
    _, selector = _selector(connection)

    selector.write({"text": "hi", "type": "typing", "channel": "C1"}).result(timeout=1)

    assert json.loads(connection.frames[0])["type"] == "message"


def test_socket_failure_rejects_with_transport_error():
    _, selector = _selector(_Connection(fail=True))

    future = selector.send("chat.postMessage", {"type": "message", "text": "hi"})

    with pytest.raises(TransportError):
        future.result(timeout=1)


def test_select_reports_transport_kind():
    connection = _Connection()
    assert TransportSelector.select({"type": "message"}, connection) == TransportKind.STREAMING
    assert TransportSelector.select({"type": "message"}, None) == TransportKind.REQUEST_RESPONSE
    assert TransportSelector.select({"type": "message", "attachments": []}, connection) == TransportKind.REQUEST_RESPONSE
