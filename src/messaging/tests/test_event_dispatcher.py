import json
import logging
import threading
import time

import pytest

from src.messaging.domain.exceptions import DecodeError
from src.messaging.services.event_dispatcher import EventDispatcher
from src.messaging.services.listener_registry import ListenerRegistry, WILDCARD


class _Recorder:
    def __init__(self, name, log):
        self.name = name
        self.log = log
        self.records = []

    def __call__(self, record):
        self.records.append(record)
        self.log.append(self.name)


def _dispatcher():
    registry = ListenerRegistry()
    return registry, EventDispatcher(registry)


def test_wildcard_receives_every_record():
    registry, dispatcher = _dispatcher()
    log = []
    wildcard = _Recorder("*", log)
    registry.register(WILDCARD, wildcard)

    dispatcher.digest({"unrelated": True})
    dispatcher.digest('{"type": "hello"}')

    assert len(wildcard.records) == 2


def test_command_and_event_both_fire_once():
    registry, dispatcher = _dispatcher()
    log = []
    command = _Recorder("/foo", log)
    event = _Recorder("bar", log)
    wildcard = _Recorder("*", log)
    registry.register("/foo", command).register("bar", event).register(WILDCARD, wildcard)

    record = dispatcher.digest({"command": "/foo", "event": {"type": "bar"}})

    assert command.records == [record]
    assert event.records == [record]
    assert wildcard.records == [record]


def test_callback_registered_under_two_keys_fires_per_match():
    registry, dispatcher = _dispatcher()
    log = []
    handler = _Recorder("h", log)
    registry.register(["a", "b"], handler)

    dispatcher.digest({"type": "a"})
    dispatcher.digest({"command": "b"})
    assert len(handler.records) == 2

    dispatcher.digest({"type": "a", "command": "b"})
    assert len(handler.records) == 4


def test_interactive_payload_routes_by_callback_id():
    registry, dispatcher = _dispatcher()
    log = []
    button = _Recorder("approve", log)
    registry.register("approve", button)

    record = dispatcher.digest({"payload": json.dumps({"callback_id": "approve"})})

    assert button.records == [record]
    assert record["payload"] == {"callback_id": "approve"}


def test_trigger_word_and_type_route_independently():
    registry, dispatcher = _dispatcher()
    log = []
    registry.register("deploy", _Recorder("trigger", log))
    registry.register("message", _Recorder("type", log))

    dispatcher.digest("trigger_word=deploy&text=deploy+now")
    dispatcher.digest({"type": "message", "text": "hi"})

    assert log == ["trigger", "type"]


def test_classify_lists_matched_keys():
    _, dispatcher = _dispatcher()
    record = {
        "payload": {"callback_id": "cb"},
        "type": "t",
        "command": "/c",
        "event": {"type": "e"},
        "trigger_word": "tw",
    }

    assert dispatcher.classify(record) == [WILDCARD, "cb", "t", "/c", "e", "tw"]
    assert dispatcher.classify({"event": {"text": "no type"}}) == [WILDCARD]


def test_listeners_for_same_key_fire_in_registration_order():
    registry, dispatcher = _dispatcher()
    log = []
    for name in ("first", "second", "third"):
        registry.register("message", _Recorder(name, log))

    dispatcher.digest({"type": "message"})

    assert log == ["first", "second", "third"]


def test_failing_listener_does_not_block_others(caplog):
    registry, dispatcher = _dispatcher()
    log = []

    def broken(record):
        raise RuntimeError("boom")

    after = _Recorder("after", log)
    other_key = _Recorder("other", log)
    registry.register("message", broken).register("message", after)
    registry.register("/cmd", other_key)

    with caplog.at_level(logging.ERROR):
        record = dispatcher.digest({"type": "message", "command": "/cmd"})

    assert after.records == [record]
    assert other_key.records == [record]
    assert any("boom" in message for message in caplog.messages)


def test_digest_returns_record_without_listeners():
    _, dispatcher = _dispatcher()
    assert dispatcher.digest('{"type": "pong"}') == {"type": "pong"}


def test_malformed_payload_fails_digestion_before_any_listener():
    registry, dispatcher = _dispatcher()
    log = []
    wildcard = _Recorder("*", log)
    registry.register(WILDCARD, wildcard)

    with pytest.raises(DecodeError):
        dispatcher.digest({"payload": "{not json"})

    assert wildcard.records == []


def test_listener_may_digest_reentrantly():
    registry, dispatcher = _dispatcher()
    log = []
    inner = _Recorder("inner", log)

    def outer(record):
        log.append("outer")
        dispatcher.digest({"type": "inner"})

    registry.register("outer", outer).register("inner", inner)

    dispatcher.digest({"type": "outer"})

    assert log == ["outer", "inner"]


def test_concurrent_digests_do_not_interleave_fan_out():
    registry, dispatcher = _dispatcher()
    log = []
    both_started = threading.Barrier(2)

    def slow(record):
        log.append(("start", record["id"]))
        time.sleep(0.05)
        log.append(("end", record["id"]))

    registry.register(WILDCARD, slow).register("message", slow)

    def worker(record_id):
        both_started.wait(timeout=2)
        dispatcher.digest({"type": "message", "id": record_id})

    threads = [threading.Thread(target=worker, args=(record_id,)) for record_id in ("a", "b")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert len(log) == 8
    first, second = log[:4], log[4:]
    assert {record_id for _, record_id in first} != {record_id for _, record_id in second}
    assert len({record_id for _, record_id in first}) == 1
    assert len({record_id for _, record_id in second}) == 1
