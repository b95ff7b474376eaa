from typing import Any, Dict

# Normalized inbound message. Keys used for classification.
CanonicalRecord = Dict[str, Any]

EVENT_KEY = "event"
COMMAND_KEY = "command"
TYPE_KEY = "type"
TRIGGER_WORD_KEY = "trigger_word"
PAYLOAD_KEY = "payload"
CALLBACK_ID_KEY = "callback_id"
