import json
from typing import Any, Dict, List, Mapping, Union
from urllib.parse import parse_qsl

from src.messaging.domain.canonical_record import CanonicalRecord, PAYLOAD_KEY
from src.messaging.domain.exceptions import DecodeError

RawMessage = Union[str, bytes, Mapping[str, Any]]


class PayloadDecoder:
    """
    Pure service. Turns a raw inbound message (mapping, JSON text or
    form-encoded text) into a canonical record.
    """

    def decode(self, raw: RawMessage) -> CanonicalRecord:
        if isinstance(raw, Mapping):
            record = dict(raw)
        elif isinstance(raw, (str, bytes, bytearray)):
            record = self._parse_text(raw)
        else:
            raise DecodeError(f"Unsupported message type: {type(raw).__name__}")

        payload = record.get(PAYLOAD_KEY)
        if isinstance(payload, str):
            record[PAYLOAD_KEY] = self._parse_payload(payload)

        return record

    def _parse_text(self, raw: Union[str, bytes, bytearray]) -> CanonicalRecord:
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = bytes(raw).decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodeError(f"Message is not valid UTF-8: {e}") from e

        if not raw.strip():
            raise DecodeError("Empty message")

        # 1. JSON object
        try:
            value = json.loads(raw)
        except ValueError:
            value = None
        if isinstance(value, dict):
            return value

        # 2. Form encoding
        try:
            pairs = parse_qsl(raw, keep_blank_values=True, strict_parsing=True)
        except ValueError as e:
            raise DecodeError(f"Message is neither JSON nor form-encoded: {e}") from e

        return self._collect_pairs(pairs)

    @staticmethod
    def _collect_pairs(pairs: List[tuple]) -> Dict[str, Any]:
        # Repeated keys become lists
        fields: Dict[str, Any] = {}
        for key, value in pairs:
            if key not in fields:
                fields[key] = value
            elif isinstance(fields[key], list):
                fields[key].append(value)
            else:
                fields[key] = [fields[key], value]
        return fields

    @staticmethod
    def _parse_payload(payload: str) -> Dict[str, Any]:
        try:
            value = json.loads(payload)
        except ValueError as e:
            raise DecodeError(f"Invalid payload field: {e}") from e

        if not isinstance(value, dict):
            raise DecodeError(f"Payload field must be a JSON object, got {type(value).__name__}")
        return value
