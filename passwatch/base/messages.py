from typing import TypedDict, Union, Dict, Any
from datetime import datetime, timezone
from enum import Enum


class MessageType(Enum):
    TELEMETRY = "telemetry"
    STATUS = "status"


class TelemetryPayload(TypedDict):
    telemetryType: str
    parameters: Dict[str, Any]


class Message(TypedDict):
    messageType: str
    timestamp: str
    source: str
    version: str
    payload: TelemetryPayload


class MessageGenerator:
    def __init__(self, source: str, version: str):
        self.source = source
        self.version = version

    def _get_timestamp(self) -> str:
        return datetime.now(tz=timezone.utc).isoformat()

    def generate_message(self, message_type: MessageType, payload: TelemetryPayload) -> Message:
        message_schema: Message = {
            "messageType": message_type.value,
            "timestamp": self._get_timestamp(),
            "source": self.source,
            "version": self.version,
            "payload": payload,
        }
        return message_schema

    def generate_telemetry(self, telemetry_type: str, parameters: Dict[str, Union[str, int, float, None]] = None) -> Message:
        payload: TelemetryPayload = {"telemetryType": telemetry_type, "parameters": parameters or {}}
        return self.generate_message(MessageType.TELEMETRY, payload)

    def generate_status(self, status: str, parameters: Dict[str, Union[str, int, float, None]] = None) -> Message:
        payload: TelemetryPayload = {"telemetryType": status, "parameters": parameters or {}}
        return self.generate_message(MessageType.STATUS, payload)
