# backend/core/state.py

from enum import Enum


class ConnectionStatus(str, Enum):
    READY = "ready"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


# Human readable labels the room UI renders verbatim.
CONNECTION_STATUS_LABELS = {
    ConnectionStatus.READY: "Ready to connect",
    ConnectionStatus.CONNECTING: "Connecting to interviewer...",
    ConnectionStatus.CONNECTED: "Connected with interviewer",
    ConnectionStatus.DISCONNECTED: "Disconnected",
    ConnectionStatus.ERROR: "Connection error",
}
