"""Domain entities for the teleprompter relay."""

from .display_settings import PlaybackSettings, TextSettings
from .errors import (
    ConnectError,
    ConnectTimeoutError,
    RelayError,
    SessionBusyError,
    SessionRejectedError,
    SlotOccupiedError,
)
from .events import (
    ForwardFrame,
    InboundFrame,
    JoinFrame,
    PongFrame,
    classify_frame,
)
from .relay_session import (
    JoinAck,
    RelaySession,
    SessionSummary,
    generate_session_id,
    normalize_session_id,
)
from .script import Script
from .websocket_messages import (
    ClientMessage,
    CloseCode,
    CommandMessage,
    ErrorMessage,
    JoinedMessage,
    JoinMessage,
    PauseCommand,
    PeerConnectedMessage,
    PeerDisconnectedMessage,
    PingMessage,
    PlaybackState,
    PlayCommand,
    PongMessage,
    RemoteCommand,
    Role,
    SeekCommand,
    SeekPayload,
    ServerMessage,
    SpeedCommand,
    SpeedPayload,
    StateMessage,
    StopCommand,
    encode,
    parse_playback_state,
    parse_remote_command,
)

__all__ = [
    # Session entities
    "RelaySession",
    "SessionSummary",
    "JoinAck",
    "generate_session_id",
    "normalize_session_id",
    # Collaborator entities
    "Script",
    "TextSettings",
    "PlaybackSettings",
    # Errors
    "RelayError",
    "SlotOccupiedError",
    "ConnectError",
    "ConnectTimeoutError",
    "SessionRejectedError",
    "SessionBusyError",
    # Inbound frames
    "InboundFrame",
    "JoinFrame",
    "ForwardFrame",
    "PongFrame",
    "classify_frame",
    # WebSocket message entities
    "Role",
    "CloseCode",
    "ClientMessage",
    "ServerMessage",
    "JoinMessage",
    "StateMessage",
    "CommandMessage",
    "PongMessage",
    "JoinedMessage",
    "PeerConnectedMessage",
    "PeerDisconnectedMessage",
    "PingMessage",
    "ErrorMessage",
    "PlaybackState",
    "RemoteCommand",
    "PlayCommand",
    "PauseCommand",
    "StopCommand",
    "SpeedCommand",
    "SpeedPayload",
    "SeekCommand",
    "SeekPayload",
    "encode",
    "parse_playback_state",
    "parse_remote_command",
]
