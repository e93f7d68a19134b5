"""WebSocket message models for the teleprompter relay protocol."""

import math
from enum import Enum, IntEnum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator


class Role(str, Enum):
    """Participant kind declared in the join handshake."""

    TELEPROMPTER = "teleprompter"
    REMOTE = "remote"


class CloseCode(IntEnum):
    """Application close codes sent by the relay."""

    BAD_PATH = 4000
    SLOT_OCCUPIED = 4001
    SESSION_EXPIRED = 4002


# ===== Remote commands =====


class SpeedPayload(BaseModel):
    """Requested speed in percent; the receiving engine clamps it to 1..100."""

    speed: Union[int, float]

    @field_validator("speed")
    @classmethod
    def _finite(cls, value: Union[int, float]) -> Union[int, float]:
        if not math.isfinite(value):
            raise ValueError("speed must be a finite number")
        return value


class SeekPayload(BaseModel):
    direction: Literal["forward", "backward"]
    amount: Literal["line", "paragraph"] = "line"


class PlayCommand(BaseModel):
    type: Literal["play"] = "play"


class PauseCommand(BaseModel):
    type: Literal["pause"] = "pause"


class StopCommand(BaseModel):
    type: Literal["stop"] = "stop"


class SpeedCommand(BaseModel):
    """Change the scroll speed, in percent of the base rate."""

    type: Literal["speed"] = "speed"
    payload: SpeedPayload


class SeekCommand(BaseModel):
    """Jump forward or backward by a line or paragraph unit."""

    type: Literal["seek"] = "seek"
    payload: SeekPayload


RemoteCommand = Annotated[
    Union[PlayCommand, PauseCommand, StopCommand, SpeedCommand, SeekCommand],
    Field(discriminator="type"),
]

COMMAND_TYPES = frozenset({"play", "pause", "stop", "speed", "seek"})

_remote_command_adapter: TypeAdapter = TypeAdapter(RemoteCommand)


# ===== Playback state =====


class PlaybackState(BaseModel):
    """Snapshot broadcast by the teleprompter to its remotes.

    Field aliases match the names used on the wire.
    """

    model_config = ConfigDict(populate_by_name=True)

    is_playing: bool = Field(alias="isPlaying")
    speed_percent: int = Field(alias="speed", ge=1, le=100)
    position_pixels: float = Field(alias="position", ge=0)
    script_title: str = Field(default="", alias="scriptTitle")


# ===== Client → Relay Messages =====


class JoinMessage(BaseModel):
    """Handshake message declaring the sender's role."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["join"] = "join"
    role: Role
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    # Clients that answer {"type":"ping"} with {"type":"pong"} opt in here;
    # only they are dropped for missing a heartbeat.
    heartbeat: bool = False


class StateMessage(BaseModel):
    type: Literal["state"] = "state"
    payload: PlaybackState


class CommandMessage(BaseModel):
    type: Literal["command"] = "command"
    payload: RemoteCommand


class PongMessage(BaseModel):
    type: Literal["pong"] = "pong"


# ===== Relay → Client Messages =====


class JoinedMessage(BaseModel):
    """Acknowledgement sent to a connection after a successful join."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["joined"] = "joined"
    role: Role
    session_id: str = Field(alias="sessionId")
    peers: int = 0


class PeerConnectedMessage(BaseModel):
    type: Literal["peer_connected"] = "peer_connected"
    role: Role


class PeerDisconnectedMessage(BaseModel):
    type: Literal["peer_disconnected"] = "peer_disconnected"
    role: Role


class PingMessage(BaseModel):
    type: Literal["ping"] = "ping"


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    message: str


# Union type for all client messages
ClientMessage = Union[JoinMessage, StateMessage, CommandMessage, PongMessage]

# Union type for all relay messages
ServerMessage = Union[JoinedMessage, PeerConnectedMessage, PeerDisconnectedMessage, PingMessage, ErrorMessage]


def encode(message: BaseModel) -> str:
    """Serialize a message model to its JSON wire form."""
    return message.model_dump_json(by_alias=True)


def parse_remote_command(data: Any) -> Optional[BaseModel]:
    """Parse a command dict, returning None for unknown tags or bad payloads."""
    if not isinstance(data, dict) or data.get("type") not in COMMAND_TYPES:
        return None
    try:
        return _remote_command_adapter.validate_python(data)
    except ValidationError:
        return None


def parse_playback_state(data: Any) -> Optional[PlaybackState]:
    """Parse a ``state`` frame, accepting both the enveloped and flat forms."""
    if not isinstance(data, dict):
        return None
    body = data.get("payload", data)
    if not isinstance(body, dict):
        return None
    try:
        return PlaybackState.model_validate(body)
    except ValidationError:
        return None
