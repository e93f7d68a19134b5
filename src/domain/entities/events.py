"""Inbound frame entities classified by the relay router."""

import json
from dataclasses import dataclass
from typing import Literal, Optional

from pydantic import ValidationError

from .websocket_messages import COMMAND_TYPES, JoinMessage, Role


class InboundFrame:
    """Base class for classified inbound frames."""

    pass


@dataclass
class JoinFrame(InboundFrame):
    """Handshake declaring the connection's role."""

    role: Role
    session_id: Optional[str] = None
    heartbeat: bool = False


@dataclass
class ForwardFrame(InboundFrame):
    """Application frame to be relayed unmodified to the peer side."""

    kind: Literal["state", "command"]
    raw: str


@dataclass
class PongFrame(InboundFrame):
    """Heartbeat reply from a client."""

    pass


def classify_frame(raw: str) -> Optional[InboundFrame]:
    """Classify a raw text frame by its envelope.

    Returns None for anything that is not a JSON object with a known
    ``type``; the relay never looks further into command semantics.
    """
    try:
        message = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(message, dict):
        return None

    msg_type = message.get("type")
    if msg_type == "join":
        try:
            join = JoinMessage.model_validate(message)
        except ValidationError:
            return None
        return JoinFrame(role=join.role, session_id=join.session_id, heartbeat=join.heartbeat)
    if msg_type == "state":
        return ForwardFrame(kind="state", raw=raw)
    if msg_type == "command" or msg_type in COMMAND_TYPES:
        return ForwardFrame(kind="command", raw=raw)
    if msg_type == "pong":
        return PongFrame()
    return None
