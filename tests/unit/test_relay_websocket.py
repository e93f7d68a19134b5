"""Tests for the relay WebSocket endpoint using Starlette's TestClient."""

import time

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from src.application.api import create_app
from src.application.controller import RelayController
from src.infrastructure.in_memory_session_registry import InMemorySessionRegistry


@pytest.fixture
def registry():
    return InMemorySessionRegistry()


@pytest.fixture
def client(registry):
    """Create a test client sharing one event loop across WebSockets."""
    controller = RelayController(session_registry=registry)
    with TestClient(create_app(controller=controller)) as test_client:
        yield test_client


def join(ws, role, session_id="QX7K2M9P"):
    ws.send_json({"type": "join", "role": role, "sessionId": session_id})
    return ws.receive_json()


def test_health_check(client):
    """Test the health endpoint reports relay counters."""
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["sessions"] == 0
    assert data["providers"]["session_registry"] == "InMemorySessionRegistry"


def test_join_acknowledged(client):
    """Test that a join is answered with a joined frame."""
    with client.websocket_connect("/session/QX7K2M9P") as teleprompter:
        ack = join(teleprompter, "teleprompter")

    assert ack == {"type": "joined", "role": "teleprompter", "sessionId": "QX7K2M9P", "peers": 0}


def test_pairing_notifies_both_sides(client):
    """Test that teleprompter and remote both receive peer_connected."""
    with client.websocket_connect("/session/QX7K2M9P") as teleprompter:
        join(teleprompter, "teleprompter")

        with client.websocket_connect("/session/qx7k2m9p") as remote:
            ack = join(remote, "remote", "qx7k2m9p")
            assert ack["sessionId"] == "QX7K2M9P"
            assert ack["peers"] == 1
            assert remote.receive_json() == {"type": "peer_connected", "role": "teleprompter"}
            assert teleprompter.receive_json() == {"type": "peer_connected", "role": "remote"}

        assert teleprompter.receive_json() == {"type": "peer_disconnected", "role": "remote"}


def test_teleprompter_joining_after_remotes_hears_about_each(client):
    """Test that a late teleprompter gets one notice per waiting remote."""
    with client.websocket_connect("/session/QX7K2M9P") as remote_a, \
            client.websocket_connect("/session/QX7K2M9P") as remote_b:
        join(remote_a, "remote")
        join(remote_b, "remote")

        with client.websocket_connect("/session/QX7K2M9P") as teleprompter:
            ack = join(teleprompter, "teleprompter")
            assert ack["peers"] == 2
            assert teleprompter.receive_json() == {"type": "peer_connected", "role": "remote"}
            assert teleprompter.receive_json() == {"type": "peer_connected", "role": "remote"}
            assert remote_a.receive_json() == {"type": "peer_connected", "role": "teleprompter"}
            assert remote_b.receive_json() == {"type": "peer_connected", "role": "teleprompter"}

        assert remote_a.receive_json() == {"type": "peer_disconnected", "role": "teleprompter"}
        assert remote_b.receive_json() == {"type": "peer_disconnected", "role": "teleprompter"}


def test_second_teleprompter_closed_with_slot_occupied(client):
    """Test that a second teleprompter is closed with code 4001."""
    with client.websocket_connect("/session/QX7K2M9P") as first:
        join(first, "teleprompter")

        with client.websocket_connect("/session/QX7K2M9P") as second:
            second.send_json({"type": "join", "role": "teleprompter"})
            with pytest.raises(WebSocketDisconnect) as exc_info:
                second.receive_json()
            assert exc_info.value.code == 4001

        # The first teleprompter still relays to remotes
        with client.websocket_connect("/session/QX7K2M9P") as remote:
            join(remote, "remote")
            remote.receive_json()  # peer_connected
            first.receive_json()  # peer_connected
            first.send_json({"type": "state", "payload": {"isPlaying": True, "speed": 50, "position": 10, "scriptTitle": "Demo"}})
            assert remote.receive_json()["type"] == "state"


def test_state_and_commands_forwarded_unmodified(client):
    """Test that payloads pass through the relay byte for byte."""
    state_frame = '{"type":"state","payload":{"isPlaying":true,"speed":80,"position":12.5,"scriptTitle":"Demo"}}'
    command_frame = '{"type": "speed", "payload": {"speed": 80}}'
    envelope_frame = '{"type":"command","payload":{"type":"seek","payload":{"direction":"forward","amount":"line"}}}'

    with client.websocket_connect("/session/QX7K2M9P") as teleprompter, \
            client.websocket_connect("/session/QX7K2M9P") as remote:
        join(teleprompter, "teleprompter")
        join(remote, "remote")
        remote.receive_json()
        teleprompter.receive_json()

        remote.send_text(command_frame)
        assert teleprompter.receive_text() == command_frame

        remote.send_text(envelope_frame)
        assert teleprompter.receive_text() == envelope_frame

        teleprompter.send_text(state_frame)
        assert remote.receive_text() == state_frame


def test_frames_in_wrong_direction_are_dropped(client):
    """Test that remotes cannot send state and teleprompters cannot send commands."""
    with client.websocket_connect("/session/QX7K2M9P") as teleprompter, \
            client.websocket_connect("/session/QX7K2M9P") as remote:
        join(teleprompter, "teleprompter")
        join(remote, "remote")
        remote.receive_json()
        teleprompter.receive_json()

        remote.send_json({"type": "state", "payload": {"isPlaying": True, "speed": 50, "position": 0}})
        teleprompter.send_json({"type": "play"})
        remote.send_json({"type": "pause"})

        # Only the legitimate command arrives
        assert teleprompter.receive_json() == {"type": "pause"}


def test_unjoined_and_malformed_frames_are_dropped(client):
    """Test that garbage and pre-join frames never reach peers or crash the relay."""
    with client.websocket_connect("/session/QX7K2M9P") as teleprompter:
        join(teleprompter, "teleprompter")

        with client.websocket_connect("/session/QX7K2M9P") as remote:
            remote.send_text("not json")
            remote.send_text("[1, 2, 3]")
            remote.send_json({"type": "play"})
            remote.send_json({"type": "join", "role": "director"})
            remote.send_bytes(b"\x00\x01")
            join(remote, "remote")
            teleprompter.receive_json()  # peer_connected
            remote.receive_json()  # peer_connected

            remote.send_json({"type": "stop"})
            assert teleprompter.receive_json() == {"type": "stop"}


def test_session_removed_after_everyone_leaves(client, registry):
    """Test that the registry holds no empty sessions."""
    with client.websocket_connect("/session/QX7K2M9P") as teleprompter:
        join(teleprompter, "teleprompter")
        assert client.get("/sessions/QX7K2M9P").json()["has_teleprompter"] is True

    assert client.get("/sessions/QX7K2M9P").status_code == 404
    assert registry.session_count == 0


def test_invalid_path_closed_with_bad_path_code(client):
    """Test that connections outside /session/{id} are closed with 4000."""
    with client.websocket_connect("/rooms/QX7K2M9P") as ws:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_text()

    assert exc_info.value.code == 4000


@pytest.fixture
def fast_heartbeat_client():
    """Client whose relay runs a heartbeat pass every 50 ms."""
    controller = RelayController(session_registry=InMemorySessionRegistry(), heartbeat_interval=0.05)
    with TestClient(create_app(controller=controller)) as test_client:
        yield test_client


def test_idle_client_without_heartbeat_survives(fast_heartbeat_client):
    """Test that a joined client that never answers pings is not dropped by the relay."""
    client = fast_heartbeat_client
    with client.websocket_connect("/session/QX7K2M9P") as teleprompter:
        join(teleprompter, "teleprompter")
        time.sleep(0.4)

        with client.websocket_connect("/session/QX7K2M9P") as remote:
            join(remote, "remote")
            # No ping precedes the notice and the connection is still open.
            assert teleprompter.receive_json() == {"type": "peer_connected", "role": "remote"}


def test_silent_heartbeat_client_is_dropped(fast_heartbeat_client):
    """Test that a client that opted in to pings and never answers is closed with 1001."""
    client = fast_heartbeat_client
    with client.websocket_connect("/session/QX7K2M9P") as teleprompter:
        teleprompter.send_json({"type": "join", "role": "teleprompter", "heartbeat": True})
        assert teleprompter.receive_json()["type"] == "joined"

        assert teleprompter.receive_json() == {"type": "ping"}
        with pytest.raises(WebSocketDisconnect) as exc_info:
            teleprompter.receive_json()

    assert exc_info.value.code == 1001
