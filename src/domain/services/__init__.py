"""Domain services for the teleprompter relay."""

from .playback_engine import PlaybackEngine, SpeedCell, estimate_content_height
from .remote_controller import RemoteController

__all__ = ["PlaybackEngine", "RemoteController", "SpeedCell", "estimate_content_height"]
