from .config import CaptureConfig, load_config
from .session_registry import InFlightMarker, SessionEntry, SessionRegistry

__all__ = ["CaptureConfig", "load_config", "InFlightMarker", "SessionEntry", "SessionRegistry"]
