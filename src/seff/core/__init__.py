"""State persistence for resource graphs."""

from seff.core.state import StateFile, StateRecorder

__all__ = ["StateFile", "StateRecorder"]
