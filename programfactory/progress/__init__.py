"""Progress events for long-running batch jobs."""

from .broadcaster import ProgressBroadcaster, Subscription
from .events import EventType, ProgressEvent

__all__ = ["EventType", "ProgressBroadcaster", "ProgressEvent", "Subscription"]
