"""Change detection and periodic sweeps over watched channels."""

from ytposts.monitoring.detector import ChangeDetector, PostStore
from ytposts.monitoring.models import Detection, Notifier, PostNotification, SweepReport
from ytposts.monitoring.monitor import PostMonitor, group_watches

__all__ = [
    "ChangeDetector",
    "Detection",
    "Notifier",
    "PostMonitor",
    "PostNotification",
    "PostStore",
    "SweepReport",
    "group_watches",
]
