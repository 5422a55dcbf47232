"""Services package.

Keep this module lightweight: importing `services` must not pull in the
engine. Only the event bus and logging live here.
"""

from .event_bus import EventBus, Events
from .logger import cleanup_logging, get_logger, setup_logging

__all__ = ["EventBus", "Events", "cleanup_logging", "get_logger", "setup_logging"]
