"""Route modules for the orgcal_lite server."""

from .event_routes import register_event_routes
from .health_routes import register_health_routes
from .timeline_routes import register_timeline_routes

__all__ = [
    "register_event_routes",
    "register_health_routes",
    "register_timeline_routes",
]
