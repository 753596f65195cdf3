"""
Driftpin - anonymous, location-scoped ephemeral messages.

Messages are dropped at a coordinate, visible to anyone querying within a
radius, and fade out as their lifetime runs down. Replies buy a message a
little more time, up to a hard cap.
"""

__version__ = "0.4.0"
