"""
Queue display monitor.

Keeps a near-real-time copy of an office queue display available over HTTP,
acquired from an unreliable upstream through a push stream, an HTML
page fallback, and a simulated feed of last resort.
"""

__version__ = "1.0.0"
