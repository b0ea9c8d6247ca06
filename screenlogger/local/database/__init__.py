"""
This module initializes the local database management system.
It imports the database managers for application logs and screen events.
"""

from .log import LogDBManager
from .events import ScreenEventDBManager, EVENT_SCREEN_ON, EVENT_SCREEN_OFF

__all__ = ["LogDBManager", "ScreenEventDBManager", "EVENT_SCREEN_ON", "EVENT_SCREEN_OFF"]
