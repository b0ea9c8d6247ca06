"""
Logging module for the application.
This module provides functionality to set up logging and export screen events to Excel.
"""

from .setup import setup_logging
from .export import export_events_to_excel

__all__ = ["setup_logging", "export_events_to_excel"]
