"""
Output Formatting

Formatted output for console and structured (JSON) reporting.
"""

from .base import BaseFormatter, OutputLevel
from .console import ConsoleFormatter
from .json_output import JsonFormatter

__all__ = [
    "BaseFormatter",
    "OutputLevel",
    "ConsoleFormatter",
    "JsonFormatter",
]
