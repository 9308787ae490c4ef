"""
dptrain - Utilities
===================

Logging and formatting helpers.
"""

from .logging import TrainingLogger, format_time, format_number

__all__ = [
    'TrainingLogger',
    'format_time',
    'format_number',
]
