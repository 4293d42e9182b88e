"""
meshconv - Utilities Module
Logging and error helpers shared by the parsers and encoders
"""

from .logger import LogLevel, LogFormatter, JSONFormatter, setup_logging, get_logger
from .error_handler import ErrorCategory, SceneError, ERROR_CODES, make_error, log_error

__all__ = [
    # Logging
    'LogLevel',
    'LogFormatter',
    'JSONFormatter',
    'setup_logging',
    'get_logger',

    # Error Handling
    'ErrorCategory',
    'SceneError',
    'ERROR_CODES',
    'make_error',
    'log_error',
]
