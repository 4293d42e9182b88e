import json
import logging
import sys
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from colorama import Back, Fore, Style, init

init(autoreset=True)

ROOT_LOGGER_NAME = "meshconv"

# Packages whose module loggers are routed through the meshconv handlers
LOGGED_PACKAGES = ("pyscene", "converters", "exporters", "utils", "config", "main")


class LogLevel(Enum):
    """Logging levels"""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @classmethod
    def from_string(cls, level_str: str) -> 'LogLevel':
        """Convert string to LogLevel, falling back to INFO"""
        try:
            return cls[level_str.upper()]
        except KeyError:
            return cls.INFO


@dataclass
class LogEntry:
    """Structured log entry"""
    timestamp: float
    level: LogLevel
    message: str
    module: str = ""
    function: str = ""
    line_number: int = 0
    extra_data: Dict[str, Any] = field(default_factory=dict)
    exception_info: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'timestamp_iso': time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(self.timestamp)),
            'level': self.level.name,
            'message': self.message,
            'module': self.module,
            'function': self.function,
            'line_number': self.line_number,
            'extra_data': self.extra_data,
            'exception_info': self.exception_info,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class LogFormatter(logging.Formatter):
    """Console formatter with colors"""

    COLOR_MAP = {
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Back.WHITE + Style.BRIGHT,
    }

    SIMPLE_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'
    DETAILED_FORMAT = '%(asctime)s [%(levelname)s] [%(name)s:%(funcName)s:%(lineno)d] %(message)s'

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = None,
                 use_colors: bool = True, detailed: bool = False):
        if fmt is None:
            fmt = self.DETAILED_FORMAT if detailed else self.SIMPLE_FORMAT
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors
        self.detailed = detailed

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if self.use_colors and record.levelname in self.COLOR_MAP:
            message = f"{self.COLOR_MAP[record.levelname]}{message}{Style.RESET_ALL}"
        return message


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = LogEntry(
            timestamp=record.created,
            level=LogLevel(record.levelno),
            message=record.getMessage(),
            module=record.module,
            function=record.funcName,
            line_number=record.lineno,
            extra_data=getattr(record, 'extra_data', {}),
        )
        if record.exc_info:
            log_entry.exception_info = self.formatException(record.exc_info)
        return log_entry.to_json()


def setup_logging(level: Union[LogLevel, str] = "INFO",
                  log_file: Optional[str] = None,
                  use_colors: bool = True,
                  detailed: bool = False,
                  json_output: bool = False) -> logging.Logger:
    """
    Configure console (and optional file) logging for the meshconv packages.

    Args:
        level: Logging level name or LogLevel
        log_file: Optional path for a plain-text log file
        use_colors: Colorize console output
        detailed: Include logger name, function and line in console output
        json_output: Emit JSON lines on the console instead of text

    Returns:
        The root meshconv logger
    """
    if isinstance(level, str):
        level = LogLevel.from_string(level)

    handlers = []

    console_handler = logging.StreamHandler(sys.stderr)
    if json_output:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(LogFormatter(use_colors=use_colors, detailed=detailed))
    handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(LogFormatter(detailed=True, use_colors=False))
        handlers.append(file_handler)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for name in (ROOT_LOGGER_NAME,) + LOGGED_PACKAGES:
        package_logger = logging.getLogger(name)
        package_logger.setLevel(level.value)
        package_logger.handlers.clear()
        package_logger.propagate = False
        for handler in handlers:
            package_logger.addHandler(handler)

    return root


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Get a logger; module loggers should prefer logging.getLogger(__name__)"""
    return logging.getLogger(name)
