"""
Logging Utility for Backend

Provides readable, structured logging with:
- Color-coded log levels
- Icons per subsystem (upload, session, tutor, storage)
- Key/value data blocks
- Request/response timing lines
"""

import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional


class Colors:
    """ANSI color codes for terminal output."""
    RESET = '\033[0m'
    BOLD = '\033[1m'

    DEBUG = '\033[36m'      # Cyan
    INFO = '\033[32m'       # Green
    WARNING = '\033[33m'    # Yellow
    ERROR = '\033[31m'      # Red
    CRITICAL = '\033[35m'   # Magenta

    SECTION = '\033[94m'    # Bright Blue
    TIMESTAMP = '\033[90m'  # Dark Gray


LEVEL_COLORS = {
    'DEBUG': Colors.DEBUG,
    'INFO': Colors.INFO,
    'WARNING': Colors.WARNING,
    'ERROR': Colors.ERROR,
    'CRITICAL': Colors.CRITICAL,
}


class ColoredFormatter(logging.Formatter):
    """Formatter with colors and subsystem icons."""

    ICONS = {
        'DEBUG': '🔍',
        'INFO': 'ℹ️',
        'WARNING': '⚠️',
        'ERROR': '❌',
        'CRITICAL': '🚨',
    }

    # Matched against the last component of the logger name
    SUBSYSTEM_ICONS = {
        'main': '🌐',
        'pdf_storage': '🗄️',
        'content_service': '📚',
        'grading_service': '📝',
        'dialogue_controller': '🎓',
        'difficulty_adapter': '🎯',
        'sessions': '💾',
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        icon = self.SUBSYSTEM_ICONS.get(record.name.split('.')[-1], self.ICONS.get(record.levelname, '•'))
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]

        if self.use_colors:
            level_color = LEVEL_COLORS.get(record.levelname, Colors.RESET)
            reset, bold, timestamp_color = Colors.RESET, Colors.BOLD, Colors.TIMESTAMP
        else:
            level_color = reset = bold = timestamp_color = ''

        formatted = (
            f"{timestamp_color}[{timestamp}]{reset} "
            f"{icon} {level_color}{record.levelname:8s}{reset} "
            f"{bold}{record.name}{reset} | {record.getMessage()}"
        )
        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"
        return formatted


def format_data(data: Dict[str, Any], indent: int = 2) -> str:
    """Render a flat or nested dict as indented key: value lines."""
    lines = []
    for key, value in data.items():
        if isinstance(value, dict):
            lines.append(f"{' ' * indent}{key}:")
            lines.append(format_data(value, indent + 2))
        elif isinstance(value, (list, tuple)) and len(value) > 5:
            shown = ", ".join(str(v) for v in value[:3])
            lines.append(f"{' ' * indent}{key}: [{shown}, ... ({len(value)} items total)]")
        else:
            lines.append(f"{' ' * indent}{key}: {value}")
    return "\n".join(lines)


class StructuredLogger:
    """Logger with optional data blocks and section banners."""

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or logging.getLogger(name)

    def _with_data(self, message: str, data: Optional[Dict[str, Any]]) -> str:
        return f"{message}\n{format_data(data)}" if data else message

    def section(self, title: str, data: Optional[Dict[str, Any]] = None):
        separator = "=" * 80
        self.logger.info(self._with_data(f"\n{separator}\n📋 {title.upper()}\n{separator}", data))

    def debug(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.debug(self._with_data(message, data))

    def info(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.info(self._with_data(message, data))

    def warning(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.warning(self._with_data(message, data))

    def error(self, message: str, error: Optional[Exception] = None, data: Optional[Dict[str, Any]] = None):
        error_info = f" Error: {type(error).__name__}: {error}" if error else ""
        self.logger.error(self._with_data(f"{message}{error_info}", data), exc_info=error)

    def success(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.info(self._with_data(f"✅ {message}", data))

    def request(self, method: str, path: str, user_id: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        request_data = {"user_id": user_id[:20] + "..." if user_id and len(user_id) > 20 else user_id}
        if data:
            request_data.update(data)
        self.logger.info(self._with_data(f"📥 REQUEST: {method} {path}", request_data))

    def response(self, status: int, path: str, duration: Optional[float] = None, data: Optional[Dict[str, Any]] = None):
        response_data = {"duration_ms": f"{duration * 1000:.2f}" if duration is not None else None}
        if data:
            response_data.update(data)
        self.logger.info(self._with_data(f"📤 RESPONSE: {status} {path}", response_data))


def setup_logging(level: int = logging.INFO, use_colors: bool = True):
    """Install the colored console handler on the root logger."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(use_colors=use_colors))

    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    # Suppress noisy loggers
    for noisy in ('asyncio', 'httpx', 'httpcore', 'urllib3', 'openai', 'pypdf'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name, logging.getLogger(name))
