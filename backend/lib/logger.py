"""
Structured Logging for the Backend

Console logging with:
- Colour-coded levels (when attached to a terminal)
- Per-component icons (auth, store, consultations, checkout)
- Structured `data=` payloads rendered as indented JSON
- Section banners around multi-step operations
"""

import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional


class Colors:
    """ANSI colour codes."""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[90m'

    LEVELS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }

    SECTION = '\033[94m'


class ColoredFormatter(logging.Formatter):
    """Single-line formatter: time, icon, level, logger name, message."""

    LEVEL_ICONS = {
        'DEBUG': '🔍',
        'INFO': 'ℹ️',
        'WARNING': '⚠️',
        'ERROR': '❌',
        'CRITICAL': '🚨',
    }

    # Keyed by the last component of the logger name
    COMPONENT_ICONS = {
        'main': '🚀',
        'auth': '🔐',
        'store': '💾',
        'consultations': '🗓️',
        'catalog': '🛒',
        'checkout': '💳',
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def _paint(self, text: str, color: str) -> str:
        return f"{color}{text}{Colors.RESET}" if self.use_colors else text

    def format(self, record: logging.LogRecord) -> str:
        component = record.name.split('.')[-1]
        icon = self.COMPONENT_ICONS.get(component, self.LEVEL_ICONS.get(record.levelname, '•'))
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]
        level = self._paint(f"{record.levelname:8s}", Colors.LEVELS.get(record.levelname, Colors.RESET))

        line = (
            f"{self._paint(f'[{timestamp}]', Colors.DIM)} {icon} {level} "
            f"{self._paint(record.name, Colors.BOLD)} | {record.getMessage()}"
        )
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def _render(data: Dict[str, Any]) -> str:
    return json.dumps(data, indent=2, default=str, ensure_ascii=False)


class StructuredLogger:
    """Logger wrapper accepting a structured `data` payload on every call."""

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or logging.getLogger(name)
        self._sections = []

    def _emit(self, level: int, message: str, data: Optional[Dict[str, Any]] = None, **kwargs):
        if data:
            message = f"{message}\n{_render(data)}"
        self.logger.log(level, message, **kwargs)

    def section(self, title: str, data: Optional[Dict[str, Any]] = None):
        """Open a banner-delimited section for a multi-step operation."""
        self._sections.append(title)
        banner = "=" * 60
        self._emit(logging.INFO, f"\n{banner}\n📋 {title.upper()}\n{banner}", data)

    def end_section(self):
        if self._sections:
            self._sections.pop()

    def debug(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._emit(logging.DEBUG, message, data)

    def info(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._emit(logging.INFO, message, data)

    def warning(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._emit(logging.WARNING, message, data)

    def error(self, message: str, error: Optional[Exception] = None, data: Optional[Dict[str, Any]] = None):
        """Log an error, appending the exception type and message when given."""
        if error is not None:
            message = f"{message} Error: {type(error).__name__}: {error}"
        self._emit(logging.ERROR, message, data, exc_info=error)

    def success(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._emit(logging.INFO, f"✅ {message}", data)

    def action(self, action: str, user_id: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        """Log a user-initiated action with a truncated user id."""
        payload = {"user_id": user_id[:20] + "..." if user_id and len(user_id) > 20 else user_id}
        if data:
            payload.update(data)
        self._emit(logging.INFO, f"📥 {action}", payload)


def setup_logging(level: int = logging.INFO, use_colors: bool = True):
    """Install the coloured console handler on the root logger."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(use_colors=use_colors))

    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    # Suppress noisy loggers
    for noisy in ('asyncio', 'httpx', 'httpcore', 'urllib3', 'hpack'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name, logging.getLogger(name))
