# src/deptcms/utils/logging_config.py
"""
File logging for the department CMS data layer.

Each concern (events, categories, research, settings, activity) writes to
its own rotating file under the log directory. ERROR lines are also copied
to ``LogFiles.ERROR`` so one file collects every failure.

Usage:
    from deptcms.utils.logging_config import Logger, LogFiles

    Logger.info("Event created", file=LogFiles.EVENTS)
    Logger.error("Category query failed", file=LogFiles.CATEGORIES)
    Logger.info("General message")  # logs/deptcms.log

Environment:
    DEPTCMS_LOG_LEVEL         DEBUG, INFO, WARNING, ERROR, CRITICAL (default INFO)
    DEPTCMS_LOG_DIR           base directory for log files (default logs/)
    DEPTCMS_LOG_MAX_BYTES     rotate after this many bytes (default 10MB)
    DEPTCMS_LOG_BACKUP_COUNT  rotated files to keep (default 5)
"""

from __future__ import annotations

import inspect
import os
import threading
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

import yaml

_trace_id_var: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)

DEFAULT_LOG_FILE = "deptcms.log"
LINE_FORMAT = "{timestamp} [{level}] [{trace_id}] {filename}:{lineno} - {message}"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_CONFIG_FILE = Path(__file__).parent / "log_config.yaml"

_BUILTIN_FILES: Dict[str, str] = {
    "events": "events/events.log",
    "categories": "categories/categories.log",
    "research": "research/research.log",
    "settings": "settings/settings.log",
    "activity": "activity/activity.log",
    "error": "errors/error.log",
}

LOG_LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}


class _LogFilesMeta(type):
    def __getattr__(cls, name: str) -> str:
        files = cls._mapping()
        try:
            return files[name.lower()]
        except KeyError:
            raise AttributeError(f"Log file '{name}' not found in config") from None


class LogFiles(metaclass=_LogFilesMeta):
    """
    Named log files, relative to the log directory (``LogFiles.EVENTS``).

    Built-in names can be overridden, and new ones added, under the
    ``files`` section of ``log_config.yaml``.
    """

    _files: Optional[Dict[str, str]] = None

    @classmethod
    def _mapping(cls) -> Dict[str, str]:
        if cls._files is None:
            files = dict(_BUILTIN_FILES)
            if LOG_CONFIG_FILE.exists():
                with open(LOG_CONFIG_FILE, "r", encoding="utf-8") as f:
                    overrides = (yaml.safe_load(f) or {}).get("files") or {}
                files.update({str(k).lower(): str(v) for k, v in overrides.items()})
            cls._files = files
        return cls._files

    @classmethod
    def get(cls, name: str) -> str:
        key = name.lower()
        return cls._mapping().get(key, f"{key}/{key}.log")


@dataclass
class LogSettings:
    level: str = "INFO"
    base_dir: str = "logs"
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5

    @classmethod
    def from_env(cls) -> "LogSettings":
        defaults = cls()
        return cls(
            level=os.getenv("DEPTCMS_LOG_LEVEL", defaults.level).upper(),
            base_dir=os.getenv("DEPTCMS_LOG_DIR", defaults.base_dir),
            max_bytes=int(os.getenv("DEPTCMS_LOG_MAX_BYTES", defaults.max_bytes)),
            backup_count=int(os.getenv("DEPTCMS_LOG_BACKUP_COUNT", defaults.backup_count)),
        )

    def enabled(self, level: str) -> bool:
        return LOG_LEVELS.get(level, 0) >= LOG_LEVELS.get(self.level, 0)


_settings: Optional[LogSettings] = None
_handlers: Dict[str, RotatingFileHandler] = {}
_handlers_lock = threading.Lock()


def _handler_for(file: Optional[str]) -> RotatingFileHandler:
    path = Path(_settings.base_dir) / (file or DEFAULT_LOG_FILE)
    key = str(path)
    with _handlers_lock:
        handler = _handlers.get(key)
        if handler is None:
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                filename=key,
                maxBytes=_settings.max_bytes,
                backupCount=_settings.backup_count,
                encoding="utf-8",
            )
            _handlers[key] = handler
    return handler


def _append(file: Optional[str], line: str) -> None:
    handler = _handler_for(file)
    handler.acquire()
    try:
        handler.stream.write(line + "\n")
        handler.stream.flush()
    finally:
        handler.release()


def _emit(level: str, message: str, file: Optional[str]) -> None:
    Logger.init()
    if not _settings.enabled(level):
        return

    # two frames up: the Logger method, then its caller
    frame = inspect.currentframe()
    caller = frame.f_back.f_back if frame and frame.f_back else None
    line = LINE_FORMAT.format(
        timestamp=datetime.now().strftime(TIMESTAMP_FORMAT),
        level=level,
        trace_id=_trace_id_var.get() or "-",
        filename=os.path.basename(caller.f_code.co_filename) if caller else "unknown",
        lineno=caller.f_lineno if caller else 0,
        message=message,
    )

    _append(file, line)
    error_file = LogFiles.get("error")
    if LOG_LEVELS[level] >= LOG_LEVELS["ERROR"] and file != error_file:
        _append(error_file, line)


class Logger:
    """
    Static per-concern file logger.

    The first call initializes from the environment; call ``init(...,
    force=True)`` to redirect output, as the tests do.
    """

    @staticmethod
    def init(
        level: Optional[str] = None,
        base_dir: Optional[str] = None,
        max_bytes: Optional[int] = None,
        backup_count: Optional[int] = None,
        *,
        force: bool = False,
    ) -> None:
        global _settings

        if _settings is not None and not force:
            return
        Logger.close()

        settings = LogSettings.from_env()
        if level:
            settings.level = level.upper()
        if base_dir:
            settings.base_dir = base_dir
        if max_bytes:
            settings.max_bytes = max_bytes
        if backup_count:
            settings.backup_count = backup_count
        _settings = settings

    @staticmethod
    def debug(message: str, file: Optional[str] = None) -> None:
        _emit("DEBUG", message, file)

    @staticmethod
    def info(message: str, file: Optional[str] = None) -> None:
        _emit("INFO", message, file)

    @staticmethod
    def warning(message: str, file: Optional[str] = None) -> None:
        _emit("WARNING", message, file)

    @staticmethod
    def error(message: str, file: Optional[str] = None) -> None:
        _emit("ERROR", message, file)

    @staticmethod
    def set_level(level: str) -> None:
        Logger.init()
        _settings.level = level.upper()

    @staticmethod
    def close() -> None:
        with _handlers_lock:
            for handler in _handlers.values():
                handler.close()
            _handlers.clear()


def set_trace_id(trace_id: Optional[str] = None) -> str:
    """Tag log lines from the current context; generates an id when omitted."""
    value = trace_id or f"req-{uuid.uuid4().hex[:12]}"
    _trace_id_var.set(value)
    return value


def get_trace_id() -> Optional[str]:
    return _trace_id_var.get()


def clear_trace_id() -> None:
    _trace_id_var.set(None)
