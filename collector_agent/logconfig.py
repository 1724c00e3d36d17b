"""Logger configuration loaded from a YAML file."""

from __future__ import annotations

import gzip
import json
import logging
import logging.handlers
import os
import re
import shutil
import sys
import tempfile
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

FILE_OUTPUT = "file"
STD_OUTPUT = "stdout"

_MEGABYTE = 1024 * 1024
_DEFAULT_MAX_SIZE = 100
_BACKUP_TIME_FORMAT = "%Y-%m-%dT%H-%M-%S.%f"
_ENV_PATTERN = re.compile(r"\$\{([^}]*)\}|\$([A-Za-z0-9_]+)")


class Level(Enum):
    """Logging levels understood in the configuration file."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    DPANIC = "dpanic"
    PANIC = "panic"
    FATAL = "fatal"

    @classmethod
    def _missing_(cls, value: object) -> Level | None:
        if isinstance(value, str):
            lowered = value.lower()
            if lowered == "":
                return cls.INFO
            for member in cls:
                if member.value == lowered:
                    return member
        return None

    @property
    def logging_level(self) -> int:
        """The matching level of the standard logging module."""
        return _LOGGING_LEVELS[self]


_LOGGING_LEVELS = {
    Level.DEBUG: logging.DEBUG,
    Level.INFO: logging.INFO,
    Level.WARN: logging.WARNING,
    Level.ERROR: logging.ERROR,
    Level.DPANIC: logging.CRITICAL,
    Level.PANIC: logging.CRITICAL,
    Level.FATAL: logging.CRITICAL,
}


def _get(data: dict, key: str, kind: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ValueError(f"invalid value for {key!r}: {value!r}")
    return value


@dataclass
class FileConfig:
    """Settings of a size-rotated log file."""

    filename: str = ""
    max_size: int = 0
    max_age: int = 0
    max_backups: int = 0
    local_time: bool = False
    compress: bool = False

    @classmethod
    def from_mapping(cls, data: Any) -> FileConfig:
        """Build file settings from a parsed YAML mapping."""
        if not isinstance(data, dict):
            raise ValueError(f"file settings must be a mapping, got {data!r}")
        return cls(
            filename=_get(data, "filename", str, ""),
            max_size=_get(data, "maxsize", int, 0),
            max_age=_get(data, "maxage", int, 0),
            max_backups=_get(data, "maxbackups", int, 0),
            local_time=_get(data, "localtime", bool, False),
            compress=_get(data, "compress", bool, False),
        )


@dataclass
class LoggerConfig:
    """Where logs go and at which level."""

    output: str = STD_OUTPUT
    level: Level = Level.INFO
    file: FileConfig | None = None

    def handlers(self) -> list[logging.Handler]:
        """Return the handlers this configuration describes."""
        if self.output == FILE_OUTPUT:
            handler: logging.Handler = _RotatingFileHandler(self.file or FileConfig())
        elif self.output == STD_OUTPUT:
            handler = logging.StreamHandler(sys.stdout)
        else:
            raise ValueError(f"unrecognized output type: {self.output}")
        handler.setLevel(self.level.logging_level)
        handler.setFormatter(_JSONFormatter())
        return [handler]

    def configure(self, logger: logging.Logger) -> logging.Logger:
        """Replace the logger's output with this configuration's handlers."""
        new_handlers = self.handlers()
        for old in list(logger.handlers):
            logger.removeHandler(old)
            old.close()
        for handler in new_handlers:
            logger.addHandler(handler)
        logger.setLevel(self.level.logging_level)
        logger.propagate = False
        return logger


def _expand_env(text: str) -> str:
    return _ENV_PATTERN.sub(lambda m: os.environ.get(m.group(1) or m.group(2), ""), text)


def new_logger_config(config_path: str | os.PathLike | None) -> LoggerConfig:
    """Load a logger configuration; a missing or empty path gives stdout logging."""
    conf = LoggerConfig()
    if not config_path:
        return conf

    path = Path(os.path.normpath(os.fspath(config_path)))
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return conf

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"invalid logging config {path}: {exc}") from exc

    if data is None:
        return conf
    if not isinstance(data, dict):
        raise ValueError(f"logging config {path} must be a mapping")

    output = _get(data, "output", str, conf.output)
    raw_level = data.get("level")
    if raw_level is None:
        level = conf.level
    elif isinstance(raw_level, str):
        try:
            level = Level(raw_level)
        except ValueError as exc:
            raise ValueError(f"unrecognized level: {raw_level!r}") from exc
    else:
        raise ValueError(f"unrecognized level: {raw_level!r}")

    file_conf = conf.file
    if "file" in data:
        raw_file = data["file"]
        file_conf = None if raw_file is None else FileConfig.from_mapping(raw_file)

    if file_conf is not None:
        file_conf = replace(file_conf, filename=_expand_env(file_conf.filename))

    return LoggerConfig(output=output, level=level, file=file_conf)


def _zap_level_name(levelno: int) -> str:
    if levelno >= logging.CRITICAL:
        return "fatal"
    if levelno >= logging.ERROR:
        return "error"
    if levelno >= logging.WARNING:
        return "warn"
    if levelno >= logging.INFO:
        return "info"
    return "debug"


class _JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {"level": _zap_level_name(record.levelno), "ts": self._timestamp(record)}
        if record.name and record.name != "root":
            entry["logger"] = record.name
        entry["caller"] = f"{record.filename}:{record.lineno}"
        entry["msg"] = record.getMessage()
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)

    @staticmethod
    def _timestamp(record: logging.LogRecord) -> str:
        moment = datetime.fromtimestamp(record.created).astimezone()
        offset = moment.strftime("%z")
        if offset in ("+0000", "-0000"):
            offset = "Z"
        return f"{moment.strftime('%Y-%m-%dT%H:%M:%S')}.{moment.microsecond // 1000:03d}{offset}"


class _RotatingFileHandler(logging.handlers.RotatingFileHandler):
    """Size-rotated file keeping timestamped backups, pruned by count and age."""

    def __init__(self, settings: FileConfig):
        filename = settings.filename or os.path.join(
            tempfile.gettempdir(), f"{Path(sys.argv[0]).name or 'python'}-lumberjack.log"
        )
        max_size = settings.max_size or _DEFAULT_MAX_SIZE
        super().__init__(
            filename,
            maxBytes=max_size * _MEGABYTE,
            backupCount=settings.max_backups,
            encoding="utf-8",
            delay=True,
        )
        self._settings = settings
        directory, base = os.path.split(self.baseFilename)
        self._directory = directory
        self._prefix, self._ext = os.path.splitext(base)
        self._prefix += "-"

    def _open(self):
        os.makedirs(self._directory, mode=0o755, exist_ok=True)
        return super()._open()

    def _now(self) -> datetime:
        if self._settings.local_time:
            return datetime.now()
        return datetime.now(timezone.utc).replace(tzinfo=None)

    def doRollover(self) -> None:
        if self.stream:
            self.stream.close()
            self.stream = None
        if os.path.exists(self.baseFilename):
            stamp = self._now().strftime(_BACKUP_TIME_FORMAT)[:-3]
            backup = os.path.join(self._directory, f"{self._prefix}{stamp}{self._ext}")
            os.replace(self.baseFilename, backup)
            if self._settings.compress:
                with open(backup, "rb") as src, gzip.open(backup + ".gz", "wb") as dst:
                    shutil.copyfileobj(src, dst)
                os.remove(backup)
        self._prune()

    def _backups(self) -> list[tuple[datetime, str]]:
        found = []
        for entry in os.listdir(self._directory):
            if not entry.startswith(self._prefix):
                continue
            for suffix in (self._ext + ".gz", self._ext):
                if suffix and entry.endswith(suffix):
                    stamp = entry[len(self._prefix):-len(suffix)]
                    break
            else:
                continue
            try:
                moment = datetime.strptime(stamp, _BACKUP_TIME_FORMAT)
            except ValueError:
                continue
            found.append((moment, os.path.join(self._directory, entry)))
        found.sort(reverse=True)
        return found

    def _prune(self) -> None:
        backups = self._backups()
        doomed = set()
        if self._settings.max_backups > 0:
            doomed.update(path for _, path in backups[self._settings.max_backups:])
        if self._settings.max_age > 0:
            cutoff = self._now() - timedelta(days=self._settings.max_age)
            doomed.update(path for moment, path in backups if moment < cutoff)
        for path in doomed:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass