from datetime import datetime
from logging import Logger
from logging.handlers import RotatingFileHandler
import logging
import os
import sys

from pytz import timezone


LOGGER_NAME = "autostock"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_ANSI_RESET = "\033[0m"
_ANSI_COLORS = {
    "cyan": "\033[36m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "red": "\033[31m",
    "magenta": "\033[35m",
    "blue": "\033[34m",
    "white": "\033[37m",
}

# only shown when LOG_LEVEL=debug
_CHATTY_LIBRARIES = ("httpx", "httpcore", "pymongo", "PIL", "multipart")

_LEVEL_MARKERS = {
    logging.WARNING: "⚠️ ",
    logging.ERROR: "⛔ ",
    logging.CRITICAL: "⛔ ",
}


def resolve_level(name: str | None) -> int:
    """Map a LOG_LEVEL value like ``debug`` or ``WARNING`` to a logging level, falling back to INFO."""
    level = logging.getLevelName((name or "info").strip().upper())
    return level if isinstance(level, int) else logging.INFO


class ZonedFormatter(logging.Formatter):
    """Plain formatter for the log file.

    Timestamps are rendered in the configured timezone and warnings/errors
    get a marker in front of the message.
    """

    def __init__(self, tz_name: str, fmt: str = LOG_FORMAT, datefmt: str = DATE_FORMAT):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        stamp = datetime.fromtimestamp(record.created, self.tz)
        return stamp.strftime(datefmt) if datefmt else stamp.isoformat()

    def format(self, record):
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # third-party loggers occasionally pass args that do not match msg
            message = str(record.msg)

        # work on a copy so other handlers still see the untouched record
        rendered = logging.makeLogRecord(record.__dict__)
        rendered.msg = _LEVEL_MARKERS.get(record.levelno, "") + message
        rendered.args = ()
        return super().format(rendered)


class ConsoleFormatter(ZonedFormatter):
    """Console variant that wraps a line in ANSI color when the record asks for one."""

    def format(self, record):
        line = super().format(record)
        ansi = _ANSI_COLORS.get(getattr(record, "color", None) or "")
        if not ansi:
            return line
        return f"{ansi}{line}{_ANSI_RESET}"


def _colored(method_name: str):
    def emit(self, msg, *args, color: str | None = None, **kwargs):
        if color is not None:
            kwargs["extra"] = {**(kwargs.get("extra") or {}), "color": color}
        getattr(self._logger, method_name)(msg, *args, **kwargs)

    emit.__name__ = method_name
    return emit


class ColorLogger:
    """Wraps a :class:`logging.Logger` so every log call accepts ``color=``.

        logger.info("Product %s created", product.human_id, color="green")

    The color only reaches the console handler, the log file stays plain.
    """

    def __init__(self, logger: Logger):
        self._logger = logger

    debug = _colored("debug")
    info = _colored("info")
    warning = _colored("warning")
    error = _colored("error")
    critical = _colored("critical")
    exception = _colored("exception")

    def log(self, level: int, msg, *args, color: str | None = None, **kwargs):
        if color is not None:
            kwargs["extra"] = {**(kwargs.get("extra") or {}), "color": color}
        self._logger.log(level, msg, *args, **kwargs)

    def __getattr__(self, name):
        return getattr(self._logger, name)


def setup_logging() -> ColorLogger:
    """Attach console and rotating file handlers to the root logger.

    Environment:
        LOG_LEVEL           debug, info, warning or error (default info)
        TIMEZONE            timezone for timestamps (default Europe/Berlin)
        ROOT_DIR            log files go to ``<ROOT_DIR>/logs`` (default cwd)
        LOG_FILE            file name inside the log directory (default autostock.log)
        LOG_MAX_BYTES       rotate after this many bytes (default 5 MB)
        LOG_BACKUP_COUNT    rotated files to keep (default 3)

    Calling it again replaces the handlers installed by the previous call.
    """
    level = resolve_level(os.getenv("LOG_LEVEL"))
    tz_name = os.getenv("TIMEZONE", "Europe/Berlin")
    log_dir = os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "logs")
    os.makedirs(log_dir, exist_ok=True)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ConsoleFormatter(tz_name))

    logfile = RotatingFileHandler(
        os.path.join(log_dir, os.getenv("LOG_FILE", "autostock.log")),
        maxBytes=int(os.getenv("LOG_MAX_BYTES", 5 * 1024 * 1024)),
        backupCount=int(os.getenv("LOG_BACKUP_COUNT", 3)),
        encoding="utf-8",
    )
    logfile.setFormatter(ZonedFormatter(tz_name))

    root = logging.getLogger()
    for handler in [h for h in root.handlers if getattr(h, "_autostock", False)]:
        root.removeHandler(handler)
        handler.close()
    for handler in (console, logfile):
        handler.setLevel(level)
        handler._autostock = True
        root.addHandler(handler)
    root.setLevel(level)

    library_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)

    return ColorLogger(logging.getLogger(LOGGER_NAME))
