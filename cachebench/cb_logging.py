import datetime
import enum
import logging
import os
import sys

# Custom log levels
CRITICAL = logging.CRITICAL
ERROR = logging.ERROR
RESULT = 35
WARNING = logging.WARNING   # 30
STATUS = 25
INFO = logging.INFO         # 20
VERBOSE = 19
VERBOSER = 18
DEBUG = logging.DEBUG       # 10
RIDICULOUS = 7
NOTSET = logging.NOTSET

DEFAULT_STREAM_LOG_LEVEL = logging.INFO
LOG_FILENAME = "cachebench.log"

custom_levels = {
    'RESULT': RESULT,
    'STATUS': STATUS,
    'VERBOSE': VERBOSE,
    'VERBOSER': VERBOSER,
    'RIDICULOUS': RIDICULOUS,
}


class COLORS(enum.Enum):
    green = "\033[0;32m"
    yellow = "\033[0;33m"
    bred = "\033[1;31m"
    bblue = "\033[1;34m"
    bipurple = "\033[1;95m"
    normal = "\033[0m"


level_to_color_map = {
    CRITICAL: COLORS.bred,
    ERROR: COLORS.bred,
    RESULT: COLORS.green,
    WARNING: COLORS.yellow,
    STATUS: COLORS.bblue,
    RIDICULOUS: COLORS.bipurple,
}


def get_level_color(level):
    return level_to_color_map.get(level, COLORS.normal).value


def log_level_factory(level_name):
    level_num = custom_levels.get(level_name, logging.NOTSET)

    def log_func(self, message, *args, **kwargs):
        if self.isEnabledFor(level_num):
            # stacklevel=2 so records point at the caller, not at this wrapper
            kwargs.setdefault('stacklevel', 2)
            self._log(level_num, message, args, **kwargs)
    return log_func


class CBLogger(logging.Logger):
    """Logger with the harness' extra levels (result, status, verbose, ...)."""


for custom_name, custom_num in custom_levels.items():
    logging.addLevelName(custom_num, custom_name)
    setattr(CBLogger, custom_name.lower(), log_level_factory(custom_name))


class ColoredStandardFormatter(logging.Formatter):
    def format(self, record):
        formatted_time = datetime.datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S')
        color = get_level_color(record.levelno)
        return f"{color}{formatted_time}|{record.levelname}: {record.getMessage()}{COLORS.normal.value}"


class ColoredDebugFormatter(logging.Formatter):
    # Thread name identifies the worker or the sampler
    def format(self, record):
        formatted_time = datetime.datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        color = get_level_color(record.levelno)
        message = f"{color}{formatted_time}|{record.levelname}:{record.threadName}:{record.module}:{record.lineno}: " \
                  f"{record.getMessage()}{COLORS.normal.value}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


class RunLogFormatter(logging.Formatter):
    """Uncolored lines for the run log file."""

    def format(self, record):
        formatted_time = datetime.datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        message = f"{formatted_time}|{record.levelname}:{record.threadName}: {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def add_run_log(_logger, directory, level=DEBUG):
    """
    Also write the logger's records to ``<directory>/cachebench.log``.

    The file is appended to, so repeated runs into one directory share a log.
    apply_logging_options() leaves file handlers alone.

    Returns:
        The added FileHandler, to be passed to remove_run_log().

    Raises:
        OSError: The directory cannot be created or the file cannot be opened.
    """
    os.makedirs(directory, exist_ok=True)
    handler = logging.FileHandler(os.path.join(directory, LOG_FILENAME), mode='a')
    handler.setFormatter(RunLogFormatter())
    handler.setLevel(level)
    _logger.addHandler(handler)
    return handler


def remove_run_log(_logger, handler):
    _logger.removeHandler(handler)
    handler.close()


def setup_logging(name=__name__, stream_log_level=DEFAULT_STREAM_LOG_LEVEL):
    if isinstance(stream_log_level, str):
        stream_log_level = logging.getLevelName(stream_log_level.upper())

    _logger = CBLogger(name)
    _logger.setLevel(RIDICULOUS)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(ColoredStandardFormatter())
    stream_handler.setLevel(stream_log_level)
    _logger.addHandler(stream_handler)

    return _logger


def apply_logging_options(_logger, args):
    if args is None:
        return
    stream_handlers = [h for h in _logger.handlers if not hasattr(h, 'baseFilename')]

    # An explicit level goes first so --verbose and --debug can still lower it
    if getattr(args, "stream_log_level", None):
        for stream_handler in stream_handlers:
            stream_handler.setLevel(args.stream_log_level.upper())

    if getattr(args, "verbose", False):
        for stream_handler in stream_handlers:
            if stream_handler.level > VERBOSE:
                stream_handler.setLevel(VERBOSE)

    if getattr(args, "debug", False):
        for stream_handler in stream_handlers:
            stream_handler.setFormatter(ColoredDebugFormatter())
            if stream_handler.level > DEBUG:
                stream_handler.setLevel(DEBUG)
