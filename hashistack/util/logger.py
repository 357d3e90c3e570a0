"""This module defines logging capabilities for hashistack."""

import logging
import sys
import time

LOG_LEVELS = list(range(5))
DEFAULT_LOG_LEVEL = 3

LEVEL_NAMES = {
    'quiet': 0,
    'error': 1,
    'warning': 2,
    'info': 3,
    'debug': 4}

_RED = "\033[91m"
_GREEN = "\033[92m"
_YELLOW = "\033[93m"
_GREY = "\033[90m"
_END = "\033[0m"


def red(msg):
    """Returns msg wrapped in red ANSI codes."""
    return f"{_RED}{msg}{_END}"


def green(msg):
    """Returns msg wrapped in green ANSI codes."""
    return f"{_GREEN}{msg}{_END}"


def yellow(msg):
    """Returns msg wrapped in yellow ANSI codes."""
    return f"{_YELLOW}{msg}{_END}"


def grey(msg):
    """Returns msg wrapped in grey ANSI codes."""
    return f"{_GREY}{msg}{_END}"


def timestamp():
    """The prefix put in front of error and debug lines."""
    return time.strftime("[%Y%m%d-%H%M%S]")


def level_to_int(level):
    """Converts a verbosity given by name or number to an int.

    Args:
        level (str or int): e.g. ``"debug"``, ``"4"`` or ``4``.

    Raises:
        ValueError if the level is neither a known name nor an integer.
    """
    try:
        return LEVEL_NAMES[level]
    except KeyError:
        return int(level)


def get_logger(name):
    """Returns a Python logger.

    Only a single handler which logs to STDOUT is added to a logger,
    calling this function twice with the same name would otherwise
    print every line twice.

    Args:
        name (str): The name of the Logger.

    Returns:
        A Python Logger.
    """

    log = logging.getLogger(name)
    set_level(log, Logger.LOG_LEVEL)

    if not log.handlers:
        sh = logging.StreamHandler(sys.stdout)
        fmt = logging.Formatter("%(message)s")
        sh.setFormatter(fmt)
        log.addHandler(sh)

    return log


def set_level(logger, level):
    """Sets the logging level.

    The hashistack levels map onto the Python levels as follows:
    1 - ERROR, 2 - WARNING, 3 - INFO, 4 - DEBUG. Level 0 disables
    the logger.

    Args:
        logger: A Python logger object.
        level (int): The logging level.

    Raises:
        ValueError if log level is unsupported.
    """

    if level not in LOG_LEVELS:
        raise ValueError(f"log level {level} is not supported")

    logger.disabled = False
    if level == 1:
        logger.setLevel(logging.ERROR)
    elif level == 2:
        logger.setLevel(logging.WARNING)
    elif level == 3:
        logger.setLevel(logging.INFO)
    elif level == 4:
        logger.setLevel(logging.DEBUG)
    else:
        logger.disabled = True


class Singleton(type):
    """Metaclass to implement the Singleton pattern.

    Every call of a class using this metaclass returns the same instance.
    Subsequent calls re-run ``__init__`` with the new arguments, so a
    ``Logger(__name__)`` in each module points the shared proxy at the
    caller's logger.

    Example:
        >>> log1 = Logger(__name__)
        >>> log2 = Logger("hashistack")
        >>> id(log1) == id(log2)
        True
    """
    _instances = {}

    def __call__(cls, *args, **kwargs):
        if cls not in cls._instances:
            cls._instances[cls] = super(Singleton, cls).__call__(*args, **kwargs)
        else:
            cls._instances[cls].__init__(*args, **kwargs)

        return cls._instances[cls]


class Logger(metaclass=Singleton):
    """This class provides logging capabilities.

    This class is a singleton that returns as proxy instance of
    logging.Logger.

    Before using, make sure to set Logger.LOG_LEVEL to the desired
    level.

    The different levels are:

    .. code:: shell

        * 0 - quiet (no output)
        * 1 - error
        * 2 - warning
        * 3 - info
        * 4 - debug

    Error and debug lines carry a timestamp, so a fatal failure in one of
    the boot scripts can be matched against the systemd journal.

    Example:
        >>> log = Logger(__name__)
        >>> log.info("installing %s", "nomad")
        [~] installing nomad
        >>> log.error("download failed")
        [-] [20190426-155611] download failed

    Attributes:
        LOG_LEVEL (int): The log level to be used across the application.

    Args:
        name (str): The name of the logger.
    """

    LOG_LEVEL = DEFAULT_LOG_LEVEL

    def __init__(self, name):
        self.logger = get_logger(name)

    @property
    def level(self):
        """Returns the Python log level equivalent.

        Returns:
            The Python loglevel equivalent or None if logger not instantiated.
        """
        if not self.logger:
            return None

        if self.logger.disabled:
            return 0

        return self.logger.level

    @level.setter
    def level(self, level):
        level = level_to_int(level)
        Logger.LOG_LEVEL = level
        set_level(self.logger, level)

    def error(self, msg, *args, color=True, **kwargs):
        """Logs a timestamped message on error level.

        If color is True, will be logged in red with ``[-]``.

        Args:
            msg (str): The message to be logged.
            color (bool): If the message should be colored.
        """

        msg = f"{timestamp()} {msg}"
        if color:
            msg = red(f"[-] {msg}")

        self.logger.error(msg, *args, **kwargs)

    def warning(self, msg, *args, color=True, **kwargs):
        """Logs a message on warning level, yellow with ``[!]``."""

        if color:
            msg = yellow(f"[!] {msg}")

        self.logger.warning(msg, *args, **kwargs)

    def warn(self, msg, *args, color=True, **kwargs):
        """Convenience function, calls :meth:`.Logger.warning`."""

        self.warning(msg, *args, **kwargs, color=color)

    def info(self, msg, *args, color=True, **kwargs):
        """Logs a message on info level, grey with ``[~]``."""

        if color:
            msg = grey(f"[~] {msg}")

        self.logger.info(msg, *args, **kwargs)

    def debug(self, msg, *args, color=True, **kwargs):
        """Logs a message on debug level.

        The message is always prefixed with the current timestamp and
        colored grey if color is True.
        """

        msg = f"{timestamp()} {msg}"
        if color:
            msg = grey(msg)

        self.logger.debug(msg, *args, **kwargs)

    def success(self, msg, *args, color=True, **kwargs):
        """Indicates a success, green with ``[+]`` on info level."""

        if color:
            msg = green(f"[+] {msg}")

        self.logger.info(msg, *args, **kwargs)
