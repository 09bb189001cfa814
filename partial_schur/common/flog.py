'''
Console and file logging for the partial Schur solvers.

The module wraps the standard ``logging`` package into a small ``Logger``
class with indentation levels, optional ANSI colours, banners and a timing
decorator. Restart drivers obtain the process wide instance through
``get_global_logger`` and report their cycles through it.

@note File logging is enabled when the environment variable PYLOGFILE is set to a non-zero value.
@note Coloured output is disabled when the environment variable PYLOGCOLORS is set to '0'.

-------------------------------------------------------
file        :   partial_schur/common/flog.py
author      :   Maksymilian Kliczkowski
date        :   2025-05-01
description :   Logger class with verbosity control and per-process singleton.
-------------------------------------------------------
'''

__all__         = [
    "Logger",
    "Colors",
    "StripAnsiFormatter",
    "log_phase_summary",
    "get_global_logger"
]

import os
import re
import sys
import functools
import logging
import threading
from datetime import datetime
from typing import Optional, Dict, List

######################################################
#! COLORS
######################################################

class Colors:
    """
    ANSI escape codes for console output.

    Attributes:
        black, red, green, yellow, blue (str):
            Foreground colour codes.
        white (str):
            Reset to the terminal default.
    """

    black   = "\033[30m"
    red     = "\033[31m"
    green   = "\033[32m"
    yellow  = "\033[33m"
    blue    = "\033[34m"
    white   = "\033[0m"

    _MAPPING = {
        "black"     : black,
        "red"       : red,
        "green"     : green,
        "yellow"    : yellow,
        "blue"      : blue,
        "white"     : white,
    }

    def __init__(self, color: str):
        self.color = color

    def __str__(self) -> str:
        return Colors._MAPPING.get(self.color, Colors.white)

    def __repr__(self) -> str:
        return str(self)

    def __call__(self, text: str) -> str:
        ''' Wrap ``text`` into the colour code and a reset. '''
        return f"{self}{text}{Colors.white}"

# CSI colour sequences: ESC [ ... m
_ansi_escape = re.compile(r'\x1b\[[0-9;]*m')

class StripAnsiFormatter(logging.Formatter):
    ''' Formatter for log files: colour codes are removed from the record. '''

    def format(self, record):
        return _ansi_escape.sub('', super().format(record))

######################################################
#! LOGGER
######################################################

ENV_LOGGER_FILE     = 'PYLOGFILE'
ENV_LOGGER_COLORS   = 'PYLOGCOLORS'
_DATE_FMT           = "%d_%m_%Y_%H-%M_%S"

class Logger:
    """
    Logger class for handling console and file logging with verbosity control.

    Every message method accepts ``lvl`` (indentation depth), ``verbose``
    (the message is dropped when False) and ``color``.
    """

    LEVELS = {
        logging.DEBUG   : 'debug',
        logging.INFO    : 'info',
        logging.WARNING : 'warning',
        logging.ERROR   : 'error'
    }

    LEVELS_R = {v: k for k, v in LEVELS.items()}

    def __init__(self,
                name            : str           = "Global",
                logfile         : Optional[str] = None,
                lvl             : int           = logging.INFO,
                append_ts       : bool          = False,
                use_ts_in_cmd   : bool          = False):
        """
        Initialize the logger instance.

        Args:
            name (str):
                Name of the underlying ``logging`` logger.
            logfile (str):
                Base name of the log file. Used only when PYLOGFILE is enabled;
                an empty string falls back to the timestamp.
            lvl (int | str):
                Logging level (default: logging.INFO).
            append_ts (bool):
                Append a timestamp to the log file name.
            use_ts_in_cmd (bool):
                Prefix console records with a timestamp.
        """
        self.now                = datetime.now()
        self.now_str            = self.now.strftime(_DATE_FMT)
        self.lvl                = Logger.LEVELS_R.get(lvl.lower(), logging.INFO) if isinstance(lvl, str) else lvl
        self.handler_added      = False
        self.has_colors         = sys.stdout.isatty() and os.environ.get(ENV_LOGGER_COLORS, '1') != '0'

        self.logger             = logging.getLogger(name or __name__)
        self.logger.setLevel(self.lvl)
        self.logger.propagate   = False

        # a second Logger with the same name replaces the handlers of the first
        for h in list(self.logger.handlers):
            self.logger.removeHandler(h)
            h.close()

        console_fmt             = '%(asctime)s [%(levelname)s] %(message)s' if use_ts_in_cmd else '[%(levelname)s] %(message)s'
        ch                      = logging.StreamHandler(sys.stdout)
        ch.setLevel(self.lvl)
        ch.setFormatter(logging.Formatter(console_fmt, datefmt=_DATE_FMT))
        self.logger.addHandler(ch)

        if logfile is not None and os.environ.get(ENV_LOGGER_FILE, '0') != '0':
            self.logfile = logfile[:-len('.log')] if logfile.endswith('.log') else logfile
            if len(self.logfile) == 0:
                self.logfile = self.now_str
            if append_ts:
                self.logfile += f'_{self.now_str}'
            self.configure("./log")
        else:
            self.logfile = None

    # --------------------------------------------------------------

    @staticmethod
    def colorize(txt: str, color: str):
        ''' Apply ``color`` to ``txt``; 'white' or an empty name leaves it as is. '''
        if not color or color.lower() == 'white':
            return str(txt)
        return Colors(color)(txt)

    # --------------------------------------------------------------

    def configure(self, directory: str):
        """
        Attach a file handler writing to ``<directory>/<logfile>.log``.

        Args:
            directory (str): Directory of the log file, created if missing.
        """
        os.makedirs(directory, exist_ok=True)
        self.logfile = os.path.join(directory, f'{self.logfile}.log')

        with open(self.logfile, 'w+', encoding='utf-8') as f:
            f.write('--------------------------------------------------\n')
            f.write(f'Log file created on {self.now_str}.\n')
            f.write(f'Log level set to: {self.LEVELS.get(self.lvl, "info")}.\n')
            f.write(f'Python version: {sys.version}\n')
            f.write(f'Current working directory: {os.getcwd()}\n')
            f.write('--------------------------------------------------\n')

        if not self.handler_added:
            fh = logging.FileHandler(self.logfile, encoding='utf-8')
            fh.setLevel(self.lvl)
            fh.setFormatter(StripAnsiFormatter('%(asctime)s [%(levelname)s] %(message)s', datefmt=_DATE_FMT))
            self.logger.addHandler(fh)
            self.handler_added = True
            self._log_message(logging.INFO, f"Log file created: {self.logfile}")

    # --------------------------------------------------------------

    @staticmethod
    def print_tab(lvl=0):
        ''' Indentation prefix for a message at depth ``lvl``. '''
        return '\t' * lvl + ('->' if lvl > 0 else '')

    @staticmethod
    def print(msg: str, lvl=0):
        return f"{Logger.print_tab(lvl)}{msg}"

    # --------------------------------------------------------------

    def _log_message(self, log_level, msg, lvl=0):
        log_function = getattr(self.logger, self.LEVELS.get(log_level, 'info'))
        log_function(Logger.print(msg, lvl))

    def say(self, *args, end=True, log=logging.INFO, lvl=0, verbose=True, color=None):
        """
        Log several messages as a single record.

        Args:
            *args:
                Messages, converted with ``str``.
            end (bool):
                Join with newlines (True) or spaces (False).
            log (int | str):
                Level of the record, either a ``logging`` constant or its name.
        """
        if isinstance(log, str):
            log = Logger.LEVELS_R.get(log.lower(), logging.DEBUG)
        if not verbose or log < self.lvl:
            return
        msg = ('\n' if end else ' ').join(str(arg) for arg in args)
        if color is not None and self.has_colors:
            msg = self.colorize(msg, color)
        self._log_message(log, msg, lvl)

    def info(self, msg: str, lvl=0, verbose=True, color=None):
        if not verbose:
            return
        if color is not None and self.has_colors:
            msg = self.colorize(msg, color)
        self.logger.info(Logger.print(msg, lvl))

    def debug(self, msg: str, lvl=0, verbose=True, color=None):
        if not verbose:
            return
        if color is not None and self.has_colors:
            msg = self.colorize(msg, color)
        self.logger.debug(Logger.print(msg, lvl))

    def warning(self, msg: str, lvl=0, verbose=True, color='yellow'):
        if not verbose:
            return
        if self.has_colors:
            msg = self.colorize(msg, color)
        self.logger.warning(Logger.print(msg, lvl))

    # --------------------------------------------------------------

    def title(self, tail: str, desired_size: int = 50, fill: str = '=', lvl=0, verbose=True, color=None):
        """
        Log ``tail`` centred in a line of ``fill`` characters.

        Args:
            tail (str):
                Text in the middle of the banner.
            desired_size (int):
                Total width of the banner.
        """
        if not verbose:
            return
        if len(tail) + 2 + lvl * 6 > desired_size:
            self.info(tail, lvl, verbose)
            return
        fill_size   = (desired_size - len(tail)) // (2 * len(fill))
        out         = (fill * fill_size) + tail + (fill * fill_size)
        if len(out) < desired_size:
            out += fill[0] * (desired_size - len(out) - 1)
        self.info(out[:desired_size], lvl, verbose, color)

    # --------------------------------------------------------------

    def timing(self, func):
        """
        Decorator logging the wall time of ``func`` at debug level.

        Use as:
            @logger.timing
            def my_function(...):
                ...
        """

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            self.debug(f"Starting '{func.__name__}'...")
            start_time  = datetime.now()
            result      = func(*args, **kwargs)
            duration    = (datetime.now() - start_time).total_seconds()
            self.debug(f"Finished '{func.__name__}' in {duration:.4f} seconds.")
            return result
        return wrapper

######################################################
#! GLOBAL LOGGER
######################################################

_G_LOGGER       : Optional[Logger]  = None
_G_LOGGER_PID   : Optional[int]     = None
_G_LOCK                             = threading.Lock()

def get_global_logger(**kwargs) -> Logger:
    """
    One Logger per process (PID), safe across threads and forks.

    Args:
        **kwargs: forwarded to the Logger constructor on first use
        - name (str): Name of the logger (default: "PartialSchur").
        - lvl (int): Logging level (default: logging.INFO).
        - use_ts_in_cmd (bool): Timestamps in the console (default: True).
        - logfile (str or None): Log file base name (default: None).

    Example
    -------
        >>> logger = get_global_logger()
        >>> logger.info("Arnoldi restart finished.")
    """
    global _G_LOGGER, _G_LOGGER_PID
    pid = os.getpid()

    if _G_LOGGER is not None and _G_LOGGER_PID == pid:
        return _G_LOGGER

    with _G_LOCK:
        if _G_LOGGER is not None and _G_LOGGER_PID == pid:
            return _G_LOGGER

        logger = Logger(
            name            = kwargs.get("name",            "PartialSchur"),
            lvl             = kwargs.get("lvl",             logging.INFO),
            append_ts       = kwargs.get("append_ts",       True),
            use_ts_in_cmd   = kwargs.get("use_ts_in_cmd",   True),
            logfile         = kwargs.get("logfile",         None),
        )
        if os.environ.get("PY_BACKEND_INFO", "0") != "0":
            logger.title("Global Logger initialized!", 50, '#', 0)

        _G_LOGGER       = logger
        _G_LOGGER_PID   = pid
        return _G_LOGGER

######################################################

def log_phase_summary(
    logger              : Logger,
    phase_durations     : Dict[str, float],
    total_duration      : Optional[float]       = None,
    title               : str                   = "Timing Summary",
    phase_col_width     : int                   = 18,
    duration_col_width  : int                   = 14,
    duration_precision  : int                   = 4,
    lvl                 : int                   = 0,
    extra_info          : Optional[List[str]]   = None,
    log                 : int                   = logging.INFO):
    """
    Log a table of phase durations (seconds), e.g. the time spent expanding,
    classifying and restarting during an Arnoldi run.

    Parameters:
    logger:
        Logger instance.
    phase_durations:
        Mapping phase name -> duration in seconds.
    total_duration:
        Adds a 'Total' row when given.
    extra_info:
        Lines logged after the table (counters, termination reason).
    log:
        Level of every record of the table.
    """
    phase_col_width     = max(phase_col_width, len("Phase"))
    duration_col_width  = max(duration_col_width, len("Duration (s)"))
    separator           = f"|{'-' * (phase_col_width + 2)}|{'-' * (duration_col_width + 2)}|"
    row_fmt             = f"| {{0:<{phase_col_width}}} | {{1:>{duration_col_width}.{duration_precision}f}} |"

    logger.say(f" {title} ".center(50, '#'), log=log, lvl=lvl)
    logger.say(separator, log=log, lvl=lvl + 1)
    logger.say(f"| {'Phase':<{phase_col_width}} | {'Duration (s)':>{duration_col_width}} |", log=log, lvl=lvl + 1)
    logger.say(separator, log=log, lvl=lvl + 1)
    for name, duration in phase_durations.items():
        logger.say(row_fmt.format(name, duration), log=log, lvl=lvl + 1)
    if total_duration is not None:
        logger.say(separator, log=log, lvl=lvl + 1)
        logger.say(row_fmt.format("Total", total_duration), log=log, lvl=lvl + 1)
    logger.say(separator, log=log, lvl=lvl + 1)
    for line in extra_info or []:
        logger.say(line, log=log, lvl=lvl + 1)

######################################################
#! EOF
######################################################
