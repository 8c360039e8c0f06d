# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import logging
import time
from functools import partial
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union, cast

from winfeature.secret import mask
from winfeature.util import filter_ansi_escape, is_unittest

DEFAULT_LOG_NAME = "winfeature"


class Logger(logging.Logger):
    def lines(
        self, level: int, content: Union[str, Iterable[str]], prefix: str = ""
    ) -> None:
        """
        Log a multiple line output, like a cmdlet result, line by line. Blank
        lines are skipped, because PowerShell pads tables with them.
        """
        if isinstance(content, str):
            content = content.splitlines()
        for line in content:
            line = filter_ansi_escape(line).rstrip()
            if line:
                self.log(level, f"{prefix}{line}")

    def _log(
        self,
        level: int,
        msg: Any,
        args: Any,
        exc_info: Any = None,
        extra: Optional[Mapping[str, object]] = None,
        stack_info: bool = False,
        stacklevel: int = 1,
    ) -> None:
        # secrets, like passwords in -Source shares, never reach handlers.
        if isinstance(msg, str):
            msg = mask(msg)
        if isinstance(args, tuple):
            args = tuple(mask(arg) if isinstance(arg, str) else arg for arg in args)
        return super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel,
        )


class LogWriter:
    """
    The stdout or stderr of a process. Complete lines are written to the logger,
    and the incomplete tail waits for more output, flush() or close().
    """

    def __init__(self, logger: Logger, level: int) -> None:
        self._log = logger
        self._level = level
        self._pending = ""

    def write(self, message: str) -> None:
        self._pending += message
        if "\n" in self._pending:
            completed, self._pending = self._pending.rsplit("\n", 1)
            self._log.lines(self._level, completed)

    def flush(self) -> None:
        if self._pending:
            pending, self._pending = self._pending, ""
            self._log.lines(self._level, pending)

    def close(self) -> None:
        self.flush()


_get_root_logger = partial(logging.getLogger, DEFAULT_LOG_NAME)

_format = logging.Formatter(
    fmt="%(asctime)s.%(msecs)03d[%(levelname)s] %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

_console_handler = logging.StreamHandler()


def init_logger() -> None:
    logging.Formatter.converter = time.gmtime
    logging.setLoggerClass(Logger)

    root_logger = _get_root_logger()
    root_logger.setLevel(logging.DEBUG)
    if _console_handler not in root_logger.handlers:
        root_logger.addHandler(_console_handler)


def enable_console_timestamp() -> None:
    _console_handler.setFormatter(_format)


def set_console_level(level: int) -> None:
    _console_handler.setLevel(level)


def add_handler(
    handler: logging.Handler,
    logger: Optional[logging.Logger] = None,
    formatter: Optional[logging.Formatter] = None,
) -> None:
    if is_unittest():
        return

    # handlers other than console get everything.
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter or _format)
    (logger or _get_root_logger()).addHandler(handler)


def create_file_handler(path: Path) -> Optional[logging.FileHandler]:
    # no log file in unit tests
    if is_unittest():
        return None

    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path, "w", "utf-8")
    add_handler(file_handler)
    return file_handler


def close_file_handler(file_handler: logging.FileHandler) -> None:
    _get_root_logger().removeHandler(file_handler)
    file_handler.close()


def get_logger(
    name: str = "", id_: str = "", parent: Optional[Logger] = None
) -> Logger:
    """
    Loggers are named like winfeature.node[0].tool[powershell], so output of
    a command can be traced to the node and the tool, which ran it.
    """
    if not parent:
        parent = cast(Logger, _get_root_logger())
    if not name:
        return parent
    if id_:
        name = f"{name}[{id_}]"
    return cast(Logger, parent.getChild(name))


# loggers must be the Logger type, even get_logger is called before init_logger.
logging.setLoggerClass(Logger)
