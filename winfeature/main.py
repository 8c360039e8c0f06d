# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import sys
import traceback
from datetime import datetime, timezone
from logging import DEBUG, INFO, FileHandler
from pathlib import Path, PurePath
from typing import List, Optional

from retry import retry

from winfeature.parameter_parser.argparser import parse_args
from winfeature.util import constants
from winfeature.util.logger import (
    close_file_handler,
    create_file_handler,
    get_logger,
    init_logger,
    set_console_level,
)
from winfeature.util.perf_timer import create_timer
from winfeature.variable import add_secrets_from_pairs

_runtime_root = Path("runtime").absolute()


def _normalize_path(path_type: str, path: Optional[Path] = None) -> Path:
    if path:
        # if log path is relative path, join with root.
        if not path.is_absolute():
            path = _runtime_root / path
    else:
        path = _runtime_root / path_type

    return path


@retry(FileExistsError, tries=10, delay=0.2)  # type: ignore
def test_path(log_root_path: Path, run_id: str = "") -> PurePath:
    if run_id:
        # use predefined run_id
        logic_path = PurePath(run_id)
    else:
        # Get current time and generate a Run ID.
        current_time = datetime.now(timezone.utc)
        date_of_today = current_time.strftime("%Y%m%d")
        time_of_today = current_time.strftime("%Y%m%d-%H%M%S-%f")[:-3]
        logic_path = PurePath(f"{date_of_today}/{time_of_today}")

    log_path = log_root_path / logic_path
    if log_path.exists():
        raise FileExistsError(
            f"The log path '{log_path}' already exists, "
            f"and not found an unique path."
        )

    log_path.mkdir(parents=True)
    return logic_path


def initialize_runtime_folder(
    log_path: Optional[Path] = None,
    run_id: str = "",
) -> None:
    log_path = _normalize_path("log", log_path)
    logic_path = test_path(log_path, run_id=run_id)

    constants.RUN_ID = logic_path.name
    constants.RUN_LOCAL_LOG_PATH = log_path / logic_path


def main(argv: Optional[List[str]] = None) -> int:
    total_timer = create_timer()
    init_logger()
    log = get_logger()
    exit_code: int = 0
    file_handler: Optional[FileHandler] = None

    try:
        args = parse_args(argv)

        initialize_runtime_folder(args.log_path, args.run_id)

        log_level = DEBUG if (args.debug) else INFO
        set_console_level(log_level)

        file_handler = create_file_handler(
            Path(f"{constants.RUN_LOCAL_LOG_PATH}/winfeature-{constants.RUN_ID}.log")
        )

        log.debug(f"Python version: {sys.version}")
        log.debug(f"local time: {datetime.now().astimezone()}")

        # command line args shouldn't leak any provided secrets in logs.
        add_secrets_from_pairs(getattr(args, "variables", None))

        log.debug(f"command line args: {sys.argv}")
        log.debug(f"run log path: {constants.RUN_LOCAL_LOG_PATH}")

        exit_code = args.func(args)
        assert isinstance(exit_code, int), f"actual: {type(exit_code)}"
    finally:
        log.info(f"completed in {total_timer}")
        if file_handler:
            close_file_handler(file_handler)

    return exit_code


def cli() -> int:
    """
    CLI entry point
    """

    exit_code = 0
    try:
        exit_code = main()
    except Exception as exception:
        exit_code = -1
        log = get_logger()
        try:
            log.exception(exception)
        except Exception:
            # if there is any exception in log class,
            # they have to be caught and show on console only
            traceback.print_exc()
    finally:
        sys.exit(exit_code)


if __name__ == "__main__":
    cli()
