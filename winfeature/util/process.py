# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import io
import logging
import shlex
import signal
import subprocess
import time
from dataclasses import dataclass
from typing import List, Optional, Union

import spur  # type: ignore
from assertpy.assertpy import AssertionBuilder, assert_that
from spur.errors import NoSuchCommandError  # type: ignore

from winfeature.util import (
    CommandTimeoutException,
    WinFeatureException,
    filter_ansi_escape,
)
from winfeature.util.logger import Logger, LogWriter, add_handler, get_logger
from winfeature.util.perf_timer import create_timer
from winfeature.util.shell import Shell


@dataclass
class ExecutableResult:
    stdout: str
    stderr: str
    exit_code: Optional[int]
    cmd: Union[str, List[str]]
    elapsed: float
    is_timeout: bool = False
    # the executable doesn't exist, so nothing is run.
    is_not_found: bool = False

    def __str__(self) -> str:
        return self.stdout

    def assert_exit_code(
        self,
        expected_exit_code: Union[int, List[int]] = 0,
        message: str = "",
        include_output: bool = False,
    ) -> AssertionBuilder:
        message = "\n".join([message, f"get unexpected exit code on cmd {self.cmd}"])
        if include_output:
            message += "\n".join(["stdout:", self.stdout, "stderr:", self.stderr])
        if isinstance(expected_exit_code, int):
            expected_exit_codes = [expected_exit_code]
        else:
            expected_exit_codes = expected_exit_code

        return assert_that(expected_exit_codes, message).contains(self.exit_code)


class Process:
    def __init__(
        self,
        id_: str,
        shell: Shell,
        parent_logger: Optional[Logger] = None,
    ) -> None:
        self._shell = shell
        self._id_ = id_
        self._is_posix = shell.is_posix
        self._running: bool = False
        self._log = get_logger("cmd", id_, parent=parent_logger)
        self._process: Optional[spur.local.LocalProcess] = None
        self._result: Optional[ExecutableResult] = None
        self._cmd: Union[str, List[str]] = ""

        # keep output in a buffer, so partial output can be returned on timeout.
        self.log_buffer = io.StringIO()
        self._log_handler = logging.StreamHandler(self.log_buffer)
        msg_only_format = logging.Formatter(fmt="%(message)s", datefmt="")
        add_handler(self._log_handler, self._log, msg_only_format)

    def start(
        self,
        command: str,
        shell: bool = False,
        no_error_log: bool = False,
        no_info_log: bool = False,
        no_debug_log: bool = False,
    ) -> None:
        """
        command include all parameters also.
        """
        stdout_level = logging.INFO
        stderr_level = logging.ERROR

        if no_debug_log:
            stdout_level = logging.NOTSET
        elif no_info_log:
            stdout_level = logging.DEBUG

        if no_error_log:
            stderr_level = stdout_level

        self.stdout_logger = get_logger("stdout", parent=self._log)
        self.stderr_logger = get_logger("stderr", parent=self._log)
        self._stdout_writer = LogWriter(logger=self.stdout_logger, level=stdout_level)
        self._stderr_writer = LogWriter(logger=self.stderr_logger, level=stderr_level)

        split_command = self._process_command(command, shell)

        self._log.debug(
            f"cmd: {split_command}, "
            f"shell: {shell}, "
            f"posix: {self._is_posix}"
        )

        self._cmd = split_command
        self._timer = create_timer()
        try:
            self._process = self._shell.spawn(
                command=split_command,
                stdout=self._stdout_writer,
                stderr=self._stderr_writer,
                allow_error=True,
                store_pid=self._is_posix,
                encoding="utf-8",
            )
            self._running = True
        except (FileNotFoundError, NoSuchCommandError) as identifier:
            # FileNotFoundError: not found command on Windows
            # NoSuchCommandError: not found command on Posix
            self._result = ExecutableResult(
                "",
                str(identifier),
                None,
                split_command,
                self._timer.elapsed(),
                is_not_found=True,
            )
            self._log.log(stderr_level, f"not found command: {identifier}")

    def _process_command(self, command: str, shell: bool) -> List[str]:
        # command may be Path object, convert it to str
        command = str(command)

        if shell:
            if self._is_posix:
                split_command = ["sh", "-c", command]
            else:
                split_command = ["cmd", "/c", command]
        else:
            try:
                split_command = shlex.split(command, posix=self._is_posix)
            except ValueError as identifier:
                raise WinFeatureException(
                    f"failed on split command: {command}: {identifier}"
                )

        return split_command

    def wait_result(
        self,
        timeout: float = 600,
        expected_exit_code: Optional[int] = None,
        expected_exit_code_failure_message: str = "",
        raise_on_timeout: bool = False,
    ) -> ExecutableResult:
        timer = create_timer()
        is_timeout = False

        while self.is_running() and timeout >= timer.elapsed(False):
            time.sleep(0.01)

        if timeout < timer.elapsed():
            self._log.info(f"timeout in {timeout} sec, and killed")
            self.kill()
            is_timeout = True

        if self._result is None:
            assert self._process
            if is_timeout:
                # the partial line is needed in the buffer.
                self._stdout_writer.flush()
                process_result = spur.results.result(
                    return_code=1,
                    allow_error=True,
                    output=self.log_buffer.getvalue(),
                    stderr_output="",
                )
            else:
                process_result = self._process.wait_for_result()

            self._stdout_writer.close()
            self._stderr_writer.close()
            # cache for future queries, in case it's queried twice.
            self._result = ExecutableResult(
                filter_ansi_escape(process_result.output).strip(),
                filter_ansi_escape(process_result.stderr_output).strip(),
                process_result.return_code,
                self._cmd,
                self._timer.elapsed(),
                is_timeout,
            )

            self._recycle_resource()
            self._log.debug(
                f"execution time: {self._timer}, exit code: {self._result.exit_code}"
            )

        if self._result.is_timeout and raise_on_timeout:
            raise CommandTimeoutException(
                cmd=" ".join(self._cmd) if isinstance(self._cmd, list) else self._cmd,
                timeout=timeout,
                stdout=self._result.stdout,
            )

        if expected_exit_code is not None:
            self._result.assert_exit_code(
                expected_exit_code=expected_exit_code,
                message=expected_exit_code_failure_message,
            )

        return self._result

    def kill(self) -> None:
        if self._process:
            self._log.debug(f"Killing process : {self._id_}")
            try:
                # the value is different between windows and posix
                self._process.send_signal(signal.SIGTERM)
            except Exception as identifier:
                self._log.debug(f"failed on killing process: {identifier}")

    def is_running(self) -> bool:
        if self._running and self._process:
            self._running = self._process.is_running()
        return self._running

    def _recycle_resource(self) -> None:
        # spur starts the process with `bufsize=0` and leaves pipes open.
        if isinstance(self._process, spur.local.LocalProcess):
            popen: subprocess.Popen[str] = self._process._subprocess
            if popen.stdin:
                popen.stdin.close()
            if popen.stdout:
                popen.stdout.close()
            if popen.stderr:
                popen.stderr.close()
        self._process = None
