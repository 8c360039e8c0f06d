# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

from random import randint
from typing import Any, Optional

from winfeature import schema
from winfeature.executable import Tools
from winfeature.operating_system import OperatingSystem
from winfeature.util import InitializableMixin
from winfeature.util.logger import Logger, get_logger
from winfeature.util.process import ExecutableResult, Process
from winfeature.util.shell import LocalShell, Shell


class Node(InitializableMixin):
    """
    The machine, which Windows features are managed on. It runs commands in a
    local shell, and holds tools. Tools keep states like the cached feature
    inventory, so the same node should be used in a run.
    """

    def __init__(
        self,
        runbook: Optional[schema.Node] = None,
        index: int = -1,
        logger_name: str = "node",
        parent_logger: Optional[Logger] = None,
        shell: Optional[Shell] = None,
    ) -> None:
        super().__init__()
        if runbook is None:
            runbook = schema.Node()
        self.runbook = runbook
        self.name = runbook.name
        self.index = index
        self._shell: Shell = shell if shell else LocalShell()

        self.tools = Tools(self)
        node_id = str(self.index) if self.index >= 0 else ""
        self.log = get_logger(logger_name, node_id, parent=parent_logger)

    @property
    def shell(self) -> Shell:
        return self._shell

    @property
    def powershell_version_hint(self) -> Optional[int]:
        return self.runbook.powershell_version

    def execute(
        self,
        cmd: str,
        shell: bool = False,
        no_error_log: bool = False,
        no_info_log: bool = True,
        no_debug_log: bool = False,
        timeout: int = 600,
        expected_exit_code: Optional[int] = None,
        expected_exit_code_failure_message: str = "",
        raise_on_timeout: bool = False,
    ) -> ExecutableResult:
        process = self.execute_async(
            cmd,
            shell=shell,
            no_error_log=no_error_log,
            no_info_log=no_info_log,
            no_debug_log=no_debug_log,
        )
        return process.wait_result(
            timeout=timeout,
            expected_exit_code=expected_exit_code,
            expected_exit_code_failure_message=expected_exit_code_failure_message,
            raise_on_timeout=raise_on_timeout,
        )

    def execute_async(
        self,
        cmd: str,
        shell: bool = False,
        no_error_log: bool = False,
        no_info_log: bool = True,
        no_debug_log: bool = False,
    ) -> Process:
        self.initialize()

        cmd_id = str(randint(0, 10000))
        process = Process(cmd_id, self._shell, parent_logger=self.log)
        process.start(
            cmd,
            shell=shell,
            no_error_log=no_error_log,
            no_info_log=no_info_log,
            no_debug_log=no_debug_log,
        )
        return process

    def close(self) -> None:
        self.log.debug("closing node...")
        self.tools.clear()
        self._shell.close()

    def _initialize(self, *args: Any, **kwargs: Any) -> None:
        self._shell.initialize()
        self.os: OperatingSystem = OperatingSystem.create(self)

    def __repr__(self) -> str:
        return self.name


def local_node_connect(
    runbook: Optional[schema.Node] = None,
    parent_logger: Optional[Logger] = None,
) -> Node:
    node = Node(runbook=runbook, index=0, parent_logger=parent_logger)
    node.initialize()
    return node
