# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from typing import Any, Dict, List, Optional
from unittest.mock import Mock

from winfeature import schema
from winfeature.node import Node
from winfeature.util import (
    CommandNotFoundException,
    CommandTimeoutException,
    ExecutionException,
)

INSTALLED = 1
AVAILABLE = 0
REMOVED = 5


class FakeWindows:
    """
    Answers cmdlets like a Windows server. Pass its run_cmdlet as the side
    effect of a mocked PowerShell.run_cmdlet.
    """

    def __init__(
        self,
        features: Optional[Dict[str, int]] = None,
        powershell_version: int = 5,
        local_source_path: bool = False,
        fail_on_change: bool = False,
        timeout_on_change: bool = False,
    ) -> None:
        self.features: Dict[str, int] = features or {}
        self.powershell_version = powershell_version
        self.local_source_path = local_source_path
        self.fail_on_change = fail_on_change
        self.timeout_on_change = timeout_on_change

        self.inventory_queries = 0
        self.version_queries = 0
        self.registry_queries = 0
        self.executed: List[str] = []

    def run_cmdlet(
        self,
        cmdlet: str,
        output_json: bool = False,
        force_run: bool = False,
        fail_on_error: bool = True,
        timeout: int = 600,
    ) -> Any:
        if "$PSVersionTable" in cmdlet:
            self.version_queries += 1
            if self.powershell_version == 0:
                raise CommandNotFoundException("powershell")
            if self.powershell_version == 1:
                return ""
            return f"{self.powershell_version}\r\n"
        if "Get-WindowsFeature" in cmdlet:
            self.inventory_queries += 1
            return [
                {"Name": name, "Installed": state == INSTALLED, "InstallState": state}
                for name, state in self.features.items()
            ]
        if "Test-Path" in cmdlet or "Get-ItemProperty" in cmdlet:
            self.registry_queries += 1
            return str(self.local_source_path)

        self.executed.append(cmdlet)
        if self.timeout_on_change:
            raise CommandTimeoutException(
                cmdlet, timeout, stdout="Start Installation..."
            )
        if self.fail_on_change:
            raise ExecutionException(
                cmdlet, 1, stderr="The request to add features failed."
            )
        return "Success Restart Needed Exit Code Feature Result\r\nTrue No Success"


def create_node(
    platform_version: float = 10.0, powershell_version: Optional[int] = None
) -> Node:
    shell = Mock()
    shell.is_posix = False

    node = Node(runbook=schema.Node(powershell_version=powershell_version), shell=shell)
    # skip detecting OS by running 'ver'.
    node._is_initialized = True
    node.os = Mock()
    node.os.name = "Windows"
    node.os.is_windows = True
    node.os.is_posix = False
    node.os.platform_version = platform_version
    return node


def create_feature(**kwargs: Any) -> schema.WindowsFeature:
    return schema.load_by_type(schema.WindowsFeature, kwargs)
