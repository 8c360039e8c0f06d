# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from winfeature.executable import Tool
from winfeature.tools.powershell import PowerShell


class Registry(Tool):
    """
    Reads the Windows registry by the registry provider of PowerShell. The path
    is like HKEY_LOCAL_MACHINE\\SOFTWARE\\Microsoft.
    """

    @property
    def command(self) -> str:
        return ""

    def key_exists(self, path: str) -> bool:
        output = self.node.tools[PowerShell].run_cmdlet(
            f"Test-Path -Path '{self._to_provider_path(path)}'",
            force_run=True,
        )
        return output.strip() == "True"

    def value_exists(self, path: str, name: str) -> bool:
        output = self.node.tools[PowerShell].run_cmdlet(
            f"$null -ne (Get-ItemProperty -Path '{self._to_provider_path(path)}' "
            f"-Name '{name}' -ErrorAction SilentlyContinue)",
            force_run=True,
        )
        return output.strip() == "True"

    def _to_provider_path(self, path: str) -> str:
        # Registry:: accepts both full hive names and short names like HKLM.
        return f"Registry::{path}"
