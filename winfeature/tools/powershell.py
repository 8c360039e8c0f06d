# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import base64
import json
import re
from typing import Any, Optional
from xml.etree import ElementTree

from winfeature.executable import Tool
from winfeature.util import (
    CommandNotFoundException,
    ConfigurationException,
    ExecutionException,
    constants,
)
from winfeature.util.process import Process


class PowerShell(Tool):
    _leading_number_pattern = re.compile(r"^(\d+)")

    @property
    def command(self) -> str:
        return "powershell -NoProfile -NonInteractive"

    def run_cmdlet_async(self, cmdlet: str, force_run: bool = False) -> Process:
        # encoding command for any special characters, like quotes in -Source.
        self._log.debug(f"encoding command: {cmdlet}")
        encoded_command = base64.b64encode(cmdlet.encode("utf-16-le")).decode("utf-8")

        return self.run_async(
            f"-EncodedCommand {encoded_command}",
            force_run=force_run,
            no_error_log=True,
            no_info_log=True,
            no_debug_log=True,
        )

    def run_cmdlet(
        self,
        cmdlet: str,
        output_json: bool = False,
        force_run: bool = False,
        fail_on_error: bool = True,
        timeout: int = constants.DEFAULT_TIMEOUT,
    ) -> Any:
        if output_json:
            cmdlet = f"{cmdlet} | ConvertTo-Json -Compress"
        process = self.run_cmdlet_async(cmdlet=cmdlet, force_run=force_run)

        result = process.wait_result(timeout=timeout, raise_on_timeout=True)
        if result.is_not_found:
            raise CommandNotFoundException(self.command, stderr=result.stderr)
        if result.exit_code == 0:
            self._log.debug(f"stdout:\n{result.stdout}")
        else:
            stderr = self._parse_error_message(result.stderr)
            self._log.debug(f"stderr:\n{stderr}")
            if fail_on_error:
                raise ExecutionException(
                    cmd=cmdlet,
                    exit_code=result.exit_code,
                    stdout=result.stdout,
                    stderr=stderr,
                )
        if output_json:
            return json.loads(result.stdout) if result.stdout else None
        return result.stdout

    def get_major_version(self, hint: Optional[int] = None) -> int:
        """
        Return the major version of installed PowerShell. 0 means nothing is
        installed, and 1 means PowerShell 1.0, which doesn't have
        $PSVersionTable.

        The hint is a version, which is known already, like the one from an
        inventory. It may be out of date, if PowerShell is installed after it's
        collected, so it's trusted only if it's new enough.
        """
        if hint is not None and hint > constants.MINIMAL_POWERSHELL_VERSION:
            self._log.debug(f"use the known PowerShell version: {hint}")
            return hint

        try:
            output = self.run_cmdlet(
                "$PSVersionTable.psversion.major", force_run=True, fail_on_error=False
            )
        except CommandNotFoundException as identifier:
            self._log.debug(f"PowerShell is not installed: {identifier}")
            return 0

        output = output.strip()
        if not output:
            return 1
        matched = self._leading_number_pattern.match(output)
        if not matched:
            self._log.debug(f"cannot parse PowerShell version from: {output}")
            return 0
        return int(matched.group(1))

    def check_version(
        self,
        minimal: int = constants.MINIMAL_POWERSHELL_VERSION,
        hint: Optional[int] = None,
    ) -> Optional[ConfigurationException]:
        """
        Return an error, if the PowerShell is older than the minimal version. Cmdlets
        rely on ConvertTo-Json, which is available since PowerShell 3.0.
        """
        version = self.get_major_version(hint=hint)
        self._log.debug(f"PowerShell major version: {version}")
        if version < minimal:
            return ConfigurationException(
                f"Managing Windows features requires PowerShell {minimal}.0 or "
                f"later, but found version {version}. Please install PowerShell "
                f"{minimal}.0+ before managing features."
            )
        return None

    def _check_exists(self) -> bool:
        # a missing PowerShell is reported as version 0 by get_major_version.
        return True

    def _parse_error_message(self, raw: str) -> str:
        # the error stream of an encoded command is serialized like,
        # #< CLIXML
        # <Objs Version="1.1.0.1" ...><S S="Error">message_x000D__x000A_</S></Objs>
        leading = "#< CLIXML"
        if not raw.startswith(leading):
            return raw
        raw = raw[len(leading) :]
        try:
            root = ElementTree.fromstring(raw.strip())
        except ElementTree.ParseError:
            return raw
        namespaces = {"ns": "http://schemas.microsoft.com/powershell/2004/04"}
        error_elements = root.findall(".//ns:S[@S='Error']", namespaces=namespaces)
        result = "".join([e.text for e in error_elements if e.text])

        result = result.replace("_x000D__x000A_", "\n")
        return result
