# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import base64
from unittest import TestCase
from unittest.mock import Mock, patch

from assertpy import assert_that

from selftests.fakes import create_node
from winfeature.tools import PowerShell
from winfeature.util import (
    CommandNotFoundException,
    ConfigurationException,
    ExecutionException,
)
from winfeature.util.process import ExecutableResult


def _create_process(
    stdout: str = "", stderr: str = "", exit_code: int = 0, is_not_found: bool = False
) -> Mock:
    process = Mock()
    process.wait_result.return_value = ExecutableResult(
        stdout=stdout,
        stderr=stderr,
        exit_code=None if is_not_found else exit_code,
        cmd="powershell",
        elapsed=0.1,
        is_not_found=is_not_found,
    )
    return process


class PowerShellTestCase(TestCase):
    def setUp(self) -> None:
        self.powershell = create_node().tools[PowerShell]

    def test_cmdlet_is_encoded(self) -> None:
        with patch.object(
            self.powershell, "run_async", return_value=_create_process("ok")
        ) as run_async:
            output = self.powershell.run_cmdlet('Write-Output "a b"')

        assert_that(output).is_equal_to("ok")
        parameters: str = run_async.call_args[0][0]
        assert_that(parameters).starts_with("-EncodedCommand ")
        encoded = parameters[len("-EncodedCommand ") :]
        assert_that(base64.b64decode(encoded).decode("utf-16-le")).is_equal_to(
            'Write-Output "a b"'
        )

    def test_json_output(self) -> None:
        with patch.object(
            self.powershell,
            "run_async",
            return_value=_create_process('{"Name":"Web-Server","InstallState":0}'),
        ):
            output = self.powershell.run_cmdlet("Get-WindowsFeature", output_json=True)

        assert_that(output).is_equal_to({"Name": "Web-Server", "InstallState": 0})

    def test_failed_cmdlet(self) -> None:
        clixml = (
            '#< CLIXML\r\n<Objs Version="1.1.0.1" '
            'xmlns="http://schemas.microsoft.com/powershell/2004/04">'
            '<S S="Error">not a valid feature_x000D__x000A_</S></Objs>'
        )
        with patch.object(
            self.powershell,
            "run_async",
            return_value=_create_process(stderr=clixml, exit_code=1),
        ):
            with self.assertRaises(ExecutionException) as context:
                self.powershell.run_cmdlet("Install-WindowsFeature foo")

        assert_that(context.exception.exit_code).is_equal_to(1)
        assert_that(context.exception.stderr).is_equal_to("not a valid feature\n")

    def test_failed_cmdlet_is_ignored(self) -> None:
        with patch.object(
            self.powershell,
            "run_async",
            return_value=_create_process(stdout="partial", exit_code=1),
        ):
            output = self.powershell.run_cmdlet("Get-Foo", fail_on_error=False)

        assert_that(output).is_equal_to("partial")

    def test_not_found(self) -> None:
        not_found = _create_process(is_not_found=True)
        with patch.object(self.powershell, "run_async", return_value=not_found):
            with self.assertRaises(CommandNotFoundException):
                self.powershell.run_cmdlet("Get-WindowsFeature")

    def test_version_not_installed(self) -> None:
        with patch.object(
            self.powershell,
            "run_cmdlet",
            side_effect=CommandNotFoundException("powershell"),
        ):
            assert_that(self.powershell.get_major_version()).is_equal_to(0)

    def test_version_one(self) -> None:
        with patch.object(self.powershell, "run_cmdlet", return_value=""):
            assert_that(self.powershell.get_major_version()).is_equal_to(1)

    def test_version_leading_number(self) -> None:
        with patch.object(self.powershell, "run_cmdlet", return_value="5\r\n"):
            assert_that(self.powershell.get_major_version()).is_equal_to(5)
        with patch.object(self.powershell, "run_cmdlet", return_value="10abc"):
            assert_that(self.powershell.get_major_version()).is_equal_to(10)

    def test_version_unparsable(self) -> None:
        with patch.object(self.powershell, "run_cmdlet", return_value="unknown"):
            assert_that(self.powershell.get_major_version()).is_equal_to(0)

    def test_version_hint(self) -> None:
        with patch.object(self.powershell, "run_cmdlet", return_value="2") as run:
            assert_that(self.powershell.get_major_version(hint=5)).is_equal_to(5)
            run.assert_not_called()

            # a hint of 3 or lower may be out of date, so it's checked again.
            assert_that(self.powershell.get_major_version(hint=3)).is_equal_to(2)
            run.assert_called_once()

    def test_check_version(self) -> None:
        with patch.object(self.powershell, "run_cmdlet", return_value="2"):
            error = self.powershell.check_version()
        assert_that(error).is_instance_of(ConfigurationException)
        assert_that(str(error)).contains("PowerShell 3.0 or later")

        with patch.object(self.powershell, "run_cmdlet", return_value="3"):
            assert_that(self.powershell.check_version()).is_none()
