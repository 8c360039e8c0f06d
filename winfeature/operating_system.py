# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from semver import Version

from winfeature.util import WinFeatureException, get_matched_str, parse_version
from winfeature.util.logger import get_logger

if TYPE_CHECKING:
    from winfeature.node import Node


@dataclass
class OsInformation:
    # full version, like 10.0.17763
    version: Version
    # Microsoft
    vendor: str
    # the raw version string, like 10.0.17763.1
    release: str = ""
    # The output of 'ver'
    full_version: str = "Unknown"


class OperatingSystem:
    def __init__(self, node: "Node", is_posix: bool) -> None:
        super().__init__()
        self._node: Node = node
        self._is_posix = is_posix
        self._log = get_logger(name="os", parent=self._node.log)
        self._information: Optional[OsInformation] = None

    @classmethod
    def create(cls, node: "Node") -> Any:
        result: OperatingSystem
        if node.shell.is_posix:
            result = Posix(node)
        else:
            result = Windows(node)
        node.log.debug(f"detected OS: '{result.name}'")
        return result

    @property
    def is_windows(self) -> bool:
        return not self._is_posix

    @property
    def is_posix(self) -> bool:
        return self._is_posix

    @property
    def information(self) -> OsInformation:
        if not self._information:
            self._information = self._get_information()
            self._log.debug(f"parsed os information: {self._information}")

        return self._information

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def _get_information(self) -> OsInformation:
        raise NotImplementedError()


class Windows(OperatingSystem):
    # Microsoft Windows [Version 10.0.22000.100]
    __windows_version_pattern = re.compile(
        r"^Microsoft Windows \[Version (?P<version>[0-9.]*?)\]$",
        re.M,
    )

    def __init__(self, node: Any) -> None:
        super().__init__(node, is_posix=False)

    @property
    def platform_version(self) -> float:
        """
        The major.minor version as a float, like 6.1 for Windows 2008R2, 6.2 for
        Windows 2012, and 10.0 for Windows 2016 and later.
        """
        version = self.information.version
        return float(f"{version.major}.{version.minor}")

    def _get_information(self) -> OsInformation:
        cmd_result = self._node.execute(
            cmd="ver",
            shell=True,
            no_error_log=True,
            expected_exit_code=0,
            expected_exit_code_failure_message="error on get os information:",
        )
        assert cmd_result.stdout, "not found os information from 'ver'"

        full_version = cmd_result.stdout
        version_string = get_matched_str(full_version, self.__windows_version_pattern)
        if not version_string:
            raise WinFeatureException(
                f"OS version information not found in: {full_version}"
            )

        information = OsInformation(
            version=parse_version(version_string),
            vendor="Microsoft",
            release=version_string,
            full_version=full_version,
        )
        return information


class Posix(OperatingSystem):
    """
    It's detected to give a clear message, Windows features cannot be managed
    on it.
    """

    def __init__(self, node: Any) -> None:
        super().__init__(node, is_posix=True)
