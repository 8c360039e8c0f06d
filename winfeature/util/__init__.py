# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import re
import sys
from typing import Any, Callable, Iterable, List, Optional, Pattern, Union, cast

from dataclasses_json import config
from marshmallow import fields
from semver import Version

from winfeature import secret

# used to filter ansi escapes for better layout in log and other place
# Example:
# Text: "\x1b[?1h\x1b=\rInstall-WindowsFeature\x1b[m\r\n\r\x1b[K\x1b[?1l\x1b>"
# Escape Result: '\rInstall-WindowsFeature\r\n\r'
__ansi_escape = re.compile(r"\x1B(?:[@-Z\\-_=<>a-kzNM78]|\[[0-?]*[ -/]*[@-~])")

# 10.0.17763.1
# 6.3.9600
# 6.1
__version_info_pattern = re.compile(
    r"^[vV]?(?P<major>[0-9]*?)"
    r"(?:[\.\-\_](?P<minor>[0-9]*?))?"
    r"(?:[\.\-\_](?P<patch>[0-9]*?))?"
    r"(?:[\.\-\_](?P<prerelease>.*?))?$",
)


def _plural(items: List[str], singular: str, plural: str) -> str:
    return plural if len(items) > 1 else singular


class WinFeatureException(Exception):
    def __init__(self, *args: object) -> None:
        args = tuple(secret.mask(arg) if isinstance(arg, str) else arg for arg in args)
        super().__init__(*args)


class ConfigurationException(WinFeatureException):
    """
    The node is not configured well enough to run the resource, like an old
    PowerShell.
    """

    ...


class UnsupportedPlatformException(WinFeatureException):
    """
    Windows features can be managed on Windows only.
    """

    def __init__(self, os_name: str, message: str = "") -> None:
        self.os_name = os_name
        self._extended_message = message

    def __str__(self) -> str:
        message = f"Unsupported system: '{self.os_name}'"
        if self._extended_message:
            message = f"{message}. {self._extended_message}"
        return message


class UnsupportedActionException(WinFeatureException):
    """
    The action is not supported on the release of Windows.
    """

    ...


class UnavailableFeatureException(WinFeatureException):
    """
    Some requested features are unknown to this Windows image.
    """

    def __init__(self, features: List[str]) -> None:
        self.features = features

    def __str__(self) -> str:
        return (
            f"The Windows {_plural(self.features, 'feature', 'features')} "
            f"{','.join(self.features)} "
            f"{_plural(self.features, 'is', 'are')} not available on this version "
            "of Windows. Run 'Get-WindowsFeature' to see the list of available "
            "feature names."
        )


class RemovedFeatureException(WinFeatureException):
    """
    Some requested features are removed from the image, and there is no source
    to install them.
    """

    def __init__(self, features: List[str]) -> None:
        self.features = features

    def __str__(self) -> str:
        return (
            f"The Windows {_plural(self.features, 'feature', 'features')} "
            f"{','.join(self.features)} "
            f"{_plural(self.features, 'has', 'have')} been removed from the host "
            "and cannot be installed. Specify 'source' to install from media."
        )


class ExecutionException(WinFeatureException):
    """
    The command ran, but it failed.
    """

    def __init__(
        self, cmd: str, exit_code: Any = None, stdout: str = "", stderr: str = ""
    ) -> None:
        super().__init__(cmd)
        self.cmd = cmd
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr

    def __str__(self) -> str:
        message = f"non-zero exit code {self.exit_code} from command '{self.cmd}'."
        if self.stdout:
            message += f" output:\n{self.stdout}"
        if self.stderr:
            message += f"\nerror:\n{self.stderr}"
        return secret.mask(message)


class CommandNotFoundException(ExecutionException):
    def __str__(self) -> str:
        return secret.mask(f"not found command: '{self.cmd}'. {self.stderr}")


class CommandTimeoutException(ExecutionException):
    def __init__(self, cmd: str, timeout: float, stdout: str = "") -> None:
        super().__init__(cmd, stdout=stdout)
        self.timeout = timeout

    def __str__(self) -> str:
        return secret.mask(
            f"command '{self.cmd}' timeout after {self.timeout} seconds, "
            f"partial output:\n{self.stdout}"
        )


class InitializableMixin:
    """
    This mixin uses to do one time but delay initialization work.

    __init__ shouldn't do time costing work as most design recommendation. But
    something may be done let an object works. _initialize uses to call for one time
    initialization. If an object is initialized, it do nothing.
    """

    def __init__(self) -> None:
        super().__init__()
        self._is_initialized: bool = False

    def _initialize(self, *args: Any, **kwargs: Any) -> None:
        """
        override for initialization logic. This mixin makes sure it's called only once.
        """
        raise NotImplementedError()

    def initialize(self, *args: Any, **kwargs: Any) -> None:
        """
        This is for caller, do not override it.
        """
        if not self._is_initialized:
            try:
                self._is_initialized = True
                self._initialize(*args, **kwargs)
            except Exception as e:
                self._is_initialized = False
                raise e


def get_matched_str(
    content: str, pattern: Pattern[str], first_match: bool = True
) -> str:
    result: str = ""
    if content:
        matched_item = pattern.findall(content)
        if matched_item:
            # if something matched, it's like ['matched']
            result = matched_item[0 if first_match else -1]
    return result


def filter_ansi_escape(content: str) -> str:
    return __ansi_escape.sub("", content)


def is_unittest() -> bool:
    return "unittest" in sys.argv[0]


def to_lowercase_list(value: Union[str, Iterable[str], None]) -> List[str]:
    """
    Normalize a comma separated string or a list of names to lowercase names.
    Duplicated names are removed, and the first seen order is kept.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[str] = re.split(r"\s*,\s*", value.strip())
    else:
        items = value

    results: List[str] = []
    for item in items:
        item = str(item).strip().lower()
        if item and item not in results:
            results.append(item)
    return results


def field_metadata(
    field_function: Optional[Callable[..., Any]] = None, *args: Any, **kwargs: Any
) -> Any:
    """
    wrap for shorter
    """
    if field_function is None:
        field_function = fields.Raw
    encoder = kwargs.pop("encoder", None)
    decoder = kwargs.pop("decoder", None)
    # keep data_key for underlying marshmallow
    field_name = kwargs.get("data_key")
    return config(
        field_name=cast(str, field_name),
        encoder=encoder,
        decoder=decoder,
        mm_field=field_function(*args, **kwargs),
    )


def parse_version(version: str) -> Version:
    """
    Convert an incomplete version string into a semver-compatible Version
    object. Missing components are set to zero, and the fourth part of a
    Windows version, like 10.0.17763.1, is kept as prerelease.
    """
    version = version.strip()
    if Version.is_valid(version):
        return Version.parse(version)

    match = __version_info_pattern.search(version)
    if not match or not match.group("major"):
        raise WinFeatureException(f"The version is invalid format: {version}")

    parts = match.groupdict()
    return Version(
        major=int(parts["major"]),
        minor=int(parts["minor"] or 0),
        patch=int(parts["patch"] or 0),
        prerelease=parts["prerelease"] or None,
    )
