# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, cast

from winfeature.executable import Tool
from winfeature.operating_system import Windows
from winfeature.tools.powershell import PowerShell
from winfeature.util import UnsupportedPlatformException, constants
from winfeature.util.logger import Logger


class FeatureState(str, Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"
    REMOVED = "removed"


# InstallState of Get-WindowsFeature. ConvertTo-Json writes the enum as its
# number, and PowerShell 7 may write the name.
_install_states: Dict[Any, FeatureState] = {
    0: FeatureState.DISABLED,
    "available": FeatureState.DISABLED,
    1: FeatureState.ENABLED,
    "installed": FeatureState.ENABLED,
    2: FeatureState.DISABLED,
    "uninstallpending": FeatureState.DISABLED,
    3: FeatureState.ENABLED,
    "installpending": FeatureState.ENABLED,
    5: FeatureState.REMOVED,
    "removed": FeatureState.REMOVED,
}


@dataclass(frozen=True)
class FeatureInventory:
    """
    A snapshot of features on the image. Each known feature is in one of the
    three states, and the names are lowercase.
    """

    enabled: FrozenSet[str] = field(default_factory=frozenset)
    disabled: FrozenSet[str] = field(default_factory=frozenset)
    removed: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def available(self) -> FrozenSet[str]:
        return self.enabled | self.disabled | self.removed

    def state_of(self, name: str) -> Optional[FeatureState]:
        name = name.lower()
        if name in self.enabled:
            return FeatureState.ENABLED
        if name in self.disabled:
            return FeatureState.DISABLED
        if name in self.removed:
            return FeatureState.REMOVED
        return None

    def names_in(self, state: FeatureState) -> FrozenSet[str]:
        return cast(FrozenSet[str], getattr(self, state.value))

    @classmethod
    def from_raw(cls, raw: Any, log: Optional[Logger] = None) -> "FeatureInventory":
        """
        Classify the output of
        Get-WindowsFeature | Select-Object -Property Name,Installed,InstallState
        """
        if raw is None:
            items: Iterable[Any] = []
        elif isinstance(raw, dict):
            # ConvertTo-Json doesn't wrap a single object in an array.
            items = [raw]
        else:
            items = raw

        buckets: Dict[FeatureState, set] = {state: set() for state in FeatureState}
        for item in items:
            name = str(item.get("Name", "")).strip().lower()
            if not name:
                continue
            state = _classify(item)
            if state is None:
                if log:
                    log.debug(f"ignored feature '{name}' in state: {item}")
                continue
            buckets[state].add(name)

        return cls(
            enabled=frozenset(buckets[FeatureState.ENABLED]),
            disabled=frozenset(buckets[FeatureState.DISABLED]),
            removed=frozenset(buckets[FeatureState.REMOVED]),
        )


def _classify(item: Dict[str, Any]) -> Optional[FeatureState]:
    install_state = item.get("InstallState", None)
    if install_state is None:
        # Windows 2008R2 has no InstallState, and removing payloads isn't
        # supported there.
        installed = item.get("Installed", None)
        if installed is None:
            return None
        return FeatureState.ENABLED if installed else FeatureState.DISABLED
    if isinstance(install_state, str):
        install_state = install_state.strip().lower()
    return _install_states.get(install_state, None)


class FeatureCache:
    """
    Memorizes the feature inventory, so it's queried once until it's reset. It
    must be reset after features are changed.
    """

    def __init__(self, query: Callable[[], FeatureInventory]) -> None:
        self._query = query
        self._inventory: Optional[FeatureInventory] = None

    @property
    def is_loaded(self) -> bool:
        return self._inventory is not None

    def read(self) -> FeatureInventory:
        if self._inventory is None:
            self._inventory = self._query()
        return self._inventory

    def reset(self) -> None:
        self._inventory = None


# WindowsFeature management tool for Windows Servers.
# It queries states of Windows features, and runs cmdlets to change them.
# Web-Server, Hyper-V, DHCP etc. are examples of Windows features.
# Not supported on PC versions like Windows 10, 11 etc.
class WindowsFeature(Tool):
    _legacy_prefix = "Import-Module ServerManager;"

    @property
    def command(self) -> str:
        return ""

    @property
    def platform_version(self) -> float:
        return cast(Windows, self.node.os).platform_version

    @property
    def is_legacy(self) -> bool:
        # Windows 2008R2 and earlier
        return self.platform_version < constants.WINDOWS_2012_VERSION

    @property
    def install_cmdlet(self) -> str:
        if self.is_legacy:
            return f"{self._legacy_prefix} Add-WindowsFeature"
        return "Install-WindowsFeature"

    @property
    def remove_cmdlet(self) -> str:
        if self.is_legacy:
            return f"{self._legacy_prefix} Remove-WindowsFeature"
        return "Uninstall-WindowsFeature"

    @property
    def delete_cmdlet(self) -> str:
        return "Uninstall-WindowsFeature"

    @property
    def is_delete_supported(self) -> bool:
        return not self.is_legacy

    @property
    def supports_source(self) -> bool:
        # -Source and -IncludeManagementTools
        return not self.is_legacy

    def get_inventory(self) -> FeatureInventory:
        return self.cache.read()

    def run_feature_cmdlet(self, cmdlet: str, timeout: int) -> str:
        """
        Run a cmdlet, which changes features. The inventory is out of date once
        it succeeds, so it's reset for the next query.
        """
        output: str = self.node.tools[PowerShell].run_cmdlet(
            cmdlet, force_run=True, timeout=timeout
        )
        self.cache.reset()
        return output

    def _initialize(self, *args: Any, **kwargs: Any) -> None:
        self.cache = FeatureCache(self._query_inventory)

    def _check_exists(self) -> bool:
        if not self.node.os.is_windows:
            raise UnsupportedPlatformException(
                self.node.os.name, "Windows features can be managed on Windows only"
            )
        return True

    def _query_inventory(self) -> FeatureInventory:
        cmdlet = (
            "Get-WindowsFeature | Select-Object -Property Name,Installed,InstallState"
        )
        if self.is_legacy:
            cmdlet = f"{self._legacy_prefix} {cmdlet}"
        raw = self.node.tools[PowerShell].run_cmdlet(
            cmdlet, output_json=True, force_run=True
        )
        inventory = FeatureInventory.from_raw(raw, log=self._log)
        self._log.debug(
            f"found features, enabled: {len(inventory.enabled)}, "
            f"disabled: {len(inventory.disabled)}, "
            f"removed: {len(inventory.removed)}"
        )
        return inventory


def select_features(names: List[str], candidates: FrozenSet[str]) -> List[str]:
    """
    The requested names, which are in candidates. The requested order is kept.
    """
    return [name for name in names if name in candidates]
