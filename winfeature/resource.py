# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from winfeature import schema
from winfeature.node import Node
from winfeature.schema import FeatureAction
from winfeature.tools import PowerShell, Registry, WindowsFeature
from winfeature.tools.windows_feature import FeatureInventory, select_features
from winfeature.util import (
    RemovedFeatureException,
    UnavailableFeatureException,
    UnsupportedActionException,
    constants,
)
from winfeature.util.logger import Logger, get_logger
from winfeature.util.perf_timer import create_timer


@dataclass
class Plan:
    action: FeatureAction
    # requested names in lowercase
    features: List[str]
    # requested names, which need the change.
    targets: List[str] = field(default_factory=list)
    command: str = ""
    warnings: List[str] = field(default_factory=list)
    # the first failed precondition. It's raised when the plan is applied.
    error: Optional[Exception] = None

    @property
    def is_noop(self) -> bool:
        return not self.targets


class WindowsFeatureResource:
    """
    Brings Windows features to the state of the action. Features are queried
    from the cached inventory of the node, and only the features, which are
    not in the state, are passed to cmdlets.

    plan_* methods check preconditions and build the command, but don't change
    anything. apply() raises the error of the plan, or runs the command.
    """

    def __init__(
        self,
        node: Node,
        runbook: schema.WindowsFeature,
        parent_logger: Optional[Logger] = None,
    ) -> None:
        self.node = node
        self.runbook = runbook
        self.action = FeatureAction(runbook.action)
        if parent_logger is None:
            parent_logger = node.log
        self._log = get_logger("feature", str(self.action), parent_logger)

        self._planners: Dict[FeatureAction, Callable[[], Plan]] = {
            FeatureAction.INSTALL: self.plan_install,
            FeatureAction.REMOVE: self.plan_remove,
            FeatureAction.DELETE: self.plan_delete,
        }

    @property
    def names(self) -> List[str]:
        return self.runbook.names

    @property
    def _feature(self) -> WindowsFeature:
        return self.node.tools[WindowsFeature]

    def plan(self) -> Plan:
        return self._planners[self.action]()

    def plan_install(self) -> Plan:
        plan = Plan(action=FeatureAction.INSTALL, features=self.names)
        plan.error = self._check_powershell()
        if plan.error:
            return plan

        inventory = self._feature.get_inventory()
        plan.error = self._check_unavailable(inventory) or self._check_removed(
            inventory
        )
        if plan.error:
            return plan

        plan.targets = select_features(self.names, inventory.disabled)
        if plan.is_noop:
            return plan

        options: List[str] = []
        if self.runbook.all:
            options.append("-IncludeAllSubFeature")
        if self._feature.supports_source:
            if self.runbook.source:
                options.append(f"-Source {_quote(self.runbook.source)}")
            if self.runbook.management_tools:
                options.append("-IncludeManagementTools")
        elif self.runbook.source or self.runbook.management_tools:
            plan.warnings.append(
                "The 'source' and 'management_tools' options are ignored, because "
                "Windows 2008R2 and earlier releases don't support them."
            )
        plan.command = self._build_command(
            self._feature.install_cmdlet, plan.targets, options
        )
        return plan

    def plan_remove(self) -> Plan:
        plan = Plan(action=FeatureAction.REMOVE, features=self.names)
        plan.error = self._check_powershell()
        if plan.error:
            return plan

        inventory = self._feature.get_inventory()
        plan.targets = select_features(self.names, inventory.enabled)
        if not plan.is_noop:
            plan.command = self._build_command(
                self._feature.remove_cmdlet, plan.targets
            )
        return plan

    def plan_delete(self) -> Plan:
        plan = Plan(action=FeatureAction.DELETE, features=self.names)
        plan.error = self._check_powershell() or self._check_delete_supported()
        if plan.error:
            return plan

        inventory = self._feature.get_inventory()
        plan.error = self._check_unavailable(inventory)
        if plan.error:
            return plan

        # enabled or disabled features still have payloads on the disk.
        plan.targets = select_features(
            self.names, inventory.enabled | inventory.disabled
        )
        if not plan.is_noop:
            plan.command = self._build_command(
                self._feature.delete_cmdlet, plan.targets, ["-Remove"]
            )
        return plan

    def apply(self) -> Plan:
        plan = self.plan()
        if plan.error:
            raise plan.error

        for warning in plan.warnings:
            self._log.warning(warning)

        if plan.is_noop:
            self._log.debug(
                f"no change, none of {','.join(plan.features)} needs to be "
                f"{self._done_state}."
            )
            return plan

        message = f"{plan.action} Windows feature(s) {','.join(plan.targets)}"
        if plan.action == FeatureAction.DELETE:
            message = f"{message} from the image"
        self._log.info(message)

        timer = create_timer()
        output = self._feature.run_feature_cmdlet(
            plan.command, timeout=self.runbook.timeout
        )
        self._log.lines(logging.INFO, output)
        self._log.debug(f"{plan.action} finished in {timer}")
        return plan

    @property
    def _done_state(self) -> str:
        if self.action == FeatureAction.INSTALL:
            return "installed"
        if self.action == FeatureAction.REMOVE:
            return "removed"
        return "deleted"

    def _build_command(
        self, cmdlet: str, targets: List[str], options: Optional[List[str]] = None
    ) -> str:
        return " ".join([cmdlet, ",".join(targets), *(options or [])])

    def _check_powershell(self) -> Optional[Exception]:
        return self.node.tools[PowerShell].check_version(
            hint=self.node.powershell_version_hint
        )

    def _check_unavailable(self, inventory: FeatureInventory) -> Optional[Exception]:
        unavailable = [name for name in self.names if name not in inventory.available]
        if unavailable:
            return UnavailableFeatureException(unavailable)
        return None

    def _check_removed(self, inventory: FeatureInventory) -> Optional[Exception]:
        if self.runbook.source:
            return None
        removed = select_features(self.names, inventory.removed)
        if not removed:
            return None

        if self._feature.platform_version > constants.WINDOWS_2012_VERSION:
            registry = self.node.tools[Registry]
            if registry.key_exists(
                constants.REGISTRY_SERVICING_KEY
            ) and registry.value_exists(
                constants.REGISTRY_SERVICING_KEY, constants.REGISTRY_LOCAL_SOURCE_PATH
            ):
                self._log.debug(
                    "removed features can be installed from the local source path "
                    "of group policy."
                )
                return None

        return RemovedFeatureException(removed)

    def _check_delete_supported(self) -> Optional[Exception]:
        if self._feature.is_delete_supported:
            return None
        return UnsupportedActionException(
            "Deleting payloads of Windows features is supported on Windows 2012 "
            "and later releases only."
        )


def _quote(value: str) -> str:
    # single quoted strings of PowerShell don't expand $ or backtick, and a
    # quote is escaped by doubling it.
    escaped = value.replace("'", "''")
    return f"'{escaped}'"
