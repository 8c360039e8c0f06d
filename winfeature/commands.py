# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import functools
import logging
from argparse import Namespace
from typing import Any, Dict, List

from winfeature import schema
from winfeature.node import local_node_connect
from winfeature.resource import WindowsFeatureResource
from winfeature.runbook import RunbookBuilder
from winfeature.tools import WindowsFeature
from winfeature.tools.windows_feature import FeatureState
from winfeature.util import constants
from winfeature.util.logger import Logger, enable_console_timestamp, get_logger
from winfeature.util.perf_timer import create_timer

_get_init_logger = functools.partial(get_logger, "init")


def run(args: Namespace) -> int:
    enable_console_timestamp()
    builder = RunbookBuilder.from_path(args.runbook, args.variables)
    return _apply_runbook(builder)


# check runbook
def check(args: Namespace) -> int:
    builder = RunbookBuilder.from_path(args.runbook, args.variables)
    runbook = builder.resolve()
    builder.dump_variables()

    log = _get_init_logger("check")
    for index, feature in enumerate(runbook.feature):
        log.info(f"[{index}] {feature.action}: {','.join(feature.names)}")
    log.info(f"runbook '{runbook.name}' is valid.")
    return 0


def list_features(args: Namespace) -> int:
    log = _get_init_logger(constants.LIST)
    node_runbook = schema.Node(powershell_version=args.powershell_version)
    node = local_node_connect(runbook=node_runbook)
    try:
        inventory = node.tools[WindowsFeature].get_inventory()
        states = [FeatureState(args.state)] if args.state else list(FeatureState)
        for state in states:
            names = sorted(inventory.names_in(state))
            log.info(f"{state.value} ({len(names)}):")
            log.lines(logging.INFO, names, prefix="    ")
    finally:
        node.close()
    return 0


def apply_feature(args: Namespace) -> int:
    """
    Apply a single resource, which is composed by command line arguments.
    """
    feature: Dict[str, Any] = {
        "feature_name": ",".join(args.feature_names),
        "action": args.action,
        "all": args.all,
        "management_tools": args.management_tools,
    }
    if args.source:
        feature["source"] = args.source
    if args.timeout is not None:
        feature["timeout"] = args.timeout

    node: Dict[str, Any] = {}
    if args.powershell_version is not None:
        node["powershell_version"] = args.powershell_version

    data: Dict[str, Any] = {
        constants.NAME: args.action,
        constants.NODE: node,
        constants.FEATURE: [feature],
    }
    builder = RunbookBuilder.from_data(data, args.variables)
    return _apply_runbook(builder)


def _apply_runbook(builder: RunbookBuilder) -> int:
    runbook = builder.resolve()
    builder.dump_variables()

    log = _get_init_logger("run")
    if not runbook.feature:
        log.info("no feature is defined in the runbook.")
        return 0

    node = local_node_connect(runbook=runbook.node)
    changed: List[str] = []
    try:
        for index, feature in enumerate(runbook.feature):
            timer = create_timer()
            resource = WindowsFeatureResource(
                node, feature, parent_logger=get_logger("feature", str(index))
            )
            plan = resource.apply()
            if not plan.is_noop:
                changed.append(f"{plan.action}: {','.join(plan.targets)}")
            log.debug(f"[{index}] applied in {timer}")
    finally:
        node.close()

    _log_summary(log, changed, len(runbook.feature))
    return 0


def _log_summary(log: Logger, changed: List[str], total: int) -> None:
    log.info(
        f"applied {total} resource(s), changed: {len(changed)}, "
        f"unchanged: {total - len(changed)}"
    )
    log.lines(logging.INFO, changed, prefix="    ")
