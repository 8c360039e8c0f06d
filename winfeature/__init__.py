# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

from winfeature.node import Node, local_node_connect
from winfeature.resource import Plan, WindowsFeatureResource
from winfeature.schema import FeatureAction
from winfeature.util import (
    CommandNotFoundException,
    CommandTimeoutException,
    ConfigurationException,
    ExecutionException,
    RemovedFeatureException,
    UnavailableFeatureException,
    UnsupportedActionException,
    UnsupportedPlatformException,
    WinFeatureException,
    constants,
)
from winfeature.util.logger import Logger, init_logger

__all__ = [
    "CommandNotFoundException",
    "CommandTimeoutException",
    "ConfigurationException",
    "ExecutionException",
    "FeatureAction",
    "Logger",
    "Node",
    "Plan",
    "RemovedFeatureException",
    "UnavailableFeatureException",
    "UnsupportedActionException",
    "UnsupportedPlatformException",
    "WinFeatureException",
    "WindowsFeatureResource",
    "constants",
    "init_logger",
    "local_node_connect",
]
