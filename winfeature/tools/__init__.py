# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from .powershell import PowerShell
from .registry import Registry
from .windows_feature import WindowsFeature

__all__ = [
    "PowerShell",
    "Registry",
    "WindowsFeature",
]
