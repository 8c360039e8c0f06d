# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from pathlib import Path

RUN_ID = ""
RUN_NAME = ""

# the physical path of current run. All logs of current run should be in this folder.
RUN_LOCAL_LOG_PATH: Path = Path()
RUNBOOK_PATH: Path = Path()

# runbook sections
NAME = "name"
NODE = "node"
FEATURE = "feature"
VARIABLE = "variable"

# list types
LIST = "list"

# environment variables in this prefix are loaded as variables.
ENV_PREFIX = "WINFEATURE_"
SECRET_ENV_PREFIX = "S_WINFEATURE_"

# default seconds to wait a cmdlet
DEFAULT_TIMEOUT = 600

# Windows 8 / Server 2012. Install-WindowsFeature, -Source, -IncludeManagementTools
# and deleting payloads are supported since this release.
WINDOWS_2012_VERSION = 6.2

# PowerShell 3.0 brings ConvertTo-Json
MINIMAL_POWERSHELL_VERSION = 3

# a local source path for removed features can be set by group policy.
REGISTRY_SERVICING_KEY = (
    r"HKEY_LOCAL_MACHINE\SOFTWARE\Microsoft\Windows\CurrentVersion\Policies\Servicing"
)
REGISTRY_LOCAL_SOURCE_PATH = "LocalSourcePath"
