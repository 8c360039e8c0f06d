# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from argparse import SUPPRESS, ArgumentParser, Namespace
from pathlib import Path
from typing import Any, List, Optional

from winfeature import commands
from winfeature.schema import FeatureAction
from winfeature.tools.windows_feature import FeatureState
from winfeature.util import constants


def support_runbook(parser: ArgumentParser, required: bool = True) -> None:
    parser.add_argument(
        "--runbook",
        "-r",
        type=Path,
        required=required,
        help="Specify the path of runbook. "
        "It can be an absolute path or a relative path.",
    )


def support_debug(parser: ArgumentParser, default: Any = False) -> None:
    parser.add_argument(
        "--debug",
        "-d",
        dest="debug",
        action="store_true",
        default=default,
        help="Set the log level output by the console to DEBUG level. By default, the "
        "console displays logs with INFO and higher levels. The log file will contain "
        "the DEBUG level and is not affected by this setting.",
    )


def support_variable(parser: ArgumentParser) -> None:
    parser.add_argument(
        "--variable",
        "-v",
        dest="variables",
        action="append",
        help="Specify one or more variables in the format of `name:value`, which will "
        "overwrite the value in the YAML file. It can support secret values in the "
        "format of `s:name:value`.",
    )


def support_log_path(parser: ArgumentParser) -> None:
    parser.add_argument(
        "--log_path",
        "-l",
        type=Path,
        dest="log_path",
        help="Uses to replace the default log root path.",
    )


def support_id(parser: ArgumentParser) -> None:
    parser.add_argument(
        "--id",
        "-i",
        type=str,
        dest="run_id",
        help="The ID is used to avoid conflicts on names or folders. If the log "
        "has a chance to conflict in a global storage, use an unique ID to avoid it.",
    )


def support_powershell_version(parser: ArgumentParser) -> None:
    parser.add_argument(
        "--powershell-version",
        type=int,
        dest="powershell_version",
        help="The known major version of PowerShell. It's trusted if it's higher "
        "than 3, otherwise PowerShell is asked for the version.",
    )


def support_feature(parser: ArgumentParser) -> None:
    parser.add_argument(
        "feature_names",
        nargs="+",
        help="Names of Windows features. Names can be separated by spaces or commas, "
        "and they are case insensitive.",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        dest="timeout",
        help=f"Seconds to wait the cmdlet. Default is {constants.DEFAULT_TIMEOUT}.",
    )


def support_install_options(parser: ArgumentParser) -> None:
    parser.add_argument(
        "--source",
        "-s",
        dest="source",
        help="Alternate source of payloads, like a mounted image or a share.",
    )
    parser.add_argument(
        "--all",
        "-a",
        dest="all",
        action="store_true",
        help="Include all sub features.",
    )
    parser.add_argument(
        "--management-tools",
        "-m",
        dest="management_tools",
        action="store_true",
        help="Include management tools of features.",
    )


def parse_args(argv: Optional[List[str]] = None) -> Namespace:
    """This wraps Python's 'ArgumentParser' to setup our CLI."""
    parser = ArgumentParser(prog="winfeature")
    support_debug(parser)
    support_log_path(parser)
    support_id(parser)

    subparsers = parser.add_subparsers(dest="cmd", required=True)

    # Entry point for 'run'.
    run_parser = subparsers.add_parser("run", help="apply features in a runbook")
    run_parser.set_defaults(func=commands.run)
    support_runbook(run_parser)
    support_variable(run_parser)

    # Entry point for 'check'.
    check_parser = subparsers.add_parser("check", help="validate a runbook only")
    check_parser.set_defaults(func=commands.check)
    support_runbook(check_parser)
    support_variable(check_parser)

    # Entry point for 'list'.
    list_parser = subparsers.add_parser(
        constants.LIST, help="list Windows features by states"
    )
    list_parser.set_defaults(func=commands.list_features)
    list_parser.add_argument(
        "--state",
        dest="state",
        choices=[state.value for state in FeatureState],
        help="list features in the state only",
    )
    support_powershell_version(list_parser)

    # Entry points for 'install', 'remove' and 'delete'.
    for action in FeatureAction:
        action_parser = subparsers.add_parser(
            action.value, help=f"{action.value} Windows features"
        )
        action_parser.set_defaults(func=commands.apply_feature, action=action.value)
        support_feature(action_parser)
        if action == FeatureAction.INSTALL:
            support_install_options(action_parser)
        else:
            action_parser.set_defaults(source=None, all=False, management_tools=False)
        support_powershell_version(action_parser)
        support_variable(action_parser)

    for sub_parser in subparsers.choices.values():
        # keep the value of the global option, if it's not set on sub commands.
        support_debug(sub_parser, default=SUPPRESS)

    return parser.parse_args(argv)
