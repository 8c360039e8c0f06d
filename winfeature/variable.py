# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import os
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from winfeature import schema, secret
from winfeature.util import WinFeatureException, constants

_VARIABLE_PATTERN = re.compile(r"(\$\(.+?\))", re.MULTILINE)


@dataclass
class VariableEntry:
    name: str
    data: Any
    is_used: bool = False

    def copy(self) -> "VariableEntry":
        return VariableEntry(name=self.name, data=self.data, is_used=self.is_used)

    def update(self, new_variable: "VariableEntry") -> None:
        if new_variable:
            self.data = _try_convert_type(self.data, new_variable.data)
            self.is_used = self.is_used or new_variable.is_used


def _try_convert_type(original_value: Any, new_value: Any) -> Any:
    """
    Take the non-string type. Values from command line and environment are
    strings, and they are converted to the type in the runbook.
    """
    if original_value is None or new_value is None:
        return new_value

    original_type = type(original_value)
    new_type = type(new_value)
    if original_type == new_type:
        return new_value

    target_type = new_type if new_type is not str else original_type
    try:
        if target_type is bool:
            if new_value.lower() in ("y", "yes", "t", "true", "on", "1"):
                new_value = True
            elif new_value.lower() in ("n", "no", "f", "false", "off", "0"):
                new_value = False
        else:
            new_value = target_type(new_value)
    except (AttributeError, TypeError, ValueError):
        # keep the new type, if it cannot be converted.
        ...
    return new_value


def replace_variables(data: Any, variables: Dict[str, VariableEntry]) -> Any:
    new_variables: Dict[str, VariableEntry] = {}
    for key, value in variables.items():
        new_variables[f"$({key})"] = value

    return _replace_variables(data, new_variables)


def load_variables(
    runbook_data: Any, cmd_pairs: Optional[List[str]] = None
) -> Dict[str, VariableEntry]:
    """
    Variables are merged in the order of runbook, environment variables and
    command line pairs. The later one overrides the former one.
    """
    env_variables = _load_from_env()
    cmd_variables = add_secrets_from_pairs(cmd_pairs)

    higher_level_variables: Dict[str, VariableEntry] = {}
    merge_variables(higher_level_variables, env_variables)
    merge_variables(higher_level_variables, cmd_variables)

    final_variables: Dict[str, VariableEntry] = {}
    merge_variables(
        final_variables,
        _load_from_runbook(runbook_data, higher_level_variables),
    )
    merge_variables(final_variables, env_variables)
    merge_variables(final_variables, cmd_variables)

    return final_variables


def merge_variables(
    variables: Dict[str, VariableEntry], new_variables: Dict[str, VariableEntry]
) -> None:
    """
    in place update variables. If variables don't exist, will create them
    """
    for name, new_variable in new_variables.items():
        variable = variables.get(name, None)
        if variable:
            variable.update(new_variable)
        else:
            variables[name] = new_variable.copy()


def add_secrets_from_pairs(
    raw_pairs: Optional[List[str]],
) -> Dict[str, VariableEntry]:
    """
    Given a list of command line style pairs of [s]:key:value tuples,
    take the ones prefixed with "s:" and make them recorded
    secrets. At the end, also return a dictionary of those tuples
    (still with raw values).
    """
    results: Dict[str, VariableEntry] = {}
    if raw_pairs is None:
        return results
    for raw_pair in raw_pairs:
        is_secret = False
        if raw_pair.lower().startswith("s:"):
            is_secret = True
            raw_pair = raw_pair[2:]
        try:
            key, value = raw_pair.split(":", 1)
        except ValueError as identifier:
            raise WinFeatureException(
                f"failed on parsing variable '{raw_pair}'. The right format is "
                f"like name:value. If there is whitespace in the value, quote "
                f'the whole string like "name:value has whitespace". If it\'s a '
                'secret variable, follow the format "s:name:value". '
                f"The raw error: {identifier}"
            )
        _add_variable(key, value, results, is_secret=is_secret)
    return results


def _get_undefined_variables(
    value: str, variables: Dict[str, VariableEntry]
) -> List[str]:
    undefined_variables: List[str] = []
    matches = _VARIABLE_PATTERN.findall(value)
    for variable_name in matches:
        lower_variable_name = variable_name[2:-1].lower()
        if lower_variable_name not in variables:
            undefined_variables.append(variable_name)
    return undefined_variables


def _load_from_env() -> Dict[str, VariableEntry]:
    results: Dict[str, VariableEntry] = {}
    for env_name in os.environ:
        # the secret prefix contains the normal prefix, so check it first.
        if env_name.startswith(constants.SECRET_ENV_PREFIX):
            name = env_name[len(constants.SECRET_ENV_PREFIX) :]
            is_secret = True
        elif env_name.startswith(constants.ENV_PREFIX):
            name = env_name[len(constants.ENV_PREFIX) :]
            is_secret = False
        else:
            continue

        _add_variable(name, os.environ[env_name], results, is_secret=is_secret)
    return results


def _load_from_runbook(
    runbook_data: Any, higher_level_variables: Dict[str, VariableEntry]
) -> Dict[str, VariableEntry]:
    # make a copy to prevent modifying existing dict
    current_variables = higher_level_variables.copy()

    if runbook_data and runbook_data.get(constants.VARIABLE, None):
        variable_entries: List[schema.Variable] = schema.load_by_type_many(
            schema.Variable, runbook_data[constants.VARIABLE]
        )

        left_variables = variable_entries.copy()
        undefined_variables: List[str] = []
        is_current_updated = True
        # a variable may refer to another one, which is defined later. Loop until
        # nothing can be resolved anymore.
        while left_variables and is_current_updated:
            is_current_updated = False
            undefined_variables = []
            for entry in left_variables.copy():
                current_undefined_variables = _get_undefined_variables(
                    str(entry.value), current_variables
                )
                if current_undefined_variables:
                    undefined_variables.extend(current_undefined_variables)
                    continue

                value = replace_variables(entry.value, current_variables)
                loaded_variables: Dict[str, VariableEntry] = {}
                _add_variable(
                    entry.name, value, loaded_variables, is_secret=entry.is_secret
                )
                merge_variables(current_variables, loaded_variables)
                merge_variables(current_variables, higher_level_variables)
                is_current_updated = True

                left_variables.remove(entry)
        if undefined_variables:
            raise WinFeatureException(
                f"variables are undefined: {undefined_variables}"
            )
    return current_variables


def _replace_variables(data: Any, variables: Dict[str, VariableEntry]) -> Any:
    if isinstance(data, dict):
        for key, value in data.items():
            data[key] = _replace_variables(value, variables)
    elif isinstance(data, list):
        for index, item in enumerate(data):
            data[index] = _replace_variables(item, variables)
    elif isinstance(data, str):
        lower_name = data.lower()
        if lower_name in variables:
            # the whole value is a variable, so keep the type of the variable,
            # like bool or int.
            entry = variables[lower_name]
            entry.is_used = True
            data = entry.data
        else:
            matches = _VARIABLE_PATTERN.findall(data)
            if matches:
                for variable_name in matches:
                    lower_variable_name = variable_name.lower()
                    if lower_variable_name in variables:
                        variables[lower_variable_name].is_used = True
                    else:
                        raise WinFeatureException(
                            f"cannot find variable '{variable_name[2:-1]}', "
                            "make sure its value filled in runbook, "
                            "command line or environment variables."
                        )
                data = _VARIABLE_PATTERN.sub(
                    lambda matched: str(
                        variables[
                            matched.string[matched.start() : matched.end()].lower()
                        ].data,
                    ),
                    data,
                )

    return data


def _add_variable(
    key: str,
    value: Any,
    current_variables: Dict[str, VariableEntry],
    is_secret: bool = False,
) -> None:
    key = key.lower()
    variable = current_variables.get(key, None)
    if variable:
        variable.data = value
    else:
        current_variables[key] = VariableEntry(name=key, data=value)

    if is_secret:
        # a share path keeps its leading characters, others are fully masked.
        mask = None
        if isinstance(value, str) and value.startswith("\\\\"):
            mask = secret.PATTERN_SHARE
        secret.add_secret(value, mask=mask)
