# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import copy
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Optional, cast

import yaml
from marshmallow import Schema, ValidationError

from winfeature import schema
from winfeature.util import WinFeatureException, constants
from winfeature.util.logger import get_logger
from winfeature.variable import VariableEntry, load_variables, replace_variables

_schema: Optional[Schema] = None

_get_init_logger = partial(get_logger, "init", "runbook")


class RunbookBuilder:
    """
    Loads a runbook from a yaml file, replaces variables, and validates it to
    typed schemas.
    """

    def __init__(
        self,
        path: Path,
        cmd_args: Optional[List[str]] = None,
    ) -> None:
        if cmd_args is None:
            cmd_args = []

        self._log = _get_init_logger()
        self._path = path
        self._cmd_args = cmd_args

        self._raw_data: Any = None
        self._variables: Dict[str, VariableEntry] = {}
        constants.RUNBOOK_PATH = self._path.parent

    @property
    def variables(self) -> Dict[str, VariableEntry]:
        return self._variables

    @property
    def raw_data(self) -> Any:
        return self._raw_data

    @staticmethod
    def from_path(
        path: Path,
        cmd_args: Optional[List[str]] = None,
    ) -> "RunbookBuilder":
        builder = RunbookBuilder(path=path, cmd_args=cmd_args)

        builder._log.info(f"loading runbook: {builder._path}")
        data = builder._load_data(builder._path.absolute())
        return builder._set_data(data)

    @staticmethod
    def from_data(
        data: Dict[str, Any], cmd_args: Optional[List[str]] = None
    ) -> "RunbookBuilder":
        """
        Build from loaded data, like a runbook composed by command line.
        """
        builder = RunbookBuilder(path=Path.cwd() / "cmd.yml", cmd_args=cmd_args)
        return builder._set_data(copy.deepcopy(data))

    def resolve(
        self, variables: Optional[Dict[str, VariableEntry]] = None
    ) -> schema.Runbook:
        parsed_data = self._internal_resolve(self.raw_data, variables)
        return self._validate_and_load(parsed_data)

    def partial_resolve(
        self, partial_name: str, variables: Optional[Dict[str, VariableEntry]] = None
    ) -> Any:
        result: Any = None
        if partial_name in self.raw_data:
            raw_data = copy.deepcopy(self.raw_data[partial_name])
            result = self._internal_resolve(raw_data, variables)

        return result

    def dump_variables(self) -> None:
        variables = self.variables
        # it's helpful to see which variable is not used.
        unused_keys = [key for key, value in variables.items() if not value.is_used]
        if unused_keys:
            self._log.debug(f"variables {unused_keys} are not used.")

        for key, value in variables.items():
            self._log.debug(f"variable '{key}': {value.data}")

    def _set_data(self, data: Dict[str, Any]) -> "RunbookBuilder":
        self._variables = load_variables(runbook_data=data, cmd_pairs=self._cmd_args)
        # variables are not used after loaded, and may be confusing in log.
        data.pop(constants.VARIABLE, None)
        self._raw_data = data

        runbook_name = self.partial_resolve(constants.NAME)
        constants.RUN_NAME = f"winfeature-{runbook_name}-{constants.RUN_ID}"
        self._log.info(f"run name is '{constants.RUN_NAME}'")
        return self

    def _internal_resolve(
        self, raw_data: Any, variables: Optional[Dict[str, VariableEntry]] = None
    ) -> Any:
        raw_data = copy.deepcopy(raw_data)
        if variables is None:
            variables = self.variables
        try:
            parsed_data = replace_variables(raw_data, variables)
        except Exception as identifier:
            # log current data for troubleshooting.
            self._log.debug(f"parsed raw data: {raw_data}")
            raise identifier

        return parsed_data

    @staticmethod
    def _validate_and_load(data: Any) -> schema.Runbook:
        global _schema
        if not _schema:
            _schema = schema.Runbook.schema()  # type: ignore

        assert _schema
        try:
            runbook = cast(schema.Runbook, _schema.load(data))
        except ValidationError as identifier:
            raise WinFeatureException(f"invalid runbook: {identifier.messages}")

        log = _get_init_logger()
        log.debug(f"parsed runbook: {runbook.to_dict()}")  # type: ignore

        return runbook

    def _load_data(self, path: Path) -> Any:
        with open(path, "r") as file:
            data = yaml.safe_load(file)
        if not data:
            raise WinFeatureException(f"file '{path}' cannot be empty.")
        if not isinstance(data, dict):
            raise WinFeatureException(
                f"runbook '{path}' must be a mapping, but it's {type(data).__name__}."
            )
        return data
