# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import os
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Any, Dict
from unittest import TestCase
from unittest.mock import patch

from assertpy import assert_that

from winfeature import secret
from winfeature.runbook import RunbookBuilder
from winfeature.util import WinFeatureException
from winfeature.variable import (
    add_secrets_from_pairs,
    load_variables,
    replace_variables,
)

_RUNBOOK = """
name: $(site) servers
variable:
  - name: site
    value: web
  - name: media
    value: D:\\sources\\$(site)
  - name: tools
    value: false
node:
  powershell_version: 5
feature:
  - feature_name: Web-Server, Web-Mgmt-Tools
    management_tools: $(tools)
  - feature_name: [telnet-client]
    source: $(media)
  - feature_name: xps-viewer
    action: delete
    timeout: 1200
"""


class VariableTestCase(TestCase):
    def setUp(self) -> None:
        secret.reset()

    def test_replace_in_runbook(self) -> None:
        data: Dict[str, Any] = {
            "variable": [
                {"name": "base", "value": "D:\\sources"},
                {"name": "media", "value": "$(base)\\sxs"},
            ],
            "feature": [{"feature_name": "fax", "source": "$(media)"}],
        }
        variables = load_variables(data)

        result = replace_variables(data["feature"], variables)

        assert_that(result[0]["source"]).is_equal_to("D:\\sources\\sxs")
        assert_that(variables["media"].is_used).is_true()

    def test_cmd_overrides_runbook(self) -> None:
        data = {"variable": [{"name": "tools", "value": False}]}

        variables = load_variables(data, ["tools:true"])

        # the type of the runbook is kept.
        assert_that(variables["tools"].data).is_true()

    def test_env_variables(self) -> None:
        with patch.dict(
            os.environ,
            {"WINFEATURE_SITE": "web", "S_WINFEATURE_SHARE": "\\\\server\\media"},
        ):
            variables = load_variables({})

        assert_that(variables["site"].data).is_equal_to("web")
        assert_that(variables["share"].data).is_equal_to("\\\\server\\media")
        assert_that(secret.mask("from \\\\server\\media")).does_not_contain("server")

    def test_secret_pairs(self) -> None:
        variables = add_secrets_from_pairs(["s:password:p@ssw0rd", "user:admin"])

        assert_that(variables["password"].data).is_equal_to("p@ssw0rd")
        assert_that(secret.mask("p@ssw0rd and admin")).is_equal_to("****** and admin")

    def test_invalid_pair(self) -> None:
        with self.assertRaises(WinFeatureException):
            add_secrets_from_pairs(["no_value"])

    def test_undefined_variable(self) -> None:
        with self.assertRaises(WinFeatureException) as context:
            replace_variables({"source": "$(missing)"}, {})

        assert_that(str(context.exception)).contains("missing")

    def test_undefined_variable_in_variable(self) -> None:
        data = {"variable": [{"name": "media", "value": "$(missing)"}]}

        with self.assertRaises(WinFeatureException):
            load_variables(data)


class RunbookBuilderTestCase(TestCase):
    def test_load_runbook(self) -> None:
        with TemporaryDirectory() as folder:
            path = Path(folder) / "runbook.yml"
            path.write_text(_RUNBOOK)

            runbook = RunbookBuilder.from_path(path, ["site:ftp"]).resolve()

        assert_that(runbook.name).is_equal_to("ftp servers")
        assert_that(runbook.node.powershell_version).is_equal_to(5)
        assert_that(runbook.feature).is_length(3)
        assert_that(runbook.feature[0].names).is_equal_to(
            ["web-server", "web-mgmt-tools"]
        )
        assert_that(runbook.feature[0].management_tools).is_false()
        assert_that(runbook.feature[1].source).is_equal_to("D:\\sources\\ftp")
        assert_that(runbook.feature[2].action).is_equal_to("delete")
        assert_that(runbook.feature[2].timeout).is_equal_to(1200)

    def test_empty_runbook(self) -> None:
        with TemporaryDirectory() as folder:
            path = Path(folder) / "runbook.yml"
            path.write_text("")

            with self.assertRaises(WinFeatureException):
                RunbookBuilder.from_path(path)

    def test_invalid_runbook(self) -> None:
        builder = RunbookBuilder.from_data(
            {"feature": [{"feature_name": "fax", "action": "upgrade"}]}
        )

        with self.assertRaises(WinFeatureException):
            builder.resolve()
