# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from typing import Any
from unittest import TestCase
from unittest.mock import patch

from assertpy import assert_that

from selftests.fakes import (
    AVAILABLE,
    INSTALLED,
    REMOVED,
    FakeWindows,
    create_feature,
    create_node,
)
from winfeature.resource import WindowsFeatureResource
from winfeature.schema import FeatureAction
from winfeature.tools import PowerShell, WindowsFeature
from winfeature.util import (
    CommandTimeoutException,
    ConfigurationException,
    ExecutionException,
    RemovedFeatureException,
    UnavailableFeatureException,
    UnsupportedActionException,
)


class ResourceTestCase(TestCase):
    def setUp(self) -> None:
        self.windows = FakeWindows(
            features={
                "Web-Server": AVAILABLE,
                "Web-Mgmt-Tools": AVAILABLE,
                "Telnet-Client": AVAILABLE,
                "XPS-Viewer": INSTALLED,
                "Hyper-V": INSTALLED,
                "Fax": REMOVED,
            }
        )
        patcher = patch.object(
            PowerShell, "run_cmdlet", side_effect=self.windows.run_cmdlet
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def _create_resource(
        self, platform_version: float = 6.3, **kwargs: Any
    ) -> WindowsFeatureResource:
        node = create_node(platform_version=platform_version)
        return WindowsFeatureResource(node, create_feature(**kwargs))

    def test_install_with_management_tools(self) -> None:
        resource = self._create_resource(
            feature_name="Web-Server,Web-Mgmt-Tools", management_tools=True
        )

        plan = resource.apply()

        assert_that(plan.targets).is_equal_to(["web-server", "web-mgmt-tools"])
        assert_that(self.windows.executed).is_equal_to(
            [
                "Install-WindowsFeature web-server,web-mgmt-tools "
                "-IncludeManagementTools"
            ]
        )

    def test_install_all_sub_features_with_source(self) -> None:
        resource = self._create_resource(
            feature_name=["web-server"], all=True, source=r"D:\sources\sxs"
        )

        plan = resource.plan()

        assert_that(plan.command).is_equal_to(
            "Install-WindowsFeature web-server -IncludeAllSubFeature "
            r"-Source 'D:\sources\sxs'"
        )
        assert_that(plan.warnings).is_empty()

    def test_install_source_is_single_quoted(self) -> None:
        resource = self._create_resource(
            feature_name="web-server", source=r"\\srv\d$\it's sxs"
        )

        plan = resource.plan()

        assert_that(plan.command).is_equal_to(
            r"Install-WindowsFeature web-server -Source '\\srv\d$\it''s sxs'"
        )

    def test_noop_log_names_no_state(self) -> None:
        # a removed feature with a source isn't a target of install.
        resource = self._create_resource(feature_name="fax", source=r"D:\sxs")

        with self.assertLogs("winfeature", level="DEBUG") as logs:
            plan = resource.apply()

        assert_that(plan.is_noop).is_true()
        output = "\n".join(logs.output)
        assert_that(output).contains("none of fax needs to be installed")
        assert_that(output).does_not_contain("fax is installed")

    def test_install_legacy_drops_source(self) -> None:
        resource = self._create_resource(
            platform_version=6.1, feature_name="telnet-client", source=r"\\share\sxs"
        )

        with self.assertLogs("winfeature", level="WARNING") as logs:
            plan = resource.apply()

        assert_that(self.windows.executed).is_equal_to(
            ["Import-Module ServerManager; Add-WindowsFeature telnet-client"]
        )
        assert_that(plan.warnings).is_length(1)
        assert_that("\n".join(logs.output)).contains("source")

    def test_install_only_disabled_features(self) -> None:
        resource = self._create_resource(feature_name="hyper-v, web-server")

        plan = resource.plan()

        assert_that(plan.targets).is_equal_to(["web-server"])

    def test_install_noop_when_enabled(self) -> None:
        node = create_node(platform_version=6.3)
        resource = WindowsFeatureResource(node, create_feature(feature_name="Hyper-V"))

        plan = resource.apply()

        assert_that(plan.is_noop).is_true()
        assert_that(plan.command).is_empty()
        assert_that(self.windows.executed).is_empty()
        # the inventory is still cached
        node.tools[WindowsFeature].get_inventory()
        assert_that(self.windows.inventory_queries).is_equal_to(1)

    def test_install_resets_cache(self) -> None:
        node = create_node(platform_version=6.3)
        resource = WindowsFeatureResource(
            node, create_feature(feature_name="web-server")
        )

        resource.apply()
        assert_that(node.tools[WindowsFeature].cache.is_loaded).is_false()

        node.tools[WindowsFeature].get_inventory()
        assert_that(self.windows.inventory_queries).is_equal_to(2)

    def test_install_failure_keeps_cache(self) -> None:
        self.windows.fail_on_change = True
        node = create_node(platform_version=6.3)
        resource = WindowsFeatureResource(
            node, create_feature(feature_name="web-server")
        )

        with self.assertRaises(ExecutionException):
            resource.apply()
        assert_that(node.tools[WindowsFeature].cache.is_loaded).is_true()

    def test_install_timeout_keeps_cache(self) -> None:
        self.windows.timeout_on_change = True
        node = create_node(platform_version=6.3)
        resource = WindowsFeatureResource(
            node, create_feature(feature_name="web-server", timeout=30)
        )

        with self.assertRaises(CommandTimeoutException) as context:
            resource.apply()
        assert_that(context.exception.timeout).is_equal_to(30)
        assert_that(node.tools[WindowsFeature].cache.is_loaded).is_true()

        node.tools[WindowsFeature].get_inventory()
        assert_that(self.windows.inventory_queries).is_equal_to(1)

    def test_remove_resets_cache(self) -> None:
        node = create_node(platform_version=6.3)
        resource = WindowsFeatureResource(
            node, create_feature(feature_name="hyper-v", action="remove")
        )

        resource.apply()
        assert_that(self.windows.executed).is_equal_to(
            ["Uninstall-WindowsFeature hyper-v"]
        )
        assert_that(node.tools[WindowsFeature].cache.is_loaded).is_false()

        node.tools[WindowsFeature].get_inventory()
        assert_that(self.windows.inventory_queries).is_equal_to(2)

    def test_delete_resets_cache(self) -> None:
        node = create_node(platform_version=6.3)
        resource = WindowsFeatureResource(
            node, create_feature(feature_name="telnet-client", action="delete")
        )

        resource.apply()
        assert_that(self.windows.executed).is_equal_to(
            ["Uninstall-WindowsFeature telnet-client -Remove"]
        )
        assert_that(node.tools[WindowsFeature].cache.is_loaded).is_false()

        node.tools[WindowsFeature].get_inventory()
        assert_that(self.windows.inventory_queries).is_equal_to(2)

    def test_install_unavailable(self) -> None:
        resource = self._create_resource(feature_name="Foo,web-server,Bar")

        plan = resource.plan()

        assert_that(plan.error).is_instance_of(UnavailableFeatureException)
        assert_that(plan.error.features).is_equal_to(["foo", "bar"])  # type: ignore
        assert_that(str(plan.error)).contains("foo,bar are not available")
        with self.assertRaises(UnavailableFeatureException):
            resource.apply()
        assert_that(self.windows.executed).is_empty()

    def test_install_removed(self) -> None:
        resource = self._create_resource(feature_name="fax")

        with self.assertRaises(RemovedFeatureException) as context:
            resource.apply()

        assert_that(context.exception.features).is_equal_to(["fax"])
        assert_that(str(context.exception)).contains("fax has been removed")
        # no local source path in registry
        assert_that(self.windows.registry_queries).is_greater_than(0)

    def test_install_removed_with_local_source_path(self) -> None:
        self.windows.local_source_path = True
        resource = self._create_resource(feature_name="fax,web-server")

        plan = resource.plan()

        assert_that(plan.error).is_none()
        assert_that(plan.targets).is_equal_to(["web-server"])

    def test_install_removed_registry_ignored_on_2012(self) -> None:
        self.windows.local_source_path = True
        resource = self._create_resource(platform_version=6.2, feature_name="fax")

        plan = resource.plan()

        assert_that(plan.error).is_instance_of(RemovedFeatureException)
        assert_that(self.windows.registry_queries).is_equal_to(0)

    def test_install_removed_with_source(self) -> None:
        resource = self._create_resource(feature_name="fax", source=r"D:\sxs")

        plan = resource.plan()

        assert_that(plan.error).is_none()
        assert_that(self.windows.registry_queries).is_equal_to(0)

    def test_old_powershell(self) -> None:
        self.windows.powershell_version = 2
        resource = self._create_resource(feature_name="web-server")

        plan = resource.plan()

        assert_that(plan.error).is_instance_of(ConfigurationException)
        assert_that(str(plan.error)).contains("PowerShell 3.0")
        # nothing is queried after the version check failed.
        assert_that(self.windows.inventory_queries).is_equal_to(0)

    def test_powershell_hint_skips_query(self) -> None:
        node = create_node(platform_version=6.3, powershell_version=5)
        resource = WindowsFeatureResource(
            node, create_feature(feature_name="web-server")
        )

        resource.plan()

        assert_that(self.windows.version_queries).is_equal_to(0)

    def test_remove_enabled_features(self) -> None:
        resource = self._create_resource(
            feature_name="xps-viewer,web-server,unknown", action="remove"
        )

        plan = resource.apply()

        assert_that(plan.action).is_equal_to(FeatureAction.REMOVE)
        # unknown features are not checked on remove.
        assert_that(plan.error).is_none()
        assert_that(self.windows.executed).is_equal_to(
            ["Uninstall-WindowsFeature xps-viewer"]
        )

    def test_remove_legacy(self) -> None:
        resource = self._create_resource(
            platform_version=6.1, feature_name="hyper-v", action="remove"
        )

        plan = resource.plan()

        assert_that(plan.command).is_equal_to(
            "Import-Module ServerManager; Remove-WindowsFeature hyper-v"
        )

    def test_delete(self) -> None:
        resource = self._create_resource(
            feature_name="XPS-Viewer,web-server,fax", action="delete"
        )

        with self.assertLogs("winfeature", level="INFO") as logs:
            plan = resource.apply()

        assert_that(plan.targets).is_equal_to(["xps-viewer", "web-server"])
        assert_that(self.windows.executed).is_equal_to(
            ["Uninstall-WindowsFeature xps-viewer,web-server -Remove"]
        )
        assert_that("\n".join(logs.output)).contains(
            "delete Windows feature(s) xps-viewer,web-server from the image"
        )

    def test_delete_legacy(self) -> None:
        resource = self._create_resource(
            platform_version=6.1, feature_name="XPS-Viewer", action="delete"
        )

        plan = resource.plan()

        assert_that(plan.error).is_instance_of(UnsupportedActionException)
        assert_that(self.windows.inventory_queries).is_equal_to(0)
        with self.assertRaises(UnsupportedActionException):
            resource.apply()
        assert_that(self.windows.executed).is_empty()

    def test_delete_unavailable(self) -> None:
        resource = self._create_resource(feature_name="foo", action="delete")

        plan = resource.plan()

        assert_that(plan.error).is_instance_of(UnavailableFeatureException)
        assert_that(str(plan.error)).contains("foo is not available")
