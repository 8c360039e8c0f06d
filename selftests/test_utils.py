# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import logging
from unittest import TestCase

from assertpy import assert_that

from winfeature import secret
from winfeature.util import (
    CommandTimeoutException,
    UnavailableFeatureException,
    WinFeatureException,
    filter_ansi_escape,
    parse_version,
    to_lowercase_list,
)
from winfeature.util.logger import LogWriter, get_logger


class UtilsTestCase(TestCase):
    def setUp(self) -> None:
        secret.reset()

    def test_to_lowercase_list(self) -> None:
        assert_that(to_lowercase_list("Web-Server, Web-Mgmt-Tools")).is_equal_to(
            ["web-server", "web-mgmt-tools"]
        )
        assert_that(to_lowercase_list(["A", "b", "a"])).is_equal_to(["a", "b"])
        assert_that(to_lowercase_list(" , ")).is_empty()
        assert_that(to_lowercase_list(None)).is_empty()

    def test_parse_version(self) -> None:
        assert_that(str(parse_version("6.1"))).is_equal_to("6.1.0")
        version = parse_version("10.0.17763.1")
        assert_that(version.major).is_equal_to(10)
        assert_that(version.patch).is_equal_to(17763)
        assert_that(version.prerelease).is_equal_to("1")

        with self.assertRaises(WinFeatureException):
            parse_version("unknown")

    def test_filter_ansi_escape(self) -> None:
        assert_that(
            filter_ansi_escape("\x1b[?1h\x1b=Install-WindowsFeature\x1b[m")
        ).is_equal_to("Install-WindowsFeature")

    def test_pluralized_messages(self) -> None:
        assert_that(str(UnavailableFeatureException(["foo"]))).contains(
            "The Windows feature foo is not available"
        )
        assert_that(str(UnavailableFeatureException(["foo", "bar"]))).contains(
            "The Windows features foo,bar are not available"
        )

    def test_secret_is_masked(self) -> None:
        secret.add_secret("p@ssw0rd")

        assert_that(str(WinFeatureException("password is p@ssw0rd"))).is_equal_to(
            "password is ******"
        )
        error = CommandTimeoutException("net use p@ssw0rd", timeout=600)
        assert_that(str(error)).does_not_contain("p@ssw0rd")
        assert_that(str(error)).contains("timeout after 600 seconds")


class LoggerTestCase(TestCase):
    def setUp(self) -> None:
        secret.reset()

    def test_log_writer_waits_for_complete_lines(self) -> None:
        log = get_logger("writer")
        writer = LogWriter(logger=log, level=logging.INFO)

        with self.assertLogs("winfeature.writer", level="INFO") as logs:
            writer.write("Success Restart")
            writer.write(" Needed\r\n\r\nTrue No")
            writer.close()

        assert_that([record.getMessage() for record in logs.records]).is_equal_to(
            ["Success Restart Needed", "True No"]
        )

    def test_lines_masks_secrets(self) -> None:
        secret.add_secret("p@ssw0rd")
        log = get_logger("lines")

        with self.assertLogs("winfeature.lines", level="DEBUG") as logs:
            log.lines(logging.DEBUG, ["net use p@ssw0rd", "  "], prefix="> ")

        assert_that([record.getMessage() for record in logs.records]).is_equal_to(
            ["> net use ******"]
        )
