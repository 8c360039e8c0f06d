# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import sys
from typing import Any, Sequence

import spur  # type: ignore

from winfeature.util import InitializableMixin


class LocalShell(InitializableMixin):
    """
    Runs commands on the current machine. Windows features are managed on the
    machine, which runs winfeature, so there is no remote shell.
    """

    def __init__(self) -> None:
        super().__init__()
        self.is_posix = "win32" != sys.platform
        self._inner_shell = spur.LocalShell()

    def _initialize(self, *args: Any, **kwargs: Any) -> None:
        ...

    def close(self) -> None:
        ...

    def spawn(
        self,
        command: Sequence[str],
        store_pid: bool = False,
        stdout: Any = None,
        stderr: Any = None,
        encoding: str = "utf-8",
        use_pty: bool = False,
        allow_error: bool = False,
    ) -> spur.local.LocalProcess:
        return self._inner_shell.spawn(
            command=command,
            update_env={},
            store_pid=store_pid,
            stdout=stdout,
            stderr=stderr,
            encoding=encoding,
            use_pty=use_pty,
            allow_error=allow_error,
        )


Shell = LocalShell
