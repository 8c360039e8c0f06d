# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional, Type, TypeVar, Union, cast

from winfeature.util import InitializableMixin, WinFeatureException
from winfeature.util.logger import get_logger
from winfeature.util.process import Process

if TYPE_CHECKING:
    from winfeature.node import Node

T = TypeVar("T")


class Tool(InitializableMixin):
    """
    The base class, which wraps an executable or cmdlets on a node. When a tool
    is needed, call node.tools[] to get one object. The tools[] checks if it
    exists, and fails if it doesn't. After the tool instance returned, the
    run_async of the tool will call execute_async of node.

    The must be implemented methods,

    command: it's the command name, like powershell. It uses in run_async to
    run it.

    The may be implemented methods,

    _initialize: It's called when a tool is created, and before to call any other
    methods. It can be used to initialize variables or time-costing operations.

    _check_exists: The default implementation checks if the node is Windows,
    because cmdlets are builtin there.
    """

    def __init__(self, node: Node, *args: Any, **kwargs: Any) -> None:
        """
        It's not recommended to replace this __init__ method. Anything need to be
        initialized, should be in initialize() method.
        """
        super().__init__()
        self.node: Node = node
        # triple states, None means not checked.
        self._exists: Optional[bool] = None
        self._log = get_logger("tool", self.name, self.node.log)
        # cache the processes with same command line, so that it reduce time to
        # rerun same commands.
        self.__cached_results: Dict[str, Process] = {}

    @property
    def command(self) -> str:
        """
        Return command string, which can be run in console. For example, where.
        """
        raise NotImplementedError("'command' is not implemented")

    @property
    def name(self) -> str:
        """
        Unique name to a tool.
        """
        return self.__class__.__name__.lower()

    @property
    def exists(self) -> bool:
        # the check may need extra cost, so cache it's result.
        if self._exists is None:
            self._exists = self._check_exists()
        return self._exists

    @classmethod
    def create(cls, node: Node, *args: Any, **kwargs: Any) -> Tool:
        """
        override this method if richer creation factory is needed.
        """
        return cls(node, *args, **kwargs)

    def run_async(
        self,
        parameters: str = "",
        force_run: bool = False,
        shell: bool = False,
        no_error_log: bool = False,
        no_info_log: bool = True,
        no_debug_log: bool = False,
    ) -> Process:
        """
        Run a command async and return the Process. The process is used for async, or
        kill directly.
        """
        if parameters:
            command = f"{self.command} {parameters}"
        else:
            command = self.command

        command_key = f"{command}|{shell}"
        process = self.__cached_results.get(command_key, None)
        if force_run or not process:
            process = self.node.execute_async(
                command,
                shell=shell,
                no_error_log=no_error_log,
                no_info_log=no_info_log,
                no_debug_log=no_debug_log,
            )
            self.__cached_results[command_key] = process
        else:
            self._log.debug(f"loaded cached result for command: [{command}]")
        return process

    def _initialize(self, *args: Any, **kwargs: Any) -> None:
        """
        Declare and initialize variables here, or some time costing initialization.
        This method is called before other methods, when initialing on a node.
        """
        ...

    def _check_exists(self) -> bool:
        """
        Default implementation to check if a tool exists. This method is called by
        exists, and cached result.
        """
        return bool(self.node.os.is_windows)


class Tools:
    def __init__(self, node: Node) -> None:
        self._node = node
        self._cache: Dict[str, Tool] = {}

    def __getitem__(self, tool_type: Type[T]) -> T:
        return self.get(tool_type=tool_type)

    def get(
        self, tool_type: Union[Type[T], Type[Tool]], *args: Any, **kwargs: Any
    ) -> T:
        """
        return a typed subclass of tool. The instance is cached on the node, so
        states of a tool, like cached query results, are kept until the node is
        closed.

        for example,
        powershell = node.tools[PowerShell]
        powershell.run_cmdlet("Get-WindowsFeature")
        """
        tool_key = self._get_tool_key(tool_type)
        tool = self._cache.get(tool_key)
        if tool is None:
            tool_log = get_logger("tool", tool_key, self._node.log)
            tool_log.debug(f"initializing tool [{tool_key}]")

            cast_tool_type = cast(Type[Tool], tool_type)
            tool = cast_tool_type.create(self._node, *args, **kwargs)
            tool.initialize()

            if not tool.exists:
                raise WinFeatureException(
                    f"cannot find [{tool.name}] on [{self._node.name}], "
                    f"{self._node.os.name}."
                )
            tool_log.debug("exists already")
            self._cache[tool_key] = tool
        return cast(T, tool)

    def clear(self) -> None:
        self._cache.clear()

    def _get_tool_key(self, tool_type: type) -> str:
        return tool_type.__name__.lower()
