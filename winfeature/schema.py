# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Schema is dealt with three components,
1. dataclasses. It's a builtin class, uses to define schema of an instance. field()
   function uses to describe a field.
2. dataclasses_json. Serializer. config() function customizes this component.
3. marshmallow. Validator. It's wrapped by dataclasses_json. config(mm_field=xxx)
   function customizes this component.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Type, TypeVar, Union, cast

from dataclasses_json import dataclass_json
from marshmallow import ValidationError, fields, validate

from winfeature.util import (
    WinFeatureException,
    constants,
    field_metadata,
    to_lowercase_list,
)

T = TypeVar("T")


class FeatureAction(str, Enum):
    INSTALL = "install"
    REMOVE = "remove"
    DELETE = "delete"

    def __str__(self) -> str:
        return self.value


class ListableValidator(validate.Validator):
    """
    The value can be a single value, or a list of values in the same type.
    """

    default_message = ""

    def __init__(self, value_type: type, error: str = "") -> None:
        self._value_type: Any = value_type
        self.error: str = error or self.default_message

    def _repr_args(self) -> str:
        return f"value_type={self._value_type}"

    def __call__(self, value: Any) -> Any:
        if isinstance(value, self._value_type):
            return value
        if isinstance(value, list):
            for value_item in value:
                if not isinstance(value_item, self._value_type):
                    raise ValidationError(
                        f"must be '{self._value_type}' but '{value_item}' "
                        f"is '{type(value_item)}'"
                    )
        elif value is not None:
            raise ValidationError(
                f"must be Union[{self._value_type}, List[{self._value_type}]], "
                f"but '{value}' is '{type(value)}'"
            )
        return value


@dataclass_json()
@dataclass
class Variable:
    """
    it uses to support variables in other fields. A value like $(name) is replaced
    by the value of the variable.
    """

    name: str = field(default="", metadata=field_metadata(required=True))
    value: Union[str, bool, int, List[Any], None] = field(default="")
    # If it's secret, it will be masked in log and exception messages.
    is_secret: bool = False


@dataclass_json()
@dataclass
class Node:
    name: str = "local"
    # A known PowerShell version, like the one collected by an inventory. It's
    # trusted only if it's higher than 3, otherwise PowerShell is asked.
    powershell_version: Optional[int] = field(
        default=None,
        metadata=field_metadata(
            field_function=fields.Int, allow_none=True, validate=validate.Range(min=0)
        ),
    )


@dataclass_json()
@dataclass
class WindowsFeature:
    """
    A resource of Windows features. The feature_name can be a comma separated
    string, or a list. Names are case insensitive.
    """

    feature_name: Union[str, List[str]] = field(
        default="",
        metadata=field_metadata(required=True, validate=ListableValidator(str)),
    )
    action: str = field(
        default=FeatureAction.INSTALL.value,
        metadata=field_metadata(
            validate=validate.OneOf([action.value for action in FeatureAction])
        ),
    )
    # alternate installation media, like a mounted ISO or a share.
    source: Optional[str] = None
    # include all sub features
    all: bool = False
    timeout: int = field(
        default=constants.DEFAULT_TIMEOUT,
        metadata=field_metadata(
            field_function=fields.Int, validate=validate.Range(min=1)
        ),
    )
    management_tools: bool = False

    def __post_init__(self, *args: Any, **kwargs: Any) -> None:
        self.feature_name = to_lowercase_list(self.feature_name)
        if not self.feature_name:
            raise WinFeatureException("feature_name cannot be empty.")
        if not self.source:
            self.source = None

    @property
    def names(self) -> List[str]:
        return cast(List[str], self.feature_name)


@dataclass_json()
@dataclass
class Runbook:
    name: str = "not_named"
    node: Node = field(default_factory=Node)
    # features are applied one by one in the order.
    feature: List[WindowsFeature] = field(default_factory=list)


def load_by_type(schema_type: Type[T], raw_runbook: Any, many: bool = False) -> T:
    """
    Convert dict, list or base typed schema to specified typed schema.
    """
    if type(raw_runbook) == schema_type:
        return raw_runbook

    if not isinstance(raw_runbook, (dict, list)):
        raw_runbook = raw_runbook.to_dict()

    try:
        result: T = schema_type.schema().load(raw_runbook, many=many)  # type: ignore
    except ValidationError as identifier:
        raise WinFeatureException(
            f"invalid {schema_type.__name__}: {identifier.messages}"
        )
    return result


def load_by_type_many(schema_type: Type[T], raw_runbook: Any) -> List[T]:
    """
    Convert raw list to list of typed schema. It has different returned type
    with load_by_type.
    """
    result = load_by_type(schema_type, raw_runbook=raw_runbook, many=True)
    return cast(List[T], result)