# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import re
from typing import Any, List, Optional, Pattern, Set, Tuple, Union

# \\server\share\media => \\s***\******
PATTERN_SHARE = (
    re.compile(r"^(\\\\.)[^\\]*(\\.*)?$"),
    r"\1***\\******",
)

_secret_list: List[Tuple[str, str]] = list()
_secret_set: Set[str] = set()


def _replace(
    origin: str,
    mask: Optional[Union[Pattern[str], Tuple[Pattern[str], str]]] = None,
    sub: str = "******",
) -> str:
    if not mask:
        return sub
    if isinstance(mask, tuple):
        sub = mask[1]
        mask = mask[0]
    result = mask.sub(sub, origin)
    if result == origin:
        # not matched, hide all
        result = "******"
    return result


def reset() -> None:
    _secret_set.clear()
    _secret_list.clear()


def add_secret(
    origin: Any,
    mask: Optional[Union[Pattern[str], Tuple[Pattern[str], str]]] = None,
    sub: str = "******",
) -> None:
    global _secret_list
    if origin and str(origin) not in _secret_set:
        origin = str(origin)
        _secret_set.add(origin)
        _secret_list.append((origin, _replace(origin, mask=mask, sub=sub)))
        # longer first, so a short secret doesn't break a long one.
        _secret_list = sorted(_secret_list, reverse=True, key=lambda x: len(x[0]))


def mask(input: str) -> str:
    for secret in _secret_list:
        if secret[0] in input:
            input = input.replace(secret[0], secret[1])
    return input
