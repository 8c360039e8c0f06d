# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from timeit import default_timer as timer
from typing import Optional


class Timer:
    def __init__(self) -> None:
        self.start = timer()
        self._elapsed: Optional[float] = None

    def elapsed(self, stop: bool = True) -> float:
        """
        The stopped timer keeps the first elapsed value, so it can be logged
        several times with the same number.
        """
        if self._elapsed is None or not stop:
            self._elapsed = timer() - self.start
        return self._elapsed

    def __str__(self) -> str:
        return f"{self.elapsed():.3f} sec"


def create_timer() -> Timer:
    return Timer()
