# media_refs/core/media/progress.py
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Literal, Protocol, runtime_checkable

from tqdm import tqdm

from media_refs.core.log import get_logger

PROGRESS_TITLE = "Inspecting remote media references"

ProgressKind = Literal["tqdm", "log", "none"]


@runtime_checkable
class ProgressReporter(Protocol):
    total: int

    def start(self) -> None: ...

    def tick(self) -> None: ...

    def done(self) -> None: ...


ProgressFactory = Callable[[], ProgressReporter]


class TqdmProgress:
    """Terminal progress bar; `total` may grow while running."""

    def __init__(self, title: str = PROGRESS_TITLE, *, disable: bool | None = None) -> None:
        self.title = title
        self._disable = disable
        self._bar: tqdm | None = None
        self._total = 0

    @property
    def total(self) -> int:
        return self._total

    @total.setter
    def total(self, value: int) -> None:
        self._total = value
        if self._bar is not None:
            self._bar.total = value
            self._bar.refresh()

    def start(self) -> None:
        self._bar = tqdm(total=self._total, desc=self.title, unit="ref", disable=self._disable)

    def tick(self) -> None:
        if self._bar is not None:
            self._bar.update(1)

    def done(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None


class LoggerProgress:
    """Reports through a logger: INFO on start/done, DEBUG per tick."""

    def __init__(self, title: str = PROGRESS_TITLE, *, logger: logging.Logger | None = None) -> None:
        self.title = title
        self.total = 0
        self.completed = 0
        self._log = logger or get_logger("progress")

    def start(self) -> None:
        self.completed = 0
        self._log.info("%s: started", self.title)

    def tick(self) -> None:
        self.completed += 1
        self._log.debug("%s: %d/%d", self.title, self.completed, self.total)

    def done(self) -> None:
        self._log.info("%s: done (%d/%d)", self.title, self.completed, self.total)


class NullProgress:
    total = 0

    def start(self) -> None:
        pass

    def tick(self) -> None:
        pass

    def done(self) -> None:
        pass


def create_progress(kind: ProgressKind = "tqdm") -> ProgressReporter:
    if kind == "tqdm":
        return TqdmProgress()
    if kind == "log":
        return LoggerProgress()
    return NullProgress()


__all__ = [
    "ProgressReporter",
    "ProgressFactory",
    "TqdmProgress",
    "LoggerProgress",
    "NullProgress",
    "create_progress",
    "PROGRESS_TITLE",
]
