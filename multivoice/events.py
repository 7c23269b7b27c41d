from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

__all__ = ["MergeObserver", "LoggingMergeObserver", "EventRelay"]


class MergeObserver:
    """
    Receives merge lifecycle events. Every hook is optional; override only the
    ones you care about.
    """

    def on_start(self, command: list[str]) -> None:
        pass

    def on_progress(self, percent: float) -> None:
        pass

    def on_success(self, output: Path) -> None:
        pass

    def on_failure(self, error: Exception) -> None:
        pass


class LoggingMergeObserver(MergeObserver):
    def on_start(self, command: list[str]) -> None:
        logger.info("Merging process started.")
        logger.debug("ffmpeg command: %s", " ".join(command))

    def on_progress(self, percent: float) -> None:
        logger.info("Processing: %d%%", round(percent))

    def on_success(self, output: Path) -> None:
        logger.info("Audio merge completed: %s", output)

    def on_failure(self, error: Exception) -> None:
        logger.error("Audio merge failed: %s", error)


class EventRelay:
    """
    Forwards events to an observer while enforcing the lifecycle order:
    one ``start``, zero or more non-decreasing ``progress`` values, then
    exactly one terminal event. Anything out of order is dropped.
    """

    def __init__(self, observer: Optional[MergeObserver] = None) -> None:
        self.observer = observer or MergeObserver()
        self.started = False
        self.finished = False
        self.last_percent: Optional[float] = None

    def start(self, command: list[str]) -> None:
        if self.started or self.finished:
            return
        self.started = True
        self.observer.on_start(command)

    def progress(self, percent: float) -> None:
        if not self.started or self.finished:
            return
        percent = min(100.0, max(0.0, percent))
        if self.last_percent is not None and percent <= self.last_percent:
            return
        self.last_percent = percent
        self.observer.on_progress(percent)

    def succeed(self, output: Path) -> None:
        if self.finished:
            return
        self.finished = True
        self.observer.on_success(output)

    def fail(self, error: Exception) -> None:
        if self.finished:
            return
        self.finished = True
        self.observer.on_failure(error)
