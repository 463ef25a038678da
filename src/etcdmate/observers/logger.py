# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations
import logging
from .events import LifecycleEvent


class LoggerObserver:
    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: LifecycleEvent) -> None:
        level = logging.ERROR if event.status == "FAILURE" else logging.INFO
        self.logger.log(level, f"[EVENT] {event.phase} {event.status}: {event.message}")
