# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdmate/observers/dispatcher.py
from __future__ import annotations
import logging
from typing import List, Protocol
from .events import LifecycleEvent

log = logging.getLogger("etcdmate")


class Observer(Protocol):
    def notify(self, event: LifecycleEvent) -> None: ...


class EventBus:
    def __init__(self, observers: List[Observer] = None):
        self._observers = observers or []

    def emit(self, event: LifecycleEvent) -> None:
        for ob in self._observers:
            try:
                ob.notify(event)
            except Exception:
                # observers must not break a bootstrap run
                log.debug("observer %r failed on %s", ob, event.phase, exc_info=True)
