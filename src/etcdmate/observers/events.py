# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdmate/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict, field
from typing import Any, Dict
from datetime import datetime, timezone


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(frozen=True)
class LifecycleEvent:
    phase: str        # e.g. reconcile.probe, reconcile.prune
    status: str       # START | SUCCESS | FAILURE | SKIPPED
    message: str
    ts: str = field(default_factory=_now)

    def dict(self) -> Dict[str, Any]:
        return asdict(self)
