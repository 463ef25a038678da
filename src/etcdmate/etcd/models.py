# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdmate/etcd/models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import ConfigurationError


@dataclass(frozen=True)
class Member:
    """
    One etcd member, either expected (from inventory) or actual (from the
    members API).

    Fields:
    - name: stable external identifier (EC2 instance id); join key between rosters
    - client_url: data-plane endpoint, also where the members API lives
    - peer_url: replication endpoint
    - id: assigned by etcd once admitted; empty for expected-only entries
    """
    name: str
    client_url: str = ""
    peer_url: str = ""
    id: str = ""

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Member":
        """Raises TypeError when the payload is not a members API entry."""
        if not isinstance(payload, dict):
            raise TypeError(f"member entry must be an object, got {payload!r}")
        # Members mid-join have no name and empty URL lists.
        client_urls = _url_list(payload, "clientURLs")
        peer_urls = _url_list(payload, "peerURLs")
        name = payload.get("name") or ""
        if not isinstance(name, str):
            raise TypeError(f"member name must be a string, got {name!r}")
        return cls(
            id=str(payload.get("id") or ""),
            name=name,
            client_url=client_urls[0] if client_urls else "",
            peer_url=peer_urls[0] if peer_urls else "",
        )

    def initial_cluster_entry(self) -> str:
        return f"{self.name}={self.peer_url}"


def _url_list(payload: Dict[str, Any], key: str) -> List[str]:
    urls = payload.get(key) or []
    if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
        raise TypeError(f"{key} must be a list of strings, got {urls!r}")
    return urls


class ClusterState(str, Enum):
    NEW = "new"
    EXISTING = "existing"


@dataclass(frozen=True)
class BootstrapDirective:
    """
    What etcd needs to start: ETCD_INITIAL_CLUSTER and ETCD_INITIAL_CLUSTER_STATE.

    initial_cluster always mirrors the expected roster, whatever was pruned
    or admitted along the way.
    """
    initial_cluster: Tuple[str, ...]
    state: ClusterState
    removed: Tuple[Member, ...] = ()
    added: Optional[Member] = None

    @property
    def initial_cluster_value(self) -> str:
        return ",".join(self.initial_cluster)

    @classmethod
    def for_roster(
        cls,
        expected: Sequence[Member],
        state: ClusterState,
        *,
        removed: Iterable[Member] = (),
        added: Optional[Member] = None,
    ) -> "BootstrapDirective":
        return cls(
            initial_cluster=tuple(m.initial_cluster_entry() for m in expected),
            state=state,
            removed=tuple(removed),
            added=added,
        )


# ----------------------------
# Roster helpers
# ----------------------------
def roster_names(roster: Iterable[Member]) -> List[str]:
    return [m.name for m in roster]


def find_member(roster: Iterable[Member], name: str) -> Optional[Member]:
    return next((m for m in roster if m.name == name), None)


def ensure_unique_names(roster: Sequence[Member]) -> None:
    seen = set()
    dupes = []
    for m in roster:
        if m.name in seen:
            dupes.append(m.name)
        seen.add(m.name)
    if dupes:
        raise ConfigurationError(
            f"Duplicate member names in roster: {', '.join(sorted(set(dupes)))}"
        )
