# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdmate/reconcile/reconciler.py

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

from etcdmate.etcd.errors import (
    AdminRequestError,
    ConfigurationError,
    NoHealthyMemberError,
)
from etcdmate.etcd.models import (
    BootstrapDirective,
    ClusterState,
    Member,
    ensure_unique_names,
    find_member,
    roster_names,
)
from etcdmate.observers.dispatcher import EventBus
from etcdmate.observers.events import LifecycleEvent
from etcdmate.utils.execution import ExecutionContext

log = logging.getLogger("etcdmate")


class AdminClient(Protocol):
    def find_healthy_member(self, candidates: Sequence[Member]) -> Member: ...
    def list_members(self, endpoint: Member) -> List[Member]: ...
    def add_member(self, endpoint: Member, member: Member) -> None: ...
    def remove_member(self, endpoint: Member, victim: Member) -> None: ...


class Reconciler:
    """
    Converges the live etcd membership towards the expected roster and
    derives how the local member should start.

    Flow:
      0) validate the expected roster: unique names, local member present
      1) probe expected members in order for a healthy one
      2) list the members it knows about
      3) remove members that are no longer expected
      4) add the local member if it is missing
      5) return the directive (state=existing)

    Step 0 needs no network, so a local member missing from its own roster
    raises ConfigurationError even when no member is healthy; it never falls
    through to state=new.

    No healthy member, or a failed listing, yields state=new without touching
    the cluster. Failed removals and additions abort the run.
    Re-running against a converged cluster makes no membership calls.
    """

    def __init__(
        self,
        client: AdminClient,
        *,
        bus: Optional[EventBus] = None,
        ctx: Optional[ExecutionContext] = None,
    ):
        self.client = client
        self.bus = bus or EventBus()
        self.ctx = ctx or ExecutionContext()

    def _emit(self, phase: str, status: str, message: str) -> None:
        self.bus.emit(LifecycleEvent(f"reconcile.{phase}", status, message))

    def reconcile(self, expected: Sequence[Member], local_name: str) -> BootstrapDirective:
        ensure_unique_names(expected)
        myself = find_member(expected, local_name)
        if myself is None:
            raise ConfigurationError(
                f"Couldn't find instance {local_name} in expected members "
                f"({', '.join(roster_names(expected)) or 'none'})"
            )

        self._emit("probe", "START", f"Probing {len(expected)} expected member(s)")
        try:
            healthy = self.client.find_healthy_member(expected)
        except NoHealthyMemberError as exc:
            log.warning("%s; assuming a new cluster", exc)
            self._emit("probe", "FAILURE", str(exc))
            return self._directive(expected, ClusterState.NEW)
        self._emit("probe", "SUCCESS", f"Healthy member {healthy.name} at {healthy.client_url}")

        try:
            actual = self.client.list_members(healthy)
        except AdminRequestError as exc:
            # Without the actual roster no membership edit is safe.
            log.warning("Listing members failed: %s; assuming a new cluster", exc)
            self._emit("list", "FAILURE", str(exc))
            return self._directive(expected, ClusterState.NEW)
        self._emit("list", "SUCCESS", f"Cluster reports {len(actual)} member(s)")

        removed = self.remove_stale_members(healthy, expected, actual)
        added = self.ensure_member(healthy, actual, myself)

        return self._directive(expected, ClusterState.EXISTING, removed=removed, added=added)

    def remove_stale_members(
        self,
        endpoint: Member,
        expected: Sequence[Member],
        actual: Sequence[Member],
    ) -> List[Member]:
        """
        Remove, in actual-roster order, every member whose name is not expected.
        The first failure aborts: a half-pruned cluster invalidates the plan.
        """
        expected_names = set(roster_names(expected))
        stale = [m for m in actual if m.name not in expected_names]
        if not stale:
            self._emit("prune", "SKIPPED", "No stale members")
            return []

        for member in stale:
            if self.ctx.dry_run:
                log.info("[dry-run] would remove member %s (%s)", member.name, member.id)
                continue
            try:
                self.client.remove_member(endpoint, member)
            except AdminRequestError as exc:
                self._emit("prune", "FAILURE", f"Removing {member.name or member.id} failed: {exc}")
                raise
        self._emit("prune", "SUCCESS", f"Removed {len(stale)} stale member(s)")
        return stale

    def ensure_member(
        self,
        endpoint: Member,
        actual: Sequence[Member],
        myself: Member,
    ) -> Optional[Member]:
        """Register `myself` unless the cluster already knows its name."""
        if find_member(actual, myself.name) is not None:
            self._emit("admit", "SKIPPED", f"{myself.name} already a member")
            return None

        if self.ctx.dry_run:
            log.info("[dry-run] would add member %s (%s)", myself.name, myself.peer_url)
            return myself

        try:
            self.client.add_member(endpoint, myself)
        except AdminRequestError as exc:
            self._emit("admit", "FAILURE", f"Adding {myself.name} failed: {exc}")
            raise
        self._emit("admit", "SUCCESS", f"Added {myself.name} at {myself.peer_url}")
        return myself

    def _directive(
        self,
        expected: Sequence[Member],
        state: ClusterState,
        *,
        removed: Sequence[Member] = (),
        added: Optional[Member] = None,
    ) -> BootstrapDirective:
        directive = BootstrapDirective.for_roster(expected, state, removed=removed, added=added)
        self._emit(
            "directive",
            "SUCCESS",
            f"state={directive.state.value} initial_cluster={directive.initial_cluster_value}",
        )
        return directive
