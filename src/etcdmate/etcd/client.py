# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdmate/etcd/client.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence

import requests

from .errors import AdminRequestError, ConfigurationError, NoHealthyMemberError
from .models import Member

log = logging.getLogger("etcdmate")


def _succeeded(r: requests.Response) -> bool:
    return 200 <= r.status_code < 300


class EtcdAdminClient:
    """
    Client for the etcd members API of one running member.

    Endpoints used (relative to a member's client URL):
    - GET    /health
    - GET    <api_prefix>/members
    - POST   <api_prefix>/members
    - DELETE <api_prefix>/members/<id>

    Nothing is retried here. A failed call is reported to the caller, which
    decides whether it means "degrade to a new cluster" or "abort".
    """

    def __init__(
        self,
        *,
        timeout: float,
        ca_file: Optional[Path] = None,
        cert_file: Optional[Path] = None,
        key_file: Optional[Path] = None,
        api_prefix: str = "/v2",
        session: Optional[requests.Session] = None,
    ):
        self.timeout = timeout
        self.api_prefix = "/" + api_prefix.strip("/") if api_prefix.strip("/") else ""
        self._session = session or requests.Session()
        self._configure_tls(ca_file, cert_file, key_file)

    def _configure_tls(
        self,
        ca_file: Optional[Path],
        cert_file: Optional[Path],
        key_file: Optional[Path],
    ) -> None:
        # A broken TLS setup must fail here, not look like an unreachable cluster.
        if bool(cert_file) != bool(key_file):
            raise ConfigurationError("cert_file and key_file must be given together")
        for label, path in (("ca_file", ca_file), ("cert_file", cert_file), ("key_file", key_file)):
            if path and not Path(path).is_file():
                raise ConfigurationError(f"{label} {path} does not exist")

        if ca_file:
            self._session.verify = str(ca_file)
        if cert_file and key_file:
            self._session.cert = (str(cert_file), str(key_file))

    # ----------------------------
    # Lifecycle
    # ----------------------------
    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "EtcdAdminClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ----------------------------
    # URLs
    # ----------------------------
    def _members_url(self, member: Member) -> str:
        base = member.client_url.rstrip("/")
        return f"{base}{self.api_prefix}/members"

    # ----------------------------
    # Health
    # ----------------------------
    def check_health(self, member: Member) -> bool:
        """
        True only when the member answers 2xx with {"health": "true"}.
        Transport errors, timeouts and unparseable bodies all count as unhealthy.
        """
        url = f"{member.client_url.rstrip('/')}/health"
        log.info("Checking etcd member health at %s", url)
        try:
            r = self._session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            log.info("Member %s unreachable: %s", member.name, exc)
            return False

        if not _succeeded(r):
            log.info("Member %s health returned %s", member.name, r.status_code)
            return False

        # A member still starting up may answer with an empty or partial body.
        try:
            payload = r.json()
        except ValueError:
            log.info("Member %s returned a non-JSON health payload", member.name)
            return False

        healthy = isinstance(payload, dict) and str(payload.get("health")).lower() == "true"
        if healthy:
            log.info("Healthy member %s", member)
        else:
            log.info("Unhealthy member %s: %s", member, payload)
        return healthy

    def find_healthy_member(self, candidates: Sequence[Member]) -> Member:
        """
        Probe candidates in order and return the first healthy one.
        This is not a load balancer: earlier entries always win.
        """
        for member in candidates:
            if self.check_health(member):
                return member
        raise NoHealthyMemberError(
            f"No healthy member found among {len(candidates)} candidate(s)"
        )

    # ----------------------------
    # Members API
    # ----------------------------
    def list_members(self, endpoint: Member) -> List[Member]:
        url = self._members_url(endpoint)
        log.info("Listing members using url %s", url)
        payload = self._request("GET", url)
        if not isinstance(payload, dict):
            raise AdminRequestError(
                f"GET {url} returned unexpected payload: {payload!r}",
                method="GET",
                url=url,
            )
        items = payload.get("members") or []
        try:
            if not isinstance(items, list):
                raise TypeError(f"members must be a list, got {items!r}")
            members = [Member.from_api(item) for item in items]
        except TypeError as exc:
            raise AdminRequestError(
                f"GET {url} returned a malformed members list: {exc}",
                method="GET",
                url=url,
            ) from exc
        log.info("Found members %s", members)
        return members

    def add_member(self, endpoint: Member, member: Member) -> None:
        url = self._members_url(endpoint)
        log.info("Adding member %s", member)
        self._request(
            "POST",
            url,
            json={"name": member.name, "peerURLs": [member.peer_url]},
        )
        log.info("Member added")

    def remove_member(self, endpoint: Member, victim: Member) -> None:
        url = f"{self._members_url(endpoint)}/{victim.id}"
        if not victim.id:
            raise AdminRequestError(
                f"Cannot remove member {victim.name!r} without an id",
                method="DELETE",
                url=url,
            )
        log.info("Removing member %s", victim)
        self._request("DELETE", url)
        log.info("Member removed")

    # ----------------------------
    # Internal HTTP helper
    # ----------------------------
    def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            r = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise AdminRequestError(
                f"{method} {url} failed: {exc}", method=method, url=url
            ) from exc

        if not _succeeded(r):
            raise AdminRequestError(
                f"{method} {url} failed ({r.status_code}): {r.text}",
                method=method,
                url=url,
                status=r.status_code,
            )

        if method != "GET":
            return None

        try:
            return r.json()
        except ValueError as exc:
            raise AdminRequestError(
                f"{method} {url} returned invalid JSON: {exc}",
                method=method,
                url=url,
                status=r.status_code,
            ) from exc
