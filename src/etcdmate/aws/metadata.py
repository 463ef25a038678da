# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdmate/aws/metadata.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import requests

from etcdmate.etcd.errors import MetadataError

log = logging.getLogger("etcdmate")

IMDS_BASE_URL = "http://169.254.169.254"
TOKEN_PATH = "/latest/api/token"
IDENTITY_PATH = "/latest/dynamic/instance-identity/document"
TOKEN_TTL_SECONDS = 300


@dataclass(frozen=True)
class InstanceIdentity:
    instance_id: str
    region: str
    private_ip: Optional[str] = None
    availability_zone: Optional[str] = None


def _imds_token(session: requests.Session, base_url: str, timeout: float) -> Optional[str]:
    """
    IMDSv2 session token, or None when the endpoint refuses tokens (IMDSv1 only).
    """
    r = session.put(
        f"{base_url}{TOKEN_PATH}",
        headers={"X-aws-ec2-metadata-token-ttl-seconds": str(TOKEN_TTL_SECONDS)},
        timeout=timeout,
    )
    if r.status_code == 200:
        return r.text.strip()
    log.debug("IMDSv2 token request returned %s; falling back to IMDSv1", r.status_code)
    return None


def fetch_instance_identity(
    *,
    timeout: float,
    session: Optional[requests.Session] = None,
    base_url: str = IMDS_BASE_URL,
) -> InstanceIdentity:
    """Read the instance identity document of the EC2 instance we run on."""
    session = session or requests.Session()
    try:
        token = _imds_token(session, base_url, timeout)
        headers: Dict[str, str] = {"X-aws-ec2-metadata-token": token} if token else {}
        r = session.get(f"{base_url}{IDENTITY_PATH}", headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise MetadataError(f"Not an AWS EC2 instance (metadata unavailable: {exc})") from exc

    if r.status_code != 200:
        raise MetadataError(f"Instance identity request failed ({r.status_code}): {r.text}")

    try:
        doc = r.json()
        identity = InstanceIdentity(
            instance_id=doc["instanceId"],
            region=doc["region"],
            private_ip=doc.get("privateIp"),
            availability_zone=doc.get("availabilityZone"),
        )
    except (ValueError, KeyError, TypeError) as exc:
        raise MetadataError(f"Malformed instance identity document: {r.text}") from exc

    log.info("Metadata: %s", identity)
    return identity
