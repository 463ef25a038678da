# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdmate/config/models.py

from __future__ import annotations

import re
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_DROP_IN_FILE = Path("/var/run/systemd/system/etcd2.service.d/50-etcdmate.conf")

_DURATION = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value) -> float:
    """Seconds from 5, 5.0, "5", "5s", "500ms", "1m" or "1h"."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    match = _DURATION.match(str(value))
    if not match:
        raise ValueError(f"invalid duration: {value!r}")
    number, unit = match.groups()
    return float(number) * _UNIT_SECONDS[unit or "s"]


class EndpointSettings(BaseModel):
    """How member URLs are built from an instance address."""

    client_schema: Literal["http", "https"] = "http"
    client_port: int = Field(2379, ge=1, le=65535)
    peer_schema: Literal["http", "https"] = "http"
    peer_port: int = Field(2380, ge=1, le=65535)

    def client_url(self, address: str) -> str:
        return f"{self.client_schema}://{address}:{self.client_port}"

    def peer_url(self, address: str) -> str:
        return f"{self.peer_schema}://{address}:{self.peer_port}"


class TLSSettings(BaseModel):
    ca_file: Optional[Path] = None      # verify server certs against this bundle
    cert_file: Optional[Path] = None    # client cert for mutual TLS
    key_file: Optional[Path] = None

    @model_validator(mode="after")
    def _cert_and_key_together(self) -> "TLSSettings":
        if bool(self.cert_file) != bool(self.key_file):
            raise ValueError("cert_file and key_file must be set together")
        return self


class EtcdmateConfig(BaseModel):
    drop_in_file: Path = DEFAULT_DROP_IN_FILE
    timeout: float = 5.0                # seconds, applied to every etcd/metadata call
    endpoints: EndpointSettings = Field(default_factory=EndpointSettings)
    tls: TLSSettings = Field(default_factory=TLSSettings)

    # Skip the instance metadata lookup when set
    instance_id: Optional[str] = None
    region: Optional[str] = None

    log_dir: Optional[Path] = None

    @field_validator("timeout", mode="before")
    @classmethod
    def _parse_timeout(cls, value):
        seconds = parse_duration(value)
        if seconds <= 0:
            raise ValueError("timeout must be positive")
        return seconds
