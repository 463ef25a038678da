# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdmate/etcd/errors.py
from __future__ import annotations

from typing import Optional


class EtcdmateError(RuntimeError):
    """Base class for failures that end a bootstrap run."""


class NoHealthyMemberError(EtcdmateError):
    """None of the candidate members answered its health probe."""


class AdminRequestError(EtcdmateError):
    """A members API call against a healthy member failed."""

    def __init__(
        self,
        message: str,
        *,
        method: str,
        url: str,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.method = method
        self.url = url
        self.status = status


class ConfigurationError(EtcdmateError):
    """Inputs are inconsistent (bad settings, local node missing from roster...)."""


class InventoryError(EtcdmateError):
    """The autoscaling/compute inventory could not be resolved."""


class MetadataError(EtcdmateError):
    """The local instance identity could not be read."""
