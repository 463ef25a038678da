# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdmate/config/loader.py

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from etcdmate.etcd.errors import ConfigurationError
from .models import EtcdmateConfig

log = logging.getLogger("etcdmate")


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    try:
        raw = path.read_text()
    except OSError as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc
    expanded = os.path.expandvars(raw)
    try:
        data = yaml.safe_load(expanded) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return data


def load_config(
    path: Optional[str | Path] = None,
    overrides: Optional[dict] = None,
) -> EtcdmateConfig:
    """
    Build the run configuration.

    Sources, lowest precedence first:
      1. model defaults
      2. optional YAML file (``${ENV_VAR}`` placeholders are expanded)
      3. ``overrides`` (CLI flags / ETCDMATE_* env vars); ``None`` and ``""``
         entries are ignored so unset flags never clobber the file.

    Validation errors are raised as ConfigurationError.
    """
    data: dict = {}
    if path:
        path = Path(path)
        log.debug("Loading config from %s", path)
        data = _load_yaml(path)

    if overrides:
        _deep_merge(data, overrides)

    try:
        return EtcdmateConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
