# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdmate/cli/app.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, NoReturn, Optional, Tuple

import typer

from etcdmate import __version__
from etcdmate.aws.inventory import AutoScalingInventory
from etcdmate.aws.metadata import fetch_instance_identity
from etcdmate.config.loader import load_config
from etcdmate.config.models import EtcdmateConfig
from etcdmate.etcd.client import EtcdAdminClient
from etcdmate.etcd.errors import EtcdmateError
from etcdmate.etcd.models import Member
from etcdmate.logging.log import init_logging
from etcdmate.observers.dispatcher import EventBus
from etcdmate.observers.logger import LoggerObserver
from etcdmate.reconcile.reconciler import Reconciler
from etcdmate.systemd.dropin import write_drop_in
from etcdmate.utils.execution import ExecutionContext

log = logging.getLogger("etcdmate")


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Bootstrap an etcd member from its Autoscaling group")

SCHEMAS = ("http", "https")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"etcdmate {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
):
    """etcdmate - etcd cluster membership for autoscaled instances."""


def _check_schema(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in SCHEMAS:
        raise typer.BadParameter(f"must be one of: {', '.join(SCHEMAS)}")
    return value


# ------------------------------------------------------------------------------
# Helpers (extracted logic)
# ------------------------------------------------------------------------------

def build_config(
    *,
    config: Optional[Path],
    drop_in_file: Optional[Path] = None,
    timeout: Optional[str] = None,
    client_schema: Optional[str] = None,
    client_port: Optional[int] = None,
    peer_schema: Optional[str] = None,
    peer_port: Optional[int] = None,
    ca_file: Optional[Path] = None,
    cert_file: Optional[Path] = None,
    key_file: Optional[Path] = None,
    instance_id: Optional[str] = None,
    region: Optional[str] = None,
    log_dir: Optional[Path] = None,
) -> EtcdmateConfig:
    """Flags and ETCDMATE_* env vars win over the YAML file."""
    overrides = {
        "drop_in_file": drop_in_file,
        "timeout": timeout,
        "endpoints": {
            "client_schema": client_schema,
            "client_port": client_port,
            "peer_schema": peer_schema,
            "peer_port": peer_port,
        },
        "tls": {
            "ca_file": ca_file,
            "cert_file": cert_file,
            "key_file": key_file,
        },
        "instance_id": instance_id,
        "region": region,
        "log_dir": log_dir,
    }
    # Drop empty sections so they do not replace a section from the file.
    for section in ("endpoints", "tls"):
        overrides[section] = {k: v for k, v in overrides[section].items() if v is not None}
    return load_config(config, overrides)


def resolve_local_identity(cfg: EtcdmateConfig) -> Tuple[str, Optional[str]]:
    """(instance id, region); the metadata service is only asked when needed."""
    if cfg.instance_id:
        return cfg.instance_id, cfg.region
    identity = fetch_instance_identity(timeout=cfg.timeout)
    return identity.instance_id, cfg.region or identity.region


def expected_roster(cfg: EtcdmateConfig) -> Tuple[str, List[Member]]:
    instance_id, region = resolve_local_identity(cfg)
    inventory = AutoScalingInventory(region=region)
    return instance_id, inventory.expected_members(instance_id, cfg.endpoints)


def admin_client(cfg: EtcdmateConfig) -> EtcdAdminClient:
    return EtcdAdminClient(
        timeout=cfg.timeout,
        ca_file=cfg.tls.ca_file,
        cert_file=cfg.tls.cert_file,
        key_file=cfg.tls.key_file,
    )


def _log_settings(cfg: EtcdmateConfig) -> None:
    log.info("Drop-in file: %s", cfg.drop_in_file)
    log.info("Timeout: %ss", cfg.timeout)
    log.info("Client schema: %s", cfg.endpoints.client_schema)
    log.info("Client port: %d", cfg.endpoints.client_port)
    log.info("Peer schema: %s", cfg.endpoints.peer_schema)
    log.info("Peer port: %d", cfg.endpoints.peer_port)


def _fail(exc: Exception) -> NoReturn:
    log.error("%s", exc)
    typer.secho(f"etcdmate: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def bootstrap(
    config: Optional[Path] = typer.Option(
        None, "--config", envvar="ETCDMATE_CONFIG", help="Optional YAML settings file"
    ),
    drop_in_file: Optional[Path] = typer.Option(
        None, "--drop-in-file", envvar="ETCDMATE_DROP_IN_FILE",
        help="The systemd drop-in file to create.",
    ),
    timeout: Optional[str] = typer.Option(
        None, "--timeout", envvar="ETCDMATE_TIMEOUT",
        help="Timeout waiting for etcd requests to respond (e.g. 5s, 500ms).",
    ),
    client_schema: Optional[str] = typer.Option(
        None, "--client-schema", envvar="ETCDMATE_CLIENT_SCHEMA",
        callback=_check_schema, help="The etcd client schema (http|https).",
    ),
    client_port: Optional[int] = typer.Option(
        None, "--client-port", envvar="ETCDMATE_CLIENT_PORT", help="The etcd client port."
    ),
    peer_schema: Optional[str] = typer.Option(
        None, "--peer-schema", envvar="ETCDMATE_PEER_SCHEMA",
        callback=_check_schema, help="The etcd peer schema (http|https).",
    ),
    peer_port: Optional[int] = typer.Option(
        None, "--peer-port", envvar="ETCDMATE_PEER_PORT", help="The etcd peer port."
    ),
    ca_file: Optional[Path] = typer.Option(
        None, "--ca-file", envvar="ETCDMATE_CA_FILE",
        help="Verify certificates of HTTPS-enabled servers using this CA bundle.",
    ),
    cert_file: Optional[Path] = typer.Option(
        None, "--cert-file", envvar="ETCDMATE_CERT_FILE",
        help="Identify HTTPS client using this SSL certificate file.",
    ),
    key_file: Optional[Path] = typer.Option(
        None, "--key-file", envvar="ETCDMATE_KEY_FILE",
        help="Identify HTTPS client using this SSL key file.",
    ),
    instance_id: Optional[str] = typer.Option(
        None, "--instance-id", envvar="ETCDMATE_INSTANCE_ID",
        help="Local instance id (skips the metadata lookup).",
    ),
    region: Optional[str] = typer.Option(None, "--region", envvar="ETCDMATE_REGION"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", envvar="ETCDMATE_LOG_DIR"),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Report membership changes and drop-in content without applying them."
    ),
    debug: bool = typer.Option(False, "--debug"),
):
    """Reconcile etcd membership and write the etcd bootstrap drop-in."""
    try:
        cfg = build_config(
            config=config,
            drop_in_file=drop_in_file,
            timeout=timeout,
            client_schema=client_schema,
            client_port=client_port,
            peer_schema=peer_schema,
            peer_port=peer_port,
            ca_file=ca_file,
            cert_file=cert_file,
            key_file=key_file,
            instance_id=instance_id,
            region=region,
            log_dir=log_dir,
        )
    except EtcdmateError as exc:
        _fail(exc)

    logger, run_id, log_path = init_logging(base_dir=cfg.log_dir, verbose=debug)
    _log_settings(cfg)

    ctx = ExecutionContext(dry_run=dry_run)
    bus = EventBus(observers=[LoggerObserver(logger)])

    try:
        local_name, expected = expected_roster(cfg)
        with admin_client(cfg) as client:
            directive = Reconciler(client, bus=bus, ctx=ctx).reconcile(expected, local_name)
        content = write_drop_in(directive, cfg.drop_in_file, ctx)
    except EtcdmateError as exc:
        _fail(exc)

    typer.echo("")
    typer.secho("etcdmate bootstrap finished", bold=True)
    typer.echo(f"  Run ID        : {run_id}")
    if log_path:
        typer.echo(f"  Logs          : {log_path}")
    typer.echo(f"  Cluster state : {directive.state.value}")
    typer.echo(f"  Removed       : {', '.join(m.name or m.id for m in directive.removed) or '-'}")
    typer.echo(f"  Added         : {directive.added.name if directive.added else '-'}")
    if dry_run:
        typer.echo("")
        typer.echo(content, nl=False)


@app.command()
def members(
    config: Optional[Path] = typer.Option(None, "--config", envvar="ETCDMATE_CONFIG"),
    timeout: Optional[str] = typer.Option(None, "--timeout", envvar="ETCDMATE_TIMEOUT"),
    client_schema: Optional[str] = typer.Option(
        None, "--client-schema", envvar="ETCDMATE_CLIENT_SCHEMA", callback=_check_schema
    ),
    client_port: Optional[int] = typer.Option(None, "--client-port", envvar="ETCDMATE_CLIENT_PORT"),
    ca_file: Optional[Path] = typer.Option(None, "--ca-file", envvar="ETCDMATE_CA_FILE"),
    cert_file: Optional[Path] = typer.Option(None, "--cert-file", envvar="ETCDMATE_CERT_FILE"),
    key_file: Optional[Path] = typer.Option(None, "--key-file", envvar="ETCDMATE_KEY_FILE"),
    instance_id: Optional[str] = typer.Option(None, "--instance-id", envvar="ETCDMATE_INSTANCE_ID"),
    region: Optional[str] = typer.Option(None, "--region", envvar="ETCDMATE_REGION"),
    debug: bool = typer.Option(False, "--debug"),
):
    """Show the members recorded by the first healthy expected member."""
    init_logging(verbose=debug, to_file=False)
    try:
        cfg = build_config(
            config=config,
            timeout=timeout,
            client_schema=client_schema,
            client_port=client_port,
            ca_file=ca_file,
            cert_file=cert_file,
            key_file=key_file,
            instance_id=instance_id,
            region=region,
        )
        _, expected = expected_roster(cfg)
        with admin_client(cfg) as client:
            healthy = client.find_healthy_member(expected)
            actual = client.list_members(healthy)
    except EtcdmateError as exc:
        _fail(exc)

    expected_names = {m.name for m in expected}
    typer.secho(f"Members seen by {healthy.name} ({healthy.client_url}):", bold=True)
    for m in actual:
        marker = " " if m.name in expected_names else "!"
        typer.echo(f" {marker} {m.id:<18} {m.name or '<joining>':<22} {m.peer_url or '-'}  {m.client_url or '-'}")


if __name__ == "__main__":
    app()
