# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdmate/systemd/dropin.py

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from jinja2 import Environment, StrictUndefined

from etcdmate.etcd.models import BootstrapDirective
from etcdmate.utils.execution import ExecutionContext

log = logging.getLogger("etcdmate")

DROP_IN_TEMPLATE = """\
[Service]
Environment=ETCD_INITIAL_CLUSTER={{ initial_cluster }}
Environment=ETCD_INITIAL_CLUSTER_STATE={{ state }}
"""


def render_drop_in(directive: BootstrapDirective) -> str:
    env = Environment(
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )
    template = env.from_string(DROP_IN_TEMPLATE)
    return template.render(
        initial_cluster=directive.initial_cluster_value,
        state=directive.state.value,
    )


def write_drop_in(
    directive: BootstrapDirective,
    path: Path,
    ctx: Optional[ExecutionContext] = None,
) -> str:
    """
    Render the drop-in and replace `path` with it. Returns the rendered text.
    The file is written next to its target and renamed, so etcd never sees
    a half-written unit.
    """
    ctx = ctx or ExecutionContext()
    content = render_drop_in(directive)
    path = Path(path)

    if ctx.dry_run:
        log.info("[dry-run] would write %s:\n%s", path, content)
        return content

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w") as f:
            f.write(content)
        os.chmod(tmp, 0o644)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise

    log.info("Wrote drop-in %s (state=%s)", path, directive.state.value)
    return content
