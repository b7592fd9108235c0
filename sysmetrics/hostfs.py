"""Resolution of host filesystem paths, optionally under a mounted root."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostFS:
    """Maps absolute host paths onto a root directory where the host is mounted."""

    root: str = "/"

    def resolve(self, path: str) -> str:
        """Return ``path`` as seen under this root."""
        if self.root in ("", "/"):
            return path
        return os.path.join(self.root, path.lstrip("/"))


def docker_test_resolver() -> HostFS:
    """Return a resolver rooted at ``$HOSTFS`` if it is set, else at ``/``."""
    path = os.environ.get("HOSTFS")
    if path is not None:
        log.info("Using /hostfs for container tests")
        return HostFS(path)
    return HostFS("/")