"""Host process for the thadm recorder sidecar."""

from __future__ import annotations

from importlib import metadata
from typing import Optional, Sequence

try:
    __version__ = metadata.version("thadm-host")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev
    __version__ = "0.0.0"


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Convenience wrapper that runs the async entry point."""
    from .app.master import run as _run

    return _run(list(argv) if argv is not None else None)


__all__ = ["__version__", "run"]
