"""Allow ``python -m thadm_host`` to launch the recorder host."""

from __future__ import annotations

from .app.master import run


if __name__ == "__main__":
    raise SystemExit(run())
