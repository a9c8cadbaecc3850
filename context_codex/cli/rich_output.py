"""Choose between the rich live display and plain logging for CLI runs.

``context-codex learn`` draws a live progress panel only when the output is
an interactive terminal that a human is watching. Machine-readable runs
(``--json``) always take the plain path so stdout carries nothing but the
summary document.

Checks, first match wins:
1. ``json_output``: rich is off, whatever the environment says
2. ``CONTEXT_CODEX_RICH``: ``0``/``false``/``no`` disables,
   ``1``/``true``/``yes`` forces the live display
3. ``NO_COLOR`` (https://no-color.org/) or ``CI``: disabled
4. Otherwise rich follows ``stdout.isatty()``
"""

from __future__ import annotations

import os
import sys

_RICH_ENV = "CONTEXT_CODEX_RICH"


def _env_override() -> bool | None:
    value = os.environ.get(_RICH_ENV, "").strip().lower()
    if value in ("0", "false", "no"):
        return False
    if value in ("1", "true", "yes"):
        return True
    return None


def should_use_rich(*, json_output: bool = False) -> bool:
    """Whether a learn run should draw the rich live display.

    Args:
        json_output: The run prints its summary as JSON on stdout
    """
    if json_output:
        return False

    override = _env_override()
    if override is not None:
        return override

    if os.environ.get("NO_COLOR") is not None or os.environ.get("CI"):
        return False

    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False
