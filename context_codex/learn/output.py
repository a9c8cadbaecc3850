"""Write the combined context document to disk."""

from __future__ import annotations

import logging
from pathlib import Path

from context_codex.learn.reporter import OutputInfo

logger = logging.getLogger(__name__)


def write_context_document(document: str, path: str | Path) -> OutputInfo:
    """Write ``document`` to ``path``, creating parent directories.

    Returns:
        OutputInfo with the absolute path and size in bytes
    """
    path = Path(path).resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = document.encode("utf-8")
    path.write_bytes(data)
    logger.info("Wrote context document to %s (%d bytes)", path, len(data))
    return OutputInfo(path=str(path), size_bytes=len(data))
