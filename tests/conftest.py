"""Shared fixtures for learn tests."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from context_codex.learn.models import FolderAnalysis


def make_tree(root: Path, files: dict[str, str]) -> Path:
    """Create files (relative path → content) under root."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


class ScriptedAnalyzer:
    """Analyzer whose behaviour per folder is scripted by the test.

    ``failures`` maps a folder name to the number of attempts that raise
    before the folder succeeds. ``delays`` maps a folder name to seconds
    slept on every attempt.
    """

    def __init__(
        self,
        failures: dict[str, int] | None = None,
        delays: dict[str, float] | None = None,
        default_delay: float = 0.0,
    ) -> None:
        self.failures = dict(failures or {})
        self.delays = dict(delays or {})
        self.default_delay = default_delay
        self.calls: dict[str, int] = {}
        self._lock = threading.Lock()

    def analyze(self, folder_path: Path) -> FolderAnalysis:
        name = folder_path.name
        with self._lock:
            self.calls[name] = self.calls.get(name, 0) + 1
            call = self.calls[name]
        time.sleep(self.delays.get(name, self.default_delay))
        if call <= self.failures.get(name, 0):
            raise RuntimeError(f"analysis of {name} failed (call {call})")
        file_count = sum(1 for p in folder_path.iterdir() if p.is_file())
        return FolderAnalysis(
            document_fragment=f"Analysis of {name}",
            file_count=file_count,
        )


@pytest.fixture
def three_folder_project(tmp_path):
    """Root with three source folders holding ten files in total."""
    return make_tree(
        tmp_path / "project",
        {
            "alpha/a1.py": "x = 1\n",
            "alpha/a2.py": "x = 2\n",
            "alpha/a3.py": "x = 3\n",
            "beta/b1.ts": "export {}\n",
            "beta/b2.ts": "export {}\n",
            "beta/b3.ts": "export {}\n",
            "gamma/g1.md": "# g1\n",
            "gamma/g2.md": "# g2\n",
            "gamma/g3.md": "# g3\n",
            "gamma/g4.md": "# g4\n",
        },
    )


@pytest.fixture
def tree():
    """Factory fixture: ``tree(root, {relative: content})``."""
    return make_tree


@pytest.fixture
def scripted_analyzer():
    """Factory fixture for ScriptedAnalyzer."""
    return ScriptedAnalyzer
