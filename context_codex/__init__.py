"""Context Codex - parallel project analysis for AI agents."""

__version__ = "0.1.0"
