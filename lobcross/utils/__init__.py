"""Shared helpers for filesystem access, YAML loading and frame hygiene."""

from __future__ import annotations

from .fs import DirectoryCreationError, atomic_write, atomic_write_text, ensure_dir

__all__ = [
    "DirectoryCreationError",
    "atomic_write",
    "atomic_write_text",
    "ensure_dir",
]
