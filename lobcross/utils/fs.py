"""Directory and atomic-write helpers.

Environment knobs:
- LOBCROSS_AUTO_CREATE_DIRS (default: true)

Log format for first-time creation:
  created dir path=/abs/path created=true
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import IO, Any, Callable, Dict

_LOGGER = logging.getLogger(__name__)

_TRUE_LITERALS = {"1", "true", "t", "yes", "y", "on"}
_FALSE_LITERALS = {"0", "false", "f", "no", "n", "off"}


class DirectoryCreationError(RuntimeError):
    """Raised when a directory cannot be created."""


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_LITERALS:
        return True
    if lowered in _FALSE_LITERALS:
        return False
    return default


def ensure_dir(
    path: Path | str,
    create: bool | None = None,
    *,
    logger: logging.Logger | None = None,
) -> Path:
    """Ensure that *path* exists as a directory and return it resolved."""

    logger = logger or _LOGGER
    resolved = Path(path).expanduser().resolve()

    exists = resolved.exists()
    if exists and not resolved.is_dir():
        raise DirectoryCreationError(
            f"expected directory path={resolved} but found file"
        )
    if exists:
        return resolved

    allow_create = _env_flag("LOBCROSS_AUTO_CREATE_DIRS", True) if create is None else bool(create)
    if not allow_create:
        raise DirectoryCreationError(
            f"auto-create disabled path={resolved} hint='set LOBCROSS_AUTO_CREATE_DIRS=true or create manually'"
        )

    try:
        resolved.mkdir(parents=True, exist_ok=True)
    except OSError as exc:  # pragma: no cover - system-dependent
        raise DirectoryCreationError(
            f"failed to create directory path={resolved} errno={exc.errno} reason={exc.strerror}"
        ) from exc
    logger.info("created dir path=%s created=true", resolved)
    return resolved


def atomic_write(
    path: Path,
    write: Callable[[IO[Any]], None],
    *,
    mode: str = "w",
    encoding: str = "utf-8",
    newline: str | None = None,
) -> None:
    """Atomically write to *path* using *write* to populate a temporary file."""

    parent = path.parent
    ensure_dir(parent)

    options: Dict[str, Any] = {"mode": mode, "dir": parent, "delete": False}
    if "b" not in mode:
        options["encoding"] = encoding
        if newline is not None:
            options["newline"] = newline

    tmp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(**options) as tmp:
            tmp_path = Path(tmp.name)
            write(tmp)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_path, path)
    except Exception:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)
        raise


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Atomically write text *content* to *path*."""

    def _writer(fh: IO[str]) -> None:
        fh.write(content)

    atomic_write(path, _writer, mode="w", encoding=encoding)


__all__ = [
    "DirectoryCreationError",
    "atomic_write",
    "atomic_write_text",
    "ensure_dir",
]
