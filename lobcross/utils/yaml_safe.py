from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml

__all__ = ["YAMLSafetyError", "safe_load_path", "load_mapping"]


class YAMLSafetyError(ValueError):
    """Raised when a YAML parameter file cannot be read or parsed safely."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


def safe_load_path(path: Path) -> Any:
    """Read and safely parse YAML from *path*."""

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise YAMLSafetyError(f"YAML file not found: {path}", path=path) from exc
    except OSError as exc:  # pragma: no cover - defensive
        raise YAMLSafetyError(f"Unable to read YAML file: {path}", path=path) from exc
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise YAMLSafetyError(
            f"Unsafe or invalid YAML payload in {path}: {exc}", path=path
        ) from exc


def load_mapping(path: Path) -> Dict[str, Any]:
    """Load a YAML file whose top level must be a mapping (empty file -> {})."""

    payload = safe_load_path(path)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise YAMLSafetyError(
            f"YAML parameter file must contain a mapping: {path}", path=path
        )
    return {str(key): value for key, value in payload.items()}
