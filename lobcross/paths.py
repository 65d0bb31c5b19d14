from __future__ import annotations

from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]

RUNS_DIR = PROJECT_ROOT / "runs"

APP_LOGS_DIR = PROJECT_ROOT / "logs"
APP_LOG_FILE = APP_LOGS_DIR / "app.log"


def safe_slug(value: str) -> str:
    return value.replace("/", "-").replace("=", "-").replace(" ", "-")
