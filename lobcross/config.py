# lobcross/config.py
# =============================================================================
# Purpose:
#   Centralize runtime configuration for the backtester. Values come from the
#   command line, the environment (.env supported), an optional YAML parameter
#   file, or the built-in defaults, in that order of precedence.
#
# Summary:
#   - Settings: every knob the CLI understands, resolved with provenance
#   - BacktestConfig: frozen, validated parameters handed to the signal
#     generator and the execution simulator
#   - load_settings(): deterministic resolution with one log line per key
# =============================================================================
from __future__ import annotations

import logging
import math
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Literal, Mapping, Tuple, Union, overload

import pandas as pd
from dotenv import load_dotenv

from .utils.yaml_safe import load_mapping

_LOGGER = logging.getLogger("lobcross.config")

AUTO = "auto"

DEFAULT_SHORT_WINDOW = 15_000
DEFAULT_LONG_WINDOW = 60_000
DEFAULT_LATENCY_OFFSET = 35
DEFAULT_LATENCY_MS = 100.0
DEFAULT_FEE_RATE = 0.0001  # 1 bp of traded notional
DEFAULT_INITIAL_TOTAL = 100.0
DEFAULT_BASE = 100.0


class ConfigError(ValueError):
    """Raised when backtest parameters are out of range or inconsistent."""


LatencySetting = Union[int, str]


@dataclass(frozen=True)
class BacktestConfig:
    """Parameters shared by the signal generator and the execution simulator."""

    short_window: int = DEFAULT_SHORT_WINDOW
    long_window: int = DEFAULT_LONG_WINDOW
    latency_offset: int = DEFAULT_LATENCY_OFFSET
    fee_rate: float = DEFAULT_FEE_RATE
    initial_total: float = DEFAULT_INITIAL_TOTAL
    base: float = DEFAULT_BASE

    def __post_init__(self) -> None:
        validate_windows(self.short_window, self.long_window, self.latency_offset)
        if not math.isfinite(self.fee_rate) or not 0.0 <= self.fee_rate < 1.0:
            raise ConfigError(f"fee_rate must be in [0, 1); got {self.fee_rate}")
        if not math.isfinite(self.initial_total) or self.initial_total <= 0:
            raise ConfigError(
                f"initial_total must be positive and finite; got {self.initial_total}"
            )
        if not math.isfinite(self.base) or self.base <= 0:
            raise ConfigError(f"base must be positive and finite; got {self.base}")

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def validate_windows(short_window: int, long_window: int, latency_offset: int) -> None:
    if int(short_window) < 1 or int(long_window) < 1:
        raise ConfigError("moving-average windows must be >= 1")
    if int(short_window) > int(long_window):
        raise ConfigError(
            f"short_window ({short_window}) must not exceed long_window ({long_window})"
        )
    if int(latency_offset) < 0:
        raise ConfigError(f"latency_offset must be >= 0; got {latency_offset}")


@dataclass
class Settings:
    """Strongly-typed container for config values."""

    log_level: str = "INFO"
    symbol: str | None = None
    short_window: int = DEFAULT_SHORT_WINDOW
    long_window: int = DEFAULT_LONG_WINDOW
    latency_offset: LatencySetting = DEFAULT_LATENCY_OFFSET
    latency_ms: float = DEFAULT_LATENCY_MS
    fee_rate: float = DEFAULT_FEE_RATE
    initial_total: float = DEFAULT_INITIAL_TOTAL
    base: float = DEFAULT_BASE

    def backtest_config(self, frame: pd.DataFrame | None = None) -> BacktestConfig:
        """Freeze the backtest parameters, deriving ``latency_offset`` if set to auto."""

        offset = self.latency_offset
        if offset == AUTO:
            if frame is None:
                raise ConfigError("latency_offset=auto requires snapshot data")
            if self.latency_ms < 0:
                raise ConfigError(f"latency_ms must be >= 0; got {self.latency_ms}")
            from .data.snapshots import estimate_latency_offset

            offset = estimate_latency_offset(
                frame["receiving_time"], latency_ms=self.latency_ms
            )
            _LOGGER.info(
                "latency_offset_derived value=%s latency_ms=%s", offset, self.latency_ms
            )
        return BacktestConfig(
            short_window=int(self.short_window),
            long_window=int(self.long_window),
            latency_offset=int(offset),
            fee_rate=float(self.fee_rate),
            initial_total=float(self.initial_total),
            base=float(self.base),
        )


@dataclass(frozen=True)
class _FieldSpec:
    env: str
    default: Any
    coerce: Callable[[Any, Any], Tuple[Any, bool]]


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    return False


def _pick_precedence(
    cli_value: Any, env_value: Any, file_value: Any, default_value: Any
) -> Tuple[Any, str]:
    if not _is_missing(cli_value):
        return cli_value, "cli"
    if not _is_missing(env_value):
        return env_value, "env"
    if not _is_missing(file_value):
        return file_value, "file"
    return default_value, "default"


def _str_coercer(
    *, upper: bool = False, optional: bool = False
) -> Callable[[Any, Any], Tuple[str | None, bool]]:
    def _inner(value: Any, default: Any) -> Tuple[str | None, bool]:
        if value is None:
            return default, optional
        text = str(value).strip()
        if text == "":
            return default, optional
        if upper:
            text = text.upper()
        return text, True

    return _inner


def _float_coercer(value: Any, default: Any) -> Tuple[float, bool]:
    if value is None:
        return float(default), False
    token = value
    if isinstance(token, str):
        token = token.strip()
        if token == "":
            return float(default), False
    try:
        numeric = float(token)
    except (TypeError, ValueError):
        return float(default), False
    if not math.isfinite(numeric):
        return float(default), False
    return numeric, True


def _int_coercer(value: Any, default: Any) -> Tuple[int, bool]:
    if value is None:
        return int(default), False
    token = value
    if isinstance(token, bool):
        return int(default), False
    if isinstance(token, float) and not token.is_integer():
        return int(default), False
    if isinstance(token, str):
        token = token.strip().replace("_", "")
        if token == "":
            return int(default), False
    try:
        return int(token), True
    except (TypeError, ValueError):
        return int(default), False


def _latency_coercer(value: Any, default: Any) -> Tuple[LatencySetting, bool]:
    if isinstance(value, str) and value.strip().lower() == AUTO:
        return AUTO, True
    return _int_coercer(value, default)


_FIELD_SPECS: Dict[str, _FieldSpec] = {
    "log_level": _FieldSpec("LOG_LEVEL", "INFO", _str_coercer(upper=True)),
    "symbol": _FieldSpec("LOBCROSS_SYMBOL", None, _str_coercer(optional=True)),
    "short_window": _FieldSpec(
        "LOBCROSS_SHORT_WINDOW", DEFAULT_SHORT_WINDOW, _int_coercer
    ),
    "long_window": _FieldSpec("LOBCROSS_LONG_WINDOW", DEFAULT_LONG_WINDOW, _int_coercer),
    "latency_offset": _FieldSpec(
        "LOBCROSS_LATENCY_OFFSET", DEFAULT_LATENCY_OFFSET, _latency_coercer
    ),
    "latency_ms": _FieldSpec("LOBCROSS_LATENCY_MS", DEFAULT_LATENCY_MS, _float_coercer),
    "fee_rate": _FieldSpec("LOBCROSS_FEE_RATE", DEFAULT_FEE_RATE, _float_coercer),
    "initial_total": _FieldSpec(
        "LOBCROSS_INITIAL_TOTAL", DEFAULT_INITIAL_TOTAL, _float_coercer
    ),
    "base": _FieldSpec("LOBCROSS_BASE", DEFAULT_BASE, _float_coercer),
}


def _read_config_file(path: Path | str | None, log: logging.Logger) -> Dict[str, Any]:
    if path is None:
        return {}
    payload = load_mapping(Path(path))
    unknown = sorted(key for key in payload if key not in _FIELD_SPECS)
    for key in unknown:
        log.warning("config_unknown_key key=%s file=%s", key, path)
    return {key: value for key, value in payload.items() if key in _FIELD_SPECS}


@overload
def load_settings(
    *,
    cli_overrides: Mapping[str, Any] | None = None,
    config_file: Path | str | None = None,
    env_policy: Mapping[str, bool] | None = None,
    include_sources: Literal[True],
    logger: logging.Logger | None = None,
) -> Tuple[Settings, Dict[str, str]]: ...


@overload
def load_settings(
    *,
    cli_overrides: Mapping[str, Any] | None = None,
    config_file: Path | str | None = None,
    env_policy: Mapping[str, bool] | None = None,
    include_sources: Literal[False] = False,
    logger: logging.Logger | None = None,
) -> Settings: ...


def load_settings(
    *,
    cli_overrides: Mapping[str, Any] | None = None,
    config_file: Path | str | None = None,
    env_policy: Mapping[str, bool] | None = None,
    include_sources: bool = False,
    logger: logging.Logger | None = None,
) -> Settings | Tuple[Settings, Dict[str, str]]:
    """Resolve settings with deterministic precedence and logging.

    The precedence order is CLI overrides > environment (when permitted) >
    YAML parameter file > defaults. When ``include_sources`` is true, the
    function returns a tuple of ``(Settings, sources)`` where *sources* maps
    field names to ``{"cli" | "env" | "file" | "default"}``.
    """

    load_dotenv()

    log = logger or _LOGGER
    overrides = {
        key: value for key, value in (cli_overrides or {}).items() if value is not None
    }
    env_policy_map = {key: bool(value) for key, value in (env_policy or {}).items()}
    file_values = _read_config_file(config_file, log)

    resolved: Dict[str, Any] = {}
    sources: Dict[str, str] = {}

    for field_name, spec in _FIELD_SPECS.items():
        default_value = spec.default
        allow_env = env_policy_map.get(field_name, True)
        env_value = os.getenv(spec.env) if allow_env else None

        raw_value, source = _pick_precedence(
            overrides.get(field_name),
            env_value,
            file_values.get(field_name),
            default_value,
        )
        coerced, ok = spec.coerce(raw_value, default_value)
        if not ok:
            if source != "default":
                log.warning(
                    "config_invalid_value key=%s source=%s fallback=%s",
                    field_name,
                    source,
                    default_value,
                )
            coerced = default_value
            source = "default"

        log.info(
            "config_resolved key=%s value=%s source=%s", field_name, coerced, source
        )
        resolved[field_name] = coerced
        sources[field_name] = source

    settings = Settings(**resolved)
    if include_sources:
        return settings, sources
    return settings
