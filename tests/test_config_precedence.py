from __future__ import annotations

import logging

import pytest

from lobcross.config import (
    AUTO,
    BacktestConfig,
    ConfigError,
    Settings,
    load_settings,
)


def _write_yaml(tmp_path, text: str):
    path = tmp_path / "params.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_when_nothing_set(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="lobcross.config")

    settings, sources = load_settings(include_sources=True)

    assert settings.short_window == 15_000
    assert settings.long_window == 60_000
    assert settings.latency_offset == 35
    assert settings.fee_rate == pytest.approx(0.0001)
    assert settings.initial_total == 100.0
    assert settings.base == 100.0
    assert set(sources.values()) == {"default"}
    assert any(
        "config_resolved key=short_window" in record.message
        and "source=default" in record.message
        for record in caplog.records
    )


def test_precedence_cli_over_env_over_file(
    tmp_path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.INFO, logger="lobcross.config")
    cfg = _write_yaml(tmp_path, "short_window: 10\nlong_window: 50\nfee_rate: 0.0005\n")
    monkeypatch.setenv("LOBCROSS_SHORT_WINDOW", "20")
    monkeypatch.setenv("LOBCROSS_LONG_WINDOW", "80")

    settings, sources = load_settings(
        cli_overrides={"short_window": 5, "long_window": None},
        config_file=cfg,
        include_sources=True,
    )

    assert (settings.short_window, sources["short_window"]) == (5, "cli")
    assert (settings.long_window, sources["long_window"]) == (80, "env")
    assert (settings.fee_rate, sources["fee_rate"]) == (pytest.approx(0.0005), "file")
    assert sources["base"] == "default"
    assert any(
        "config_resolved key=long_window" in record.message and "source=env" in record.message
        for record in caplog.records
    )


def test_env_blocked_by_policy(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOBCROSS_BASE", "250")

    settings, sources = load_settings(env_policy={"base": False}, include_sources=True)

    assert settings.base == 100.0
    assert sources["base"] == "default"


def test_invalid_value_falls_back_to_default(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.WARNING, logger="lobcross.config")
    monkeypatch.setenv("LOBCROSS_FEE_RATE", "one-bp")

    settings, sources = load_settings(include_sources=True)

    assert settings.fee_rate == pytest.approx(0.0001)
    assert sources["fee_rate"] == "default"
    assert any(
        "config_invalid_value key=fee_rate" in record.message and "source=env" in record.message
        for record in caplog.records
    )


def test_unknown_file_key_is_ignored_with_warning(
    tmp_path, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.WARNING, logger="lobcross.config")
    cfg = _write_yaml(tmp_path, "short_window: 3\nslippage_bps: 2\n")

    settings = load_settings(config_file=cfg)

    assert settings.short_window == 3
    assert any("config_unknown_key key=slippage_bps" in r.message for r in caplog.records)


def test_latency_offset_accepts_auto(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOBCROSS_LATENCY_OFFSET", "Auto")
    settings = load_settings()
    assert settings.latency_offset == AUTO


def test_auto_latency_derived_from_frame(book_frame) -> None:
    # 30 ms spacing -> ~33.3 snapshots/s; 1000 ms budget -> 33.
    frame = book_frame([100.0] * 301)
    settings = Settings(short_window=2, long_window=4, latency_offset=AUTO, latency_ms=1_000.0)

    cfg = settings.backtest_config(frame)

    assert cfg.latency_offset == 33


def test_auto_latency_without_data_is_an_error() -> None:
    with pytest.raises(ConfigError):
        Settings(latency_offset=AUTO).backtest_config()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"short_window": 0},
        {"short_window": 10, "long_window": 5},
        {"latency_offset": -1},
        {"fee_rate": 1.0},
        {"fee_rate": -0.1},
        {"initial_total": 0.0},
        {"base": -5.0},
    ],
)
def test_backtest_config_rejects_out_of_range(kwargs) -> None:
    with pytest.raises(ConfigError):
        BacktestConfig(**kwargs)


def test_backtest_config_round_trips_to_dict() -> None:
    cfg = BacktestConfig(short_window=3, long_window=9, latency_offset=2)
    assert cfg.as_dict() == {
        "short_window": 3,
        "long_window": 9,
        "latency_offset": 2,
        "fee_rate": 0.0001,
        "initial_total": 100.0,
        "base": 100.0,
    }


def test_non_integral_float_from_file_falls_back(
    tmp_path, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.WARNING, logger="lobcross.config")
    cfg = _write_yaml(tmp_path, "latency_offset: 3.7\nlong_window: 60000.9\nshort_window: 12.0\n")

    settings, sources = load_settings(config_file=cfg, include_sources=True)

    assert (settings.latency_offset, sources["latency_offset"]) == (35, "default")
    assert (settings.long_window, sources["long_window"]) == (60_000, "default")
    assert (settings.short_window, sources["short_window"]) == (12, "file")
    assert any(
        "config_invalid_value key=latency_offset" in r.message and "source=file" in r.message
        for r in caplog.records
    )
    assert any("config_invalid_value key=long_window" in r.message for r in caplog.records)
