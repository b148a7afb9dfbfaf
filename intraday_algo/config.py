from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from datetime import time
from typing import Any, Mapping


class ConfigError(ValueError):
    """Missing, unknown or out-of-range configuration value. The strategy cannot run."""


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return default if value is None or value == "" else value


def _get_env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return _parse_int(name, value)


def _get_env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return _parse_float(name, value)


def _get_env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return _parse_bool(name, value)


def _get_env_time(name: str, default: time) -> time:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return _parse_time(name, value)


def _get_env_time_opt(name: str) -> time | None:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return _parse_time(name, value)


def _parse_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ConfigError(f"{name}: expected an integer, got {value!r}") from exc


def _parse_float(name: str, value: Any) -> float:
    try:
        return float(str(value).strip())
    except ValueError as exc:
        raise ConfigError(f"{name}: expected a decimal number, got {value!r}") from exc


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        # the platform's day flags are 0/1 integers
        return value != 0
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise ConfigError(f"{name}: expected a boolean, got {value!r}")


def _parse_time(name: str, value: Any) -> time:
    if isinstance(value, time):
        return value
    text = str(value).strip()
    try:
        return time.fromisoformat(text)
    except ValueError as exc:
        raise ConfigError(f"{name}: expected a time of day HH:MM[:SS], got {value!r}") from exc


@dataclass(frozen=True)
class StrategyParams:
    """
    Input parameters of one strategy run. Loaded once before the first bar,
    validated on construction, never mutated afterwards.
    """

    # Day-of-week trading flags (Saturday/Sunday have none and always pass)
    monday_enabled: bool = True
    tuesday_enabled: bool = True
    wednesday_enabled: bool = False
    thursday_enabled: bool = False
    friday_enabled: bool = True

    # Entries are only placed inside this session; start > end wraps midnight
    trading_time_start: time = time(18, 0)
    trading_time_end: time = time(6, 0)

    # Volatility filter: max(High) - min(Low) over the last range_period bars
    range_period: int = 10
    min_range: float = 0.002

    adx_period: int = 14
    sma_period: int = 78
    min_adx_long: float = 12.0
    min_adx_short: float = 12.0

    trailing_stop_ticks: int = 24
    trailing_acceleration: float = 0.2
    profit_target_ticks: int = 77

    stochastic_period: int = 68
    buy_signal: float = 51.0
    sell_signal: float = 49.0

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        for name in ("range_period", "adx_period", "sma_period", "stochastic_period"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        if self.sma_period < 2:
            raise ConfigError("sma_period must be at least 2 (the trend filter reads its slope)")
        for name in ("trailing_stop_ticks", "profit_target_ticks"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        if self.trailing_acceleration <= 0:
            raise ConfigError("trailing_acceleration must be positive")
        if self.min_range < 0:
            raise ConfigError("min_range must not be negative")
        for name in ("min_adx_long", "min_adx_short", "buy_signal", "sell_signal"):
            value = getattr(self, name)
            if not 0.0 <= value <= 100.0:
                raise ConfigError(f"{name} must be within [0, 100], got {value}")

    def day_flags(self) -> dict[int, bool]:
        """Weekday number (Monday=0) -> enabled."""
        return {
            0: self.monday_enabled,
            1: self.tuesday_enabled,
            2: self.wednesday_enabled,
            3: self.thursday_enabled,
            4: self.friday_enabled,
        }

    @staticmethod
    def from_env() -> "StrategyParams":
        defaults = {f.name: f.default for f in fields(StrategyParams)}
        return StrategyParams(
            monday_enabled=_get_env_bool("STRAT_MONDAY_ENABLED", defaults["monday_enabled"]),
            tuesday_enabled=_get_env_bool("STRAT_TUESDAY_ENABLED", defaults["tuesday_enabled"]),
            wednesday_enabled=_get_env_bool("STRAT_WEDNESDAY_ENABLED", defaults["wednesday_enabled"]),
            thursday_enabled=_get_env_bool("STRAT_THURSDAY_ENABLED", defaults["thursday_enabled"]),
            friday_enabled=_get_env_bool("STRAT_FRIDAY_ENABLED", defaults["friday_enabled"]),
            trading_time_start=_get_env_time("STRAT_TRADING_TIME_START", defaults["trading_time_start"]),
            trading_time_end=_get_env_time("STRAT_TRADING_TIME_END", defaults["trading_time_end"]),
            range_period=_get_env_int("STRAT_RANGE_PERIOD", defaults["range_period"]),
            min_range=_get_env_float("STRAT_MIN_RANGE", defaults["min_range"]),
            adx_period=_get_env_int("STRAT_ADX_PERIOD", defaults["adx_period"]),
            sma_period=_get_env_int("STRAT_SMA_PERIOD", defaults["sma_period"]),
            min_adx_long=_get_env_float("STRAT_MIN_ADX_LONG", defaults["min_adx_long"]),
            min_adx_short=_get_env_float("STRAT_MIN_ADX_SHORT", defaults["min_adx_short"]),
            trailing_stop_ticks=_get_env_int("STRAT_TRAILING_STOP_TICKS", defaults["trailing_stop_ticks"]),
            trailing_acceleration=_get_env_float("STRAT_TRAILING_ACCELERATION", defaults["trailing_acceleration"]),
            profit_target_ticks=_get_env_int("STRAT_PROFIT_TARGET_TICKS", defaults["profit_target_ticks"]),
            stochastic_period=_get_env_int("STRAT_STOCHASTIC_PERIOD", defaults["stochastic_period"]),
            buy_signal=_get_env_float("STRAT_BUY_SIGNAL", defaults["buy_signal"]),
            sell_signal=_get_env_float("STRAT_SELL_SIGNAL", defaults["sell_signal"]),
        )

    @staticmethod
    def from_mapping(values: Mapping[str, Any]) -> "StrategyParams":
        """
        Build from a key/value parameter set. Keys may be field names or the
        display names used by trading platforms ("Monday Trading Enabled",
        "Trailing Stop Loss ticks distance", ...). Unknown keys are rejected.
        """
        parsers = {
            bool: _parse_bool,
            int: _parse_int,
            float: _parse_float,
            time: _parse_time,
        }
        types = {f.name: type(f.default) for f in fields(StrategyParams)}
        kwargs: dict[str, Any] = {}
        for key, raw in values.items():
            name = PARAMETER_NAMES.get(key, key)
            if name not in types:
                raise ConfigError(f"Unknown strategy parameter: {key!r}")
            kwargs[name] = parsers[types[name]](key, raw)
        return StrategyParams(**kwargs)


PARAMETER_NAMES: dict[str, str] = {
    "Monday Trading Enabled": "monday_enabled",
    "Tuesday Trading Enabled": "tuesday_enabled",
    "Wednesday Trading Enabled": "wednesday_enabled",
    "Thursday Trading Enabled": "thursday_enabled",
    "Friday Trading Enabled": "friday_enabled",
    "Trading Time Start": "trading_time_start",
    "Trading Time End": "trading_time_end",
    "Range Calculation Period": "range_period",
    "Minimum Range Filter": "min_range",
    "ADX Period": "adx_period",
    "SMA Period": "sma_period",
    "Min ADX Long Entry": "min_adx_long",
    "Min ADX Short Entry": "min_adx_short",
    "Trailing Stop Loss ticks distance": "trailing_stop_ticks",
    "Trailing Stop acceleration": "trailing_acceleration",
    "Profit Target ticks distance": "profit_target_ticks",
    "Stochastic Period": "stochastic_period",
    "Trend-following buy signal": "buy_signal",
    "Trend-following sell signal": "sell_signal",
}


@dataclass(frozen=True)
class TradingConfig:
    broker: str = "sim"  # only the in-memory venue ships with this package
    dry_run: bool = False
    force_close_intraday: bool = True
    max_open_position: int = 1
    symbol: str = "EURUSD"
    instrument_kind: str = "FX"
    tick_size: float = 0.0001
    log_level: str = "INFO"
    log_file: str | None = None
    # Force-close time of day; defaults to the strategy session end
    session_close: time | None = None
    strategy: StrategyParams = field(default_factory=StrategyParams)

    def __post_init__(self) -> None:
        if self.broker != "sim":
            raise ConfigError(f"Unsupported broker: {self.broker!r} (expected 'sim')")
        if self.tick_size <= 0:
            raise ConfigError("tick_size must be positive")
        if self.max_open_position != 1:
            raise ConfigError("max_open_position is fixed at 1 contract")
        if not isinstance(logging.getLevelName(str(self.log_level).strip().upper()), int):
            raise ConfigError(f"Unknown log level: {self.log_level!r}")

    @property
    def session_close_time(self) -> time:
        return self.session_close if self.session_close is not None else self.strategy.trading_time_end

    @staticmethod
    def from_env() -> "TradingConfig":
        return TradingConfig(
            broker=_get_env("TRADING_BROKER", "sim"),
            dry_run=_get_env_bool("TRADING_DRY_RUN", False),
            force_close_intraday=_get_env_bool("TRADING_FORCE_CLOSE_INTRADAY", True),
            symbol=_get_env("TRADING_SYMBOL", "EURUSD"),
            instrument_kind=_get_env("TRADING_INSTRUMENT_KIND", "FX"),
            tick_size=_get_env_float("TRADING_TICK_SIZE", 0.0001),
            log_level=_get_env("TRADING_LOG_LEVEL", "INFO"),
            log_file=(_get_env("TRADING_LOG_FILE", "").strip() or None),
            session_close=_get_env_time_opt("TRADING_SESSION_CLOSE"),
            strategy=StrategyParams.from_env(),
        )
