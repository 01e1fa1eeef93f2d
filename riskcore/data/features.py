"""Pure technical indicator calculation functions (no I/O)

Every function is deterministic and never raises on empty or undersized
input: the documented sentinel for "not enough data" is NaN, which callers
check with ``is_defined`` before using a value.
"""

from dataclasses import astuple, dataclass
from typing import NamedTuple, Sequence, Union

import numpy as np
import pandas as pd

ArrayLike = Union[Sequence[float], np.ndarray, pd.Series]

NAN = float("nan")


class MacdResult(NamedTuple):
    """Last MACD line, signal line and histogram values"""
    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Fixed-order feature vector for one trailing window"""
    volatility: float
    momentum: float
    volume_trend: float
    rsi: float
    macd: float
    bollinger: float
    trend_strength: float
    last_return: float

    def as_vector(self) -> np.ndarray:
        return np.array(astuple(self), dtype=float)


FEATURE_NAMES = (
    "volatility",
    "momentum",
    "volume_trend",
    "rsi",
    "macd",
    "bollinger",
    "trend_strength",
    "last_return",
)


def _as_array(values: ArrayLike) -> np.ndarray:
    return np.asarray(values, dtype=float)


def is_defined(value) -> bool:
    """True when value is a finite number (not the NaN sentinel)"""
    return value is not None and bool(np.isfinite(value))


def returns(prices: ArrayLike) -> np.ndarray:
    """
    Simple returns between consecutive prices.

    Args:
        prices: Price series

    Returns:
        Array of length len(prices) - 1 (empty for fewer than 2 prices)
    """
    values = _as_array(prices)
    if len(values) < 2:
        return np.array([], dtype=float)

    with np.errstate(divide="ignore", invalid="ignore"):
        return np.diff(values) / values[:-1]


def _rsi_from_averages(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        # Flat window has no direction; only gains means maximum strength
        return 50.0 if avg_gain == 0 else 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def rsi(prices: ArrayLike, period: int = 14) -> float:
    """
    Calculate Wilder's Relative Strength Index of the last bar.

    Seeds the averages with the simple mean of the first ``period``
    changes and applies Wilder smoothing afterwards.

    Args:
        prices: Price series
        period: RSI period

    Returns:
        RSI (0-100) or NaN if len(prices) <= period
    """
    values = _as_array(prices)
    if len(values) <= period:
        return NAN

    delta = np.diff(values)
    gains = np.clip(delta, 0.0, None)
    losses = np.clip(-delta, 0.0, None)

    avg_gain = float(gains[:period].mean())
    avg_loss = float(losses[:period].mean())
    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    return _rsi_from_averages(avg_gain, avg_loss)


def simple_rsi(prices: ArrayLike) -> float:
    """RSI over a whole window using simple (unsmoothed) average gain/loss"""
    values = _as_array(prices)
    if len(values) < 2:
        return NAN

    delta = np.diff(values)
    avg_gain = float(np.clip(delta, 0.0, None).mean())
    avg_loss = float(np.clip(-delta, 0.0, None).mean())
    return _rsi_from_averages(avg_gain, avg_loss)


def macd(
    prices: ArrayLike,
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> MacdResult:
    """
    Calculate MACD from exponential moving averages.

    Args:
        prices: Price series
        fast: Fast EMA period
        slow: Slow EMA period
        signal: Signal EMA period

    Returns:
        MacdResult of the last bar; all NaN if len(prices) < slow + signal
    """
    values = _as_array(prices)
    if len(values) < slow + signal:
        return MacdResult(NAN, NAN, NAN)

    series = pd.Series(values)
    fast_ema = series.ewm(span=fast, adjust=False).mean()
    slow_ema = series.ewm(span=slow, adjust=False).mean()
    macd_values = fast_ema - slow_ema
    signal_values = macd_values.ewm(span=signal, adjust=False).mean()

    line = float(macd_values.iloc[-1])
    signal_line = float(signal_values.iloc[-1])
    return MacdResult(line, signal_line, line - signal_line)


def macd_line(prices: ArrayLike, fast: int = 12, slow: int = 26) -> float:
    """
    EMA(fast) - EMA(slow) of the last bar, both seeded on the first price.

    Unlike ``macd`` this is defined for any non-empty window, which is what
    the short fixed-length sequence features need.
    """
    values = _as_array(prices)
    if len(values) == 0:
        return NAN

    series = pd.Series(values)
    fast_ema = series.ewm(span=fast, adjust=False).mean().iloc[-1]
    slow_ema = series.ewm(span=slow, adjust=False).mean().iloc[-1]
    return float(fast_ema - slow_ema)


def bollinger_position(
    prices: ArrayLike,
    period: int = 20,
    std_multiplier: float = 2.0,
) -> float:
    """
    Position of the last price relative to the Bollinger band.

    Returns (last - SMA) / (std_multiplier * sigma) over the trailing
    ``period`` prices, with population sigma: 0 is the middle band, +1 the
    upper band, -1 the lower band. Callers consume this position, not the
    raw band values.

    Args:
        prices: Price series
        period: Moving average period
        std_multiplier: Band width in standard deviations

    Returns:
        Band position, 0.0 for a flat window, NaN if len(prices) < period
    """
    values = _as_array(prices)
    if len(values) < period or period < 1:
        return NAN

    window = values[-period:]
    sma = window.mean()
    sigma = window.std(ddof=0)
    if sigma == 0:
        return 0.0
    return float((window[-1] - sma) / (std_multiplier * sigma))


def volatility(
    prices: ArrayLike,
    annualize: bool = True,
    periods_per_year: int = 252,
    ddof: int = 1,
) -> float:
    """
    Standard deviation of simple returns.

    Args:
        prices: Price series
        annualize: Scale by sqrt(periods_per_year)
        periods_per_year: Annualization factor
        ddof: Delta degrees of freedom (1 = sample std)

    Returns:
        Volatility or NaN if fewer than 3 prices
    """
    rets = returns(prices)
    if len(rets) < 2:
        return NAN

    vol = float(np.std(rets, ddof=ddof))
    if annualize:
        vol *= np.sqrt(periods_per_year)
    return float(vol)


def momentum(prices: ArrayLike, lookback: int = 20) -> float:
    """
    Total percentage return over the trailing lookback window.

    Returns:
        Fractional return (0.05 = +5%) or NaN if fewer than 2 prices
    """
    values = _as_array(prices)[-lookback:]
    if len(values) < 2 or values[0] == 0:
        return NAN
    return float((values[-1] - values[0]) / values[0])


def volume_trend(volumes: ArrayLike, lookback: int = 20) -> float:
    """
    Last volume relative to the mean of the trailing lookback window.

    Returns:
        Ratio (1.0 = average volume) or NaN on empty input / zero mean
    """
    values = _as_array(volumes)[-lookback:]
    if len(values) == 0:
        return NAN

    avg = values.mean()
    if avg == 0:
        return NAN
    return float(values[-1] / avg)


def trend_strength(prices: ArrayLike, ddof: int = 1) -> float:
    """
    Mean return divided by the standard deviation of returns.

    A Sharpe-like ratio on raw price returns (no risk-free rate).

    Returns:
        Ratio, 0.0 when returns do not vary, NaN if fewer than 3 prices
    """
    rets = returns(prices)
    if len(rets) < 2:
        return NAN

    std = float(np.std(rets, ddof=ddof))
    if std == 0:
        return 0.0
    return float(np.mean(rets) / std)


def snapshot(prices: ArrayLike, volumes: ArrayLike, window: int = 20) -> IndicatorSnapshot:
    """
    Build the 8-feature snapshot of the trailing window.

    Window statistics use population moments and non-annualized
    volatility; RSI uses simple averages and MACD is seeded on the
    window's first price, so every feature is defined for any window of
    three or more bars with non-zero prices.

    Args:
        prices: Price series
        volumes: Volume series aligned with prices
        window: Number of trailing bars

    Returns:
        IndicatorSnapshot (fields may be NaN for undersized windows)
    """
    price_window = _as_array(prices)[-window:]
    volume_window = _as_array(volumes)[-window:]
    rets = returns(price_window)

    return IndicatorSnapshot(
        volatility=volatility(price_window, annualize=False, ddof=0),
        momentum=momentum(price_window, lookback=window),
        volume_trend=volume_trend(volume_window, lookback=window),
        rsi=simple_rsi(price_window),
        macd=macd_line(price_window),
        bollinger=bollinger_position(price_window, period=len(price_window)),
        trend_strength=trend_strength(price_window, ddof=0),
        last_return=float(rets[-1]) if len(rets) else NAN,
    )
