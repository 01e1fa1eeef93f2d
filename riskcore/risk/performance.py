"""Trader performance against market benchmarks"""

from dataclasses import asdict, dataclass
from typing import Dict

import numpy as np
import pandas as pd

from riskcore.core.exceptions import InvalidInputError

BENCHMARK_COLUMNS = ("trader", "sp500", "nasdaq", "dow")


@dataclass
class PerformanceMetrics:
    """Returns and drawdown in percent, Sharpe on per-period returns"""
    trader_return: float = 0.0
    sp500_return: float = 0.0
    nasdaq_return: float = 0.0
    dow_return: float = 0.0
    outperformance: float = 0.0
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def _total_return_pct(values: pd.Series) -> float:
    start = values.iloc[0]
    if start == 0:
        return 0.0
    return float((values.iloc[-1] - start) / start * 100)


def _max_drawdown_pct(values: pd.Series) -> float:
    running_max = values.cummax()
    dd = (running_max - values) / running_max.where(running_max > 0)
    return float(dd.fillna(0.0).max() * 100)


def calculate_benchmark_metrics(frame: pd.DataFrame) -> PerformanceMetrics:
    """
    Compare the trader's performance curve with index curves.

    Args:
        frame: Chronological rows with trader, sp500, nasdaq and dow
            performance values

    Returns:
        PerformanceMetrics (all zero for an empty frame)

    Raises:
        InvalidInputError: If a benchmark column is missing
    """
    missing = [c for c in BENCHMARK_COLUMNS if c not in frame.columns]
    if missing:
        raise InvalidInputError(f"Missing performance columns: {missing}")

    if frame.empty:
        return PerformanceMetrics()

    trader = frame["trader"].astype(float)
    trader_return = _total_return_pct(trader)
    sp500_return = _total_return_pct(frame["sp500"].astype(float))

    # First period has no prior value and counts as a zero return
    period_returns = trader.pct_change().fillna(0.0).replace([np.inf, -np.inf], 0.0)
    std = float(period_returns.std(ddof=0))
    sharpe = float(period_returns.mean() / std) if std > 0 else 0.0

    return PerformanceMetrics(
        trader_return=trader_return,
        sp500_return=sp500_return,
        nasdaq_return=_total_return_pct(frame["nasdaq"].astype(float)),
        dow_return=_total_return_pct(frame["dow"].astype(float)),
        outperformance=trader_return - sp500_return,
        sharpe_ratio=sharpe,
        max_drawdown=_max_drawdown_pct(trader),
    )
