"""Risk metric calculations over a trade history (pure functions)"""

import logging
import math
from typing import Sequence

import numpy as np

from riskcore.config.models import RiskConfig
from riskcore.core.types import TradeHistoryRecord
from riskcore.risk.models import RiskMetrics

logger = logging.getLogger("riskcore.risk.metrics")


def equity_curve(profit_loss: Sequence[float], starting_balance: float) -> np.ndarray:
    """Account equity before the first trade and after every trade"""
    pnl = np.asarray(profit_loss, dtype=float)
    return starting_balance + np.concatenate([[0.0], np.cumsum(pnl)])


def drawdowns(equity: np.ndarray) -> np.ndarray:
    """Fractional decline from the running peak at every point"""
    if len(equity) == 0:
        return np.array([], dtype=float)
    running_max = np.maximum.accumulate(equity)
    with np.errstate(divide="ignore", invalid="ignore"):
        dd = np.where(running_max > 0, (running_max - equity) / running_max, 0.0)
    # A wiped-out account cannot draw down more than 100%
    return np.clip(dd, 0.0, 1.0)


def max_drawdown(equity: np.ndarray) -> float:
    dd = drawdowns(equity)
    return float(dd.max()) if len(dd) else 0.0


def current_drawdown(equity: np.ndarray) -> float:
    dd = drawdowns(equity)
    return float(dd[-1]) if len(dd) else 0.0


def trade_returns(profit_loss: Sequence[float], starting_balance: float) -> np.ndarray:
    """Per-trade return relative to equity before the trade"""
    equity = equity_curve(profit_loss, starting_balance)
    before = equity[:-1]
    with np.errstate(divide="ignore", invalid="ignore"):
        rets = np.where(before > 0, np.diff(equity) / before, 0.0)
    return rets


def sharpe_ratio(
    returns: Sequence[float],
    risk_free_rate: float = 0.02,
    periods_per_year: int = 252,
) -> float:
    """
    Annualized Sharpe ratio of per-period returns.

    Args:
        returns: Per-period returns
        risk_free_rate: Annual risk-free rate
        periods_per_year: Periods per year for de-annualizing the rate

    Returns:
        Sharpe ratio, 0.0 with fewer than 2 returns or zero dispersion
    """
    rets = np.asarray(returns, dtype=float)
    if len(rets) < 2:
        return 0.0

    excess = rets - risk_free_rate / periods_per_year
    std = float(np.std(excess, ddof=1))
    if std == 0 or not math.isfinite(std):
        return 0.0
    return float(np.mean(excess) / std * np.sqrt(periods_per_year))


def kelly_criterion(win_rate: float, average_win: float, average_loss: float) -> float:
    """
    Full Kelly fraction f = (p*b - (1 - p)) / b with b = |avg win / avg loss|.

    With wins but no losses b is unbounded and f tends to p. A negative
    edge yields 0 (no position).
    """
    if average_loss == 0:
        return win_rate if average_win > 0 else 0.0

    b = abs(average_win / average_loss)
    if b == 0:
        return 0.0
    kelly = (win_rate * b - (1 - win_rate)) / b
    return max(0.0, kelly)


def consecutive_losses(profit_loss: Sequence[float]) -> int:
    """Length of the losing streak at the end of the history"""
    streak = 0
    for pnl in reversed(profit_loss):
        if pnl < 0:
            streak += 1
        else:
            break
    return streak


def calculate_risk_metrics(
    history: Sequence[TradeHistoryRecord],
    starting_balance: float,
    config: RiskConfig,
) -> RiskMetrics:
    """
    Compute risk metrics over a trade history snapshot.

    Drawdown and Sharpe are measured on the equity curve that starts at
    ``starting_balance``. Profit factor is the average-win / average-loss
    ratio; it is capped at ``config.max_profit_factor`` when there are
    wins but no losses.

    Returns:
        RiskMetrics; the all-zero "empty" metrics when history is empty
    """
    if not history:
        return RiskMetrics()

    pnl = np.array([t.profit_loss for t in history], dtype=float)
    wins = pnl[pnl > 0]
    losses = pnl[pnl < 0]

    win_rate = len(wins) / len(pnl)
    average_win = float(wins.mean()) if len(wins) else 0.0
    average_loss = float(losses.mean()) if len(losses) else 0.0

    if average_loss != 0:
        profit_factor = abs(average_win / average_loss)
    elif average_win > 0:
        profit_factor = config.max_profit_factor
    else:
        profit_factor = 0.0

    equity = equity_curve(pnl, starting_balance)

    metrics = RiskMetrics(
        current_drawdown=current_drawdown(equity),
        consecutive_losses=consecutive_losses(pnl.tolist()),
        sharpe_ratio=sharpe_ratio(
            trade_returns(pnl, starting_balance),
            risk_free_rate=config.risk_free_rate,
            periods_per_year=config.periods_per_year,
        ),
        max_drawdown=max_drawdown(equity),
        win_rate=win_rate,
        profit_factor=profit_factor,
        average_win=average_win,
        average_loss=average_loss,
        largest_win=float(wins.max()) if len(wins) else 0.0,
        largest_loss=float(losses.min()) if len(losses) else 0.0,
        expectancy=win_rate * average_win + (1 - win_rate) * average_loss,
        kelly_criterion=kelly_criterion(win_rate, average_win, average_loss),
        trade_count=len(pnl),
    )

    logger.debug(
        f"Metrics over {metrics.trade_count} trades: WR={metrics.win_rate:.2%}, "
        f"PF={metrics.profit_factor:.2f}, Kelly={metrics.kelly_criterion:.3f}, "
        f"DD={metrics.current_drawdown:.2%} (max {metrics.max_drawdown:.2%})"
    )
    return metrics
