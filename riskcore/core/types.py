"""Core data types for the regime and risk engine"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import pandas as pd

from riskcore.core.constants import MarketBias, RiskTolerance
from riskcore.core.exceptions import InvalidInputError


@dataclass(frozen=True)
class PriceSeries:
    """
    Chronological price/volume samples for one instrument.

    Insertion order is chronological order. Timestamps are optional;
    when given they must line up one-to-one with prices.
    """
    prices: List[float]
    volumes: List[float]
    timestamps: List[str] = field(default_factory=list)

    def __post_init__(self):
        if len(self.prices) != len(self.volumes):
            raise InvalidInputError(
                f"prices and volumes differ in length "
                f"({len(self.prices)} != {len(self.volumes)})"
            )
        if self.timestamps and len(self.timestamps) != len(self.prices):
            raise InvalidInputError(
                f"timestamps and prices differ in length "
                f"({len(self.timestamps)} != {len(self.prices)})"
            )

    def __len__(self) -> int:
        return len(self.prices)

    def tail(self, n: int) -> "PriceSeries":
        """Return the trailing n samples"""
        return self.window(max(0, len(self) - n), len(self))

    def window(self, start: int, end: int) -> "PriceSeries":
        """Return samples [start, end)"""
        return PriceSeries(
            prices=list(self.prices[start:end]),
            volumes=list(self.volumes[start:end]),
            timestamps=list(self.timestamps[start:end]) if self.timestamps else [],
        )

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "PriceSeries":
        """
        Build a series from a DataFrame.

        Accepts a ``price`` or ``close`` column, a ``volume`` column and an
        optional ``timestamp`` column.

        Raises:
            InvalidInputError: If required columns are missing
        """
        if "price" in frame.columns:
            price_col = "price"
        elif "close" in frame.columns:
            price_col = "close"
        else:
            raise InvalidInputError("DataFrame needs a 'price' or 'close' column")

        if "volume" not in frame.columns:
            raise InvalidInputError("DataFrame needs a 'volume' column")

        timestamps: List[str] = []
        if "timestamp" in frame.columns:
            timestamps = [str(ts) for ts in frame["timestamp"]]

        return cls(
            prices=frame[price_col].astype(float).tolist(),
            volumes=frame["volume"].astype(float).tolist(),
            timestamps=timestamps,
        )


@dataclass(frozen=True)
class RiskProfile:
    """User risk profile submitted from the questionnaire"""
    risk_tolerance: RiskTolerance
    max_drawdown: float  # 0.2 = 20%
    target_return: float
    investment_horizon: int  # months
    account_balance: float
    max_loss_per_trade: float  # 0.02 = 2% of balance
    preferred_market_bias: Optional[MarketBias] = None

    def __post_init__(self):
        # Accept plain strings from form state
        object.__setattr__(self, "risk_tolerance", RiskTolerance(self.risk_tolerance))
        if self.preferred_market_bias is not None:
            object.__setattr__(
                self, "preferred_market_bias", MarketBias(self.preferred_market_bias)
            )
        if self.account_balance <= 0:
            raise InvalidInputError("account_balance must be > 0")
        if self.max_loss_per_trade < 0:
            raise InvalidInputError("max_loss_per_trade must be >= 0")


@dataclass(frozen=True)
class TradeHistoryRecord:
    """Closed trade as logged by the trade journal"""
    date: str
    strategy: str
    profit_loss: float
    drawdown: float = 0.0


def as_history(records: Sequence[TradeHistoryRecord]) -> tuple:
    """Snapshot a trade history so later caller mutation cannot leak in"""
    return tuple(records)
