"""Data models for risk management"""

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from riskcore.core.constants import MarketBias, RiskLevel
from riskcore.regime.models import RegimeVerdict


@dataclass(frozen=True)
class StrategySetup:
    """Entry/exit playbook of an option strategy"""
    entry: Tuple[str, ...]
    exit: Tuple[str, ...]
    stop_loss: str


@dataclass(frozen=True)
class StrategyTemplate:
    """Static catalog entry (no position size)"""
    name: str
    description: str
    risk_level: RiskLevel
    expected_return: float
    max_drawdown: float
    sharpe_ratio: float
    probability_of_profit: float
    market_bias: MarketBias
    setup: StrategySetup


@dataclass(frozen=True)
class Strategy:
    """Catalog entry sized for one risk profile"""
    name: str
    description: str
    risk_level: RiskLevel
    expected_return: float
    max_drawdown: float
    sharpe_ratio: float
    probability_of_profit: float
    market_bias: MarketBias
    recommended_position_size: float
    setup: StrategySetup

    @classmethod
    def from_template(cls, template: StrategyTemplate, position_size: float) -> "Strategy":
        return cls(
            name=template.name,
            description=template.description,
            risk_level=template.risk_level,
            expected_return=template.expected_return,
            max_drawdown=template.max_drawdown,
            sharpe_ratio=template.sharpe_ratio,
            probability_of_profit=template.probability_of_profit,
            market_bias=template.market_bias,
            recommended_position_size=position_size,
            setup=template.setup,
        )

    def with_position_size(self, position_size: float) -> "Strategy":
        return replace(self, recommended_position_size=position_size)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["risk_level"] = self.risk_level.value
        data["market_bias"] = self.market_bias.value
        data["setup"] = {
            "entry": list(self.setup.entry),
            "exit": list(self.setup.exit),
            "stop_loss": self.setup.stop_loss,
        }
        return data


@dataclass
class RiskMetrics:
    """Aggregate risk metrics over a trade history snapshot"""
    current_drawdown: float = 0.0
    consecutive_losses: int = 0
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0
    win_rate: float = 0.0
    profit_factor: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    expectancy: float = 0.0
    kelly_criterion: float = 0.0
    trade_count: int = 0
    market_regime: Optional[RegimeVerdict] = None

    @property
    def is_empty(self) -> bool:
        """True for the "no trades yet" state"""
        return self.trade_count == 0

    def to_dict(self) -> Dict[str, Any]:
        data = {k: v for k, v in asdict(self).items() if k != "market_regime"}
        data["market_regime"] = self.market_regime.to_dict() if self.market_regime else None
        return data


@dataclass
class TradeDecision:
    """Outcome of the trade gate"""
    approved: bool
    regime: Optional[str] = None
    reasons: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.approved
