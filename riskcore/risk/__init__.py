"""Risk metrics, position sizing and strategy recommendations"""

from riskcore.risk.models import RiskMetrics, Strategy, StrategySetup, StrategyTemplate, TradeDecision
from riskcore.risk.strategies import STRATEGY_CATALOG, get_template
from riskcore.risk.risk_manager import PositionSizeEstimate, RiskManager
from riskcore.risk.performance import PerformanceMetrics, calculate_benchmark_metrics

__all__ = [
    "RiskMetrics",
    "Strategy",
    "StrategySetup",
    "StrategyTemplate",
    "TradeDecision",
    "STRATEGY_CATALOG",
    "get_template",
    "PositionSizeEstimate",
    "RiskManager",
    "PerformanceMetrics",
    "calculate_benchmark_metrics",
]
