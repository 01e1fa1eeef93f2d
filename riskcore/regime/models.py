"""Data models for regime detection"""

from dataclasses import dataclass, field
from typing import Any, Dict

from riskcore.core.constants import VERDICT_SOURCE_RULES, Regime


@dataclass(frozen=True)
class RegimeIndicators:
    """Normalized indicators behind a verdict"""
    trend: float
    momentum: float
    volatility: float
    volume: float


@dataclass(frozen=True)
class RegimeVerdict:
    """
    Regime classification result.

    ``confidence`` means different things per source: for the rule-based
    classifier it is the winner's share of the summed regime scores, for
    the sequence model it is a softmax probability.
    """
    regime: Regime
    confidence: float  # 0.0 to 1.0
    indicators: RegimeIndicators
    source: str = VERDICT_SOURCE_RULES
    scores: Dict[str, float] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        """Ensure confidence is clamped to [0, 1]"""
        object.__setattr__(self, "regime", Regime(self.regime))
        object.__setattr__(self, "confidence", max(0.0, min(1.0, self.confidence)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "regime": self.regime.value,
            "confidence": self.confidence,
            "indicators": {
                "trend": self.indicators.trend,
                "momentum": self.indicators.momentum,
                "volatility": self.indicators.volatility,
                "volume": self.indicators.volume,
            },
            "source": self.source,
        }
