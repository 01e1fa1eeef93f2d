"""Core constants and enums for the regime and risk engine"""

from enum import Enum


class Regime(str, Enum):
    """Market regime labels, in classifier evaluation order"""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"
    VOLATILE = "volatile"


# Evaluation order doubles as the class index of the sequence model output
REGIME_ORDER = (Regime.BULLISH, Regime.BEARISH, Regime.NEUTRAL, Regime.VOLATILE)


class RiskTolerance(str, Enum):
    """User risk tolerance from the risk profile questionnaire"""
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


class RiskLevel(str, Enum):
    """Risk level of a catalog strategy"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MarketBias(str, Enum):
    """Directional bias of a strategy or user preference"""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


# Strategy risk levels each tolerance accepts
TOLERANCE_RISK_LEVELS = {
    RiskTolerance.CONSERVATIVE: frozenset({RiskLevel.LOW}),
    RiskTolerance.MODERATE: frozenset({RiskLevel.LOW, RiskLevel.MEDIUM}),
    RiskTolerance.AGGRESSIVE: frozenset({RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH}),
}

VERDICT_SOURCE_RULES = "rules"
VERDICT_SOURCE_SEQUENCE = "sequence_model"
