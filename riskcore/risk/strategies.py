"""Static option strategy catalog"""

from typing import Optional, Tuple

from riskcore.core.constants import MarketBias, RiskLevel
from riskcore.risk.models import StrategySetup, StrategyTemplate


STRATEGY_CATALOG: Tuple[StrategyTemplate, ...] = (
    # Bullish
    StrategyTemplate(
        name="Bull Call Spread",
        description="Buy lower strike call, sell higher strike call",
        risk_level=RiskLevel.MEDIUM,
        expected_return=0.25,
        max_drawdown=0.15,
        sharpe_ratio=1.8,
        probability_of_profit=0.65,
        market_bias=MarketBias.BULLISH,
        setup=StrategySetup(
            entry=("Buy ATM call", "Sell OTM call (30-40% higher)", "30-45 days to expiration"),
            exit=("50% profit target", "Close at 50% max loss", "Roll if tested"),
            stop_loss="50% of max loss",
        ),
    ),
    StrategyTemplate(
        name="Covered Call",
        description="Own stock and sell OTM call",
        risk_level=RiskLevel.LOW,
        expected_return=0.15,
        max_drawdown=0.10,
        sharpe_ratio=1.4,
        probability_of_profit=0.75,
        market_bias=MarketBias.BULLISH,
        setup=StrategySetup(
            entry=("Own 100 shares", "Sell OTM call (30 delta)", "30-45 days to expiration"),
            exit=("50% profit target", "Roll if tested", "Close at 21 days"),
            stop_loss="Stock stop loss",
        ),
    ),
    StrategyTemplate(
        name="Bull Put Spread",
        description="Sell OTM put spread in bullish market",
        risk_level=RiskLevel.MEDIUM,
        expected_return=0.20,
        max_drawdown=0.15,
        sharpe_ratio=1.8,
        probability_of_profit=0.70,
        market_bias=MarketBias.BULLISH,
        setup=StrategySetup(
            entry=("Sell OTM put (30 delta)", "Buy lower strike put", "30-45 days to expiration"),
            exit=("50% profit target", "Close at 50% max loss", "Roll if tested"),
            stop_loss="50% of max loss",
        ),
    ),
    # Bearish
    StrategyTemplate(
        name="Bear Call Spread",
        description="Sell OTM call spread in bearish market",
        risk_level=RiskLevel.MEDIUM,
        expected_return=0.20,
        max_drawdown=0.15,
        sharpe_ratio=1.7,
        probability_of_profit=0.70,
        market_bias=MarketBias.BEARISH,
        setup=StrategySetup(
            entry=("Sell OTM call (30 delta)", "Buy higher strike call", "30-45 days to expiration"),
            exit=("50% profit target", "Close at 50% max loss", "Roll if tested"),
            stop_loss="50% of max loss",
        ),
    ),
    StrategyTemplate(
        name="Protective Put",
        description="Own stock and buy ATM put",
        risk_level=RiskLevel.LOW,
        expected_return=0.12,
        max_drawdown=0.08,
        sharpe_ratio=1.3,
        probability_of_profit=0.60,
        market_bias=MarketBias.BEARISH,
        setup=StrategySetup(
            entry=("Own 100 shares", "Buy ATM put", "30-45 days to expiration"),
            exit=("Close put at 50% loss", "Roll if tested", "Close at 21 days"),
            stop_loss="50% of put premium",
        ),
    ),
    # Neutral
    StrategyTemplate(
        name="Iron Condor",
        description="Sell OTM put and call spreads to collect premium",
        risk_level=RiskLevel.LOW,
        expected_return=0.15,
        max_drawdown=0.10,
        sharpe_ratio=1.5,
        probability_of_profit=0.80,
        market_bias=MarketBias.NEUTRAL,
        setup=StrategySetup(
            entry=("Sell OTM put spread (30 delta)", "Sell OTM call spread (30 delta)", "Equal width spreads"),
            exit=("50% profit target", "21 days to expiration", "Close at 50% max loss"),
            stop_loss="50% of max loss",
        ),
    ),
    StrategyTemplate(
        name="Calendar Spread",
        description="Sell near-term option, buy far-term option",
        risk_level=RiskLevel.LOW,
        expected_return=0.12,
        max_drawdown=0.08,
        sharpe_ratio=1.3,
        probability_of_profit=0.75,
        market_bias=MarketBias.NEUTRAL,
        setup=StrategySetup(
            entry=("Sell near-term ATM option", "Buy far-term ATM option", "Equal strikes"),
            exit=("50% profit target", "Close at 50% max loss", "Roll if tested"),
            stop_loss="50% of max loss",
        ),
    ),
    StrategyTemplate(
        name="Butterfly Spread",
        description="Combination of bull and bear spreads",
        risk_level=RiskLevel.MEDIUM,
        expected_return=0.30,
        max_drawdown=0.20,
        sharpe_ratio=1.9,
        probability_of_profit=0.65,
        market_bias=MarketBias.NEUTRAL,
        setup=StrategySetup(
            entry=("Buy lower strike call", "Sell 2 ATM calls", "Buy higher strike call"),
            exit=("50% profit target", "Close at 50% max loss", "Close at 21 days"),
            stop_loss="50% of max loss",
        ),
    ),
    StrategyTemplate(
        name="Straddle",
        description="Buy ATM call and put",
        risk_level=RiskLevel.HIGH,
        expected_return=0.40,
        max_drawdown=0.25,
        sharpe_ratio=2.0,
        probability_of_profit=0.55,
        market_bias=MarketBias.NEUTRAL,
        setup=StrategySetup(
            entry=("Buy ATM call", "Buy ATM put", "30-45 days to expiration"),
            exit=("50% profit target", "Close at 50% max loss", "Close at 21 days"),
            stop_loss="50% of max loss",
        ),
    ),
)


def get_template(name: str) -> Optional[StrategyTemplate]:
    """Look up a catalog entry by name"""
    for template in STRATEGY_CATALOG:
        if template.name == name:
            return template
    return None
