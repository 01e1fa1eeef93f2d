"""Risk manager: metrics, position sizing, strategy filtering and trade gating"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from riskcore.config.models import GateThresholds, RiskConfig
from riskcore.core.constants import TOLERANCE_RISK_LEVELS, Regime
from riskcore.core.exceptions import InvalidInputError
from riskcore.core.types import PriceSeries, RiskProfile, TradeHistoryRecord, as_history
from riskcore.regime.base import RegimeClassifier
from riskcore.regime.detector import RegimeDetector, recommended_strategy_names
from riskcore.regime.models import RegimeVerdict
from riskcore.risk.metrics import calculate_risk_metrics
from riskcore.risk.models import RiskMetrics, Strategy, StrategyTemplate, TradeDecision
from riskcore.risk.strategies import STRATEGY_CATALOG

logger = logging.getLogger("riskcore.risk.risk_manager")


@dataclass
class PositionSizeEstimate:
    """Both sizing rules before and after the balance cap"""
    fixed_fractional: float
    kelly: float
    uncapped: float
    capped: float


class RiskManager:
    """
    Risk checks and strategy recommendations for one profile and one
    trade history snapshot.

    Every call recomputes from the snapshot taken at construction; a
    changed profile or history needs a new instance.
    """

    def __init__(
        self,
        profile: RiskProfile,
        trade_history: Sequence[TradeHistoryRecord] = (),
        classifier: Optional[RegimeClassifier] = None,
        config: Optional[RiskConfig] = None,
        catalog: Sequence[StrategyTemplate] = STRATEGY_CATALOG,
    ):
        """
        Initialize risk manager.

        Args:
            profile: User risk profile
            trade_history: Closed trades, oldest first
            classifier: Regime classifier for market data (rule-based if None)
            config: Risk configuration (defaults if None)
            catalog: Strategy catalog to recommend from
        """
        self.profile = profile
        self.trade_history = as_history(trade_history)
        self.config = config or RiskConfig()
        self.classifier = classifier or RegimeDetector(periods_per_year=self.config.periods_per_year)
        self.catalog = tuple(catalog)

        self._regime_size_multiplier: Dict[Regime, float] = {
            Regime.VOLATILE: self.config.volatile_size_multiplier,
            Regime.NEUTRAL: self.config.neutral_size_multiplier,
            Regime.BULLISH: self.config.trending_size_multiplier,
            Regime.BEARISH: self.config.trending_size_multiplier,
        }
        self._regime_gate: Dict[Regime, GateThresholds] = {
            Regime.VOLATILE: self.config.volatile_gate,
            Regime.NEUTRAL: self.config.baseline_gate,
            Regime.BULLISH: self.config.trending_gate,
            Regime.BEARISH: self.config.trending_gate,
        }

        logger.debug(
            f"RiskManager initialized: tolerance={profile.risk_tolerance.value}, "
            f"balance={profile.account_balance:.2f}, trades={len(self.trade_history)}"
        )

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def calculate_risk_metrics(self, market_data: Optional[PriceSeries] = None) -> RiskMetrics:
        """
        Compute risk metrics over the trade history.

        Args:
            market_data: Optional series; its regime verdict is embedded

        Returns:
            RiskMetrics (all zero when there are no trades yet)
        """
        metrics = calculate_risk_metrics(
            self.trade_history,
            starting_balance=self.profile.account_balance,
            config=self.config,
        )
        if market_data is not None:
            metrics.market_regime = self.classifier.analyze(market_data)
        return metrics

    # ------------------------------------------------------------------
    # Position sizing
    # ------------------------------------------------------------------

    def estimate_position_sizes(
        self,
        max_drawdown_budget: float,
        metrics: Optional[RiskMetrics] = None,
    ) -> PositionSizeEstimate:
        """
        Position size under both sizing rules.

        fixed_fractional = balance * max_loss_per_trade / max_drawdown_budget
        kelly            = balance * kelly_criterion
        capped           = min(both, balance * max_position_pct)

        Raises:
            InvalidInputError: If max_drawdown_budget <= 0
        """
        if max_drawdown_budget <= 0:
            raise InvalidInputError(
                f"max_drawdown_budget must be > 0, got {max_drawdown_budget}"
            )

        if metrics is None:
            metrics = self.calculate_risk_metrics()

        balance = self.profile.account_balance
        fixed_fractional = balance * self.profile.max_loss_per_trade / max_drawdown_budget
        kelly = balance * metrics.kelly_criterion
        uncapped = min(fixed_fractional, kelly)
        capped = min(uncapped, balance * self.config.max_position_pct)

        return PositionSizeEstimate(
            fixed_fractional=fixed_fractional,
            kelly=kelly,
            uncapped=uncapped,
            capped=capped,
        )

    def calculate_position_size(self, max_drawdown_budget: float) -> float:
        """
        Recommended position size for a strategy's drawdown budget.

        The more conservative of fixed-fractional and Kelly sizing, capped
        at max_position_pct of the account balance.
        """
        return self.estimate_position_sizes(max_drawdown_budget).capped

    def adjust_position_size_for_regime(self, position_size: float, verdict: RegimeVerdict) -> float:
        """Scale a position size by regime confidence and regime multiplier"""
        multiplier = self._regime_size_multiplier.get(verdict.regime, 1.0)
        return position_size * verdict.confidence * multiplier

    # ------------------------------------------------------------------
    # Strategy recommendations
    # ------------------------------------------------------------------

    def get_recommended_strategies(self, market_data: Optional[PriceSeries] = None) -> List[Strategy]:
        """
        Catalog strategies that fit the profile (and the market regime).

        Filters by risk tolerance and preferred market bias. With market
        data, keeps only the regime's strategies and scales their sizes by
        regime confidence and regime multiplier.

        Args:
            market_data: Optional series for regime-aware filtering

        Returns:
            Sized strategies in catalog order
        """
        metrics = self.calculate_risk_metrics()
        allowed_levels = TOLERANCE_RISK_LEVELS[self.profile.risk_tolerance]
        bias = self.profile.preferred_market_bias

        strategies = [
            Strategy.from_template(
                template,
                self.estimate_position_sizes(template.max_drawdown, metrics).capped,
            )
            for template in self.catalog
            if template.risk_level in allowed_levels
            and (bias is None or template.market_bias == bias)
        ]

        if market_data is not None:
            verdict = self.classifier.analyze(market_data)
            names = set(recommended_strategy_names(verdict.regime))
            strategies = [
                s.with_position_size(
                    self.adjust_position_size_for_regime(s.recommended_position_size, verdict)
                )
                for s in strategies
                if s.name in names
            ]
            logger.info(
                f"Regime {verdict.regime.value} (confidence={verdict.confidence:.2f}): "
                f"{len(strategies)} strategies recommended"
            )

        return strategies

    # ------------------------------------------------------------------
    # Trade gate
    # ------------------------------------------------------------------

    def trade_gate(self, market_data: Optional[PriceSeries] = None) -> TradeDecision:
        """
        Decide whether the profile should take new trades.

        Drawdown below the profile maximum and a losing streak below
        max_consecutive_losses always apply. Win-rate and profit-factor
        floors depend on the regime: baseline without market data or in a
        neutral market, stricter in volatile markets, looser in trending
        (bullish/bearish) markets.

        Returns:
            TradeDecision with failing reasons (empty when approved)
        """
        metrics = self.calculate_risk_metrics(market_data)
        verdict = metrics.market_regime

        if metrics.is_empty:
            return TradeDecision(
                approved=False,
                regime=verdict.regime.value if verdict else None,
                reasons=["No trade history"],
            )

        gate = self.config.baseline_gate
        if verdict is not None:
            gate = self._regime_gate.get(verdict.regime, self.config.baseline_gate)

        reasons = []
        if metrics.current_drawdown >= self.profile.max_drawdown:
            reasons.append(
                f"Drawdown {metrics.current_drawdown:.2%} >= max {self.profile.max_drawdown:.2%}"
            )
        if metrics.consecutive_losses >= self.config.max_consecutive_losses:
            reasons.append(f"{metrics.consecutive_losses} consecutive losses")
        if metrics.win_rate < gate.min_win_rate:
            reasons.append(f"Win rate {metrics.win_rate:.2f} < {gate.min_win_rate:.2f}")
        if metrics.profit_factor < gate.min_profit_factor:
            reasons.append(
                f"Profit factor {metrics.profit_factor:.2f} < {gate.min_profit_factor:.2f}"
            )

        decision = TradeDecision(
            approved=not reasons,
            regime=verdict.regime.value if verdict else None,
            reasons=reasons,
        )
        if decision.approved:
            logger.debug(f"Trade gate passed (regime={decision.regime})")
        else:
            logger.info(f"Trade gate blocked (regime={decision.regime}): {'; '.join(reasons)}")
        return decision

    def should_trade(self, market_data: Optional[PriceSeries] = None) -> bool:
        """Binary trade/no-trade gate (see trade_gate)"""
        return self.trade_gate(market_data).approved
