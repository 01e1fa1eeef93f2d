"""Rule-based regime detection engine"""

import logging
import math
from typing import Dict, List, Optional, Union

from riskcore.config.models import IndicatorConfig, RegimeConfig
from riskcore.core.constants import REGIME_ORDER, VERDICT_SOURCE_RULES, Regime
from riskcore.core.types import PriceSeries
from riskcore.data import features
from riskcore.regime.base import RegimeClassifier
from riskcore.regime.models import RegimeIndicators, RegimeVerdict


logger = logging.getLogger("riskcore.regime.detector")


# Strategy names associated with each regime
REGIME_STRATEGIES: Dict[Regime, List[str]] = {
    Regime.BULLISH: ["Bull Call Spread", "Covered Call", "Bull Put Spread"],
    Regime.BEARISH: ["Bear Call Spread", "Protective Put", "Put Debit Spread"],
    Regime.NEUTRAL: ["Iron Condor", "Calendar Spread", "Butterfly Spread"],
    Regime.VOLATILE: ["Straddle", "Strangle", "Iron Butterfly"],
}

# Raw values substituted for undefined indicators: no trend, no momentum,
# no volatility, average volume
NEUTRAL_RAW_DEFAULTS = {
    "trend": 0.0,
    "momentum": 0.0,
    "volatility": 0.0,
    "volume": 1.0,
}


class RegimeDetector(RegimeClassifier):
    """
    Rule-based regime classifier.

    Scores four mutually exclusive regimes from normalized trend strength,
    momentum, volatility and volume trend:
    - BULLISH: trend + momentum + volume
    - BEARISH: -trend - momentum + volume
    - NEUTRAL: (1 - |trend| - |momentum|) * volume
    - VOLATILE: volatility * (1 - |trend|)

    The top score wins (first in evaluation order on ties). Confidence is
    the winner's share of the summed scores, not a calibrated probability.
    """

    def __init__(
        self,
        config: Optional[RegimeConfig] = None,
        indicator_config: Optional[IndicatorConfig] = None,
        periods_per_year: int = 252,
    ):
        """
        Initialize RegimeDetector.

        Args:
            config: Normalization domains (defaults if None)
            indicator_config: Indicator periods (defaults if None)
            periods_per_year: Volatility annualization factor
        """
        self.config = config or RegimeConfig()
        self.indicator_config = indicator_config or IndicatorConfig()
        self.periods_per_year = periods_per_year

        logger.info(
            f"RegimeDetector initialized "
            f"(lookback={self.indicator_config.lookback_period}, "
            f"clamp={'ON' if self.config.clamp_normalized else 'OFF'})"
        )

    def analyze(self, series: PriceSeries) -> RegimeVerdict:
        """
        Classify the regime of the trailing lookback window.

        Args:
            series: Price/volume series

        Returns:
            RegimeVerdict with regime, confidence and normalized indicators
        """
        raw = self.raw_indicators(series)
        indicators = self.normalize(raw)
        verdict = self.determine_regime(indicators)

        logger.debug(
            f"{verdict.regime.value} (confidence={verdict.confidence:.2f}, "
            f"trend={raw['trend']:.3f}, momentum={raw['momentum']:.4f}, "
            f"volatility={raw['volatility']:.3f}, volume={raw['volume']:.2f})"
        )
        return verdict

    def raw_indicators(self, series: PriceSeries) -> Dict[str, float]:
        """
        Compute raw indicators over the trailing lookback window.

        Undefined values (series too short, zero volume, ...) are replaced
        with the neutral defaults.
        """
        ic = self.indicator_config
        window = series.tail(ic.lookback_period)

        raw = {
            "trend": features.trend_strength(window.prices),
            "momentum": features.momentum(window.prices, lookback=ic.lookback_period),
            "volatility": features.volatility(
                window.prices, periods_per_year=self.periods_per_year
            ),
            "volume": features.volume_trend(window.volumes, lookback=ic.lookback_period),
        }

        undefined = [name for name, value in raw.items() if not features.is_defined(value)]
        if undefined:
            logger.warning(
                f"Insufficient data for {undefined} ({len(series)} bars); "
                f"using neutral defaults"
            )
            for name in undefined:
                raw[name] = NEUTRAL_RAW_DEFAULTS[name]

        if logger.isEnabledFor(logging.DEBUG):
            macd_result = features.macd(
                series.prices, ic.macd_fast_period, ic.macd_slow_period, ic.macd_signal_period
            )
            logger.debug(
                f"Diagnostics: RSI={features.rsi(series.prices, ic.rsi_period):.1f}, "
                f"MACD_hist={macd_result.histogram:.4f}, "
                f"BB_pos={features.bollinger_position(series.prices, ic.bb_period, ic.bb_std_dev):.2f}"
            )

        return raw

    def normalize(self, raw: Dict[str, float]) -> RegimeIndicators:
        """Min-max scale raw indicators onto the configured domains"""
        c = self.config
        return RegimeIndicators(
            trend=self._normalize(raw["trend"], c.trend_min, c.trend_max),
            momentum=self._normalize(raw["momentum"], c.momentum_min, c.momentum_max),
            volatility=self._normalize(raw["volatility"], c.volatility_min, c.volatility_max),
            volume=self._normalize(raw["volume"], c.volume_min, c.volume_max),
        )

    def determine_regime(self, indicators: RegimeIndicators) -> RegimeVerdict:
        """
        Score the four regimes and pick the best.

        Confidence is the winner's share of the summed scores. Unclamped
        normalization can push losing scores below zero, so the share is
        taken over the positive parts only; with all scores >= 0 this is the
        plain score sum. A zero or non-finite sum leaves no meaningful
        share, so the verdict degrades to NEUTRAL with zero confidence.
        """
        scores = self.score_regimes(indicators)

        # max() keeps the first of equal scores, i.e. evaluation order on ties
        best = max(REGIME_ORDER, key=lambda r: scores[r])
        total = sum(max(s, 0.0) for s in scores.values())

        if total == 0 or not all(math.isfinite(s) for s in scores.values()):
            logger.warning(f"Degenerate regime score sum ({total}); defaulting to neutral")
            regime = Regime.NEUTRAL
            confidence = 0.0
        else:
            regime = best
            confidence = max(scores[best], 0.0) / total

        return RegimeVerdict(
            regime=regime,
            confidence=confidence,
            indicators=indicators,
            source=VERDICT_SOURCE_RULES,
            scores={r.value: s for r, s in scores.items()},
        )

    @staticmethod
    def score_regimes(indicators: RegimeIndicators) -> Dict[Regime, float]:
        trend = indicators.trend
        momentum = indicators.momentum
        volatility = indicators.volatility
        volume = indicators.volume

        return {
            Regime.BULLISH: (trend + momentum + volume) / 3,
            Regime.BEARISH: (-trend - momentum + volume) / 3,
            Regime.NEUTRAL: (1 - abs(trend) - abs(momentum)) * volume,
            Regime.VOLATILE: volatility * (1 - abs(trend)),
        }

    def _normalize(self, value: float, lo: float, hi: float) -> float:
        scaled = (value - lo) / (hi - lo)
        if self.config.clamp_normalized:
            scaled = max(0.0, min(1.0, scaled))
        return scaled


def recommended_strategy_names(regime: Union[Regime, RegimeVerdict, str]) -> List[str]:
    """
    Strategy names suited to a regime.

    Args:
        regime: Regime, verdict or regime string

    Returns:
        Allowlist of strategy names (copy)
    """
    if isinstance(regime, RegimeVerdict):
        regime = regime.regime
    return list(REGIME_STRATEGIES.get(Regime(regime), []))
