"""Regime timeline analytics over a series"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from riskcore.core.constants import Regime
from riskcore.core.exceptions import InvalidInputError
from riskcore.core.types import PriceSeries
from riskcore.regime.base import RegimeClassifier
from riskcore.regime.models import RegimeVerdict

logger = logging.getLogger("riskcore.regime.history")


@dataclass
class RegimeHistorySummary:
    """Distribution, confidence and transitions of a regime timeline"""
    periods: int
    distribution: Dict[str, float] = field(default_factory=dict)  # share per regime
    average_confidence: float = 0.0
    transitions: Dict[str, int] = field(default_factory=dict)  # "bullish->neutral": n
    dominant_regime: Optional[Regime] = None


def rolling_verdicts(
    series: PriceSeries,
    classifier: RegimeClassifier,
    window: int,
    step: int = 1,
) -> List[RegimeVerdict]:
    """
    Classify every trailing window of a series.

    Args:
        series: Full price/volume series
        classifier: Classifier to run per window
        window: Bars per window
        step: Bars between consecutive windows

    Returns:
        One verdict per window end, oldest first
    """
    if window < 1 or step < 1:
        raise InvalidInputError("window and step must be >= 1")

    verdicts = []
    for end in range(window, len(series) + 1, step):
        verdicts.append(classifier.analyze(series.window(end - window, end)))

    logger.debug(f"Classified {len(verdicts)} windows (window={window}, step={step})")
    return verdicts


def summarize(verdicts: Sequence[RegimeVerdict]) -> RegimeHistorySummary:
    """Summarize a regime timeline"""
    if not verdicts:
        return RegimeHistorySummary(periods=0)

    periods = len(verdicts)
    counts = Counter(v.regime for v in verdicts)

    transitions: Counter = Counter()
    for prev, curr in zip(verdicts, verdicts[1:]):
        if prev.regime != curr.regime:
            transitions[f"{prev.regime.value}->{curr.regime.value}"] += 1

    # Ties resolve to the first regime to appear in the timeline
    dominant = max(counts, key=counts.get)

    return RegimeHistorySummary(
        periods=periods,
        distribution={r.value: counts[r] / periods for r in counts},
        average_confidence=sum(v.confidence for v in verdicts) / periods,
        transitions=dict(transitions),
        dominant_regime=dominant,
    )
