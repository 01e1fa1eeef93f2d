"""Market regime classification"""

from riskcore.regime.models import RegimeIndicators, RegimeVerdict
from riskcore.regime.base import RegimeClassifier, FallbackClassifier
from riskcore.regime.detector import RegimeDetector, recommended_strategy_names
from riskcore.regime.history import RegimeHistorySummary, rolling_verdicts, summarize

__all__ = [
    # Verdict models
    "RegimeIndicators",
    "RegimeVerdict",
    # Classifiers
    "RegimeClassifier",
    "FallbackClassifier",
    "RegimeDetector",
    "recommended_strategy_names",
    # Timeline analytics
    "RegimeHistorySummary",
    "rolling_verdicts",
    "summarize",
]
