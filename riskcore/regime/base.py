"""Common interface for regime classifiers"""

import logging
from abc import ABC, abstractmethod

from riskcore.core.exceptions import InsufficientDataError, UntrainedModelError
from riskcore.core.types import PriceSeries
from riskcore.regime.models import RegimeVerdict

logger = logging.getLogger("riskcore.regime")


class RegimeClassifier(ABC):
    """Anything that turns a PriceSeries into a RegimeVerdict"""

    @abstractmethod
    def analyze(self, series: PriceSeries) -> RegimeVerdict:
        """Classify the most recent market regime of a series"""


class FallbackClassifier(RegimeClassifier):
    """
    Prefer a primary classifier, fall back when it cannot answer.

    Typical use pairs the sequence predictor (primary) with the rule-based
    detector (fallback) so an untrained or unloaded model, or a series too
    short for a full model sequence, still yields a verdict.
    """

    def __init__(self, primary: RegimeClassifier, fallback: RegimeClassifier):
        self.primary = primary
        self.fallback = fallback

    def analyze(self, series: PriceSeries) -> RegimeVerdict:
        try:
            return self.primary.analyze(series)
        except (UntrainedModelError, InsufficientDataError) as e:
            logger.info(f"Primary classifier unavailable ({e}); using fallback")
            return self.fallback.analyze(series)
