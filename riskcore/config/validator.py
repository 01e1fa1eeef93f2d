"""Additional configuration validation logic"""

from riskcore.config.models import EngineConfig


def validate_config_constraints(config: EngineConfig) -> None:
    """
    Perform additional cross-field validation beyond Pydantic model validators.

    Args:
        config: EngineConfig instance to validate

    Raises:
        ValueError: If validation fails
    """
    # Returns-based statistics need at least two returns
    if config.indicators.lookback_period < 3:
        raise ValueError("indicators.lookback_period must be >= 3 bars")

    # Training split must leave samples to train on
    if config.predictor.validation_split >= 0.9:
        raise ValueError("predictor.validation_split must be < 0.9")

    # Regime size multipliers scale down, never up, in non-trending markets
    risk = config.risk
    if risk.volatile_size_multiplier > risk.trending_size_multiplier:
        raise ValueError("volatile_size_multiplier cannot exceed trending_size_multiplier")
    if risk.neutral_size_multiplier > risk.trending_size_multiplier:
        raise ValueError("neutral_size_multiplier cannot exceed trending_size_multiplier")
