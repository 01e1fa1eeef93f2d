"""Custom exceptions for the regime and risk engine"""


class RiskCoreError(Exception):
    """Base exception for all engine errors"""
    pass


class InvalidInputError(RiskCoreError, ValueError):
    """Malformed input (mismatched series lengths, non-positive budgets, ...)"""
    pass


class InsufficientDataError(RiskCoreError):
    """Series shorter than the lookback an operation cannot do without"""
    pass


class UntrainedModelError(RiskCoreError):
    """Sequence model used for prediction before training or loading"""
    pass


class TrainingCancelledError(RiskCoreError):
    """Training stopped at an epoch/fold boundary by a cancel request"""
    pass


class TrainingTimeoutError(TrainingCancelledError):
    """Training exceeded its wall-clock budget"""
    pass
