"""Pydantic models for configuration validation"""

from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class IndicatorConfig(BaseModel):
    """Technical indicator periods"""
    lookback_period: int = Field(default=20, ge=2, le=500)
    rsi_period: int = Field(default=14, ge=2, le=100)
    macd_fast_period: int = Field(default=12, ge=2, le=100)
    macd_slow_period: int = Field(default=26, ge=3, le=200)
    macd_signal_period: int = Field(default=9, ge=2, le=100)
    bb_period: int = Field(default=20, ge=2, le=200)
    bb_std_dev: float = Field(default=2.0, gt=0, le=5.0)

    @model_validator(mode="after")
    def validate_macd_periods(self):
        if self.macd_fast_period >= self.macd_slow_period:
            raise ValueError("macd_fast_period must be < macd_slow_period")
        return self


class RegimeConfig(BaseModel):
    """Rule-based regime classifier normalization domains"""
    trend_min: float = -2.0
    trend_max: float = 2.0
    momentum_min: float = -0.1
    momentum_max: float = 0.1
    volatility_min: float = 0.0
    volatility_max: float = 0.5
    volume_min: float = 0.5
    volume_max: float = 2.0
    # Normalized values are left unclamped unless explicitly enabled
    clamp_normalized: bool = False

    @model_validator(mode="after")
    def validate_domains(self):
        for name in ("trend", "momentum", "volatility", "volume"):
            lo = getattr(self, f"{name}_min")
            hi = getattr(self, f"{name}_max")
            if lo >= hi:
                raise ValueError(f"{name}_min must be < {name}_max")
        return self


class PredictorConfig(BaseModel):
    """Sequence regime predictor configuration"""
    window: int = Field(default=20, ge=5, le=250)  # bars per feature row
    timesteps: int = Field(default=20, ge=1, le=250)  # feature rows per sample
    lstm_units: tuple[int, int] = (64, 32)
    dense_units: int = Field(default=16, ge=1, le=1024)
    dropout: float = Field(default=0.2, ge=0, lt=1.0)
    learning_rate: float = Field(default=0.001, gt=0, le=1.0)
    epochs: int = Field(default=50, ge=1, le=10_000)
    batch_size: int = Field(default=32, ge=1, le=4096)
    validation_split: float = Field(default=0.2, ge=0, lt=1.0)
    num_folds: int = Field(default=5, ge=2, le=50)
    seed: int = 42
    max_train_seconds: Optional[float] = Field(default=None, gt=0)
    device: str = "cpu"

    @field_validator("lstm_units")
    @classmethod
    def validate_lstm_units(cls, v: tuple[int, int]) -> tuple[int, int]:
        if any(units < 1 for units in v):
            raise ValueError("lstm_units must be positive")
        return v

    @field_validator("device")
    @classmethod
    def validate_device(cls, v: str) -> str:
        if v.split(":")[0] not in ["cpu", "cuda", "mps"]:
            raise ValueError("device must be cpu, cuda[:n] or mps")
        return v


class GateThresholds(BaseModel):
    """Win-rate / profit-factor floor for the trade gate"""
    min_win_rate: float = Field(ge=0, le=1.0)
    min_profit_factor: float = Field(ge=0)


class RiskConfig(BaseModel):
    """Risk manager configuration"""
    risk_free_rate: float = Field(default=0.02, ge=0, le=0.5)  # annual
    periods_per_year: int = Field(default=252, ge=1, le=365)
    max_position_pct: float = Field(default=0.1, gt=0, le=1.0)  # 0.1 = 10% of balance
    max_consecutive_losses: int = Field(default=3, ge=1, le=50)
    max_profit_factor: float = Field(default=100.0, gt=0)
    baseline_gate: GateThresholds = GateThresholds(min_win_rate=0.4, min_profit_factor=1.5)
    volatile_gate: GateThresholds = GateThresholds(min_win_rate=0.5, min_profit_factor=2.0)
    trending_gate: GateThresholds = GateThresholds(min_win_rate=0.35, min_profit_factor=1.3)
    volatile_size_multiplier: float = Field(default=0.7, ge=0, le=1.0)
    neutral_size_multiplier: float = Field(default=0.9, ge=0, le=1.0)
    trending_size_multiplier: float = Field(default=1.0, ge=0, le=1.0)


class LoggingConfig(BaseModel):
    """Logging configuration"""
    log_dir: str = "./logs"
    event_log_file: str = "events.log"
    training_log_file: Optional[str] = "training.jsonl"
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()


class EngineConfig(BaseModel):
    """Root configuration model"""
    indicators: IndicatorConfig = IndicatorConfig()
    regime: RegimeConfig = RegimeConfig()
    predictor: PredictorConfig = PredictorConfig()
    risk: RiskConfig = RiskConfig()
    logging: LoggingConfig = LoggingConfig()

    @model_validator(mode="after")
    def validate_config(self):
        """Cross-field validation"""
        # Volatile markets must never be gated more loosely than the baseline
        if self.risk.volatile_gate.min_win_rate < self.risk.baseline_gate.min_win_rate:
            raise ValueError("volatile_gate.min_win_rate must be >= baseline_gate.min_win_rate")
        if self.risk.volatile_gate.min_profit_factor < self.risk.baseline_gate.min_profit_factor:
            raise ValueError(
                "volatile_gate.min_profit_factor must be >= baseline_gate.min_profit_factor"
            )

        # Trending markets loosen the gate, never tighten it
        if self.risk.trending_gate.min_win_rate > self.risk.baseline_gate.min_win_rate:
            raise ValueError("trending_gate.min_win_rate must be <= baseline_gate.min_win_rate")
        if self.risk.trending_gate.min_profit_factor > self.risk.baseline_gate.min_profit_factor:
            raise ValueError(
                "trending_gate.min_profit_factor must be <= baseline_gate.min_profit_factor"
            )

        return self
