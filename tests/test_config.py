"""Configuration loading and validation tests"""

import json
import os
import tempfile

import pytest

from riskcore.config.loader import load_config, substitute_env_vars
from riskcore.config.models import EngineConfig, IndicatorConfig, PredictorConfig, RegimeConfig
from riskcore.config.validator import validate_config_constraints


def create_temp_config(config_data: dict) -> str:
    """Create a temporary config file"""
    temp_file = tempfile.NamedTemporaryFile(mode='w', delete=False, suffix='.json')
    json.dump(config_data, temp_file)
    temp_file.close()
    return temp_file.name


@pytest.fixture
def valid_config_data():
    """Valid configuration data"""
    return {
        "indicators": {"lookback_period": 30, "rsi_period": 10},
        "regime": {"clamp_normalized": True},
        "predictor": {
            "window": 10,
            "timesteps": 5,
            "lstm_units": [16, 8],
            "epochs": 3,
            "device": "cpu"
        },
        "risk": {
            "max_position_pct": 0.05,
            "trending_gate": {"min_win_rate": 0.3, "min_profit_factor": 1.2}
        },
        "logging": {"log_dir": "./logs", "log_level": "debug"}
    }


class TestConfigLoading:
    """Test configuration loading"""

    def test_defaults_without_path(self):
        config = load_config(None, load_env=False)
        assert config == EngineConfig()
        assert config.risk.baseline_gate.min_win_rate == 0.4
        assert config.predictor.lstm_units == (64, 32)

    def test_load_valid_config(self, valid_config_data):
        config_path = create_temp_config(valid_config_data)
        try:
            config = load_config(config_path, load_env=False)
            assert isinstance(config, EngineConfig)
            assert config.indicators.lookback_period == 30
            assert config.regime.clamp_normalized is True
            assert config.predictor.lstm_units == (16, 8)
            assert config.risk.max_position_pct == 0.05
            assert config.risk.trending_gate.min_profit_factor == 1.2
            # Unspecified sections keep defaults
            assert config.risk.volatile_gate.min_profit_factor == 2.0
            assert config.logging.log_level == "DEBUG"
        finally:
            os.unlink(config_path)

    def test_missing_config_file(self):
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/config.json", load_env=False)

    def test_rejects_non_json_path(self):
        with pytest.raises(ValueError, match=".json"):
            load_config("config.yaml", load_env=False)

    def test_rejects_path_traversal(self):
        with pytest.raises(ValueError, match="traversal"):
            load_config("../secrets/config.json", load_env=False)

    def test_invalid_values_wrapped(self, valid_config_data):
        valid_config_data["predictor"]["dropout"] = 1.5
        config_path = create_temp_config(valid_config_data)
        try:
            with pytest.raises(ValueError, match="Config validation failed"):
                load_config(config_path, load_env=False)
        finally:
            os.unlink(config_path)


class TestEnvSubstitution:
    """Test ${VAR} substitution"""

    def test_substitutes_nested_values(self, monkeypatch):
        monkeypatch.setenv("RISKCORE_TEST_DEVICE", "cuda:1")
        data = {"predictor": {"device": "${RISKCORE_TEST_DEVICE}"}, "list": ["a-${RISKCORE_TEST_DEVICE}"]}
        result = substitute_env_vars(data)
        assert result["predictor"]["device"] == "cuda:1"
        assert result["list"] == ["a-cuda:1"]

    def test_non_strings_untouched(self):
        assert substitute_env_vars({"epochs": 5, "clamp": False}) == {"epochs": 5, "clamp": False}

    def test_missing_variable(self, monkeypatch):
        monkeypatch.delenv("RISKCORE_UNSET_VAR", raising=False)
        with pytest.raises(ValueError, match="RISKCORE_UNSET_VAR"):
            substitute_env_vars("${RISKCORE_UNSET_VAR}")

    def test_config_file_with_env(self, monkeypatch, valid_config_data):
        monkeypatch.setenv("RISKCORE_TEST_DEVICE", "cpu")
        valid_config_data["predictor"]["device"] = "${RISKCORE_TEST_DEVICE}"
        config_path = create_temp_config(valid_config_data)
        try:
            assert load_config(config_path, load_env=False).predictor.device == "cpu"
        finally:
            os.unlink(config_path)


class TestModelValidation:
    """Pydantic field and model validators"""

    def test_macd_periods(self):
        with pytest.raises(ValueError):
            IndicatorConfig(macd_fast_period=26, macd_slow_period=12)

    def test_regime_domains(self):
        with pytest.raises(ValueError):
            RegimeConfig(trend_min=2.0, trend_max=-2.0)

    def test_lstm_units_positive(self):
        with pytest.raises(ValueError):
            PredictorConfig(lstm_units=(0, 8))

    def test_device(self):
        assert PredictorConfig(device="cuda:0").device == "cuda:0"
        with pytest.raises(ValueError):
            PredictorConfig(device="tpu")

    def test_log_level(self):
        with pytest.raises(ValueError):
            EngineConfig(logging={"log_level": "LOUD"})

    def test_volatile_gate_not_looser_than_baseline(self):
        with pytest.raises(ValueError, match="volatile_gate"):
            EngineConfig(risk={"volatile_gate": {"min_win_rate": 0.3, "min_profit_factor": 2.0}})

    def test_trending_gate_not_stricter_than_baseline(self):
        with pytest.raises(ValueError, match="trending_gate"):
            EngineConfig(risk={"trending_gate": {"min_win_rate": 0.35, "min_profit_factor": 1.8}})


class TestConstraintValidation:
    """validate_config_constraints cross-field checks"""

    def test_defaults_pass(self):
        validate_config_constraints(EngineConfig())

    def test_short_lookback(self):
        config = EngineConfig(indicators={"lookback_period": 2})
        with pytest.raises(ValueError, match="lookback_period"):
            validate_config_constraints(config)

    def test_validation_split(self):
        config = EngineConfig(predictor={"validation_split": 0.95})
        with pytest.raises(ValueError, match="validation_split"):
            validate_config_constraints(config)

    def test_size_multipliers(self):
        config = EngineConfig(risk={"volatile_size_multiplier": 1.0, "trending_size_multiplier": 0.8})
        with pytest.raises(ValueError, match="volatile_size_multiplier"):
            validate_config_constraints(config)
