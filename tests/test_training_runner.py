"""Tests for batch training and its CLI"""

import json
import sys

import pandas as pd
import pytest

from riskcore.config.models import EngineConfig
from riskcore.core.exceptions import InvalidInputError
from riskcore.training import __main__ as cli
from riskcore.training.runner import load_series_csv, run_training, save_report
from tests.fixtures.series_generator import SeriesGenerator


@pytest.fixture
def config():
    return EngineConfig(
        predictor={
            "window": 5,
            "timesteps": 3,
            "lstm_units": (8, 4),
            "dense_units": 4,
            "epochs": 2,
            "batch_size": 8,
            "num_folds": 2,
        },
    )


@pytest.fixture
def series():
    return SeriesGenerator(seed=21).mixed_regimes(bars_per_segment=15)


@pytest.fixture
def csv_path(tmp_path, series):
    path = tmp_path / "prices.csv"
    pd.DataFrame({
        "timestamp": pd.date_range("2024-01-01", periods=len(series), freq="D").strftime("%Y-%m-%d"),
        "close": series.prices,
        "volume": series.volumes,
    }).to_csv(path, index=False)
    return path


class TestLoadSeries:

    def test_load_csv(self, csv_path, series):
        loaded = load_series_csv(str(csv_path))
        assert len(loaded) == len(series)
        assert loaded.prices == pytest.approx(series.prices)
        assert loaded.timestamps[0] == "2024-01-01"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_series_csv(str(tmp_path / "missing.csv"))

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "bad.csv"
        pd.DataFrame({"close": [1.0, 2.0]}).to_csv(path, index=False)
        with pytest.raises(InvalidInputError):
            load_series_csv(str(path))


class TestRunTraining:

    def test_train_and_save(self, config, series, tmp_path):
        report = run_training(config, series, mode="train", model_out=str(tmp_path / "regime.pt"))

        assert report["mode"] == "train"
        assert report["bars"] == len(series)
        assert len(report["history"]) == 2
        assert sum(report["labels"].values()) == pytest.approx(1.0)
        assert (tmp_path / "regime.pt").exists()
        assert report["latest_verdict"]["source"] == "sequence_model"

    def test_cross_validation(self, config, series):
        report = run_training(config, series, mode="cv")
        assert len(report["cross_validation"]["folds"]) == 2

    def test_fold_override(self, config, series):
        report = run_training(config, series, mode="cv", num_folds=3)
        assert len(report["cross_validation"]["folds"]) == 3

    def test_unknown_mode(self, config, series):
        with pytest.raises(ValueError):
            run_training(config, series, mode="tune")

    def test_save_report(self, config, series, tmp_path):
        report = run_training(config, series, mode="cv")
        path = save_report(report, str(tmp_path / "out" / "report.json"))
        assert json.loads(path.read_text())["mode"] == "cv"


class TestCli:

    def test_cv_run_writes_report(self, csv_path, tmp_path, monkeypatch):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({
            "predictor": {"window": 5, "timesteps": 3, "lstm_units": [8, 4], "dense_units": 4,
                          "batch_size": 8},
            "logging": {"log_dir": str(tmp_path / "logs")},
        }))
        output = tmp_path / "report.json"
        monkeypatch.setattr(sys, "argv", [
            "riskcore.training", "--config", str(config_path), "--data", str(csv_path),
            "--mode", "cv", "--folds", "2", "--epochs", "1", "--output", str(output),
        ])

        cli.main()

        report = json.loads(output.read_text())
        assert len(report["cross_validation"]["folds"]) == 2
        assert (tmp_path / "logs" / "training.jsonl").exists()

    def test_missing_data_exits(self, tmp_path, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["riskcore.training", "--data", str(tmp_path / "nope.csv")])
        with pytest.raises(SystemExit) as exc_info:
            cli.main()
        assert exc_info.value.code == 1

    def test_invalid_epochs_exits(self, csv_path, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["riskcore.training", "--data", str(csv_path), "--epochs", "0"])
        with pytest.raises(SystemExit) as exc_info:
            cli.main()
        assert exc_info.value.code == 1
