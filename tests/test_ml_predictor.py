"""Tests for the sequence-model regime predictor"""

import threading

import numpy as np
import pytest

from riskcore.config.models import IndicatorConfig, PredictorConfig
from riskcore.core.constants import REGIME_ORDER, VERDICT_SOURCE_RULES, VERDICT_SOURCE_SEQUENCE, Regime
from riskcore.core.exceptions import (
    InsufficientDataError,
    InvalidInputError,
    TrainingCancelledError,
    TrainingTimeoutError,
    UntrainedModelError,
)
from riskcore.regime.base import FallbackClassifier
from riskcore.regime.detector import RegimeDetector
from riskcore.regime.ml_predictor import (
    FeatureScaler,
    SequenceRegimePredictor,
    fold_bounds,
    prepare_labels,
    split_fold,
)
from riskcore.regime.models import RegimeIndicators, RegimeVerdict
from riskcore.utils.jsonl_logger import JsonlLogger
from tests.fixtures.series_generator import SeriesGenerator

WINDOW = 5
TIMESTEPS = 3


@pytest.fixture
def tiny_config():
    """Small, fast model configuration"""
    return PredictorConfig(
        window=WINDOW,
        timesteps=TIMESTEPS,
        lstm_units=(8, 4),
        dense_units=4,
        epochs=2,
        batch_size=8,
        num_folds=2,
        seed=7,
    )


@pytest.fixture
def series():
    return SeriesGenerator(seed=11).mixed_regimes(bars_per_segment=15)


@pytest.fixture
def labeller():
    return RegimeDetector(indicator_config=IndicatorConfig(lookback_period=WINDOW))


@pytest.fixture
def predictor(tiny_config):
    with SequenceRegimePredictor(tiny_config) as p:
        yield p


@pytest.fixture
def trained(predictor, series, labeller):
    predictor.train(series, predictor.label_with_detector(series, labeller))
    return predictor


class TestFeaturePreparation:

    def test_one_row_per_window_including_last_bar(self, predictor, series):
        rows = predictor.prepare_features(series)
        assert rows.shape == (len(series) - WINDOW + 1, 8)
        assert np.isfinite(rows).all()

    def test_short_series_has_no_rows(self, predictor, series):
        assert predictor.prepare_features(series.window(0, WINDOW - 1)).shape == (0, 8)

    def test_sequences_take_label_of_last_row(self, predictor):
        rows = np.arange(6 * 8, dtype=float).reshape(6, 8)
        labels = np.array([0, 1, 2, 3, 0, 1])
        x, y = predictor.build_sequences(rows, labels)

        assert x.shape == (4, TIMESTEPS, 8)
        np.testing.assert_array_equal(x[1], rows[1:4])
        np.testing.assert_array_equal(y, [2, 3, 0, 1])

    def test_labels_one_per_row(self, predictor, series, labeller):
        labels = predictor.label_with_detector(series, labeller)
        assert len(labels) == len(predictor.prepare_features(series))
        assert all(label in REGIME_ORDER for label in labels)

    def test_prepare_labels(self):
        verdict = RegimeVerdict("volatile", 0.5, RegimeIndicators(0.0, 0.0, 0.0, 0.0))
        np.testing.assert_array_equal(
            prepare_labels(["bullish", Regime.NEUTRAL, verdict, "bearish"]),
            [0, 2, 3, 1],
        )

    def test_scaler_standardizes(self):
        x = np.array([[[1.0, 5.0], [3.0, 5.0]]])
        scaled = FeatureScaler.fit(x).transform(x)
        assert scaled.dtype == np.float32
        np.testing.assert_allclose(scaled[0, :, 0], [-1.0, 1.0])
        # Constant feature is centred, not divided by zero
        np.testing.assert_allclose(scaled[0, :, 1], [0.0, 0.0])


class TestCrossValidationFolds:

    def test_fold_partition(self):
        n, k = 23, 5
        bounds = fold_bounds(n, k)
        covered = [i for start, end in bounds for i in range(start, end)]

        assert all(end - start == n // k for start, end in bounds)
        assert len(covered) == len(set(covered))
        assert len(covered) >= n - (n % k)

    def test_split_fold(self):
        rows = np.arange(10)
        labels = np.arange(10) * 10
        pieces, (val_rows, val_labels) = split_fold(rows, labels, fold=1, num_folds=5)

        np.testing.assert_array_equal(val_rows, [2, 3])
        np.testing.assert_array_equal(val_labels, [20, 30])
        assert [list(r) for r, _ in pieces] == [[0, 1], [4, 5, 6, 7, 8, 9]]
        assert [list(lab) for _, lab in pieces] == [[0, 10], [40, 50, 60, 70, 80, 90]]

    def test_first_fold_has_one_training_piece(self):
        pieces, (val_rows, _) = split_fold(np.arange(10), np.arange(10), fold=0, num_folds=5)

        np.testing.assert_array_equal(val_rows, [0, 1])
        assert [list(r) for r, _ in pieces] == [[2, 3, 4, 5, 6, 7, 8, 9]]

    def test_training_sequences_never_touch_validation_rows(self, predictor):
        # Each feature row carries its own index so sequences can be traced back
        rows = np.arange(20, dtype=float).reshape(-1, 1)
        labels = np.zeros(20, dtype=np.int64)
        pieces, (val_rows, val_labels) = split_fold(rows, labels, fold=2, num_folds=4)

        x_val, _ = predictor.build_sequences(val_rows, val_labels)
        train_rows = set()
        for piece_rows, piece_labels in pieces:
            x, y = predictor.build_sequences(piece_rows, piece_labels)
            assert len(x) == len(y)
            train_rows.update(x.ravel().tolist())

        assert set(x_val.ravel().tolist()) == set(range(10, 15))
        assert train_rows.isdisjoint(range(10, 15))


class TestTraining:

    def test_untrained_predict_raises(self, predictor, series):
        assert not predictor.is_ready
        with pytest.raises(UntrainedModelError):
            predictor.predict(series)

    def test_train_records_history(self, predictor, series, labeller):
        history = predictor.train(series, predictor.label_with_detector(series, labeller))

        assert len(history.epochs) == 2
        assert history.final.epoch == 2
        assert 0.0 <= history.final.accuracy <= 1.0
        assert history.final.val_loss is not None
        assert predictor.is_ready

    def test_label_count_mismatch(self, predictor, series, labeller):
        labels = predictor.label_with_detector(series, labeller)
        with pytest.raises(InvalidInputError):
            predictor.train(series, labels[:-1])

    def test_series_too_short_for_a_sample(self, predictor, series, labeller):
        short = series.window(0, WINDOW + TIMESTEPS - 2)
        with pytest.raises(InsufficientDataError):
            predictor.train(short, predictor.label_with_detector(short, labeller))

    def test_cancellation(self, predictor, series, labeller):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(TrainingCancelledError):
            predictor.train(series, predictor.label_with_detector(series, labeller), cancel_event=cancel)
        assert not predictor.is_ready
        assert predictor.scaler is None

    def test_time_budget(self, tiny_config, series, labeller):
        config = tiny_config.model_copy(update={"max_train_seconds": 1e-9})
        with SequenceRegimePredictor(config) as p:
            with pytest.raises(TrainingTimeoutError):
                p.train(series, p.label_with_detector(series, labeller))

    def test_training_log(self, tiny_config, series, labeller, tmp_path):
        log = JsonlLogger(str(tmp_path / "training.jsonl"))
        with SequenceRegimePredictor(tiny_config, training_log=log) as p:
            p.train(series, p.label_with_detector(series, labeller))

        records = log.read()
        assert [r["epoch"] for r in records if r["event"] == "epoch"] == [1, 2]


class TestCrossValidation:

    def test_report(self, predictor, series, labeller):
        labels = predictor.label_with_detector(series, labeller)
        n_rows = len(labels)

        report = predictor.perform_cross_validation(series, labels)

        assert [f.fold for f in report.folds] == [1, 2]
        for f in report.folds:
            assert f.validation_size == n_rows // 2
            assert f.train_size == n_rows - n_rows // 2
            assert f.validation_samples == f.validation_size - TIMESTEPS + 1
            # Sequences straddling the fold boundary are dropped
            assert f.train_samples + f.validation_samples < n_rows - TIMESTEPS + 1
        assert 0.0 <= report.avg_validation_accuracy <= 1.0
        assert report.avg_train_loss == pytest.approx(
            sum(f.train_loss for f in report.folds) / 2
        )
        # Folds train their own models
        assert not predictor.is_ready

    def test_five_folds_validate_on_a_fifth_of_the_rows(self, predictor, series, labeller):
        labels = predictor.label_with_detector(series, labeller)

        report = predictor.perform_cross_validation(series, labels, num_folds=5)

        assert len(report.folds) == 5
        assert all(f.validation_size == len(labels) // 5 for f in report.folds)

    @pytest.mark.parametrize("num_folds", [0, 1])
    def test_rejects_fewer_than_two_folds(self, predictor, series, labeller, num_folds):
        labels = predictor.label_with_detector(series, labeller)
        with pytest.raises(InvalidInputError):
            predictor.perform_cross_validation(series, labels, num_folds=num_folds)

    def test_too_few_samples_for_folds(self, predictor, series, labeller):
        short = series.window(0, WINDOW + TIMESTEPS - 1)
        with pytest.raises(InsufficientDataError):
            predictor.perform_cross_validation(short, predictor.label_with_detector(short, labeller))


class TestPrediction:

    def test_verdict(self, trained, series):
        verdict = trained.predict(series)

        assert verdict.regime in REGIME_ORDER
        assert verdict.source == VERDICT_SOURCE_SEQUENCE
        assert 0.0 <= verdict.confidence <= 1.0
        assert sum(verdict.scores.values()) == pytest.approx(1.0, abs=1e-5)
        assert verdict.confidence == pytest.approx(max(verdict.scores.values()))

    def test_needs_window_plus_timesteps_bars(self, trained, series):
        trained.predict(series.tail(WINDOW + TIMESTEPS - 1))
        with pytest.raises(InsufficientDataError):
            trained.predict(series.tail(WINDOW + TIMESTEPS - 2))

    def test_deterministic(self, trained, series):
        assert trained.predict(series) == trained.predict(series)

    def test_fallback_when_untrained(self, predictor, series, labeller):
        verdict = FallbackClassifier(predictor, labeller).analyze(series)
        assert verdict.source == VERDICT_SOURCE_RULES


class TestPersistence:

    def test_save_load_round_trip(self, trained, series, tiny_config, tmp_path):
        before = trained.predict(series)
        path = trained.save_model(tmp_path / "model" / "regime.pt")

        with SequenceRegimePredictor(tiny_config.model_copy(update={"seed": 99})) as restored:
            restored.load_model(path)
            after = restored.predict(series)

        assert after.regime == before.regime
        assert after.confidence == pytest.approx(before.confidence, abs=1e-6)

    def test_load_restores_architecture(self, trained, tmp_path):
        path = trained.save_model(tmp_path / "regime.pt")
        with SequenceRegimePredictor() as restored:
            restored.load_model(path)
            assert restored.config.window == WINDOW
            assert restored.config.timesteps == TIMESTEPS
            assert tuple(restored.config.lstm_units) == (8, 4)
            assert restored.is_ready

    def test_save_untrained_raises(self, predictor, tmp_path):
        with pytest.raises(UntrainedModelError):
            predictor.save_model(tmp_path / "regime.pt")

    def test_load_missing_checkpoint(self, predictor, tmp_path):
        with pytest.raises(FileNotFoundError):
            predictor.load_model(tmp_path / "missing.pt")


class TestLifecycle:

    def test_close_releases_model(self, tiny_config):
        p = SequenceRegimePredictor(tiny_config)
        p.close()
        assert p.model is None
        assert not p.is_ready

    def test_initialize_discards_training(self, trained):
        trained.initialize()
        assert not trained.is_ready
