"""Sequence-model (LSTM) regime predictor

Trains a two-layer LSTM classifier over sliding windows of per-bar
indicator snapshots. The predictor owns its model exclusively: it is
built on construction, becomes usable for prediction only after
``train`` or ``load_model``, and releases its weights on ``close``.
"""

import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import torch
from torch import nn
from torch.utils.data import DataLoader, TensorDataset

from riskcore.config.models import PredictorConfig
from riskcore.core.constants import REGIME_ORDER, VERDICT_SOURCE_SEQUENCE, Regime
from riskcore.core.exceptions import (
    InsufficientDataError,
    InvalidInputError,
    TrainingCancelledError,
    TrainingTimeoutError,
    UntrainedModelError,
)
from riskcore.core.types import PriceSeries
from riskcore.data import features
from riskcore.regime.base import RegimeClassifier
from riskcore.regime.models import RegimeIndicators, RegimeVerdict
from riskcore.utils.jsonl_logger import JsonlLogger

logger = logging.getLogger("riskcore.regime.ml_predictor")

NUM_CLASSES = len(REGIME_ORDER)
FEATURE_COUNT = len(features.FEATURE_NAMES)
CHECKPOINT_VERSION = 1

RegimeLabel = Union[Regime, str, RegimeVerdict]


@dataclass
class EpochMetrics:
    """Loss/accuracy after one epoch"""
    epoch: int
    loss: float
    accuracy: float
    val_loss: Optional[float] = None
    val_accuracy: Optional[float] = None


@dataclass
class TrainingHistory:
    """Per-epoch metrics of one training run"""
    epochs: List[EpochMetrics] = field(default_factory=list)

    @property
    def final(self) -> Optional[EpochMetrics]:
        return self.epochs[-1] if self.epochs else None


@dataclass
class FoldResult:
    """Final-epoch metrics of one cross-validation fold"""
    fold: int  # 1-based
    train_accuracy: float
    validation_accuracy: float
    train_loss: float
    validation_loss: float
    train_size: int  # feature rows
    validation_size: int  # feature rows
    train_samples: int = 0  # sequences built from train_size rows
    validation_samples: int = 0


@dataclass
class CrossValidationReport:
    """Per-fold results plus their averages"""
    folds: List[FoldResult]
    avg_train_accuracy: float
    avg_validation_accuracy: float
    avg_train_loss: float
    avg_validation_loss: float

    @classmethod
    def from_folds(cls, folds: List[FoldResult]) -> "CrossValidationReport":
        n = len(folds)
        if n == 0:
            return cls(folds=[], avg_train_accuracy=0.0, avg_validation_accuracy=0.0,
                       avg_train_loss=0.0, avg_validation_loss=0.0)
        return cls(
            folds=folds,
            avg_train_accuracy=sum(f.train_accuracy for f in folds) / n,
            avg_validation_accuracy=sum(f.validation_accuracy for f in folds) / n,
            avg_train_loss=sum(f.train_loss for f in folds) / n,
            avg_validation_loss=sum(f.validation_loss for f in folds) / n,
        )

    def to_dict(self) -> Dict:
        return asdict(self)


class FeatureScaler:
    """Per-feature standardization fitted on training rows"""

    def __init__(self, mean: np.ndarray, std: np.ndarray):
        self.mean = np.asarray(mean, dtype=np.float64)
        self.std = np.asarray(std, dtype=np.float64)

    @classmethod
    def fit(cls, x: np.ndarray) -> "FeatureScaler":
        rows = x.reshape(-1, x.shape[-1])
        mean = rows.mean(axis=0)
        std = rows.std(axis=0)
        std[std == 0] = 1.0
        return cls(mean, std)

    def transform(self, x: np.ndarray) -> np.ndarray:
        return ((x - self.mean) / self.std).astype(np.float32)


class RegimeLSTM(nn.Module):
    """LSTM -> dropout -> LSTM -> dropout -> dense(ReLU) -> 4-way logits"""

    def __init__(
        self,
        feature_count: int = FEATURE_COUNT,
        lstm_units: Tuple[int, int] = (64, 32),
        dense_units: int = 16,
        dropout: float = 0.2,
        num_classes: int = NUM_CLASSES,
    ):
        super().__init__()
        self.lstm1 = nn.LSTM(feature_count, lstm_units[0], batch_first=True)
        self.dropout1 = nn.Dropout(dropout)
        self.lstm2 = nn.LSTM(lstm_units[0], lstm_units[1], batch_first=True)
        self.dropout2 = nn.Dropout(dropout)
        self.dense = nn.Linear(lstm_units[1], dense_units)
        self.output = nn.Linear(dense_units, num_classes)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        x, _ = self.lstm1(x)
        x = self.dropout1(x)
        x, _ = self.lstm2(x)
        x = self.dropout2(x[:, -1, :])
        x = torch.relu(self.dense(x))
        # Softmax is applied at inference; CrossEntropyLoss expects logits
        return self.output(x)


def fold_bounds(n_rows: int, num_folds: int) -> List[Tuple[int, int]]:
    """
    Contiguous, unshuffled validation slices for k-fold cross-validation.

    Each fold holds ``n_rows // num_folds`` rows; the trailing
    ``n_rows % num_folds`` rows are never used for validation.
    """
    fold_size = n_rows // num_folds
    return [(f * fold_size, (f + 1) * fold_size) for f in range(num_folds)]


def split_fold(
    rows: np.ndarray,
    labels: np.ndarray,
    fold: int,
    num_folds: int,
) -> Tuple[List[Tuple[np.ndarray, np.ndarray]], Tuple[np.ndarray, np.ndarray]]:
    """
    Split feature rows and labels for one fold.

    Returns:
        (training pieces, validation slice). The training pieces are the
        contiguous runs before and after the held-out slice, kept apart so
        no sequence built from them reaches into validation rows.
    """
    start, end = fold_bounds(len(rows), num_folds)[fold]
    pieces = [
        (rows[a:b], labels[a:b])
        for a, b in ((0, start), (end, len(rows)))
        if b > a
    ]
    return pieces, (rows[start:end], labels[start:end])


def prepare_labels(regimes: Sequence[RegimeLabel]) -> np.ndarray:
    """Map regimes to class indices (bullish 0, bearish 1, neutral 2, volatile 3)"""
    labels = []
    for item in regimes:
        regime = item.regime if isinstance(item, RegimeVerdict) else Regime(item)
        labels.append(REGIME_ORDER.index(regime))
    return np.array(labels, dtype=np.int64)


class SequenceRegimePredictor(RegimeClassifier):
    """
    Trainable LSTM regime classifier.

    Usage:
        with SequenceRegimePredictor(config) as predictor:
            predictor.train(series, labels)
            verdict = predictor.predict(series)
    """

    def __init__(
        self,
        config: Optional[PredictorConfig] = None,
        training_log: Optional[JsonlLogger] = None,
    ):
        """
        Initialize and build the model.

        Args:
            config: Predictor configuration (defaults if None)
            training_log: Optional JSONL sink for per-epoch/per-fold records
        """
        self.config = config or PredictorConfig()
        self.device = torch.device(self.config.device)
        self.training_log = training_log

        self.model: Optional[RegimeLSTM] = None
        self.optimizer: Optional[torch.optim.Optimizer] = None
        self.scaler: Optional[FeatureScaler] = None
        self._ready = False

        self.initialize()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        """True once the model has been trained or loaded"""
        return self._ready and self.model is not None

    def initialize(self) -> None:
        """Build a fresh model and optimizer; discards any trained state"""
        self.model = self._build_model()
        self.optimizer = self._build_optimizer(self.model)
        self.scaler = None
        self._ready = False
        logger.info(
            f"Sequence model initialized (window={self.config.window}, "
            f"timesteps={self.config.timesteps}, units={self.config.lstm_units}, "
            f"device={self.device})"
        )

    def close(self) -> None:
        """Release the model, optimizer state and scaler"""
        self.model = None
        self.optimizer = None
        self.scaler = None
        self._ready = False
        self._release_device_memory()

    def __enter__(self) -> "SequenceRegimePredictor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _build_model(self) -> RegimeLSTM:
        torch.manual_seed(self.config.seed)
        model = RegimeLSTM(
            lstm_units=tuple(self.config.lstm_units),
            dense_units=self.config.dense_units,
            dropout=self.config.dropout,
        )
        return model.to(self.device)

    def _build_optimizer(self, model: nn.Module) -> torch.optim.Optimizer:
        return torch.optim.Adam(model.parameters(), lr=self.config.learning_rate)

    def _release_device_memory(self) -> None:
        if self.device.type == "cuda" and torch.cuda.is_available():
            torch.cuda.empty_cache()

    # ------------------------------------------------------------------
    # Feature preparation
    # ------------------------------------------------------------------

    def prepare_features(self, series: PriceSeries) -> np.ndarray:
        """
        Slide the feature window across a series.

        Row r is the snapshot of bars [r, r + window), so a series of n bars
        yields n - window + 1 rows (none if shorter than the window).
        Undefined feature values are replaced with 0.

        Returns:
            Array of shape (rows, 8)
        """
        window = self.config.window
        prices = np.asarray(series.prices, dtype=float)
        volumes = np.asarray(series.volumes, dtype=float)

        rows = [
            features.snapshot(prices[end - window:end], volumes[end - window:end], window).as_vector()
            for end in range(window, len(series) + 1)
        ]
        if not rows:
            return np.empty((0, FEATURE_COUNT), dtype=float)

        matrix = np.vstack(rows)
        undefined = ~np.isfinite(matrix)
        if undefined.any():
            logger.warning(f"Replacing {int(undefined.sum())} undefined feature values with 0")
            matrix = np.where(undefined, 0.0, matrix)
        return matrix

    def build_sequences(
        self,
        feature_rows: np.ndarray,
        labels: Optional[np.ndarray] = None,
    ) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        """
        Group consecutive feature rows into model samples.

        Sample k spans rows [k, k + timesteps) and carries the label of its
        last row.

        Returns:
            (x of shape (samples, timesteps, 8), y of shape (samples,) or None)
        """
        t = self.config.timesteps
        n_samples = max(0, len(feature_rows) - t + 1)
        if n_samples == 0:
            x = np.empty((0, t, FEATURE_COUNT), dtype=float)
        else:
            x = np.stack([feature_rows[k:k + t] for k in range(n_samples)])

        y = None
        if labels is not None:
            y = np.asarray(labels, dtype=np.int64)[t - 1:]
        return x, y

    def label_with_detector(self, series: PriceSeries, detector: RegimeClassifier) -> List[Regime]:
        """
        Label each feature row with another classifier's verdict.

        The classifier sees exactly the bars behind each feature row, which
        lets the sequence model be bootstrapped from rule-based history.
        """
        window = self.config.window
        return [
            detector.analyze(series.window(end - window, end)).regime
            for end in range(window, len(series) + 1)
        ]

    def _labelled_rows(
        self,
        series: PriceSeries,
        regimes: Sequence[RegimeLabel],
    ) -> Tuple[np.ndarray, np.ndarray]:
        rows = self.prepare_features(series)
        labels = prepare_labels(regimes)
        if len(labels) != len(rows):
            raise InvalidInputError(
                f"Expected one label per feature row ({len(rows)}), got {len(labels)}"
            )
        return rows, labels

    def _dataset(
        self,
        series: PriceSeries,
        regimes: Sequence[RegimeLabel],
    ) -> Tuple[np.ndarray, np.ndarray]:
        x, y = self.build_sequences(*self._labelled_rows(series, regimes))
        if len(x) == 0:
            raise InsufficientDataError(
                f"Series of {len(series)} bars is too short for one training sample "
                f"(needs {self.config.window + self.config.timesteps - 1})"
            )
        return x, y

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train(
        self,
        series: PriceSeries,
        regimes: Sequence[RegimeLabel],
        cancel_event: Optional[threading.Event] = None,
    ) -> TrainingHistory:
        """
        Train the owned model on a labelled series.

        The trailing ``validation_split`` share of samples (chronological,
        not shuffled) is held out for per-epoch validation metrics. Feature
        scaling is fitted on the first call and reused by later calls until
        ``initialize`` starts over.

        Args:
            series: Historical price/volume series
            regimes: One label per feature row (see prepare_features)
            cancel_event: Set to stop at the next epoch boundary

        Returns:
            TrainingHistory with per-epoch metrics

        Raises:
            InvalidInputError: Label count does not match feature rows
            InsufficientDataError: Series too short for a single sample
            TrainingCancelledError: Cancel requested
            TrainingTimeoutError: max_train_seconds exceeded
        """
        if self.model is None:
            raise UntrainedModelError("Model not initialized")

        deadline = self._deadline()
        x, y = self._dataset(series, regimes)

        n_val = int(len(x) * self.config.validation_split)
        if len(x) - n_val < 1:
            n_val = 0
        split = len(x) - n_val

        # Only kept once training completes, so an aborted run leaves no scaling behind
        scaler = self.scaler if self.scaler is not None else FeatureScaler.fit(x[:split])

        x_scaled = scaler.transform(x)
        x_val = x_scaled[split:] if n_val else None
        y_val = y[split:] if n_val else None

        logger.info(f"Training on {split} samples, validating on {n_val}")
        history = self._fit(
            self.model,
            self.optimizer,
            x_scaled[:split],
            y[:split],
            x_val,
            y_val,
            cancel_event=cancel_event,
            deadline=deadline,
            label="",
        )
        self.scaler = scaler
        self._ready = True

        del x, x_scaled, x_val
        self._release_device_memory()
        return history

    def perform_cross_validation(
        self,
        series: PriceSeries,
        regimes: Sequence[RegimeLabel],
        num_folds: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> CrossValidationReport:
        """
        K-fold cross-validation over contiguous, unshuffled folds.

        Folds partition the feature rows, so each validation slice holds
        ``len(rows) // num_folds`` rows. Sequences are built separately
        inside the validation slice and inside each training run around
        it, so no training sample shares a row with validation. Every fold
        trains a fresh model (and scaler); the predictor's own model is
        left untouched.

        Args:
            series: Historical price/volume series
            regimes: One label per feature row
            num_folds: Number of folds (config default if None)
            cancel_event: Set to stop at the next epoch/fold boundary

        Returns:
            CrossValidationReport with per-fold metrics and averages

        Raises:
            InvalidInputError: num_folds < 2 or label count mismatch
            InsufficientDataError: A fold is shorter than one sequence
        """
        if num_folds is None:
            num_folds = self.config.num_folds
        if num_folds < 2:
            raise InvalidInputError(f"num_folds must be >= 2, got {num_folds}")

        deadline = self._deadline()
        rows, labels = self._labelled_rows(series, regimes)

        t = self.config.timesteps
        if len(rows) // num_folds < t:
            raise InsufficientDataError(
                f"{len(rows)} feature rows cannot fill {num_folds} folds "
                f"of at least {t} rows"
            )

        results: List[FoldResult] = []
        for fold in range(num_folds):
            self._check_cancel(cancel_event, deadline)
            logger.info(f"Training fold {fold + 1}/{num_folds}")

            pieces, (val_rows, val_labels) = split_fold(rows, labels, fold, num_folds)
            train_parts = [
                self.build_sequences(piece_rows, piece_labels)
                for piece_rows, piece_labels in pieces
            ]
            x_train = np.concatenate([x for x, _ in train_parts])
            y_train = np.concatenate([y for _, y in train_parts])
            x_val, y_val = self.build_sequences(val_rows, val_labels)
            train_rows = sum(len(r) for r, _ in pieces)

            scaler = FeatureScaler.fit(x_train)
            fold_model = self._build_model()
            optimizer = self._build_optimizer(fold_model)
            try:
                history = self._fit(
                    fold_model,
                    optimizer,
                    scaler.transform(x_train),
                    y_train,
                    scaler.transform(x_val),
                    y_val,
                    cancel_event=cancel_event,
                    deadline=deadline,
                    label=f"Fold {fold + 1}, ",
                )
            finally:
                del fold_model, optimizer
                self._release_device_memory()

            final = history.final
            result = FoldResult(
                fold=fold + 1,
                train_accuracy=final.accuracy,
                validation_accuracy=final.val_accuracy,
                train_loss=final.loss,
                validation_loss=final.val_loss,
                train_size=train_rows,
                validation_size=len(val_rows),
                train_samples=len(x_train),
                validation_samples=len(x_val),
            )
            results.append(result)
            self._log_training({"event": "fold_complete", **asdict(result)})

            del train_parts, x_train, y_train, x_val, y_val

        report = CrossValidationReport.from_folds(results)
        logger.info(
            f"Cross-validation results: "
            f"avg train accuracy {report.avg_train_accuracy:.2%}, "
            f"avg validation accuracy {report.avg_validation_accuracy:.2%}, "
            f"avg train loss {report.avg_train_loss:.4f}, "
            f"avg validation loss {report.avg_validation_loss:.4f}"
        )
        return report

    def _fit(
        self,
        model: RegimeLSTM,
        optimizer: torch.optim.Optimizer,
        x_train: np.ndarray,
        y_train: np.ndarray,
        x_val: Optional[np.ndarray],
        y_val: Optional[np.ndarray],
        cancel_event: Optional[threading.Event],
        deadline: Optional[float],
        label: str,
    ) -> TrainingHistory:
        cfg = self.config
        loss_fn = nn.CrossEntropyLoss()
        torch.manual_seed(cfg.seed)
        generator = torch.Generator().manual_seed(cfg.seed)
        dataset = TensorDataset(torch.from_numpy(x_train), torch.from_numpy(y_train))
        loader = DataLoader(dataset, batch_size=cfg.batch_size, shuffle=True, generator=generator)

        history = TrainingHistory()
        for epoch in range(cfg.epochs):
            self._check_cancel(cancel_event, deadline)

            model.train()
            total_loss = 0.0
            correct = 0
            seen = 0
            for xb, yb in loader:
                xb = xb.to(self.device)
                yb = yb.to(self.device)
                optimizer.zero_grad()
                logits = model(xb)
                loss = loss_fn(logits, yb)
                loss.backward()
                optimizer.step()

                total_loss += loss.item() * len(yb)
                correct += int((logits.argmax(dim=1) == yb).sum().item())
                seen += len(yb)

            metrics = EpochMetrics(epoch=epoch + 1, loss=total_loss / seen, accuracy=correct / seen)
            if x_val is not None and len(x_val) > 0:
                metrics.val_loss, metrics.val_accuracy = self._evaluate(model, x_val, y_val, loss_fn)
            history.epochs.append(metrics)

            val_text = (
                f", val_loss = {metrics.val_loss:.4f}, val_accuracy = {metrics.val_accuracy:.4f}"
                if metrics.val_loss is not None else ""
            )
            logger.info(
                f"{label}Epoch {epoch + 1}: loss = {metrics.loss:.4f}, "
                f"accuracy = {metrics.accuracy:.4f}{val_text}"
            )
            self._log_training({"event": "epoch", "run": label.strip(", ") or "train", **asdict(metrics)})

        del loader, dataset
        return history

    def _evaluate(
        self,
        model: RegimeLSTM,
        x: np.ndarray,
        y: np.ndarray,
        loss_fn: nn.Module,
    ) -> Tuple[float, float]:
        model.eval()
        with torch.no_grad():
            inputs = torch.from_numpy(x).to(self.device)
            targets = torch.from_numpy(y).to(self.device)
            logits = model(inputs)
            loss = float(loss_fn(logits, targets).item())
            accuracy = float((logits.argmax(dim=1) == targets).float().mean().item())
        del inputs, targets, logits
        return loss, accuracy

    def _deadline(self) -> Optional[float]:
        if self.config.max_train_seconds is None:
            return None
        return time.monotonic() + self.config.max_train_seconds

    @staticmethod
    def _check_cancel(cancel_event: Optional[threading.Event], deadline: Optional[float]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise TrainingCancelledError("Training cancelled")
        if deadline is not None and time.monotonic() > deadline:
            raise TrainingTimeoutError("Training exceeded max_train_seconds")

    def _log_training(self, payload: Dict) -> None:
        if self.training_log is not None:
            self.training_log.log(payload)

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def predict(self, series: PriceSeries) -> RegimeVerdict:
        """
        Classify the most recent sequence of a series.

        Returns:
            RegimeVerdict with the argmax regime, its softmax probability as
            confidence, and the raw trend/momentum/volatility/volume features
            of the latest window as indicators

        Raises:
            UntrainedModelError: Model not trained or loaded
            InsufficientDataError: Series shorter than window + timesteps - 1
        """
        if not self.is_ready:
            raise UntrainedModelError("Sequence model is not trained or loaded")

        rows = self.prepare_features(series)
        t = self.config.timesteps
        if len(rows) < t:
            raise InsufficientDataError(
                f"Need {self.config.window + t - 1} bars for a prediction, got {len(series)}"
            )

        x = self.scaler.transform(rows[-t:])[np.newaxis]
        self.model.eval()
        with torch.no_grad():
            inputs = torch.from_numpy(x).to(self.device)
            probabilities = torch.softmax(self.model(inputs), dim=1)[0].cpu().numpy()
        del inputs

        index = int(np.argmax(probabilities))
        last = rows[-1]
        verdict = RegimeVerdict(
            regime=REGIME_ORDER[index],
            confidence=float(probabilities[index]),
            indicators=RegimeIndicators(
                trend=float(last[6]),
                momentum=float(last[1]),
                volatility=float(last[0]),
                volume=float(last[2]),
            ),
            source=VERDICT_SOURCE_SEQUENCE,
            scores={r.value: float(p) for r, p in zip(REGIME_ORDER, probabilities)},
        )
        logger.debug(f"Predicted {verdict.regime.value} (p={verdict.confidence:.3f})")
        return verdict

    def analyze(self, series: PriceSeries) -> RegimeVerdict:
        return self.predict(series)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_model(self, path: Union[str, Path]) -> Path:
        """
        Save weights, feature scaling and architecture to one checkpoint.

        Raises:
            UntrainedModelError: Nothing trained or loaded to save
        """
        if not self.is_ready:
            raise UntrainedModelError("Model not initialized")

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        checkpoint = {
            "version": CHECKPOINT_VERSION,
            "state_dict": self.model.state_dict(),
            "scaler_mean": torch.from_numpy(self.scaler.mean),
            "scaler_std": torch.from_numpy(self.scaler.std),
            "architecture": {
                "window": self.config.window,
                "timesteps": self.config.timesteps,
                "lstm_units": list(self.config.lstm_units),
                "dense_units": self.config.dense_units,
                "dropout": self.config.dropout,
            },
        }
        torch.save(checkpoint, path)
        logger.info(f"Model saved to {path}")
        return path

    def load_model(self, path: Union[str, Path]) -> None:
        """
        Restore a checkpoint written by save_model; the predictor is ready
        afterwards.

        Raises:
            FileNotFoundError: If the checkpoint doesn't exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Model checkpoint not found: {path}")

        checkpoint = torch.load(path, map_location=self.device, weights_only=True)
        architecture = checkpoint["architecture"]
        self.config = self.config.model_copy(update={
            "window": int(architecture["window"]),
            "timesteps": int(architecture["timesteps"]),
            "lstm_units": tuple(int(u) for u in architecture["lstm_units"]),
            "dense_units": int(architecture["dense_units"]),
            "dropout": float(architecture["dropout"]),
        })

        model = self._build_model()
        model.load_state_dict(checkpoint["state_dict"])
        self.model = model
        self.optimizer = self._build_optimizer(model)
        self.scaler = FeatureScaler(
            checkpoint["scaler_mean"].cpu().numpy(),
            checkpoint["scaler_std"].cpu().numpy(),
        )
        self._ready = True
        logger.info(f"Model loaded from {path}")
