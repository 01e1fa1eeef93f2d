"""
Batch training / cross-validation of the sequence regime predictor.

Labels come from the rule-based detector run over the same windows the
sequence features are built from, so a plain price/volume history is
enough to train.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

from riskcore.config.models import EngineConfig
from riskcore.core.types import PriceSeries
from riskcore.regime.detector import RegimeDetector
from riskcore.regime.ml_predictor import SequenceRegimePredictor
from riskcore.utils.jsonl_logger import JsonlLogger

logger = logging.getLogger("riskcore.training")

MODE_TRAIN = "train"
MODE_CV = "cv"


def load_series_csv(path: str) -> PriceSeries:
    """
    Load a price/volume history from CSV.

    Raises:
        FileNotFoundError: If the CSV doesn't exist
        InvalidInputError: If required columns are missing
    """
    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    frame = pd.read_csv(csv_path)
    if "timestamp" in frame.columns:
        frame = frame.sort_values("timestamp", kind="stable")
    return PriceSeries.from_frame(frame)


def run_training(
    config: EngineConfig,
    series: PriceSeries,
    mode: str = MODE_TRAIN,
    model_out: Optional[str] = None,
    num_folds: Optional[int] = None,
    training_log: Optional[JsonlLogger] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Dict[str, Any]:
    """
    Label a series with the rule-based detector, then train or cross-validate.

    Args:
        config: Engine configuration
        series: Price/volume history
        mode: "train" or "cv"
        model_out: Checkpoint path to save the trained model (train mode)
        num_folds: Fold count override (cv mode)
        training_log: Optional JSONL sink for per-epoch/per-fold records
        cancel_event: Cooperative cancellation flag

    Returns:
        JSON-serialisable report
    """
    if mode not in (MODE_TRAIN, MODE_CV):
        raise ValueError(f"mode must be '{MODE_TRAIN}' or '{MODE_CV}', got {mode!r}")

    detector = RegimeDetector(
        config.regime,
        config.indicators.model_copy(update={"lookback_period": config.predictor.window}),
        periods_per_year=config.risk.periods_per_year,
    )

    with SequenceRegimePredictor(config.predictor, training_log=training_log) as predictor:
        labels = predictor.label_with_detector(series, detector)
        distribution = pd.Series([label.value for label in labels]).value_counts(normalize=True)
        logger.info(
            f"Labelled {len(labels)} windows: "
            + ", ".join(f"{k}={v:.1%}" for k, v in distribution.items())
        )

        report: Dict[str, Any] = {
            "mode": mode,
            "bars": len(series),
            "labels": {k: float(v) for k, v in distribution.items()},
        }

        if mode == MODE_CV:
            cv_report = predictor.perform_cross_validation(
                series, labels, num_folds=num_folds, cancel_event=cancel_event
            )
            report["cross_validation"] = cv_report.to_dict()
        else:
            history = predictor.train(series, labels, cancel_event=cancel_event)
            report["history"] = [dataclasses.asdict(e) for e in history.epochs]
            if model_out:
                report["model_path"] = str(predictor.save_model(model_out))
            report["latest_verdict"] = predictor.predict(series).to_dict()

    return report


def save_report(report: Dict[str, Any], path: str) -> Path:
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(report, f, indent=2, default=str)
    return output_path
