"""
CLI entry point for batch training of the sequence regime model.

Usage:
    python -m riskcore.training \\
        --data data/spy_daily.csv \\
        --mode train \\
        --model-out models/regime_lstm.pt

Options:
    --config     Path to config JSON file (default: built-in defaults)
    --data       CSV with price (or close) and volume columns, oldest first
    --mode       train | cv (default: train)
    --model-out  Checkpoint path for the trained model (train mode)
    --folds      Number of cross-validation folds (cv mode)
    --epochs     Override predictor.epochs
    --output     Optional path to write JSON report
    --verbose    Enable DEBUG logging
"""

from __future__ import annotations

import argparse
import logging
import sys


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m riskcore.training",
        description="Train or cross-validate the sequence regime model on a price history",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config JSON (default: built-in defaults)",
    )
    parser.add_argument(
        "--data",
        required=True,
        help="CSV with price/close and volume columns",
    )
    parser.add_argument(
        "--mode",
        choices=("train", "cv"),
        default="train",
        help="train a model or run k-fold cross-validation (default: train)",
    )
    parser.add_argument(
        "--model-out",
        default=None,
        help="Where to save the trained checkpoint (train mode)",
    )
    parser.add_argument(
        "--folds",
        type=int,
        default=None,
        help="Number of folds for cross-validation (default: from config)",
    )
    parser.add_argument(
        "--epochs",
        type=int,
        default=None,
        help="Override training epochs",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Optional file path to save JSON report",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable DEBUG logging",
    )
    return parser.parse_args()


def main() -> None:
    args = _parse_args()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger = logging.getLogger("riskcore.training.cli")

    # ── Load config ────────────────────────────────────────────────────
    try:
        from riskcore.config.loader import load_config
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"[ERROR] Config load failed: {e}", file=sys.stderr)
        sys.exit(1)

    if args.epochs is not None:
        if args.epochs < 1:
            print(f"[ERROR] --epochs must be >= 1, got {args.epochs}", file=sys.stderr)
            sys.exit(1)
        config.predictor = config.predictor.model_copy(update={"epochs": args.epochs})

    if args.folds is not None and args.folds < 2:
        print(f"[ERROR] --folds must be >= 2, got {args.folds}", file=sys.stderr)
        sys.exit(1)

    logger.info(f"Config loaded: {args.config or '<defaults>'}")

    # ── Load data ──────────────────────────────────────────────────────
    from riskcore.training.runner import load_series_csv, run_training, save_report
    try:
        series = load_series_csv(args.data)
    except (FileNotFoundError, ValueError) as e:
        print(f"[ERROR] Data load failed: {e}", file=sys.stderr)
        sys.exit(1)
    logger.info(f"Loaded {len(series)} bars from {args.data}")

    # ── Train ──────────────────────────────────────────────────────────
    from riskcore.core.exceptions import RiskCoreError
    from riskcore.utils.logger import get_training_log
    try:
        report = run_training(
            config,
            series,
            mode=args.mode,
            model_out=args.model_out,
            num_folds=args.folds,
            training_log=get_training_log(config.logging),
        )
    except KeyboardInterrupt:
        print("\n[INTERRUPTED] Training aborted by user.", file=sys.stderr)
        sys.exit(0)
    except (RiskCoreError, ValueError) as e:
        logger.error(f"Training failed: {e}")
        sys.exit(1)

    if args.mode == "cv":
        cv = report["cross_validation"]
        print(
            f"Cross-validation over {len(cv['folds'])} folds: "
            f"train acc {cv['avg_train_accuracy']:.2%}, "
            f"val acc {cv['avg_validation_accuracy']:.2%}"
        )
    else:
        final = report["history"][-1]
        print(f"Trained {final['epoch']} epochs: loss {final['loss']:.4f}, acc {final['accuracy']:.2%}")
        print(f"Latest regime: {report['latest_verdict']['regime']} "
              f"({report['latest_verdict']['confidence']:.2f})")

    # ── Optional JSON output ───────────────────────────────────────────
    if args.output:
        try:
            path = save_report(report, args.output)
            logger.info(f"Report saved to {path}")
        except OSError as e:
            logger.warning(f"Failed to save report: {e}")


if __name__ == "__main__":
    main()
