"""
main.py
--------
Entry point for the Subscription Detection Engine.

Reads a normalized transactions CSV, detects recurring payments and writes
the detections to the outputs/ folder.

Usage (from the project root):
    python main.py --input path/to/transactions.csv

    # With optional arguments:
    python main.py --input tx.csv --min-confidence 60
    python main.py --input tx.csv --save-store subscriptions.json
    python main.py --input tx.csv --explain netflix
"""

import sys
import os
import argparse
import logging
import pandas as pd
from datetime import datetime

# Ensure project root is on path (for VS Code runs from any working directory)
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from pipeline import SubscriptionPipeline, transactions_from_frame
from core.subscriptions import create_subscription, calculate_monthly_subscription_cost
from storage.json_repository import JsonFileSubscriptionRepository


# =============================================================================
# LOGGING SETUP
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("main")


# =============================================================================
# ARGUMENT PARSING
# =============================================================================

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Subscription Detection Engine — find recurring payments in bank transactions."
    )
    parser.add_argument(
        "--input", type=str, required=True,
        help="Path to a transactions CSV with transaction_id, date, amount, description columns."
    )
    parser.add_argument(
        "--min-confidence", type=float, default=None,
        help="Minimum confidence score (0-100) to include in output. Defaults to config value (70)."
    )
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Output directory. Defaults to outputs/ in project root."
    )
    parser.add_argument(
        "--save-store", type=str, default=None,
        help="Confirm every detection and save it to this JSON subscription store."
    )
    parser.add_argument(
        "--explain", type=str, default=None, metavar="TERM",
        help="Explain detection for transactions whose description contains TERM."
    )
    args = parser.parse_args(argv)
    if args.min_confidence is not None and not 0 <= args.min_confidence <= 100:
        parser.error("--min-confidence must be between 0 and 100")
    return args


# =============================================================================
# MAIN
# =============================================================================

def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    output_dir = args.output_dir or os.path.join(PROJECT_ROOT, "outputs")
    os.makedirs(output_dir, exist_ok=True)

    # --- Load transactions ---
    logger.info(f"Loading transactions from: {args.input}")
    if not os.path.exists(args.input):
        logger.error(f"Input file not found: {args.input}")
        return 1

    transactions = pd.read_csv(args.input)
    logger.info(f"Loaded {len(transactions):,} transactions.")

    # --- Run pipeline ---
    pipeline = SubscriptionPipeline(min_confidence=args.min_confidence)
    try:
        detections_df = pipeline.run(transactions)
    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        return 1

    # --- Output: Detection Results ---
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    detections_path = os.path.join(output_dir, f"subscriptions_{timestamp}.csv")
    detections_df.to_csv(detections_path, index=False)
    logger.info(f"Detections saved to: {detections_path}")

    _print_summary(detections_df)

    # --- Optional: diagnostics ---
    if args.explain:
        diagnostics = pipeline.detector.explain(transactions_from_frame(transactions), args.explain)
        _print_diagnostics(args.explain, diagnostics)

    # --- Optional: confirm and persist ---
    if args.save_store:
        detected = pipeline.run_detection_only(transactions)
        subscriptions = [create_subscription(d) for d in detected]
        repo = JsonFileSubscriptionRepository(args.save_store)
        if repo.save_subscriptions(subscriptions):
            monthly = calculate_monthly_subscription_cost(subscriptions)
            logger.info(f"Saved {len(subscriptions)} subscriptions. Monthly cost: {monthly:,.2f}.")
        else:
            logger.warning("Subscriptions were detected but could not be saved.")

    return 0


def _print_summary(df: pd.DataFrame):
    """Prints a clean summary table to the console."""
    if df.empty:
        print("\n  No subscriptions detected.\n")
        return

    print("\n" + "=" * 80)
    print("  SUBSCRIPTION DETECTION SUMMARY")
    print("=" * 80)

    print("\n  Detected Subscriptions:")
    print("  " + "-" * 76)
    for _, row in df.iterrows():
        print(
            f"    {row['recipient_name'][:30]:30s}  {row['billing_frequency_label']:10s}"
            f"  {row['average_amount']:>10,.2f}  {row['confidence']:>3}  ({row['confidence_level']})"
        )

    print(f"\n  Confidence Mix:")
    print("  " + "-" * 60)
    for level in ["high", "medium", "low"]:
        count = (df["confidence_level"] == level).sum()
        pct = (count / len(df) * 100) if len(df) > 0 else 0
        print(f"    {level.title():10s}  {count:>5,}  ({pct:.1f}%)")
    print("=" * 80 + "\n")


def _print_diagnostics(term: str, diagnostics: list):
    print(f"\n  Diagnostics for '{term}':")
    if not diagnostics:
        print("    No expense transactions matched.\n")
        return
    for d in diagnostics:
        gaps = ", ".join(f"{g:.0f}" for g in d.gaps) or "-"
        print(f"    [{d.verdict}] {d.recipient_name} ({d.occurrence_count} txns, gaps: {gaps})")
        print(f"        {d.message}")
    print()


if __name__ == "__main__":
    sys.exit(main())
