"""
Command-line entry point for running the monthly price forecasting pipeline.
"""

from __future__ import annotations

import argparse
from pathlib import Path

import pandas as pd

from .data import DEFAULT_DATE_COLUMN, DEFAULT_VALUE_COLUMN, GAP_POLICIES
from .features import STRATEGIES
from .models import DEFAULT_MODEL, default_candidates
from .pipeline import MonthlyForecastPipeline
from .reporting import DEFAULT_TITLE, DEFAULT_YLABEL, format_metrics
from .split import DEFAULT_TEST_END, DEFAULT_TRAIN_CUTOFF


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Forecast monthly average commodity prices from daily spreadsheet records."
    )
    parser.add_argument("--data", type=Path, default=Path("data/cheese.xls"), help="Spreadsheet or CSV of daily prices.")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("out/xgboost_avg_predicted_prices.csv"),
        help="Destination CSV for actual, predicted and future rows.",
    )
    parser.add_argument(
        "--chart",
        type=Path,
        default=Path("out/xgboost_avg_predicted_prices.png"),
        help="Destination image for the comparison chart.",
    )
    parser.add_argument("--no-chart", action="store_true", help="Skip rendering the chart.")
    parser.add_argument("--date-column", default=DEFAULT_DATE_COLUMN, help="Name of the date column.")
    parser.add_argument("--value-column", default=DEFAULT_VALUE_COLUMN, help="Name of the price column.")
    parser.add_argument(
        "--train-cutoff",
        type=pd.Timestamp,
        default=DEFAULT_TRAIN_CUTOFF,
        help="Months strictly before this date are used for training.",
    )
    parser.add_argument(
        "--test-end",
        type=pd.Timestamp,
        default=DEFAULT_TEST_END,
        help="Last month (inclusive) of the evaluation window.",
    )
    parser.add_argument("--horizon", type=int, default=6, help="Number of future months to forecast.")
    parser.add_argument(
        "--strategy",
        choices=tuple(STRATEGIES),
        default="sequential_feedback",
        help="Forecasting strategy: lag features with feedback, or constant replay of the last value.",
    )
    parser.add_argument("--model", choices=tuple(default_candidates()), default=DEFAULT_MODEL, help="Regressor to fit.")
    parser.add_argument(
        "--gap-policy",
        choices=GAP_POLICIES,
        default="drop",
        help="How to treat calendar months missing from the aggregated series.",
    )
    parser.add_argument("--lag-count", type=int, default=3, help="Number of monthly lag features.")
    parser.add_argument("--min-value", type=float, default=None, help="Treat observations below this as missing.")
    parser.add_argument("--max-value", type=float, default=None, help="Treat observations above this as missing.")
    parser.add_argument("--title", default=DEFAULT_TITLE, help="Chart title prefix.")
    parser.add_argument("--ylabel", default=DEFAULT_YLABEL, help="Chart y-axis label.")
    parser.add_argument("--quiet", action="store_true", help="Suppress verbose pipeline logging.")
    return parser.parse_args(argv)


def _valid_range(args: argparse.Namespace):
    if args.min_value is None and args.max_value is None:
        return None
    low = args.min_value if args.min_value is not None else float("-inf")
    high = args.max_value if args.max_value is not None else float("inf")
    return low, high


def main(argv=None) -> None:
    args = parse_args(argv)
    pipeline = MonthlyForecastPipeline(
        data_path=args.data,
        output_path=args.output,
        chart_path=None if args.no_chart else args.chart,
        date_column=args.date_column,
        value_column=args.value_column,
        train_cutoff=args.train_cutoff,
        test_end=args.test_end,
        horizon=args.horizon,
        strategy=args.strategy,
        model=args.model,
        gap_policy=args.gap_policy,
        lag_count=args.lag_count,
        valid_range=_valid_range(args),
        chart_title=args.title,
        chart_ylabel=args.ylabel,
        verbose=not args.quiet,
    )
    result = pipeline.run()

    for line in format_metrics(result.metrics):
        print(line)

    summary = result.trend_summary
    print(f"\n=== {args.horizon}-Month Forecast Trend Summary ===")
    print(f"{summary['first_month']} -> {summary['last_month']}: "
          f"{summary['starting_price']:,.4f} -> {summary['ending_price']:,.4f} "
          f"({summary['percent_change'] * 100:.2f}%, {summary['trend_direction']})")
    print("\nForecast data saved to:", args.output.resolve())
    if not args.no_chart:
        print("Chart saved to:", args.chart.resolve())


if __name__ == "__main__":
    main()
