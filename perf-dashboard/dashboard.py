"""
Benchmark Results Dashboard - command line front end

Loads benchmark results, applies a view (selections, date window, options,
optionally restored from a share link), exports the chart data as CSV and
reports the comparison between two pinned executions.
"""

import argparse
import logging
import re
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from comparison import ResolvedPin, Slot
from config import DATA_URL, DATE_ALL, DATE_PAST_DAYS, RESULTS_DIR
from data_loader import DataSource, populate_session
from pipeline import ChartData
from session import DashboardSession

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='[%(levelname)s] %(asctime)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def parse_execution_id(text: str):
    """Execution ids are list positions in runinfo.json, so digits become ints."""
    return int(text) if text.isdigit() else text


def apply_selection(selector, labels: Optional[List[str]]) -> None:
    if labels is None:
        return
    selector.select_none()
    selector.select(labels)


def apply_arguments(session: DashboardSession, args) -> None:
    """Apply the command line view settings on top of the current state."""
    apply_selection(session.option_selector, args.options)
    apply_selection(session.case_selector, args.cases)
    apply_selection(session.run_selector, args.runs)
    apply_selection(session.sm_selector, args.metrics)

    if args.date_from or args.date_to:
        session.set_custom_window(
            args.date_from or session.date_lo,
            args.date_to or session.date_hi,
        )
    elif args.date_range:
        session.date_selector.select([args.date_range])

    # A pin given on the command line behaves like clicking the point
    if args.pin_a:
        case_name, run_name, execution_id = args.pin_a
        session.click_point(case_name, run_name, parse_execution_id(execution_id))
        session.scheduler.run_pending()
    if args.pin_b:
        case_name, run_name, execution_id = args.pin_b
        session.double_click_point(case_name, run_name, parse_execution_id(execution_id))
        session.scheduler.run_pending()


def chart_filename(label: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "_", label).strip("_") + ".csv"


def save_charts_csv(charts: Dict[str, ChartData], results_dir: str = RESULTS_DIR) -> List[str]:
    """Save every chart's points to its own CSV file."""
    Path(results_dir).mkdir(parents=True, exist_ok=True)

    paths = []
    for label, chart in charts.items():
        filepath = Path(results_dir) / chart_filename(label)
        chart.to_frame().to_csv(filepath, index=False)
        paths.append(str(filepath))
        logger.info(f"Chart '{label}' saved to {filepath}")
    return paths


def comparison_frame(a: ResolvedPin, b: ResolvedPin, diff: Dict[str, float]) -> pd.DataFrame:
    """One row per step/metric: values of A and B and their ratio."""
    rows = [
        {"metric": key, "A": a.values[key], "B": b.values[key], "B/A": ratio}
        for key, ratio in diff.items()
    ]
    return pd.DataFrame(rows, columns=["metric", "A", "B", "B/A"])


def log_summary(session: DashboardSession) -> None:
    logger.info("=" * 60)
    logger.info("Dashboard View")
    logger.info("=" * 60)
    logger.info(f"Date window: {session.date_lo} .. {session.date_hi} ({session.date_selector.single()})")
    logger.info(f"Options: {sorted(session.option_selector.selected())}")
    logger.info(f"Cases: {session.case_selector.selected_in_order()}")
    logger.info(f"Runs: {session.run_selector.selected_in_order()}")
    logger.info(f"Steps / Metrics: {session.sm_selector.selected_in_order()}")
    if session.message:
        logger.info(session.message)
    for label, chart in session.charts.items():
        points = sum(len(s.points) for s in chart.series)
        logger.info(f"{chart.title}: {len(chart.series)} series, {points} points")
    logger.info("=" * 60)


def report_comparison(session: DashboardSession, source: DataSource, show_host_diff: bool) -> None:
    panels = {slot: session.panel(slot) for slot in Slot}
    for slot, panel in panels.items():
        if isinstance(panel, str):
            print(f"{slot.value}: {panel}")
        else:
            print(f"{slot.value}: {panel.title} ({panel.info.date})")

    a, b = panels[Slot.A], panels[Slot.B]
    if isinstance(a, str) or isinstance(b, str):
        return

    diff = session.diff()
    print(comparison_frame(a, b, diff).to_string(index=False))

    for tool, (a_version, b_version) in session.version_changes().items():
        print(f"{tool}: {a_version} -> {b_version}")

    if show_host_diff:
        print("".join(session.host_diff(source.load_cpuinfo)), end="")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Benchmark Results Dashboard")
    parser.add_argument("--data", default=DATA_URL,
                        help="Data directory or base URL")
    parser.add_argument("--state",
                        help="Share link or '#' fragment to restore")
    parser.add_argument("--cases", nargs="+",
                        help="Cases to select")
    parser.add_argument("--runs", nargs="+",
                        help="Runs to select")
    parser.add_argument("--metrics", nargs="+",
                        help="'step / metric' labels to select")
    parser.add_argument("--options", nargs="*",
                        help="View options (Normalize, Mean, Logarithmic)")
    parser.add_argument("--date-range", choices=[DATE_PAST_DAYS, DATE_ALL],
                        help="Predefined date range")
    parser.add_argument("--from", dest="date_from", type=date.fromisoformat,
                        help="First day of a custom date window (YYYY-MM-DD)")
    parser.add_argument("--to", dest="date_to", type=date.fromisoformat,
                        help="Last day of a custom date window (YYYY-MM-DD)")
    parser.add_argument("--pin-a", nargs=3, metavar=("CASE", "RUN", "ID"),
                        help="Execution to pin as comparison point A")
    parser.add_argument("--pin-b", nargs=3, metavar=("CASE", "RUN", "ID"),
                        help="Execution to pin as comparison point B")
    parser.add_argument("--host-diff", action="store_true",
                        help="Show the host description diff of A and B")
    parser.add_argument("--share-base",
                        help="Dashboard URL to build a share link for")
    parser.add_argument("--output", default=RESULTS_DIR,
                        help="Directory for exported chart CSVs")
    parser.add_argument("--no-export", action="store_true",
                        help="Do not write chart CSVs")
    return parser


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    source = DataSource(args.data)
    session = DashboardSession()
    loaded = populate_session(session, source)
    logger.info(f"Loaded {loaded} cases")

    if args.state:
        session.restore_fragment(args.state)

    apply_arguments(session, args)
    log_summary(session)

    if not args.no_export:
        save_charts_csv(session.visible_charts(), args.output)

    report_comparison(session, source, args.host_diff)

    if args.share_base:
        print(session.share_url(args.share_base))

    return session


if __name__ == "__main__":
    main()
