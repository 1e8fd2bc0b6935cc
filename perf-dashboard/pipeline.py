"""
Turns stored measurements into chart-ready series.

Stages always run in this order:
    select & filter -> normalize -> mean -> logarithmic
so that the mean is taken over normalized values and the logarithm is never
itself normalized or averaged.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from config import (
    OPTION_LOGARITHMIC, OPTION_MEAN, OPTION_NORMALIZE, PALETTE, STEP_METRIC_SEPARATOR
)
from measurements import Definitions, MeasurementStore, MetricDef, RunInfo

logger = logging.getLogger(__name__)

POINT_COLUMNS = ["date", "value", "execution_id", "case", "run"]


@dataclass(frozen=True)
class DateWindow:
    """Inclusive calendar-day window; the whole 'hi' day is included."""
    lo: date
    hi: date

    @property
    def upper_bound(self) -> date:
        """Exclusive upper bound: the day after 'hi'."""
        return self.hi + timedelta(days=1)

    def contains(self, day: date) -> bool:
        return self.lo <= day < self.upper_bound


@dataclass(frozen=True)
class Options:
    normalize: bool = False
    mean: bool = False
    logarithmic: bool = False

    @classmethod
    def from_labels(cls, labels: Iterable[str]) -> "Options":
        labels = set(labels)
        return cls(
            normalize=OPTION_NORMALIZE in labels,
            mean=OPTION_MEAN in labels,
            logarithmic=OPTION_LOGARITHMIC in labels,
        )


class ColorCache:
    """Stable palette slot per (case, run) key, assigned in order of first use."""

    def __init__(self, palette: Optional[List[str]] = None):
        self.palette = list(palette or PALETTE)
        self._indices: Dict[Hashable, int] = {}

    def index(self, key: Hashable) -> int:
        if key not in self._indices:
            self._indices[key] = len(self._indices) % len(self.palette)
        return self._indices[key]

    def color(self, key: Hashable) -> str:
        return self.palette[self.index(key)]


@dataclass
class Series:
    """One plotted line. 'points' has the columns in POINT_COLUMNS, sorted by date."""
    label: str
    color: str
    points: pd.DataFrame
    case: Optional[str] = None
    run: Optional[str] = None

    @property
    def values(self) -> List[float]:
        return self.points["value"].tolist()

    @property
    def dates(self) -> List[date]:
        return self.points["date"].tolist()

    def records(self) -> List[Dict[str, Any]]:
        return self.points.to_dict(orient="records")


@dataclass
class ChartData:
    step: str
    metric: str
    series: List[Series] = field(default_factory=list)
    title: str = ""
    y_axis_title: str = ""

    @property
    def label(self) -> str:
        return step_metric_label(self.step, self.metric)

    def is_empty(self) -> bool:
        return not self.series

    def to_frame(self) -> pd.DataFrame:
        """All points of all series in one table, with a 'series' column."""
        frames = [s.points.assign(series=s.label) for s in self.series]
        if not frames:
            return pd.DataFrame(columns=["series"] + POINT_COLUMNS)
        return pd.concat(frames, ignore_index=True)[["series"] + POINT_COLUMNS]


def step_metric_label(step_name: str, metric_name: str) -> str:
    return f"{step_name}{STEP_METRIC_SEPARATOR}{metric_name}"


def split_step_metric(label: str) -> Tuple[str, str]:
    step_name, _, metric_name = label.partition(STEP_METRIC_SEPARATOR)
    return step_name, metric_name


def _in_order(labels: Iterable[str]) -> List[str]:
    # Sets carry no order; sequences are taken as given
    if isinstance(labels, (list, tuple)):
        return list(labels)
    return sorted(labels)


def select_series(
    case_names: Iterable[str],
    run_names: Iterable[str],
    step_name: str,
    metric_name: str,
    window: DateWindow,
    store: MeasurementStore,
    run_info: Mapping[Any, RunInfo],
    colors: ColorCache,
) -> List[Series]:
    """
    Build one series per (case, run) with data for this step/metric,
    keeping executions dated inside the window. Series left empty are dropped.
    """
    series = []
    run_names = _in_order(run_names)
    for case_name in _in_order(case_names):
        for run_name in run_names:
            entries = store.entries(case_name, run_name, step_name, metric_name)
            if not entries:
                continue

            rows = []
            for entry in entries:
                info = run_info.get(entry.execution_id)
                if info is None:
                    logger.warning(f"No run info for execution {entry.execution_id!r} of {case_name} {run_name}")
                    continue
                if not window.contains(info.date):
                    continue
                rows.append((info.date, float(entry.value), entry.execution_id, case_name, run_name))

            if not rows:
                continue

            points = pd.DataFrame(rows, columns=POINT_COLUMNS)
            points = points.sort_values("date", kind="stable").reset_index(drop=True)
            label = f"{case_name} {run_name}"
            series.append(Series(label=label, color=colors.color((case_name, run_name)), points=points,
                                 case=case_name, run=run_name))
    return series


def normalize(series: List[Series]) -> List[Series]:
    """Divide each series by its own earliest value. A zero first value is not special-cased."""
    for s in series:
        first = s.points["value"].iloc[0]
        s.points["value"] = s.points["value"] / first
    return series


def mean(series: List[Series], geometric: bool, colors: ColorCache) -> List[Series]:
    """
    Collapse all series into one, averaging values per calendar date.

    Uses the geometric mean (n-th root of the product) when the values are
    normalized, the arithmetic mean otherwise.
    """
    if not series:
        return []

    combined = pd.concat([s.points for s in series], ignore_index=True)
    rows = []
    with np.errstate(invalid="ignore", divide="ignore", over="ignore"):
        for day, values in combined.groupby("date", sort=True)["value"]:
            n = len(values)
            if geometric:
                value = np.prod(values.to_numpy()) ** (1.0 / n)
            else:
                value = np.sum(values.to_numpy()) / n
            rows.append((day, float(value), None, None, None))

    label = "Geometric mean of normalized values" if geometric else "Arithmetic mean of values"
    points = pd.DataFrame(rows, columns=POINT_COLUMNS)
    return [Series(label=label, color=colors.palette[0], points=points)]


def logarithmic(series: List[Series]) -> List[Series]:
    """Replace every value by its base-10 logarithm."""
    with np.errstate(invalid="ignore", divide="ignore"):
        for s in series:
            s.points["value"] = np.log10(s.points["value"].astype(float))
    return series


def chart_title(step_name: str, metric_name: str, definitions: Definitions) -> str:
    better = definitions.better_text(metric_name)
    title = step_metric_label(step_name, metric_name)
    return f"{title} - {better}" if better else title


def axis_title(metric_def: MetricDef, options: Options) -> str:
    """Y axis title for the active option combination."""
    if options.normalize and options.logarithmic:
        return f"Normalized {metric_def.header} [log10(-)]"
    if options.normalize:
        return f"Normalized {metric_def.header} [-]"
    if options.logarithmic:
        return f"{metric_def.header} [log10({metric_def.unit})]"
    return f"{metric_def.header} [{metric_def.unit}]"


def compute_chart(
    step_name: str,
    metric_name: str,
    case_names: Iterable[str],
    run_names: Iterable[str],
    window: DateWindow,
    options: Options,
    store: MeasurementStore,
    run_info: Mapping[Any, RunInfo],
    colors: ColorCache,
    definitions: Optional[Definitions] = None,
) -> ChartData:
    definitions = definitions or Definitions()

    series = select_series(case_names, run_names, step_name, metric_name,
                           window, store, run_info, colors)
    if options.normalize:
        series = normalize(series)
    if options.mean:
        series = mean(series, geometric=options.normalize, colors=colors)
    if options.logarithmic:
        series = logarithmic(series)

    return ChartData(
        step=step_name,
        metric=metric_name,
        series=series,
        title=chart_title(step_name, metric_name, definitions),
        y_axis_title=axis_title(definitions.metric(metric_name), options),
    )


def compute_charts(
    step_metric_labels: Iterable[str],
    case_names: Iterable[str],
    run_names: Iterable[str],
    window: DateWindow,
    options: Options,
    store: MeasurementStore,
    run_info: Mapping[Any, RunInfo],
    colors: ColorCache,
    definitions: Optional[Definitions] = None,
) -> Dict[str, ChartData]:
    """
    Compute the chart for every selected step/metric label.

    Returns:
        Dict of step/metric label -> ChartData, in label order
    """
    case_names = _in_order(case_names)
    run_names = _in_order(run_names)
    charts = {}
    for label in _in_order(step_metric_labels):
        step_name, metric_name = split_step_metric(label)
        charts[label] = compute_chart(step_name, metric_name, case_names, run_names,
                                      window, options, store, run_info, colors, definitions)
    return charts
