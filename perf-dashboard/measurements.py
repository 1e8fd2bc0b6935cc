"""
In-memory index of benchmark results, execution metadata and the
step/metric definitions table.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MeasurementEntry:
    """One execution's measured values. Only the first value is displayed."""
    execution_id: Any
    values: Tuple[float, ...]

    @property
    def value(self) -> float:
        return self.values[0]


@dataclass(frozen=True)
class RunInfo:
    """Metadata of one execution."""
    date: date
    tool_versions: Dict[str, str] = field(default_factory=dict)
    host_fingerprint: str = ""


def parse_run_date(text: str) -> date:
    """Calendar day (UTC) of an ISO timestamp, time of day dropped."""
    return date.fromisoformat(str(text).split("T")[0])


def parse_run_info(data: Any) -> Dict[Any, RunInfo]:
    """
    Build the execution id -> RunInfo table.

    Accepts either a JSON list, where the execution id is the position in the
    list, or a JSON object keyed by execution id.
    """
    if isinstance(data, list):
        items = enumerate(data)
    elif isinstance(data, dict):
        items = data.items()
    else:
        raise ValueError(f"Unexpected run info payload of type {type(data).__name__}")

    table = {}
    for execution_id, entry in items:
        table[execution_id] = RunInfo(
            date=parse_run_date(entry["date"]),
            tool_versions={k: str(v) for k, v in (entry.get("versions") or {}).items()},
            host_fingerprint=str(entry.get("host") or ""),
        )
    return table


@dataclass(frozen=True)
class StepDef:
    description: str = ""


@dataclass(frozen=True)
class MetricDef:
    description: str = ""
    header: str = ""
    unit: str = ""
    higher_is_better: Optional[bool] = None


class Definitions:
    """Read-only step and metric descriptions, used for labels and tooltips."""

    def __init__(self, steps: Optional[Mapping[str, Mapping]] = None,
                 metrics: Optional[Mapping[str, Mapping]] = None):
        self.steps = {
            name: StepDef(description=d.get("description", ""))
            for name, d in (steps or {}).items()
        }
        self.metrics = {
            name: MetricDef(
                description=d.get("description", ""),
                header=d.get("header", name),
                unit=d.get("unit", ""),
                higher_is_better=d.get("higherIsBetter"),
            )
            for name, d in (metrics or {}).items()
        }

    def step(self, name: str) -> StepDef:
        return self.steps.get(name, StepDef())

    def metric(self, name: str) -> MetricDef:
        return self.metrics.get(name, MetricDef(header=name))

    def step_metric_hint(self, step_name: str, metric_name: str) -> str:
        return (
            f"'{step_name}' step: {self.step(step_name).description}"
            "\n"
            f"'{metric_name}' metric: {self.metric(metric_name).description}"
        )

    def better_text(self, metric_name: str) -> str:
        higher_is_better = self.metric(metric_name).higher_is_better
        if higher_is_better is None:
            return ""
        return "Higher is better" if higher_is_better else "Lower is better"


class MeasurementStore:
    """
    case -> run -> step -> metric -> entries

    Cases are added one at a time as they are loaded; a case is never
    modified once added.
    """

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Dict[str, Tuple[MeasurementEntry, ...]]]]] = {}

    def add_case(self, case_name: str, case_data: Mapping) -> None:
        """
        Add the results of one case.

        Args:
            case_name: Case label
            case_data: Nested run -> step -> metric -> list of
                {"run": execution id, "values": [...]} records
        """
        if case_name in self._data:
            raise ValueError(f"Case '{case_name}' already loaded")

        runs = {}
        for run_name, run_data in case_data.items():
            steps = {}
            for step_name, step_data in run_data.items():
                steps[step_name] = {
                    metric_name: tuple(
                        MeasurementEntry(execution_id=e["run"], values=tuple(e["values"]))
                        for e in entries
                    )
                    for metric_name, entries in step_data.items()
                }
            runs[run_name] = steps
        self._data[case_name] = runs
        logger.debug(f"Loaded case '{case_name}' with {len(runs)} runs")

    def __contains__(self, case_name) -> bool:
        return case_name in self._data

    def __len__(self) -> int:
        return len(self._data)

    def cases(self) -> List[str]:
        """Cases in load order."""
        return list(self._data)

    def runs(self, case_name: str) -> List[str]:
        return list(self._data.get(case_name, {}))

    def step_metrics(self, case_name: str, run_name: str) -> Iterator[Tuple[str, str]]:
        run_data = self._data.get(case_name, {}).get(run_name, {})
        for step_name, step_data in run_data.items():
            for metric_name in step_data:
                yield step_name, metric_name

    def entries(self, case_name: str, run_name: str, step_name: str,
                metric_name: str) -> Tuple[MeasurementEntry, ...]:
        """Entries for one series; empty if the combination has no data."""
        return (
            self._data.get(case_name, {})
            .get(run_name, {})
            .get(step_name, {})
            .get(metric_name, ())
        )

    def has_series(self, case_name: str, run_name: str, step_name: str, metric_name: str) -> bool:
        return len(self.entries(case_name, run_name, step_name, metric_name)) > 0

    def execution_values(self, case_name: str, run_name: str, execution_id,
                         step_metrics: List[Tuple[str, str]]) -> Dict[Tuple[str, str], float]:
        """First value of one execution for each of the given step/metric pairs that has it."""
        values = {}
        for step_name, metric_name in step_metrics:
            for entry in self.entries(case_name, run_name, step_name, metric_name):
                if entry.execution_id == execution_id:
                    values[(step_name, metric_name)] = entry.value
                    break
        return values
