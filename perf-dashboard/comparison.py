"""
Two-point comparison: pinned executions A and B and the ratio B / A of
their values across the visible metrics.
"""

import difflib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

import numpy as np

from config import PIN_A_DELAY_MS, PIN_A_HINT, PIN_B_DELAY_MS, PIN_B_HINT, PIN_MEAN_HINT
from measurements import MeasurementStore, RunInfo
from pipeline import DateWindow, step_metric_label
from scheduler import Scheduler, TimerHandle
from selector import Observable

logger = logging.getLogger(__name__)


class Slot(Enum):
    A = "A"
    B = "B"


@dataclass(frozen=True)
class PinnedSelection:
    case: Optional[str] = None
    run: Optional[str] = None
    execution_id: Any = None

    @property
    def is_complete(self) -> bool:
        return self.case is not None and self.run is not None and self.execution_id is not None

    @property
    def is_unset(self) -> bool:
        return self.case is None and self.run is None and self.execution_id is None

    def to_dict(self) -> Dict[str, Any]:
        return {"case": self.case, "run": self.run, "executionId": self.execution_id}

    @classmethod
    def from_dict(cls, data: Optional[Mapping]) -> "PinnedSelection":
        if not data:
            return cls()
        return cls(case=data.get("case"), run=data.get("run"), execution_id=data.get("executionId"))


@dataclass(frozen=True)
class ComparisonView:
    """What is currently on screen, as far as pin resolution is concerned."""
    cases: FrozenSet[str]
    runs: FrozenSet[str]
    step_metrics: Tuple[Tuple[str, str], ...]
    window: DateWindow
    mean_active: bool = False


@dataclass
class ResolvedPin:
    slot: Slot
    selection: PinnedSelection
    info: RunInfo
    values: Dict[str, float] = field(default_factory=dict)

    @property
    def title(self) -> str:
        s = self.selection
        return f"{s.case} {s.run} #{s.execution_id}"


def ratio_diff(a_values: Mapping[str, float], b_values: Mapping[str, float]) -> Dict[str, float]:
    """B / A for every key present on both sides; one-sided keys are left out."""
    diff = {}
    with np.errstate(divide="ignore", invalid="ignore"):
        for key, a_value in a_values.items():
            if key not in b_values:
                continue
            diff[key] = float(np.float64(b_values[key]) / np.float64(a_value))
    return diff


def version_changes(a: ResolvedPin, b: ResolvedPin) -> Dict[str, Tuple[Optional[str], Optional[str]]]:
    """Tools whose version differs between the two executions."""
    a_tools = a.info.tool_versions
    b_tools = b.info.tool_versions
    changes = {}
    for tool in sorted(set(a_tools) | set(b_tools)):
        if a_tools.get(tool) != b_tools.get(tool):
            changes[tool] = (a_tools.get(tool), b_tools.get(tool))
    return changes


def host_diff(a: ResolvedPin, b: ResolvedPin, fetch_text: Callable[[str], Optional[str]]) -> List[str]:
    """
    Unified line diff of the host descriptions of both executions.

    Args:
        a, b: Resolved pins
        fetch_text: Returns the host description text for a host fingerprint,
            or None if unavailable

    Returns:
        Diff lines, empty if the hosts are identical or a text is missing
    """
    if a.info.host_fingerprint == b.info.host_fingerprint:
        return []

    a_text = fetch_text(a.info.host_fingerprint)
    b_text = fetch_text(b.info.host_fingerprint)
    if a_text is None or b_text is None:
        logger.warning("Host description unavailable, skipping host diff")
        return []

    return list(difflib.unified_diff(
        a_text.splitlines(keepends=True),
        b_text.splitlines(keepends=True),
        fromfile=f"A: {a.title}",
        tofile=f"B: {b.title}",
    ))


class ComparisonEngine(Observable):
    """
    Holds pins A and B.

    A click pins A after a short delay; a double click within that delay
    cancels the pending A and pins B instead, so only one of them happens
    per gesture.
    """

    def __init__(self, scheduler: Scheduler, pin_a_delay_ms: float = PIN_A_DELAY_MS,
                 pin_b_delay_ms: float = PIN_B_DELAY_MS):
        super().__init__()
        self.scheduler = scheduler
        self.pin_a_delay_ms = pin_a_delay_ms
        self.pin_b_delay_ms = pin_b_delay_ms
        self._pins = {Slot.A: PinnedSelection(), Slot.B: PinnedSelection()}
        self._pending: Optional[TimerHandle] = None

    def pinned(self, which: Slot) -> PinnedSelection:
        return self._pins[Slot(which)]

    def pin(self, which: Slot, case: Optional[str], run: Optional[str], execution_id: Any) -> None:
        self._pins[Slot(which)] = PinnedSelection(case, run, execution_id)
        logger.debug(f"Pinned {Slot(which).value}: {case} {run} #{execution_id}")
        self._notify()

    def restore(self, pinned_a: PinnedSelection, pinned_b: PinnedSelection) -> None:
        """Replace both pins at once, e.g. from a saved view state."""
        self._pins[Slot.A] = pinned_a
        self._pins[Slot.B] = pinned_b
        self._notify()

    def _schedule(self, delay_ms: float, which: Slot, case, run, execution_id) -> TimerHandle:
        self.scheduler.cancel(self._pending)
        self._pending = self.scheduler.schedule(
            delay_ms, lambda: self.pin(which, case, run, execution_id)
        )
        return self._pending

    def click(self, case: str, run: str, execution_id) -> TimerHandle:
        return self._schedule(self.pin_a_delay_ms, Slot.A, case, run, execution_id)

    def double_click(self, case: str, run: str, execution_id) -> TimerHandle:
        return self._schedule(self.pin_b_delay_ms, Slot.B, case, run, execution_id)

    def resolve(self, which: Slot, view: ComparisonView, store: MeasurementStore,
                run_info: Mapping[Any, RunInfo]) -> Optional[ResolvedPin]:
        """
        The pinned execution and its values for the visible metrics, or None
        if the pin is incomplete, filtered out of the current view, or Mean
        is active.
        """
        selection = self.pinned(which)
        if view.mean_active or not selection.is_complete:
            return None
        if selection.case not in view.cases or selection.run not in view.runs:
            return None
        info = run_info.get(selection.execution_id)
        if info is None or not view.window.contains(info.date):
            return None

        values = store.execution_values(selection.case, selection.run,
                                        selection.execution_id, list(view.step_metrics))
        return ResolvedPin(
            slot=Slot(which),
            selection=selection,
            info=info,
            values={step_metric_label(*key): value for key, value in values.items()},
        )

    def placeholder(self, which: Slot, view: ComparisonView) -> str:
        if view.mean_active:
            return PIN_MEAN_HINT
        return PIN_A_HINT if Slot(which) is Slot.A else PIN_B_HINT

    def diff(self, view: ComparisonView, store: MeasurementStore,
             run_info: Mapping[Any, RunInfo]) -> Dict[str, float]:
        a = self.resolve(Slot.A, view, store, run_info)
        b = self.resolve(Slot.B, view, store, run_info)
        if a is None or b is None:
            return {}
        return ratio_diff(a.values, b.values)
