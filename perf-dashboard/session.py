"""
Dashboard session: owns the selectors, loaded data, computed charts and the
comparison state of one dashboard instance, and wires them together.

Selector changes cascade synchronously:
    cases -> runs -> steps/metrics -> charts -> comparison panels
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from comparison import (
    ComparisonEngine, ComparisonView, ResolvedPin, Slot, host_diff, version_changes
)
from config import (
    DATE_ALL, DATE_CUSTOM, DATE_PAST_DAYS, DATE_RANGES, DEFAULT_CASES, DEFAULT_DATE_RANGE,
    DEFAULT_OPTIONS, DEFAULT_RUNS, DEFAULT_STEP_METRICS, NO_CASES_MESSAGE, NO_RUNS_MESSAGE,
    NO_STEP_METRICS_MESSAGE, OPTION_TOOLTIPS, PAST_DAYS_SPAN, STATE_VERSION
)
from measurements import Definitions, MeasurementStore, RunInfo
from pipeline import (
    ChartData, ColorCache, DateWindow, Options, compute_charts, split_step_metric,
    step_metric_label
)
from scheduler import ManualScheduler, Scheduler
from selector import SelectorMode, ToggleSelector
from state_codec import ViewState, decode, encode

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class DashboardSession:
    """
    All mutable dashboard state.

    Data arrives through add_case() (one case at a time), set_run_info() and
    set_definitions(). Charts stay empty until the run info table is present.
    """

    def __init__(self, today: Optional[Callable[[], date]] = None,
                 scheduler: Optional[Scheduler] = None,
                 initial_cases=DEFAULT_CASES, initial_runs=DEFAULT_RUNS,
                 initial_step_metrics=DEFAULT_STEP_METRICS, initial_options=DEFAULT_OPTIONS,
                 initial_date_range: str = DEFAULT_DATE_RANGE):
        self._today = today or utc_today
        self.store = MeasurementStore()
        self.run_info: Optional[Dict[Any, RunInfo]] = None
        self.definitions = Definitions()
        self.colors = ColorCache()
        self.scheduler = scheduler or ManualScheduler()
        self.comparison = ComparisonEngine(self.scheduler)

        hi = self._today()
        self.date_lo = hi - timedelta(days=PAST_DAYS_SPAN - 1)
        self.date_hi = hi

        self.charts: Dict[str, ChartData] = {}
        self.message: Optional[str] = None
        self.panels: Dict[Slot, Union[ResolvedPin, str]] = {}
        self._repopulating = set()

        self.date_selector = ToggleSelector("date", SelectorMode.ONE_HOT, [initial_date_range])
        self.option_selector = ToggleSelector("option", SelectorMode.MULTI, initial_options)
        self.case_selector = ToggleSelector("case", SelectorMode.MULTI, initial_cases)
        self.run_selector = ToggleSelector("run", SelectorMode.MULTI, initial_runs)
        self.sm_selector = ToggleSelector("step-metric", SelectorMode.MULTI, initial_step_metrics)

        self.date_selector.subscribe(self.update_date_range)
        self.option_selector.subscribe(self.update_charts)
        self.case_selector.subscribe(self.update_run_selector)
        self.run_selector.subscribe(self.update_sm_selector)
        self.sm_selector.subscribe(self.update_charts)
        self.comparison.subscribe(self.refresh_comparison)

        for date_range in DATE_RANGES:
            self.date_selector.add_label(date_range, False)
        for option, tooltip in OPTION_TOOLTIPS.items():
            self.option_selector.add_label(option, False, tooltip)

    # Data

    def set_definitions(self, definitions: Definitions) -> None:
        """Set step/metric descriptions. Call before adding cases, tooltips are built on insertion."""
        self.definitions = definitions

    def add_case(self, case_name: str, case_data: Mapping) -> None:
        self.store.add_case(case_name, case_data)
        self.case_selector.add_label(case_name, True)

    def set_run_info(self, run_info: Mapping[Any, RunInfo]) -> None:
        self.run_info = dict(run_info)
        # The "All" range depends on the earliest execution
        self.update_date_range()

    def earliest_date(self) -> date:
        if not self.run_info:
            return self._today()
        return min(info.date for info in self.run_info.values())

    # Derived view settings

    @property
    def window(self) -> DateWindow:
        return DateWindow(self.date_lo, self.date_hi)

    @property
    def options(self) -> Options:
        return Options.from_labels(self.option_selector.selected())

    def selected_step_metrics(self) -> List[Tuple[str, str]]:
        return [split_step_metric(label) for label in self.sm_selector.selected_in_order()]

    def comparison_view(self) -> ComparisonView:
        return ComparisonView(
            cases=self.case_selector.selected(),
            runs=self.run_selector.selected(),
            step_metrics=tuple(self.selected_step_metrics()),
            window=self.window,
            mean_active=self.options.mean,
        )

    # Selector listeners

    def update_date_range(self, _=None) -> None:
        date_range = self.date_selector.single()
        if date_range == DATE_PAST_DAYS:
            self.date_hi = self._today()
            # Bounds are inclusive
            self.date_lo = self.date_hi - timedelta(days=PAST_DAYS_SPAN - 1)
        elif date_range == DATE_ALL:
            self.date_hi = self._today()
            self.date_lo = self.earliest_date()
        elif date_range == DATE_CUSTOM:
            pass
        else:
            logger.error(f"Unknown date range '{date_range}'")
        self.update_charts()

    def set_custom_window(self, lo: date, hi: date) -> None:
        """Set an explicit date window, switching the date selector to Custom."""
        self.date_lo = lo
        self.date_hi = hi
        if self.date_selector.single() != DATE_CUSTOM:
            self.date_selector.select([DATE_CUSTOM])
        else:
            self.update_charts()

    def update_run_selector(self, _=None) -> None:
        selected_cases = self.case_selector.selected()
        labels = []
        for case_name in self.store.cases():
            if case_name not in selected_cases:
                continue
            labels.extend((run_name, "") for run_name in self.store.runs(case_name))
        self._repopulate(self.run_selector, labels)

    def update_sm_selector(self, _=None) -> None:
        # Runs are being rebuilt, the final run selection triggers this again
        if self.run_selector.name in self._repopulating:
            return
        selected_cases = self.case_selector.selected()
        selected_runs = self.run_selector.selected()
        labels = []
        for case_name in self.store.cases():
            if case_name not in selected_cases:
                continue
            for run_name in self.store.runs(case_name):
                if run_name not in selected_runs:
                    continue
                for step_name, metric_name in self.store.step_metrics(case_name, run_name):
                    labels.append((
                        step_metric_label(step_name, metric_name),
                        self.definitions.step_metric_hint(step_name, metric_name),
                    ))
        self._repopulate(self.sm_selector, labels)

    def _repopulate(self, selector: ToggleSelector, labels: List[Tuple[str, str]]) -> None:
        """
        Replace the labels of a downstream selector.

        Labels from the initial selection come back selected, and labels the
        user had selected before stay selected if they are still offered.
        Listeners are notified once, after the rebuild.
        """
        previous = selector.selected()
        self._repopulating.add(selector.name)
        try:
            selector.remove_all_labels()
            for label, tooltip in labels:
                selector.add_label(label, True, tooltip)
        finally:
            self._repopulating.discard(selector.name)
        offered = set(selector.labels())
        selector.select(sorted(previous & offered))

    def update_charts(self, _=None) -> None:
        # Not yet loaded
        if self.run_info is None:
            return
        # Steps/metrics are being rebuilt
        if self.sm_selector.name in self._repopulating:
            return

        if not self.case_selector.selected():
            self._show_message(NO_CASES_MESSAGE)
            return
        if not self.run_selector.selected():
            self._show_message(NO_RUNS_MESSAGE)
            return
        if not self.sm_selector.selected():
            self._show_message(NO_STEP_METRICS_MESSAGE)
            return

        self.message = None
        self.charts = compute_charts(
            self.sm_selector.selected_in_order(),
            self.case_selector.selected_in_order(),
            self.run_selector.selected_in_order(),
            self.window,
            self.options,
            self.store,
            self.run_info,
            self.colors,
            self.definitions,
        )
        self.refresh_comparison()

    def _show_message(self, text: str) -> None:
        self.charts = {}
        self.message = text
        self.refresh_comparison()

    def visible_charts(self) -> Dict[str, ChartData]:
        """Charts with at least one series."""
        return {label: chart for label, chart in self.charts.items() if not chart.is_empty()}

    # Comparison

    def click_point(self, case_name: str, run_name: str, execution_id) -> None:
        self.comparison.click(case_name, run_name, execution_id)

    def double_click_point(self, case_name: str, run_name: str, execution_id) -> None:
        self.comparison.double_click(case_name, run_name, execution_id)

    def resolve(self, which: Slot) -> Optional[ResolvedPin]:
        return self.comparison.resolve(which, self.comparison_view(), self.store, self.run_info or {})

    def refresh_comparison(self, _=None) -> None:
        view = self.comparison_view()
        for slot in Slot:
            resolved = self.comparison.resolve(slot, view, self.store, self.run_info or {})
            self.panels[slot] = resolved if resolved is not None else self.comparison.placeholder(slot, view)

    def panel(self, which: Slot) -> Union[ResolvedPin, str]:
        """The resolved pin, or the placeholder text to show instead."""
        if Slot(which) not in self.panels:
            self.refresh_comparison()
        return self.panels[Slot(which)]

    def diff(self) -> Dict[str, float]:
        return self.comparison.diff(self.comparison_view(), self.store, self.run_info or {})

    def version_changes(self) -> Dict[str, Tuple[Optional[str], Optional[str]]]:
        a, b = self.resolve(Slot.A), self.resolve(Slot.B)
        if a is None or b is None:
            return {}
        return version_changes(a, b)

    def host_diff(self, fetch_text: Callable[[str], Optional[str]]) -> List[str]:
        a, b = self.resolve(Slot.A), self.resolve(Slot.B)
        if a is None or b is None:
            return []
        return host_diff(a, b, fetch_text)

    # Shareable state

    def save_state(self) -> ViewState:
        return ViewState(
            version=STATE_VERSION,
            date_lo=self.date_lo,
            date_hi=self.date_hi,
            option_selection=self.option_selector.selected(),
            case_selection=self.case_selector.selected(),
            run_selection=self.run_selector.selected(),
            step_metric_selection=self.sm_selector.selected(),
            pinned_a=self.comparison.pinned(Slot.A),
            pinned_b=self.comparison.pinned(Slot.B),
        )

    def load_state(self, state: ViewState) -> bool:
        if state.version > STATE_VERSION:
            logger.error(f"Cannot handle state version '{state.version}'")
            return False

        self.date_lo = state.date_lo
        self.date_hi = state.date_hi
        self.date_selector.select([DATE_CUSTOM])
        self.option_selector.select_none()
        self.option_selector.select(state.option_selection)
        self.case_selector.select_none()
        self.case_selector.select(state.case_selection)
        self.run_selector.select_none()
        self.run_selector.select(state.run_selection)
        self.sm_selector.select_none()
        self.sm_selector.select(state.step_metric_selection)
        self.comparison.restore(state.pinned_a, state.pinned_b)
        return True

    def share_url(self, base_url: str) -> str:
        return f"{base_url.split('#')[0]}#{encode(self.save_state())}"

    def restore_fragment(self, text: str) -> bool:
        """
        Restore a state from a fragment ('#...', bare) or a full share URL.

        Returns:
            True if a state was applied; on failure the session is unchanged
        """
        if "#" in text:
            text = text.split("#", 1)[1]
        state = decode(text)
        if state is None:
            logger.warning("No state restored, keeping the current selections")
            return False
        return self.load_state(state)
