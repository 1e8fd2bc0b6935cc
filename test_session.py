"""
Tests for the dashboard session: selector cascade, date ranges, charts,
comparison panels and share links.
"""

from datetime import date

import pytest

from comparison import PinnedSelection, ResolvedPin, Slot
from config import (
    DATE_ALL, DATE_CUSTOM, DATE_PAST_DAYS, NO_CASES_MESSAGE, NO_RUNS_MESSAGE,
    NO_STEP_METRICS_MESSAGE, PIN_A_HINT, PIN_MEAN_HINT
)
from measurements import Definitions, RunInfo
from session import DashboardSession
from state_codec import ViewState, encode

TODAY = date(2024, 1, 20)

RUN_INFO = {
    0: RunInfo(date(2024, 1, 10), {"gcc": "13.1"}, "host-a"),
    1: RunInfo(date(2024, 1, 15), {"gcc": "13.2"}, "host-a"),
    2: RunInfo(date(2024, 1, 19), {"gcc": "13.2"}, "host-b"),
    3: RunInfo(date(2024, 1, 19)),
    4: RunInfo(date(2024, 1, 19)),
    5: RunInfo(date(2023, 12, 1)),
}

CASE_X = {
    "gcc": {
        "compile": {"time": [
            {"run": 5, "values": [40.0]},
            {"run": 0, "values": [10.0]},
            {"run": 1, "values": [20.0]},
            {"run": 2, "values": [5.0]},
        ]},
        "execute": {"speed": [{"run": 1, "values": [3.0]}, {"run": 2, "values": [6.0]}]},
    },
    "clang": {"compile": {"time": [{"run": 3, "values": [8.0]}]}},
}
CASE_Y = {"gcc": {"compile": {"time": [{"run": 4, "values": [7.0]}]}}}

DEFINITIONS = Definitions(
    steps={"compile": {"description": "Build the model"}, "execute": {"description": "Run it"}},
    metrics={
        "time": {"description": "Wall clock", "header": "Time", "unit": "s", "higherIsBetter": False},
        "speed": {"description": "Cycles per second", "header": "Speed", "unit": "Hz", "higherIsBetter": True},
    },
)


def new_session(with_run_info=True):
    session = DashboardSession(
        today=lambda: TODAY,
        initial_cases=["x"],
        initial_runs=["gcc"],
        initial_step_metrics=["compile / time"],
    )
    session.set_definitions(DEFINITIONS)
    session.add_case("x", CASE_X)
    session.add_case("y", CASE_Y)
    if with_run_info:
        session.set_run_info(RUN_INFO)
    return session


@pytest.fixture
def session():
    return new_session()


def test_no_charts_before_run_info():
    session = new_session(with_run_info=False)
    assert session.charts == {}
    assert session.message is None
    assert session.panel(Slot.A) == PIN_A_HINT


def test_selectors_follow_loaded_cases(session):
    assert session.date_selector.selected() == {DATE_PAST_DAYS}
    assert session.option_selector.selected() == {"Normalize"}
    assert session.case_selector.labels() == ["x", "y"]
    assert session.case_selector.selected() == {"x"}
    assert session.run_selector.labels() == ["clang", "gcc"]
    assert session.run_selector.selected() == {"gcc"}
    assert session.sm_selector.labels() == ["compile / time", "execute / speed"]
    assert session.sm_selector.selected() == {"compile / time"}
    assert session.sm_selector.tooltip("execute / speed") == (
        "'execute' step: Run it\n'speed' metric: Cycles per second"
    )


def test_run_selector_repopulated_on_case_change(session):
    session.case_selector.select_none()
    assert session.run_selector.labels() == []
    session.case_selector.select(["y"])
    assert session.run_selector.labels() == ["gcc"]
    assert session.sm_selector.labels() == ["compile / time"]


def test_charts_for_past_14_days(session):
    assert session.date_lo == date(2024, 1, 7)
    assert session.date_hi == TODAY
    chart = session.charts["compile / time"]
    assert chart.title == "compile / time - Lower is better"
    assert chart.y_axis_title == "Normalized Time [-]"
    assert [s.label for s in chart.series] == ["x gcc"]
    # Execution 5 is older than the window
    assert chart.series[0].values == [1.0, 2.0, 0.5]


def test_all_date_range_starts_at_earliest_execution(session):
    session.date_selector.select([DATE_ALL])
    assert session.date_lo == date(2023, 12, 1)
    assert session.charts["compile / time"].series[0].values == [1.0, 0.25, 0.5, 0.125]


def test_custom_window_switches_date_selector(session):
    session.set_custom_window(date(2024, 1, 15), date(2024, 1, 15))
    assert session.date_selector.selected() == {DATE_CUSTOM}
    assert session.charts["compile / time"].series[0].values == [1.0]
    session.set_custom_window(date(2024, 1, 19), date(2024, 1, 19))
    assert session.charts["compile / time"].series[0].dates == [date(2024, 1, 19)]


@pytest.mark.parametrize("selector_name, message", [
    ("case_selector", NO_CASES_MESSAGE),
    ("run_selector", NO_RUNS_MESSAGE),
    ("sm_selector", NO_STEP_METRICS_MESSAGE),
])
def test_empty_selection_shows_message(session, selector_name, message):
    getattr(session, selector_name).select_none()
    assert session.charts == {}
    assert session.message == message


def test_option_changes_recompute_charts(session):
    session.option_selector.select_none()
    session.case_selector.select(["y"])
    session.option_selector.select(["Mean"])
    chart = session.charts["compile / time"]
    assert len(chart.series) == 1
    assert chart.series[0].values == [10.0, 20.0, 6.0]
    assert set(session.visible_charts()) == {"compile / time"}


def test_click_and_double_click_pin_points(session):
    session.click_point("x", "gcc", 1)
    assert session.panel(Slot.A) == PIN_A_HINT
    session.scheduler.advance(300)
    panel_a = session.panel(Slot.A)
    assert isinstance(panel_a, ResolvedPin)
    assert panel_a.values == {"compile / time": 20.0}

    session.click_point("x", "gcc", 0)
    session.scheduler.advance(50)
    session.double_click_point("x", "gcc", 2)
    session.scheduler.run_pending()
    assert session.comparison.pinned(Slot.A) == PinnedSelection("x", "gcc", 1)
    assert session.comparison.pinned(Slot.B) == PinnedSelection("x", "gcc", 2)

    session.sm_selector.select_all()
    assert session.diff() == {"compile / time": 0.25, "execute / speed": 2.0}
    assert session.version_changes() == {}
    texts = {"host-a": "cores: 8\n", "host-b": "cores: 16\n"}
    assert "+cores: 16\n" in session.host_diff(texts.get)


def test_mean_hides_pins_until_turned_off(session):
    session.comparison.pin(Slot.A, "x", "gcc", 0)
    session.option_selector.select(["Mean"])
    assert session.panel(Slot.A) == PIN_MEAN_HINT
    assert session.panel(Slot.B) == PIN_MEAN_HINT
    session.option_selector.deselect(["Mean"])
    assert isinstance(session.panel(Slot.A), ResolvedPin)


def test_pins_outside_view_show_placeholder(session):
    session.comparison.pin(Slot.A, "x", "gcc", 5)
    assert session.panel(Slot.A) == PIN_A_HINT
    session.date_selector.select([DATE_ALL])
    assert isinstance(session.panel(Slot.A), ResolvedPin)
    session.run_selector.deselect(["gcc"])
    assert session.panel(Slot.A) == PIN_A_HINT


def test_share_and_restore(session):
    session.option_selector.select(["Logarithmic"])
    session.case_selector.select(["y"])
    session.run_selector.select(["clang"])
    session.sm_selector.select_all()
    session.set_custom_window(date(2024, 1, 9), date(2024, 1, 19))
    session.comparison.pin(Slot.A, "x", "gcc", 0)
    session.comparison.pin(Slot.B, "y", "gcc", 4)

    url = session.share_url("https://example.org/dash/#stale")
    assert url.startswith("https://example.org/dash/#")
    assert "#stale" not in url

    restored = new_session()
    assert restored.restore_fragment(url)
    assert restored.save_state() == session.save_state()
    assert restored.date_selector.selected() == {DATE_CUSTOM}
    assert restored.diff() == session.diff()


def test_restore_failure_keeps_current_state(session):
    before = session.save_state()
    assert not session.restore_fragment("#garbage!")
    assert session.save_state() == before
    assert session.date_selector.selected() == {DATE_PAST_DAYS}


def test_restore_version_1_leaves_pins_unset(session):
    session.comparison.pin(Slot.A, "x", "gcc", 0)
    state = ViewState(
        version=1, date_lo=date(2024, 1, 1), date_hi=date(2024, 1, 31),
        option_selection=[], case_selection=["x"], run_selection=["gcc"],
        step_metric_selection=["execute / speed"],
    )
    assert session.restore_fragment(encode(state))
    assert session.comparison.pinned(Slot.A).is_unset
    assert session.comparison.pinned(Slot.B).is_unset
    assert session.charts["execute / speed"].series[0].values == [3.0, 6.0]


def test_load_state_rejects_newer_version(session):
    state = ViewState(version=3, date_lo=date(2024, 1, 1), date_hi=date(2024, 1, 2))
    assert not session.load_state(state)
    assert session.date_selector.selected() == {DATE_PAST_DAYS}


def test_run_choice_survives_case_change(session):
    session.run_selector.select(["clang"])
    session.case_selector.select(["y"])
    assert session.run_selector.selected() == {"clang", "gcc"}
    assert [s.label for s in session.charts["compile / time"].series] == ["x clang", "x gcc", "y gcc"]


def test_step_metric_choice_survives_run_change(session):
    session.sm_selector.select(["execute / speed"])
    session.run_selector.select(["clang"])
    assert session.sm_selector.selected() == {"compile / time", "execute / speed"}
    assert set(session.charts) == {"compile / time", "execute / speed"}


def test_restored_state_survives_later_cases():
    session = DashboardSession(
        today=lambda: TODAY,
        initial_cases=["x"],
        initial_runs=["gcc"],
        initial_step_metrics=["compile / time"],
    )
    session.set_definitions(DEFINITIONS)
    session.add_case("x", CASE_X)
    session.set_run_info(RUN_INFO)
    state = ViewState(
        version=2, date_lo=date(2024, 1, 1), date_hi=date(2024, 1, 31),
        option_selection=[], case_selection=["x"], run_selection=["clang", "gcc"],
        step_metric_selection=["compile / time", "execute / speed"],
    )
    assert session.load_state(state)

    session.add_case("y", CASE_Y)
    assert session.case_selector.labels() == ["x", "y"]
    assert session.save_state() == state
    assert set(session.charts) == {"compile / time", "execute / speed"}
    assert [s.label for s in session.charts["compile / time"].series] == ["x clang", "x gcc"]
