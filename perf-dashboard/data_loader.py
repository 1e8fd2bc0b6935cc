"""
Loads dashboard data from a local directory or a web server and feeds it to
a DashboardSession.

Layout under the data root:
    cases.json               list of case names
    steps.json               step name -> {"description"}
    metrics.json             metric name -> {"description", "header", "unit", "higherIsBetter"}
    results/<case>.json      run -> step -> metric -> [{"run": execution id, "values": [...]}]
    runinfo.json             [{"date", "versions", "host"}], indexed by execution id
    cpuinfo/<host>.txt       host description text
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from config import (
    CASES_FILE, CPUINFO_SUBDIR, DATA_URL, METRICS_FILE, REQUEST_TIMEOUT, RESULTS_SUBDIR,
    RUNINFO_FILE, STEPS_FILE
)
from measurements import Definitions, RunInfo, parse_run_info

logger = logging.getLogger(__name__)


class DataSource:
    """A data root: local directory or http(s) base URL."""

    def __init__(self, base: str = DATA_URL, timeout: int = REQUEST_TIMEOUT):
        self.base = base.rstrip("/")
        self.timeout = timeout

    @property
    def is_remote(self) -> bool:
        return self.base.startswith(("http://", "https://"))

    def read_text(self, path: str) -> Optional[str]:
        """Fetch a file under the data root; None if it cannot be read."""
        if self.is_remote:
            url = f"{self.base}/{path}"
            try:
                response = requests.get(url, timeout=self.timeout)
                response.raise_for_status()
                return response.text
            except requests.RequestException as e:
                logger.error(f"Failed to fetch {url}: {e}")
                return None

        file_path = Path(self.base) / path
        try:
            return file_path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to read {file_path}: {e}")
            return None

    def read_json(self, path: str) -> Optional[Any]:
        text = self.read_text(path)
        if text is None:
            return None
        try:
            return json.loads(text)
        except ValueError as e:
            logger.error(f"Invalid JSON in {path}: {e}")
            return None

    def load_case_names(self) -> List[str]:
        return self.read_json(CASES_FILE) or []

    def load_step_defs(self) -> Dict[str, Dict]:
        return self.read_json(STEPS_FILE) or {}

    def load_metric_defs(self) -> Dict[str, Dict]:
        return self.read_json(METRICS_FILE) or {}

    def load_definitions(self) -> Definitions:
        return Definitions(self.load_step_defs(), self.load_metric_defs())

    def load_case(self, case_name: str) -> Optional[Dict]:
        return self.read_json(f"{RESULTS_SUBDIR}/{case_name}.json")

    def load_run_info(self) -> Optional[Dict[Any, RunInfo]]:
        data = self.read_json(RUNINFO_FILE)
        if data is None:
            return None
        try:
            return parse_run_info(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Invalid run info: {e!r}")
            return None

    def load_cpuinfo(self, host_fingerprint: str) -> Optional[str]:
        return self.read_text(f"{CPUINFO_SUBDIR}/{host_fingerprint}.txt")


def populate_session(session, source: DataSource) -> int:
    """
    Load everything into the session: definitions first, then each case as it
    arrives, then the run info table.

    Returns:
        Number of cases loaded
    """
    session.set_definitions(source.load_definitions())

    case_names = source.load_case_names()
    logger.info(f"Loading {len(case_names)} cases from {source.base}")

    loaded = 0
    for i, case_name in enumerate(case_names):
        case_data = source.load_case(case_name)
        if case_data is None:
            logger.warning(f"Skipping case '{case_name}'")
            continue
        session.add_case(case_name, case_data)
        loaded += 1
        logger.info(f"Progress: {i + 1}/{len(case_names)} cases")

    run_info = source.load_run_info()
    if run_info is None:
        logger.error("Run info unavailable, charts cannot be computed")
    else:
        session.set_run_info(run_info)
        logger.info(f"Loaded run info for {len(run_info)} executions")

    return loaded
