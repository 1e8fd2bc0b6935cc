"""
Configuration for the Benchmark Results Dashboard
"""

# Data location (directory or http(s) base URL)
DATA_URL = "data"
CASES_FILE = "cases.json"
STEPS_FILE = "steps.json"
METRICS_FILE = "metrics.json"
RUNINFO_FILE = "runinfo.json"
RESULTS_SUBDIR = "results"
CPUINFO_SUBDIR = "cpuinfo"
REQUEST_TIMEOUT = 60

# Series colors, assigned to (case, run) pairs in order of first use
PALETTE = [
    "#4c72b0",
    "#dd8452",
    "#55a868",
    "#c44e52",
    "#8172b3",
    "#937860",
    "#da8bc3",
    "#8c8c8c",
    "#ccb974",
    "#64b5cd",
]

# Point pinning: single click pins A after a delay, double click pins B
PIN_A_DELAY_MS = 300
PIN_B_DELAY_MS = 0

# Shareable state
STATE_VERSION = 2

# Date ranges
DATE_PAST_DAYS = "Past 14 Days"
DATE_ALL = "All"
DATE_CUSTOM = "Custom"
DATE_RANGES = [DATE_PAST_DAYS, DATE_ALL, DATE_CUSTOM]
PAST_DAYS_SPAN = 14

# View options
OPTION_NORMALIZE = "Normalize"
OPTION_MEAN = "Mean"
OPTION_LOGARITHMIC = "Logarithmic"
OPTION_TOOLTIPS = {
    OPTION_NORMALIZE: (
        "Display relative values, normalized to the oldest value. This makes "
        "the first displayed data point 1.0 by definition, and other points "
        "are the ratio (value / oldest value)."
    ),
    OPTION_MEAN: (
        "Display a single graph of daily averages computed across all "
        "selected graphs. (Uses the geometric mean if Normalize is selected, "
        "otherwise uses the arithmetic mean.)"
    ),
    OPTION_LOGARITHMIC: "Display log10 of values on Y axis",
}

# Initial selections
DEFAULT_DATE_RANGE = DATE_PAST_DAYS
DEFAULT_OPTIONS = [OPTION_NORMALIZE]
DEFAULT_CASES = [
    "NVDLA:default:gnet",
    "OpenTitan:default:sha",
    "OpenPiton:1x1:dhry",
    "OpenPiton:2x2:fib",
    "OpenPiton:4x4:token",
    "VeeR-EH1:default:cmark",
    "VeeR-EH2:default:cmark_iccm_mt",
    "VeeR-EL2:default:dhry",
    "Vortex:mini:sgemm",
    "Vortex:sane:saxpy",
    "XiangShan:mini-chisel3:microbench",
    "XiangShan:mini-chisel6:cmark",
    "XuanTie-C906:default:cmark",
    "XuanTie-C910:default:memcpy",
    "XuanTie-E902:default:memcpy",
    "XuanTie-E906:default:cmark",
]
DEFAULT_RUNS = ["gcc"]
DEFAULT_STEP_METRICS = ["execute / speed", "verilate / elapsed"]

# Separator between step and metric names in step/metric labels
STEP_METRIC_SEPARATOR = " / "

# Placeholder texts
NO_CASES_MESSAGE = "Please select some Cases"
NO_RUNS_MESSAGE = "Please select some Runs"
NO_STEP_METRICS_MESSAGE = "Please select some Steps / Metrics"
PIN_A_HINT = "Click on a data point to select it for comparison as 'A'"
PIN_B_HINT = "Double click on a data point to select it for comparison as 'B'"
PIN_MEAN_HINT = "Point selection is not available while 'Mean' is selected"

# Results directory for exported chart data
RESULTS_DIR = "results"
