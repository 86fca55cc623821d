"""This module contains the default values for all settings used by
unittest-parallel.

Every setting can be overridden from a settings module named by the
UNITTEST_PARALLEL_SETTINGS_MODULE environment variable or with -s NAME=VALUE
on the command line.

Settings are sorted alphabetically.
"""

import os

FORMATTER = "lane"

FORMATTERS = {}
FORMATTERS_BASE = {
    "json": "unittest_parallel.listeners.jsonlog.JsonOutputFormatter",
    "lane": "unittest_parallel.listeners.lane.LaneOutputFormatter",
    "noiseless": "unittest_parallel.listeners.noiseless.NoiselessOutputFormatter",
    "tap": "unittest_parallel.listeners.tap.TapOutputFormatter",
    "xunit": "unittest_parallel.listeners.xunit.XUnitOutputFormatter",
}

INTERPRETER_OPTIONS = ""

LOG_DATEFORMAT = "%Y-%m-%d %H:%M:%S"
LOG_ENABLED = True
LOG_ENCODING = "utf-8"
LOG_FILE = None
LOG_FILE_APPEND = True
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
LOG_LEVEL = "WARNING"
LOG_SHORT_NAMES = False
LOG_STDOUT = False

MEMORY_TRACKING = True

STOP_ON_ERROR = False

TEST_PATHS = ["tests"]
TEST_PATTERN = "test*.py"

WORKERS = (os.cpu_count() or 1) + 1
WORKER_MODULE = "unittest_parallel.cmdline"
WORKER_PYTHONPATH = []
WORKER_SHUTDOWN_TIMEOUT = 10.0
