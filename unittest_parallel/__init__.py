"""
unittest-parallel - run a unittest suite across a pool of worker processes
"""

import pkgutil
import warnings

# Declare top-level shortcuts
from unittest_parallel.distributor import Distributor, DistributorProcess
from unittest_parallel.models import ErrorEntry, Severity, TestRequest, TestResult, TestUnit

__all__ = [
    "Distributor",
    "DistributorProcess",
    "ErrorEntry",
    "Severity",
    "TestRequest",
    "TestResult",
    "TestUnit",
    "__version__",
    "version_info",
]


__version__ = (pkgutil.get_data(__package__, "VERSION") or b"").decode("ascii").strip()
version_info = tuple(int(v) if v.isdigit() else v for v in __version__.split("."))


# Ignore noisy twisted deprecation warnings
warnings.filterwarnings("ignore", category=DeprecationWarning, module="twisted")


del pkgutil
del warnings
