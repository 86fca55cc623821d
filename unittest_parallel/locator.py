from __future__ import annotations

import logging
import os
import sys
import unittest
from typing import TYPE_CHECKING

from unittest_parallel.exceptions import ReplayError
from unittest_parallel.models import TestUnit
from unittest_parallel.utils.conf import split_pair
from unittest_parallel.workers.replay import read_replay_log

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from unittest_parallel.settings import BaseSettings
    from unittest_parallel.workers.replay import ReplayLog


logger = logging.getLogger(__name__)


class TestLocator:
    """Turn names given on the command line (or configured test paths) into
    an ordered list of :class:`~unittest_parallel.models.TestUnit`.

    A name may be a directory (discovered with ``pattern``), a ``.py`` file
    or a dotted ``unittest`` name (module, class or method). Units are
    numbered in discovery order; a test found twice is only kept once.
    """

    __test__ = False

    def __init__(
        self,
        pattern: str = "test*.py",
        top_level_dir: str | None = None,
        loader: unittest.TestLoader | None = None,
    ):
        self.pattern: str = pattern
        self.top_level_dir: str = top_level_dir or os.getcwd()
        self.loader: unittest.TestLoader = loader or unittest.TestLoader()
        self.search_paths: list[str] = []

    @classmethod
    def from_settings(cls, settings: BaseSettings) -> TestLocator:
        return cls(pattern=settings.get("TEST_PATTERN") or "test*.py")

    def get_tests_from_names(self, names: Iterable[str]) -> list[TestUnit]:
        if self.top_level_dir not in sys.path:
            sys.path.insert(0, self.top_level_dir)
        units: list[TestUnit] = []
        seen: set[str] = set()
        for name in names:
            suite = self._load(name)
            for test in _flatten(suite):
                class_name = f"{type(test).__module__}.{type(test).__qualname__}"
                method = getattr(test, "_testMethodName", None) or str(test)
                key = f"{class_name}.{method}"
                if key in seen:
                    continue
                seen.add(key)
                units.append(TestUnit(len(units), class_name, method))
        logger.debug("Located %(count)d tests", {"count": len(units)})
        return units

    def get_tests_from_config(self, settings: BaseSettings) -> list[TestUnit]:
        paths = [p for p in settings.getlist("TEST_PATHS") if os.path.exists(p)]
        return self.get_tests_from_names(paths)

    def get_tests_from_replay(self, spec: str) -> ReplayLog:
        """Load the results of one lane of a recorded run, given as
        ``FILE:LANE``."""
        try:
            path, lane = split_pair(spec, "replay source")
        except ValueError as e:
            raise ReplayError(f"{e}, expected FILE:LANE") from e
        return read_replay_log(path, lane)

    def _load(self, name: str) -> unittest.TestSuite:
        """Load ``name``. Raises :exc:`ImportError` if anything it names
        cannot be imported, rather than letting ``unittest`` turn that into a
        synthetic failing test."""
        self.loader.errors = []
        if os.path.isdir(name):
            suite = self.loader.discover(
                os.path.abspath(name),
                pattern=self.pattern,
                top_level_dir=self._top_level_for(name),
            )
        elif name.endswith(".py") and os.path.isfile(name):
            suite = self.loader.loadTestsFromName(self._module_name(name))
        else:
            try:
                suite = self.loader.loadTestsFromName(name)
            except TypeError as e:
                # e.g. os.sep: imports fine but is neither a test nor a suite
                raise ValueError(f"{name} does not name a test: {e}") from e
        if self.loader.errors:
            raise ImportError(
                f"Unable to load tests from {name}:\n" + "\n".join(self.loader.errors)
            )
        return suite

    def _top_level_for(self, path: str) -> str:
        path = os.path.abspath(path)
        inside = path == self.top_level_dir or path.startswith(self.top_level_dir + os.sep)
        if inside and (
            path == self.top_level_dir or os.path.isfile(os.path.join(path, "__init__.py"))
        ):
            return self.top_level_dir
        # a plain directory of test modules is importable from itself only
        if path not in self.search_paths:
            self.search_paths.append(path)
        return path

    def _module_name(self, path: str) -> str:
        relpath = os.path.relpath(os.path.abspath(path), self.top_level_dir)
        if relpath.startswith(os.pardir):
            raise ValueError(f"{path} is outside {self.top_level_dir}")
        return os.path.splitext(relpath)[0].replace(os.sep, ".")


def _flatten(suite: unittest.TestSuite | unittest.TestCase) -> Iterator[unittest.TestCase]:
    if isinstance(suite, unittest.TestSuite):
        for test in suite:
            yield from _flatten(test)
    else:
        yield suite
