import os
import sys
import textwrap

import pytest

from tests import PROJECT_DIR
from unittest_parallel.locator import TestLocator
from unittest_parallel.settings import Settings

MODULE = textwrap.dedent(
    """
    import unittest

    class {name}(unittest.TestCase):
        def test_b(self):
            pass

        def test_a(self):
            pass
    """
)


@pytest.fixture
def project(tmp_path, monkeypatch):
    """A top level directory with a package and a plain directory of tests."""
    package = tmp_path / "pkg_under_test"
    package.mkdir()
    (package / "__init__.py").write_text("")
    (package / "test_alpha.py").write_text(MODULE.format(name="Alpha"))
    (package / "helpers.py").write_text(MODULE.format(name="NotCollected"))
    loose = tmp_path / "loose_tests"
    loose.mkdir()
    (loose / "test_beta.py").write_text(MODULE.format(name="Beta"))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "path", list(sys.path))
    yield tmp_path
    for name in list(sys.modules):
        if name.split(".")[0] in ("pkg_under_test", "test_beta"):
            del sys.modules[name]


def names(units):
    return [str(unit) for unit in units]


def test_dotted_names():
    locator = TestLocator(top_level_dir=PROJECT_DIR)
    units = locator.get_tests_from_names(
        ["tests.sample_suite.Passing", "tests.sample_suite.Failing.test_error"]
    )
    assert names(units) == [
        "tests.sample_suite.Passing::test_one",
        "tests.sample_suite.Passing::test_three",
        "tests.sample_suite.Passing::test_two",
        "tests.sample_suite.Failing::test_error",
    ]
    assert [unit.id for unit in units] == [0, 1, 2, 3]


def test_duplicates_are_dropped():
    locator = TestLocator(top_level_dir=PROJECT_DIR)
    units = locator.get_tests_from_names(
        ["tests.sample_suite.Passing.test_two", "tests.sample_suite.Passing"]
    )
    assert names(units) == [
        "tests.sample_suite.Passing::test_two",
        "tests.sample_suite.Passing::test_one",
        "tests.sample_suite.Passing::test_three",
    ]
    assert [unit.id for unit in units] == [0, 1, 2]


def test_package_directory(project):
    locator = TestLocator()
    units = locator.get_tests_from_names(["pkg_under_test"])
    assert names(units) == [
        "pkg_under_test.test_alpha.Alpha::test_a",
        "pkg_under_test.test_alpha.Alpha::test_b",
    ]
    assert locator.search_paths == []


def test_plain_directory_becomes_a_search_path(project):
    locator = TestLocator()
    units = locator.get_tests_from_names(["loose_tests"])
    assert names(units) == ["test_beta.Beta::test_a", "test_beta.Beta::test_b"]
    assert locator.search_paths == [os.path.join(os.getcwd(), "loose_tests")]


def test_python_file(project):
    locator = TestLocator()
    units = locator.get_tests_from_names([os.path.join("pkg_under_test", "test_alpha.py")])
    assert names(units) == [
        "pkg_under_test.test_alpha.Alpha::test_a",
        "pkg_under_test.test_alpha.Alpha::test_b",
    ]


def test_pattern(project):
    locator = TestLocator(pattern="help*.py")
    units = locator.get_tests_from_names(["pkg_under_test"])
    assert names(units) == [
        "pkg_under_test.helpers.NotCollected::test_a",
        "pkg_under_test.helpers.NotCollected::test_b",
    ]


def test_unknown_name():
    locator = TestLocator(top_level_dir=PROJECT_DIR)
    with pytest.raises(ImportError, match="Unable to load tests from no_such_module"):
        locator.get_tests_from_names(["no_such_module"])
    with pytest.raises(ImportError, match="tests.sample_suite.Missing"):
        locator.get_tests_from_names(["tests.sample_suite.Missing"])


def test_name_that_is_not_a_test():
    locator = TestLocator(top_level_dir=PROJECT_DIR)
    with pytest.raises(ValueError, match="os.sep does not name a test"):
        locator.get_tests_from_names(["os.sep"])


def test_configured_paths(project):
    settings = Settings({"TEST_PATHS": ["pkg_under_test", "missing_dir"]})
    locator = TestLocator.from_settings(settings)
    assert len(locator.get_tests_from_config(settings)) == 2


def test_pattern_from_settings():
    locator = TestLocator.from_settings(Settings({"TEST_PATTERN": "check_*.py"}))
    assert locator.pattern == "check_*.py"
