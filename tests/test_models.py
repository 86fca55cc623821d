import pytest

from unittest_parallel.models import ErrorEntry, Severity, TestRequest, TestResult, TestUnit


class TestSeverity:
    def test_order(self):
        assert Severity.ERROR > Severity.FAILURE > Severity.WARNING
        assert max([Severity.WARNING, Severity.ERROR, Severity.FAILURE]) is Severity.ERROR

    def test_from_name(self):
        assert Severity.from_name("error") is Severity.ERROR
        assert Severity.from_name("Failure") is Severity.FAILURE
        with pytest.raises(ValueError, match="Unknown severity"):
            Severity.from_name("fatal")

    def test_label(self):
        assert Severity.WARNING.label == "warning"

    def test_is_failing(self):
        assert not Severity.WARNING.is_failing
        assert Severity.FAILURE.is_failing
        assert Severity.ERROR.is_failing


class TestTestUnit:
    def test_names(self):
        unit = TestUnit(3, "pkg.tests.TestThing", "test_it")
        assert unit.test_name == "pkg.tests.TestThing.test_it"
        assert str(unit) == "pkg.tests.TestThing::test_it"

    def test_immutable(self):
        unit = TestUnit(0, "a.B", "test_c")
        with pytest.raises(AttributeError):
            unit.id = 1

    def test_request_proxies_unit(self):
        request = TestRequest(TestUnit(5, "a.B", "test_c"), lane=2)
        assert (request.id, request.class_name, request.name) == (5, "a.B", "test_c")
        assert request.lane == 2


class TestTestResult:
    def result(self, *severities):
        return TestResult(
            1,
            "a.B",
            "test_c",
            0.5,
            tuple(ErrorEntry(s, "message") for s in severities),
        )

    def test_clean_pass(self):
        result = self.result()
        assert result.severity is None
        assert not result.failed

    def test_warnings_do_not_fail(self):
        result = self.result(Severity.WARNING, Severity.WARNING)
        assert result.severity is Severity.WARNING
        assert not result.failed

    def test_severity_is_the_highest(self):
        result = self.result(Severity.WARNING, Severity.ERROR, Severity.FAILURE)
        assert result.severity is Severity.ERROR
        assert result.failed

    def test_unit(self):
        assert self.result().unit == TestUnit(1, "a.B", "test_c")
