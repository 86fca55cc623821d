"""
Value types exchanged between the coordinator and its workers.

All of them are immutable: units are produced once by the
:class:`~unittest_parallel.locator.TestLocator`, requests are created when
the scheduler dequeues a unit, and results only ever come out of
:func:`~unittest_parallel.protocol.decode_result`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum


class Severity(IntEnum):
    """Severity of an :class:`ErrorEntry`, ordered ``error > failure > warning``."""

    WARNING = 1
    FAILURE = 2
    ERROR = 3

    @classmethod
    def from_name(cls, name: str) -> Severity:
        if not isinstance(name, str):
            raise ValueError(f"Unknown severity: {name!r}")
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown severity: {name!r}") from None

    @property
    def label(self) -> str:
        return self.name.lower()

    @property
    def is_failing(self) -> bool:
        """Whether this severity makes a run fail (warnings do not)."""
        return self >= Severity.FAILURE


@dataclass(frozen=True)
class ErrorEntry:
    severity: Severity
    message: str


@dataclass(frozen=True)
class TestUnit:
    """One runnable test: the ``unittest`` class path, the method name and
    the ordinal given at discovery time."""

    __test__ = False

    id: int
    class_name: str
    name: str

    @property
    def test_name(self) -> str:
        """The dotted name ``unittest`` uses to load this test."""
        return f"{self.class_name}.{self.name}"

    def __str__(self) -> str:
        return f"{self.class_name}::{self.name}"


@dataclass(frozen=True)
class TestRequest:
    """A :class:`TestUnit` handed to the worker running on ``lane``."""

    __test__ = False

    unit: TestUnit
    lane: int

    @property
    def id(self) -> int:
        return self.unit.id

    @property
    def class_name(self) -> str:
        return self.unit.class_name

    @property
    def name(self) -> str:
        return self.unit.name


@dataclass(frozen=True)
class TestResult:
    """Outcome of executing one test unit."""

    __test__ = False

    id: int
    class_name: str
    name: str
    elapsed: float
    errors: tuple[ErrorEntry, ...] = field(default_factory=tuple)
    memory: int | None = None

    @property
    def severity(self) -> Severity | None:
        """The highest severity among the errors, ``None`` for a clean pass."""
        if not self.errors:
            return None
        return max(error.severity for error in self.errors)

    @property
    def failed(self) -> bool:
        return any(error.severity.is_failing for error in self.errors)

    @property
    def unit(self) -> TestUnit:
        return TestUnit(self.id, self.class_name, self.name)

    def __str__(self) -> str:
        return f"{self.class_name}::{self.name}"
