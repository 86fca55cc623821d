from __future__ import annotations

import re
import time
from typing import TYPE_CHECKING, TextIO

from lxml import etree

from unittest_parallel.listeners import TestListener
from unittest_parallel.models import Severity

if TYPE_CHECKING:
    from unittest_parallel.models import TestRequest, TestResult
    from unittest_parallel.workers import BaseWorker


_INVALID_XML_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


def _xml_safe(text: str) -> str:
    return _INVALID_XML_CHARS.sub("", text)


_TAGS = {
    Severity.ERROR: "error",
    Severity.FAILURE: "failure",
}


class XUnitOutputFormatter(TestListener):
    """JUnit-style XML report, written once the run has ended."""

    def __init__(self, output: TextIO, suite_name: str = "unittest-parallel"):
        self.output: TextIO = output
        self.suite_name: str = suite_name
        self.started: float = 0.0
        self.suite = etree.Element("testsuite", name=suite_name)
        self.counts: dict[str, int] = {"tests": 0, "failures": 0, "errors": 0}

    def begin(self) -> None:
        self.started = time.monotonic()

    def test_completed(self, worker: BaseWorker, result: TestResult) -> None:
        case = self._testcase(result.class_name, result.name, result.elapsed)
        warnings = []
        for error in result.errors:
            tag = _TAGS.get(error.severity)
            if tag is None:
                warnings.append(error.message)
                continue
            message = _xml_safe(error.message)
            summary = message.splitlines()[0] if message else ""
            etree.SubElement(case, tag, message=summary).text = message
            self.counts[tag + "s"] += 1
        if warnings:
            etree.SubElement(case, "system-err").text = _xml_safe("\n".join(warnings))

    def on_exit(
        self, worker: BaseWorker, exit_code: int, request: TestRequest | None
    ) -> None:
        if request is None:
            return
        case = self._testcase(request.class_name, request.name, 0.0)
        message = f"{worker.name} died with exit code {exit_code}"
        etree.SubElement(case, "error", message=message).text = message
        self.counts["errors"] += 1

    def end(self) -> None:
        for key, value in self.counts.items():
            self.suite.set(key, str(value))
        self.suite.set("time", f"{time.monotonic() - self.started:.3f}")
        root = etree.Element("testsuites")
        root.append(self.suite)
        self.output.write('<?xml version="1.0" encoding="UTF-8"?>\n')
        self.output.write(etree.tostring(root, encoding="unicode", pretty_print=True))
        self.output.flush()

    def _testcase(self, class_name: str, name: str, elapsed: float) -> etree._Element:
        self.counts["tests"] += 1
        return etree.SubElement(
            self.suite,
            "testcase",
            classname=class_name,
            name=name,
            time=f"{elapsed:.3f}",
        )
