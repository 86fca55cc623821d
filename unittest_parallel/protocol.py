"""
Line protocol spoken between the coordinator and its workers.

Each message is one JSON object on a single ``\\n``-terminated line. Requests
flow to a worker on its standard input; results flow back on the dedicated
result channel. A worker stops reading requests when it sees
:data:`TERMINATE`.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from unittest_parallel.models import ErrorEntry, Severity, TestRequest, TestResult, TestUnit

logger = logging.getLogger(__name__)

TERMINATE = b"EXIT\n"

# int() of an infinite float raises OverflowError
RESULT_DECODE_ERRORS = (KeyError, OverflowError, TypeError, ValueError)


def _dumps(data: dict[str, Any]) -> bytes:
    # json never emits a raw newline, control characters are escaped
    return json.dumps(data, separators=(",", ":")).encode("utf-8") + b"\n"


def parse_line(line: bytes | str) -> dict[str, Any] | None:
    """Parse one protocol line into a dict, or return ``None`` (and log) if
    the line is not a JSON object."""
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Dropping undecodable protocol line: %(line)r", {"line": line})
            return None
    line = line.strip()
    if not line:
        return None
    try:
        data = json.loads(line)
    except (RecursionError, ValueError):
        logger.warning("Dropping malformed protocol line: %(line)r", {"line": line})
        return None
    if not isinstance(data, dict):
        logger.warning("Dropping malformed protocol line: %(line)r", {"line": line})
        return None
    return data


def encode_request(request: TestRequest) -> bytes:
    return _dumps(
        {
            "id": request.id,
            "class": request.class_name,
            "name": request.name,
            "lane": request.lane,
        }
    )


def is_terminate(line: bytes | str) -> bool:
    if isinstance(line, str):
        line = line.encode("utf-8")
    return line.strip() == TERMINATE.strip()


def decode_request(line: bytes | str) -> TestRequest | None:
    data = parse_line(line)
    if data is None:
        return None
    try:
        unit = TestUnit(int(data["id"]), str(data["class"]), str(data["name"]))
        return TestRequest(unit, int(data.get("lane", 0)))
    except RESULT_DECODE_ERRORS:
        logger.warning("Dropping malformed request: %(data)r", {"data": data})
        return None


def result_to_dict(result: TestResult) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": result.id,
        "class": result.class_name,
        "name": result.name,
        "elapsed": result.elapsed,
        "errors": [
            {"severity": error.severity.label, "message": error.message}
            for error in result.errors
        ],
    }
    if result.memory is not None:
        data["memory"] = result.memory
    return data


def result_from_dict(data: dict[str, Any]) -> TestResult:
    """Build a :class:`TestResult` from its decoded JSON form.

    Raises :exc:`KeyError`, :exc:`TypeError` or :exc:`ValueError` when a
    field is missing or has the wrong type.
    """
    errors = tuple(
        ErrorEntry(Severity.from_name(entry["severity"]), str(entry["message"]))
        for entry in data.get("errors") or ()
    )
    memory = data.get("memory")
    return TestResult(
        id=int(data["id"]),
        class_name=str(data["class"]),
        name=str(data["name"]),
        elapsed=float(data["elapsed"]),
        errors=errors,
        memory=int(memory) if memory is not None else None,
    )


def encode_result(result: TestResult, **extra: Any) -> bytes:
    """Encode a result as one line. ``extra`` keys are added to the JSON
    object and ignored by :func:`decode_result`."""
    data = result_to_dict(result)
    data.update(extra)
    return _dumps(data)


def decode_result(line: bytes | str) -> TestResult | None:
    """Decode one line of a result channel, or return ``None`` if it does not
    hold a well-formed result. Bad lines are logged, never raised."""
    data = parse_line(line)
    if data is None:
        return None
    try:
        return result_from_dict(data)
    except RESULT_DECODE_ERRORS:
        logger.warning("Dropping malformed result: %(data)r", {"data": data})
        return None
