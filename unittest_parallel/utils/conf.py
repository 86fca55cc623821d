from __future__ import annotations

import shlex


def arglist_to_dict(arglist: list[str]) -> dict[str, str]:
    """Convert a list of arguments like ['arg1=val1', 'arg2=val2', ...] to a
    dict
    """
    return dict(x.split("=", 1) for x in arglist)


def split_pair(value: str, what: str) -> tuple[str, str]:
    """Split ``left:right`` on its last colon, so that ``left`` may itself
    hold colons (e.g. a Windows drive letter).

    >>> split_pair("out/results.log:Worker1", "replay")
    ('out/results.log', 'Worker1')
    """
    left, sep, right = value.rpartition(":")
    if not sep or not left or not right:
        raise ValueError(f"Invalid {what} {value!r}")
    return left, right


def interpreter_options(value: str | list[str] | None) -> list[str]:
    """Turn the INTERPRETER_OPTIONS setting into a list of arguments."""
    if not value:
        return []
    if isinstance(value, str):
        return shlex.split(value)
    return list(value)
