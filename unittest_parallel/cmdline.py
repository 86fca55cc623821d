from __future__ import annotations

import argparse
import sys
from typing import TYPE_CHECKING, Any, TextIO

import unittest_parallel
from unittest_parallel.exceptions import (
    InvalidWriter,
    ReplayError,
    UsageError,
    WorkerSpawnError,
)
from unittest_parallel.listeners.exitstatus import ExitStatusListener
from unittest_parallel.listeners.stoponerror import StopOnErrorListener
from unittest_parallel.locator import TestLocator
from unittest_parallel.utils.conf import arglist_to_dict
from unittest_parallel.utils.misc import load_object
from unittest_parallel.utils.project import get_project_settings

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    # typing.ParamSpec requires Python 3.10
    from typing_extensions import ParamSpec

    from unittest_parallel.distributor import Distributor
    from unittest_parallel.settings import BaseSettings, Settings

    _P = ParamSpec("_P")


class ParallelHelpFormatter(argparse.HelpFormatter):
    """
    Help formatter that underlines the section headers of the help message.
    """

    def __init__(
        self,
        prog: str,
        indent_increment: int = 2,
        max_help_position: int = 28,
        width: int | None = None,
    ):
        super().__init__(
            prog,
            indent_increment=indent_increment,
            max_help_position=max_help_position,
            width=width,
        )

    def _join_parts(self, part_strings: Iterable[str]) -> str:
        return super()._join_parts(self.format_part_strings(list(part_strings)))

    def format_part_strings(self, part_strings: list[str]) -> list[str]:
        if part_strings and part_strings[0].startswith("usage: "):
            part_strings[0] = "Usage\n=====\n  " + part_strings[0][len("usage: ") :]
        headings = [i for i, part in enumerate(part_strings) if part.endswith(":\n")]
        for index in reversed(headings):
            char = "-" if "Global Options" in part_strings[index] else "="
            part_strings[index] = part_strings[index][:-2].title()
            underline = "\n" + char * len(part_strings[index]) + "\n"
            part_strings.insert(index + 1, underline)
        return part_strings


def parse_writer(value: str) -> tuple[str, str]:
    """Split a ``-W`` value into ``(format, filename)``. The format is
    everything up to the first colon, so the filename may hold colons."""
    fmt, sep, filename = value.partition(":")
    if not sep or not fmt or not filename:
        raise InvalidWriter(f"Invalid writer {value!r}, use -W FORMAT:FILENAME")
    return fmt, filename


class RunCommand:
    """Run a unittest suite on a pool of worker processes, or serve as one of
    those workers with ``--worker``."""

    exitcode: int = 0

    def __init__(self, settings: BaseSettings):
        self.settings: BaseSettings = settings
        self.writers: list[tuple[str, str]] = []
        self._outputs: list[TextIO] = []

    def syntax(self) -> str:
        return "[options] [test ...]"

    def long_desc(self) -> str:
        return (
            "Run the given tests (dotted names, .py files or directories, "
            "TEST_PATHS by default) in parallel worker processes"
        )

    def add_options(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("tests", nargs="*", metavar="test", help="tests to run")
        parser.add_argument(
            "-F",
            "--formatter",
            metavar="FORMAT",
            help=f"output format: {', '.join(sorted(self.settings.getwithbase('FORMATTERS')))}"
            f" (default: {self.settings['FORMATTER']})",
        )
        parser.add_argument(
            "-C",
            "--workers",
            metavar="N",
            type=int,
            help=f"number of worker processes (default: {self.settings['WORKERS']})",
        )
        parser.add_argument(
            "-W",
            "--write",
            action="append",
            default=[],
            metavar="FORMAT:FILE",
            help="also write a report in FORMAT to FILE (may be repeated)",
        )
        parser.add_argument(
            "--stop-on-error",
            action="store_true",
            help="stop dispatching tests after the first error or failure",
        )
        parser.add_argument(
            "--replay",
            metavar="FILE:LANE",
            help="replay the results LANE recorded in a json report",
        )
        parser.add_argument(
            "--interpreter-options",
            metavar="OPTIONS",
            help="extra options passed to the worker interpreter",
        )
        parser.add_argument(
            "--memory-tracking",
            metavar="BOOL",
            help="sample the peak memory of each test (default: "
            f"{self.settings['MEMORY_TRACKING']})",
        )
        parser.add_argument("--worker", action="store_true", help=argparse.SUPPRESS)

        group = parser.add_argument_group(title="Global Options")
        group.add_argument(
            "--logfile", metavar="FILE", help="log file. if omitted stderr will be used"
        )
        group.add_argument(
            "-L",
            "--loglevel",
            metavar="LEVEL",
            default=None,
            help=f"log level (default: {self.settings['LOG_LEVEL']})",
        )
        group.add_argument(
            "--nolog", action="store_true", help="disable logging completely"
        )
        group.add_argument(
            "-s",
            "--set",
            action="append",
            default=[],
            metavar="NAME=VALUE",
            help="set/override setting (may be repeated)",
        )

    def process_options(self, args: list[str], opts: argparse.Namespace) -> None:
        try:
            self.settings.setdict(arglist_to_dict(opts.set), priority="cmdline")
        except ValueError:
            raise UsageError("Invalid -s value, use -s NAME=VALUE", print_help=False)

        if opts.logfile:
            self.settings.set("LOG_ENABLED", True, priority="cmdline")
            self.settings.set("LOG_FILE", opts.logfile, priority="cmdline")

        if opts.loglevel:
            self.settings.set("LOG_ENABLED", True, priority="cmdline")
            self.settings.set("LOG_LEVEL", opts.loglevel, priority="cmdline")

        if opts.nolog:
            self.settings.set("LOG_ENABLED", False, priority="cmdline")

        if opts.memory_tracking is not None:
            self.settings.set("MEMORY_TRACKING", opts.memory_tracking, priority="cmdline")
        try:
            self.settings.getbool("MEMORY_TRACKING")
        except ValueError:
            raise UsageError(
                f"Invalid --memory-tracking value {opts.memory_tracking!r}",
                print_help=False,
            )

        if opts.worker:
            return

        if opts.formatter:
            self.settings.set("FORMATTER", opts.formatter, priority="cmdline")
        formatters = self.settings.getwithbase("FORMATTERS")
        if self.settings["FORMATTER"] not in formatters:
            raise UsageError(
                f"Unknown formatter {self.settings['FORMATTER']!r}", print_help=False
            )

        if opts.workers is not None:
            if opts.workers < 1:
                raise UsageError("-C needs at least one worker", print_help=False)
            self.settings.set("WORKERS", opts.workers, priority="cmdline")

        if opts.stop_on_error:
            self.settings.set("STOP_ON_ERROR", True, priority="cmdline")

        if opts.interpreter_options is not None:
            self.settings.set(
                "INTERPRETER_OPTIONS", opts.interpreter_options, priority="cmdline"
            )

        for value in opts.write:
            try:
                fmt, filename = parse_writer(value)
            except InvalidWriter as e:
                raise UsageError(str(e), print_help=False)
            if fmt not in formatters:
                raise UsageError(f"Unknown writer format {fmt!r}", print_help=False)
            self.writers.append((fmt, filename))

    def run(self, args: list[str], opts: argparse.Namespace) -> None:
        if opts.worker:
            from unittest_parallel.runner import run_worker

            self.exitcode = run_worker(self.settings.getbool("MEMORY_TRACKING"))
            return

        from unittest_parallel.distributor import DistributorProcess

        locator = TestLocator.from_settings(self.settings)
        try:
            if opts.replay:
                tests: Any = locator.get_tests_from_replay(opts.replay)
            elif opts.tests:
                tests = locator.get_tests_from_names(opts.tests)
            else:
                tests = locator.get_tests_from_config(self.settings)
        except (ReplayError, ImportError, ValueError) as e:
            raise UsageError(str(e), print_help=False)
        if locator.search_paths:
            self.settings.set(
                "WORKER_PYTHONPATH",
                locator.search_paths + self.settings.getlist("WORKER_PYTHONPATH"),
                priority="cmdline",
            )

        distributor = DistributorProcess(tests, self.settings)
        exit_status = self._add_listeners(distributor)
        try:
            distributor.start()
        except WorkerSpawnError as e:
            print(f"unittest-parallel: {e}", file=sys.stderr)
            self.exitcode = 2
            return
        finally:
            self._close_outputs()
        self.exitcode = exit_status.exit_status

    def _add_listeners(self, distributor: Distributor) -> ExitStatusListener:
        formatters = self.settings.getwithbase("FORMATTERS")
        distributor.add_listener(
            load_object(formatters[self.settings["FORMATTER"]])(sys.stdout)
        )
        for fmt, filename in self.writers:
            output = open(filename, "w", encoding="utf-8")  # noqa: SIM115
            self._outputs.append(output)
            distributor.add_listener(load_object(formatters[fmt])(output))
        if self.settings.getbool("STOP_ON_ERROR"):
            distributor.add_listener(StopOnErrorListener(distributor))
        exit_status = ExitStatusListener()
        distributor.add_listener(exit_status)
        return exit_status

    def _close_outputs(self) -> None:
        while self._outputs:
            self._outputs.pop().close()


def _run_print_help(
    parser: argparse.ArgumentParser,
    func: Callable[_P, None],
    *a: _P.args,
    **kw: _P.kwargs,
) -> None:
    try:
        func(*a, **kw)
    except UsageError as e:
        if str(e):
            parser.error(str(e))
        if e.print_help:
            parser.print_help()
        sys.exit(2)


def execute(argv: list[str] | None = None, settings: Settings | None = None) -> None:
    if argv is None:
        argv = sys.argv

    if settings is None:
        try:
            settings = get_project_settings()
        except ImportError as e:
            print(f"unittest-parallel: unable to load settings: {e}", file=sys.stderr)
            sys.exit(2)

    cmd = RunCommand(settings)
    parser = argparse.ArgumentParser(
        prog="unittest-parallel",
        formatter_class=ParallelHelpFormatter,
        usage=f"unittest-parallel {cmd.syntax()}",
        description=cmd.long_desc(),
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {unittest_parallel.__version__}"
    )
    cmd.add_options(parser)
    opts = parser.parse_args(args=argv[1:])
    _run_print_help(parser, cmd.process_options, opts.tests, opts)
    _run_print_help(parser, cmd.run, opts.tests, opts)
    sys.exit(cmd.exitcode)


if __name__ == "__main__":
    execute()
