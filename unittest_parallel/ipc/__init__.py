"""
Process plumbing used to drive live workers.

This package is laid out as follows:

  - :mod:`unittest_parallel.ipc.process` spawns one child process with four
    independent channels (stdin, stdout, stderr and a result channel on
    file descriptor 3).

  - :mod:`unittest_parallel.ipc.reader` turns the raw result channel into
    discrete lines.

  - :class:`unittest_parallel.workers.process.WorkerProcess` wraps both
    into a worker lane that publishes typed lifecycle signals.
"""
