"""
Run lifecycle signals

Every listener receives the same signals, sent by the
:class:`~unittest_parallel.distributor.Distributor` and its workers through a
:class:`~unittest_parallel.signalmanager.SignalManager`. Over one run the
order is: one ``run_started``, interleaved ``test_started``/``test_completed``
pairs (arrival order across workers), any number of ``worker_stdout``,
``worker_stderr`` and ``worker_exited``, and exactly one ``run_finished``.
"""

run_started = object()
test_started = object()
test_completed = object()
run_finished = object()
worker_stdout = object()
worker_stderr = object()
worker_exited = object()
