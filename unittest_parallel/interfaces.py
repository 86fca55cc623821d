from zope.interface import Attribute, Interface


class IWorker(Interface):
    """One lane of a run.

    A worker publishes ``test_started``, ``test_completed``,
    ``worker_stdout``, ``worker_stderr`` and ``worker_exited`` on the signal
    manager it was created with, whether it drives a live process or replays
    a recorded log.
    """

    lane = Attribute("Fixed positional index of the worker, 0 based")
    name = Attribute("Display name of the lane, e.g. 'Worker0'")
    state = Attribute("Current WorkerState")
    request = Attribute("The TestRequest in flight, or None")

    def start():
        """Start the worker. Must not block. Raise WorkerSpawnError if the
        worker cannot be started at all."""

    def assign(request):
        """Hand ``request`` to an idle worker. The worker becomes busy until
        the matching result arrives or the worker exits."""

    def stop(timeout):
        """Ask the worker to finish. Whatever is in flight may complete; the
        worker is killed if it is still alive after ``timeout`` seconds.

        The exit is reported later from the reactor, never from within this
        call, since ``stop`` may be reached while a result is still being
        delivered to listeners."""

    def kill():
        """Terminate the worker right away."""
