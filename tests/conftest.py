"""Pytest configuration and fixtures for hotloop tests."""

import itertools
import threading

import pytest

from hotloop.config import Config
from hotloop.errors import BuildError, SpawnError, TerminationError
from hotloop.state import SupervisorState


class FakeHandle:
    """Stands in for ``subprocess.Popen``: exits when told to."""

    def __init__(self, pid):
        self.pid = pid
        self.returncode = None
        self._exited = threading.Event()

    def exit(self, code=0):
        self.returncode = code
        self._exited.set()

    def wait(self, timeout=None):
        self._exited.wait(timeout)
        return self.returncode

    @property
    def alive(self):
        return not self._exited.is_set()


class FakeRunner:
    """Records what the supervisor asks of the process layer.

    ``build_failures`` is consumed one entry per build: ``True`` means that
    build fails.  Builds succeed once it is exhausted.
    """

    def __init__(self):
        self.build_failures = []
        self.writes_output = True
        self.spawn_error = None
        self.terminate_error = None
        self.builds = []
        self.spawned = []
        self.terminated = []
        self.reaped = []
        self._pids = itertools.count(1000)

    def build(self, command, cwd):
        self.builds.append(command)
        if self.build_failures and self.build_failures.pop(0):
            raise BuildError("build exited with status 2")
        for arg in command:
            if self.writes_output and arg.endswith(".next"):
                with open(arg, "w") as fh:
                    fh.write("binary")

    def spawn(self, command, cwd):
        if self.spawn_error is not None:
            raise SpawnError(self.spawn_error)
        handle = FakeHandle(next(self._pids))
        self.spawned.append(handle)
        return handle

    def terminate(self, handle):
        self.terminated.append(handle)
        if self.terminate_error is not None:
            raise TerminationError(self.terminate_error)
        handle.exit(-15)

    def reap(self, handle):
        self.reaped.append(handle)

    def wait(self, handle):
        return handle.wait()


@pytest.fixture
def config(tmp_path):
    """Config rooted in a temp dir with a build step that writes no artifact."""
    return Config(
        root=tmp_path,
        build_command=["make"],
        run_command=["./app"],
        debounce=0.1,
    )


@pytest.fixture
def state():
    return SupervisorState()


@pytest.fixture
def runner():
    return FakeRunner()
