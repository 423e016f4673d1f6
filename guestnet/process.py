"""OS process handle used to run dnsmasq."""

from __future__ import annotations

import subprocess
import threading
from collections import deque
from typing import Callable, Deque, List, Optional

from guestnet.constants import DEFAULT_STARTUP_GRACE, STDERR_TAIL_LINES
from guestnet.models import ProcessState
from guestnet.utils import log

FinishedCallback = Callable[[ProcessState], None]


class Connection:
    """Registration of a finished callback; disconnect to stop notifications."""

    def __init__(self, process: "Process", callback: FinishedCallback) -> None:
        self._process = process
        self.callback = callback
        self.connected = True

    def disconnect(self) -> None:
        if self.connected:
            self.connected = False
            self._process._remove_connection(self)


class Process:
    """A started-once external process with an asynchronous exit notification.

    A watcher thread reaps the process and then invokes every connected
    callback with the final ``ProcessState``. The last lines the process
    wrote to stderr are kept for failure messages.
    """

    def __init__(self, command: List[str], startup_grace: float = DEFAULT_STARTUP_GRACE) -> None:
        self.command = list(command)
        self.startup_grace = startup_grace
        self._popen: Optional[subprocess.Popen] = None
        self._error: Optional[str] = None
        self._stderr_tail: Deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        self._stderr_thread: Optional[threading.Thread] = None
        self._connections: List[Connection] = []
        self._lock = threading.Lock()
        self._finished = threading.Event()
        # set once the watcher has taken its snapshot of connections
        self._notified = False

    @property
    def pid(self) -> Optional[int]:
        return self._popen.pid if self._popen is not None else None

    def start(self) -> None:
        log("DEBUG", f"Running: {' '.join(self.command)}")
        try:
            self._popen = subprocess.Popen(
                self.command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as exc:
            self._error = f"failed to launch {self.command[0]}: {exc}"
            self._notified = True
            self._finished.set()
            return

        self._stderr_thread = threading.Thread(
            target=self._drain_stderr, name=f"{self.command[0]}-stderr", daemon=True
        )
        self._stderr_thread.start()
        threading.Thread(target=self._watch, name=f"{self.command[0]}-watch", daemon=True).start()

    def _drain_stderr(self) -> None:
        assert self._popen is not None and self._popen.stderr is not None
        with self._popen.stderr as stream:
            for line in stream:
                line = line.strip()
                if line:
                    self._stderr_tail.append(line)

    def _watch(self) -> None:
        assert self._popen is not None
        self._popen.wait()
        if self._stderr_thread is not None:
            self._stderr_thread.join(timeout=0.5)
        self._finished.set()

        state = self.process_state()
        with self._lock:
            self._notified = True
            connections = list(self._connections)
        for connection in connections:
            if connection.connected:
                connection.callback(state)

    def wait_for_started(self, timeout: float) -> bool:
        """Return True once the process has survived its startup grace period."""
        if self._popen is None:
            return False
        return not self._finished.wait(min(self.startup_grace, timeout))

    def wait_for_finished(self, timeout: float) -> bool:
        return self._finished.wait(timeout)

    def running(self) -> bool:
        return self._popen is not None and self._popen.returncode is None and not self._finished.is_set()

    def terminate(self) -> None:
        if self._popen is not None:
            self._popen.terminate()

    def kill(self) -> None:
        if self._popen is not None:
            self._popen.kill()

    def process_state(self) -> ProcessState:
        state = ProcessState(error=self._error, stderr_tail=list(self._stderr_tail))
        returncode = self._popen.returncode if self._popen is not None else None
        if returncode is not None:
            if returncode < 0:
                state.exit_signal = -returncode
            else:
                state.exit_code = returncode
        return state

    def on_finished(self, callback: FinishedCallback) -> Connection:
        """Register ``callback``; it runs right away if the process already exited."""
        connection = Connection(self, callback)
        with self._lock:
            self._connections.append(connection)
            deliver_now = self._notified
        if deliver_now:
            callback(self.process_state())
        return connection

    def _remove_connection(self, connection: Connection) -> None:
        with self._lock:
            if connection in self._connections:
                self._connections.remove(connection)


class ProcessFactory:
    """Creates the processes a supervisor runs; swap it out to fake dnsmasq."""

    def __init__(self, startup_grace: float = DEFAULT_STARTUP_GRACE) -> None:
        self.startup_grace = startup_grace

    def create_process(self, spec) -> Process:
        return Process(spec.command(), startup_grace=self.startup_grace)
