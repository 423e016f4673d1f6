"""Shared test fixtures and a fake dnsmasq process factory."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from guestnet.config import SupervisorSettings
from guestnet.dnsmasq import DNSMasqServer
from guestnet.models import ProcessState
from guestnet.process import Connection


class FakeProcess:
    """Stands in for a dnsmasq process without spawning anything."""

    def __init__(
        self,
        spec,
        starts: bool = True,
        failure: Optional[ProcessState] = None,
        honours_terminate: bool = True,
        honours_kill: bool = True,
        pid: int = 4242,
    ) -> None:
        self.spec = spec
        self.command = spec.command()
        self.pid = pid
        self.starts = starts
        self.failure = failure or ProcessState()
        self.honours_terminate = honours_terminate
        self.honours_kill = honours_kill
        self.started = False
        self.terminate_calls = 0
        self.kill_calls = 0
        self.finished_waits: List[float] = []
        self.connections: List[Connection] = []
        self._running = False

    def start(self) -> None:
        self.started = True
        self._running = self.starts

    def wait_for_started(self, timeout: float) -> bool:
        return self.starts

    def running(self) -> bool:
        return self._running

    def process_state(self) -> ProcessState:
        return self.failure

    def terminate(self) -> None:
        self.terminate_calls += 1
        if self.honours_terminate:
            self._running = False

    def kill(self) -> None:
        self.kill_calls += 1
        if self.honours_kill:
            self._running = False

    def wait_for_finished(self, timeout: float) -> bool:
        self.finished_waits.append(timeout)
        return not self._running

    def on_finished(self, callback) -> Connection:
        connection = Connection(self, callback)  # type: ignore[arg-type]
        self.connections.append(connection)
        return connection

    def _remove_connection(self, connection: Connection) -> None:
        self.connections.remove(connection)

    def crash(self, state: ProcessState) -> None:
        """Simulate an unsolicited exit delivered by the watcher."""
        self._running = False
        for connection in list(self.connections):
            if connection.connected:
                connection.callback(state)


class FakeProcessFactory:
    def __init__(self) -> None:
        self.created: List[FakeProcess] = []
        self.behaviours: List[Dict[str, Any]] = []

    def create_process(self, spec) -> FakeProcess:
        kwargs = self.behaviours.pop(0) if self.behaviours else {}
        process = FakeProcess(spec, **kwargs)
        self.created.append(process)
        return process

    @property
    def last(self) -> FakeProcess:
        return self.created[-1]


@pytest.fixture
def fast_settings() -> SupervisorSettings:
    return SupervisorSettings(
        dnsmasq_binary="/usr/sbin/dnsmasq",
        dhcp_release_binary="/usr/bin/dhcp_release",
        domain="guestnet",
        start_timeout=1.0,
        startup_grace=0.05,
        terminate_timeout=1.0,
        kill_timeout=0.1,
        release_timeout=2.0,
    )


@pytest.fixture
def process_factory() -> FakeProcessFactory:
    return FakeProcessFactory()


@pytest.fixture
def make_server(tmp_path, process_factory, fast_settings):
    """Build supervisors against the fake factory and close them afterwards."""
    servers: List[DNSMasqServer] = []

    def _make(data_dir=None, bridge_name="mpbr0", subnet="10.10.0.0/24"):
        server = DNSMasqServer(
            data_dir or tmp_path / "net1",
            bridge_name,
            subnet,
            process_factory=process_factory,
            settings=fast_settings,
        )
        servers.append(server)
        return server

    yield _make

    for server in servers:
        server.close()


@pytest.fixture
def write_leases():
    def _write(server: DNSMasqServer, *lines: str) -> None:
        server.config.lease_file.write_text("".join(line + "\n" for line in lines))

    return _write
