"""Tests for guestnet.process module, against real short-lived processes."""

from __future__ import annotations

import signal
import sys
import threading
import time

from guestnet.process import Process, ProcessFactory

SLEEPER = [sys.executable, "-c", "import time; time.sleep(30)"]
PORT_CLASH = [
    sys.executable,
    "-c",
    "import sys; sys.stderr.write('failed to create listening socket\\n'); sys.exit(2)",
]


class TestProcessLifecycle:
    def test_long_running_process_starts(self):
        proc = Process(SLEEPER, startup_grace=0.2)
        proc.start()
        try:
            assert proc.wait_for_started(5.0) is True
            assert proc.running() is True
            assert proc.pid is not None
        finally:
            proc.kill()
            proc.wait_for_finished(5.0)

    def test_early_exit_is_start_failure(self):
        proc = Process(PORT_CLASH, startup_grace=2.0)
        proc.start()
        assert proc.wait_for_started(5.0) is False
        assert proc.wait_for_finished(5.0) is True
        state = proc.process_state()
        assert state.exit_code == 2
        assert state.stderr_tail == ["failed to create listening socket"]
        assert state.failure_message() == "exit code 2 (failed to create listening socket)"
        assert proc.running() is False

    def test_missing_binary(self, tmp_path):
        proc = Process([str(tmp_path / "no-such-dnsmasq")])
        proc.start()
        assert proc.wait_for_started(1.0) is False
        assert proc.running() is False
        assert "failed to launch" in proc.process_state().failure_message()
        proc.kill()
        proc.terminate()

    def test_terminate_reports_signal(self):
        proc = Process(SLEEPER, startup_grace=0.1)
        proc.start()
        assert proc.wait_for_started(5.0)
        proc.terminate()
        assert proc.wait_for_finished(5.0) is True
        assert proc.process_state().exit_signal == signal.SIGTERM


class TestFinishedNotification:
    def test_callback_fires_on_exit(self):
        received = []
        done = threading.Event()

        def on_exit(state):
            received.append(state)
            done.set()

        proc = Process(SLEEPER, startup_grace=0.1)
        proc.start()
        assert proc.wait_for_started(5.0)
        proc.on_finished(on_exit)
        proc.kill()
        assert done.wait(5.0)
        assert received[0].exit_signal == signal.SIGKILL

    def test_disconnected_callback_not_called(self):
        received = []
        proc = Process(SLEEPER, startup_grace=0.1)
        proc.start()
        assert proc.wait_for_started(5.0)
        connection = proc.on_finished(received.append)
        connection.disconnect()
        connection.disconnect()
        proc.kill()
        assert proc.wait_for_finished(5.0)
        assert received == []
        assert connection.connected is False


class TestProcessFactory:
    def test_creates_from_spec(self):
        class Spec:
            def command(self):
                return ["dnsmasq", "--keep-in-foreground"]

        proc = ProcessFactory(startup_grace=0.3).create_process(Spec())
        assert proc.command == ["dnsmasq", "--keep-in-foreground"]
        assert proc.startup_grace == 0.3
        assert proc.pid is None
        assert proc.running() is False


class TestLateRegistration:
    def test_callback_registered_after_exit_fires_once(self):
        received = []
        proc = Process(PORT_CLASH, startup_grace=0.1)
        proc.start()
        assert proc.wait_for_finished(5.0)
        # give the watcher time to finish its own delivery pass
        time.sleep(0.2)
        connection = proc.on_finished(received.append)
        time.sleep(0.2)
        assert len(received) == 1
        assert received[0].exit_code == 2
        assert connection.connected is True

    def test_callback_after_launch_failure_fires(self, tmp_path):
        received = []
        proc = Process([str(tmp_path / "no-such-dnsmasq")])
        proc.start()
        proc.on_finished(received.append)
        assert len(received) == 1
        assert "failed to launch" in received[0].failure_message()
