"""dnsmasq supervision for one guest bridge."""

from __future__ import annotations

import threading
from ipaddress import IPv4Network
from pathlib import Path
from typing import List, Optional, Union

from guestnet.config import (
    SupervisorSettings,
    load_settings,
    resolve_definition,
    validate_bridge_name,
    validate_subnet,
)
from guestnet.constants import LOG_CATEGORY, PORT_IN_USE_EXIT_CODE, PORT_IN_USE_HINT
from guestnet.dnsmasq_config import DNSMasqProcessSpec, materialize
from guestnet.exceptions import DNSMasqError
from guestnet.leases import find_ip, read_leases
from guestnet.models import DaemonState, DaemonStatus, LeaseRecord, ProcessState, ReleaseRequest
from guestnet.process import Connection, Process, ProcessFactory
from guestnet.release import LeaseReleaser
from guestnet.utils import log, remove_file


class DNSMasqServer:
    """Owns the dnsmasq instance serving DHCP and DNS on one bridge.

    Construction starts the daemon and raises ``DNSMasqError`` if it does not
    come up. Afterwards failures are only logged: an unexpected exit is
    reported by the process watcher, and ``check_dnsmasq_running`` is the one
    place that restarts the daemon. All state changes happen under a single
    lock, so the watcher and callers on other threads cannot race a restart
    against teardown.
    """

    def __init__(
        self,
        data_dir: Union[str, Path],
        bridge_name: str,
        subnet: Union[str, IPv4Network],
        process_factory: Optional[ProcessFactory] = None,
        settings: Optional[SupervisorSettings] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self._factory = process_factory or ProcessFactory(startup_grace=self.settings.startup_grace)
        self._releaser = LeaseReleaser(self.settings.dhcp_release_binary, self.settings.release_timeout)
        self._lock = threading.RLock()
        self._process: Optional[Process] = None
        self._connection: Optional[Connection] = None
        self._status = DaemonStatus(DaemonState.NOT_STARTED)
        self._closed = False

        network = validate_subnet(subnet)
        validate_bridge_name(bridge_name)
        try:
            self.config = materialize(Path(data_dir), bridge_name, network, self.settings.domain)
        except OSError as exc:
            raise DNSMasqError(f"Failed to write dnsmasq config in {data_dir}: {exc}") from exc
        try:
            self._start_dnsmasq()
        except DNSMasqError:
            self._closed = True
            remove_file(self.config.conf_file)
            remove_file(self.config.lease_file)
            raise

    @classmethod
    def from_config(
        cls,
        config_path: Optional[Path] = None,
        name: Optional[str] = None,
        **kwargs,
    ) -> "DNSMasqServer":
        definition = resolve_definition(config_path, name)
        return cls(definition.data_dir, definition.bridge_name, definition.subnet, **kwargs)

    def __enter__(self) -> "DNSMasqServer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def status(self) -> DaemonStatus:
        return self._status

    @property
    def state(self) -> DaemonState:
        return self._status.state

    def _start_dnsmasq(self) -> None:
        with self._lock:
            log("DEBUG", "Starting dnsmasq", LOG_CATEGORY)
            self._status = DaemonStatus(DaemonState.STARTING)

            spec = DNSMasqProcessSpec(self.config, program=self.settings.dnsmasq_binary)
            process = self._factory.create_process(spec)
            process.start()
            if not process.wait_for_started(self.settings.start_timeout):
                message = "dnsmasq failed to start"
                detail = process.process_state().failure_message()
                if detail:
                    message += f": {detail}"
                process.kill()
                process.wait_for_finished(self.settings.kill_timeout)
                self._process = None
                self._status = DaemonStatus(DaemonState.FAILED, reason=message)
                raise DNSMasqError(message)

            self._process = process
            self._status = DaemonStatus(DaemonState.RUNNING, pid=process.pid)
            log("DEBUG", f"dnsmasq running on {self.config.bridge_name} (pid {process.pid})", LOG_CATEGORY)
            # an exit that already happened is delivered during registration
            self._connection = process.on_finished(lambda state: self._on_finished(process, state))

    def _on_finished(self, process: Process, process_state: ProcessState) -> None:
        with self._lock:
            if self._closed or process is not self._process:
                return
            message = "died"
            detail = process_state.failure_message()
            if detail:
                message += f": {detail}"
            if process_state.exit_code == PORT_IN_USE_EXIT_CODE:
                message += f". {PORT_IN_USE_HINT}"
            log("ERROR", message, LOG_CATEGORY)
            self._status = DaemonStatus(
                DaemonState.EXITED,
                exit_code=process_state.exit_code,
                exit_signal=process_state.exit_signal,
            )

    def _disconnect(self) -> None:
        if self._connection is not None:
            self._connection.disconnect()
            self._connection = None

    def check_dnsmasq_running(self) -> bool:
        """Restart dnsmasq if it is no longer running; True if it runs afterwards."""
        with self._lock:
            if self._closed:
                return False
            if self._process is not None and self._process.running():
                return True

            log("WARN", "Not running", LOG_CATEGORY)
            self._disconnect()
            try:
                self._start_dnsmasq()
            except DNSMasqError as exc:
                log("ERROR", f"restart failed: {exc}", LOG_CATEGORY)
                return False
            return True

    def get_ip_for(self, hw_addr: str) -> Optional[str]:
        return find_ip(self.config.lease_file, hw_addr)

    def leases(self) -> List[LeaseRecord]:
        return read_leases(self.config.lease_file)

    def release_mac(self, hw_addr: str) -> None:
        ip = self.get_ip_for(hw_addr)
        if ip is None:
            log("WARN", f"attempting to release non-existent addr: {hw_addr}", LOG_CATEGORY)
            return
        self._releaser.release(ReleaseRequest(self.config.bridge_name, ip, hw_addr))

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._disconnect()

            reason = None
            process = self._process
            if process is not None:
                self._status = DaemonStatus(DaemonState.STOPPING, pid=process.pid)
                log("DEBUG", "terminating", LOG_CATEGORY)
                process.terminate()
                if not process.wait_for_finished(self.settings.terminate_timeout):
                    log("INFO", "failed to terminate nicely, killing", LOG_CATEGORY)
                    self._status = DaemonStatus(DaemonState.KILLING, pid=process.pid)
                    process.kill()
                    if not process.wait_for_finished(self.settings.kill_timeout):
                        log("WARN", "failed to kill", LOG_CATEGORY)
                        reason = f"abandoned pid {process.pid}"

            self._status = DaemonStatus(DaemonState.STOPPED, reason=reason)
            remove_file(self.config.conf_file)
