"""Data models for guestnet."""

from __future__ import annotations

import enum
import signal
from dataclasses import dataclass, field
from ipaddress import IPv4Address, IPv4Network
from pathlib import Path
from typing import List, NamedTuple, Optional


class ReleaseRequest(NamedTuple):
    bridge_name: str
    ip_address: str
    hw_addr: str


class LeaseRecord(NamedTuple):
    expiry: Optional[int]
    hw_addr: str
    ip_address: str
    hostname: Optional[str] = None
    client_id: Optional[str] = None


@dataclass(frozen=True)
class NetworkServiceConfig:
    data_dir: Path
    bridge_name: str
    subnet: IPv4Network
    lease_file: Path
    conf_file: Path
    domain: str

    @property
    def bridge_address(self) -> IPv4Address:
        return self.subnet.network_address + 1

    @property
    def dhcp_range(self):
        """First and last address handed out to guests."""
        return self.subnet.network_address + 2, self.subnet.broadcast_address - 1


@dataclass
class ProcessState:
    """Outcome of an OS process, as far as it is known."""

    exit_code: Optional[int] = None
    exit_signal: Optional[int] = None
    error: Optional[str] = None
    stderr_tail: List[str] = field(default_factory=list)

    def failure_message(self) -> str:
        if self.error:
            message = self.error
        elif self.exit_signal is not None:
            try:
                name = signal.Signals(self.exit_signal).name
            except ValueError:
                name = str(self.exit_signal)
            message = f"killed by signal {name}"
        elif self.exit_code:
            message = f"exit code {self.exit_code}"
        else:
            message = ""
        if message and self.stderr_tail:
            message += f" ({' | '.join(self.stderr_tail)})"
        return message


class DaemonState(enum.Enum):
    NOT_STARTED = "not-started"
    STARTING = "starting"
    RUNNING = "running"
    EXITED = "exited"
    FAILED = "failed"
    STOPPING = "stopping"
    KILLING = "killing"
    STOPPED = "stopped"


@dataclass(frozen=True)
class DaemonStatus:
    state: DaemonState
    pid: Optional[int] = None
    exit_code: Optional[int] = None
    exit_signal: Optional[int] = None
    reason: Optional[str] = None
