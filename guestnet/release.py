"""Explicit lease release through the dhcp_release helper."""

from __future__ import annotations

import signal
import subprocess

from guestnet.constants import DEFAULT_DHCP_RELEASE_BIN, DEFAULT_RELEASE_TIMEOUT, LOG_CATEGORY
from guestnet.models import ReleaseRequest
from guestnet.utils import log


class LeaseReleaser:
    """Run the helper that tells dnsmasq to drop one lease.

    The outcome is only ever reported through the log: callers treat a
    release as best-effort.
    """

    def __init__(self, binary: str = DEFAULT_DHCP_RELEASE_BIN, timeout: float = DEFAULT_RELEASE_TIMEOUT) -> None:
        self.binary = binary
        self.timeout = timeout

    def release(self, request: ReleaseRequest) -> None:
        cmd = [self.binary, request.bridge_name, request.ip_address, request.hw_addr]
        what = f"ip addr {request.ip_address} with mac {request.hw_addr}"
        log("DEBUG", f"Running: {' '.join(cmd)}", LOG_CATEGORY)
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            log("WARN", f"failed to release {what}: timed out after {self.timeout}s", LOG_CATEGORY)
            return
        except OSError as exc:
            log("WARN", f"failed to release {what}: {exc}", LOG_CATEGORY)
            return

        if result.returncode == 0:
            log("DEBUG", f"released {what}", LOG_CATEGORY)
            return

        if result.returncode < 0:
            try:
                detail = f"killed by signal {signal.Signals(-result.returncode).name}"
            except ValueError:
                detail = f"killed by signal {-result.returncode}"
        else:
            detail = f"exit_code: {result.returncode}"
        stderr = (result.stderr or "").strip()
        if stderr:
            detail += f", stderr: {stderr}"
        log("WARN", f"failed to release {what}, {detail}", LOG_CATEGORY)
