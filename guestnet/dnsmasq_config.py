"""dnsmasq configuration materialization for guestnet."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from ipaddress import IPv4Network
from pathlib import Path
from typing import List

from guestnet.constants import (
    CONF_FILE_PREFIX,
    CONF_FILE_SUFFIX,
    DEFAULT_DNSMASQ_BIN,
    DEFAULT_DOMAIN,
    LEASE_FILE_SUFFIX,
    LOG_CATEGORY,
)
from guestnet.models import NetworkServiceConfig
from guestnet.utils import ensure_directory, log, remove_file


def _unique_file(directory: Path, suffix: str) -> Path:
    fd, name = tempfile.mkstemp(prefix=CONF_FILE_PREFIX, suffix=suffix, dir=directory)
    os.close(fd)
    return Path(name)


def render_config(config: NetworkServiceConfig) -> str:
    """Render the dnsmasq.conf body for one bridge."""
    start, end = config.dhcp_range
    lines = [
        "strict-order",
        "bind-interfaces",
        "except-interface=lo",
        f"interface={config.bridge_name}",
        f"listen-address={config.bridge_address}",
        f"domain={config.domain}",
        f"local=/{config.domain}/",
        "dhcp-no-override",
        "dhcp-ignore-clid",
        "dhcp-authoritative",
        f"dhcp-range={start},{end},infinite",
        f"dhcp-leasefile={config.lease_file}",
    ]
    return "\n".join(lines) + "\n"


def materialize(
    data_dir: Path,
    bridge_name: str,
    subnet: IPv4Network,
    domain: str = DEFAULT_DOMAIN,
) -> NetworkServiceConfig:
    """Write a private config file and reserve a private lease file under ``data_dir``."""
    data_dir = Path(data_dir)
    ensure_directory(data_dir)
    conf_file = _unique_file(data_dir, CONF_FILE_SUFFIX)
    try:
        lease_file = _unique_file(data_dir, LEASE_FILE_SUFFIX)
    except OSError:
        remove_file(conf_file)
        raise
    config = NetworkServiceConfig(
        data_dir=data_dir,
        bridge_name=bridge_name,
        subnet=subnet,
        lease_file=lease_file,
        conf_file=conf_file,
        domain=domain,
    )
    try:
        conf_file.write_text(render_config(config))
    except OSError:
        remove_file(conf_file)
        remove_file(lease_file)
        raise
    log("DEBUG", f"Wrote dnsmasq config {conf_file} (leases: {lease_file})", LOG_CATEGORY)
    return config


@dataclass
class DNSMasqProcessSpec:
    """Command line for one dnsmasq instance."""

    config: NetworkServiceConfig
    program: str = DEFAULT_DNSMASQ_BIN

    def arguments(self) -> List[str]:
        return [
            "--keep-in-foreground",
            "--pid-file",
            f"--conf-file={self.config.conf_file}",
        ]

    def command(self) -> List[str]:
        return [self.program] + self.arguments()
