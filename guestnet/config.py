"""Configuration loading and environment variable parsing for guestnet."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple, Optional, Union

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from guestnet.constants import (
    BRIDGE_NAME_RE,
    DEFAULT_DHCP_RELEASE_BIN,
    DEFAULT_DNSMASQ_BIN,
    DEFAULT_DOMAIN,
    DEFAULT_KILL_TIMEOUT,
    DEFAULT_RELEASE_TIMEOUT,
    DEFAULT_START_TIMEOUT,
    DEFAULT_STARTUP_GRACE,
    DEFAULT_TERMINATE_TIMEOUT,
    MAX_BRIDGE_NAME_LEN,
)
from guestnet.exceptions import ConfigError
from guestnet.utils import get_env, parse_float_env


@dataclass(frozen=True)
class SupervisorSettings:
    dnsmasq_binary: str = DEFAULT_DNSMASQ_BIN
    dhcp_release_binary: str = DEFAULT_DHCP_RELEASE_BIN
    domain: str = DEFAULT_DOMAIN
    start_timeout: float = DEFAULT_START_TIMEOUT
    startup_grace: float = DEFAULT_STARTUP_GRACE
    terminate_timeout: float = DEFAULT_TERMINATE_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    release_timeout: float = DEFAULT_RELEASE_TIMEOUT


class NetworkDefinition(NamedTuple):
    data_dir: Path
    bridge_name: str
    subnet: str


def load_settings() -> SupervisorSettings:
    domain = (get_env("DNSMASQ_DOMAIN") or DEFAULT_DOMAIN).strip().strip("/")
    if not domain:
        raise ConfigError("DNSMASQ_DOMAIN must not be empty")
    return SupervisorSettings(
        dnsmasq_binary=(get_env("DNSMASQ_BIN") or DEFAULT_DNSMASQ_BIN).strip(),
        dhcp_release_binary=(get_env("DHCP_RELEASE_BIN") or DEFAULT_DHCP_RELEASE_BIN).strip(),
        domain=domain,
        start_timeout=parse_float_env("DNSMASQ_START_TIMEOUT", DEFAULT_START_TIMEOUT),
        startup_grace=parse_float_env("DNSMASQ_STARTUP_GRACE", DEFAULT_STARTUP_GRACE),
        terminate_timeout=parse_float_env("DNSMASQ_TERMINATE_TIMEOUT", DEFAULT_TERMINATE_TIMEOUT),
        kill_timeout=parse_float_env("DNSMASQ_KILL_TIMEOUT", DEFAULT_KILL_TIMEOUT),
        release_timeout=parse_float_env("DHCP_RELEASE_TIMEOUT", DEFAULT_RELEASE_TIMEOUT),
    )


def validate_bridge_name(name: str) -> str:
    if not name or len(name) > MAX_BRIDGE_NAME_LEN or not BRIDGE_NAME_RE.match(name):
        raise ConfigError(
            f"Invalid bridge name '{name}'. Use 1-{MAX_BRIDGE_NAME_LEN} characters without '/', ':' or whitespace"
        )
    return name


def validate_subnet(subnet: Union[str, ipaddress.IPv4Network]) -> ipaddress.IPv4Network:
    try:
        network = ipaddress.ip_network(subnet, strict=False)
    except ValueError as exc:
        raise ConfigError(f"Invalid subnet '{subnet}': {exc}")
    if not isinstance(network, ipaddress.IPv4Network):
        raise ConfigError(f"Subnet '{subnet}' must be IPv4")
    # network, bridge, at least one guest, broadcast
    if network.num_addresses < 4:
        raise ConfigError(f"Subnet '{subnet}' is too small; use a prefix of /30 or shorter (e.g. 10.10.0.0/24)")
    return network


def load_network_definition(config_path: Path, name: str) -> NetworkDefinition:
    """Read one named network from a YAML file of the form ``networks: {name: {...}}``."""
    if not config_path.exists():
        raise ConfigError(f"Network config missing: {config_path}")
    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Network config {config_path} contains invalid YAML: {exc}")
    networks = data.get("networks", {}) if isinstance(data, dict) else {}
    if name not in networks:
        available = sorted(networks.keys())
        available_list = "\n    ".join(available) or "(none)"
        raise ConfigError(
            f"Unknown network '{name}'.\n"
            f"  Available networks:\n"
            f"    {available_list}"
        )
    entry = networks[name] or {}
    missing = [key for key in ("data_dir", "bridge", "subnet") if not entry.get(key)]
    if missing:
        raise ConfigError(f"Network '{name}' is missing: {', '.join(missing)}")

    bridge_name = validate_bridge_name(str(entry["bridge"]).strip())
    subnet = str(validate_subnet(str(entry["subnet"]).strip()))
    return NetworkDefinition(data_dir=Path(entry["data_dir"]), bridge_name=bridge_name, subnet=subnet)


def resolve_definition(config_path: Optional[Path] = None, name: Optional[str] = None) -> NetworkDefinition:
    """Resolve a network definition from GUESTNET_CONFIG / GUESTNET_NETWORK when not given."""
    if config_path is None:
        raw = get_env("GUESTNET_CONFIG")
        if not raw:
            raise ConfigError("GUESTNET_CONFIG must point to a network config file")
        config_path = Path(raw)
    if name is None:
        name = (get_env("GUESTNET_NETWORK") or "default").strip()
    return load_network_definition(config_path, name)
