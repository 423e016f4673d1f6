"""Global constants and defaults for guestnet."""

from __future__ import annotations

import os
import re

DEFAULT_DNSMASQ_BIN = "dnsmasq"
DEFAULT_DHCP_RELEASE_BIN = "dhcp_release"
DEFAULT_DOMAIN = "guestnet"

# Seconds
DEFAULT_START_TIMEOUT = 5.0
DEFAULT_STARTUP_GRACE = 0.5
DEFAULT_TERMINATE_TIMEOUT = 1.0
DEFAULT_KILL_TIMEOUT = 0.1
DEFAULT_RELEASE_TIMEOUT = 10.0

CONF_FILE_PREFIX = "dnsmasq-"
CONF_FILE_SUFFIX = ".conf"
LEASE_FILE_SUFFIX = ".leases"

# dnsmasq exits with 2 when it cannot bind its network ports
PORT_IN_USE_EXIT_CODE = 2
PORT_IN_USE_HINT = "Ensure nothing is using port 53."

LOG_CATEGORY = "dnsmasq"

# Linux IFNAMSIZ minus the terminating NUL
MAX_BRIDGE_NAME_LEN = 15
BRIDGE_NAME_RE = re.compile(r"^[^/:\s]+$")

STDERR_TAIL_LINES = 20

TRUTHY = {"1", "true", "yes", "on"}

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY
