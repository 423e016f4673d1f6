"""guestnet package."""

__all__ = [
    "config",
    "constants",
    "dnsmasq",
    "dnsmasq_config",
    "exceptions",
    "leases",
    "models",
    "process",
    "release",
    "utils",
]
