"""Custom exceptions for guestnet."""


class GuestNetError(RuntimeError):
    """Base class for guest network errors."""


class ConfigError(GuestNetError):
    """Raised on invalid network configuration or definitions."""


class DNSMasqError(GuestNetError):
    """Raised when the dnsmasq daemon cannot be brought up."""
