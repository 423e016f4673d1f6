"""Read-only access to the dnsmasq lease database."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, List, Optional

from guestnet.models import LeaseRecord

# dnsmasq lease entries consist of:
# <lease expiration> <mac addr> <ipv4> <name> <client id>
_DELIMITER = " "
_EXPIRY_IDX = 0
_HW_ADDR_IDX = 1
_IPV4_IDX = 2
_HOSTNAME_IDX = 3
_CLIENT_ID_IDX = 4
_MIN_FIELDS = 3


def _optional_field(fields: List[str], idx: int) -> Optional[str]:
    if len(fields) <= idx or fields[idx] in ("", "*"):
        return None
    return fields[idx]


def parse_lease_line(line: str) -> Optional[LeaseRecord]:
    """Return the record on a lease line, or None for lines too short to hold one."""
    fields = line.rstrip("\r\n").split(_DELIMITER)
    if len(fields) < _MIN_FIELDS:
        return None
    try:
        expiry: Optional[int] = int(fields[_EXPIRY_IDX])
    except ValueError:
        expiry = None
    return LeaseRecord(
        expiry=expiry,
        hw_addr=fields[_HW_ADDR_IDX],
        ip_address=fields[_IPV4_IDX],
        hostname=_optional_field(fields, _HOSTNAME_IDX),
        client_id=_optional_field(fields, _CLIENT_ID_IDX),
    )


def parse_leases(text: str) -> Iterator[LeaseRecord]:
    for line in text.splitlines():
        record = parse_lease_line(line)
        if record is not None:
            yield record


def read_leases(path: Path) -> List[LeaseRecord]:
    """Parse the lease file; a missing or unreadable file has no leases."""
    try:
        text = path.read_text(errors="replace")
    except OSError:
        return []
    return list(parse_leases(text))


def find_ip(path: Path, hw_addr: str) -> Optional[str]:
    """Return the IP of the first lease held by ``hw_addr``, in file order."""
    try:
        with open(path, errors="replace") as leases_file:
            for line in leases_file:
                record = parse_lease_line(line)
                if record is not None and record.hw_addr == hw_addr:
                    return record.ip_address
    except OSError:
        return None
    return None
