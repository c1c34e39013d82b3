"""
Gateway IP check for tokens carrying an IpList claim.

Ranges are CIDR or single IPs. Unparseable entries never match.
"""

import ipaddress
from collections.abc import Iterable


def _ip_in_range(ip_str: str, ip_range: str) -> bool:
    """
    Check if ip_str is inside ip_range (CIDR or single IP).
    Returns False if either is unparseable.
    """
    try:
        ip = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    try:
        net = ipaddress.ip_network(str(ip_range).strip(), strict=False)
    except ValueError:
        return False
    return ip in net


def ip_in_allowed_ranges(ip: str, ranges: Iterable[str]) -> bool:
    """
    True if ip falls inside at least one range. Empty/unparseable ip -> False.

    An IPv4-mapped IPv6 address (::ffff:a.b.c.d) is also checked as IPv4.
    """
    if not ip or not isinstance(ip, str):
        return False
    ip = ip.strip()
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    candidates = [ip]
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        candidates.append(str(addr.ipv4_mapped))
    return any(_ip_in_range(c, r) for r in ranges for c in candidates)
