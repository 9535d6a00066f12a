"""
Network origin classification.

Mutating endpoints are only reachable from the local network: private IPv4
ranges, IPv6 unique-local addresses and loopback.
"""

import ipaddress
import logging
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

LOCAL_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("::1/128"),
)


def parse_address(raw: Optional[str]):
    """
    Parse a single address as seen in REMOTE_ADDR or X-Forwarded-For.

    Brackets and IPv6 zone ids are stripped and IPv4-mapped IPv6 addresses
    are unwrapped. Returns None when the value is not an IP address.
    """
    if not raw or not isinstance(raw, str):
        return None
    value = raw.strip().strip("[]")
    if "%" in value:
        value = value.split("%", 1)[0]
    try:
        ip = ipaddress.ip_address(value)
    except ValueError:
        return None
    if ip.version == 6 and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def is_local_address(raw: Optional[str]) -> bool:
    """True if the address is private, unique-local or loopback."""
    ip = parse_address(raw)
    if ip is None:
        return False
    return any(ip.version == net.version and ip in net for net in LOCAL_NETWORKS)


def candidate_addresses(remote_addr: Optional[str], forwarded_for: Optional[str] = None,
                        trust_proxy: bool = False) -> List[str]:
    """
    Collect the addresses a request may originate from.

    The forwarded chain is only considered when ``trust_proxy`` is set;
    otherwise a client could claim any origin by sending the header.
    """
    candidates = []
    if trust_proxy and forwarded_for:
        candidates.extend(part.strip() for part in forwarded_for.split(",") if part.strip())
    if remote_addr:
        candidates.append(remote_addr)
    return candidates


def is_local_origin(candidates: Iterable[str]) -> bool:
    """True if any candidate is a local-network address. Empty input is denied."""
    return any(is_local_address(addr) for addr in candidates)


def is_local_request(remote_addr: Optional[str], forwarded_for: Optional[str] = None,
                     trust_proxy: bool = False) -> bool:
    candidates = candidate_addresses(remote_addr, forwarded_for, trust_proxy)
    allowed = is_local_origin(candidates)
    if not allowed:
        logger.warning("Rejected non-local origin: %s", ", ".join(candidates) or "<none>")
    return allowed
