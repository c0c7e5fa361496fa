"""Rate limiting for Inkwell backend.

Requests are keyed on the client IP. ``X-Forwarded-For`` is honored only
when the direct peer is a trusted proxy, so clients cannot pick their own
rate-limit bucket by spoofing the header.
"""

import ipaddress
import os
from typing import Optional

from slowapi import Limiter
from slowapi.util import get_remote_address

from .logging_config import get_logger

logger = get_logger("rate_limit")

# Override with TRUSTED_PROXY_CIDRS (comma-separated CIDRs)
DEFAULT_TRUSTED_CIDRS = (
    "10.0.0.0/8",
    "172.16.0.0/12",
    "192.168.0.0/16",
    "127.0.0.0/8",
    "::1/128",
)

_trusted_networks: Optional[list] = None


def load_trusted_networks(raw: Optional[str] = None) -> list:
    """Parse trusted proxy CIDRs, skipping invalid entries with a warning."""
    if raw is None:
        raw = os.environ.get("TRUSTED_PROXY_CIDRS", "")
    cidrs = [s.strip() for s in raw.split(",") if s.strip()] or list(DEFAULT_TRUSTED_CIDRS)
    networks = []
    for cidr in cidrs:
        try:
            networks.append(ipaddress.ip_network(cidr, strict=False))
        except ValueError:
            logger.warning(f"Ignoring invalid trusted proxy CIDR: {cidr!r}")
    return networks


def reset_trusted_networks() -> None:
    """Forget the cached proxy list so the next request re-reads the environment."""
    global _trusted_networks
    _trusted_networks = None


def is_trusted_proxy(ip_str: str) -> bool:
    global _trusted_networks
    if _trusted_networks is None:
        _trusted_networks = load_trusted_networks()
    try:
        addr = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(addr in network for network in _trusted_networks)


def get_client_ip(request) -> str:
    """Resolve the client IP for rate limiting.

    Uses the leftmost ``X-Forwarded-For`` entry when the direct peer is a
    trusted proxy, otherwise the peer address itself.
    """
    direct_ip = get_remote_address(request)
    if is_trusted_proxy(direct_ip):
        forwarded_for = request.headers.get("x-forwarded-for", "")
        client_ip = forwarded_for.split(",")[0].strip()
        if client_ip:
            return client_ip
    return direct_ip


limiter = Limiter(key_func=get_client_ip)
