"""botgate address resolver package.

Pure functions that turn a request's header set and transport peer address
into a single client IP literal:

  - address.py — header priority walk, candidate normalization, private-range filter
"""

from botgate.resolver.address import (
    CLIENT_IP_HEADERS,
    extract_ip_from_header,
    is_ip_literal,
    is_private_ip,
    normalize_peer_ip,
    resolve_client_ip,
)

__all__ = [
    "CLIENT_IP_HEADERS",
    "extract_ip_from_header",
    "is_ip_literal",
    "is_private_ip",
    "normalize_peer_ip",
    "resolve_client_ip",
]
