"""Client address resolution for botgate.

Derives the visitor's public IP from proxy/CDN headers, falling back to the
transport peer address.

Trust ordering is heuristic only: headers are consulted in the fixed order of
``CLIENT_IP_HEADERS`` and the first one that yields a public address wins.
For list-valued headers (``X-Forwarded-For`` and friends) the LEFTMOST entry is
taken as the original client. Nothing here verifies that a header was set by a
proxy rather than by the client itself.

All functions are pure and never raise; malformed input yields ``None`` or
falls through to the next source.
"""

from __future__ import annotations

import re
from typing import Mapping, Optional

# ─── Constants ────────────────────────────────────────────────────────────────

# Most trusted first: client-declared IP headers, then generic forwarded-for
# conventions, then connection-layer headers.
CLIENT_IP_HEADERS: tuple[str, ...] = (
    "x-client-ip",
    "x-forwarded-for",
    "x-real-ip",
    "cf-connecting-ip",
    "fastly-client-ip",
    "true-client-ip",
    "x-forwarded",
    "x-cluster-client-ip",
    "forwarded-for",
    "forwarded",
)

_IPV4_WITH_PORT = re.compile(r"^(\d+\.\d+\.\d+\.\d+):\d+$")
_HOST_WITH_PORT = re.compile(r"^(.+):(\d+)$")
_BRACKETED = re.compile(r"^\[([^\]]*)\](?::\d*)?$")
_STRAY_BRACKETS = re.compile(r"^\[|\]$")
_HEX_DIGIT = re.compile(r"[0-9a-f]", re.IGNORECASE)
# Dotted-quad, or hex groups and colons (optionally with an embedded IPv4 tail).
_IP_LITERAL = re.compile(r"^(?:\d+\.\d+\.\d+\.\d+|[0-9a-f]*:[0-9a-f:.]*)$", re.IGNORECASE)
_IPV4_MAPPED_PREFIX = re.compile(r"^::ffff:", re.IGNORECASE)
_PEER_IPV4_MAPPED_PREFIX = "::ffff:"

_DOTTED_QUAD = re.compile(r"^\d+\.\d+\.\d+\.\d+$")
_PRIVATE_IPV4 = (
    re.compile(r"^10\."),
    re.compile(r"^192\.168\."),
    re.compile(r"^172\.(1[6-9]|2\d|3[0-1])\."),
    re.compile(r"^169\.254\."),
)
_UNIQUE_LOCAL = re.compile(r"^(?:fc|fd)", re.IGNORECASE)
_LINK_LOCAL = re.compile(r"^fe80:", re.IGNORECASE)
_PRIVATE_EXACT: frozenset[str] = frozenset({"127.0.0.1", "::1", "::"})


# ─── Public API ───────────────────────────────────────────────────────────────


def resolve_client_ip(
    headers: Mapping[str, str],
    peer_address: Optional[str],
) -> Optional[str]:
    """Return the best-effort public client IP for a request.

    1. Walk ``CLIENT_IP_HEADERS`` in order. The first header whose leading
       entry normalizes to a non-private address is returned immediately;
       lower-priority headers are never read.
    2. Otherwise return the normalized peer address, even if it is private or
       loopback (there is nothing left to fall back to).
    3. ``None`` when the peer address is also absent.

    Args:
        headers:      Request headers. Lookups use lowercase names, so pass a
                      case-insensitive mapping (``request.headers``) or a dict
                      with lowercase keys.
        peer_address: Transport-level remote address (``request.client.host``).
    """
    for name in CLIENT_IP_HEADERS:
        raw = headers.get(name)
        if not raw:
            continue
        ip = extract_ip_from_header(raw)
        if ip and is_ip_literal(ip) and not is_private_ip(ip):
            return ip

    return normalize_peer_ip(peer_address)


def extract_ip_from_header(raw: Optional[str]) -> Optional[str]:
    """Extract and normalize the first address in a header value.

    Normalization steps, in order:
      - bracket notation ``[v6]`` / ``[v6]:port`` → ``v6``
      - ``a.b.c.d:port`` → ``a.b.c.d``
      - ``host:port`` where ``host`` itself contains a colon and at least one
        hex digit → ``host`` (``::1`` is left whole).
        A bare IPv6 literal ending in a numeric group is indistinguishable
        from one carrying a port, so ``2001:db8::1`` becomes ``2001:db8:``
        here. Proxies that append ports to IPv6 should bracket them.
      - leading ``::ffff:`` (IPv4-mapped IPv6, any case) removed
      - ``%zone`` suffix removed

    Returns:
        The normalized candidate, ``""`` if normalization leaves nothing, or
        ``None`` when the header holds no non-empty entry.
    """
    if not raw:
        return None
    first = next((part.strip() for part in raw.split(",") if part.strip()), None)
    if first is None:
        return None

    bracketed = _BRACKETED.match(first)
    if bracketed:
        ip = bracketed.group(1)
    else:
        ip = _STRAY_BRACKETS.sub("", first)

        ipv4_with_port = _IPV4_WITH_PORT.match(ip)
        if ipv4_with_port:
            return ipv4_with_port.group(1)

        # A host of bare colons (``::1`` split as ``:`` + ``1``) is not an address.
        maybe_port = _HOST_WITH_PORT.match(ip)
        if maybe_port and ":" in maybe_port.group(1) and _HEX_DIGIT.search(maybe_port.group(1)):
            ip = maybe_port.group(1)

    ip = _IPV4_MAPPED_PREFIX.sub("", ip)
    return ip.split("%")[0]


def normalize_peer_ip(addr: Optional[str]) -> Optional[str]:
    """Normalize a transport peer address.

    Peer addresses never carry a port, so only the IPv4-mapped prefix and the
    zone id are stripped.
    """
    if not addr:
        return None
    ip = addr
    if ip.startswith(_PEER_IPV4_MAPPED_PREFIX):
        ip = ip[len(_PEER_IPV4_MAPPED_PREFIX):]
    return ip.split("%")[0]


def is_ip_literal(ip: Optional[str]) -> bool:
    """Return True if ``ip`` is shaped like an IPv4 or IPv6 literal.

    Shape only: ``unknown`` and other proxy placeholders are rejected, octet
    and group ranges are not checked.
    """
    return bool(ip) and _IP_LITERAL.match(ip) is not None


def is_private_ip(ip: Optional[str]) -> bool:
    """Return True for loopback, private, unique-local and link-local literals.

    Absent or empty input counts as private so that it is never accepted as a
    resolved header address.
    """
    if not ip:
        return True
    if ip in _PRIVATE_EXACT:
        return True

    if _DOTTED_QUAD.match(ip):
        return any(pattern.match(ip) for pattern in _PRIVATE_IPV4)

    if _UNIQUE_LOCAL.match(ip):
        return True
    if _LINK_LOCAL.match(ip):
        return True

    return False
