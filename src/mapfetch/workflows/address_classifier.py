"""Blocked-address classification for normalized hosts.

The rule table is a flat, unordered set: a host is blocked iff any rule
matches it. IP rules are evaluated with `ipaddress` so that every textual
spelling of an address lands in the same network check.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

FAMILY_IPV4 = "ipv4"
FAMILY_IPV6 = "ipv6"
FAMILY_HOSTNAME = "hostname"

MATCH_CIDR = "cidr"
MATCH_EXACT = "exact"
MATCH_PREFIX = "prefix"
MATCH_SUFFIX = "suffix"

_IPV4_MAPPED = ipaddress.IPv6Network("::ffff:0:0/96")


@dataclass(frozen=True)
class BlockRule:
    family: str
    pattern: str
    category: str
    match: str = MATCH_CIDR

    def network(self) -> Optional[IPNetwork]:
        if self.match != MATCH_CIDR:
            return None
        return ipaddress.ip_network(self.pattern)

    def matches(self, host: str, addr: Optional[IPAddress]) -> bool:
        if self.family == FAMILY_HOSTNAME:
            if self.match == MATCH_EXACT:
                return host == self.pattern
            if self.match == MATCH_PREFIX:
                return host.startswith(self.pattern)
            if self.match == MATCH_SUFFIX:
                return host.endswith(self.pattern)
            return False
        if addr is None:
            return False
        if (self.family == FAMILY_IPV4) != (addr.version == 4):
            return False
        net = _NETWORKS.get(self)
        return net is not None and addr in net


def _rules(family: str, category: str, patterns: Iterable[str], match: str = MATCH_CIDR) -> List[BlockRule]:
    return [BlockRule(family, pattern, category, match) for pattern in patterns]


BLOCK_RULES: Tuple[BlockRule, ...] = tuple(
    _rules(FAMILY_IPV4, "loopback", ["127.0.0.0/8"])
    + _rules(FAMILY_IPV4, "private", ["10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16"])
    + _rules(FAMILY_IPV4, "link_local", ["169.254.0.0/16"])
    + _rules(FAMILY_IPV4, "this_network", ["0.0.0.0/8"])
    + _rules(FAMILY_IPV4, "carrier_grade_nat", ["100.64.0.0/10"])
    + _rules(FAMILY_IPV4, "ietf_protocol", ["192.0.0.0/24"])
    + _rules(FAMILY_IPV4, "documentation", ["192.0.2.0/24", "198.51.100.0/24", "203.0.113.0/24"])
    + _rules(FAMILY_IPV4, "benchmark", ["198.18.0.0/15"])
    + _rules(FAMILY_IPV6, "loopback", ["::1/128"])
    + _rules(FAMILY_IPV6, "unspecified", ["::/128"])
    + _rules(FAMILY_IPV6, "unique_local", ["fc00::/7", "fd00::/8"])
    + _rules(FAMILY_IPV6, "link_local", ["fe80::/10"])
    + _rules(FAMILY_IPV6, "ipv4_translated", ["::ffff:0:0:0/96"])
    + _rules(FAMILY_IPV6, "nat64", ["64:ff9b::/96"])
    + _rules(FAMILY_IPV6, "discard_only", ["100::/64"])
    + _rules(FAMILY_IPV6, "documentation", ["2001:db8::/32"])
    + _rules(FAMILY_IPV6, "teredo", ["2001::/32"])
    + _rules(FAMILY_HOSTNAME, "loopback", ["localhost"], MATCH_EXACT)
    + _rules(FAMILY_HOSTNAME, "loopback", ["localhost."], MATCH_PREFIX)
    + _rules(FAMILY_HOSTNAME, "loopback", [".localhost"], MATCH_SUFFIX)
    + _rules(
        FAMILY_HOSTNAME,
        "internal_domain",
        [".local", ".internal", ".intranet", ".corp", ".home", ".lan", ".localdomain"],
        MATCH_SUFFIX,
    )
    + _rules(FAMILY_HOSTNAME, "kubernetes", ["kubernetes.default"], MATCH_PREFIX)
    + _rules(FAMILY_HOSTNAME, "kubernetes", [".svc.cluster.local"], MATCH_SUFFIX)
    + _rules(FAMILY_HOSTNAME, "cloud_metadata", ["metadata."], MATCH_PREFIX)
    + _rules(FAMILY_HOSTNAME, "cloud_metadata", ["169.254.169.254", "metadata.google.internal"], MATCH_EXACT)
)

_NETWORKS = {rule: rule.network() for rule in BLOCK_RULES if rule.match == MATCH_CIDR}


def _parse_address(host: str) -> Optional[IPAddress]:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        return None


def _canonical(host: str) -> str:
    h = (host or "").strip().lower()
    if h.startswith("[") and h.endswith("]"):
        h = h[1:-1]
    if h.endswith(".") and len(h) > 1:
        h = h[:-1]
    return h


def matching_rules(host: str, rules: Iterable[BlockRule] = BLOCK_RULES) -> List[BlockRule]:
    """Return every rule that matches `host` (a normalized hostname).

    IPv4-mapped IPv6 addresses (`::ffff:a.b.c.d` in any spelling) are
    classified by their embedded IPv4 address rather than by the mapped range.
    """
    h = _canonical(host)
    addr = _parse_address(h)
    if isinstance(addr, ipaddress.IPv6Address) and addr in _IPV4_MAPPED:
        mapped = addr.ipv4_mapped
        if mapped is not None:
            return matching_rules(str(mapped), rules)
    return [rule for rule in rules if rule.matches(h, addr)]


def is_blocked(host: str) -> bool:
    """True when `host` is a private, reserved, internal or metadata address."""
    return bool(matching_rules(host))
