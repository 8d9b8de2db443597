"""
Network interface inventory.

Enumerates host interfaces with psutil and keeps the usable ones: up, not
loopback, with at least one address. Addresses are kept only if they are
not loopback, multicast, unspecified, or link-local.

The inventory is rebuilt wholesale on every refresh, under one lock, so a
reader never sees a half-built map. The same lock guards the outbound IP
cache (see outbound.py).
"""

import ipaddress
import socket
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union
from urllib.parse import urlsplit

import psutil

from .config import log
from .errors import ConfigurationError, InterfaceError, NoRouteError

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_IP_FAMILIES = (socket.AF_INET, socket.AF_INET6)


@dataclass
class InterfaceInventory:
    addresses: Dict[str, List[IPAddress]] = field(default_factory=dict)

    def __contains__(self, name):
        return name in self.addresses

    def get(self, name) -> List[IPAddress]:
        return self.addresses.get(name, [])

    def ipv4(self, name) -> Optional[IPAddress]:
        return next((a for a in self.get(name) if a.version == 4), None)

    def ipv6(self, name) -> Optional[IPAddress]:
        return next((a for a in self.get(name) if a.version == 6), None)

    def all_addresses(self):
        return [a for addrs in self.addresses.values() for a in addrs]

    def describe(self):
        lines = []
        for name, addrs in self.addresses.items():
            lines.append(name)
            lines.extend(f"\tIP: {a}" for a in addrs)
        return "\n".join(lines)


# ─── Filtering ───────────────────────────────────────────────────

def _parse_address(raw) -> Optional[IPAddress]:
    # IPv6 link-local addresses come back with a %scope suffix
    try:
        return ipaddress.ip_address(raw.split("%", 1)[0])
    except ValueError:
        return None


def is_usable_address(addr: IPAddress) -> bool:
    return not (
        addr.is_loopback
        or addr.is_multicast
        or addr.is_unspecified
        or addr.is_link_local
    )


def _is_loopback_interface(stats, ip_addrs):
    flags = getattr(stats, "flags", "") or ""
    if "loopback" in flags.split(","):
        return True
    return bool(ip_addrs) and all(a.is_loopback for a in ip_addrs)


def portal_host(portal):
    host = urlsplit(portal).hostname
    if not host:
        raise ConfigurationError(f"Portal URL has no host: {portal!r}")
    return host


def portal_families(host):
    """IP versions (4, 6) the portal host resolves to."""
    try:
        infos = socket.getaddrinfo(host, None, proto=socket.IPPROTO_TCP)
    except socket.gaierror as e:
        raise NoRouteError(f"Cannot resolve portal host {host}: {e}") from e
    versions = set()
    for family, *_rest in infos:
        if family == socket.AF_INET:
            versions.add(4)
        elif family == socket.AF_INET6:
            versions.add(6)
    return versions


# ─── Resolver ────────────────────────────────────────────────────

class InterfaceResolver:
    """Owns the interface inventory and the optional interface restriction."""

    def __init__(self, portal, interface=None):
        self._portal_host = portal_host(portal)
        self.interface = interface
        self.lock = threading.Lock()
        self._inventory = InterfaceInventory()

    @property
    def host(self):
        return self._portal_host

    @property
    def inventory(self) -> InterfaceInventory:
        return self._inventory

    def _enumerate(self) -> InterfaceInventory:
        try:
            all_addrs = psutil.net_if_addrs()
            all_stats = psutil.net_if_stats()
        except (OSError, psutil.Error) as e:
            raise InterfaceError(f"Cannot enumerate network interfaces: {e}") from e

        inventory = InterfaceInventory()
        for raw_name, snics in all_addrs.items():
            name = raw_name.strip()
            stats = all_stats.get(raw_name)
            if stats is None or not stats.isup:
                continue
            ip_addrs = [
                a for a in (_parse_address(s.address) for s in snics if s.family in _IP_FAMILIES)
                if a is not None
            ]
            if not ip_addrs or _is_loopback_interface(stats, ip_addrs):
                continue
            inventory.addresses[name] = [a for a in ip_addrs if is_usable_address(a)]

        if not inventory.addresses:
            raise InterfaceError("No enabled network interface with an IP address found")
        return inventory

    def refresh(self) -> InterfaceInventory:
        """Rebuild the inventory from the host. Raises InterfaceError."""
        with self.lock:
            self._inventory = self._enumerate()
            inventory = self._inventory
        log.info(
            "All enabled network interfaces with IP addresses on this machine:\n%s",
            inventory.describe(),
        )
        return inventory

    def resolve(self) -> InterfaceInventory:
        """
        Refresh and validate against the configured restriction.

        ConfigurationError: the named interface is missing or has no usable address.
        NoRouteError: nothing usable in an address family the portal resolves to.
        """
        inventory = self.refresh()

        if self.interface is not None:
            log.info("Selected network interface: %s", self.interface)
            if not inventory.get(self.interface):
                raise ConfigurationError(
                    f"Network interface {self.interface} not found or has no usable address. "
                    "Check your network interface name."
                )
            log.debug(
                "Selected network interface IPv4: %s \tIPv6: %s",
                inventory.ipv4(self.interface), inventory.ipv6(self.interface),
            )
            if self.local_address() is None:
                raise NoRouteError(
                    f"Network interface {self.interface} has no address in a family "
                    f"that can reach {self._portal_host}"
                )
            return inventory

        families = portal_families(self._portal_host)
        if not any(a.version in families for a in inventory.all_addresses()):
            raise NoRouteError("No available IP address for outbound. Please check your network interface.")
        return inventory

    def local_address(self) -> Optional[str]:
        """Bind address on the selected interface, or None when unrestricted."""
        if self.interface is None:
            return None
        families = portal_families(self._portal_host)
        with self.lock:
            v4 = self._inventory.ipv4(self.interface)
            v6 = self._inventory.ipv6(self.interface)
        if 4 in families and v4 is not None:
            return str(v4)
        if 6 in families and v6 is not None:
            return str(v6)
        return None
