"""
Outbound IP resolution.

Order: configured override, then what the portal reports (authoritative,
it sees through NAT), then a socket probe toward the portal host.
"""

import socket

import requests

from .config import log
from .constants import PROBE_PORT, PROBE_TIMEOUT
from .errors import IpResolutionError, SrunError


class OutboundIpResolver:
    def __init__(self, portal_client, interfaces, override=None):
        self._portal = portal_client
        self._interfaces = interfaces
        self._override = override
        self._last_ip = override

    @property
    def last_ip(self):
        with self._interfaces.lock:
            return self._last_ip

    def _remember(self, ip):
        with self._interfaces.lock:
            self._last_ip = ip
        return ip

    def from_portal(self):
        payload = self._portal.user_info()
        ip = payload.get("client_ip") or payload.get("online_ip")
        if not ip:
            raise IpResolutionError("Portal response carries neither client_ip nor online_ip")
        return ip

    def from_socket(self, port=PROBE_PORT):
        """Local address the OS picks for a TCP connection to the portal host."""
        host = self._interfaces.host
        try:
            local = self._interfaces.local_address()
            source = (local, 0) if local else None
            with socket.create_connection((host, port), timeout=PROBE_TIMEOUT, source_address=source) as sock:
                return sock.getsockname()[0]
        except (OSError, SrunError) as e:
            raise IpResolutionError(f"Failed to determine outbound IP address: {e}") from e

    def resolve(self):
        if self._override:
            return self._override

        try:
            return self._remember(self.from_portal())
        except (SrunError, requests.RequestException) as e:
            log.error("Failed to get outbound IP address from portal: %s", e)

        try:
            return self._remember(self.from_socket())
        except SrunError as e:
            raise IpResolutionError(f"Outbound IP resolution failed: {e}") from e
