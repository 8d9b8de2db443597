"""
HTTP session with connection pooling, automatic retry, and source-address binding.

When a network interface is selected, every connection the session opens
binds its local address to that interface, so portal traffic leaves through
it regardless of the routing table. The session is built once and shared
read-only by all tasks.
"""

import os

import certifi
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .constants import USER_AGENT, ACCEPT

_retry_strategy = Retry(
    total=3,
    backoff_factor=0.5,                         # Wait 0.5s, 1s, 2s between retries
    status_forcelist=[502, 503, 504],
    allowed_methods=["HEAD", "GET", "OPTIONS"],
    raise_on_status=False,
)


class SourceAddressAdapter(HTTPAdapter):
    """HTTPAdapter whose pooled connections bind to a fixed local address."""

    def __init__(self, source_address=None, **kwargs):
        # Must be set before HTTPAdapter.__init__ builds the pool manager
        self.source_address = source_address
        super().__init__(**kwargs)

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        if self.source_address:
            pool_kwargs["source_address"] = (self.source_address, 0)
        super().init_poolmanager(connections, maxsize, block=block, **pool_kwargs)


def _get_ca_bundle():
    """CA bundle path: env var if it points at a file, otherwise certifi."""
    env_ca = os.environ.get("REQUESTS_CA_BUNDLE") or os.environ.get("SSL_CERT_FILE")
    if env_ca and os.path.isfile(env_ca):
        return env_ca
    return certifi.where()


def portal_headers(portal):
    """Headers every portal request carries."""
    return {
        "User-Agent": USER_AGENT,
        "Referer": portal.rstrip("/") + "/",
        "Accept": ACCEPT,
    }


def create_session(portal, source_address=None, retry=True):
    """
    Create a requests.Session for the portal, optionally bound to a local address.

    ``retry=False`` gives a session that never re-sends a request, for calls
    that must not be repeated behind the caller's back (login, logout).
    """
    session = requests.Session()
    adapter = SourceAddressAdapter(
        source_address=source_address,
        pool_connections=1,
        pool_maxsize=4,
        max_retries=_retry_strategy if retry else 0,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.verify = _get_ca_bundle()
    session.headers.update(portal_headers(portal))
    return session
