import logging
import threading
from urllib.parse import parse_qs, urlsplit

import pytest

from srun_core.config import AgentConfig, log
from srun_core.portal import LoginOutcome, PortalClient

PORTAL = "http://portal.test"
USER_INFO_URL = PORTAL + "/cgi-bin/rad_user_info"
CHALLENGE_URL = PORTAL + "/cgi-bin/get_challenge"
SRUN_PORTAL_URL = PORTAL + "/cgi-bin/srun_portal"


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    for handler in list(log.handlers):
        log.removeHandler(handler)
    log.propagate = True
    log.setLevel(logging.NOTSET)


def query(request):
    """Case-preserving query dict (requests_mock's .qs lowercases values)."""
    return {k: v[0] for k, v in parse_qs(urlsplit(request.url).query).items()}


def jsonp(payload_text):
    """requests_mock text callback that echoes the request's callback name."""
    def _respond(request, context):
        return f"{query(request)['callback']}({payload_text})"
    return _respond


class FakeEncoder:
    def __init__(self):
        self.calls = []

    def encode(self, credentials, ip):
        self.calls.append((credentials, ip))
        return {"password": "{MD5}0123abcd", "chksum": "c0ffee", "info": "{SRBX1}abc", "n": "200", "type": "1"}


@pytest.fixture
def config():
    return AgentConfig(
        portal=PORTAL,
        username="2021010101",
        password="hunter2",
        retry=0,
        retry_wait_time=0,
        login_pause=0,
        logout_spacing=0,
    )


@pytest.fixture
def encoder():
    return FakeEncoder()


@pytest.fixture
def portal(config, encoder):
    client = PortalClient(config, encoder)
    yield client
    client.close()


# ─── Orchestrator fakes ──────────────────────────────────────────

class FakePortal:
    """Scripted portal: liveness answers and login results are consumed in order."""

    def __init__(self, liveness=(), logins=(), default_liveness=True):
        self.liveness = list(liveness)
        self.logins = list(logins)
        self.default_liveness = default_liveness
        self.liveness_calls = 0
        self.login_calls = []
        self.logout_calls = []
        self.keepalive_calls = 0
        self.keepalive_errors = []
        self.source_address = None
        self.rebinds = []

    def check_liveness(self):
        self.liveness_calls += 1
        if self.liveness:
            return self.liveness.pop(0)
        return self.default_liveness

    def login(self, ip):
        self.login_calls.append(ip)
        result = self.logins.pop(0) if self.logins else LoginOutcome(True, "res=login_ok")
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result()
        return result

    def logout(self, ip):
        self.logout_calls.append(ip)
        return True

    def keep_alive(self):
        self.keepalive_calls += 1
        if self.keepalive_errors:
            raise self.keepalive_errors.pop(0)

    def rebind(self, source_address):
        self.rebinds.append(source_address)
        self.source_address = source_address


class FakeInterfaces:
    def __init__(self, errors=()):
        self.errors = list(errors)
        self.resolve_calls = 0
        self.lock = threading.Lock()
        self.host = "portal.test"

    def resolve(self):
        self.resolve_calls += 1
        if self.errors:
            raise self.errors.pop(0)

    def local_address(self):
        return None


class FakeOutbound:
    def __init__(self, results=()):
        self.results = list(results)
        self.calls = 0
        self.last_ip = None

    def resolve(self):
        self.calls += 1
        result = self.results.pop(0) if self.results else "10.20.30.40"
        if isinstance(result, Exception):
            raise result
        self.last_ip = result
        return result
