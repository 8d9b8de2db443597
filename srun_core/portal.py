"""
Portal client: the SRun HTTP calls.

  check_liveness()  → rad_user_info, substring test, never raises
  user_info()       → rad_user_info, parsed (outbound IP discovery)
  get_challenge()   → get_challenge, the per-attempt challenge
  login()           → get_challenge + encoder + srun_portal?action=login
  logout()          → srun_portal?action=logout, best effort, never raises
  keep_alive()      → OPTIONS on the portal root, response discarded

Liveness and keep-alive are read-only; login/logout serialization is the
orchestrator's job.
"""

from dataclasses import dataclass
from typing import Optional

import requests

from .config import log
from .constants import (
    USER_INFO_PATH, CHALLENGE_PATH, PORTAL_PATH, CONNECT_TIMEOUT, READ_TIMEOUT,
    LOGIN_OK_MARKER, ONLINE_MARKER, OFFLINE_MARKER,
)
from .encoder import Credentials
from .errors import PortalError, ProtocolError, SrunError
from . import http_client
from . import protocol

_TIMEOUT = (CONNECT_TIMEOUT, READ_TIMEOUT)


@dataclass
class LoginOutcome:
    success: bool
    body: str
    error: Optional[PortalError] = None

    def describe(self):
        if self.success:
            return "login_ok"
        if self.error is not None:
            return f"{self.error.code}: {self.error.message}"
        return self.body[:200]


class PortalClient:
    """
    One SRun portal, one account, two HTTP sessions.

    Status, challenge and keep-alive calls go through a retrying session.
    Login and logout go through a session that never re-sends, since a
    repeated login would reuse a spent challenge.
    """

    def __init__(self, config, encoder, source_address=None):
        self._portal = config.portal
        self._username = config.username
        self._password = config.password
        self._ac_id = str(config.ac_id)
        self._encoder = encoder
        self.source_address = source_address
        self._session = http_client.create_session(self._portal, source_address)
        self._once = http_client.create_session(self._portal, source_address, retry=False)

    def rebind(self, source_address):
        """Replace both sessions with ones bound to ``source_address``."""
        old = (self._session, self._once)
        self._session = http_client.create_session(self._portal, source_address)
        self._once = http_client.create_session(self._portal, source_address, retry=False)
        self.source_address = source_address
        for session in old:
            session.close()

    def _get(self, path, params, session=None):
        return (session or self._session).get(self._portal + path, params=params, timeout=_TIMEOUT)

    def _jsonp_params(self, **extra):
        ts = protocol.timestamp_ms()
        params = {"callback": protocol.make_callback(ts)}
        params.update(extra)
        params["_"] = ts
        return params

    # ─── Status ──────────────────────────────────────────────────

    def check_liveness(self) -> bool:
        """True when the portal reports this client as authenticated."""
        log.debug("Checking intranet status")
        try:
            resp = self._get(USER_INFO_PATH, self._jsonp_params())
            body = resp.text
        except requests.RequestException as e:
            log.warning("Intranet is not reachable: %s", e)
            return False

        if ONLINE_MARKER in body or OFFLINE_MARKER not in body:
            log.debug("Intranet is online")
            return True
        log.info("Intranet is OFFLINE!")
        return False

    def user_info(self):
        """The rad_user_info payload as a dict (client_ip, online_ip, ...)."""
        params = self._jsonp_params()
        resp = self._get(USER_INFO_PATH, params)
        return protocol.parse_payload(resp.text, params["callback"])

    # ─── Login ───────────────────────────────────────────────────

    def get_challenge(self, ip):
        params = self._jsonp_params(username=self._username, ip=ip)
        resp = self._get(CHALLENGE_PATH, params)
        payload = protocol.parse_result(resp.text, params["callback"])
        challenge = payload.get("challenge")
        if not challenge:
            raise ProtocolError(f"No challenge in portal response: {resp.text[:200]!r}")
        return challenge

    def login(self, ip) -> LoginOutcome:
        """
        One login attempt from ``ip``.

        Success is the literal ``login_ok`` marker anywhere in the raw body;
        the body is not required to be JSON.
        """
        log.info("Performing login request")
        challenge = self.get_challenge(ip)
        token = self._encoder.encode(Credentials(self._username, self._password, challenge), ip)

        params = self._jsonp_params(
            action="login",
            username=self._username,
            ac_id=self._ac_id,
            ip=ip,
        )
        ts = params.pop("_")
        params.update(dict(token))
        params["_"] = ts

        resp = self._get(PORTAL_PATH, params, self._once)
        body = resp.text
        log.debug("Login response # %d: %s", resp.status_code, body)

        if LOGIN_OK_MARKER in body:
            log.info("Login success")
            return LoginOutcome(True, body)

        error = None
        try:
            error = protocol.check_for_error(protocol.parse_payload(body, params["callback"]))
        except ProtocolError:
            pass  # plain-text rejection, the body says it all
        outcome = LoginOutcome(False, body, error)
        log.warning("Login failed: %s", outcome.describe())
        return outcome

    def logout(self, ip):
        """Best-effort logout. Failures are logged, never raised."""
        log.info("Performing logout request")
        params = self._jsonp_params(
            action="logout",
            username=self._username,
            ip=ip,
            ac_id=self._ac_id,
        )
        try:
            resp = self._get(PORTAL_PATH, params, self._once)
            log.debug("Logout response # %d: %s", resp.status_code, resp.text)
            protocol.parse_result(resp.text, params["callback"])
            return True
        except PortalError as e:
            log.warning("Failed to logout: %s: %s", e.code, e.message)
        except (SrunError, requests.RequestException) as e:
            log.warning("Failed to logout: %s", e)
        return False

    # ─── Heartbeat ───────────────────────────────────────────────

    def keep_alive(self):
        """OPTIONS heartbeat. Raises requests.RequestException on network failure."""
        resp = self._session.request(
            "OPTIONS", self._portal + "/", data=None, timeout=_TIMEOUT, stream=True,
        )
        resp.close()
        log.debug("Keep-alive sent (HTTP %d)", resp.status_code)

    def close(self):
        self._session.close()
        self._once.close()
