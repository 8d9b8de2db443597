"""
Authenticator: bootstrap, login loop, and the steady-state tasks.

  Phase A  bootstrap()          interfaces → HTTP session → outbound IP
  Phase B  authenticate()       {pause; online? break; login; logout×3?; wait}
  Phase C  start_periodic_tasks()
             check-alive thread: liveness check, re-enters Phase B when offline
             keep-alive thread:  OPTIONS heartbeat

Every login (and its optional logouts) runs under one lock, so two
login/logout exchanges never overlap even when the check-alive thread
re-authenticates. Liveness and keep-alive calls take no lock.

All waits go through a single stop event; stop() wakes every sleeper.
"""

import threading
from typing import Optional

import requests

from .config import log
from .constants import AGENT_VERSION, EXIT_OK, EXIT_INTERFACE_FAILURE, EXIT_AUTH_FAILURE, LOGOUT_REPEAT
from .errors import ConfigurationError, InterfaceError, IpResolutionError, PortalError, ProtocolError
from .handler import run_online_handler
from .interfaces import InterfaceResolver
from .outbound import OutboundIpResolver
from .portal import PortalClient
from .state import AgentState, Phase


class Authenticator:
    def __init__(self, config, encoder=None, interfaces=None, portal=None, outbound=None):
        self._config = config
        self._encoder = encoder
        self.interfaces = interfaces or InterfaceResolver(config.portal, config.interface)
        self.portal = portal
        self.outbound = outbound
        self.state = AgentState()
        self._login_lock = threading.Lock()
        self._stop = threading.Event()
        self._tasks = []
        self._interfaces_stale = False

    # ─── Stop / sleep ────────────────────────────────────────────

    def _sleep(self, seconds) -> bool:
        """Wait ``seconds``. True means stop() was called."""
        if seconds <= 0:
            return self._stop.is_set()
        return self._stop.wait(seconds)

    def stop(self):
        self._stop.set()
        self.state.enter(Phase.STOPPED)

    @property
    def stopped(self):
        return self._stop.is_set()

    @property
    def tasks(self):
        return list(self._tasks)

    # ─── Phase A: bootstrap ──────────────────────────────────────

    def _bind_portal(self):
        """Build the portal client, or rebind it when the interface address moved."""
        local = self.interfaces.local_address()
        if self.portal is None:
            if local:
                log.info("All portal traffic bound to %s (%s)", local, self._config.interface)
            self.portal = PortalClient(self._config, self._encoder, source_address=local)
        elif local != self.portal.source_address:
            log.info(
                "Address of %s changed from %s to %s, rebinding portal traffic",
                self._config.interface, self.portal.source_address, local,
            )
            self.portal.rebind(local)

    def bootstrap(self):
        """One bootstrap pass. Raises ConfigurationError, InterfaceError, IpResolutionError."""
        self.state.enter(Phase.RESOLVING_INTERFACES)
        self.interfaces.resolve()
        self._interfaces_stale = False

        self._bind_portal()
        if self.outbound is None:
            self.outbound = OutboundIpResolver(self.portal, self.interfaces, override=self._config.ip)

        self.state.enter(Phase.RESOLVING_OUTBOUND_IP)
        ip = self.outbound.resolve()
        log.info("Account: %s    Outbound IP: %s", self._config.username, ip)
        self.state.enter(Phase.READY)

    def _run_bootstrap(self) -> Optional[int]:
        wait = self._config.wait_interface
        while True:
            try:
                self.bootstrap()
                return None
            except ConfigurationError as e:
                log.error("Invalid configuration: %s", e)
                return EXIT_INTERFACE_FAILURE
            except InterfaceError as e:
                log.error("Failed to get network interfaces list: %s", e)
                code = EXIT_INTERFACE_FAILURE
            except IpResolutionError as e:
                log.error("Failed to resolve outbound IP: %s", e)
                code = EXIT_AUTH_FAILURE

            if wait <= 0:
                return code
            log.info("Waiting %ss for the network interface...", wait)
            if self._sleep(wait):
                return code

    # ─── Phase B: login loop ─────────────────────────────────────

    def _revalidate_interfaces(self):
        log.info(
            "Re-validating network interfaces before the next login attempt (last outbound IP %s)",
            self.outbound.last_ip,
        )
        self.interfaces.resolve()
        self._bind_portal()
        self._interfaces_stale = False

    def _logout_sequence(self, ip):
        self.state.enter(Phase.LOGGING_OUT)
        for i in range(LOGOUT_REPEAT):
            if i:
                self._sleep(self._config.logout_spacing)
            self.portal.logout(ip)

    def _attempt_login(self) -> bool:
        """One login (+ logouts) under the login lock. True on login_ok."""
        with self._login_lock:
            if self._interfaces_stale:
                self._revalidate_interfaces()

            self.state.enter(Phase.LOGGING_IN)
            self.state.login_attempts += 1
            try:
                ip = self.outbound.resolve()
            except IpResolutionError:
                self._interfaces_stale = True
                raise

            try:
                outcome = self.portal.login(ip)
            except PortalError as e:
                log.warning("Login rejected by portal: %s: %s", e.code, e.message)
                return False
            except ProtocolError as e:
                log.warning("Login failed, malformed portal response: %s", e)
                return False
            except requests.RequestException as e:
                log.warning("Login request failed: %s", e)
                return False

            if not outcome.success:
                return False

            self.state.login_successes += 1
            if self._config.logout:
                self._logout_sequence(ip)
            return True

    def authenticate(self) -> bool:
        """
        Loop until the portal reports this client online.

        Returns False only if stop() interrupted it. IpResolutionError and
        InterfaceError abort the loop; the next call re-validates interfaces.
        """
        retry_wait = self._config.retry_wait_time
        while True:
            self.state.enter(Phase.CHECKING_LIVENESS)
            if self._sleep(self._config.login_pause):
                return False
            if self.portal.check_liveness():
                break

            try:
                ok = self._attempt_login()
            except InterfaceError:
                self._interfaces_stale = True
                raise
            if not ok:
                log.warning("Failed to login, retrying... after %s seconds", retry_wait)
                if self._sleep(retry_wait):
                    return False

        self.state.mark_online()
        if self._config.online_handler:
            run_online_handler(self._config.online_handler, wait=self._config.wait_online_handler)
        log.info("Login is successful. Network is ready.")
        return True

    def _run_auth_phase(self) -> Optional[int]:
        retry = self._config.retry
        while True:
            try:
                if not self.authenticate():
                    return EXIT_OK
                return None
            except ConfigurationError as e:
                log.error("Invalid configuration: %s", e)
                return EXIT_AUTH_FAILURE
            except Exception as e:
                log.error("Failed to perform network auth: %s", e)

            if retry <= 0 or self._sleep(retry):
                return EXIT_AUTH_FAILURE

    # ─── Phase C: periodic tasks ─────────────────────────────────

    def check_alive_tick(self):
        try:
            log.debug("Performing check alive request")
            self.state.liveness_checks += 1
            if not self.portal.check_liveness():
                log.warning("Network is not ready after %.0fs online, performing re-auth", self.state.online_seconds)
                self.state.reauth_count += 1
                self.authenticate()
        except Exception as e:
            log.error("Failed to perform check alive: %s", e)

    def keep_alive_tick(self):
        try:
            self.portal.keep_alive()
            self.state.keepalive_sent += 1
        except Exception as e:
            self.state.keepalive_failures += 1
            log.error("Failed to perform keep alive: %s", e)

    def _periodic(self, interval, tick):
        while not self.stopped:
            tick()
            if self._sleep(interval):
                break

    def _spawn(self, name, interval, tick):
        t = threading.Thread(target=self._periodic, args=(interval, tick), name=name, daemon=True)
        t.start()
        return t

    def start_periodic_tasks(self):
        """Start the configured periodic tasks. Returns the started threads."""
        tasks = []
        if self._config.check_alive > 0:
            tasks.append(self._spawn("srun-check-alive", self._config.check_alive, self.check_alive_tick))
        if self._config.keep_alive > 0:
            tasks.append(self._spawn("srun-keep-alive", self._config.keep_alive, self.keep_alive_tick))
        self._tasks = tasks
        return tasks

    # ─── Entry ───────────────────────────────────────────────────

    def run(self) -> int:
        """Run all phases. Returns the process exit code."""
        log.info("SRun login agent v%s started (portal %s)", AGENT_VERSION, self._config.portal)

        code = self._run_bootstrap()
        if code is not None:
            return code

        code = self._run_auth_phase()
        if code is not None:
            return code

        tasks = self.start_periodic_tasks()
        if not tasks:
            log.info("No periodic task configured. Exiting.")
            return EXIT_OK

        log.info(
            "Steady state (check-alive=%ss, keep-alive=%ss)",
            self._config.check_alive, self._config.keep_alive,
        )
        self._stop.wait()
        for t in tasks:
            t.join(timeout=5)
        return EXIT_OK
