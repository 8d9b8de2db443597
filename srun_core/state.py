"""
AgentState: phase and counters for the running agent.

Process-lifetime only, never persisted. Counters are bumped from the login
loop and the periodic task threads and are informational; nothing branches
on them.
"""

import time
from dataclasses import dataclass
from enum import Enum


class Phase(str, Enum):
    STARTING = "starting"
    RESOLVING_INTERFACES = "resolving_interfaces"
    RESOLVING_OUTBOUND_IP = "resolving_outbound_ip"
    READY = "ready"
    CHECKING_LIVENESS = "checking_liveness"
    LOGGING_IN = "logging_in"
    LOGGING_OUT = "logging_out"
    ONLINE = "online"
    STOPPED = "stopped"


@dataclass
class AgentState:
    phase: Phase = Phase.STARTING

    # ── Login loop ────────────────────────────────────────────
    login_attempts: int = 0
    login_successes: int = 0
    reauth_count: int = 0
    last_online_ts: float = 0.0

    # ── Keep-alive ────────────────────────────────────────────
    keepalive_sent: int = 0
    keepalive_failures: int = 0

    # ── Liveness ──────────────────────────────────────────────
    liveness_checks: int = 0

    def enter(self, phase):
        self.phase = phase

    def mark_online(self):
        self.phase = Phase.ONLINE
        self.last_online_ts = time.time()

    @property
    def online_seconds(self) -> float:
        if not self.last_online_ts:
            return 0.0
        return time.time() - self.last_online_ts
