"""
Logging setup, AgentConfig, config file load, safe_print.
"""

import json
import sys
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError
from .constants import (
    DEFAULT_PORTAL, DEFAULT_AC_ID, DEFAULT_WAIT_INTERFACE, DEFAULT_CHECK_ALIVE,
    DEFAULT_KEEP_ALIVE, DEFAULT_RETRY, DEFAULT_RETRY_WAIT_TIME,
    LOGIN_PAUSE_SEC, LOGOUT_SPACING_SEC, LOG_FILE_MAX_BYTES,
)


log = logging.getLogger("srun")

_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# java.util.logging names, accepted for compatibility with older setups
_JUL_LEVELS = {
    "FINEST": logging.DEBUG,
    "FINER": logging.DEBUG,
    "FINE": logging.DEBUG,
    "CONFIG": logging.INFO,
    "SEVERE": logging.ERROR,
    "OFF": logging.CRITICAL + 10,
    "ALL": logging.NOTSET,
}


# ─── Safe print (no crash without a console) ─────────────────────

def safe_print(*args, **kwargs):
    try:
        print(*args, **kwargs)
    except Exception:
        pass


# ─── Logging ─────────────────────────────────────────────────────

def parse_log_level(name):
    """Map a level name (Python or java.util.logging) to a logging level."""
    key = str(name).strip().upper()
    if key in _JUL_LEVELS:
        return _JUL_LEVELS[key]
    level = logging.getLevelName(key)
    if isinstance(level, int):
        return level
    raise ValueError(f"Unknown log level: {name}")


def setup_logging(level=logging.INFO, log_file=None):
    """Attach a stdout handler (and optionally a file handler) to the agent logger."""
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    log.addHandler(console_handler)

    if log_file:
        path = Path(log_file)
        try:
            if path.exists() and path.stat().st_size > LOG_FILE_MAX_BYTES:
                path.write_text("")
        except OSError as e:
            safe_print(f"Could not truncate log file {path}: {e}")
        file_handler = logging.FileHandler(str(path), encoding="utf-8")
        file_handler.setFormatter(formatter)
        log.addHandler(file_handler)

    log.setLevel(level)
    log.propagate = False
    return log


# ─── Agent configuration ────────────────────────────────────────

_SECONDS_FIELDS = (
    "wait_interface", "check_alive", "keep_alive", "retry", "retry_wait_time",
    "login_pause", "logout_spacing",
)
_FLAG_FIELDS = ("logout", "wait_online_handler")
_TEXT_FIELDS = ("portal", "username", "password", "ac_id", "log_level")
_OPTIONAL_TEXT_FIELDS = ("ip", "encoder", "interface", "online_handler", "log_file")


@dataclass
class AgentConfig:
    # ── Portal / account ──────────────────────────────────────
    portal: str = DEFAULT_PORTAL
    username: str = ""
    password: str = ""
    ip: Optional[str] = None
    ac_id: str = DEFAULT_AC_ID
    encoder: Optional[str] = None

    # ── Interface ─────────────────────────────────────────────
    interface: Optional[str] = None
    wait_interface: float = DEFAULT_WAIT_INTERFACE

    # ── Periodic tasks (0 disables) ───────────────────────────
    check_alive: float = DEFAULT_CHECK_ALIVE
    keep_alive: float = DEFAULT_KEEP_ALIVE

    # ── Login loop ────────────────────────────────────────────
    retry: float = DEFAULT_RETRY
    retry_wait_time: float = DEFAULT_RETRY_WAIT_TIME
    logout: bool = False
    login_pause: float = LOGIN_PAUSE_SEC
    logout_spacing: float = LOGOUT_SPACING_SEC

    # ── Online handler ────────────────────────────────────────
    online_handler: Optional[str] = None
    wait_online_handler: bool = False

    # ── Logging ───────────────────────────────────────────────
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self):
        self._check_types()
        self.portal = self.portal.strip().rstrip("/")
        if self.interface is not None:
            self.interface = self.interface.strip() or None

    def _check_types(self):
        """Coerce values from the config file, raise ConfigurationError on nonsense."""
        for name in _SECONDS_FIELDS:
            value = getattr(self, name)
            bad = ConfigurationError(f"{name} must be a number of seconds, got {value!r}")
            if isinstance(value, bool):
                raise bad
            try:
                seconds = float(value)
            except (TypeError, ValueError):
                raise bad from None
            if seconds < 0:
                raise ConfigurationError(f"{name} must not be negative, got {value!r}")
            setattr(self, name, seconds)

        for name in _FLAG_FIELDS:
            if not isinstance(getattr(self, name), bool):
                raise ConfigurationError(f"{name} must be true or false")

        if isinstance(self.ac_id, int) and not isinstance(self.ac_id, bool):
            self.ac_id = str(self.ac_id)
        for name in _TEXT_FIELDS:
            if not isinstance(getattr(self, name), str):
                raise ConfigurationError(f"{name} must be a string")
        for name in _OPTIONAL_TEXT_FIELDS:
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise ConfigurationError(f"{name} must be a string")

    def __repr__(self):
        shown = ", ".join(
            f"{f.name}={'***' if f.name == 'password' else repr(getattr(self, f.name))}"
            for f in fields(self)
        )
        return f"AgentConfig({shown})"

    @classmethod
    def field_names(cls):
        return {f.name for f in fields(cls)}


# ─── Config file ────────────────────────────────────────────────

def load_config(path):
    """Load a JSON config file. Returns dict or None."""
    config_file = Path(path)
    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            log.warning("Ignoring unreadable config file %s: %s", config_file, e)
            return None
        if not isinstance(data, dict):
            log.warning("Ignoring config file %s: top level is not an object", config_file)
            return None
        # Accept both snake_case and the dashed CLI spelling
        return {key.replace("-", "_"): value for key, value in data.items()}
    return None
