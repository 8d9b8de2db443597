"""
Constants: version, portal endpoints, timings, and exit codes.
"""

AGENT_VERSION = "1.2.0"

# ─── Portal ──────────────────────────────────────────────────────
DEFAULT_PORTAL = "http://172.26.8.11"
DEFAULT_AC_ID = "1"

USER_INFO_PATH = "/cgi-bin/rad_user_info"
CHALLENGE_PATH = "/cgi-bin/get_challenge"
PORTAL_PATH = "/cgi-bin/srun_portal"

CALLBACK_PREFIX = "jQuery1124"

LOGIN_OK_MARKER = "login_ok"
ONLINE_MARKER = "online_device_total"
OFFLINE_MARKER = "not_online_error"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)
ACCEPT = "text/javascript, application/javascript, application/json, */*; q=0.01"

# ─── Network ─────────────────────────────────────────────────────
CONNECT_TIMEOUT = 3            # Seconds, the portal is on the local network
READ_TIMEOUT = 10
PROBE_TIMEOUT = 1              # Socket probe for the outbound IP fallback
PROBE_PORT = 80

# ─── Login loop ──────────────────────────────────────────────────
LOGIN_PAUSE_SEC = 0.5          # Pause before every liveness check in the login loop
LOGOUT_SPACING_SEC = 1.0       # Gap between the post-login logouts
LOGOUT_REPEAT = 3

# ─── Defaults (seconds; 0 disables) ──────────────────────────────
DEFAULT_WAIT_INTERFACE = 0
DEFAULT_CHECK_ALIVE = 0
DEFAULT_KEEP_ALIVE = 0
DEFAULT_RETRY = 10
DEFAULT_RETRY_WAIT_TIME = 2

# ─── Exit codes ──────────────────────────────────────────────────
EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_INTERFACE_FAILURE = 3
EXIT_AUTH_FAILURE = 4

# ─── Logging ─────────────────────────────────────────────────────
LOG_FILE_MAX_BYTES = 1_000_000
