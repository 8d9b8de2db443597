"""
Entry point: argument parsing, config assembly, and the exit code.
"""

import argparse
import getpass
import sys

from .constants import AGENT_VERSION, EXIT_CONFIG
from .config import AgentConfig, log, safe_print, load_config, parse_log_level, setup_logging
from .encoder import load_encoder
from .errors import ConfigurationError
from .orchestrator import Authenticator


def build_parser():
    parser = argparse.ArgumentParser(
        prog="srun-login",
        description="Log in to an SRun campus network portal and keep the session alive.",
    )
    add = parser.add_argument
    add("-z", "--portal", help="Login portal URL, e.g. http://172.26.8.11")
    add("-a", "--ip", help="Your outbound IP address. Leave blank for auto detect.")
    add("-u", "--username", help="Account ID (prompted if absent)")
    add("-p", "--password", help="Password (prompted if absent)")
    add("-i", "--interface",
        help="Network interface name. All traffic is sent through this interface if specified.")
    add("--wait-interface", type=float, metavar="N",
        help="Retry every N seconds while the network interface is unavailable. 0 disables.")
    add("-c", "--check-alive", type=float, metavar="N",
        help="Check whether the network is still alive every N seconds. 0 disables.")
    add("--keep-alive", type=float, metavar="N",
        help="Send a heartbeat to keep the session alive every N seconds. 0 disables.")
    add("--retry", type=float, metavar="N",
        help="Retry authentication every N seconds if it fails. 0 exits on the first failure.")
    add("-r", "--retry-wait-time", type=float, metavar="N",
        help="Seconds to wait between failed login attempts.")
    add("-l", "--log-level",
        help="Log level: DEBUG/INFO/WARNING/ERROR, or FINEST < FINER < FINE < CONFIG < INFO < WARNING < SEVERE")
    add("--log-file", help="Also write the log to this file.")
    add("--online-handler",
        help="Command to run when the network comes online, e.g. \"notify-send 'Network is online'\"")
    add("--wait-online-handler", action=argparse.BooleanOptionalAction, default=None,
        help="Wait for the online handler to exit before continuing.")
    add("--logout", action=argparse.BooleanOptionalAction, default=None,
        help="Log out three times right after a successful login.")
    add("--encoder", metavar="MODULE:ATTR",
        help="Credential encoder producing the login token, e.g. mypkg.srun:encode")
    add("--ac-id", help="Portal ac_id parameter.")
    add("--config", metavar="FILE", help="JSON config file. Command-line flags override it.")
    add("--version", action="version", version=f"%(prog)s {AGENT_VERSION}")
    return parser


def build_config(args, prompt=input, prompt_secret=getpass.getpass):
    """Merge defaults < config file < command line, then prompt for missing credentials."""
    values = {}
    if args.config:
        file_values = load_config(args.config)
        if file_values is None:
            raise ConfigurationError(f"Cannot read config file {args.config}")
        unknown = set(file_values) - AgentConfig.field_names()
        if unknown:
            log.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))
        values.update({k: v for k, v in file_values.items() if k not in unknown})

    for name in AgentConfig.field_names():
        value = getattr(args, name, None)
        if value is not None:
            values[name] = value

    if not values.get("username"):
        values["username"] = prompt("Account ID: ").strip()
    if not values.get("password"):
        values["password"] = prompt_secret("Password: ")
    if not values["username"] or not values["password"]:
        raise ConfigurationError("Account ID and password must not be empty")

    return AgentConfig(**values)


def main(argv=None):
    """Primary entry point. Exits with the agent's exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
        level = parse_log_level(config.log_level)
    except (ConfigurationError, ValueError, TypeError) as e:
        parser.error(str(e))

    setup_logging(level, config.log_file)
    safe_print(f"SRun login agent v{AGENT_VERSION}")

    try:
        encoder = load_encoder(config.encoder)
        app = Authenticator(config, encoder)
    except ConfigurationError as e:
        log.error("%s", e)
        sys.exit(EXIT_CONFIG)

    try:
        code = app.run()
    except KeyboardInterrupt:
        log.info("Agent stopped by user (Ctrl+C)")
        app.stop()
        code = 0
    sys.exit(code)
