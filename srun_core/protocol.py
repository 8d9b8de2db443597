"""
JSONP envelope handling and the portal's shared error schema.

Every portal response is ``callback(<json>)`` where ``callback`` is the
name we sent. Some deployments answer with bare JSON; both are accepted.
"""

import json
import random
import time

from .constants import CALLBACK_PREFIX
from .errors import ProtocolError, PortalError


def timestamp_ms():
    return int(time.time() * 1000)


def make_callback(ts=None):
    """A jQuery-style callback name, ``jQuery1124<17 digits>_<ms>``."""
    digits = "".join(random.choice("0123456789") for _ in range(17))
    return f"{CALLBACK_PREFIX}{digits}_{ts if ts is not None else timestamp_ms()}"


def unwrap_jsonp(body, callback=None):
    """
    Strip the ``callback(...)`` envelope and return the JSON text inside.

    With ``callback`` given, the echoed name must match it. Bare JSON
    objects pass through. Anything else raises ProtocolError.
    """
    text = (body or "").strip()
    if text.endswith(";"):
        text = text[:-1].rstrip()

    if text.startswith("{"):
        return text

    if callback is not None:
        prefix = callback + "("
        if text.startswith(prefix) and text.endswith(")"):
            return text[len(prefix):-1]
        raise ProtocolError(f"Response is not wrapped in callback {callback!r}: {text[:120]!r}")

    start = text.find("(")
    if start > 0 and text.endswith(")"):
        return text[start + 1:-1]
    raise ProtocolError(f"Response is not JSONP: {text[:120]!r}")


def parse_payload(body, callback=None):
    """Unwrap and decode a portal response into a dict."""
    inner = unwrap_jsonp(body, callback)
    try:
        payload = json.loads(inner)
    except ValueError as e:
        raise ProtocolError(f"Malformed JSON in portal response: {e}") from e
    if not isinstance(payload, dict):
        raise ProtocolError(f"Portal response is not a JSON object: {inner[:120]!r}")
    return payload


def check_for_error(payload):
    """
    Return a PortalError for a rejected payload, None for success.

    ``error == "ok"`` (any case) is success. A payload without an
    ``error`` field is treated as success too.
    """
    if "error" not in payload:
        return None
    error = str(payload.get("error") or "unknown_error")
    if error.lower() == "ok":
        return None
    message = payload.get("error_msg") or "No error message provided"
    try:
        code = int(payload.get("ecode", -1))
    except (TypeError, ValueError):
        code = -1
    return PortalError(code, f"{error} - {message}")


def parse_result(body, callback=None):
    """Parse a portal response and raise PortalError if it is a rejection."""
    payload = parse_payload(body, callback)
    err = check_for_error(payload)
    if err is not None:
        raise err
    return payload
