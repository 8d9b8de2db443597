"""
Error taxonomy.

Callers pick their reaction by type:
ConfigurationError is fatal and never retried.
InterfaceError and NoRouteError follow the wait-for-interface policy.
IpResolutionError aborts the current login attempt.
ProtocolError and PortalError fail the attempt; the login loop retries.
"""


class SrunError(Exception):
    """Base class for all agent exceptions."""


class ConfigurationError(SrunError):
    """Bad or missing configuration (unknown interface, missing encoder)."""


class InterfaceError(SrunError):
    """Network interface enumeration failed or found nothing usable."""


class NoRouteError(InterfaceError):
    """No usable local address in an address family the portal can be reached on."""


class IpResolutionError(SrunError):
    """Neither the portal nor a socket probe could tell us the outbound IP."""


class ProtocolError(SrunError):
    """The portal answered with something that is not the expected JSONP/JSON."""


class PortalError(SrunError):
    """Structured rejection from the portal (``error`` field other than ``ok``)."""

    def __init__(self, code, message):
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
