"""
Login credential encoder contract and loader.

The token the portal expects is computed by portal-specific code that is
not part of this package. Any object with ``encode(credentials, ip)`` (or
a plain callable with that signature) returning a mapping of login query
parameters can be plugged in with ``--encoder package.module:attribute``.
"""

import importlib
from dataclasses import dataclass
from typing import Mapping, Protocol

from .errors import ConfigurationError


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str
    challenge: str

    def __repr__(self):
        return f"Credentials(username={self.username!r}, password='***', challenge={self.challenge!r})"


class CredentialEncoder(Protocol):
    def encode(self, credentials: Credentials, ip: str) -> Mapping[str, str]:
        ...


class _CallableEncoder:
    """Adapts a bare function to the CredentialEncoder shape."""

    def __init__(self, func):
        self._func = func

    def encode(self, credentials, ip):
        return self._func(credentials, ip)

    def __repr__(self):
        return f"<encoder {getattr(self._func, '__qualname__', self._func)!r}>"


def as_encoder(obj) -> CredentialEncoder:
    """Wrap ``obj`` so it exposes ``encode``; raise ConfigurationError if it can't."""
    if hasattr(obj, "encode") and callable(obj.encode):
        return obj
    if callable(obj):
        return _CallableEncoder(obj)
    raise ConfigurationError(f"Encoder {obj!r} is neither callable nor has an encode() method")


def load_encoder(reference):
    """
    Import an encoder from ``"package.module:attribute"``.

    A class attribute is instantiated with no arguments.
    """
    if not reference:
        raise ConfigurationError("No credential encoder configured (use --encoder module:attribute)")

    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"Encoder reference must look like 'module:attribute', got {reference!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import encoder module {module_name!r}: {e}") from e

    try:
        obj = getattr(module, attr)
    except AttributeError as e:
        raise ConfigurationError(f"Module {module_name!r} has no attribute {attr!r}") from e

    if isinstance(obj, type):
        obj = obj()
    return as_encoder(obj)
