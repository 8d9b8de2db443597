import sys
import types

import pytest

from srun_core.encoder import Credentials, as_encoder, load_encoder
from srun_core.errors import ConfigurationError


@pytest.fixture
def encoder_module(monkeypatch):
    mod = types.ModuleType("campus_encoder")

    def encode(credentials, ip):
        return {"password": credentials.password[::-1], "ip_seen": ip}

    class TokenEncoder:
        def encode(self, credentials, ip):
            return {"chksum": credentials.challenge}

    mod.encode = encode
    mod.TokenEncoder = TokenEncoder
    mod.NOT_AN_ENCODER = 42
    monkeypatch.setitem(sys.modules, "campus_encoder", mod)
    return mod


CREDS = Credentials("2021010101", "hunter2", "4f1d2c")


def test_function_reference(encoder_module):
    enc = load_encoder("campus_encoder:encode")
    assert enc.encode(CREDS, "10.0.0.9") == {"password": "2retnuh", "ip_seen": "10.0.0.9"}


def test_class_reference_is_instantiated(encoder_module):
    enc = load_encoder("campus_encoder:TokenEncoder")
    assert isinstance(enc, encoder_module.TokenEncoder)
    assert enc.encode(CREDS, "10.0.0.9") == {"chksum": "4f1d2c"}


@pytest.mark.parametrize("reference", [
    None,
    "",
    "campus_encoder",
    ":encode",
    "campus_encoder:",
    "campus_encoder:missing",
    "campus_encoder:NOT_AN_ENCODER",
    "no_such_module_xyz:encode",
])
def test_bad_references(encoder_module, reference):
    with pytest.raises(ConfigurationError):
        load_encoder(reference)


def test_as_encoder_keeps_objects_with_encode():
    class Enc:
        def encode(self, credentials, ip):
            return {}
    enc = Enc()
    assert as_encoder(enc) is enc


def test_credentials_repr_masks_password():
    text = repr(CREDS)
    assert "hunter2" not in text
    assert "2021010101" in text
