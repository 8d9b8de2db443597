import certifi
import pytest

from srun_core import http_client
from srun_core.http_client import SourceAddressAdapter, create_session

from conftest import PORTAL


def adapter_of(session, scheme="http://"):
    return session.adapters[scheme]


@pytest.mark.parametrize("scheme", ["http://", "https://"])
def test_bound_session_binds_every_pool(scheme):
    session = create_session(PORTAL, source_address="10.0.0.5")
    adapter = adapter_of(session, scheme)

    assert isinstance(adapter, SourceAddressAdapter)
    assert adapter.source_address == "10.0.0.5"
    assert adapter.poolmanager.connection_pool_kw["source_address"] == ("10.0.0.5", 0)
    session.close()


def test_unbound_session_leaves_source_to_the_os():
    session = create_session(PORTAL)
    assert "source_address" not in adapter_of(session).poolmanager.connection_pool_kw
    session.close()


def test_ipv6_source_address():
    session = create_session("http://[2001:db8::1]", source_address="2001:db8::40")
    assert adapter_of(session).poolmanager.connection_pool_kw["source_address"] == ("2001:db8::40", 0)
    session.close()


def test_default_session_retries_idempotent_calls():
    retries = adapter_of(create_session(PORTAL)).max_retries
    assert retries.total == 3
    assert 503 in retries.status_forcelist


def test_one_shot_session_never_resends():
    retries = adapter_of(create_session(PORTAL, retry=False)).max_retries
    assert retries.total == 0
    assert retries.read is False


def test_portal_headers_and_ca_bundle(monkeypatch):
    monkeypatch.delenv("REQUESTS_CA_BUNDLE", raising=False)
    monkeypatch.delenv("SSL_CERT_FILE", raising=False)
    session = create_session(PORTAL + "/")

    assert session.headers["Referer"] == PORTAL + "/"
    assert session.verify == certifi.where()


def test_ca_bundle_from_environment(monkeypatch, tmp_path):
    bundle = tmp_path / "campus-ca.pem"
    bundle.write_text("-----BEGIN CERTIFICATE-----\n")
    monkeypatch.setenv("REQUESTS_CA_BUNDLE", str(bundle))
    assert http_client._get_ca_bundle() == str(bundle)
