from unittest.mock import MagicMock

import pytest
import requests

from srun_core import outbound
from srun_core.errors import IpResolutionError, NoRouteError, ProtocolError
from srun_core.outbound import OutboundIpResolver

from conftest import FakeInterfaces


class InfoPortal:
    def __init__(self, result):
        self.result = result
        self.calls = 0

    def user_info(self):
        self.calls += 1
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture
def connect(monkeypatch):
    sock = MagicMock()
    sock.__enter__.return_value = sock
    sock.getsockname.return_value = ("10.99.0.5", 51234)
    create = MagicMock(return_value=sock)
    monkeypatch.setattr(outbound.socket, "create_connection", create)
    return create


def test_override_wins(connect):
    portal = InfoPortal({"client_ip": "10.0.0.1"})
    resolver = OutboundIpResolver(portal, FakeInterfaces(), override="192.0.2.10")
    assert resolver.resolve() == "192.0.2.10"
    assert portal.calls == 0
    connect.assert_not_called()


def test_portal_client_ip_preferred(connect):
    resolver = OutboundIpResolver(InfoPortal({"client_ip": "10.0.0.1", "online_ip": "10.0.0.2"}), FakeInterfaces())
    assert resolver.resolve() == "10.0.0.1"
    assert resolver.last_ip == "10.0.0.1"
    connect.assert_not_called()


def test_portal_online_ip_used_when_no_client_ip(connect):
    resolver = OutboundIpResolver(InfoPortal({"online_ip": "10.0.0.2"}), FakeInterfaces())
    assert resolver.resolve() == "10.0.0.2"


@pytest.mark.parametrize("failure", [
    ProtocolError("garbage"),
    requests.exceptions.ConnectionError("refused"),
    {"error": "ok"},
])
def test_socket_fallback(connect, failure):
    resolver = OutboundIpResolver(InfoPortal(failure), FakeInterfaces())
    assert resolver.resolve() == "10.99.0.5"
    host_port = connect.call_args.args[0]
    assert host_port == ("portal.test", 80)
    assert connect.call_args.kwargs["source_address"] is None


def test_socket_binds_selected_interface(connect):
    interfaces = FakeInterfaces()
    interfaces.local_address = lambda: "10.20.30.40"
    resolver = OutboundIpResolver(InfoPortal(ProtocolError("x")), interfaces)
    resolver.resolve()
    assert connect.call_args.kwargs["source_address"] == ("10.20.30.40", 0)


def test_both_strategies_failing_is_ip_resolution_error(monkeypatch):
    monkeypatch.setattr(outbound.socket, "create_connection", MagicMock(side_effect=OSError("unreachable")))
    resolver = OutboundIpResolver(InfoPortal(ProtocolError("x")), FakeInterfaces())
    with pytest.raises(IpResolutionError):
        resolver.resolve()


def test_socket_no_route_is_ip_resolution_error(connect):
    interfaces = FakeInterfaces()

    def no_route():
        raise NoRouteError("gone")
    interfaces.local_address = no_route
    resolver = OutboundIpResolver(InfoPortal(ProtocolError("x")), interfaces)
    with pytest.raises(IpResolutionError):
        resolver.resolve()
