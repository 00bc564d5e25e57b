"""Network-address lookup and client descriptor."""

from __future__ import annotations

import httpx
import pytest

from parlor.utils import client_info
from parlor.utils.client_info import (
    LOCAL_ADDRESS,
    describe_client,
    make_address_resolver,
    resolve_network_address,
)


def _fake_get(response: httpx.Response):
    def _get(url, timeout):
        response.request = httpx.Request("GET", url)
        return response
    return _get


def test_returns_reported_ip(monkeypatch, logger):
    monkeypatch.setattr(
        client_info.httpx, "get", _fake_get(httpx.Response(200, json={"ip": "203.0.113.9"}))
    )
    assert resolve_network_address("https://ip.test", 1.0, logger) == "203.0.113.9"


@pytest.mark.parametrize("response", [
    httpx.Response(500, json={"ip": "203.0.113.9"}),
    httpx.Response(200, text="not json"),
    httpx.Response(200, json=["unexpected"]),
    httpx.Response(200, json={}),
])
def test_bad_responses_fall_back_to_local(monkeypatch, logger, response):
    monkeypatch.setattr(client_info.httpx, "get", _fake_get(response))
    assert resolve_network_address("https://ip.test", 1.0, logger) == LOCAL_ADDRESS


def test_transport_error_falls_back_to_local(monkeypatch, logger):
    def _raise(url, timeout):
        raise httpx.ConnectError("down")

    monkeypatch.setattr(client_info.httpx, "get", _raise)
    assert make_address_resolver("https://ip.test", 1.0, logger)() == LOCAL_ADDRESS


def test_empty_url_skips_lookup(logger):
    assert resolve_network_address("", 1.0, logger) == LOCAL_ADDRESS


def test_describe_client_names_python():
    assert "Python" in describe_client()
