"""
Tests for MpesaClient with httpx.MockTransport (no network).
"""
import base64
import json
import re

import httpx
import pytest

from app.core.errors import UpstreamError
from app.services.mpesa.client import MpesaClient, stk_password, stk_timestamp


def _client(handler) -> MpesaClient:
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return MpesaClient(http_client=http)


def test_get_access_token_uses_basic_auth():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["grant_type"] = request.url.params.get("grant_type")
        seen["auth"] = request.headers["authorization"]
        return httpx.Response(200, json={"access_token": "abc123", "expires_in": "3599"})

    token = _client(handler).get_access_token()

    expected = base64.b64encode(b"test-consumer-key:test-consumer-secret").decode()
    assert token == "abc123"
    assert seen["path"] == "/oauth/v1/generate"
    assert seen["grant_type"] == "client_credentials"
    assert seen["auth"] == f"Basic {expected}"


def test_stk_push_payload():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth/v1/generate":
            return httpx.Response(200, json={"access_token": "tok"})
        captured["auth"] = request.headers["authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ResponseCode": "0", "CheckoutRequestID": "ws_CO_1"})

    result = _client(handler).stk_push("254700000000", 300, "CIDALI Books", "Book Purchase")

    body = captured["body"]
    assert result == {"ResponseCode": "0", "CheckoutRequestID": "ws_CO_1"}
    assert captured["auth"] == "Bearer tok"
    assert body["BusinessShortCode"] == "174379"
    assert body["PartyB"] == "174379"
    assert body["PartyA"] == body["PhoneNumber"] == "254700000000"
    assert body["Amount"] == 300
    assert body["TransactionType"] == "CustomerPayBillOnline"
    assert body["CallBackURL"] == "https://example.com/api/mpesa/callback"
    assert body["AccountReference"] == "CIDALI Books"
    assert body["TransactionDesc"] == "Book Purchase"
    assert re.fullmatch(r"\d{14}", body["Timestamp"])
    assert body["Password"] == stk_password("174379", "test-passkey", body["Timestamp"])


def test_stk_push_with_given_token_skips_oauth():
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json={"ResponseCode": "0"})

    _client(handler).stk_push("254700000000", 1, "ref", "desc", access_token="given")
    assert paths == ["/mpesa/stkpush/v1/processrequest"]


def test_http_error_surfaces_provider_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"errorCode": "400.002.02", "errorMessage": "Bad Request - Invalid Amount"})

    with pytest.raises(UpstreamError) as exc:
        _client(handler).stk_push("254700000000", 0, "ref", "desc", access_token="t")
    assert exc.value.details["errorMessage"] == "Bad Request - Invalid Amount"


def test_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused")

    with pytest.raises(UpstreamError):
        _client(handler).get_access_token()


def test_missing_access_token():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "nope"})

    with pytest.raises(UpstreamError):
        _client(handler).get_access_token()


def test_circuit_opens_after_repeated_failures():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(503, text="unavailable")

    client = _client(handler)
    for _ in range(5):
        with pytest.raises(UpstreamError):
            client.get_access_token()
    with pytest.raises(UpstreamError) as exc:
        client.get_access_token()
    assert exc.value.message == "M-Pesa temporarily unavailable"
    assert len(calls) == 5


def test_password_and_timestamp_helpers():
    from datetime import datetime, timezone

    ts = stk_timestamp(datetime(2025, 3, 4, 5, 6, 7, tzinfo=timezone.utc))
    assert ts == "20250304050607"
    assert base64.b64decode(stk_password("174379", "key", ts)).decode() == "174379key20250304050607"
