"""
Tests for bearer token verification against the identity service.
"""

import httpx
import pytest

from bankgame.core.exceptions import AuthError, UpstreamError
from bankgame.services.identity import USER_PATH, HttpIdentityVerifier, parse_bearer_token
from bankgame.settings import AuthSettings
from fakes import run


def verifier_for(handler, **settings):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    config = AuthSettings(base_url="http://auth.test/", **settings)
    return HttpIdentityVerifier(config, client=client)


def test_parse_bearer_token():
    assert parse_bearer_token("Bearer abc") == "abc"
    assert parse_bearer_token("bearer   abc ") == "abc"
    assert parse_bearer_token("Basic abc") is None
    assert parse_bearer_token("Bearer ") is None
    assert parse_bearer_token(None) is None


def test_valid_token_resolves_user():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["apikey"] = request.headers.get("apikey")
        return httpx.Response(200, json={"id": "user-1", "email": "a@example.com"})

    verifier = verifier_for(handler, api_key="anon-key")

    assert run(verifier.verify("tok")) == "user-1"
    assert seen == {
        "url": f"http://auth.test{USER_PATH}",
        "auth": "Bearer tok",
        "apikey": "anon-key",
    }


def test_missing_token_skips_lookup():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(AuthError) as exc:
        run(verifier_for(handler).verify(None))
    assert exc.value.code == "missing_session"


@pytest.mark.parametrize("status", [401, 403])
def test_rejected_token(status):
    verifier = verifier_for(lambda request: httpx.Response(status, json={"msg": "bad jwt"}))
    with pytest.raises(AuthError) as exc:
        run(verifier.verify("tok"))
    assert exc.value.status_code == 401


def test_response_without_user_id():
    verifier = verifier_for(lambda request: httpx.Response(200, json={"email": "a@example.com"}))
    with pytest.raises(AuthError):
        run(verifier.verify("tok"))


def test_server_error_is_upstream_failure():
    verifier = verifier_for(lambda request: httpx.Response(503, text="down"))
    with pytest.raises(UpstreamError) as exc:
        run(verifier.verify("tok"))
    assert exc.value.status_code == 500


def test_malformed_json_is_upstream_failure():
    verifier = verifier_for(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(UpstreamError):
        run(verifier.verify("tok"))


def test_transport_error_is_upstream_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError):
        run(verifier_for(handler).verify("tok"))
