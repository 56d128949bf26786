"""E2E tests for LOGIN: success, validation, upstream failure, boundaries."""
from __future__ import annotations

import pytest

pytestmark = pytest.mark.e2e


class TestLogin:
    def test_login_success(self, client, upstream, token):
        assert client.submit(token, "LOGIN").result == "OK"
        recorded = upstream.requests("/auth")
        assert len(recorded) == 1
        assert token in recorded[0].body

    def test_login_wrong_api_key(self, client, token):
        result = client.send({"token": token, "action": "LOGIN"}, api_key="WRONG")
        assert result.result == "ERROR"

    def test_login_invalid_token_format(self, client):
        assert client.submit("ABC123", "LOGIN").result == "ERROR"

    def test_login_external_service_fail(self, client, upstream, token):
        upstream.stub("/auth", status=401)
        assert client.submit(token, "LOGIN").result == "ERROR"

    def test_login_after_upstream_500_is_first_login(self, client, upstream, token):
        upstream.stub("/auth", status=500)
        assert client.submit(token, "LOGIN").result == "ERROR"
        upstream.reset_stubs()
        assert client.submit(token, "LOGIN").result == "OK"

    def test_double_login(self, client, upstream, token):
        assert client.submit(token, "LOGIN").result == "OK"
        assert client.submit(token, "LOGIN").result == "ERROR"
        assert upstream.request_count("/auth") == 1
        assert client.submit(token, "LOGOUT").result == "OK"

    def test_login_no_action_param(self, client, token):
        assert client.send({"token": token}).result == "ERROR"

    def test_token_all_same_char(self, client):
        token = "A" * 32
        assert client.submit(token, "LOGIN").result == "OK"
        client.submit(token, "LOGOUT")

    def test_token_length_32_valid(self, client):
        token = "0123456789ABCDEF0123456789ABCDEF"
        assert client.submit(token, "LOGIN").result == "OK"
        client.submit(token, "LOGOUT")
