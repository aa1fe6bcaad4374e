"""
Each authorization checkpoint denies a request without a valid session on
its own, whether or not the others are installed.
"""

from urllib.parse import parse_qs, urlparse

from fastapi.testclient import TestClient

from passkey_starter.actions import user_actions
from passkey_starter.main import create_app
from tests.conftest import register_via_api


def callback_of(location: str) -> str:
    return parse_qs(urlparse(location).query)["callbackUrl"][0]


class TestEdgeCheckpoint:

    def test_protected_page_redirects_to_sign_in(self, client: TestClient):
        resp = client.get("/dashboard", follow_redirects=False)

        assert resp.status_code == 302
        assert resp.headers["location"].startswith("/auth/signin?")
        assert callback_of(resp.headers["location"]) == "/dashboard"

    def test_query_string_is_kept_in_callback(self, client: TestClient):
        resp = client.get("/dashboard?tab=keys", follow_redirects=False)

        assert callback_of(resp.headers["location"]) == "/dashboard?tab=keys"

    def test_api_paths_are_guarded_too(self, client: TestClient):
        resp = client.get("/api/user/profile", follow_redirects=False)

        assert resp.status_code == 302
        assert callback_of(resp.headers["location"]) == "/api/user/profile"

    def test_unknown_session_cookie_is_denied(self, client: TestClient):
        client.cookies.set("passkey_session", "forged")

        resp = client.get("/dashboard", follow_redirects=False)

        assert resp.status_code == 302

    def test_public_paths_pass(self, client: TestClient):
        assert client.get("/", follow_redirects=False).status_code == 200
        assert client.get("/health").status_code == 200
        assert client.get("/auth/signin", follow_redirects=False).status_code == 200
        assert client.get("/auth/error?error=Verification").status_code == 200

    def test_signed_in_request_passes(self, client: TestClient, authenticator):
        register_via_api(client, authenticator)

        resp = client.get("/dashboard", follow_redirects=False)

        assert resp.status_code == 200
        assert "Alice" in resp.text

    def test_error_page_messages(self, client: TestClient):
        assert "already been used" in client.get("/auth/error?error=Verification").text
        assert "An error occurred" in client.get("/auth/error?error=Bogus").text

    def test_security_headers(self, client: TestClient):
        resp = client.get("/health")

        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert "Strict-Transport-Security" not in resp.headers


class TestPageCheckpoint:

    def test_redirects_without_edge(self, api_client: TestClient):
        resp = api_client.get("/dashboard?tab=keys", follow_redirects=False)

        assert resp.status_code == 302
        assert callback_of(resp.headers["location"]) == "/dashboard?tab=keys"

    def test_signed_in(self, api_client: TestClient, signed_in):
        resp = api_client.get("/dashboard", follow_redirects=False)

        assert resp.status_code == 200
        assert signed_in["accountId"] in resp.text

    def test_sign_in_page_forwards_signed_in_visitors(self, api_client: TestClient, signed_in):
        resp = api_client.get("/auth/signin?callbackUrl=/dashboard", follow_redirects=False)

        assert resp.status_code == 302
        assert resp.headers["location"] == "/dashboard"

    def test_sign_in_page_ignores_external_callback(self, api_client: TestClient, signed_in):
        resp = api_client.get(
            "/auth/signin", params={"callbackUrl": "https://evil.example"}, follow_redirects=False
        )

        assert resp.headers["location"] == "/dashboard"


class TestApiCheckpoint:

    def test_returns_401_without_edge(self, api_client: TestClient):
        resp = api_client.get("/api/user/profile")

        assert resp.status_code == 401
        assert resp.json() == {"code": "authentication_required", "message": "Authentication required"}
        assert resp.headers["WWW-Authenticate"] == "Bearer"

    def test_bearer_token_is_accepted(self, settings, authenticator):
        with TestClient(create_app(settings, edge_guard=False)) as first:
            register_via_api(first, authenticator)
            token = first.cookies.get("passkey_session")

        with TestClient(create_app(settings, edge_guard=False)) as second:
            resp = second.get("/api/user/profile", headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 200
        assert resp.json()["profile"]["email"] == "alice@example.com"


class TestMutationCheckpoint:

    def test_action_denies_without_edge(self, api_client: TestClient):
        resp = api_client.post("/actions/update-profile", json={"name": "Mallory"})

        assert resp.status_code == 200
        assert resp.json() == {
            "success": False,
            "error": "You must be signed in to update your profile",
            "code": "authentication_required",
        }

    async def test_action_denies_when_called_directly(self, db, settings):
        result = await user_actions.delete_account(db, settings, None, {})

        assert result.success is False
        assert result.error == "You must be signed in to delete your account"
