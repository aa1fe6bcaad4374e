"""Integration tests for the ceremony, session and account endpoints."""

from fastapi.testclient import TestClient

from tests.authenticator import SoftAuthenticator
from tests.conftest import register_via_api

AUTH_FAILED = {"code": "authentication_failed", "message": "Authentication failed"}


def sign_in(client: TestClient, authenticator: SoftAuthenticator, email=None, **get_kwargs):
    begin = client.post("/api/auth/passkey/authenticate/begin", json={"email": email})
    assert begin.status_code == 200, begin.text
    return client.post(
        "/api/auth/passkey/authenticate/complete",
        json={"credential": authenticator.get(begin.json(), **get_kwargs)},
    )


class TestPasskeyEndpoints:

    def test_registration_signs_in(self, api_client: TestClient, authenticator):
        body = register_via_api(api_client, authenticator)

        assert body["credentialId"] == authenticator.credential_id_b64
        assert api_client.cookies.get("passkey_session")
        session = api_client.get("/api/auth/session").json()["session"]
        assert session["accountId"] == body["accountId"]
        assert session["email"] == "alice@example.com"

    def test_registration_requires_email_when_signed_out(self, api_client: TestClient):
        resp = api_client.post("/api/auth/passkey/register/begin", json={"name": "Alice"})

        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"
        assert resp.json()["details"] == {"email": "Email is required"}

    def test_registration_with_taken_email(self, api_client: TestClient, authenticator):
        register_via_api(api_client, authenticator)
        api_client.post("/api/auth/signout")

        resp = api_client.post("/api/auth/passkey/register/begin", json={"email": "alice@example.com"})

        assert resp.status_code == 409
        assert resp.json()["code"] == "conflict"

    def test_invalid_registration_surfaces_kind(self, api_client: TestClient, authenticator):
        begin = api_client.post("/api/auth/passkey/register/begin", json={"email": "alice@example.com"})
        resp = api_client.post(
            "/api/auth/passkey/register/complete",
            json={"credential": authenticator.create(begin.json(), origin="https://evil.example")},
        )

        assert resp.status_code == 400
        assert resp.json()["code"] == "origin_mismatch"
        assert api_client.cookies.get("passkey_session") is None

    def test_authentication_issues_session(self, api_client: TestClient, authenticator):
        registered = register_via_api(api_client, authenticator)
        api_client.post("/api/auth/signout")

        resp = sign_in(api_client, authenticator, email="alice@example.com")

        assert resp.status_code == 200
        body = resp.json()
        assert body["accountId"] == registered["accountId"]
        assert body["sessionReference"] == api_client.cookies.get("passkey_session")
        assert api_client.get("/api/user/profile").status_code == 200

    def test_failures_are_indistinguishable(self, api_client: TestClient, authenticator):
        register_via_api(api_client, authenticator)
        api_client.post("/api/auth/signout")
        assert sign_in(api_client, authenticator, sign_count=3).status_code == 200
        api_client.post("/api/auth/signout")

        unknown = sign_in(api_client, SoftAuthenticator())
        wrong_origin = sign_in(api_client, authenticator, origin="https://evil.example")
        regressed = sign_in(api_client, authenticator, sign_count=0)
        malformed = api_client.post(
            "/api/auth/passkey/authenticate/complete", json={"credential": {"id": "x"}}
        )

        for resp in (unknown, wrong_origin, regressed, malformed):
            assert resp.status_code == 401
            assert resp.json() == AUTH_FAILED

    def test_replayed_assertion(self, api_client: TestClient, authenticator):
        register_via_api(api_client, authenticator)
        begin = api_client.post("/api/auth/passkey/authenticate/begin", json={})
        payload = {"credential": authenticator.get(begin.json())}

        first = api_client.post("/api/auth/passkey/authenticate/complete", json=payload)
        replay = api_client.post("/api/auth/passkey/authenticate/complete", json=payload)

        assert first.status_code == 200
        assert replay.status_code == 401
        assert replay.json() == AUTH_FAILED

    def test_signed_in_user_adds_passkey(self, api_client: TestClient, authenticator, signed_in):
        second = SoftAuthenticator()
        begin = api_client.post("/api/auth/passkey/register/begin", json={})
        resp = api_client.post(
            "/api/auth/passkey/register/complete", json={"credential": second.create(begin.json())}
        )

        assert resp.status_code == 200
        assert resp.json()["accountId"] == signed_in["accountId"]
        listed = api_client.get("/api/user/credentials").json()
        assert listed["total"] == 2


class TestSessionEndpoints:

    def test_session_is_null_when_signed_out(self, api_client: TestClient):
        assert api_client.get("/api/auth/session").json() == {"session": None}

    def test_signout_revokes_session(self, api_client: TestClient, signed_in):
        token = api_client.cookies.get("passkey_session")

        resp = api_client.post("/api/auth/signout")

        assert resp.status_code == 200
        assert resp.json() == {"message": "Signed out"}
        after = api_client.get("/api/user/profile", headers={"Authorization": f"Bearer {token}"})
        assert after.status_code == 401

    def test_signout_without_session(self, api_client: TestClient):
        assert api_client.post("/api/auth/signout").status_code == 200


class TestAccountEndpoints:

    def test_profile(self, api_client: TestClient, signed_in):
        resp = api_client.get("/api/user/profile")

        assert resp.status_code == 200
        profile = resp.json()["profile"]
        assert profile["id"] == signed_in["accountId"]
        assert profile["name"] == "Alice"
        assert profile["emailVerified"] is None
        assert "createdAt" in profile

    def test_get_settings(self, api_client: TestClient, signed_in):
        resp = api_client.get("/api/user/settings")

        assert resp.json()["settings"] == {
            "id": signed_in["accountId"],
            "name": "Alice",
            "email": "alice@example.com",
        }

    def test_update_settings(self, api_client: TestClient, signed_in):
        resp = api_client.put(
            "/api/user/settings", json={"name": "  Alice Liddell ", "email": "ALICE@wonderland.org"}
        )

        assert resp.status_code == 200
        assert resp.json()["message"] == "Settings updated successfully"
        assert resp.json()["settings"]["name"] == "Alice Liddell"
        assert resp.json()["settings"]["email"] == "alice@wonderland.org"

    def test_update_settings_without_session_changes_nothing(self, api_client: TestClient, authenticator):
        register_via_api(api_client, authenticator)
        token = api_client.cookies.get("passkey_session")
        api_client.cookies.clear()

        resp = api_client.put("/api/user/settings", json={"name": "Mallory"})

        assert resp.status_code == 401
        assert resp.json()["code"] == "authentication_required"
        profile = api_client.get(
            "/api/user/profile", headers={"Authorization": f"Bearer {token}"}
        ).json()["profile"]
        assert profile["name"] == "Alice"

    def test_update_settings_validation(self, api_client: TestClient, signed_in):
        resp = api_client.put("/api/user/settings", json={"name": "   ", "email": "not-an-email"})

        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "validation_error"
        assert body["message"] == "Invalid input"
        assert body["details"]["name"] == "Name is required"
        assert "email" in body["details"]

    def test_update_settings_email_conflict(self, api_client: TestClient, authenticator):
        bob = register_via_api(api_client, SoftAuthenticator(), email="bob@example.com", name="Bob")
        api_client.post("/api/auth/signout")
        alice = register_via_api(api_client, authenticator)

        resp = api_client.put("/api/user/settings", json={"email": "bob@example.com"})

        assert resp.status_code == 409
        assert resp.json()["details"] == {"email": "Email already in use"}
        assert api_client.get("/api/user/settings").json()["settings"]["email"] == "alice@example.com"
        api_client.post("/api/auth/signout")
        sign_in_resp = sign_in(api_client, authenticator)
        assert sign_in_resp.json()["accountId"] == alice["accountId"]
        assert bob["accountId"] != alice["accountId"]

    def test_list_credentials(self, api_client: TestClient, authenticator, signed_in):
        resp = api_client.get("/api/user/credentials")

        body = resp.json()
        assert body["total"] == 1
        credential = body["credentials"][0]
        assert credential["credentialId"] == authenticator.credential_id_b64
        assert credential["transports"] == ["internal"]
        assert credential["deviceType"] == "single_device"
        assert credential["backedUp"] is False

    def test_cannot_remove_only_passkey(self, api_client: TestClient, signed_in):
        record_id = api_client.get("/api/user/credentials").json()["credentials"][0]["id"]

        resp = api_client.delete(f"/api/user/credentials/{record_id}")

        assert resp.status_code == 409
        assert resp.json()["message"] == "Cannot remove your only passkey"

    def test_remove_passkey(self, api_client: TestClient, signed_in):
        second = SoftAuthenticator()
        begin = api_client.post("/api/auth/passkey/register/begin", json={})
        api_client.post("/api/auth/passkey/register/complete", json={"credential": second.create(begin.json())})
        credentials = api_client.get("/api/user/credentials").json()["credentials"]

        resp = api_client.delete(f"/api/user/credentials/{credentials[0]['id']}")

        assert resp.status_code == 200
        assert api_client.get("/api/user/credentials").json()["total"] == 1

    def test_cannot_remove_someone_elses_passkey(self, api_client: TestClient, authenticator):
        bob = SoftAuthenticator()
        register_via_api(api_client, bob, email="bob@example.com", name="Bob")
        bob_credential = api_client.get("/api/user/credentials").json()["credentials"][0]["id"]
        api_client.post("/api/auth/signout")
        register_via_api(api_client, authenticator)

        resp = api_client.delete(f"/api/user/credentials/{bob_credential}")

        assert resp.status_code == 403
        assert resp.json()["code"] == "authorization_denied"
        api_client.post("/api/auth/signout")
        assert sign_in(api_client, bob).status_code == 200
        assert api_client.get("/api/user/credentials").json()["total"] == 1

    def test_remove_unknown_passkey(self, api_client: TestClient, signed_in):
        resp = api_client.delete("/api/user/credentials/does-not-exist")

        assert resp.status_code == 404
        assert resp.json()["code"] == "not_found"
