import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlmodel import Session

from backend.app.auth.dependencies import get_rate_limiter
from backend.app.auth.service import GrantDispatcher
from backend.app.core.database import get_session
from backend.app.core.jwe import get_codec
from backend.app.core.ratelimit import RateLimiter
from backend.app.core.security import get_password_hash
from backend.app.core.settings import settings
from backend.app.main import app
from support import FakeClock, add_user, make_codec, make_engine

TOKEN_URL = "/auth/oauth/v2/token-jwe"

ADMIN_HASH = get_password_hash("admin-pass")
ALICE_HASH = get_password_hash("wonderland")


class ApiTestCase(unittest.TestCase):

    def setUp(self):
        self.engine = make_engine()
        self.codec = make_codec()
        self.clock = FakeClock()
        self.limiter = RateLimiter(rate=1, capacity=3, clock=self.clock)

        with Session(self.engine) as session:
            add_user(session, "admin", ADMIN_HASH, ["ADMIN", "USER"])
            self.alice_id = add_user(session, "alice", ALICE_HASH, ["USER"]).id

        def override_session():
            with Session(self.engine) as session:
                yield session

        app.dependency_overrides[get_session] = override_session
        app.dependency_overrides[get_codec] = lambda: self.codec
        app.dependency_overrides[get_rate_limiter] = lambda: self.limiter
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        self.engine.dispose()

    def request_token(self, username="alice", password="wonderland", **extra):
        body = {"grant_type": "password", "username": username, "password": password, **extra}
        return self.client.post(TOKEN_URL, json=body)

    def bearer(self, **kwargs) -> dict:
        response = self.request_token(**kwargs)
        self.assertEqual(response.status_code, 200, response.text)
        return {"Authorization": f"Bearer {response.json()['access_token']}"}


class TestTokenEndpoint(ApiTestCase):

    def test_password_grant(self):
        response = self.request_token(scope="read write")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["token_type"], "Bearer")
        self.assertEqual(body["expires_in"], 3600)
        self.assertEqual(body["scope"], "read write")
        self.assertTrue(body["refresh_token"])
        self.assertEqual(self.codec.extract_username(body["access_token"]), "alice")

    def test_token_alias(self):
        response = self.client.post(
            "/auth/oauth/v2/token",
            json={"grant_type": "password", "username": "alice", "password": "wonderland"},
        )
        self.assertEqual(response.status_code, 200)

    def test_bad_credentials(self):
        response = self.request_token(password="wrong")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "invalid_request", "error_description": "Invalid credentials"})

    def test_unsupported_grant(self):
        response = self.client.post(TOKEN_URL, json={"grant_type": "implicit"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "invalid_request")

    def test_missing_grant_type(self):
        response = self.client.post(TOKEN_URL, json={"username": "alice", "password": "wonderland"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "invalid_request", "error_description": "Grant type is required"})

    def test_body_that_is_not_json(self):
        response = self.client.post(
            TOKEN_URL,
            content=b"grant_type=password&username=alice",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "invalid_request")

    def test_badly_typed_field(self):
        response = self.client.post(TOKEN_URL, json={"grant_type": "password", "username": ["alice"]})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json(), {"error": "invalid_request", "error_description": "Malformed token request"}
        )

    def test_malformed_requests_consume_limiter_tokens(self):
        self.client.post(TOKEN_URL, content=b"not json")
        self.client.post(TOKEN_URL, json=["not", "an", "object"])
        self.client.post(TOKEN_URL, json={"username": "alice"})

        response = self.request_token()
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.json()["error"], "rate_limit_exceeded")

    def test_unreadable_stored_hash_is_invalid_credentials(self):
        with Session(self.engine) as session:
            add_user(session, "bob", "not-an-argon2-hash")

        response = self.request_token(username="bob", password="anything")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "invalid_request", "error_description": "Invalid credentials"})

    def test_refresh_grant(self):
        first = self.request_token().json()
        response = self.client.post(
            TOKEN_URL, json={"grant_type": "refresh_token", "refresh_token": first["refresh_token"]}
        )
        self.assertEqual(response.status_code, 200)

        replay = self.client.post(
            TOKEN_URL, json={"grant_type": "refresh_token", "refresh_token": first["refresh_token"]}
        )
        self.assertEqual(replay.status_code, 400)
        self.assertEqual(replay.json()["error_description"], "Invalid refresh token")

    def test_client_credentials_grant(self):
        response = self.client.post(
            TOKEN_URL,
            json={"grant_type": "client_credentials", "client_id": "oauth2-client", "client_secret": "s3cret"},
        )
        self.assertEqual(response.status_code, 200)
        token = response.json()["access_token"]
        self.assertIsNone(self.codec.extract_user_id(token))
        self.assertEqual(self.codec.extract_roles(token), ["API_CLIENT"])

    def test_unexpected_failure_is_server_error(self):
        with patch.object(GrantDispatcher, "issue_token", side_effect=RuntimeError("boom")):
            response = self.request_token()
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "server_error", "error_description": "Internal server error"})

    def test_rate_limit(self):
        for _ in range(3):
            self.assertEqual(self.request_token(client_id="web-app").status_code, 200)

        response = self.request_token(client_id="web-app")
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.json()["error"], "rate_limit_exceeded")

        # other clients keep their own bucket
        self.assertEqual(self.request_token(client_id="mobile-app").status_code, 200)

        self.clock.advance(1)
        self.assertEqual(self.request_token(client_id="web-app").status_code, 200)

    def test_rejected_requests_consume_tokens_too(self):
        for _ in range(3):
            self.assertEqual(self.request_token(password="wrong").status_code, 400)
        self.assertEqual(self.request_token().status_code, 429)

    def test_rate_limit_keys_on_forwarded_address(self):
        for _ in range(3):
            self.client.post(
                TOKEN_URL,
                json={"grant_type": "implicit"},
                headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
            )
        blocked = self.client.post(
            TOKEN_URL, json={"grant_type": "implicit"}, headers={"X-Forwarded-For": "203.0.113.9"}
        )
        self.assertEqual(blocked.status_code, 429)
        self.assertEqual(self.request_token().status_code, 200)

    def test_validation_and_resource_endpoints_are_not_limited(self):
        headers = self.bearer()
        for _ in range(10):
            self.assertEqual(self.client.get("/api/v1/protected/data", headers=headers).status_code, 200)
            self.assertEqual(self.client.post("/auth/oauth/v2/validate", params={"token": "x"}).status_code, 200)


class TestValidateRevokeLogout(ApiTestCase):

    def test_validate(self):
        token = self.request_token().json()["access_token"]

        response = self.client.post("/auth/oauth/v2/validate", params={"token": token})
        self.assertEqual(response.json(), {"valid": True, "message": "Token is valid"})

        response = self.client.post("/auth/oauth/v2/validate", params={"token": "garbage"})
        self.assertEqual(response.json(), {"valid": False, "message": "Token is invalid or expired"})

    def test_revoke_echoes_token_id(self):
        response = self.client.post("/auth/oauth/v2/revoke", params={"token_id": "unknown-id"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "Token revoked successfully", "token_id": "unknown-id"})

    def test_logout_echoes_user_id(self):
        response = self.client.post("/auth/oauth/v2/logout", params={"user_id": self.alice_id})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "User logged out successfully", "user_id": self.alice_id})

    def test_logout_invalidates_refresh_tokens(self):
        first = self.request_token().json()
        self.client.post("/auth/oauth/v2/logout", params={"user_id": self.alice_id})

        response = self.client.post(
            TOKEN_URL, json={"grant_type": "refresh_token", "refresh_token": first["refresh_token"]}
        )
        self.assertEqual(response.status_code, 400)

    def test_revoked_token_still_validates(self):
        token = self.request_token().json()["access_token"]
        token_id = self.codec.parse_and_validate(token).jti
        self.client.post("/auth/oauth/v2/revoke", params={"token_id": token_id})

        response = self.client.post("/auth/oauth/v2/validate", params={"token": token})
        self.assertTrue(response.json()["valid"])


class TestResourceEndpoints(ApiTestCase):

    def test_health_is_public(self):
        response = self.client.get("/api/v1/public/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "UP")

    def test_profile(self):
        response = self.client.get("/api/v1/protected/profile", headers=self.bearer())
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["username"], "alice")
        self.assertEqual(body["user_id"], self.alice_id)
        self.assertEqual(body["roles"], ["USER"])
        self.assertEqual(body["scopes"], ["read"])

    def test_missing_or_garbage_bearer(self):
        self.assertEqual(self.client.get("/api/v1/protected/profile").status_code, 401)
        response = self.client.get("/api/v1/protected/profile", headers={"Authorization": "Bearer not-a-jwe"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.headers["www-authenticate"], "Bearer")

    def test_write_scope_required_for_post(self):
        payload = {"name": "widget", "count": 2}

        response = self.client.post("/api/v1/protected/data", json=payload, headers=self.bearer(scope="read"))
        self.assertEqual(response.status_code, 403)

        response = self.client.post(
            "/api/v1/protected/data", json=payload, headers=self.bearer(scope="read write")
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["created_data"], payload)

    def test_admin_users_requires_admin_role(self):
        response = self.client.get("/api/v1/admin/users", headers=self.bearer())
        self.assertEqual(response.status_code, 403)

        response = self.client.get(
            "/api/v1/admin/users", headers=self.bearer(username="admin", password="admin-pass")
        )
        self.assertEqual(response.status_code, 200)
        logins = {user["login"] for user in response.json()["users"]}
        self.assertEqual(logins, {"admin", "alice"})
        self.assertNotIn("password_hash", response.json()["users"][0])

    def test_revocation_enforced_when_enabled(self):
        token = self.request_token().json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}
        self.client.post("/auth/oauth/v2/revoke", params={"token_id": self.codec.parse_and_validate(token).jti})

        self.assertEqual(self.client.get("/api/v1/protected/profile", headers=headers).status_code, 200)
        with patch.object(settings, "ENFORCE_REVOCATION_ON_RESOURCES", True):
            self.assertEqual(self.client.get("/api/v1/protected/profile", headers=headers).status_code, 401)


if __name__ == "__main__":
    unittest.main()
