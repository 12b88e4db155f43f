"""
Integration tests for the /api/v1 surface.

Covers status mapping for every error kind the routes can produce, request
validation (422), bearer handling, and the full app lifecycle over HTTP.

Fixtures used (from conftest.py):
  api_client -- module-scoped TestClient with an isolated shared-memory DB.
                State persists across tests in this module, so every test
                uses its own emails and app names.
"""

import pytest

import api.main as api_main
from api.main import _requested_timeout
from core.config import get_settings

PASSWORD = "password1"


def register(client, email, password=PASSWORD):
    resp = client.post("/api/v1/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    return resp.json()["user_id"]


def login(client, email, app_name, password=PASSWORD):
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password, "app_name": app_name})
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]


def create_app(client, email, name, secret="secret"):
    resp = client.post("/api/v1/apps", json={"email": email, "app_name": name, "app_secret": secret})
    assert resp.status_code == 201, resp.text
    return resp.json()["app_id"]


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


def error_code(resp):
    return resp.json()["error"]["code"]


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestHealth:
    def test_health_reports_database(self, api_client):
        resp = api_client.get("/api/v1/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["components"] == {"app": "ok", "database": "ok"}
        assert body["version"]


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class TestAuthRoutes:
    def test_register_returns_201_and_id(self, api_client):
        resp = api_client.post("/api/v1/auth/register", json={"email": "reg@test.com", "password": PASSWORD})
        assert resp.status_code == 201
        assert resp.json()["user_id"] >= 1

    def test_duplicate_register_is_409(self, api_client):
        register(api_client, "dup@test.com")
        resp = api_client.post("/api/v1/auth/register", json={"email": "dup@test.com", "password": "other"})
        assert resp.status_code == 409
        assert error_code(resp) == "already_exists"

    def test_login_returns_uncacheable_token(self, api_client):
        register(api_client, "login@test.com")
        create_app(api_client, "login@test.com", "login-app")
        resp = api_client.post(
            "/api/v1/auth/login",
            json={"email": "login@test.com", "password": PASSWORD, "app_name": "login-app"},
        )
        assert resp.status_code == 200
        assert resp.json()["token"].count(".") == 2
        assert resp.headers["cache-control"] == "no-store"

    def test_login_by_app_id(self, api_client):
        register(api_client, "loginid@test.com")
        app_id = create_app(api_client, "loginid@test.com", "loginid-app")
        resp = api_client.post(
            "/api/v1/auth/login",
            json={"email": "loginid@test.com", "password": PASSWORD, "app_id": app_id},
        )
        assert resp.status_code == 200

    def test_login_failures_share_one_response(self, api_client):
        register(api_client, "fail@test.com")
        create_app(api_client, "fail@test.com", "fail-app")
        bodies = []
        for payload in (
            {"email": "fail@test.com", "password": "wrong", "app_name": "fail-app"},
            {"email": "ghost@test.com", "password": PASSWORD, "app_name": "fail-app"},
            {"email": "fail@test.com", "password": PASSWORD, "app_name": "ghost-app"},
        ):
            resp = api_client.post("/api/v1/auth/login", json=payload)
            assert resp.status_code == 400
            bodies.append(resp.json())
        assert bodies[0] == bodies[1] == bodies[2]
        assert bodies[0]["error"]["code"] == "invalid_argument"

    def test_is_admin(self, api_client):
        uid = register(api_client, "isadm@test.com")
        create_app(api_client, "isadm@test.com", "isadm-app")
        resp = api_client.get("/api/v1/auth/is-admin", params={"user_id": uid, "app_name": "isadm-app"})
        assert resp.status_code == 200
        assert resp.json() == {"is_admin": True}

    def test_is_admin_unknown_app_is_400(self, api_client):
        resp = api_client.get("/api/v1/auth/is-admin", params={"user_id": 1, "app_name": "nowhere"})
        assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    @pytest.mark.parametrize(
        "payload",
        [
            {"email": "not-an-email", "password": PASSWORD},
            {"email": "v@test.com", "password": ""},
            {"email": "v@test.com", "password": "x" * 73},
            {"email": "v@test.com"},
        ],
        ids=["bad-email", "empty-password", "password-over-72-bytes", "missing-password"],
    )
    def test_bad_register_body_is_422(self, api_client, payload):
        resp = api_client.post("/api/v1/auth/register", json=payload)
        assert resp.status_code == 422
        assert error_code(resp) == "validation_error"

    def test_multibyte_password_limit_counts_bytes(self, api_client):
        # 25 three-byte characters = 75 bytes.
        resp = api_client.post("/api/v1/auth/register", json={"email": "mb@test.com", "password": "€" * 25})
        assert resp.status_code == 422

    @pytest.mark.parametrize(
        "app_fields",
        [{}, {"app_id": 1, "app_name": "both"}, {"app_id": 0}, {"app_name": ""}],
        ids=["neither", "both", "zero-id", "empty-name"],
    )
    def test_login_needs_exactly_one_valid_app_reference(self, api_client, app_fields):
        resp = api_client.post("/api/v1/auth/login", json={"email": "v@test.com", "password": PASSWORD, **app_fields})
        assert resp.status_code == 422

    @pytest.mark.parametrize(
        "params",
        [{"user_id": 1}, {"user_id": 0, "app_name": "a"}, {"user_id": "x", "app_name": "a"}, {"app_name": "a"}],
        ids=["no-app", "zero-user", "non-numeric-user", "no-user"],
    )
    def test_bad_role_query_is_422(self, api_client, params):
        assert api_client.get("/api/v1/permissions/is-admin", params=params).status_code == 422

    def test_id_beyond_int64_is_422(self, api_client):
        resp = api_client.get("/api/v1/permissions/is-admin", params={"user_id": 2**63, "app_name": "a"})
        assert resp.status_code == 422

    def test_unknown_route_uses_error_envelope(self, api_client):
        resp = api_client.get("/api/v1/nope")
        assert resp.status_code == 404
        assert error_code(resp) == "http_404"


# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def perm_world(api_client):
    """Creator and member on perm-app, plus the creator's and member's tokens."""
    creator_id = register(api_client, "pc@test.com")
    member_id = register(api_client, "pm@test.com")
    create_app(api_client, "pc@test.com", "perm-app", "perm-secret")
    return {
        "creator_id": creator_id,
        "member_id": member_id,
        "creator_token": login(api_client, "pc@test.com", "perm-app"),
        "member_token": login(api_client, "pm@test.com", "perm-app"),
    }


class TestPermissionRoutes:
    def _set_admin(self, client, headers, email="pm@test.com"):
        return client.post(
            "/api/v1/permissions/set-admin", json={"email": email, "app_name": "perm-app"}, headers=headers
        )

    def test_no_authorization_header_is_401(self, api_client, perm_world):
        resp = self._set_admin(api_client, {})
        assert resp.status_code == 401
        assert error_code(resp) == "unauthenticated"
        assert resp.headers["www-authenticate"] == "Bearer"

    def test_wrong_scheme_is_401(self, api_client, perm_world):
        resp = self._set_admin(api_client, {"Authorization": f"Token {perm_world['creator_token']}"})
        assert resp.status_code == 401

    def test_two_authorization_headers_are_401(self, api_client, perm_world):
        token = perm_world["creator_token"]
        headers = [("Authorization", f"Bearer {token}"), ("Authorization", f"Bearer {token}")]
        resp = self._set_admin(api_client, headers)
        assert resp.status_code == 401

    def test_garbage_token_is_400(self, api_client, perm_world):
        resp = self._set_admin(api_client, auth_header("garbage"))
        assert resp.status_code == 400
        assert error_code(resp) == "invalid_argument"

    def test_non_creator_is_403(self, api_client, perm_world):
        resp = self._set_admin(api_client, auth_header(perm_world["member_token"]))
        assert resp.status_code == 403
        assert error_code(resp) == "permission_denied"

    def test_unknown_target_email_is_400(self, api_client, perm_world):
        resp = self._set_admin(api_client, auth_header(perm_world["creator_token"]), email="ghost@test.com")
        assert resp.status_code == 400

    def test_grant_query_revoke_cycle(self, api_client, perm_world):
        headers = auth_header(perm_world["creator_token"])
        query = {"user_id": perm_world["member_id"], "app_name": "perm-app"}

        for _ in range(2):
            resp = self._set_admin(api_client, headers)
            assert resp.status_code == 200
            assert resp.json() == {"set_admin": True}
        assert api_client.get("/api/v1/permissions/is-admin", params=query).json() == {"is_admin": True}

        for _ in range(2):
            resp = api_client.post(
                "/api/v1/permissions/del-admin",
                json={"email": "pm@test.com", "app_name": "perm-app"},
                headers=headers,
            )
            assert resp.status_code == 200
            assert resp.json() == {"del_admin": True}
        assert api_client.get("/api/v1/permissions/is-admin", params=query).json() == {"is_admin": False}

    def test_is_creator(self, api_client, perm_world):
        for user_id, expected in ((perm_world["creator_id"], True), (perm_world["member_id"], False)):
            resp = api_client.get(
                "/api/v1/permissions/is-creator", params={"user_id": user_id, "app_name": "perm-app"}
            )
            assert resp.status_code == 200
            assert resp.json() == {"is_creator": expected}


# ---------------------------------------------------------------------------
# Apps
# ---------------------------------------------------------------------------


class TestAppRoutes:
    def test_get_app_id(self, api_client):
        register(api_client, "ga@test.com")
        app_id = create_app(api_client, "ga@test.com", "ga-app")
        resp = api_client.get("/api/v1/apps/ga-app")
        assert resp.status_code == 200
        assert resp.json() == {"app_id": app_id, "app_name": "ga-app"}

    def test_get_unknown_app_is_400(self, api_client):
        assert api_client.get("/api/v1/apps/never-made").status_code == 400

    def test_secret_is_never_returned(self, api_client):
        register(api_client, "sec@test.com")
        resp = api_client.post(
            "/api/v1/apps", json={"email": "sec@test.com", "app_name": "sec-app", "app_secret": "top-secret"}
        )
        assert "top-secret" not in resp.text
        assert "top-secret" not in api_client.get("/api/v1/apps/sec-app").text

    def test_create_for_unknown_email_is_400(self, api_client):
        resp = api_client.post(
            "/api/v1/apps", json={"email": "nobody-here@test.com", "app_name": "orphan", "app_secret": "s"}
        )
        assert resp.status_code == 400

    @pytest.mark.parametrize("name", ["team/app", "/lead", "trail/", ".", ".."])
    def test_name_must_be_one_path_segment(self, api_client, name):
        resp = api_client.post("/api/v1/apps", json={"email": "seg@test.com", "app_name": name, "app_secret": "s"})
        assert resp.status_code == 422
        assert error_code(resp) == "validation_error"

    def test_rename_to_multi_segment_name_is_422(self, api_client):
        register(api_client, "ren@test.com")
        create_app(api_client, "ren@test.com", "ren-app")
        token = login(api_client, "ren@test.com", "ren-app")
        resp = api_client.patch(
            "/api/v1/apps/ren-app",
            json={"new_app_name": "ren/app", "new_app_secret": "s2"},
            headers=auth_header(token),
        )
        assert resp.status_code == 422
        assert api_client.get("/api/v1/apps/ren-app").status_code == 200

    def test_unusual_but_valid_name_is_addressable(self, api_client):
        """Spaces, dots and colons survive the round trip through the URL path."""
        register(api_client, "odd@test.com")
        app_id = create_app(api_client, "odd@test.com", "team app:v1.2")
        token = login(api_client, "odd@test.com", "team app:v1.2")

        resp = api_client.get("/api/v1/apps/team app:v1.2")
        assert resp.status_code == 200
        assert resp.json() == {"app_id": app_id, "app_name": "team app:v1.2"}

        resp = api_client.delete("/api/v1/apps/team app:v1.2", headers=auth_header(token))
        assert resp.status_code == 200
        assert api_client.get("/api/v1/apps/team app:v1.2").status_code == 400

    def test_duplicate_app_name_is_409(self, api_client):
        register(api_client, "dupapp@test.com")
        create_app(api_client, "dupapp@test.com", "dup-app")
        resp = api_client.post(
            "/api/v1/apps", json={"email": "dupapp@test.com", "app_name": "dup-app", "app_secret": "s2"}
        )
        assert resp.status_code == 409
        assert error_code(resp) == "already_exists"

    def test_update_requires_creator(self, api_client):
        register(api_client, "uo@test.com")
        register(api_client, "ux@test.com")
        create_app(api_client, "uo@test.com", "upd-guard")
        intruder = login(api_client, "ux@test.com", "upd-guard")
        resp = api_client.patch(
            "/api/v1/apps/upd-guard",
            json={"new_app_name": "stolen", "new_app_secret": "s"},
            headers=auth_header(intruder),
        )
        assert resp.status_code == 403

    def test_update_without_token_is_401(self, api_client):
        resp = api_client.patch("/api/v1/apps/anything", json={"new_app_name": "x", "new_app_secret": "s"})
        assert resp.status_code == 401

    def test_lifecycle(self, api_client):
        """Create, rename with a rotated secret, re-login, then delete."""
        member_id = register(api_client, "lm@test.com")
        register(api_client, "lc@test.com")
        app_id = create_app(api_client, "lc@test.com", "life-app", "s1")
        token = login(api_client, "lc@test.com", "life-app")

        resp = api_client.patch(
            "/api/v1/apps/life-app",
            json={"new_app_name": "life-app-2", "new_app_secret": "s2"},
            headers=auth_header(token),
        )
        assert resp.status_code == 200
        assert resp.json() == {"is_upd_app": True}
        assert api_client.get("/api/v1/apps/life-app-2").json()["app_id"] == app_id

        # The rotated secret invalidates the old token.
        resp = api_client.delete("/api/v1/apps/life-app-2", headers=auth_header(token))
        assert resp.status_code == 400

        token = login(api_client, "lc@test.com", "life-app-2")
        resp = api_client.post(
            "/api/v1/permissions/set-admin",
            json={"email": "lm@test.com", "app_id": app_id},
            headers=auth_header(token),
        )
        assert resp.status_code == 200

        resp = api_client.delete("/api/v1/apps/life-app-2", headers=auth_header(token))
        assert resp.status_code == 200
        assert resp.json() == {"is_del_app": True}

        assert api_client.get("/api/v1/apps/life-app-2").status_code == 400
        resp = api_client.get("/api/v1/auth/is-admin", params={"user_id": member_id, "app_id": app_id})
        assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Deadline header
# ---------------------------------------------------------------------------


class _FakeRequest:
    def __init__(self, headers):
        self.headers = headers


class TestRequestedTimeout:
    @pytest.mark.parametrize("raw", [None, "", "abc", "0", "-5", "inf", "nan"])
    def test_unusable_values_fall_back_to_server_budget(self, raw):
        headers = {} if raw is None else {"x-request-timeout": raw}
        assert _requested_timeout(_FakeRequest(headers)) == get_settings().request_timeout_seconds

    def test_smaller_value_tightens(self):
        assert _requested_timeout(_FakeRequest({"x-request-timeout": "0.5"})) == 0.5

    def test_larger_value_is_capped(self):
        budget = get_settings().request_timeout_seconds
        assert _requested_timeout(_FakeRequest({"x-request-timeout": str(budget * 10)})) == budget

    def test_header_is_accepted_end_to_end(self, api_client):
        resp = api_client.get("/api/v1/health", headers={"X-Request-Timeout": "5"})
        assert resp.status_code == 200

    def test_expired_deadline_is_504(self, api_client, monkeypatch):
        monkeypatch.setattr(api_main, "_requested_timeout", lambda request: 0)
        resp = api_client.get("/api/v1/apps/any-app")
        assert resp.status_code == 504
        assert resp.json()["error"] == {
            "code": "deadline_exceeded",
            "message": "request deadline exceeded",
            "detail": None,
        }
