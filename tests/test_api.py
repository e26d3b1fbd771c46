"""HTTP API tests against a full app with an in-memory database."""

import pytest


@pytest.fixture
def admin_headers(client, login):
    return login(client)


@pytest.fixture
def user_headers(client, login, admin_headers):
    resp = client.post(
        "/api/owners",
        json={"username": "streamer", "password": "pw", "role": "user"},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text
    return login(client, "streamer", "pw")


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["websocket_clients"] == 0


class TestAuth:
    def test_login_returns_token_and_sets_cookie(self, client):
        resp = client.post("/api/auth/login", json={"username": "admin", "password": "admin"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["token"]
        assert body["owner"]["role"] == "admin"
        assert body["owner"]["wheelKey"]
        assert "wheelcast_session" in resp.cookies

        # The cookie alone authenticates.
        assert client.get("/api/auth/me").status_code == 200

    def test_login_is_case_insensitive_on_username(self, client):
        resp = client.post("/api/auth/login", json={"username": "ADMIN", "password": "admin"})
        assert resp.status_code == 200

    def test_bad_password(self, client):
        resp = client.post("/api/auth/login", json={"username": "admin", "password": "wrong"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid credentials"

    def test_missing_fields(self, client):
        resp = client.post("/api/auth/login", json={"username": "admin"})
        assert resp.status_code == 400

    def test_me_requires_session(self, client):
        assert client.get("/api/auth/me").status_code == 401

    def test_me(self, client, admin_headers):
        resp = client.get("/api/auth/me", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["username"] == "admin"
        assert "password" not in resp.json()

    def test_logout_clears_cookie(self, client):
        client.post("/api/auth/login", json={"username": "admin", "password": "admin"})
        assert client.post("/api/auth/logout").status_code == 200
        client.cookies.clear()
        assert client.get("/api/auth/me").status_code == 401

    def test_change_credentials(self, client, user_headers, login):
        resp = client.post(
            "/api/auth/credentials",
            json={"newUsername": "renamed", "newPassword": "pw2"},
            headers=user_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["owner"]["username"] == "renamed"
        login(client, "renamed", "pw2")

    def test_change_credentials_conflict(self, client, user_headers):
        resp = client.post(
            "/api/auth/credentials",
            json={"newUsername": "Admin", "newPassword": "pw2"},
            headers=user_headers,
        )
        assert resp.status_code == 409


class TestItems:
    def test_crud(self, client, user_headers):
        resp = client.post("/api/items", json={"label": "Pizza", "weight": 3}, headers=user_headers)
        assert resp.status_code == 200
        item = resp.json()
        assert set(item) == {"id", "label", "weight"}

        resp = client.put(
            f"/api/items/{item['id']}", json={"label": "Pizza", "weight": 5}, headers=user_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["weight"] == 5.0

        listing = client.get("/api/items", headers=user_headers).json()
        assert listing == [{"id": item["id"], "label": "Pizza", "weight": 5.0}]

        resp = client.delete(f"/api/items/{item['id']}", headers=user_headers)
        assert resp.status_code == 200
        assert resp.json() == {"removed": 1}
        assert client.get("/api/items", headers=user_headers).json() == []

    def test_requires_session(self, client):
        assert client.get("/api/items").status_code == 401
        assert client.post("/api/items", json={"label": "A", "weight": 1}).status_code == 401

    @pytest.mark.parametrize("body", [
        {"label": "A", "weight": -1},
        {"label": "A", "weight": 0},
        {"label": "A", "weight": "abc"},
        {"label": "A", "weight": 10**400},
        {"label": "", "weight": 1},
        {"weight": 1},
    ])
    def test_invalid_item_is_400(self, client, user_headers, body):
        resp = client.post("/api/items", json=body, headers=user_headers)
        assert resp.status_code == 400
        assert client.get("/api/items", headers=user_headers).json() == []

    def test_malformed_body_is_400(self, client, user_headers):
        resp = client.post(
            "/api/items",
            content="not json",
            headers={**user_headers, "Content-Type": "application/json"},
        )
        assert resp.status_code == 400

    def test_owners_are_isolated(self, client, admin_headers, user_headers):
        created = client.post(
            "/api/items", json={"label": "Mine", "weight": 1}, headers=user_headers,
        ).json()

        assert client.get("/api/items", headers=admin_headers).json() == []
        resp = client.put(
            f"/api/items/{created['id']}", json={"label": "X", "weight": 1}, headers=admin_headers,
        )
        assert resp.status_code == 404
        assert client.delete(f"/api/items/{created['id']}", headers=admin_headers).status_code == 404
        assert client.get("/api/items", headers=user_headers).json()[0]["label"] == "Mine"

    def test_unknown_item_is_404(self, client, user_headers):
        assert client.delete("/api/items/missing", headers=user_headers).status_code == 404


class TestPublicItemsAndKeys:
    def test_public_listing_by_key(self, client, user_headers):
        client.post("/api/items", json={"label": "Pizza", "weight": 2}, headers=user_headers)
        key = client.get("/api/auth/me", headers=user_headers).json()["wheelKey"]

        resp = client.get("/api/items/public", params={"key": key})
        assert resp.status_code == 200
        assert [i["label"] for i in resp.json()] == ["Pizza"]

    def test_missing_key_is_401(self, client):
        assert client.get("/api/items/public").status_code == 401

    def test_invalid_key_is_403(self, client):
        assert client.get("/api/items/public", params={"key": "nope"}).status_code == 403

    def test_rotation_invalidates_old_key(self, client, user_headers):
        old_key = client.get("/api/auth/me", headers=user_headers).json()["wheelKey"]

        resp = client.post("/api/capability/rotate", headers=user_headers)
        assert resp.status_code == 200
        new_key = resp.json()["wheelKey"]

        assert new_key != old_key
        assert client.get("/api/items/public", params={"key": old_key}).status_code == 403
        assert client.get("/api/items/public", params={"key": new_key}).status_code == 200

    def test_rotate_requires_session(self, client):
        assert client.post("/api/capability/rotate").status_code == 401


class TestOwners:
    def test_admin_lists_owners_without_passwords(self, client, admin_headers, user_headers):
        resp = client.get("/api/owners", headers=admin_headers)
        assert resp.status_code == 200
        names = sorted(o["username"] for o in resp.json())
        assert names == ["admin", "streamer"]
        assert all("password" not in o for o in resp.json())

    def test_non_admin_is_forbidden(self, client, user_headers):
        assert client.get("/api/owners", headers=user_headers).status_code == 403
        resp = client.post(
            "/api/owners", json={"username": "x", "password": "y"}, headers=user_headers,
        )
        assert resp.status_code == 403

    def test_duplicate_username_is_409(self, client, admin_headers, user_headers):
        resp = client.post(
            "/api/owners", json={"username": "STREAMER", "password": "pw"}, headers=admin_headers,
        )
        assert resp.status_code == 409

    def test_create_requires_fields(self, client, admin_headers):
        resp = client.post("/api/owners", json={"username": "x"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_delete_owner_cascades(self, client, admin_headers, user_headers):
        client.post("/api/items", json={"label": "A", "weight": 1}, headers=user_headers)
        key = client.get("/api/auth/me", headers=user_headers).json()["wheelKey"]
        owner_id = client.get("/api/auth/me", headers=user_headers).json()["id"]

        resp = client.delete(f"/api/owners/{owner_id}", headers=admin_headers)
        assert resp.status_code == 200

        assert client.get("/api/items/public", params={"key": key}).status_code == 403
        assert client.get("/api/auth/me", headers=user_headers).status_code == 401

    def test_delete_unknown_owner_is_404(self, client, admin_headers):
        assert client.delete("/api/owners/missing", headers=admin_headers).status_code == 404

    def test_admin_cannot_delete_self(self, client, admin_headers):
        admin_id = client.get("/api/auth/me", headers=admin_headers).json()["id"]
        assert client.delete(f"/api/owners/{admin_id}", headers=admin_headers).status_code == 403
