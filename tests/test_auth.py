"""Tests for the auth module: token creation and validation, registration, login."""

from filevault.core.token_factory import create_token, decode_token, sign_value, verify_signature
from filevault.core.config import settings
from tests.conftest import TEST_PASSWORD, register


class TestTokenFactory:

    def test_create_and_decode(self):
        token = create_token("user-1", "a@example.com", "test-secret")
        payload = decode_token(token, "test-secret")
        assert payload is not None
        assert payload.sub == "user-1"
        assert payload.email == "a@example.com"

    def test_wrong_secret_returns_none(self):
        token = create_token("user-1", "a@example.com", "correct-secret")
        assert decode_token(token, "wrong-secret") is None

    def test_expired_token_returns_none(self):
        token = create_token("user-1", "a@example.com", "secret", expires_hours=-1)
        assert decode_token(token, "secret") is None

    def test_malformed_token_returns_none(self):
        assert decode_token("not.a.token", "secret") is None
        assert decode_token("", "secret") is None

    def test_signature_round_trip(self):
        sig = sign_value("ref:view:100", "secret")
        assert verify_signature("ref:view:100", sig, "secret")
        assert not verify_signature("ref:download:100", sig, "secret")
        assert not verify_signature("ref:view:100", sig, "other")


class TestRegisterAndLogin:

    def test_register_returns_token(self, client):
        user = register(client, "carol@example.com", "Carol")
        resp = client.get("/api/auth/me", headers=user["headers"])
        assert resp.status_code == 200
        assert resp.json()["email"] == "carol@example.com"

    def test_duplicate_email_rejected(self, client):
        register(client, "carol@example.com")
        resp = client.post("/api/auth/register", json={
            "email": "Carol@Example.com", "password": TEST_PASSWORD, "display_name": "C",
        })
        assert resp.status_code == 400
        assert resp.json()["error"] == "VALIDATION_ERROR"

    def test_login_with_correct_password(self, client):
        register(client, "carol@example.com")
        resp = client.post("/api/auth/login", json={
            "email": "carol@example.com", "password": TEST_PASSWORD,
        })
        assert resp.status_code == 200
        assert resp.json()["expires_in"] == settings.access_token_hours * 3600

    def test_login_with_wrong_password(self, client):
        register(client, "carol@example.com")
        resp = client.post("/api/auth/login", json={
            "email": "carol@example.com", "password": "wrong-password",
        })
        assert resp.status_code == 401
        assert resp.json()["error"] == "UNAUTHENTICATED"

    def test_default_folders_seeded_when_enabled(self, db):
        from filevault.services import auth_service
        from filevault.services.folder_service import DEFAULT_FOLDERS, FolderService

        user = auth_service.register_user(
            db, "dana@example.com", TEST_PASSWORD, "Dana", create_default_folders=True
        )
        names = sorted(f.name for f in FolderService(db).list_children(user.id))
        assert names == sorted(name for name, _, _ in DEFAULT_FOLDERS)


class TestProtectedEndpoints:

    def test_missing_token_is_401(self, client):
        resp = client.get("/api/folders")
        assert resp.status_code == 401
        assert resp.json()["error"] == "UNAUTHENTICATED"

    def test_garbage_token_is_401(self, client):
        resp = client.get("/api/folders", headers={"Authorization": "Bearer nonsense"})
        assert resp.status_code == 401

    def test_token_for_unknown_user_is_401(self, client):
        token = create_token("ghost", "ghost@example.com", settings.jwt_secret_key)
        resp = client.get("/api/files", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
