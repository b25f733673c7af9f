"""Registration, login, sessions and /me."""

from datetime import timedelta

from storefront.models import SessionToken, User
from storefront.services.session_service import SessionService, hash_token
from storefront.time_utils import utcnow

from conftest import TEST_PASSWORD, auth_headers


def _login(client, email, password=TEST_PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


class TestRegister:

    def test_register_creates_customer(self, client, db_session):
        resp = client.post(
            "/api/auth/register",
            json={"email": "Asha@Example.com", "password": TEST_PASSWORD, "name": "Asha", "role": "admin"},
        )
        assert resp.status_code == 201
        assert resp.json["data"]["email"] == "asha@example.com"
        assert resp.json["data"]["role"] == "customer"
        assert "password_hash" not in resp.json["data"]

    def test_weak_password(self, client, db_session):
        resp = client.post("/api/auth/register", json={"email": "a@example.com", "password": "password"})
        assert resp.status_code == 400
        assert "uppercase" in resp.json["error"]

    def test_duplicate_email(self, client, make_user):
        make_user("customer", email="taken@example.com")
        resp = client.post("/api/auth/register", json={"email": "TAKEN@example.com", "password": TEST_PASSWORD})
        assert resp.status_code == 409

    def test_invalid_email(self, client, db_session):
        resp = client.post("/api/auth/register", json={"email": "not-an-email", "password": TEST_PASSWORD})
        assert resp.status_code == 400


class TestLoginLogout:

    def test_login_me_logout(self, client, make_user, db_session):
        make_user("manager", email="ops@example.com")

        resp = _login(client, "OPS@example.com")
        assert resp.status_code == 200
        token = resp.json["data"]["token"]
        assert resp.json["data"]["expires_at"].endswith("Z")

        stored = db_session.query(SessionToken).one()
        assert stored.token_hash == hash_token(token)
        assert stored.token_hash != token

        me = client.get("/api/auth/me", headers=auth_headers(token))
        assert me.status_code == 200
        assert me.json["data"]["user"]["role"] == "manager"
        assert me.json["data"]["permissions"]["inventory"] == ["adjust", "view"]

        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_wrong_password(self, client, make_user):
        make_user("admin", email="boss@example.com")
        resp = _login(client, "boss@example.com", "Wrong-password1")
        assert resp.status_code == 401
        assert resp.json == {"success": False, "error": "Invalid credentials"}

    def test_inactive_user_cannot_login(self, client, make_user):
        make_user("admin", email="gone@example.com", is_active=False)
        assert _login(client, "gone@example.com").status_code == 401

    def test_missing_credentials(self, client, db_session):
        assert client.post("/api/auth/login", json={"email": "x@example.com"}).status_code == 400


class TestSessionExpiry:

    def test_idle_session_is_revoked(self, client, make_user, db_session):
        user = make_user("viewer")
        record, token = SessionService(db_session).create_session(user)
        record.last_used_at = utcnow() - timedelta(hours=3)
        db_session.commit()

        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401
        db_session.refresh(record)
        assert record.revoked_reason == "Idle timeout"

    def test_absolute_expiry(self, client, make_user, db_session):
        user = make_user("viewer")
        record, token = SessionService(db_session).create_session(user)
        record.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_deactivated_user_loses_session(self, client, make_user, db_session):
        user = make_user("viewer")
        _, token = SessionService(db_session).create_session(user)
        db_session.get(User, user.id).is_active = False
        db_session.commit()

        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_cleanup_removes_old_sessions(self, make_user, db_session):
        user = make_user("viewer")
        old, _ = SessionService(db_session).create_session(user)
        old.created_at = utcnow() - timedelta(days=45)
        old.expires_at = utcnow() - timedelta(days=44)
        SessionService(db_session).create_session(user)
        db_session.commit()

        assert SessionService(db_session).cleanup_expired_sessions() == 1
        assert db_session.query(SessionToken).count() == 1

    def test_cleanup_measures_age_from_when_the_session_ended(self, make_user, db_session):
        user = make_user("viewer")
        service = SessionService(db_session)
        now = utcnow()

        long_lived, _ = service.create_session(user)
        long_lived.created_at = now - timedelta(days=60)
        long_lived.expires_at = now - timedelta(days=5)

        recently_revoked, _ = service.create_session(user)
        recently_revoked.created_at = now - timedelta(days=45)
        recently_revoked.revoked_at = now - timedelta(days=1)

        revoked_long_ago, _ = service.create_session(user)
        revoked_long_ago.created_at = now - timedelta(days=40)
        revoked_long_ago.revoked_at = now - timedelta(days=31)
        db_session.commit()
        kept = {long_lived.id, recently_revoked.id}

        assert service.cleanup_expired_sessions() == 1
        assert {s.id for s in db_session.query(SessionToken).all()} == kept
