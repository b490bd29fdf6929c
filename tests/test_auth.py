"""
Auth tests — crypto helpers, session login, invites, registration,
profile, password change, the password reset flow and outbound email.
"""

import smtplib
from datetime import timedelta

from app.models import db, utcnow
from app.models.auth import Session, User
from app.models.email import EmailLog
from app.services.email_service import EmailService
from app.utils.crypto import hash_password, hash_token, verify_password

ADMIN_PASSWORD = "admin-pass-123"
USER_PASSWORD = "user-pass-123"


# ═══════════════════════════════════════════════════════════════
# BLOCK 1: Crypto
# ═══════════════════════════════════════════════════════════════

class TestCrypto:
    def test_hash_and_verify(self):
        hashed = hash_password("MySecretPassword123!")
        assert hashed.startswith("$2b$")
        assert verify_password("MySecretPassword123!", hashed) is True
        assert verify_password("wrong", hashed) is False

    def test_empty_hash(self):
        assert verify_password("anything", "") is False
        assert verify_password("anything", None) is False
        assert verify_password("anything", "pbkdf2:sha256:1$salt$abc") is False

    def test_token_digest_is_stable(self):
        assert hash_token("abc") == hash_token("abc")
        assert hash_token("abc") != hash_token("abd")


# ═══════════════════════════════════════════════════════════════
# BLOCK 2: Login / logout / session guard
# ═══════════════════════════════════════════════════════════════

class TestLogin:
    def test_login_success(self, anon_client, admin_user):
        res = anon_client.post("/api/v1/auth/login",
                               json={"username": "admin", "password": ADMIN_PASSWORD})
        assert res.status_code == 200
        body = res.get_json()
        assert body["username"] == "admin"
        assert "password" not in body

        me = anon_client.get("/api/v1/auth/me")
        assert me.status_code == 200
        assert me.get_json()["email"] == "admin@example.com"

    def test_login_wrong_password(self, anon_client, admin_user):
        res = anon_client.post("/api/v1/auth/login",
                               json={"username": "admin", "password": "nope-nope"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid username or password"

    def test_protected_route_requires_login(self, anon_client):
        res = anon_client.get("/api/v1/projects")
        assert res.status_code == 401
        assert res.get_json()["error"] == "Authentication required"

    def test_logout_ends_session(self, client):
        assert client.post("/api/v1/auth/logout").status_code == 200
        assert client.get("/api/v1/auth/me").status_code == 401

    def test_new_login_deactivates_previous_session(self, app, admin_user):
        first = app.test_client()
        first.post("/api/v1/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})
        second = app.test_client()
        second.post("/api/v1/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})

        assert second.get("/api/v1/auth/me").status_code == 200
        assert first.get("/api/v1/auth/me").status_code == 401
        assert Session.query.filter_by(user_id=admin_user.id, is_active=True).count() == 1

    def test_expired_session_rejected(self, client, admin_user):
        row = Session.query.filter_by(user_id=admin_user.id, is_active=True).one()
        row.expires_at = utcnow() - timedelta(minutes=1)
        db.session.commit()
        assert client.get("/api/v1/auth/me").status_code == 401

    def test_form_post_rejected(self, client):
        res = client.post("/api/v1/customers", data="name=x",
                          content_type="application/x-www-form-urlencoded")
        assert res.status_code == 415


# ═══════════════════════════════════════════════════════════════
# BLOCK 3: Invites & registration
# ═══════════════════════════════════════════════════════════════

class TestRegistration:
    def _invite(self, client, email="new.user@example.com"):
        res = client.post("/api/v1/invites", json={"email": email})
        assert res.status_code == 201
        return res.get_json()

    def test_invite_requires_admin(self, user_client):
        res = user_client.post("/api/v1/invites", json={"email": "x@example.com"})
        assert res.status_code == 403

    def test_invite_for_existing_email_rejected(self, client):
        res = client.post("/api/v1/invites", json={"email": "admin@example.com"})
        assert res.status_code == 400

    def test_verify_invite(self, client, anon_client):
        invite = self._invite(client)
        res = anon_client.get(f"/api/v1/invites/{invite['token']}/verify")
        assert res.get_json() == {"valid": True, "email": "new.user@example.com"}
        assert anon_client.get("/api/v1/invites/bogus/verify").get_json() == {"valid": False}

    def test_register_with_invite(self, client, anon_client):
        invite = self._invite(client)
        res = anon_client.post("/api/v1/auth/register", json={
            "username": "newbie",
            "password": "long-enough-pw",
            "email": "New.User@example.com",
            "invite_token": invite["token"],
            "first_name": "New",
        })
        assert res.status_code == 201
        body = res.get_json()
        assert body["role"] == "user"
        assert body["invited_by"] is not None
        # registration logs the user in
        assert anon_client.get("/api/v1/auth/me").get_json()["username"] == "newbie"

        # the invite is single-use
        again = anon_client.get(f"/api/v1/invites/{invite['token']}/verify")
        assert again.get_json()["valid"] is False

    def test_register_email_must_match_invite(self, client, anon_client):
        invite = self._invite(client)
        res = anon_client.post("/api/v1/auth/register", json={
            "username": "sneaky",
            "password": "long-enough-pw",
            "email": "other@example.com",
            "invite_token": invite["token"],
        })
        assert res.status_code == 400
        assert res.get_json()["error"] == "Invalid or expired invite"

    def test_register_missing_fields(self, anon_client):
        res = anon_client.post("/api/v1/auth/register", json={"username": "x"})
        assert res.status_code == 400
        assert set(res.get_json()["details"]) == {"password", "email", "invite_token"}

    def test_register_blank_username(self, client, anon_client):
        invite = self._invite(client)
        res = anon_client.post("/api/v1/auth/register", json={
            "username": "   ",
            "password": "long-enough-pw",
            "email": "new.user@example.com",
            "invite_token": invite["token"],
        })
        assert res.status_code == 400
        assert res.get_json()["details"] == {"username": "required"}
        assert User.query.filter_by(email="new.user@example.com").count() == 0

    def test_register_strips_username(self, client, anon_client):
        invite = self._invite(client)
        res = anon_client.post("/api/v1/auth/register", json={
            "username": "  newbie ",
            "password": "long-enough-pw",
            "email": "new.user@example.com",
            "invite_token": invite["token"],
        })
        assert res.status_code == 201
        assert res.get_json()["username"] == "newbie"


# ═══════════════════════════════════════════════════════════════
# BLOCK 4: Profile & passwords
# ═══════════════════════════════════════════════════════════════

class TestProfile:
    def test_update_profile(self, user_client):
        res = user_client.put("/api/v1/auth/me", json={"first_name": "Janet", "company": "Acme"})
        assert res.status_code == 200
        assert res.get_json()["first_name"] == "Janet"
        assert res.get_json()["company"] == "Acme"

    def test_update_profile_duplicate_email(self, user_client, admin_user):
        res = user_client.put("/api/v1/auth/me", json={"email": "admin@example.com"})
        assert res.status_code == 400

    def test_change_password(self, app, user_client):
        res = user_client.post("/api/v1/auth/change-password", json={
            "current_password": USER_PASSWORD, "new_password": "brand-new-pass",
        })
        assert res.status_code == 200
        c = app.test_client()
        ok = c.post("/api/v1/auth/login", json={"username": "jane", "password": "brand-new-pass"})
        assert ok.status_code == 200

    def test_change_password_wrong_current(self, user_client):
        res = user_client.post("/api/v1/auth/change-password", json={
            "current_password": "wrong-one", "new_password": "brand-new-pass",
        })
        assert res.status_code == 400

    def test_change_password_too_long(self, user_client):
        res = user_client.post("/api/v1/auth/change-password", json={
            "current_password": USER_PASSWORD, "new_password": "x" * 73,
        })
        assert res.status_code == 400
        assert res.get_json()["details"] == {"new_password": "too long"}


class TestPasswordReset:
    def test_forgot_password_always_200(self, anon_client, regular_user):
        for email in ("jane@example.com", "nobody@example.com", ""):
            res = anon_client.post("/api/v1/auth/forgot-password", json={"email": email})
            assert res.status_code == 200

        user = db.session.get(User, regular_user.id)
        db.session.refresh(user)
        assert user.reset_token is not None
        assert user.reset_token_expires is not None

    def test_reset_with_known_token(self, app, anon_client, regular_user):
        regular_user.reset_token = hash_token("known-token")
        regular_user.reset_token_expires = utcnow() + timedelta(minutes=30)
        db.session.commit()

        res = anon_client.get("/api/v1/auth/verify-reset-token/known-token")
        assert res.get_json() == {"valid": True}

        res = anon_client.post("/api/v1/auth/reset-password",
                               json={"token": "known-token", "password": "reset-pass-99"})
        assert res.status_code == 200

        c = app.test_client()
        ok = c.post("/api/v1/auth/login", json={"username": "jane", "password": "reset-pass-99"})
        assert ok.status_code == 200
        # token is consumed
        assert anon_client.get("/api/v1/auth/verify-reset-token/known-token").get_json() == {
            "valid": False}

    def test_expired_token_rejected(self, anon_client, regular_user):
        regular_user.reset_token = hash_token("old-token")
        regular_user.reset_token_expires = utcnow() - timedelta(minutes=1)
        db.session.commit()

        res = anon_client.post("/api/v1/auth/reset-password",
                               json={"token": "old-token", "password": "reset-pass-99"})
        assert res.status_code == 400
        assert res.get_json()["error"] == "Invalid or expired reset token"


# ═══════════════════════════════════════════════════════════════
# BLOCK 5: Outbound email
# ═══════════════════════════════════════════════════════════════

class TestEmail:
    def test_invite_is_logged_without_smtp(self, client):
        client.post("/api/v1/invites", json={"email": "guest@example.com"})
        log = EmailLog.query.filter_by(recipient_email="guest@example.com").one()
        assert log.category == "invite"
        assert log.template_name == "invite"
        assert log.status == "sent"
        assert log.sent_at is not None

    def test_render_escapes_html(self, app):
        subject, text, markup = EmailService.render(
            "invite", "http://x/register?invite=a&b=1", inviter="<Ann>", expiry_days=7)
        assert subject == "You have been invited to ReqBridge"
        assert "<Ann> invited you" in text
        assert "&lt;Ann&gt;" in markup
        assert "invite=a&amp;b=1" in markup

    def test_smtp_failure_recorded(self, app, monkeypatch):
        def boom(msg):
            raise smtplib.SMTPException("relay refused")

        monkeypatch.setitem(app.config, "MAIL_SERVER", "smtp.example.com")
        monkeypatch.setattr(EmailService, "_deliver", staticmethod(boom))
        log = EmailService.send("password_reset", to_email="a@example.com", link="http://x",
                                category="password_reset", name="A", expiry_minutes=60)
        assert log.status == "failed"
        assert log.error_message == "relay refused"
        assert log.sent_at is None
