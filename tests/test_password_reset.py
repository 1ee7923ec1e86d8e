"""Tests for the forgot/reset password flow and single-use token redemption."""

import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import crm_access.services.auth_service as auth_module
from conftest import DEFAULT_PASSWORD
from crm_access.core.exceptions import InvalidOrExpiredToken, MailUnavailable, ValidationError
from crm_access.core.security import hash_password, verify_password
from crm_access.db.base import Base
from crm_access.models.password_reset import PasswordResetToken
from crm_access.models.user import User
from crm_access.services.auth_service import RESET_REQUESTED_MESSAGE, auth_service
from crm_access.services.mail_service import mail_service


@pytest.fixture()
def mailer(monkeypatch):
    send = MagicMock()
    monkeypatch.setattr(mail_service, "is_configured", lambda: True)
    monkeypatch.setattr(mail_service, "send", send)
    return send


@pytest.fixture()
def mail_down(monkeypatch):
    monkeypatch.setattr(mail_service, "is_configured", lambda: False)


def _issue_token(db, user, expires_in=timedelta(hours=1), value="a" * 64):
    row = PasswordResetToken(
        user_id=user.id,
        token=value,
        expires_at=datetime.now(timezone.utc) + expires_in,
    )
    db.add(row)
    db.commit()
    return value


class TestRequestReset:

    def test_unknown_email_gets_the_generic_message(self, db, mail_down):
        assert auth_service.request_password_reset(db, "nobody@example.com") == RESET_REQUESTED_MESSAGE
        assert db.query(PasswordResetToken).count() == 0

    def test_known_email_without_mail_raises(self, db, make_user, mail_down):
        make_user("Sam")
        with pytest.raises(MailUnavailable):
            auth_service.request_password_reset(db, "sam@example.com")
        assert db.query(PasswordResetToken).count() == 0

    def test_token_persisted_and_mailed(self, db, make_user, mailer):
        sam = make_user("Sam")
        message = auth_service.request_password_reset(db, "sam@example.com")
        assert message == RESET_REQUESTED_MESSAGE

        row = db.query(PasswordResetToken).one()
        assert row.user_id == sam.id
        assert len(row.token) == 64
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        assert row.expires_at > now + timedelta(minutes=55)

        mailer.assert_called_once()
        kwargs = mailer.call_args.kwargs
        assert kwargs["to"] == "sam@example.com"
        assert f"reset-password?token={row.token}" in kwargs["body"]

    def test_undelivered_token_is_removed(self, db, make_user, mailer):
        make_user("Sam")
        mailer.side_effect = MailUnavailable("relay refused")
        with pytest.raises(MailUnavailable):
            auth_service.request_password_reset(db, "sam@example.com")
        assert db.query(PasswordResetToken).count() == 0

    def test_endpoint_hides_mail_configuration(self, client, make_user, mail_down):
        make_user("Sam")
        response = client.post("/api/auth/forgot-password", json={"email": "sam@example.com"})
        assert response.status_code == 503
        assert "SMTP" not in response.json()["detail"]

    def test_endpoint_unknown_email(self, client, mail_down):
        response = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})
        assert response.status_code == 200
        assert response.json()["message"] == RESET_REQUESTED_MESSAGE


class TestRedeem:

    def test_redeem_sets_password_and_consumes_token(self, db, make_user):
        sam = make_user("Sam")
        token = _issue_token(db, sam)

        auth_service.redeem_password_reset(db, token, "fresh-pass")
        db.expire_all()
        assert verify_password("fresh-pass", db.get(User, sam.id).hashed_password)
        assert db.query(PasswordResetToken).count() == 0

        with pytest.raises(InvalidOrExpiredToken):
            auth_service.redeem_password_reset(db, token, "another-pass")

    def test_redeem_invalidates_other_links_for_the_account(self, db, make_user):
        sam = make_user("Sam")
        olga = make_user("Olga")
        first = _issue_token(db, sam, value="a" * 64)
        second = _issue_token(db, sam, value="b" * 64)
        _issue_token(db, olga, value="c" * 64)

        auth_service.redeem_password_reset(db, first, "fresh-pass")

        with pytest.raises(InvalidOrExpiredToken):
            auth_service.redeem_password_reset(db, second, "other-pass")
        remaining = db.query(PasswordResetToken).all()
        assert [row.user_id for row in remaining] == [olga.id]

    def test_expired_token_rejected(self, db, make_user):
        sam = make_user("Sam")
        token = _issue_token(db, sam, expires_in=timedelta(minutes=-1))
        with pytest.raises(InvalidOrExpiredToken):
            auth_service.redeem_password_reset(db, token, "fresh-pass")
        db.expire_all()
        assert verify_password(DEFAULT_PASSWORD, db.get(User, sam.id).hashed_password)

    def test_short_password_rejected_before_lookup(self, db, make_user):
        sam = make_user("Sam")
        token = _issue_token(db, sam)
        with pytest.raises(ValidationError):
            auth_service.redeem_password_reset(db, token, "123")
        assert db.query(PasswordResetToken).count() == 1

    def test_reset_endpoint(self, client, db, make_user):
        sam = make_user("Sam")
        token = _issue_token(db, sam)

        response = client.post(
            "/api/auth/reset-password", json={"token": token, "newPassword": "fresh-pass"}
        )
        assert response.status_code == 200

        response = client.post(
            "/api/auth/reset-password", json={"token": token, "newPassword": "fresh-pass"}
        )
        assert response.status_code == 400
        assert "Invalid or expired" in response.json()["detail"]


class TestConcurrentRedeem:
    """Two redemptions of one token racing past the lookup: exactly one wins."""

    def test_only_one_redemption_succeeds(self, tmp_path, monkeypatch):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'race.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        Base.metadata.create_all(bind=engine)
        factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        setup = factory()
        user = User(email="race@example.com", hashed_password=hash_password("old-pass"), name="Race")
        setup.add(user)
        setup.commit()
        token = _issue_token(setup, user)
        setup.close()

        # Both threads must have found the token row before either deletes it
        barrier = threading.Barrier(2, timeout=30)
        real_hash = auth_module.hash_password

        def hash_after_both_looked_up(password):
            barrier.wait()
            return real_hash(password)

        monkeypatch.setattr(auth_module, "hash_password", hash_after_both_looked_up)

        outcomes = []
        lock = threading.Lock()

        def redeem(new_password):
            db = factory()
            try:
                auth_service.redeem_password_reset(db, token, new_password)
                result = ("ok", new_password)
            except InvalidOrExpiredToken:
                result = ("rejected", new_password)
            finally:
                db.close()
            with lock:
                outcomes.append(result)

        threads = [
            threading.Thread(target=redeem, args=("first-pass",)),
            threading.Thread(target=redeem, args=("second-pass",)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        assert sorted(kind for kind, _ in outcomes) == ["ok", "rejected"]
        winner = next(pw for kind, pw in outcomes if kind == "ok")

        check = factory()
        try:
            stored = check.query(User).filter(User.email == "race@example.com").one()
            assert verify_password(winner, stored.hashed_password)
            assert check.query(PasswordResetToken).count() == 0
        finally:
            check.close()
        engine.dispose()
