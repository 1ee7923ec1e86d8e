"""Tests for per-user section overrides."""

from unittest.mock import MagicMock

from conftest import auth_header
from crm_access.models.section_permission import SectionPermission
from crm_access.models.user import User
from crm_access.services.section_service import SECTION_KEYS, SectionState, section_service


class TestResolve:

    def test_no_overrides_means_everything_allowed(self, db, make_user):
        user = make_user("Sam")
        resolved = section_service.resolve(db, user)
        assert set(resolved) == set(SECTION_KEYS)
        assert all(resolved.values())

    def test_absent_record_is_default_allow(self, db, make_user):
        user = make_user("Sam")
        states = section_service.resolve_states(db, user, ["chat"])
        assert states == {"chat": SectionState.default_allow}

    def test_explicit_deny_only_affects_that_key(self, db, make_user):
        user = make_user("Sam")
        section_service.set_overrides(db, user, {"revenue": False})

        states = section_service.resolve_states(db, user, ["revenue", "orders"])
        assert states["revenue"] is SectionState.explicit_deny
        assert states["orders"] is SectionState.default_allow
        assert section_service.resolve(db, user, ["revenue", "orders"]) == {
            "revenue": False,
            "orders": True,
        }

    def test_explicit_allow_is_distinguished(self, db, make_user):
        user = make_user("Sam")
        section_service.set_overrides(db, user, {"leads": True})
        assert section_service.resolve_states(db, user, ["leads"])["leads"] is SectionState.explicit_allow

    def test_stored_extra_keys_are_reported(self, db, make_user):
        user = make_user("Sam")
        section_service.set_overrides(db, user, {"warehouse": False})
        resolved = section_service.resolve(db, user)
        assert resolved["warehouse"] is False
        assert resolved["dashboard"] is True

    def test_admin_never_queries_storage(self):
        admin = User(id=1, email="root@example.com", name="Root", role="admin")
        db = MagicMock()
        resolved = section_service.resolve(db, admin, ["revenue", "audit"])
        assert resolved == {"revenue": True, "audit": True}
        db.query.assert_not_called()


class TestSetOverrides:

    def test_upsert_replaces_existing_value(self, db, make_user):
        user = make_user("Sam")
        section_service.set_overrides(db, user, {"chat": False})
        section_service.set_overrides(db, user, {"chat": True})
        rows = db.query(SectionPermission).filter(SectionPermission.user_id == user.id).all()
        assert len(rows) == 1
        assert rows[0].enabled is True

    def test_admin_overrides_are_a_no_op(self, db, make_user):
        admin = make_user("Root", role="admin")
        resolved = section_service.set_overrides(db, admin, {"revenue": False})
        assert resolved["revenue"] is True
        assert db.query(SectionPermission).count() == 0


class TestSectionEndpoints:

    def test_admin_sets_and_user_reads_own_permissions(self, client, make_user):
        admin = make_user("Root", role="admin")
        sam = make_user("Sam")

        response = client.put(
            f"/api/users/{sam.id}/permissions",
            json={"permissions": {"revenue": False}},
            headers=auth_header(admin),
        )
        assert response.status_code == 200
        assert response.json()["revenue"] is False

        response = client.get(f"/api/users/{sam.id}/permissions", headers=auth_header(sam))
        assert response.status_code == 200
        assert response.json()["revenue"] is False
        assert response.json()["chat"] is True

    def test_non_admin_cannot_set_overrides(self, client, make_user):
        sam = make_user("Sam")
        other = make_user("Olga")
        response = client.put(
            f"/api/users/{other.id}/permissions",
            json={"permissions": {"chat": False}},
            headers=auth_header(sam),
        )
        assert response.status_code == 403

    def test_cannot_read_someone_elses_permissions(self, client, make_user):
        sam = make_user("Sam")
        other = make_user("Olga")
        response = client.get(f"/api/users/{other.id}/permissions", headers=auth_header(sam))
        assert response.status_code == 403

    def test_section_catalogue(self, client, make_user):
        sam = make_user("Sam")
        response = client.get("/api/users/sections", headers=auth_header(sam))
        assert response.status_code == 200
        assert [s["key"] for s in response.json()] == SECTION_KEYS
