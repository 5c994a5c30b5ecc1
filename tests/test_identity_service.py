import pytest
from sqlalchemy.exc import OperationalError

from examprep.core.exceptions import Conflict, Forbidden, Unauthorized, ValidationError
from examprep.models.admin_slot import AdminSlot
from examprep.models.admin_user import AdminUser
from examprep.models.identity import Identity
from examprep.models.student_profile import StudentProfile
from examprep.services.identity_service import IdentityService


def test_resolve_role_from_identity(db, make_identity):
    make_identity("admin@x.com", role="admin")
    make_identity("s@x.com")

    admin = IdentityService.resolve_role(db, "admin@x.com")
    student = IdentityService.resolve_role(db, "S@X.com ")

    assert (admin.role, admin.display_role, admin.source) == ("admin", "superadmin", "identity")
    assert (student.role, student.source) == ("student", "identity")


def test_resolve_role_unknown_email(db):
    assert IdentityService.resolve_role(db, "nobody@x.com").role == "none"
    assert IdentityService.resolve_role(db, "").role == "none"


def test_resolve_role_legacy_tables(db):
    db.add(AdminUser(id="a1", email="Legacy@X.com", role="superadmin", is_active=True))
    db.add(AdminUser(id="a2", email="gone@x.com", role="superadmin", is_active=False))
    db.add(StudentProfile(user_id="u1", email="old@x.com"))
    db.commit()

    assert IdentityService.resolve_role(db, "legacy@x.com").source == "admin_users"
    assert IdentityService.resolve_role(db, "old@x.com").role == "student"
    assert IdentityService.resolve_role(db, "gone@x.com").role == "none"


def test_identity_role_wins_over_legacy_tables(db, make_identity):
    make_identity("both@x.com")
    db.add(AdminUser(id="a1", email="both@x.com", is_active=True))
    db.commit()

    assert IdentityService.resolve_role(db, "both@x.com").role == "student"


def test_resolve_role_fails_closed(db, monkeypatch):
    def broken_query(*_args, **_kwargs):
        raise OperationalError("SELECT", {}, Exception("db down"))

    monkeypatch.setattr(db, "query", broken_query)

    assert IdentityService.resolve_role(db, "s@x.com").role == "none"


def test_resolve_role_is_read_only(db, make_identity):
    make_identity("s@x.com")
    db.add(StudentProfile(user_id="u1", email="old@x.com"))
    db.commit()
    before = db.query(Identity).count()

    IdentityService.resolve_role(db, "old@x.com")
    IdentityService.resolve_role(db, "s@x.com")

    assert db.query(Identity).count() == before
    assert not db.new and not db.dirty


def test_create_admin_only_once(db):
    admin = IdentityService.create_admin(db, "Admin@X.com", "secret1", "Super", "Admin")

    assert admin.role == "admin"
    assert admin.email == "admin@x.com"
    assert db.get(AdminSlot, "superadmin").identity_id == admin.id

    with pytest.raises(Conflict) as exc:
        IdentityService.create_admin(db, "second@x.com", "secret1", "Other", "Admin")
    assert exc.value.code == "ADMIN_EXISTS"
    assert db.query(Identity).filter(Identity.role == "admin").count() == 1


def test_create_admin_singleton_enforced_by_constraint(db, monkeypatch):
    IdentityService.create_admin(db, "admin@x.com", "secret1", "Super", "Admin")
    # a racing request that passed the pre-check
    db.expunge_all()
    monkeypatch.setattr(db, "get", lambda *_args, **_kwargs: None)

    with pytest.raises(Conflict):
        IdentityService.create_admin(db, "racer@x.com", "secret1", "Race", "Admin")
    assert db.query(Identity).filter(Identity.email == "racer@x.com").count() == 0


@pytest.mark.parametrize(
    "email,password",
    [("not-an-email", "secret1"), ("admin@x.com", "12345"), ("", "secret1")],
)
def test_create_admin_validation(db, email, password):
    with pytest.raises(ValidationError):
        IdentityService.create_admin(db, email, password, "Super", "Admin")


def test_create_student_duplicate_email(db, make_identity):
    make_identity("s@x.com")

    with pytest.raises(Conflict):
        IdentityService.create_student(db, "S@x.com", "hash", {})


def test_student_login_rejects_admin(db):
    IdentityService.create_admin(db, "admin@x.com", "secret1", "Super", "Admin")

    assert IdentityService.resolve_role(db, "admin@x.com").role == "admin"
    with pytest.raises(Forbidden):
        IdentityService.login(db, "admin@x.com", "secret1", required_role="student")


def test_login_wrong_password_is_generic(db, make_identity):
    make_identity("s@x.com")

    with pytest.raises(Unauthorized) as wrong_password:
        IdentityService.login(db, "s@x.com", "nope", required_role="student")
    with pytest.raises(Unauthorized) as unknown:
        IdentityService.login(db, "ghost@x.com", "nope", required_role="student")

    assert wrong_password.value.message == unknown.value.message


def test_inactive_identity_cannot_login(db, make_identity):
    make_identity("s@x.com", is_active=False)

    with pytest.raises(Unauthorized):
        IdentityService.login(db, "s@x.com", "secret1", required_role="student")
