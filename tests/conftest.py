"""
Shared pytest fixtures for the SiteBook test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - org / admin / member / outsider / project: one organization with an
      admin, a project member and a non-member user
    - other_org / other_admin / other_project: a second, unrelated tenant
    - make_user / make_project / join_project: factories for extra rows
    - auth_headers: Bearer header for any user
"""

import pytest

from sitebook import create_app
from sitebook.models import db as _db
from sitebook.models.auth import ROLE_ADMIN, ROLE_USER, Organization, User
from sitebook.models.project import Project, ProjectUser
from sitebook.services.jwt_service import generate_access_token
from sitebook.services.permission_service import Actor
from sitebook.utils.crypto import hash_password

TEST_PASSWORD = "Passw0rd!"

# bcrypt is slow on purpose; hash once for the whole run.
_PASSWORD_HASH = hash_password(TEST_PASSWORD)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Factories ────────────────────────────────────────────────────────────


def create_org(name="Acme Builders"):
    org = Organization(name=name)
    _db.session.add(org)
    _db.session.commit()
    return org


def create_user(org, email, role=ROLE_USER, *, name=None, is_active=True):
    user = User(
        organization_id=org.id,
        email=email,
        name=name or email.split("@")[0].title(),
        password_hash=_PASSWORD_HASH,
        role=role,
        is_active=is_active,
    )
    _db.session.add(user)
    _db.session.commit()
    return user


def create_project(org, name="Tower A", created_by=None):
    project = Project(organization_id=org.id, name=name, created_by=created_by)
    _db.session.add(project)
    _db.session.commit()
    return project


def add_member(project, user, status="active"):
    membership = ProjectUser(project_id=project.id, user_id=user.id, status=status)
    _db.session.add(membership)
    _db.session.commit()
    return membership


def bearer(user):
    token = generate_access_token(user.id, user.organization_id, user.role)
    return {"Authorization": f"Bearer {token}"}


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def org():
    return create_org()


@pytest.fixture()
def admin(org):
    return create_user(org, "owner@acme.io", ROLE_ADMIN, name="Owner")


@pytest.fixture()
def project(org, admin):
    return create_project(org, created_by=admin.id)


@pytest.fixture()
def member(org, project):
    """Non-admin user with an active membership on ``project``."""
    user = create_user(org, "site.engineer@acme.io", name="Site Engineer")
    add_member(project, user)
    return user


@pytest.fixture()
def outsider(org):
    """Non-admin user of the same organization without any membership."""
    return create_user(org, "accountant@acme.io", name="Accountant")


@pytest.fixture()
def other_org():
    return create_org("Beta Infra")


@pytest.fixture()
def other_admin(other_org):
    return create_user(other_org, "owner@beta.io", ROLE_ADMIN)


@pytest.fixture()
def other_project(other_org, other_admin):
    return create_project(other_org, name="Beta Bridge", created_by=other_admin.id)


@pytest.fixture()
def make_user(org):
    """Factory: ``make_user("x@acme.io", role="admin")``."""

    def _make(email, role=ROLE_USER, **kwargs):
        return create_user(org, email, role, **kwargs)

    return _make


@pytest.fixture()
def auth_headers():
    """Factory: ``auth_headers(user)`` → ``{"Authorization": "Bearer ..."}``."""
    return bearer


@pytest.fixture()
def admin_actor(admin):
    return Actor.from_user(admin)


@pytest.fixture()
def member_actor(member):
    return Actor.from_user(member)


@pytest.fixture()
def make_project(org, admin):
    """Factory: ``make_project("Tower B")`` in the default organization."""

    def _make(name):
        return create_project(org, name=name, created_by=admin.id)

    return _make


@pytest.fixture()
def join_project():
    """Factory: ``join_project(project, user, status="active")``."""
    return add_member
