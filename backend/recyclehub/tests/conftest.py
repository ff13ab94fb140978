import os
import tempfile
from datetime import date
from pathlib import Path
from uuid import uuid4

import pytest

TEST_DB_FILE = Path(tempfile.gettempdir()) / f"test_recyclehub_{uuid4().hex}.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_FILE.as_posix()}"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("ACCESS_TOKEN_EXPIRE_MINUTES", "60")
os.environ.setdefault("DB_BOOTSTRAP_MODE", "off")
os.environ.setdefault("UPLOADS_DIR", str(Path(tempfile.gettempdir()) / f"test_recyclehub_uploads_{uuid4().hex}"))

from recyclehub.core.permissions import actor_for_user, serialize_roles  # noqa: E402
from recyclehub.core.security import get_password_hash  # noqa: E402
from recyclehub.database.base import Base  # noqa: E402
from recyclehub.database.session import SessionLocal, engine  # noqa: E402
from recyclehub.models.dropping_point import DroppingPoint  # noqa: E402
from recyclehub.models.user import User  # noqa: E402

TODAY = date(2026, 10, 19)


@pytest.fixture(autouse=True)
def reset_database():
    engine.dispose()
    if TEST_DB_FILE.exists():
        TEST_DB_FILE.unlink()
    Base.metadata.create_all(bind=engine)
    try:
        yield
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
        if TEST_DB_FILE.exists():
            TEST_DB_FILE.unlink()


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_user(db_session):
    def factory(name: str, roles: list[str]) -> User:
        suffix = uuid4().hex[:8]
        user = User(
            name=name,
            email=f"{name.lower().replace(' ', '.')}.{suffix}@test.local",
            password=get_password_hash("Secret@123"),
            roles=serialize_roles(roles),
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return factory


@pytest.fixture
def admin(make_user):
    return make_user("Admin", ["admin"])


@pytest.fixture
def manager(make_user):
    return make_user("Staff One", ["manager"])


@pytest.fixture
def vendor(make_user):
    return make_user("Vendor Seven", ["vendor"])


@pytest.fixture
def other_vendor(make_user):
    return make_user("Vendor Eight", ["vendor"])


@pytest.fixture
def staff_actor(manager):
    return actor_for_user(manager)


@pytest.fixture
def vendor_actor(vendor):
    return actor_for_user(vendor)


@pytest.fixture
def depot(db_session, admin):
    point = DroppingPoint(location_name="Depot A", address="Plot 12, Industrial Road", created_by=admin.id)
    db_session.add(point)
    db_session.commit()
    db_session.refresh(point)
    return point
