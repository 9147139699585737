import os
import uuid

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from behavior_points.db import Base, build_engine, get_db
from behavior_points.main import app
from behavior_points.models.auth_session import AuthSession
from behavior_points.models.badge import Badge
from behavior_points.models.medal import Medal
from behavior_points.models.user import User
from behavior_points.services.privilege_service import Identity, Role, authorize


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# Seed helpers share the `db` session: with StaticPool every session uses the
# same SQLite connection, so only one of them may hold a transaction at a time.
# Ids are captured before commit so nothing reopens a transaction afterwards.

@pytest.fixture
def make_user(db):
    """Creates a user with a live session token; returns (user_id, token)."""

    def _make(role: Role = Role.STUDENT, name: str | None = None):
        code = uuid.uuid4().hex[:8]
        token = f"tok-{code}"
        user = User(full_name=name or f"user {code}", user_code=code, role_id=int(role))
        db.add(user)
        db.flush()
        user_id = user.id
        db.add(AuthSession(token=token, user_id=user_id))
        db.commit()
        return user_id, token

    return _make


@pytest.fixture
def capability_for(db):
    def _capability(user_id, role: Role, operation: str, subject_id=None):
        return authorize(db, Identity(user_id=user_id, role=role), operation, subject_id)

    return _capability


def _add_catalog_item(db, model, name, min_points, max_points):
    item = model(name=name, min_points=min_points, max_points=max_points)
    db.add(item)
    db.flush()
    item_id = item.id
    db.commit()
    return item_id


@pytest.fixture
def add_badge(db):
    def _add(name: str, min_points: int, max_points: int | None = None):
        return _add_catalog_item(db, Badge, name, min_points, max_points)

    return _add


@pytest.fixture
def add_medal(db):
    def _add(name: str, min_points: int, max_points: int | None = None):
        return _add_catalog_item(db, Medal, name, min_points, max_points)

    return _add
