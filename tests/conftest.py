"""
Shared test fixtures: in-memory SQLite, a recording object store double and
a fresh in-process cache per test.
"""
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime
from typing import Dict, List, Optional, Tuple

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from guestlens.core import cache as cache_module
from guestlens.core.cache import InMemoryCache
from guestlens.db.base import Base
from guestlens.models import EventMember, MemberRole, Photo, User, UserRole
from guestlens.repositories.event_repo import EventRepository
from guestlens.services.storage.base import ObjectStore, StoredObject
from guestlens.services.storage.s3 import S3ServiceError

STORAGE_HOST = "https://storage.test/"


class FakeObjectStore(ObjectStore):
    """Dict-backed store that records every call."""

    def __init__(self):
        self.objects: Dict[str, StoredObject] = {}
        self.calls: List[Tuple[str, str]] = []
        self.fail_sign_keys_containing: Optional[str] = None
        self.fail_put = False
        self.fail_delete = False

    def _record(self, op: str, key: str):
        self.calls.append((op, key))

    def ops(self, op: str) -> List[str]:
        return [key for name, key in self.calls if name == op]

    def put(self, key, data, content_type="application/octet-stream"):
        self._record("put", key)
        if self.fail_put:
            raise S3ServiceError("put failed")
        self.objects[key] = StoredObject(data=data, content_type=content_type)

    def get(self, key):
        self._record("get", key)
        if key not in self.objects:
            raise S3ServiceError(f"Object not found: {key}")
        return self.objects[key]

    def delete(self, key):
        self._record("delete", key)
        if self.fail_delete:
            raise S3ServiceError("delete failed")
        self.objects.pop(key, None)

    def head(self, key):
        self._record("head", key)
        return key in self.objects

    def list(self, prefix):
        self._record("list", prefix)
        return [{"key": k, "size": len(v.data)} for k, v in self.objects.items() if k.startswith(prefix)]

    def sign_put(self, key, ttl, content_type):
        self._record("sign_put", key)
        if self.fail_sign_keys_containing and self.fail_sign_keys_containing in key:
            raise S3ServiceError("signing failed")
        return f"{STORAGE_HOST}{key}?op=put&ttl={ttl}"

    def sign_get(self, key, ttl, filename=None, inline=False):
        self._record("sign_get", key)
        return f"{STORAGE_HOST}{key}?op=get&ttl={ttl}"


def key_from_signed_url(url: str) -> str:
    return url[len(STORAGE_HOST):].split("?", 1)[0]


@pytest.fixture
def db_session():
    """Create test database session."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autoflush=False)
    session = Session()
    yield session
    session.close()
    Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def memory_cache(monkeypatch):
    """Every test gets an empty in-process cache backend."""
    backend = InMemoryCache()
    monkeypatch.setattr(cache_module, "cache", backend)
    return backend


@pytest.fixture
def store():
    return FakeObjectStore()


def _make_user(db, email, role=UserRole.member, plan_name=None, name=None):
    user = User(name=name or email.split("@")[0], email=email, role=role, plan_name=plan_name)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def host(db_session):
    return _make_user(db_session, "host@example.com", plan_name="Free")


@pytest.fixture
def other_user(db_session):
    return _make_user(db_session, "other@example.com")


@pytest.fixture
def admin(db_session):
    return _make_user(db_session, "admin@example.com", role=UserRole.admin)


@pytest.fixture
def make_user(db_session):
    def factory(email, **kwargs):
        return _make_user(db_session, email, **kwargs)
    return factory


@pytest.fixture
def make_event(db_session, host):
    def factory(owner=None, **overrides):
        data = {
            "name": "Summer Wedding",
            "date": datetime(2026, 6, 20, 15, 0),
            "is_public": False,
            "allow_guest_uploads": True,
            "require_approval": False,
        }
        data.update(overrides)
        return EventRepository(db_session).create_event((owner or host).id, data)
    return factory


@pytest.fixture
def event(make_event):
    return make_event()


@pytest.fixture
def make_photo(db_session):
    counter = {"n": 0}

    def factory(event, key=None, original_filename="IMG_0001.jpg", file_size=1000, is_approved=True,
                file_path=None, **extra):
        counter["n"] += 1
        key = key or f"events/{event.id}/photos/{1700000000000 + counter['n']}-abc{counter['n']}.jpg"
        photo = Photo(
            event_id=event.id,
            file_path=file_path or f"s3:{key}",
            filename=(file_path or key).rsplit("/", 1)[-1],
            original_filename=original_filename,
            mime_type="image/jpeg",
            file_size=file_size,
            is_approved=is_approved,
            **extra,
        )
        db_session.add(photo)
        db_session.commit()
        db_session.refresh(photo)
        return photo
    return factory


@pytest.fixture
def add_member(db_session):
    def factory(event, user, role=MemberRole.viewer) -> EventMember:
        return EventRepository(db_session).set_member_role(event.id, user.id, role)
    return factory
