from __future__ import annotations

import pytest

from app.musaib import create_app
from app.musaib.db import session_scope
from app.musaib.models import Base, Profile
from app.musaib.seed import seed_roles
from app.musaib.storage import LocalStorage, Storage, StorageError

MEMBER_ID = 1
OTHER_MEMBER_ID = 2
CONTROLLER_ID = 3
ADMIN_ID = 4


class FailingStorage(Storage):
    """Backend that rejects every write."""

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        raise StorageError("bucket unavailable")

    def url(self, key: str) -> str:
        return f"/unavailable/{key}"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "AUTH_USER_HEADER"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        seed_roles(s)
        s.add_all(
            [
                Profile(id=MEMBER_ID, email="awa@example.com", full_name="Awa Dossou", role="membre"),
                Profile(id=OTHER_MEMBER_ID, email="koffi@example.com", full_name="Koffi Agbo", role="membre"),
                Profile(id=CONTROLLER_ID, email="ctrl@example.com", full_name="Cécile Contrôle", role="controleur"),
                Profile(id=ADMIN_ID, email="admin@example.com", full_name="Alain Admin", role="administrateur"),
            ]
        )
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def storage(tmp_path):
    return LocalStorage(root=tmp_path / "storage")


@pytest.fixture()
def failing_storage():
    return FailingStorage()


def as_user(profile_id: int) -> dict[str, str]:
    return {"X-Authenticated-User": str(profile_id)}
