import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("IMGBB_API_KEY", "test-key")

import pytest
from fastapi.testclient import TestClient

import main
import models
from database import Base, SessionLocal, engine
from imagehost import ImageUploadError
from tests.helpers import auth, login, register


class FakeImageHost:
    def __init__(self):
        self.uploads = []
        self.fail_at = None

    def upload(self, filename, content, content_type):
        if self.fail_at is not None and len(self.uploads) == self.fail_at:
            raise ImageUploadError("Failed to upload image to ImgBB")
        self.uploads.append(filename)
        return f"https://i.ibb.co/fake/{len(self.uploads)}-{filename}"


@pytest.fixture
def image_host():
    return FakeImageHost()


@pytest.fixture
def client(image_host):
    main.rate_store.clear()
    main.app.dependency_overrides[main.get_image_host] = lambda: image_host
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(client):
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def admin_token(client, db):
    db.add(models.User(name="Admin", email="admin@example.com", password_hash=main.hash_password("Admin@123"), role="admin"))
    db.commit()
    return login(client, "admin@example.com", "Admin@123")


@pytest.fixture
def catalog(client, admin_token):
    for name, slug in [("Electronics", "electronics"), ("Books", "books")]:
        r = client.post("/api/categories", json={"name": name, "slug": slug}, headers=auth(admin_token))
        assert r.status_code == 201
    seller = register(client, "seller@example.com", role="seller", name="Sam Seller")
    r = client.post("/api/shops", json={"name": "Gadget Hub", "description": "Phones and more"}, headers=auth(seller["token"]))
    assert r.status_code == 201
    return {"admin_token": admin_token, "seller_token": seller["token"], "shop": "Gadget Hub"}
