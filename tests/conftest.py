import io

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from media import LocalMediaStorage

PASSWORD = "secret123"
VIDEO_DURATION = 42.5


class FixedDurationStorage(LocalMediaStorage):
    """Local storage that reports a known duration for every video."""

    def probe_duration(self, path):
        return VIDEO_DURATION


class FailingStorage(LocalMediaStorage):
    def upload(self, local_path):
        return None


def image(name="avatar.png"):
    return (name, io.BytesIO(b"\x89PNG fake image"), "image/png")


def video(name="clip.mp4"):
    return (name, io.BytesIO(b"fake video bytes"), "video/mp4")


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_NAME="vidshare_test",
        ACCESS_TOKEN_SECRET="test-access-secret",
        REFRESH_TOKEN_SECRET="test-refresh-secret",
        UPLOAD_DIR=str(tmp_path / "uploads"),
        TEMP_DIR=str(tmp_path / "tmp"),
    )


@pytest.fixture
def mongo():
    return mongomock.MongoClient()


@pytest.fixture
def db(mongo, settings):
    return mongo[settings.DATABASE_NAME]


@pytest.fixture
def client(settings, mongo):
    storage = FixedDurationStorage(settings.UPLOAD_DIR, settings.MEDIA_URL_PREFIX)
    app = create_app(settings, mongo_client=mongo, media_storage=storage)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def register(client):
    def _register(username="alice", email=None, password=PASSWORD, full_name=None, **files):
        data = {
            "full_name": full_name or username.title(),
            "email": email or f"{username}@x.com",
            "username": username,
            "password": password,
        }
        files = files or {"avatar": image()}
        return client.post("/api/v1/users/register", data=data, files=files)
    return _register


@pytest.fixture
def login(client):
    def _login(username="alice", password=PASSWORD):
        response = client.post("/api/v1/users/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.text
        # authenticate explicitly with headers so several users can share one client
        client.cookies.clear()
        data = response.json()["data"]
        return {
            "id": data["user"]["_id"],
            "user": data["user"],
            "access_token": data["access_token"],
            "refresh_token": data["refresh_token"],
            "headers": {"Authorization": f"Bearer {data['access_token']}"},
        }
    return _login


@pytest.fixture
def make_user(register, login):
    def _make_user(username="alice"):
        response = register(username=username)
        assert response.status_code == 201, response.text
        return login(username)
    return _make_user


@pytest.fixture
def publish(client):
    def _publish(user, title="T", description="", is_published=True, thumbnail=True):
        files = {"video_file": video()}
        if thumbnail:
            files["thumbnail"] = image("thumb.png")
        response = client.post(
            "/api/v1/videos",
            data={"title": title, "description": description, "is_published": str(is_published).lower()},
            files=files,
            headers=user["headers"],
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]
    return _publish
