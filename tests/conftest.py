import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENABLE_SCHEDULER"] = "false"

import mongomock
import pytest
from fastapi.testclient import TestClient

import main
from database import create_document, ensure_indexes
from mailer import get_mailer
from push import PushResult, get_push
from schemas import User
from security import create_admin_token, create_user_token, get_password_hash
from storage import get_storage

PASSWORD = "secret123"


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.deliver = True

    def send_otp(self, email, code, purpose="user"):
        self.sent.append({"email": email, "code": code, "purpose": purpose})
        return self.deliver

    @property
    def last_code(self):
        return self.sent[-1]["code"]


class FakePush:
    def __init__(self):
        self.calls = []
        self.result = PushResult(True, notification_id="onesignal-1")
        self.errors = []

    def send_to_all(self, title, message, data=None):
        self.calls.append({"target": "all", "title": title, "userIds": None})
        if self.errors:
            raise self.errors.pop(0)
        return self.result

    def send_to_users(self, title, message, user_ids, data=None):
        self.calls.append({"target": "users", "title": title, "userIds": list(user_ids)})
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class FakeStorage:
    def __init__(self):
        self.files = {}

    def upload(self, data, filename, folder, content_type=None):
        self.files[f"{folder}/{filename}"] = (data, content_type)
        return f"https://files.reclaimapp.com/{folder}/{filename}"

    def open(self, file_id):
        return None


@pytest.fixture
def db():
    database = mongomock.MongoClient()["reclaim-test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def push():
    return FakePush()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(db, mailer, push, storage):
    main.app.state.db = db
    main.app.dependency_overrides[get_mailer] = lambda: mailer
    main.app.dependency_overrides[get_push] = lambda: push
    main.app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(main.app, raise_server_exceptions=False)
    main.app.dependency_overrides.clear()


def make_user(db, email="maya@reclaimapp.com", name="Maya", **fields):
    user = User(email=email, name=name, password_hash=get_password_hash(PASSWORD)).to_document()
    user.update(fields)
    return create_document(db, "user", user)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(db):
    return create_document(db, "admin", {
        "email": "admin@reclaimapp.com",
        "passwordHash": get_password_hash(PASSWORD),
        "name": "Ada",
    })


@pytest.fixture
def admin_headers(admin):
    return bearer(create_admin_token(admin["_id"]))


@pytest.fixture
def user(db):
    return make_user(db)


@pytest.fixture
def user_headers(user):
    return bearer(create_user_token(user["_id"]))
