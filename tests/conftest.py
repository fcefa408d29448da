import os
import tempfile

os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="uploads-"))
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("ADMIN_CODES", "admin123,secureCode456")

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from app.chat.manager import broadcaster
from app.database import use_database
from app.main import app

ADMIN_CODE = "admin123"
PASSWORD = "secret123"


@pytest.fixture
def db():
    database = AsyncMongoMockClient()["learning_platform_test"]
    use_database(database)
    return database


@pytest.fixture
def client(db):
    with TestClient(app) as test_client:
        yield test_client


def register_and_login(client, name, email, role="user"):
    payload = {"name": name, "email": email, "password": PASSWORD, "role": role}
    if role == "admin":
        payload["admin_code"] = ADMIN_CODE
    resp = client.post("/api/auth/register", json=payload)
    assert resp.status_code == 201, resp.text

    login = {"email": email, "password": PASSWORD}
    if role == "admin":
        login["admin_code"] = ADMIN_CODE
    resp = client.post("/api/auth/login", json=login)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    return {
        "id": body["user"]["id"],
        "name": name,
        "token": body["token"],
        "headers": {"Authorization": f"Bearer {body['token']}"},
    }


@pytest.fixture
def user(client):
    return register_and_login(client, "Alice", "alice@example.com")


@pytest.fixture
def other_user(client):
    return register_and_login(client, "Bobby", "bob@example.com")


@pytest.fixture
def admin(client):
    return register_and_login(client, "Admin", "admin@example.com", role="admin")


COURSE_PAYLOAD = {
    "title": "Python Basics",
    "description": "Learn Python from scratch",
    "category": "Programming",
    "difficulty_level": "Beginner",
    "lessons": [
        {
            "title": "Variables",
            "content": "Names bound to values",
            "video_url": "https://videos.example.com/variables.mp4",
            "quiz": [
                {"question": "2 + 2?", "options": ["3", "4"], "correct_answer": 1},
                {"question": "Type of 'a'?", "options": ["str", "int", "bytes"], "correct_answer": 0},
            ],
        },
        {
            "title": "Loops",
            "content": "for and while",
            "video_url": "https://videos.example.com/loops.mp4",
        },
    ],
}


@pytest.fixture
def course(client, user):
    resp = client.post("/api/courses", json=COURSE_PAYLOAD, headers=user["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def other_course(client, user):
    payload = {
        "title": "Data Science",
        "description": "Numbers and plots",
        "category": "Data",
        "difficulty_level": "Intermediate",
        "lessons": [
            {
                "title": "Pandas",
                "content": "DataFrames",
                "video_url": "https://videos.example.com/pandas.mp4",
            }
        ],
    }
    resp = client.post("/api/courses", json=payload, headers=user["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def discussion(client, user, course):
    payload = {
        "title": "How do variables work?",
        "course": course["id"],
        "lesson": course["lessons"][0]["id"],
    }
    resp = client.post("/api/forum/discussions", json=payload, headers=user["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()["discussion"]


@pytest.fixture
def events():
    """Subscription to every broadcast event; drained with drain()"""
    subscription = broadcaster.subscribe()
    yield subscription
    broadcaster.unsubscribe(subscription)


def drain(subscription):
    messages = []
    while not subscription.queue.empty():
        messages.append(subscription.queue.get_nowait())
    return messages


def event_names(subscription):
    return [m["event"] for m in drain(subscription)]
