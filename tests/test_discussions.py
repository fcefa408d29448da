from conftest import drain, event_names

MISSING_ID = "5f1d7f1b2c3a4b5c6d7e8f90"


def test_create_discussion(client, user, course, discussion):
    assert discussion["title"] == "How do variables work?"
    assert discussion["course_id"] == course["id"]
    assert discussion["lesson_id"] == course["lessons"][0]["id"]
    assert discussion["creator_username"] == "Alice"
    assert discussion["is_blocked"] is False
    assert discussion["responses"] == []
    assert discussion["user"] == {"id": user["id"], "name": "Alice", "email": "alice@example.com"}
    assert discussion["lesson"] == {"id": course["lessons"][0]["id"], "title": "Variables"}


def test_create_discussion_broadcasts_full_record(client, user, course, events):
    resp = client.post("/api/forum/discussions", json={
        "title": "Loops question", "course": course["id"], "lesson": course["lessons"][1]["id"]
    }, headers=user["headers"])
    assert resp.status_code == 201

    messages = drain(events)
    assert [m["event"] for m in messages] == ["discussionCreated"]
    assert messages[0]["data"]["id"] == resp.json()["discussion"]["id"]
    assert messages[0]["data"]["title"] == "Loops question"


def test_create_discussion_by_title(client, user, course):
    resp = client.post("/api/forum/discussions", json={
        "title": "By title",
        "course": {"by": "title", "value": "Python Basics"},
        "lesson": {"by": "title", "value": "Loops"},
    }, headers=user["headers"])
    assert resp.status_code == 201
    assert resp.json()["discussion"]["lesson_id"] == course["lessons"][1]["id"]


def test_create_discussion_missing_fields(client, user, course):
    resp = client.post("/api/forum/discussions", json={"title": "No refs"}, headers=user["headers"])
    assert resp.status_code == 400

    resp = client.post("/api/forum/discussions", json={
        "title": "   ", "course": course["id"], "lesson": course["lessons"][0]["id"]
    }, headers=user["headers"])
    assert resp.status_code == 400


def test_create_discussion_requires_auth(client, course):
    resp = client.post("/api/forum/discussions", json={
        "title": "Anon", "course": course["id"], "lesson": course["lessons"][0]["id"]
    })
    assert resp.status_code == 401


def test_create_discussion_lesson_from_other_course(client, user, course, other_course, db):
    resp = client.post("/api/forum/discussions", json={
        "title": "Mismatch", "course": course["id"], "lesson": other_course["lessons"][0]["id"]
    }, headers=user["headers"])
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Lesson does not belong to the selected course"


def test_create_discussion_unknown_course(client, user, course):
    resp = client.post("/api/forum/discussions", json={
        "title": "Ghost", "course": MISSING_ID, "lesson": course["lessons"][0]["id"]
    }, headers=user["headers"])
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Course not found"

    resp = client.post("/api/forum/discussions", json={
        "title": "Ghost", "course": {"by": "title", "value": "No Such Course"},
        "lesson": course["lessons"][0]["id"]
    }, headers=user["headers"])
    assert resp.status_code == 404


def test_create_discussion_bad_id(client, user, course):
    resp = client.post("/api/forum/discussions", json={
        "title": "Bad", "course": "not-an-id", "lesson": course["lessons"][0]["id"]
    }, headers=user["headers"])
    assert resp.status_code == 400


def test_list_discussions_newest_first(client, user, course, other_course):
    lesson_a = course["lessons"][0]["id"]
    for title in ("first", "second", "third"):
        client.post("/api/forum/discussions", json={
            "title": title, "course": course["id"], "lesson": lesson_a
        }, headers=user["headers"])
    client.post("/api/forum/discussions", json={
        "title": "elsewhere", "course": other_course["id"], "lesson": other_course["lessons"][0]["id"]
    }, headers=user["headers"])

    resp = client.get("/api/forum/discussions", params={"course": course["id"]})
    assert resp.status_code == 200
    assert [d["title"] for d in resp.json()] == ["third", "second", "first"]

    resp = client.get("/api/forum/discussions", params={"course": course["id"], "skip": 1, "limit": 1})
    assert [d["title"] for d in resp.json()] == ["second"]

    resp = client.get("/api/forum/discussions", params={"lesson": other_course["lessons"][0]["id"]})
    assert [d["title"] for d in resp.json()] == ["elsewhere"]


def test_list_discussions_groups_responses(client, user, other_user, course):
    lesson = course["lessons"][0]["id"]
    ids = {}
    for title in ("alpha", "beta", "quiet"):
        resp = client.post("/api/forum/discussions", json={
            "title": title, "course": course["id"], "lesson": lesson
        }, headers=user["headers"])
        ids[title] = resp.json()["discussion"]["id"]

    replies = [("alpha", user, "a1"), ("beta", other_user, "b1"), ("alpha", other_user, "a2")]
    for title, who, content in replies:
        resp = client.post(
            f"/api/forum/discussions/{ids[title]}/comments",
            data={"content": content, "rating": "4"},
            headers=who["headers"],
        )
        assert resp.status_code == 201

    listed = {d["title"]: d for d in client.get("/api/forum/discussions").json()}
    assert [r["content"] for r in listed["alpha"]["responses"]] == ["a1", "a2"]
    assert [r["user"]["name"] for r in listed["alpha"]["responses"]] == ["Alice", "Bobby"]
    assert [r["content"] for r in listed["beta"]["responses"]] == ["b1"]
    assert listed["beta"]["responses"][0]["user"] == {"id": other_user["id"], "name": "Bobby"}
    assert listed["quiet"]["responses"] == []


def test_list_discussions_bad_filter(client):
    resp = client.get("/api/forum/discussions", params={"course": "xyz"})
    assert resp.status_code == 400


def test_get_discussion(client, discussion):
    resp = client.get(f"/api/forum/discussions/{discussion['id']}")
    assert resp.status_code == 200
    assert resp.json()["id"] == discussion["id"]

    assert client.get("/api/forum/discussions/nope").status_code == 400
    assert client.get(f"/api/forum/discussions/{MISSING_ID}").status_code == 404


def test_block_discussion_admin_only(client, user, admin, discussion):
    url = f"/api/forum/discussions/{discussion['id']}/block"
    assert client.put(url, json={"blocked": True}, headers=user["headers"]).status_code == 403
    assert client.put(url, json={"blocked": True}).status_code == 401


def test_block_discussion_requires_boolean(client, admin, discussion):
    url = f"/api/forum/discussions/{discussion['id']}/block"
    assert client.put(url, json={"blocked": "true"}, headers=admin["headers"]).status_code == 400
    assert client.put(url, json={}, headers=admin["headers"]).status_code == 400


def test_block_discussion_is_idempotent(client, admin, discussion, events):
    url = f"/api/forum/discussions/{discussion['id']}/block"

    resp = client.put(url, json={"blocked": True}, headers=admin["headers"])
    assert resp.status_code == 200
    assert resp.json()["discussion"]["is_blocked"] is True

    resp = client.post(url, json={"blocked": True}, headers=admin["headers"])
    assert resp.status_code == 200
    assert resp.json()["discussion"]["is_blocked"] is True

    assert event_names(events) == ["discussionBlocked"]

    resp = client.put(url, json={"blocked": False}, headers=admin["headers"])
    assert resp.json()["discussion"]["is_blocked"] is False
    assert event_names(events) == ["discussionBlocked"]


def test_forum_lessons_picker(client, course):
    resp = client.get(f"/api/forum/lessons/{course['id']}")
    assert resp.status_code == 200
    assert [l["title"] for l in resp.json()] == ["Variables", "Loops"]
