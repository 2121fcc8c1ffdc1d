from conftest import TEST_PASSWORD


def create(c, title):
    return c.post("/api/notes/create", json={"title": title, "fileUrl": "https://cdn.example.com/f.pdf"})


def test_update_profile(client, register):
    register(client, "alice", name="Alice")

    resp = client.post("/profile", json={"name": "Alice Liddell", "email": "ALICE2@example.com"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["name"] == "Alice Liddell"
    assert data["email"] == "alice2@example.com"


def test_rename_does_not_rewrite_existing_notes(client, register):
    register(client, "alice", name="Alice")
    note_id = create(client, "before").json()["data"]["id"]

    client.post("/profile", json={"name": "Renamed"})

    assert client.get(f"/api/notes/{note_id}").json()["data"]["uploaderName"] == "Alice"
    assert create(client, "after").json()["data"]["uploaderName"] == "Renamed"


def test_profile_conflict(client, register, make_client):
    register(client, "alice")
    other = make_client()
    register(other, "bob")

    resp = other.post("/profile", json={"username": "alice"})
    assert resp.status_code == 409


def test_profile_requires_session(client):
    assert client.post("/profile", json={"name": "x"}).status_code == 401


def test_change_password(client, register, make_client):
    register(client, "alice")

    resp = client.post("/profile/password", json={"currentPassword": "wrong-123", "newPassword": "next-pass-42"})
    assert resp.status_code == 401

    resp = client.post("/profile/password", json={"currentPassword": TEST_PASSWORD, "newPassword": "next-pass-42"})
    assert resp.status_code == 200

    c = make_client()
    assert c.post("/login", data={"username": "alice", "password": "next-pass-42"}).status_code == 200


def test_delete_account_cascades_to_notes(client, register, make_client):
    user = register(client, "alice")
    other = make_client()
    register(other, "bob")
    create(client, "a1")
    create(client, "a2")
    create(other, "b1")

    resp = client.post("/profile/delete-account", json={"password": TEST_PASSWORD})
    assert resp.status_code == 200
    assert resp.json()["data"] == {"deletedNotes": 2}

    assert client.get("/api/me").status_code == 401
    assert other.get(f"/api/notes/user/{user['id']}").json()["data"] == []
    assert [n["title"] for n in other.get("/api/notes").json()["data"]] == ["b1"]
    assert other.post("/login", data={"username": "alice", "password": TEST_PASSWORD}).status_code == 401


def test_delete_account_needs_password(client, register):
    register(client, "alice")
    resp = client.post("/profile/delete-account", json={"password": "wrong-pass-1"})
    assert resp.status_code == 401
    assert client.get("/api/me").status_code == 200
