from conftest import TEST_PASSWORD


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_signup_flow_creates_session(client, register):
    user = register(client, "alice", name="Alice A")

    assert user["username"] == "alice"
    assert user["name"] == "Alice A"
    assert "passwordHash" not in user and "password_hash" not in user

    me = client.get("/api/me")
    assert me.status_code == 200
    assert me.json()["data"]["id"] == user["id"]


def test_register_requires_verified_email(client):
    resp = client.post("/register", json={"name": "Bob", "username": "bob", "password": TEST_PASSWORD})

    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert "verify" in body["message"].lower()


def test_send_otp_for_existing_email_conflicts(client, register, make_client):
    register(client, "alice")

    resp = make_client().post("/api/send-otp", json={"email": "alice@example.com"})
    assert resp.status_code == 409
    assert resp.json()["success"] is False


def test_verify_otp_with_wrong_code(client, mailer):
    client.post("/api/send-otp", json={"email": "carol@example.com"})
    code = mailer.last_code("carol@example.com")
    wrong = f"{(int(code) + 1) % 1_000_000:06d}"

    resp = client.post("/api/verify-otp", json={"email": "carol@example.com", "otp": wrong})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid or expired OTP"


def test_duplicate_username_conflicts(client, register, make_client, mailer):
    register(client, "alice")

    other = make_client()
    other.post("/api/send-otp", json={"email": "second@example.com"})
    other.post("/api/verify-otp", json={"email": "second@example.com",
                                        "otp": mailer.last_code("second@example.com")})
    resp = other.post("/register", json={"name": "Other", "username": "alice", "password": TEST_PASSWORD})
    assert resp.status_code == 409


def test_weak_password_rejected(client, mailer):
    client.post("/api/send-otp", json={"email": "dave@example.com"})
    client.post("/api/verify-otp", json={"email": "dave@example.com", "otp": mailer.last_code("dave@example.com")})

    resp = client.post("/register", json={"name": "Dave", "username": "dave", "password": "short"})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_login_with_username_or_email(client, register, make_client):
    register(client, "alice")

    c = make_client()
    resp = c.post("/login", data={"username": "alice", "password": TEST_PASSWORD})
    assert resp.status_code == 200
    assert c.get("/api/me").status_code == 200

    c2 = make_client()
    resp = c2.post("/login", data={"username": "alice@example.com", "password": TEST_PASSWORD})
    assert resp.status_code == 200


def test_login_failures_do_not_reveal_which_part_was_wrong(client, register, make_client):
    register(client, "alice")
    c = make_client()

    wrong_password = c.post("/login", data={"username": "alice", "password": "nope-1234"})
    unknown_user = c.post("/login", data={"username": "nobody", "password": "nope-1234"})

    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json()["message"] == unknown_user.json()["message"]


def test_logout_clears_session(client, register):
    register(client, "alice")

    assert client.post("/logout").status_code == 200
    resp = client.get("/api/me")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "message": "Please log in to continue"}


def test_password_reset_flow(client, register, make_client, mailer):
    register(client, "alice")
    c = make_client()

    resp = c.post("/api/password-reset/send-otp", json={"email": "alice@example.com"})
    assert resp.status_code == 200
    code = mailer.last_code("alice@example.com")

    # confirm before verify is refused
    resp = c.post("/api/password-reset/confirm",
                  json={"email": "alice@example.com", "otp": code, "newPassword": "brand-new-99"})
    assert resp.status_code == 400

    assert c.post("/api/password-reset/verify-otp",
                  json={"email": "alice@example.com", "otp": code}).status_code == 200
    resp = c.post("/api/password-reset/confirm",
                  json={"email": "alice@example.com", "otp": code, "newPassword": "brand-new-99"})
    assert resp.status_code == 200

    assert c.post("/login", data={"username": "alice", "password": TEST_PASSWORD}).status_code == 401
    assert c.post("/login", data={"username": "alice", "password": "brand-new-99"}).status_code == 200


def test_password_reset_unknown_email(client):
    resp = client.post("/api/password-reset/send-otp", json={"email": "ghost@example.com"})
    assert resp.status_code == 404
    assert resp.json()["success"] is False
