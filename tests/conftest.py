"""Pytest configuration and fixtures."""
import os
import re
import tempfile

# configure before app modules read settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SESSION_SECRET"] = "test-secret"
os.environ["THUMBNAILS_DIR"] = os.path.join(tempfile.mkdtemp(prefix="thumbs-"), "thumbnails")
os.environ["APP_ENV"] = "test"

import pytest
from fastapi.testclient import TestClient

from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.main import app
from app.security.otp_store import InMemoryOTPStore
from app.security.rate_limit import reset_rate_limits
from app.services.media import UploadResult, get_media_uploader, MediaUploader
from app.services.otp import OTPVerifier, get_otp_verifier
from app.services.thumbnails import get_thumbnailer

TEST_PASSWORD = "notes-pass-123"


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeMailer:
    configured = True

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, subject, html, text=None):
        if self.fail:
            from app.services.mailer import MailError
            raise MailError("smtp down")
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})

    def last_code(self, to: str) -> str:
        for msg in reversed(self.sent):
            if msg["to"] == to:
                return re.search(r"\b(\d{6})\b", msg["text"]).group(1)
        raise AssertionError(f"no OTP mail sent to {to}")


class FakeUploader(MediaUploader):
    """Real URL helpers, canned upload results."""

    def __init__(self):
        super().__init__()
        self.config = self.config.model_copy(update={"CLOUDINARY_CLOUD_NAME": "demo"})
        self.calls = []
        self.eager = True

    async def upload(self, data, declared_mime_type, filename):
        from app.core.errors import UnsupportedType
        from app.services.media import is_pdf_type

        if not is_pdf_type(declared_mime_type):
            raise UnsupportedType()
        self.calls.append((filename, len(data)))
        public_id = f"pdf_uploads/{filename.rsplit('.', 1)[0]}"
        return UploadResult(
            file_url=f"https://res.cloudinary.com/demo/image/upload/v1/{public_id}.pdf",
            public_id=public_id,
            thumbnail_url=self.derived_thumbnail_url(public_id) if self.eager else None,
        )


class FakeThumbnailer:
    def __init__(self):
        self.calls = []
        self.result = "/uploads/thumbnails/generated.png"

    def generate(self, note_id, pdf_url):
        self.calls.append((note_id, pdf_url))
        return self.result


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    reset_rate_limits()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def verifier(mailer, clock):
    return OTPVerifier(store=InMemoryOTPStore(clock=clock), mailer=mailer, clock=clock)


@pytest.fixture
def media():
    return FakeUploader()


@pytest.fixture
def thumbnailer():
    return FakeThumbnailer()


@pytest.fixture
def make_client(verifier, media, thumbnailer):
    """Factory for clients with their own cookie jar (one per simulated user)."""
    app.dependency_overrides[get_otp_verifier] = lambda: verifier
    app.dependency_overrides[get_media_uploader] = lambda: media
    app.dependency_overrides[get_thumbnailer] = lambda: thumbnailer

    clients = []

    def _make() -> TestClient:
        c = TestClient(app)
        c.__enter__()
        clients.append(c)
        return c

    yield _make

    for c in clients:
        c.__exit__(None, None, None)
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def register(mailer):
    """Run send-otp -> verify-otp -> register on a client; returns the user JSON."""

    def _register(c: TestClient, username: str, name: str | None = None, email: str | None = None,
                  password: str = TEST_PASSWORD) -> dict:
        email = email or f"{username}@example.com"
        resp = c.post("/api/send-otp", json={"email": email})
        assert resp.status_code == 200, resp.text

        code = mailer.last_code(email)
        resp = c.post("/api/verify-otp", json={"email": email, "otp": code})
        assert resp.status_code == 200, resp.text

        resp = c.post("/register", json={"name": name or username.title(), "username": username,
                                         "password": password})
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _register
