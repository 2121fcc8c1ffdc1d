from contextlib import contextmanager
from pathlib import Path

import fitz
import httpx
import pytest

from app.core.config import settings
from app.services import thumbnails
from app.services.thumbnails import Thumbnailer, is_serverless_env, temporary_pdf


def make_pdf() -> bytes:
    doc = fitz.open()
    page = doc.new_page(width=300, height=400)
    page.insert_text((40, 60), "Week 1 notes")
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def temp_paths(monkeypatch):
    """Record the temp files the thumbnailer creates."""
    created = []
    real = thumbnails.temporary_pdf

    @contextmanager
    def tracking(*args, **kwargs):
        with real(*args, **kwargs) as path:
            created.append(path)
            yield path

    monkeypatch.setattr(thumbnails, "temporary_pdf", tracking)
    return created


@pytest.fixture
def config(tmp_path):
    return settings.model_copy(update={
        "THUMBNAILS_DIR": str(tmp_path / "thumbs"),
        "LOCAL_THUMBNAILS": True,
        "MEDIA_FETCH_HOSTS": ["cdn.example.com"],
    })


def test_serverless_detection():
    assert is_serverless_env({"VERCEL": "1"})
    assert is_serverless_env({"AWS_LAMBDA_FUNCTION_NAME": "fn"})
    assert not is_serverless_env({})


def test_generate_renders_first_page(config):
    pdf = make_pdf()
    transport = httpx.MockTransport(lambda r: httpx.Response(200, content=pdf))
    t = Thumbnailer(config=config, transport=transport, environ={})

    url = t.generate("note-1", "https://cdn.example.com/n.pdf")

    assert url == "/uploads/thumbnails/note-1.png"
    out = Path(config.THUMBNAILS_DIR) / "note-1.png"
    assert out.read_bytes().startswith(b"\x89PNG")
    pix = fitz.Pixmap(str(out))
    assert pix.width == config.THUMBNAIL_WIDTH


def test_generate_skipped_on_serverless(config):
    def handler(request):
        raise AssertionError("must not download")

    t = Thumbnailer(config=config, transport=httpx.MockTransport(handler), environ={"NETLIFY": "true"})
    assert t.generate("note-1", "https://cdn.example.com/n.pdf") is None


def test_generate_skipped_when_disabled(config):
    t = Thumbnailer(config=config.model_copy(update={"LOCAL_THUMBNAILS": False}), environ={})
    assert t.generate("note-1", "https://cdn.example.com/n.pdf") is None


def test_temp_file_removed_when_download_fails(config, temp_paths):
    t = Thumbnailer(
        config=config,
        transport=httpx.MockTransport(lambda r: httpx.Response(404)),
        environ={},
    )

    assert t.generate("note-2", "https://cdn.example.com/missing.pdf") is None
    assert len(temp_paths) == 1 and not temp_paths[0].exists()


def test_temp_file_removed_when_render_fails(config, temp_paths):
    t = Thumbnailer(
        config=config,
        transport=httpx.MockTransport(lambda r: httpx.Response(200, content=b"not a pdf")),
        environ={},
    )

    assert t.generate("note-3", "https://cdn.example.com/broken.pdf") is None
    assert not temp_paths[0].exists()
    assert not (Path(config.THUMBNAILS_DIR) / "note-3.png").exists()


def test_temporary_pdf_cleans_up_on_error():
    with pytest.raises(RuntimeError):
        with temporary_pdf() as path:
            path.write_bytes(b"x")
            raise RuntimeError("boom")
    assert not path.exists()


def no_download(request):
    raise AssertionError(f"unexpected download of {request.url}")


@pytest.mark.parametrize("url", [
    "http://169.254.169.254/latest/meta-data/",
    "http://localhost:8080/admin.pdf",
    "https://cdn.example.com:8443/n.pdf",
    "https://res.cloudinary.com/other-cloud/image/upload/n.pdf",
    "file:///etc/passwd",
])
def test_generate_skips_hosts_outside_the_media_hosts(config, url):
    t = Thumbnailer(config=config, transport=httpx.MockTransport(no_download), environ={})
    assert t.generate("note-4", url) is None


def test_generate_accepts_own_cloudinary_cloud(config):
    pdf = make_pdf()
    t = Thumbnailer(
        config=config.model_copy(update={"CLOUDINARY_CLOUD_NAME": "demo", "MEDIA_FETCH_HOSTS": []}),
        transport=httpx.MockTransport(lambda r: httpx.Response(200, content=pdf)),
        environ={},
    )

    url = t.generate("note-5", "https://res.cloudinary.com/demo/image/upload/v1/pdf_uploads/n.pdf")
    assert url == "/uploads/thumbnails/note-5.png"


def test_generate_does_not_follow_redirects(config, temp_paths):
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(302, headers={"location": "http://169.254.169.254/"})

    t = Thumbnailer(config=config, transport=httpx.MockTransport(handler), environ={})

    assert t.generate("note-6", "https://cdn.example.com/n.pdf") is None
    assert seen == ["https://cdn.example.com/n.pdf"]
    assert not temp_paths[0].exists()
