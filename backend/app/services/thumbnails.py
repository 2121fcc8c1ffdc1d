"""
Local first-page thumbnails, used when the media host did not return one.

Rendering needs a writable disk and PyMuPDF, so the whole step is skipped on
serverless platforms. Every failure is logged and reported as None: a note
without a thumbnail is still a valid note.
"""
from __future__ import annotations

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Mapping, Optional

import fitz  # PyMuPDF
import httpx

from app.core.config import Settings, settings
from app.services.media import is_fetchable_url

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "/uploads/thumbnails"
SERVERLESS_ENV_VARS = ("VERCEL", "AWS_LAMBDA_FUNCTION_NAME", "NETLIFY", "SERVERLESS")


def is_serverless_env(environ: Mapping[str, str] = os.environ) -> bool:
    return any(environ.get(name) for name in SERVERLESS_ENV_VARS)


@contextmanager
def temporary_pdf(suffix: str = ".pdf") -> Iterator[Path]:
    """A temp file path that is removed on exit, whatever happened inside."""
    fd, name = tempfile.mkstemp(prefix="note-", suffix=suffix)
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Could not remove temp file %s", path, exc_info=True)


class Thumbnailer:
    def __init__(
        self,
        config: Settings = settings,
        transport: httpx.BaseTransport | None = None,
        environ: Mapping[str, str] = os.environ,
    ):
        self.config = config
        self._transport = transport
        self._environ = environ

    @property
    def out_dir(self) -> Path:
        return Path(self.config.THUMBNAILS_DIR)

    @property
    def enabled(self) -> bool:
        return self.config.LOCAL_THUMBNAILS and not is_serverless_env(self._environ)

    def _download(self, url: str, dest: Path) -> None:
        with httpx.Client(
            timeout=self.config.HTTP_TIMEOUT_SECONDS,
            follow_redirects=False,
            transport=self._transport,
        ) as client:
            with client.stream("GET", url) as resp:
                resp.raise_for_status()
                with dest.open("wb") as fh:
                    for chunk in resp.iter_bytes():
                        fh.write(chunk)

    def render_first_page(self, pdf_path: Path, out_path: Path) -> None:
        """Rasterize page 1 of the PDF to PNG, scaled to THUMBNAIL_WIDTH."""
        with fitz.open(str(pdf_path)) as doc:
            if doc.page_count < 1:
                raise ValueError("PDF has no pages")
            page = doc.load_page(0)
            zoom = self.config.THUMBNAIL_WIDTH / max(page.rect.width, 1)
            pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)

            # write next to the target, then move into place
            tmp_out = out_path.with_suffix(".tmp.png")
            try:
                pix.save(str(tmp_out))
                os.replace(tmp_out, out_path)
            finally:
                if tmp_out.exists():
                    tmp_out.unlink()

    def generate(self, note_id: str, pdf_url: str) -> Optional[str]:
        """Returns the public thumbnail path, or None when skipped or failed."""
        if not self.enabled:
            logger.info("Local thumbnails disabled in this environment; skipping note %s", note_id)
            return None
        if not is_fetchable_url(pdf_url, self.config):
            logger.info("Note %s is not on a media host; no local thumbnail", note_id)
            return None

        out_path = self.out_dir / f"{note_id}.png"
        try:
            self.out_dir.mkdir(parents=True, exist_ok=True)
            with temporary_pdf() as tmp_pdf:
                self._download(pdf_url, tmp_pdf)
                self.render_first_page(tmp_pdf, out_path)
        except Exception as e:
            logger.warning("Thumbnail generation failed for note %s: %s", note_id, e)
            return None

        return f"{PUBLIC_PREFIX}/{note_id}.png"


_thumbnailer = Thumbnailer()


def get_thumbnailer() -> Thumbnailer:
    return _thumbnailer
